"""Catalog models: sections, categories and reusable service/product items."""
import enum
from sqlalchemy import Column, String, Text, Boolean, Integer, Numeric, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType


class ProfitType(str, enum.Enum):
    """Utility classification that selects the margin coefficient."""
    SERVICE = "servicio"
    PRODUCT = "producto"


class BillingType(str, enum.Enum):
    """How a line's quantity is interpreted."""
    HOUR = "HOUR"
    SERVICE = "SERVICE"
    UNIT = "UNIT"


def enum_values(enum_cls):
    """Persist enum values (not member names)."""
    return [member.value for member in enum_cls]


class CatalogSection(Base):
    """Top-level grouping of the catalog (e.g. 'Cobertura', 'Impresos')."""
    
    __tablename__ = 'catalog_section'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    order = Column(Integer, nullable=True)
    
    categories = relationship('CatalogCategory', back_populates='section')
    
    def __repr__(self):
        return f"<CatalogSection(id={self.id}, name='{self.name}', order={self.order})>"


class CatalogCategory(Base):
    """Category inside a section."""
    
    __tablename__ = 'catalog_category'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    section_id = Column(BigIntegerType, ForeignKey('catalog_section.id'), nullable=True)
    name = Column(String(200), nullable=False)
    order = Column(Integer, nullable=True)
    
    section = relationship('CatalogSection', back_populates='categories')
    items = relationship('CatalogItem', back_populates='category')
    
    def __repr__(self):
        return f"<CatalogCategory(id={self.id}, name='{self.name}', order={self.order})>"


class CatalogItem(Base):
    """Reusable service/product definition with cost, expense and billing method."""
    
    __tablename__ = 'catalog_item'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    category_id = Column(BigIntegerType, ForeignKey('catalog_category.id'), nullable=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    cost = Column(Numeric(14, 2), nullable=False, default=0)
    expense = Column(Numeric(14, 2), nullable=False, default=0)
    utility_type = Column(
        SQLEnum(ProfitType, native_enum=False, values_callable=enum_values, length=20),
        nullable=False, default=ProfitType.SERVICE
    )
    billing_type = Column(
        SQLEnum(BillingType, native_enum=False, values_callable=enum_values, length=20),
        nullable=False, default=BillingType.SERVICE
    )
    order = Column(Integer, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    category = relationship('CatalogCategory', back_populates='items')
    
    def __repr__(self):
        return f"<CatalogItem(id={self.id}, name='{self.name}', cost={self.cost}, expense={self.expense})>"
