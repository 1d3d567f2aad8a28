"""Pricing configuration - tenant-scoped coefficients for the pricing calculator."""
from sqlalchemy import Column, Boolean, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType


class PricingConfiguration(Base):
    """
    Margins, commission and markup used to price catalog items.

    Values are stored as fractions (0.30 == 30 %). Legacy rows that hold
    whole percentages are normalized when read by the config service.
    """
    
    __tablename__ = 'pricing_configuration'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    service_margin = Column(Numeric(8, 4), nullable=False, default=0)
    product_margin = Column(Numeric(8, 4), nullable=False, default=0)
    sales_commission = Column(Numeric(8, 4), nullable=False, default=0)
    markup = Column(Numeric(8, 4), nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    tenant = relationship('Tenant')
    
    def __repr__(self):
        return (
            f"<PricingConfiguration(tenant_id={self.tenant_id}, service={self.service_margin}, "
            f"product={self.product_margin}, markup={self.markup})>"
        )
