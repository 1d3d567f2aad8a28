"""Commercial conditions: standard tenant-wide terms and per-quotation overrides."""
import enum
from sqlalchemy import Column, String, Text, Boolean, Numeric, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType
from studio_quotes.models.catalog import enum_values


class AdvanceType(str, enum.Enum):
    """How the advance payment is expressed."""
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class CommercialCondition(Base):
    """Standard payment/discount terms offered by the studio."""
    
    __tablename__ = 'commercial_condition'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    advance_type = Column(
        SQLEnum(AdvanceType, native_enum=False, values_callable=enum_values, length=20),
        nullable=False, default=AdvanceType.PERCENTAGE
    )
    advance_percentage = Column(Numeric(5, 2), nullable=True)
    advance_amount = Column(Numeric(14, 2), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    def __repr__(self):
        return f"<CommercialCondition(id={self.id}, name='{self.name}', discount={self.discount_percentage})>"


class NegotiationCondition(Base):
    """
    Temporary override of the standard terms, scoped to one quotation.

    At most one per quotation; negotiating again replaces it.
    """
    
    __tablename__ = 'negotiation_condition'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    quotation_id = Column(
        BigIntegerType,
        ForeignKey('quotation.id', ondelete='CASCADE'),
        nullable=False,
        unique=True
    )
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=True)
    advance_type = Column(
        SQLEnum(AdvanceType, native_enum=False, values_callable=enum_values, length=20),
        nullable=False, default=AdvanceType.PERCENTAGE
    )
    advance_percentage = Column(Numeric(5, 2), nullable=True)
    advance_amount = Column(Numeric(14, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    quotation = relationship('Quotation', back_populates='negotiation_condition')
    
    def __repr__(self):
        return f"<NegotiationCondition(quotation_id={self.quotation_id}, discount={self.discount_percentage})>"
