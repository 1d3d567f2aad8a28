"""Closing record - bookkeeping for a quotation in 'en_cierre'."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType


class QuotationClosing(Base):
    """
    Remembers what passing to closing changed, so cancel-closing can undo it.

    ``previous_status`` is the status the quotation had before closing and
    ``archived_sibling_ids`` the quotations of the same deal that were
    archived as part of the move.
    """
    
    __tablename__ = 'quotation_closing'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    quotation_id = Column(
        BigIntegerType,
        ForeignKey('quotation.id', ondelete='CASCADE'),
        nullable=False,
        unique=True
    )
    previous_status = Column(String(30), nullable=False)
    archived_sibling_ids = Column(JSON, nullable=False, default=list)
    condition_id = Column(BigIntegerType, ForeignKey('commercial_condition.id'), nullable=True)
    condition_defined = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    quotation = relationship('Quotation', back_populates='closing')
    
    def __repr__(self):
        return f"<QuotationClosing(quotation_id={self.quotation_id}, previous_status='{self.previous_status}')>"
