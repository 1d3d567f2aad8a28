"""Event (booking) created when a quotation is authorized."""
from sqlalchemy import Column, String, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType


class Event(Base):
    """Confirmed booking for a deal, pointing at the quotation in force."""
    
    __tablename__ = 'event'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    promise_id = Column(BigIntegerType, ForeignKey('promise.id'), nullable=False, unique=True)
    quotation_id = Column(BigIntegerType, ForeignKey('quotation.id', use_alter=True, name='fk_event_quotation'), nullable=True)
    event_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default='ACTIVE')  # ACTIVE, CANCELLED
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    promise = relationship('Promise')
    quotation = relationship('Quotation', foreign_keys=[quotation_id])
    
    def __repr__(self):
        return f"<Event(id={self.id}, promise_id={self.promise_id}, quotation_id={self.quotation_id}, status='{self.status}')>"
