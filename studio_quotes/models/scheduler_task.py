"""Scheduler task - owned by the scheduling subsystem."""
from sqlalchemy import Column, String, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType


class SchedulerTask(Base):
    """
    Planned task linked to a quotation line.

    The quotation engine only rewrites ``quotation_item_id`` when a
    revision replaces the line the task was created for.
    """
    
    __tablename__ = 'scheduler_task'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    quotation_item_id = Column(
        BigIntegerType,
        ForeignKey('quotation_item.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    name = Column(String(200), nullable=False)
    start_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    def __repr__(self):
        return f"<SchedulerTask(id={self.id}, quotation_item_id={self.quotation_item_id})>"
