"""Promise (deal) models: the sales opportunity quotations belong to."""
from sqlalchemy import Column, String, Text, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from studio_quotes.database import Base, BigIntegerType


class Promise(Base):
    """
    Deal / sales opportunity.

    Owned by the pipeline subsystem; the quotation engine reads the event
    date and advances ``pipeline_stage`` on authorization.
    """
    
    __tablename__ = 'promise'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    name = Column(String(200), nullable=True)
    event_date = Column(Date, nullable=True)
    pipeline_stage = Column(String(50), nullable=False, default='pending')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
    
    tags = relationship('PromiseTag', back_populates='promise', cascade='all, delete-orphan')
    quotations = relationship('Quotation', back_populates='promise')
    
    def __repr__(self):
        return f"<Promise(id={self.id}, stage='{self.pipeline_stage}', event_date={self.event_date})>"
    
    @property
    def tag_slugs(self):
        return [tag.slug for tag in self.tags]


class PromiseTag(Base):
    """Slug tag attached to a deal (e.g. 'cancelada')."""
    
    __tablename__ = 'promise_tag'
    __table_args__ = (UniqueConstraint('promise_id', 'slug', name='uq_promise_tag_slug'),)
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    promise_id = Column(BigIntegerType, ForeignKey('promise.id'), nullable=False)
    slug = Column(String(80), nullable=False)
    
    promise = relationship('Promise', back_populates='tags')
    
    def __repr__(self):
        return f"<PromiseTag(promise_id={self.promise_id}, slug='{self.slug}')>"


class PromiseLog(Base):
    """History entry for a deal."""
    
    __tablename__ = 'promise_log'
    
    id = Column(BigIntegerType, primary_key=True, autoincrement=True)
    tenant_id = Column(BigIntegerType, ForeignKey('tenant.id'), nullable=False, index=True)
    promise_id = Column(BigIntegerType, ForeignKey('promise.id'), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    origin = Column(String(20), nullable=False, default='user')
    details = Column(Text, nullable=True)  # JSON encoded
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    
    def __repr__(self):
        return f"<PromiseLog(promise_id={self.promise_id}, action='{self.action}')>"
