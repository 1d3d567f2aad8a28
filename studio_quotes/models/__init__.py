"""Models package - exports all SQLAlchemy models."""
# Core
from studio_quotes.models.tenant import Tenant
from studio_quotes.models.pricing_configuration import PricingConfiguration

# Catalog
from studio_quotes.models.catalog import (
    CatalogSection, CatalogCategory, CatalogItem, BillingType, ProfitType
)

# Pipeline
from studio_quotes.models.promise import Promise, PromiseTag, PromiseLog
from studio_quotes.models.event import Event
from studio_quotes.models.scheduler_task import SchedulerTask

# Quotations
from studio_quotes.models.commercial_condition import CommercialCondition, NegotiationCondition, AdvanceType
from studio_quotes.models.quotation import (
    Quotation, QuotationStatus, RevisionStatus, QuotationEvent,
    AUTHORIZED_STATUSES, EDITABLE_STATUSES, CLOSABLE_STATUSES, TRANSITIONS,
    can_transition, next_status
)
from studio_quotes.models.quotation_item import QuotationItem
from studio_quotes.models.closing import QuotationClosing

__all__ = [
    'Tenant', 'PricingConfiguration',
    'CatalogSection', 'CatalogCategory', 'CatalogItem', 'BillingType', 'ProfitType',
    'Promise', 'PromiseTag', 'PromiseLog', 'Event', 'SchedulerTask',
    'CommercialCondition', 'NegotiationCondition', 'AdvanceType',
    'Quotation', 'QuotationStatus', 'RevisionStatus', 'QuotationEvent',
    'AUTHORIZED_STATUSES', 'EDITABLE_STATUSES', 'CLOSABLE_STATUSES', 'TRANSITIONS',
    'can_transition', 'next_status',
    'QuotationItem', 'QuotationClosing',
]
