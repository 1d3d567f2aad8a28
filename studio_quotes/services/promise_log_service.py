"""
History log for deals (promises).

Runs as a post-commit hook: failures are logged and never break the
operation that produced the entry.
"""
import json
import logging

from studio_quotes.database import transaction
from studio_quotes.models import PromiseLog

logger = logging.getLogger(__name__)

QUOTATION_CREATED = 'quotation_created'
QUOTATION_UPDATED = 'quotation_updated'
QUOTATION_AUTHORIZED = 'quotation_authorized'
QUOTATION_CANCELLED = 'quotation_cancelled'
QUOTATION_CLOSING = 'quotation_closing'
QUOTATION_CLOSING_CANCELLED = 'quotation_closing_cancelled'
QUOTATION_NEGOTIATED = 'quotation_negotiated'
REVISION_CREATED = 'revision_created'
REVISION_AUTHORIZED = 'revision_authorized'


def log_promise_action(session, tenant_id: int, promise_id: int, action: str, details: dict = None, origin: str = 'user'):
    """
    Append a history entry to a deal.

    Args:
        session: Database session
        tenant_id: Tenant owning the deal
        promise_id: Deal the entry belongs to
        action: One of the module-level action constants
        details: Dict with additional details (will be JSON encoded)
        origin: 'user' or 'system'
    """
    try:
        details_json = None
        if details:
            try:
                details_json = json.dumps(details, default=str)
            except Exception as e:
                logger.warning(f"Failed to serialize promise log details: {e}")
                details_json = str(details)

        with transaction(session):
            session.add(PromiseLog(
                tenant_id=tenant_id,
                promise_id=promise_id,
                action=action,
                origin=origin,
                details=details_json,
            ))

        logger.info(f"Promise log created: {action} on promise {promise_id}")

    except Exception as e:
        logger.error(f"Failed to create promise log: {e}")
        # Don't raise exception - history failures should not break business logic


def get_promise_logs(session, tenant_id: int, promise_id: int, limit: int = 100):
    """Most recent history entries of a deal."""
    return session.query(PromiseLog).filter(
        PromiseLog.tenant_id == tenant_id,
        PromiseLog.promise_id == promise_id
    ).order_by(PromiseLog.id.desc()).limit(limit).all()
