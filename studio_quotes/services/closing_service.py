"""Closing workflow: pass a quotation to 'en_cierre' and back."""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from studio_quotes.database import transaction
from studio_quotes.exceptions import InvalidStateError
from studio_quotes.models import (
    Quotation, QuotationClosing, QuotationEvent, QuotationStatus, CLOSABLE_STATUSES, next_status
)
from studio_quotes.services import promise_log_service
from studio_quotes.services.hooks import PostCommitHooks
from studio_quotes.services.quotation_service import (
    archive_siblings, ensure_condition, get_quotation, queue_standard_hooks
)
from studio_quotes.services.result import returns_result

logger = logging.getLogger(__name__)


def _other_closing(session: Session, quotation: Quotation) -> Optional[Quotation]:
    return session.query(Quotation).filter(
        Quotation.promise_id == quotation.promise_id,
        Quotation.id != quotation.id,
        Quotation.status == QuotationStatus.EN_CIERRE,
        Quotation.archived.is_(False)
    ).first()


@returns_result('pass_to_closing')
def pass_to_closing(session: Session, tenant_id: int, quotation_id: int,
                    condition_id: Optional[int] = None, condition_defined: bool = False) -> Dict[str, Any]:
    """
    Move a 'pendiente' or 'negociacion' quotation to 'en_cierre'.

    Records the current status and archives the deal's other pending and
    negotiating quotations so cancel-closing can put everything back.
    """
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    quotation.ensure_can(QuotationEvent.PASS_TO_CLOSING)

    other = _other_closing(session, quotation)
    if other is not None:
        raise InvalidStateError(
            f'La cotización "{other.name}" ya está en proceso de cierre para esta promesa.',
            payload={'closing_quotation_id': other.id}
        )
    ensure_condition(session, tenant_id, condition_id)

    hooks = PostCommitHooks()
    with transaction(session):
        previous_status = quotation.status
        archived = archive_siblings(session, quotation, statuses=CLOSABLE_STATUSES)

        closing = quotation.closing
        if closing is None:
            closing = QuotationClosing(tenant_id=tenant_id)
            quotation.closing = closing
        closing.previous_status = previous_status.value
        closing.archived_sibling_ids = archived
        closing.condition_id = condition_id
        closing.condition_defined = bool(condition_defined or condition_id)
        if condition_id is not None:
            quotation.commercial_condition_id = condition_id

        quotation.apply_event(QuotationEvent.PASS_TO_CLOSING)
        promise_id = quotation.promise_id

    logger.info(
        f"[CIERRE] Cotización {quotation_id} en cierre (antes: {previous_status.value}); "
        f"{len(archived)} cotizaciones archivadas"
    )

    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.QUOTATION_CLOSING,
                         {'quotation_id': quotation_id, 'previous_status': previous_status.value})
    hooks.run()
    return {
        'id': quotation_id,
        'status': QuotationStatus.EN_CIERRE.value,
        'previous_status': previous_status.value,
        'archived_sibling_ids': archived,
    }


@returns_result('cancel_closing')
def cancel_closing(session: Session, tenant_id: int, quotation_id: int, restore_siblings: bool = False) -> Dict[str, Any]:
    """
    Leave 'en_cierre': restore the recorded status and drop the closing record.

    With ``restore_siblings`` the quotations archived when closing started
    are un-archived, except those whose name has since been taken.
    """
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    closing = quotation.closing
    previous_status = closing.previous_status if closing else None
    if closing is None and quotation.status == QuotationStatus.EN_CIERRE:
        logger.warning(f"[CIERRE] Cotización {quotation_id} sin registro de cierre; se restaura a pendiente")
        previous_status = QuotationStatus.PENDIENTE.value
    sibling_ids = list(closing.archived_sibling_ids or []) if closing else []
    next_status(quotation.status, QuotationEvent.CANCEL_CLOSING, previous_status)

    hooks = PostCommitHooks()
    restored = []
    with transaction(session):
        quotation.apply_event(QuotationEvent.CANCEL_CLOSING, previous_status)
        if closing is not None:
            quotation.closing = None

        if restore_siblings and sibling_ids:
            restored = _restore_siblings(session, quotation, sibling_ids)
        promise_id = quotation.promise_id

    logger.info(f"[CIERRE] Cierre cancelado para cotización {quotation_id}; vuelve a {previous_status}")

    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.QUOTATION_CLOSING_CANCELLED,
                         {'quotation_id': quotation_id, 'restored': restored})
    hooks.run()
    return {'id': quotation_id, 'status': previous_status, 'restored_sibling_ids': restored}


def _restore_siblings(session: Session, quotation: Quotation, sibling_ids) -> list:
    siblings = session.query(Quotation).filter(
        Quotation.id.in_(sibling_ids),
        Quotation.promise_id == quotation.promise_id,
        Quotation.archived.is_(True)
    ).order_by(Quotation.id).all()
    taken = {
        name for (name,) in session.query(Quotation.name).filter(
            Quotation.promise_id == quotation.promise_id,
            Quotation.archived.is_(False)
        ).all()
    }
    restored = []
    for sibling in siblings:
        if sibling.name in taken:
            logger.warning(f"[CIERRE] No se restaura la cotización {sibling.id}: el nombre '{sibling.name}' ya está en uso")
            continue
        sibling.archived = False
        taken.add(sibling.name)
        restored.append(sibling.id)
    return restored
