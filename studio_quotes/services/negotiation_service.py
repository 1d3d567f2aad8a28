"""
Negotiation: renegotiate a pending quotation in place or as a separate version.

The negotiated price comes from the negotiation calculator; courtesy lines
are priced at zero and the quotation gets its own temporary commercial
condition (one per quotation, replaced on every negotiation).
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session

from studio_quotes.database import transaction
from studio_quotes.exceptions import ValidationFailedError
from studio_quotes.models import (
    Quotation, QuotationStatus, QuotationEvent, NegotiationCondition, AdvanceType
)
from studio_quotes.services import promise_log_service
from studio_quotes.services.hooks import PostCommitHooks
from studio_quotes.services.negotiation_calc import calculate_negotiated_price
from studio_quotes.services.pricing_config_service import find_config
from studio_quotes.services.pricing_service import PricingCoefficients, line_subtotal
from studio_quotes.services.quotation_service import (
    copy_line, ensure_condition, ensure_name, ensure_unique_name, get_quotation,
    next_order, queue_standard_hooks, quotation_summary
)
from studio_quotes.services.result import returns_result
from studio_quotes.services.snapshot_service import sync_quotation_pricing
from studio_quotes.utils.money import ZERO, round_currency, to_decimal

logger = logging.getLogger(__name__)


def _courtesy_set(quotation: Quotation, courtesy_item_ids: Iterable[Any]) -> set:
    ids = {int(i) for i in courtesy_item_ids or ()}
    known = {item.id for item in quotation.items}
    unknown = ids - known
    if unknown:
        raise ValidationFailedError(
            f'Items de cortesía que no pertenecen a la cotización: {", ".join(str(i) for i in sorted(unknown))}'
        )
    return ids


def _build_temporary_condition(tenant_id: int, data: Optional[Dict[str, Any]]) -> Optional[NegotiationCondition]:
    if data is None:
        return None
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationFailedError('La condición comercial temporal requiere nombre.')
    try:
        advance_type = AdvanceType(data.get('advance_type') or AdvanceType.PERCENTAGE.value)
    except ValueError:
        raise ValidationFailedError(f'Tipo de anticipo inválido: {data.get("advance_type")!r}')
    discount = to_decimal(data.get('discount_percentage'), default=None)
    if discount is not None and not (ZERO <= discount <= 100):
        raise ValidationFailedError('El descuento debe estar entre 0 y 100%.')
    return NegotiationCondition(
        tenant_id=tenant_id,
        name=name,
        description=data.get('description'),
        discount_percentage=discount,
        advance_type=advance_type,
        advance_percentage=to_decimal(data.get('advance_percentage'), default=None),
        advance_amount=to_decimal(data.get('advance_amount'), default=None),
    )


def _negotiated_price(session, quotation, custom_price, extra_discount, courtesy, discount_percentage):
    if custom_price is not None and to_decimal(custom_price) < ZERO:
        raise ValidationFailedError('El precio negociado no puede ser negativo.')
    if extra_discount is not None and to_decimal(extra_discount) < ZERO:
        raise ValidationFailedError('El descuento adicional no puede ser negativo.')

    coefficients = find_config(session, quotation.tenant_id) or PricingCoefficients()
    result = calculate_negotiated_price(
        [item.to_record() for item in quotation.items],
        original_price=quotation.negotiation_original_price or quotation.price,
        config=coefficients,
        custom_price=custom_price,
        extra_discount=extra_discount,
        condition_discount_percentage=discount_percentage,
        courtesy_ids=courtesy,
        event_duration=quotation.event_duration,
    )
    if result is None:
        raise ValidationFailedError('El precio negociado no cubre el costo y gasto de la cotización.')
    return result


def _condition_discount(session, tenant_id, temporary, condition_id):
    if temporary is not None:
        return temporary.discount_percentage
    condition = ensure_condition(session, tenant_id, condition_id)
    return condition.discount_percentage if condition else None


def _price_courtesies(quotation: Quotation, courtesy: set) -> None:
    """Price courtesy lines at zero; the snapshot follows since nothing is authorized yet."""
    for item in quotation.items:
        was_courtesy = item.is_courtesy
        item.is_courtesy = item.id in courtesy
        if item.is_courtesy:
            item.unit_price = ZERO
            item.subtotal = ZERO
        elif was_courtesy and item.public_price:
            # Back from courtesy: charge the public price again
            item.unit_price = item.public_price
            item.subtotal = line_subtotal(item.public_price, item.quantity, item.billing_type, quotation.event_duration)
        else:
            continue
        item.freeze()


@returns_result('apply_negotiation')
def apply_negotiation(session: Session, tenant_id: int, quotation_id: int, custom_price=None, extra_discount=None,
                      courtesy_item_ids: Iterable[int] = (), temporary_condition: Optional[Dict[str, Any]] = None,
                      condition_id: Optional[int] = None, notes: Optional[str] = None,
                      visible_to_client: Optional[bool] = None) -> Dict[str, Any]:
    """Negotiate a 'pendiente' quotation in place; it moves to 'negociacion'."""
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    quotation.ensure_can(QuotationEvent.NEGOTIATE)
    courtesy = _courtesy_set(quotation, courtesy_item_ids)
    temporary = _build_temporary_condition(tenant_id, temporary_condition)
    discount_pct = _condition_discount(session, tenant_id, temporary, condition_id)
    result = _negotiated_price(session, quotation, custom_price, extra_discount, courtesy, discount_pct)

    hooks = PostCommitHooks()
    with transaction(session):
        if quotation.negotiation_original_price is None:
            quotation.negotiation_original_price = quotation.price
        quotation.price = result.final_price
        quotation.negotiation_custom_price = round_currency(custom_price) if custom_price is not None else None
        quotation.negotiation_extra_discount = round_currency(extra_discount) if extra_discount is not None else None
        quotation.negotiation_notes = notes
        quotation.negotiation_created_at = datetime.now(timezone.utc)
        quotation.selected_by_prospect = False
        if visible_to_client is not None:
            quotation.visible_to_client = visible_to_client
        if condition_id is not None:
            quotation.commercial_condition_id = condition_id

        _price_courtesies(quotation, courtesy)

        if quotation.negotiation_condition is not None:
            quotation.negotiation_condition = None
            session.flush()
        if temporary is not None:
            quotation.negotiation_condition = temporary

        quotation.apply_event(QuotationEvent.NEGOTIATE)
        promise_id = quotation.promise_id

    logger.info(f"[NEGOCIACION] Cotización {quotation_id} negociada: precio {result.final_price}, {len(courtesy)} cortesías")

    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.QUOTATION_NEGOTIATED,
                         {'quotation_id': quotation_id, 'price': result.final_price})
    hooks.run()

    summary = quotation_summary(get_quotation(session, tenant_id, quotation_id))
    summary['negotiation'] = result.to_dict()
    return summary


@returns_result('create_negotiated_version')
def create_negotiated_version(session: Session, tenant_id: int, original_id: int, name: str,
                              description: Optional[str] = None, custom_price=None, extra_discount=None,
                              courtesy_item_ids: Iterable[int] = (),
                              temporary_condition: Optional[Dict[str, Any]] = None,
                              condition_id: Optional[int] = None, notes: Optional[str] = None,
                              visible_to_client: bool = False) -> Dict[str, Any]:
    """
    Create an independent quotation in 'negociacion' from a 'pendiente' one.

    The original is left untouched. Courtesy ids refer to the original's lines.
    """
    original = get_quotation(session, tenant_id, original_id)
    original.ensure_can(QuotationEvent.NEGOTIATE)
    name = ensure_name(name)
    ensure_unique_name(session, original.promise_id, name)
    courtesy = _courtesy_set(original, courtesy_item_ids)
    temporary = _build_temporary_condition(tenant_id, temporary_condition)
    discount_pct = _condition_discount(session, tenant_id, temporary, condition_id)
    result = _negotiated_price(session, original, custom_price, extra_discount, courtesy, discount_pct)

    hooks = PostCommitHooks()
    with transaction(session):
        version = Quotation(
            tenant_id=tenant_id,
            promise_id=original.promise_id,
            name=name,
            description=description if description is not None else original.description,
            price=result.final_price,
            status=QuotationStatus.PENDIENTE,
            order=next_order(session, original.promise_id),
            visible_to_client=visible_to_client,
            commercial_condition_id=condition_id if condition_id is not None else original.commercial_condition_id,
            event_duration=original.event_duration,
            negotiation_original_price=original.price,
            negotiation_custom_price=round_currency(custom_price) if custom_price is not None else None,
            negotiation_extra_discount=round_currency(extra_discount) if extra_discount is not None else None,
            negotiation_notes=notes,
            negotiation_created_at=datetime.now(timezone.utc),
        )
        lines = []
        for item in original.items:
            line = copy_line(item)
            if item.id in courtesy:
                line.is_courtesy = True
                line.unit_price = ZERO
                line.subtotal = ZERO
            else:
                line.is_courtesy = False
            lines.append(line)
        version.items = lines
        if temporary is not None:
            version.negotiation_condition = temporary
        version.apply_event(QuotationEvent.NEGOTIATE)
        session.add(version)
        session.flush()
        version_id = version.id
        has_catalog_lines = any(not line.is_custom for line in lines)

    logger.info(f"[NEGOCIACION] Versión negociada {version_id} creada desde cotización {original_id}")

    if has_catalog_lines:
        hooks.add('pricing_sync', sync_quotation_pricing, session, version_id, tenant_id, False)
    queue_standard_hooks(hooks, session, tenant_id, original.promise_id, promise_log_service.QUOTATION_NEGOTIATED,
                         {'quotation_id': version_id, 'original_id': original_id, 'price': result.final_price})
    hooks.run()

    summary = quotation_summary(get_quotation(session, tenant_id, version_id))
    summary['negotiation'] = result.to_dict()
    return summary
