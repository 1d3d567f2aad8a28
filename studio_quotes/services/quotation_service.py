"""
Quotation lifecycle: create, update, authorize, cancel and day-to-day management.

Every public operation returns a ``Result``. Preconditions are validated
before any write and multi-step writes run inside one ``transaction``.
Side effects that must never fail the operation are queued as post-commit
hooks.
"""
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from studio_quotes.database import transaction
from studio_quotes.exceptions import NotFoundError, ValidationFailedError, InvalidStateError
from studio_quotes.models import (
    Quotation, QuotationItem, QuotationStatus, QuotationEvent, RevisionStatus,
    CommercialCondition, Event, BillingType, ProfitType
)
from studio_quotes.services import catalog_service, pipeline_service, promise_log_service
from studio_quotes.services.cache_service import (
    QUOTATIONS_MODULE, get_cache, invalidate_quotations, structure_cache_key
)
from studio_quotes.services.hooks import PostCommitHooks
from studio_quotes.services.pricing_service import line_subtotal
from studio_quotes.services.result import returns_result
from studio_quotes.services.snapshot_service import freeze_authorized_structure, sync_quotation_pricing
from studio_quotes.services.structure_service import ORDER_INCREMENTAL, build_hierarchy, items_from_quotation
from studio_quotes.services.totals_service import totals_for_quotation
from studio_quotes.utils.line_fields import LineFieldSet
from studio_quotes.utils.money import ZERO, round_currency, to_decimal

logger = logging.getLogger(__name__)

EVENT_ACTIVE = 'ACTIVE'
EVENT_CANCELLED = 'CANCELLED'


# ---------------------------------------------------------------------------
# Shared helpers (also used by the closing, negotiation and revision services)
# ---------------------------------------------------------------------------

def get_quotation(session: Session, tenant_id: int, quotation_id: int, for_update: bool = False) -> Quotation:
    """Load a quotation of the tenant or raise NotFoundError."""
    query = session.query(Quotation).filter(
        Quotation.id == quotation_id,
        Quotation.tenant_id == tenant_id
    )
    if for_update:
        query = query.with_for_update()
    quotation = query.first()
    if not quotation:
        raise NotFoundError(f'Cotización {quotation_id} no encontrada.')
    return quotation


def ensure_name(name: Optional[str]) -> str:
    cleaned = (name or '').strip()
    if not cleaned:
        raise ValidationFailedError('El nombre de la cotización es obligatorio.')
    return cleaned


def ensure_unique_name(session: Session, promise_id: int, name: str, exclude_id: Optional[int] = None) -> None:
    """Names are unique among the non-archived quotations of a deal."""
    query = session.query(Quotation.id).filter(
        Quotation.promise_id == promise_id,
        Quotation.name == name,
        Quotation.archived.is_(False)
    )
    if exclude_id is not None:
        query = query.filter(Quotation.id != exclude_id)
    if query.first():
        raise ValidationFailedError(f'Ya existe una cotización con el nombre "{name}" en esta promesa.')


def ensure_condition(session: Session, tenant_id: int, condition_id: Optional[int]) -> Optional[CommercialCondition]:
    if condition_id is None:
        return None
    condition = session.query(CommercialCondition).filter(
        CommercialCondition.id == condition_id,
        CommercialCondition.tenant_id == tenant_id
    ).first()
    if not condition:
        raise NotFoundError(f'Condición comercial {condition_id} no encontrada.')
    return condition


def next_order(session: Session, promise_id: int) -> int:
    current = session.query(func.max(Quotation.order)).filter(Quotation.promise_id == promise_id).scalar()
    return 0 if current is None else current + 1


def normalize_selections(selections) -> List[Tuple[int, int]]:
    """
    Catalog selections as ``[(item_id, quantity)]`` in declared order.

    Accepts ``{item_id: quantity}``, ``[{'item_id', 'quantity'}]`` or pairs.
    Zero quantities are dropped.
    """
    if not selections:
        return []
    if isinstance(selections, Mapping):
        pairs = list(selections.items())
    else:
        pairs = []
        for entry in selections:
            if isinstance(entry, Mapping):
                pairs.append((entry.get('item_id'), entry.get('quantity')))
            else:
                pairs.append(tuple(entry))

    normalized = []
    for item_id, quantity in pairs:
        try:
            item_id = int(item_id)
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise ValidationFailedError(f'Selección inválida: {item_id!r} x {quantity!r}')
        if quantity < 0:
            raise ValidationFailedError(f'Cantidad negativa para el item {item_id}')
        if quantity > 0:
            normalized.append((item_id, quantity))
    return normalized


def _enum_or_default(enum_cls, value, default):
    if value is None or value == '':
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        try:
            return enum_cls[str(value).upper()]
        except KeyError:
            raise ValidationFailedError(f'Valor inválido: {value!r}')


def build_catalog_lines(session: Session, tenant_id: int, selections: List[Tuple[int, int]],
                        start_order: int = 0, courtesy_item_ids: Iterable[int] = ()) -> List[QuotationItem]:
    """
    Unpriced catalog lines for ``selections``.

    Names, category path, cost and expense come from the catalog; prices
    are filled in by the pricing sync.
    """
    catalog = catalog_service.get_items(session, tenant_id, [item_id for item_id, _ in selections])
    missing = [item_id for item_id, _ in selections if item_id not in catalog]
    if missing:
        raise NotFoundError(f'Items de catálogo no encontrados: {", ".join(str(i) for i in missing)}')

    courtesy = set(courtesy_item_ids)
    lines = []
    for offset, (item_id, quantity) in enumerate(selections):
        data = catalog[item_id]
        path = catalog_service.get_category_path(session, tenant_id, data.category_id)
        line = QuotationItem(
            item_id=item_id,
            category_id=data.category_id,
            is_custom=False,
            quantity=quantity,
            billing_type=data.billing_type,
            order=start_order + offset,
            is_courtesy=item_id in courtesy,
        )
        line.write_operational(LineFieldSet(
            name=data.name,
            description=data.description,
            category_name=path.category_name,
            section_name=path.section_name,
            section_order=path.section_order,
            category_order=path.category_order,
            cost=round_currency(data.cost),
            expense=round_currency(data.expense),
            profit=ZERO,
            public_price=ZERO,
            unit_price=ZERO,
            subtotal=ZERO,
            profit_type=data.profit_type,
        ))
        lines.append(line)
    return lines


def build_custom_lines(custom_items: Iterable[Dict[str, Any]], start_order: int = 0,
                       event_duration=None) -> List[QuotationItem]:
    """Lines authored inline; they carry their own pricing."""
    lines = []
    for offset, data in enumerate(custom_items or ()):
        name = (data.get('name') or '').strip()
        if not name:
            raise ValidationFailedError('Los items personalizados requieren nombre.')
        quantity = int(data.get('quantity') or 1)
        if quantity <= 0:
            raise ValidationFailedError(f'Cantidad inválida para "{name}"')
        billing_type = _enum_or_default(BillingType, data.get('billing_type'), BillingType.SERVICE)
        unit_price = round_currency(data.get('unit_price'))
        cost = round_currency(data.get('cost'))
        expense = round_currency(data.get('expense'))
        line = QuotationItem(
            item_id=None,
            is_custom=True,
            quantity=quantity,
            billing_type=billing_type,
            order=start_order + offset,
            is_courtesy=bool(data.get('is_courtesy')),
        )
        line.write_operational(LineFieldSet(
            name=name,
            description=data.get('description'),
            category_name=data.get('category_name'),
            section_name=data.get('section_name'),
            section_order=data.get('section_order'),
            category_order=data.get('category_order'),
            cost=cost,
            expense=expense,
            profit=round_currency(unit_price - cost - expense),
            public_price=unit_price,
            unit_price=ZERO if line.is_courtesy else unit_price,
            subtotal=ZERO if line.is_courtesy else line_subtotal(unit_price, quantity, billing_type, event_duration),
            profit_type=_enum_or_default(ProfitType, data.get('profit_type'), ProfitType.SERVICE),
        ))
        lines.append(line)
    return lines


def copy_line(source: QuotationItem, order: Optional[int] = None) -> QuotationItem:
    """Operational copy of a line, without snapshots or external references."""
    line = QuotationItem(
        item_id=source.item_id,
        category_id=source.category_id,
        is_custom=source.is_custom,
        quantity=source.quantity,
        billing_type=source.billing_type,
        order=source.order if order is None else order,
        is_courtesy=source.is_courtesy,
    )
    line.write_operational(source.operational)
    return line


def archive_siblings(session: Session, quotation: Quotation, statuses=None) -> List[int]:
    """Archive other non-archived, non-cancelled quotations of the same deal."""
    query = session.query(Quotation).filter(
        Quotation.promise_id == quotation.promise_id,
        Quotation.id != quotation.id,
        Quotation.archived.is_(False),
        Quotation.status != QuotationStatus.CANCELADA
    )
    if statuses is not None:
        query = query.filter(Quotation.status.in_(list(statuses)))
    archived = []
    for sibling in query.all():
        sibling.archived = True
        archived.append(sibling.id)
    return archived


def activate_event(session: Session, quotation: Quotation, promise) -> Event:
    """Create the deal's event, or re-activate the one left by a cancellation."""
    event = session.query(Event).filter(Event.promise_id == promise.id).first()
    if event is None:
        event = Event(tenant_id=quotation.tenant_id, promise_id=promise.id, event_date=promise.event_date)
        session.add(event)
    event.status = EVENT_ACTIVE
    event.event_date = promise.event_date
    event.quotation_id = quotation.id
    session.flush()
    return event


def refresh_revision_status(session: Session, original: Quotation) -> None:
    """
    Original is pending_revision while it has an unauthorized revision.

    Without one it falls back to 'active' when it is itself the deal's
    authorized revision, else to no revision status.
    """
    if original.revision_status == RevisionStatus.REPLACED:
        return
    pending = session.query(Quotation.id).filter(
        Quotation.revision_of_id == original.id,
        Quotation.revision_status == RevisionStatus.PENDING_REVISION
    ).first()
    if pending:
        original.revision_status = RevisionStatus.PENDING_REVISION
    elif original.revision_of_id is not None and original.is_authorized:
        original.revision_status = RevisionStatus.ACTIVE
    else:
        original.revision_status = None


def quotation_summary(quotation: Quotation) -> Dict[str, Any]:
    return {
        'id': quotation.id,
        'promise_id': quotation.promise_id,
        'name': quotation.name,
        'description': quotation.description,
        'price': quotation.price,
        'discount': quotation.discount,
        'status': quotation.status.value,
        'order': quotation.order,
        'archived': quotation.archived,
        'visible_to_client': quotation.visible_to_client,
        'event_id': quotation.event_id,
        'event_duration': quotation.event_duration,
        'commercial_condition_id': quotation.commercial_condition_id,
        'revision_of_id': quotation.revision_of_id,
        'revision_number': quotation.revision_number,
        'revision_status': quotation.revision_status.value if quotation.revision_status else None,
        'negotiation_original_price': quotation.negotiation_original_price,
        'item_count': len(quotation.items),
    }


def queue_standard_hooks(hooks: PostCommitHooks, session: Session, tenant_id: int, promise_id: int,
                         action: str, details: Optional[dict] = None) -> PostCommitHooks:
    hooks.add('promise_log', promise_log_service.log_promise_action, session, tenant_id, promise_id, action, details)
    hooks.add('cache_invalidation', invalidate_quotations, tenant_id)
    return hooks


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------

@returns_result('create_quotation')
def create_quotation(session: Session, tenant_id: int, promise_id: int, name: str,
                     description: Optional[str] = None, price=None, selections=None,
                     custom_items: Iterable[Dict[str, Any]] = (), condition_id: Optional[int] = None,
                     event_duration=None, visible_to_client: bool = False) -> Dict[str, Any]:
    """
    Create a 'pendiente' quotation with catalog lines followed by custom lines.

    Catalog lines are priced by the pricing sync right after the commit.
    Without ``price`` the quotation total becomes the sum of line subtotals.
    """
    name = ensure_name(name)
    promise = pipeline_service.get_promise(session, tenant_id, promise_id)
    ensure_condition(session, tenant_id, condition_id)
    ensure_unique_name(session, promise.id, name)
    selected = normalize_selections(selections)
    custom_items = list(custom_items or ())
    event_duration = to_decimal(event_duration, default=None)

    catalog_lines = build_catalog_lines(session, tenant_id, selected)
    custom_lines = build_custom_lines(custom_items, len(catalog_lines), event_duration)

    hooks = PostCommitHooks()
    with transaction(session):
        quotation = Quotation(
            tenant_id=tenant_id,
            promise_id=promise.id,
            name=name,
            description=description,
            price=round_currency(price) if price is not None
            else round_currency(sum((line.subtotal for line in custom_lines), ZERO)),
            status=QuotationStatus.PENDIENTE,
            order=next_order(session, promise.id),
            visible_to_client=visible_to_client,
            commercial_condition_id=condition_id,
            event_duration=event_duration,
        )
        quotation.items = catalog_lines + custom_lines
        session.add(quotation)
        session.flush()
        quotation_id = quotation.id

    logger.info(f"[COTIZACIONES] Cotización {quotation_id} creada en promesa {promise_id} ({len(selected)} items de catálogo)")

    if catalog_lines:
        hooks.add('pricing_sync', sync_quotation_pricing, session, quotation_id, tenant_id, price is None)
    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.QUOTATION_CREATED,
                         {'quotation_id': quotation_id, 'name': name})
    hooks.run()

    return quotation_summary(get_quotation(session, tenant_id, quotation_id))


@returns_result('update_quotation')
def update_quotation(session: Session, tenant_id: int, quotation_id: int, name: str,
                     description: Optional[str] = None, price=None, selections=None,
                     custom_items: Iterable[Dict[str, Any]] = (), condition_id: Optional[int] = None,
                     event_duration=None) -> Dict[str, Any]:
    """
    Replace a quotation's fields and its whole item set, then re-sync pricing.

    Rejected for authorized, cancelled and archived-status quotations.
    Never archives siblings.
    """
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    quotation.ensure_can(QuotationEvent.UPDATE)
    name = ensure_name(name)
    ensure_unique_name(session, quotation.promise_id, name, exclude_id=quotation.id)
    ensure_condition(session, tenant_id, condition_id)
    selected = normalize_selections(selections)
    custom_items = list(custom_items or ())

    duration = to_decimal(event_duration, default=None) if event_duration is not None else quotation.event_duration
    catalog_lines = build_catalog_lines(session, tenant_id, selected)
    custom_lines = build_custom_lines(custom_items, len(catalog_lines), duration)

    hooks = PostCommitHooks()
    with transaction(session):
        quotation.items.clear()
        session.flush()
        quotation.items.extend(catalog_lines + custom_lines)
        quotation.name = name
        quotation.description = description
        quotation.commercial_condition_id = condition_id
        quotation.event_duration = duration
        quotation.price = (
            round_currency(price) if price is not None
            else round_currency(sum((line.subtotal for line in custom_lines), ZERO))
        )
        quotation.apply_event(QuotationEvent.UPDATE)

    logger.info(f"[COTIZACIONES] Cotización {quotation_id} actualizada ({len(catalog_lines) + len(custom_lines)} items)")

    if catalog_lines:
        hooks.add('pricing_sync', sync_quotation_pricing, session, quotation_id, tenant_id, price is None)
    queue_standard_hooks(hooks, session, tenant_id, quotation.promise_id, promise_log_service.QUOTATION_UPDATED,
                         {'quotation_id': quotation_id})
    hooks.run()

    return quotation_summary(get_quotation(session, tenant_id, quotation_id))


# ---------------------------------------------------------------------------
# Authorization / cancellation
# ---------------------------------------------------------------------------

@returns_result('authorize_quotation')
def authorize_quotation(session: Session, tenant_id: int, quotation_id: int, promise_id: int,
                        amount, condition_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Authorize a quotation: freeze its lines and move it to 'contract_pending'.

    In the same transaction: creates or re-activates the deal's event,
    records the discount when ``amount`` is below the price, archives every
    other non-cancelled quotation of the deal, moves the deal to the
    'approved' stage and removes its 'cancelada' tag.
    """
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    if quotation.promise_id != promise_id:
        raise ValidationFailedError('La cotización no pertenece a la promesa indicada.')
    quotation.ensure_can(QuotationEvent.AUTHORIZE)
    if quotation.revision_status == RevisionStatus.REPLACED:
        raise InvalidStateError(
            'La cotización fue reemplazada por una revisión y no puede autorizarse de nuevo.',
            payload={'status': quotation.status.value, 'revision_status': quotation.revision_status.value}
        )

    promise = pipeline_service.get_promise(session, tenant_id, promise_id)
    if not promise.event_date:
        raise ValidationFailedError('La promesa debe tener una fecha de evento confirmada para autorizar.')
    ensure_condition(session, tenant_id, condition_id)

    amount = to_decimal(amount, default=None)
    if amount is None or amount < ZERO:
        raise ValidationFailedError('El monto autorizado es obligatorio y no puede ser negativo.')
    amount = round_currency(amount)

    hooks = PostCommitHooks()
    with transaction(session) as budget:
        event = activate_event(session, quotation, promise)
        if condition_id is not None:
            quotation.commercial_condition_id = condition_id
            session.flush()
            session.expire(quotation, ['commercial_condition'])

        current_price = round_currency(quotation.price or ZERO)
        quotation.discount = current_price - amount if amount < current_price else None
        quotation.price = amount

        freeze_authorized_structure(session, quotation, budget)
        quotation.apply_event(QuotationEvent.AUTHORIZE)
        quotation.event_id = event.id
        if quotation.closing is not None:
            quotation.closing = None

        archived = archive_siblings(session, quotation)
        pipeline_service.advance_stage(session, promise, pipeline_service.STAGE_APPROVED)
        pipeline_service.remove_tag(session, promise, pipeline_service.TAG_CANCELLED)

    logger.info(
        f"[COTIZACIONES] Cotización {quotation_id} autorizada por {amount}; "
        f"{len(archived)} cotizaciones archivadas"
    )

    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.QUOTATION_AUTHORIZED,
                         {'quotation_id': quotation_id, 'amount': amount, 'archived': archived})
    hooks.run()

    summary = quotation_summary(get_quotation(session, tenant_id, quotation_id))
    summary['archived_sibling_ids'] = archived
    return summary


@returns_result('cancel_quotation')
def cancel_quotation(session: Session, tenant_id: int, quotation_id: int) -> Dict[str, Any]:
    """Cancel an authorized quotation; its items are kept."""
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    quotation.ensure_can(QuotationEvent.CANCEL)

    hooks = PostCommitHooks()
    with transaction(session):
        if quotation.event is not None and quotation.event.quotation_id == quotation.id:
            quotation.event.status = EVENT_CANCELLED
            quotation.event.quotation_id = None
        quotation.apply_event(QuotationEvent.CANCEL)
        quotation.discount = None
        quotation.event_id = None
        quotation.selected_by_prospect = False
        quotation.selected_at = None
        promise_id = quotation.promise_id

    logger.info(f"[COTIZACIONES] Cotización {quotation_id} cancelada")

    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.QUOTATION_CANCELLED,
                         {'quotation_id': quotation_id})
    hooks.run()
    return {'id': quotation_id, 'status': QuotationStatus.CANCELADA.value}


# ---------------------------------------------------------------------------
# Management
# ---------------------------------------------------------------------------

@returns_result('delete_quotation')
def delete_quotation(session: Session, tenant_id: int, quotation_id: int) -> Dict[str, Any]:
    """Hard-delete a draft quotation; items cascade."""
    quotation = get_quotation(session, tenant_id, quotation_id, for_update=True)
    quotation.ensure_can(QuotationEvent.DELETE)
    promise_id = quotation.promise_id
    original_id = quotation.revision_of_id

    with transaction(session):
        session.delete(quotation)
        session.flush()
        if original_id is not None:
            original = session.get(Quotation, original_id)
            if original is not None:
                refresh_revision_status(session, original)

    logger.info(f"[COTIZACIONES] Cotización {quotation_id} eliminada")
    PostCommitHooks().add('cache_invalidation', invalidate_quotations, tenant_id).run()
    return {'id': quotation_id, 'promise_id': promise_id, 'deleted': True}


@returns_result('archive_quotation')
def archive_quotation(session: Session, tenant_id: int, quotation_id: int) -> Dict[str, Any]:
    quotation = get_quotation(session, tenant_id, quotation_id)
    if quotation.archived:
        raise ValidationFailedError('La cotización ya está archivada.')
    with transaction(session):
        quotation.archived = True
    PostCommitHooks().add('cache_invalidation', invalidate_quotations, tenant_id).run()
    return {'id': quotation_id, 'archived': True}


@returns_result('unarchive_quotation')
def unarchive_quotation(session: Session, tenant_id: int, quotation_id: int) -> Dict[str, Any]:
    quotation = get_quotation(session, tenant_id, quotation_id)
    if not quotation.archived:
        raise ValidationFailedError('La cotización no está archivada.')
    ensure_unique_name(session, quotation.promise_id, quotation.name, exclude_id=quotation.id)
    with transaction(session):
        quotation.archived = False
    PostCommitHooks().add('cache_invalidation', invalidate_quotations, tenant_id).run()
    return {'id': quotation_id, 'archived': False}


def _copy_name(session: Session, promise_id: int, name: str) -> str:
    candidate = f'{name} (Copia)'
    counter = 2
    while True:
        try:
            ensure_unique_name(session, promise_id, candidate)
            return candidate
        except ValidationFailedError:
            candidate = f'{name} (Copia {counter})'
            counter += 1


@returns_result('duplicate_quotation')
def duplicate_quotation(session: Session, tenant_id: int, quotation_id: int) -> Dict[str, Any]:
    """Copy a quotation and its lines into a new 'pendiente' quotation placed last."""
    source = get_quotation(session, tenant_id, quotation_id)
    name = _copy_name(session, source.promise_id, source.name)

    hooks = PostCommitHooks()
    with transaction(session):
        copy = Quotation(
            tenant_id=tenant_id,
            promise_id=source.promise_id,
            name=name,
            description=source.description,
            price=source.price,
            status=QuotationStatus.PENDIENTE,
            order=next_order(session, source.promise_id),
            visible_to_client=False,
            commercial_condition_id=source.commercial_condition_id,
            event_duration=source.event_duration,
        )
        copy.items = [copy_line(item) for item in source.items]
        session.add(copy)
        session.flush()
        copy_id = copy.id
        has_catalog_lines = any(not item.is_custom for item in copy.items)

    logger.info(f"[COTIZACIONES] Cotización {quotation_id} duplicada como {copy_id}")

    if has_catalog_lines:
        hooks.add('pricing_sync', sync_quotation_pricing, session, copy_id, tenant_id, False)
    hooks.add('cache_invalidation', invalidate_quotations, tenant_id)
    hooks.run()
    return quotation_summary(get_quotation(session, tenant_id, copy_id))


@returns_result('reorder_quotations')
def reorder_quotations(session: Session, tenant_id: int, quotation_ids: List[int]) -> Dict[str, Any]:
    """Set ``order`` to each id's position in ``quotation_ids``."""
    ids = [int(i) for i in quotation_ids or ()]
    if not ids:
        raise ValidationFailedError('Debe indicar al menos una cotización.')
    quotations = {
        q.id: q for q in session.query(Quotation).filter(
            Quotation.id.in_(ids),
            Quotation.tenant_id == tenant_id
        ).all()
    }
    missing = [i for i in ids if i not in quotations]
    if missing:
        raise NotFoundError(f'Cotizaciones no encontradas: {", ".join(str(i) for i in missing)}')

    with transaction(session):
        for position, quotation_id in enumerate(ids):
            quotations[quotation_id].order = position

    PostCommitHooks().add('cache_invalidation', invalidate_quotations, tenant_id).run()
    return {'ids': ids}


@returns_result('rename_quotation')
def rename_quotation(session: Session, tenant_id: int, quotation_id: int, name: str) -> Dict[str, Any]:
    quotation = get_quotation(session, tenant_id, quotation_id)
    quotation.ensure_can(QuotationEvent.UPDATE)
    name = ensure_name(name)
    ensure_unique_name(session, quotation.promise_id, name, exclude_id=quotation.id)
    with transaction(session):
        quotation.name = name
    PostCommitHooks().add('cache_invalidation', invalidate_quotations, tenant_id, [quotation_id]).run()
    return {'id': quotation_id, 'name': name}


@returns_result('list_quotations')
def list_quotations(session: Session, tenant_id: int, promise_id: int, include_archived: bool = False) -> List[Dict[str, Any]]:
    pipeline_service.get_promise(session, tenant_id, promise_id)
    query = session.query(Quotation).filter(
        Quotation.tenant_id == tenant_id,
        Quotation.promise_id == promise_id
    )
    if not include_archived:
        query = query.filter(Quotation.archived.is_(False))
    return [quotation_summary(q) for q in query.order_by(Quotation.order, Quotation.id).all()]


@returns_result('get_quotation_detail')
def get_quotation_detail(session: Session, tenant_id: int, quotation_id: int, order_by: str = ORDER_INCREMENTAL,
                         include_prices: bool = True, include_descriptions: bool = True) -> Dict[str, Any]:
    """Summary, built structure and payable totals of a quotation."""
    quotation = get_quotation(session, tenant_id, quotation_id)

    def load_structure():
        return build_hierarchy(items_from_quotation(quotation), order_by=order_by)

    structure = get_cache().memoize(
        tenant_id, QUOTATIONS_MODULE, structure_cache_key(quotation_id, order_by), load_structure
    )
    if not include_prices or not include_descriptions:
        structure = build_hierarchy(
            items_from_quotation(quotation),
            include_prices=include_prices,
            include_descriptions=include_descriptions,
            order_by=order_by,
        )

    detail = quotation_summary(quotation)
    detail['structure'] = structure
    detail['totals'] = totals_for_quotation(quotation).to_dict()
    return detail
