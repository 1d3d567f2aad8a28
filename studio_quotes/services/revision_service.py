"""
Revisions of authorized quotations and migration of external dependencies.

A revision is a new 'pendiente' quotation linked to the authorized original
through ``revision_of_id``. Authorizing it replaces the original: the
original is cancelled and archived, the deal's event moves to the revision
and, on request, scheduler tasks and crew assignments hanging from the
original's lines are re-pointed to the equivalent revision lines.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from studio_quotes.database import transaction
from studio_quotes.exceptions import DependencyUnresolvedError, ValidationFailedError
from studio_quotes.models import (
    Event, Quotation, QuotationItem, QuotationEvent, QuotationStatus, RevisionStatus, SchedulerTask
)
from studio_quotes.services import promise_log_service
from studio_quotes.services.hooks import PostCommitHooks
from studio_quotes.services.quotation_service import (
    EVENT_ACTIVE, build_catalog_lines, ensure_condition, ensure_name, ensure_unique_name,
    get_quotation, next_order, normalize_selections, queue_standard_hooks, quotation_summary,
    refresh_revision_status
)
from studio_quotes.services.result import returns_result
from studio_quotes.services.snapshot_service import freeze_authorized_structure, sync_quotation_pricing
from studio_quotes.utils.money import ZERO, round_currency, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """What a dependency migration moved and what it could not place."""
    migrated_tasks: List[int] = field(default_factory=list)
    migrated_crew: List[int] = field(default_factory=list)
    unresolved_items: List[int] = field(default_factory=list)

    def to_dict(self):
        return {
            'migrated_tasks': list(self.migrated_tasks),
            'migrated_crew': list(self.migrated_crew),
            'unresolved_items': list(self.unresolved_items),
        }


def _catalog_selections(original: Quotation):
    return [(item.item_id, item.quantity) for item in original.items if not item.is_custom and item.item_id is not None]


@returns_result('create_revision')
def create_revision(session: Session, tenant_id: int, original_id: int, name: str,
                    description: Optional[str] = None, price=None, selections=None) -> Dict[str, Any]:
    """
    Create a 'pendiente' revision of an authorized quotation.

    Without ``selections`` the original's catalog quantities are reused.
    Only catalog lines are carried; they are priced after the commit.
    """
    original = get_quotation(session, tenant_id, original_id, for_update=True)
    original.ensure_can(QuotationEvent.CREATE_REVISION)
    name = ensure_name(name)
    ensure_unique_name(session, original.promise_id, name)
    selected = normalize_selections(selections) if selections is not None else _catalog_selections(original)
    catalog_lines = build_catalog_lines(session, tenant_id, selected)

    count = session.query(func.count(Quotation.id)).filter(Quotation.revision_of_id == original.id).scalar()
    revision_number = (count or 0) + 1

    hooks = PostCommitHooks()
    with transaction(session):
        revision = Quotation(
            tenant_id=tenant_id,
            promise_id=original.promise_id,
            name=name,
            description=description if description is not None else original.description,
            price=round_currency(price) if price is not None else ZERO,
            status=QuotationStatus.PENDIENTE,
            order=next_order(session, original.promise_id),
            visible_to_client=False,
            commercial_condition_id=original.commercial_condition_id,
            event_duration=original.event_duration,
            revision_of_id=original.id,
            revision_number=revision_number,
            revision_status=RevisionStatus.PENDING_REVISION,
        )
        revision.items = catalog_lines
        session.add(revision)
        session.flush()
        refresh_revision_status(session, original)
        original.apply_event(QuotationEvent.CREATE_REVISION)
        revision_id = revision.id
        promise_id = original.promise_id

    logger.info(f"[REVISION] Revisión #{revision_number} ({revision_id}) creada para cotización {original_id}")

    if catalog_lines:
        hooks.add('pricing_sync', sync_quotation_pricing, session, revision_id, tenant_id, price is None)
    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.REVISION_CREATED,
                         {'quotation_id': revision_id, 'original_id': original_id, 'revision_number': revision_number})
    hooks.run()

    return quotation_summary(get_quotation(session, tenant_id, revision_id))


def _event_of(session: Session, quotation: Quotation) -> Optional[Event]:
    if quotation.event is not None:
        return quotation.event
    return session.query(Event).filter(Event.quotation_id == quotation.id).first()


@returns_result('authorize_revision')
def authorize_revision(session: Session, tenant_id: int, revision_id: int, amount,
                       condition_id: Optional[int] = None, migrate_dependencies: bool = False) -> Dict[str, Any]:
    """
    Authorize a revision and let it replace its original.

    Runs as one transaction: the revision is frozen and approved, the
    original is cancelled, archived and marked replaced, the deal's event
    is re-pointed and dependencies are migrated when requested.
    """
    revision = get_quotation(session, tenant_id, revision_id, for_update=True)
    if not revision.is_revision:
        raise ValidationFailedError('La cotización indicada no es una revisión.')
    revision.ensure_can(QuotationEvent.AUTHORIZE_REVISION)

    original = get_quotation(session, tenant_id, revision.revision_of_id, for_update=True)
    original.ensure_can(QuotationEvent.REPLACE)
    event = _event_of(session, original)
    if event is None:
        raise ValidationFailedError('La cotización original no tiene un evento asociado.')
    ensure_condition(session, tenant_id, condition_id)

    amount = to_decimal(amount, default=None)
    if amount is None or amount < ZERO:
        raise ValidationFailedError('El monto autorizado es obligatorio y no puede ser negativo.')
    amount = round_currency(amount)

    hooks = PostCommitHooks()
    report = None
    with transaction(session) as budget:
        if condition_id is not None:
            revision.commercial_condition_id = condition_id
            session.flush()
            session.expire(revision, ['commercial_condition'])

        current_price = round_currency(revision.price or ZERO)
        revision.discount = current_price - amount if amount < current_price else None
        revision.price = amount
        freeze_authorized_structure(session, revision, budget)
        revision.apply_event(QuotationEvent.AUTHORIZE_REVISION)
        revision.revision_status = RevisionStatus.ACTIVE
        revision.event_id = event.id

        original.apply_event(QuotationEvent.REPLACE)
        original.archived = True
        original.revision_status = RevisionStatus.REPLACED
        original.event_id = None

        event.quotation_id = revision.id
        event.status = EVENT_ACTIVE

        if migrate_dependencies:
            report = migrate_item_dependencies(session, list(original.items), list(revision.items), budget)
        promise_id = revision.promise_id
        original_id = original.id

    logger.info(
        f"[REVISION] Revisión {revision_id} autorizada por {amount}; "
        f"cotización {original_id} reemplazada"
    )

    queue_standard_hooks(hooks, session, tenant_id, promise_id, promise_log_service.REVISION_AUTHORIZED,
                         {'quotation_id': revision_id, 'original_id': original_id, 'amount': amount})
    hooks.run()

    summary = quotation_summary(get_quotation(session, tenant_id, revision_id))
    summary['replaced_quotation_id'] = original_id
    summary['migration'] = report.to_dict() if report is not None else None
    return summary


def migrate_item_dependencies(session: Session, original_items: List[QuotationItem],
                              revision_items: List[QuotationItem], budget=None) -> MigrationReport:
    """
    Move scheduler tasks and crew assignments onto the revision's lines.

    Lines are matched by catalog item id. A line with no counterpart in the
    revision is reported and skipped; its references stay on the original.
    Running it again over already migrated references changes nothing.
    Caller commits.
    """
    report = MigrationReport()
    targets = {}
    for item in revision_items:
        if item.item_id is not None:
            targets.setdefault(item.item_id, item)

    original_ids = [item.id for item in original_items]
    tasks_by_item = {}
    if original_ids:
        for task in session.query(SchedulerTask).filter(SchedulerTask.quotation_item_id.in_(original_ids)).all():
            tasks_by_item.setdefault(task.quotation_item_id, []).append(task)

    for item in original_items:
        if budget is not None:
            budget.check()
        tasks = list(tasks_by_item.get(item.id, ()))
        if item.scheduler_task_id is not None and all(t.id != item.scheduler_task_id for t in tasks):
            linked = session.get(SchedulerTask, item.scheduler_task_id)
            if linked is not None:
                tasks.append(linked)
        if not tasks and item.scheduler_task_id is None and item.crew_assignment_id is None:
            continue

        target = targets.get(item.item_id) if item.item_id is not None else None
        if target is None:
            error = DependencyUnresolvedError(
                f'El item {item.id} ({item.display_name}) no tiene equivalente en la revisión'
            )
            logger.warning(f"[REVISION] {error.message}; dependencias no migradas")
            report.unresolved_items.append(item.id)
            continue

        for task in tasks:
            if task.quotation_item_id != target.id:
                task.quotation_item_id = target.id
                report.migrated_tasks.append(task.id)
            target.scheduler_task_id = task.id
        if item.scheduler_task_id is not None and not tasks:
            target.scheduler_task_id = item.scheduler_task_id

        if item.crew_assignment_id is not None and target.crew_assignment_id != item.crew_assignment_id:
            target.crew_assignment_id = item.crew_assignment_id
            report.migrated_crew.append(item.crew_assignment_id)

    session.flush()
    logger.info(
        f"[REVISION] Migración: {len(report.migrated_tasks)} tareas, {len(report.migrated_crew)} asignaciones, "
        f"{len(report.unresolved_items)} items sin equivalente"
    )
    return report
