"""
Integration tests for revisions and dependency migration.
"""

import pytest
from decimal import Decimal
from studio_quotes.models import Event, QuotationStatus, RevisionStatus, SchedulerTask
from studio_quotes.services import quotation_service, revision_service


@pytest.fixture
def scheduled_original(session, tenant, authorized_quotation):
    """Authorized quotation whose only line has a scheduler task and a crew assignment."""
    quotation = quotation_service.get_quotation(session, tenant.id, authorized_quotation)
    line = quotation.items[0]
    task = SchedulerTask(tenant_id=tenant.id, name='Sesión en estudio', quotation_item_id=line.id)
    session.add(task)
    session.flush()
    line.scheduler_task_id = task.id
    line.crew_assignment_id = 55
    session.commit()
    return {'quotation_id': authorized_quotation, 'line_id': line.id, 'task_id': task.id}


class TestCreateRevision:
    """Tests for revising an authorized quotation."""

    def test_create_revision(self, session, tenant, authorized_quotation):
        result = revision_service.create_revision(session, tenant.id, authorized_quotation, 'Paquete v2')

        assert result.success, result.error
        assert result.data['revision_of_id'] == authorized_quotation
        assert result.data['revision_number'] == 1
        assert result.data['revision_status'] == 'pending_revision'
        assert result.data['status'] == 'pendiente'
        revision = quotation_service.get_quotation(session, tenant.id, result.data['id'])
        assert [item.name for item in revision.items] == ['Sesión de fotos']
        assert revision.price == Decimal('136.50')

        original = quotation_service.get_quotation(session, tenant.id, authorized_quotation)
        assert original.status == QuotationStatus.CONTRACT_PENDING
        assert original.revision_status == RevisionStatus.PENDING_REVISION

    def test_revision_numbers_increase(self, session, tenant, authorized_quotation):
        revision_service.create_revision(session, tenant.id, authorized_quotation, 'v2')

        result = revision_service.create_revision(session, tenant.id, authorized_quotation, 'v3')

        assert result.data['revision_number'] == 2

    def test_with_new_selections(self, session, tenant, catalog, authorized_quotation):
        result = revision_service.create_revision(
            session, tenant.id, authorized_quotation, 'Solo álbum', selections={catalog['Álbum impreso']: 1}
        )

        revision = quotation_service.get_quotation(session, tenant.id, result.data['id'])
        assert [item.name for item in revision.items] == ['Álbum impreso']
        assert revision.price == Decimal('126.00')

    def test_pending_quotation_cannot_be_revised(self, session, tenant, make_quotation):
        result = revision_service.create_revision(session, tenant.id, make_quotation(), 'v2')

        assert result.code == 'invalid_state'

    def test_deleting_revision_clears_pending_flag(self, session, tenant, authorized_quotation):
        revision_id = revision_service.create_revision(session, tenant.id, authorized_quotation, 'v2').data['id']

        assert quotation_service.delete_quotation(session, tenant.id, revision_id).success

        original = quotation_service.get_quotation(session, tenant.id, authorized_quotation)
        assert original.revision_status is None


class TestAuthorizeRevision:
    """Tests for a revision replacing its original."""

    def test_replaces_original(self, session, tenant, authorized_quotation):
        event_id = quotation_service.get_quotation(session, tenant.id, authorized_quotation).event_id
        revision_id = revision_service.create_revision(session, tenant.id, authorized_quotation, 'v2').data['id']

        result = revision_service.authorize_revision(session, tenant.id, revision_id, 130)

        assert result.success, result.error
        assert result.data['status'] == 'aprobada'
        assert result.data['revision_status'] == 'active'
        assert result.data['replaced_quotation_id'] == authorized_quotation
        assert result.data['migration'] is None

        revision = quotation_service.get_quotation(session, tenant.id, revision_id)
        assert revision.event_id == event_id
        assert revision.discount == Decimal('6.50')
        assert revision.items[0].unit_price_snapshot == Decimal('136.50')

        original = quotation_service.get_quotation(session, tenant.id, authorized_quotation)
        assert original.status == QuotationStatus.CANCELADA
        assert original.archived is True
        assert original.revision_status == RevisionStatus.REPLACED
        assert original.event_id is None

        event = session.get(Event, event_id)
        assert event.quotation_id == revision_id
        assert event.status == 'ACTIVE'

    def test_regular_quotation_is_rejected(self, session, tenant, make_quotation):
        result = revision_service.authorize_revision(session, tenant.id, make_quotation(), 100)

        assert result.code == 'validation_failed'

    def test_authorized_revision_cannot_be_authorized_again(self, session, tenant, authorized_quotation):
        revision_id = revision_service.create_revision(session, tenant.id, authorized_quotation, 'v2').data['id']
        revision_service.authorize_revision(session, tenant.id, revision_id, 136.5)

        result = revision_service.authorize_revision(session, tenant.id, revision_id, 136.5)

        assert result.code == 'invalid_state'


class TestDependencyMigration:
    """Tests for moving scheduler tasks and crew to the revision's lines."""

    def test_matching_line_takes_the_dependencies(self, session, tenant, scheduled_original):
        revision_id = revision_service.create_revision(
            session, tenant.id, scheduled_original['quotation_id'], 'v2'
        ).data['id']

        result = revision_service.authorize_revision(
            session, tenant.id, revision_id, 136.5, migrate_dependencies=True
        )

        assert result.success, result.error
        assert result.data['migration'] == {
            'migrated_tasks': [scheduled_original['task_id']],
            'migrated_crew': [55],
            'unresolved_items': [],
        }
        revision_line = quotation_service.get_quotation(session, tenant.id, revision_id).items[0]
        assert session.get(SchedulerTask, scheduled_original['task_id']).quotation_item_id == revision_line.id
        assert revision_line.scheduler_task_id == scheduled_original['task_id']
        assert revision_line.crew_assignment_id == 55

    def test_line_without_counterpart_is_reported(self, session, tenant, catalog, scheduled_original):
        revision_id = revision_service.create_revision(
            session, tenant.id, scheduled_original['quotation_id'], 'Solo álbum',
            selections={catalog['Álbum impreso']: 1}
        ).data['id']

        result = revision_service.authorize_revision(
            session, tenant.id, revision_id, 126, migrate_dependencies=True
        )

        assert result.success, result.error
        assert result.data['migration']['unresolved_items'] == [scheduled_original['line_id']]
        assert result.data['migration']['migrated_tasks'] == []
        task = session.get(SchedulerTask, scheduled_original['task_id'])
        assert task.quotation_item_id == scheduled_original['line_id']

    def test_migration_is_idempotent(self, session, tenant, scheduled_original):
        revision_id = revision_service.create_revision(
            session, tenant.id, scheduled_original['quotation_id'], 'v2'
        ).data['id']
        revision_service.authorize_revision(session, tenant.id, revision_id, 136.5, migrate_dependencies=True)
        original = quotation_service.get_quotation(session, tenant.id, scheduled_original['quotation_id'])
        revision = quotation_service.get_quotation(session, tenant.id, revision_id)

        report = revision_service.migrate_item_dependencies(session, list(original.items), list(revision.items))

        assert report.to_dict() == {'migrated_tasks': [], 'migrated_crew': [], 'unresolved_items': []}
        session.rollback()


class TestRevisionLifecycle:
    """Tests for originals and revisions after a replacement."""

    def test_replaced_original_cannot_be_authorized_again(self, session, tenant, promise, authorized_quotation):
        revision_id = revision_service.create_revision(session, tenant.id, authorized_quotation, 'v2').data['id']
        revision_service.authorize_revision(session, tenant.id, revision_id, 136.5)

        result = quotation_service.authorize_quotation(session, tenant.id, authorized_quotation, promise.id, 136.5)

        assert result.code == 'invalid_state'
        original = quotation_service.get_quotation(session, tenant.id, authorized_quotation)
        assert original.status == QuotationStatus.CANCELADA
        assert original.revision_status == RevisionStatus.REPLACED
        revision = quotation_service.get_quotation(session, tenant.id, revision_id)
        assert session.get(Event, revision.event_id).quotation_id == revision_id

    def test_active_revision_keeps_its_marker_after_child_is_deleted(self, session, tenant, authorized_quotation):
        first_id = revision_service.create_revision(session, tenant.id, authorized_quotation, 'v2').data['id']
        revision_service.authorize_revision(session, tenant.id, first_id, 136.5)
        second_id = revision_service.create_revision(session, tenant.id, first_id, 'v3').data['id']

        first = quotation_service.get_quotation(session, tenant.id, first_id)
        assert first.revision_status == RevisionStatus.PENDING_REVISION

        assert quotation_service.delete_quotation(session, tenant.id, second_id).success

        first = quotation_service.get_quotation(session, tenant.id, first_id)
        assert first.status == QuotationStatus.APROBADA
        assert first.revision_status == RevisionStatus.ACTIVE
