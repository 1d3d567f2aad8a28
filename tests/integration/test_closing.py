"""
Integration tests for the closing workflow.
"""

from studio_quotes.models import QuotationClosing, QuotationStatus
from studio_quotes.services import closing_service, negotiation_service, quotation_service


class TestPassToClosing:
    """Tests for moving a quotation to 'en_cierre'."""

    def test_pass_to_closing(self, session, tenant, make_quotation):
        chosen = make_quotation('A')
        sibling = make_quotation('B')

        result = closing_service.pass_to_closing(session, tenant.id, chosen)

        assert result.success, result.error
        assert result.data['previous_status'] == 'pendiente'
        assert result.data['archived_sibling_ids'] == [sibling]
        quotation = quotation_service.get_quotation(session, tenant.id, chosen)
        assert quotation.status == QuotationStatus.EN_CIERRE
        assert quotation.closing.previous_status == 'pendiente'
        assert quotation_service.get_quotation(session, tenant.id, sibling).archived is True

    def test_with_condition(self, session, tenant, condition, make_quotation):
        quotation_id = make_quotation()

        closing_service.pass_to_closing(session, tenant.id, quotation_id, condition_id=condition.id)

        quotation = quotation_service.get_quotation(session, tenant.id, quotation_id)
        assert quotation.closing.condition_defined is True
        assert quotation.commercial_condition_id == condition.id

    def test_only_one_quotation_in_closing(self, session, tenant, make_quotation):
        first = make_quotation('A')
        closing_service.pass_to_closing(session, tenant.id, first)
        second = make_quotation('C')

        result = closing_service.pass_to_closing(session, tenant.id, second)

        assert result.success is False
        assert result.code == 'invalid_state'

    def test_authorized_quotation_cannot_close(self, session, tenant, authorized_quotation):
        result = closing_service.pass_to_closing(session, tenant.id, authorized_quotation)

        assert result.code == 'invalid_state'

    def test_closing_quotation_can_be_authorized(self, session, tenant, promise, make_quotation):
        quotation_id = make_quotation()
        closing_service.pass_to_closing(session, tenant.id, quotation_id)

        result = quotation_service.authorize_quotation(session, tenant.id, quotation_id, promise.id, 136.5)

        assert result.success, result.error
        assert session.query(QuotationClosing).count() == 0


class TestCancelClosing:
    """Tests for leaving 'en_cierre'."""

    def test_restores_previous_status(self, session, tenant, make_quotation):
        quotation_id = make_quotation()
        closing_service.pass_to_closing(session, tenant.id, quotation_id)

        result = closing_service.cancel_closing(session, tenant.id, quotation_id)

        assert result.success, result.error
        assert result.data['status'] == 'pendiente'
        assert quotation_service.get_quotation(session, tenant.id, quotation_id).status == QuotationStatus.PENDIENTE
        assert session.query(QuotationClosing).count() == 0

    def test_restores_negotiation(self, session, tenant, make_quotation):
        quotation_id = make_quotation()
        negotiation_service.apply_negotiation(session, tenant.id, quotation_id)
        closing_service.pass_to_closing(session, tenant.id, quotation_id)

        closing_service.cancel_closing(session, tenant.id, quotation_id)

        assert quotation_service.get_quotation(session, tenant.id, quotation_id).status == QuotationStatus.NEGOCIACION

    def test_siblings_stay_archived_by_default(self, session, tenant, make_quotation):
        chosen = make_quotation('A')
        sibling = make_quotation('B')
        closing_service.pass_to_closing(session, tenant.id, chosen)

        result = closing_service.cancel_closing(session, tenant.id, chosen)

        assert result.data['restored_sibling_ids'] == []
        assert quotation_service.get_quotation(session, tenant.id, sibling).archived is True

    def test_restore_siblings(self, session, tenant, make_quotation):
        chosen = make_quotation('A')
        sibling = make_quotation('B')
        closing_service.pass_to_closing(session, tenant.id, chosen)

        result = closing_service.cancel_closing(session, tenant.id, chosen, restore_siblings=True)

        assert result.data['restored_sibling_ids'] == [sibling]
        assert quotation_service.get_quotation(session, tenant.id, sibling).archived is False

    def test_sibling_with_taken_name_stays_archived(self, session, tenant, make_quotation):
        chosen = make_quotation('A')
        sibling = make_quotation('B')
        closing_service.pass_to_closing(session, tenant.id, chosen)
        make_quotation('B')

        result = closing_service.cancel_closing(session, tenant.id, chosen, restore_siblings=True)

        assert result.success, result.error
        assert result.data['restored_sibling_ids'] == []
        assert quotation_service.get_quotation(session, tenant.id, sibling).archived is True

    def test_not_in_closing(self, session, tenant, make_quotation):
        result = closing_service.cancel_closing(session, tenant.id, make_quotation())

        assert result.code == 'invalid_state'
