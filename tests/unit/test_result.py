"""
Unit tests for the Result wrapper of service operations.
"""

from studio_quotes.exceptions import InvalidStateError
from studio_quotes.services.result import Result, returns_result


class FakeSession:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


@returns_result('sample_operation')
def sample_operation(session, fail_with=None):
    if fail_with is not None:
        raise fail_with
    return {'ok': True}


class TestReturnsResult:

    def test_success_keeps_the_session_open(self):
        session = FakeSession()

        result = sample_operation(session)

        assert result == Result.ok({'ok': True})
        assert session.rollbacks == 0

    def test_rejection_rolls_back(self):
        """A rejected operation releases the rows it locked."""
        session = FakeSession()

        result = sample_operation(session, fail_with=InvalidStateError('No permitido'))

        assert result.success is False
        assert result.code == 'invalid_state'
        assert result.error == 'No permitido'
        assert session.rollbacks == 1

    def test_unexpected_error_rolls_back(self):
        session = FakeSession()

        result = sample_operation(session=session, fail_with=RuntimeError('boom'))

        assert result.code == 'internal_error'
        assert session.rollbacks == 1

    def test_to_dict(self):
        assert Result.fail('not_found', 'No existe').to_dict() == {
            'success': False, 'error': 'No existe', 'code': 'not_found'
        }
