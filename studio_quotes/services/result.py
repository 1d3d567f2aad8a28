"""
Tagged result returned by every public quotation operation.

Services raise QuotationError subclasses internally; ``returns_result``
turns them into ``Result.fail`` so no exception crosses the boundary.
"""
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Any, Optional

from studio_quotes.blueprints.metrics import record_operation
from studio_quotes.exceptions import QuotationError

logger = logging.getLogger(__name__)

INTERNAL_ERROR = 'internal_error'


@dataclass
class Result:
    success: bool
    data: Any = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code, error):
        return cls(success=False, error=error, code=code)

    def to_dict(self):
        if self.success:
            return {'success': True, 'data': self.data}
        return {'success': False, 'error': self.error, 'code': self.code}


def _release(args, kwargs):
    """Roll back the caller's session so row locks taken before the failure are released."""
    session = kwargs.get('session', args[0] if args else None)
    rollback = getattr(session, 'rollback', None)
    if rollback is not None:
        rollback()


def returns_result(operation):
    """Wrap a service function so it always returns a Result."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                data = fn(*args, **kwargs)
            except QuotationError as e:
                logger.warning(f"[COTIZACIONES] {operation} rechazada [{e.code}]: {e.message}")
                _release(args, kwargs)
                record_operation(operation, e.code)
                return Result.fail(e.code, e.message)
            except Exception as e:
                logger.exception(f"[COTIZACIONES] {operation} falló inesperadamente: {e}")
                _release(args, kwargs)
                record_operation(operation, INTERNAL_ERROR)
                return Result.fail(INTERNAL_ERROR, 'Error interno al procesar la cotización')
            record_operation(operation, 'success')
            return Result.ok(data)
        return wrapper
    return decorator
