"""Custom exceptions for the quotation engine."""

class QuotationError(Exception):
    """Base exception for all application errors."""
    code = 'internal_error'

    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['success'] = False
        rv['error'] = self.message
        rv['code'] = self.code
        return rv

class NotFoundError(QuotationError):
    """Tenant, deal, quotation or item missing."""
    code = 'not_found'

    def __init__(self, message="Recurso no encontrado", payload=None):
        super().__init__(message, 404, payload)

class InvalidStateError(QuotationError):
    """Transition attempted from a status that does not allow it."""
    code = 'invalid_state'

    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)

class ValidationFailedError(QuotationError):
    """Input rejected before any write (duplicate name, missing event date...)."""
    code = 'validation_failed'

    def __init__(self, message, payload=None):
        super().__init__(message, 400, payload)

class DependencyUnresolvedError(QuotationError):
    """A migration target item could not be found. Logged, never fatal."""
    code = 'dependency_unresolved'

    def __init__(self, message, payload=None):
        super().__init__(message, 409, payload)

class ConfigurationMissingError(QuotationError):
    """No active pricing configuration for the tenant."""
    code = 'configuration_missing'

    def __init__(self, message="No hay configuración de precios activa", payload=None):
        super().__init__(message, 422, payload)

class ExternalSyncFailedError(QuotationError):
    """A best-effort side effect failed."""
    code = 'external_sync_failed'

    def __init__(self, message, payload=None):
        super().__init__(message, 502, payload)

class TransactionTimeoutError(QuotationError):
    """A unit of work ran past its wall-clock budget and was rolled back."""
    code = 'transaction_timeout'

    def __init__(self, message, payload=None):
        super().__init__(message, 504, payload)
