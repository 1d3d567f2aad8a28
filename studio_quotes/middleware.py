"""Middleware for tenant context."""
from functools import wraps
from flask import g, jsonify, request, current_app
from studio_quotes.database import get_session
from studio_quotes.models import Tenant

TENANT_HEADER = 'X-Tenant-ID'


def load_tenant():
    """
    Load the current tenant into g (Flask's per-request global).

    The tenant comes from the ``X-Tenant-ID`` header and must exist and be
    active; otherwise g.tenant_id stays None.
    """
    g.tenant_id = None

    raw = request.headers.get(TENANT_HEADER)
    if not raw:
        return
    try:
        tenant_id = int(raw)
    except ValueError:
        current_app.logger.warning(f"Invalid {TENANT_HEADER} header: {raw!r}")
        return

    db_session = get_session()
    tenant = db_session.query(Tenant).filter_by(id=tenant_id, active=True).first()
    if tenant:
        g.tenant_id = tenant.id


def require_tenant(f):
    """
    Decorator: Require a tenant in the request context.

    Answers 401 with the standard error envelope when there is none.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('tenant_id') is None:
            return jsonify({
                'success': False,
                'error': 'Debes indicar un negocio válido.',
                'code': 'tenant_required'
            }), 401
        return f(*args, **kwargs)
    return decorated_function
