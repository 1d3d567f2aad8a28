"""Quotations JSON API - Multi-Tenant."""
from flask import Blueprint, request, jsonify, g, current_app
from studio_quotes.database import get_session
from studio_quotes.middleware import require_tenant
from studio_quotes.services import (
    closing_service, negotiation_service, quotation_service, revision_service
)
from studio_quotes.services.structure_service import ORDER_INCREMENTAL

quotations_bp = Blueprint('quotations', __name__, url_prefix='/api/quotations')

# Result code -> HTTP status
STATUS_BY_CODE = {
    'not_found': 404,
    'invalid_state': 409,
    'validation_failed': 400,
    'dependency_unresolved': 409,
    'configuration_missing': 422,
    'external_sync_failed': 502,
    'transaction_timeout': 504,
    'internal_error': 500,
}


def respond(result, success_status=200):
    """Serialize a service Result with the matching HTTP status."""
    if result.success:
        return jsonify(result.to_dict()), success_status
    return jsonify(result.to_dict()), STATUS_BY_CODE.get(result.code, 500)


def _payload():
    return request.get_json(silent=True) or {}


def _flag(name, default=False):
    value = request.args.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'si')


def _bad_request(message):
    return jsonify({'success': False, 'error': message, 'code': 'validation_failed'}), 400


@quotations_bp.route('', methods=['GET'])
@require_tenant
def list_quotations():
    """List the quotations of a promise (tenant-scoped)."""
    promise_id = request.args.get('promise_id', type=int)
    if promise_id is None:
        return _bad_request('El parámetro promise_id es obligatorio.')
    result = quotation_service.list_quotations(
        get_session(), g.tenant_id, promise_id, include_archived=_flag('include_archived')
    )
    return respond(result)


@quotations_bp.route('', methods=['POST'])
@require_tenant
def create_quotation():
    data = _payload()
    result = quotation_service.create_quotation(
        get_session(), g.tenant_id,
        promise_id=data.get('promise_id'),
        name=data.get('name'),
        description=data.get('description'),
        price=data.get('price'),
        selections=data.get('selections'),
        custom_items=data.get('custom_items') or (),
        condition_id=data.get('condition_id'),
        event_duration=data.get('event_duration'),
        visible_to_client=bool(data.get('visible_to_client', False)),
    )
    return respond(result, 201)


@quotations_bp.route('/<int:quotation_id>', methods=['GET'])
@require_tenant
def get_quotation(quotation_id):
    """Quotation detail with its structure and totals."""
    result = quotation_service.get_quotation_detail(
        get_session(), g.tenant_id, quotation_id,
        order_by=request.args.get('order_by', current_app.config.get('DEFAULT_STRUCTURE_ORDER', ORDER_INCREMENTAL)),
        include_prices=_flag('include_prices', True),
        include_descriptions=_flag('include_descriptions', True),
    )
    return respond(result)


@quotations_bp.route('/<int:quotation_id>', methods=['PUT'])
@require_tenant
def update_quotation(quotation_id):
    data = _payload()
    result = quotation_service.update_quotation(
        get_session(), g.tenant_id, quotation_id,
        name=data.get('name'),
        description=data.get('description'),
        price=data.get('price'),
        selections=data.get('selections'),
        custom_items=data.get('custom_items') or (),
        condition_id=data.get('condition_id'),
        event_duration=data.get('event_duration'),
    )
    return respond(result)


@quotations_bp.route('/<int:quotation_id>', methods=['DELETE'])
@require_tenant
def delete_quotation(quotation_id):
    return respond(quotation_service.delete_quotation(get_session(), g.tenant_id, quotation_id))


@quotations_bp.route('/<int:quotation_id>/authorize', methods=['POST'])
@require_tenant
def authorize_quotation(quotation_id):
    data = _payload()
    result = quotation_service.authorize_quotation(
        get_session(), g.tenant_id, quotation_id,
        promise_id=data.get('promise_id'),
        amount=data.get('amount'),
        condition_id=data.get('condition_id'),
    )
    return respond(result)


@quotations_bp.route('/<int:quotation_id>/cancel', methods=['POST'])
@require_tenant
def cancel_quotation(quotation_id):
    return respond(quotation_service.cancel_quotation(get_session(), g.tenant_id, quotation_id))


@quotations_bp.route('/<int:quotation_id>/archive', methods=['POST'])
@require_tenant
def archive_quotation(quotation_id):
    return respond(quotation_service.archive_quotation(get_session(), g.tenant_id, quotation_id))


@quotations_bp.route('/<int:quotation_id>/unarchive', methods=['POST'])
@require_tenant
def unarchive_quotation(quotation_id):
    return respond(quotation_service.unarchive_quotation(get_session(), g.tenant_id, quotation_id))


@quotations_bp.route('/<int:quotation_id>/duplicate', methods=['POST'])
@require_tenant
def duplicate_quotation(quotation_id):
    return respond(quotation_service.duplicate_quotation(get_session(), g.tenant_id, quotation_id), 201)


@quotations_bp.route('/<int:quotation_id>/name', methods=['PATCH'])
@require_tenant
def rename_quotation(quotation_id):
    data = _payload()
    return respond(quotation_service.rename_quotation(get_session(), g.tenant_id, quotation_id, data.get('name')))


@quotations_bp.route('/reorder', methods=['POST'])
@require_tenant
def reorder_quotations():
    data = _payload()
    return respond(quotation_service.reorder_quotations(get_session(), g.tenant_id, data.get('ids') or []))


# Closing

@quotations_bp.route('/<int:quotation_id>/closing', methods=['POST'])
@require_tenant
def pass_to_closing(quotation_id):
    data = _payload()
    result = closing_service.pass_to_closing(
        get_session(), g.tenant_id, quotation_id,
        condition_id=data.get('condition_id'),
        condition_defined=bool(data.get('condition_defined', False)),
    )
    return respond(result)


@quotations_bp.route('/<int:quotation_id>/closing', methods=['DELETE'])
@require_tenant
def cancel_closing(quotation_id):
    result = closing_service.cancel_closing(
        get_session(), g.tenant_id, quotation_id,
        restore_siblings=_flag('restore_siblings'),
    )
    return respond(result)


# Negotiation

def _negotiation_kwargs(data):
    return {
        'custom_price': data.get('custom_price'),
        'extra_discount': data.get('extra_discount'),
        'courtesy_item_ids': data.get('courtesy_item_ids') or (),
        'temporary_condition': data.get('temporary_condition'),
        'condition_id': data.get('condition_id'),
        'notes': data.get('notes'),
    }


@quotations_bp.route('/<int:quotation_id>/negotiation', methods=['POST'])
@require_tenant
def apply_negotiation(quotation_id):
    data = _payload()
    result = negotiation_service.apply_negotiation(
        get_session(), g.tenant_id, quotation_id,
        visible_to_client=data.get('visible_to_client'),
        **_negotiation_kwargs(data)
    )
    return respond(result)


@quotations_bp.route('/<int:quotation_id>/negotiated-versions', methods=['POST'])
@require_tenant
def create_negotiated_version(quotation_id):
    data = _payload()
    result = negotiation_service.create_negotiated_version(
        get_session(), g.tenant_id, quotation_id,
        name=data.get('name'),
        description=data.get('description'),
        visible_to_client=bool(data.get('visible_to_client', False)),
        **_negotiation_kwargs(data)
    )
    return respond(result, 201)


# Revisions

@quotations_bp.route('/<int:quotation_id>/revisions', methods=['POST'])
@require_tenant
def create_revision(quotation_id):
    data = _payload()
    result = revision_service.create_revision(
        get_session(), g.tenant_id, quotation_id,
        name=data.get('name'),
        description=data.get('description'),
        price=data.get('price'),
        selections=data.get('selections'),
    )
    return respond(result, 201)


@quotations_bp.route('/<int:quotation_id>/revision/authorize', methods=['POST'])
@require_tenant
def authorize_revision(quotation_id):
    data = _payload()
    result = revision_service.authorize_revision(
        get_session(), g.tenant_id, quotation_id,
        amount=data.get('amount'),
        condition_id=data.get('condition_id'),
        migrate_dependencies=bool(data.get('migrate_dependencies', False)),
    )
    return respond(result)
