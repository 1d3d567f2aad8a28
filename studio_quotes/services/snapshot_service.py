"""
Snapshot/pricing synchronizer.

Re-reads every catalog-sourced line of a quotation from the live catalog,
prices it with the tenant's current configuration and writes the result
into both the operational and the snapshot view. Custom lines own their
pricing and are never touched.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from studio_quotes.database import transaction
from studio_quotes.exceptions import NotFoundError
from studio_quotes.models import Quotation, QuotationItem, QuotationStatus
from studio_quotes.services import catalog_service
from studio_quotes.services.catalog_service import CatalogItemData, CategoryPath
from studio_quotes.services.pricing_config_service import get_config, find_config
from studio_quotes.services.pricing_service import PricingCoefficients, calculate_price, line_subtotal
from studio_quotes.utils.line_fields import LineFieldSet
from studio_quotes.utils.money import ZERO, round_currency

logger = logging.getLogger(__name__)


def price_catalog_line(
    data: CatalogItemData,
    path: CategoryPath,
    coefficients: PricingCoefficients,
    quantity,
    event_duration=None,
    is_courtesy: bool = False,
) -> LineFieldSet:
    """Field view of a catalog line priced with ``coefficients``."""
    price = calculate_price(data.cost, data.expense, data.profit_type, coefficients)
    if is_courtesy:
        unit_price = ZERO
        subtotal = round_currency(ZERO)
    else:
        unit_price = price.final_price
        subtotal = line_subtotal(price.final_price, quantity, data.billing_type, event_duration)
    return LineFieldSet(
        name=data.name,
        description=data.description,
        category_name=path.category_name,
        section_name=path.section_name,
        section_order=path.section_order,
        category_order=path.category_order,
        cost=round_currency(data.cost),
        expense=round_currency(data.expense),
        profit=price.base_profit,
        public_price=price.final_price,
        unit_price=round_currency(unit_price),
        subtotal=subtotal,
        profit_type=data.profit_type,
    )


def _load_quotation(session: Session, quotation_id: int, tenant_id: int) -> Quotation:
    quotation = session.query(Quotation).filter(
        Quotation.id == quotation_id,
        Quotation.tenant_id == tenant_id
    ).first()
    if not quotation:
        raise NotFoundError(f'Cotización {quotation_id} no encontrada.')
    return quotation


def _reprice_item(session, tenant_id, item: QuotationItem, catalog, coefficients, event_duration) -> bool:
    data = catalog.get(item.item_id)
    if data is None:
        logger.warning(
            f"[PRICING] Item de catálogo {item.item_id} ya no existe; "
            f"línea {item.id} conserva sus valores"
        )
        return False
    path = catalog_service.get_category_path(session, tenant_id, data.category_id)
    fields = price_catalog_line(data, path, coefficients, item.quantity, event_duration, item.is_courtesy)
    item.category_id = data.category_id
    item.billing_type = data.billing_type
    item.write_operational(fields)
    return True


def sync_quotation_pricing(session: Session, quotation_id: int, tenant_id: int, recompute_total: bool = False) -> dict:
    """
    Refresh catalog lines of a quotation from the live catalog.

    Writes operational and snapshot views. When ``recompute_total`` is set,
    the quotation price becomes the sum of line subtotals. On an authorized
    or cancelled quotation only the operational view is refreshed; its
    snapshots and price stay as authorized.

    Raises:
        NotFoundError: if the quotation does not exist for the tenant.
        ConfigurationMissingError: if the tenant has no pricing configuration.
    """
    quotation = _load_quotation(session, quotation_id, tenant_id)
    coefficients = get_config(session, tenant_id)
    catalog = catalog_service.get_items(
        session, tenant_id, [i.item_id for i in quotation.items if i.item_id is not None]
    )

    frozen = quotation.is_authorized or quotation.status == QuotationStatus.CANCELADA
    synced = skipped = 0
    with transaction(session) as budget:
        for item in quotation.items:
            budget.check()
            if item.is_custom or item.item_id is None:
                skipped += 1
                continue
            if _reprice_item(session, tenant_id, item, catalog, coefficients, quotation.event_duration):
                if not frozen:
                    item.freeze()
                synced += 1
            else:
                skipped += 1
        if recompute_total and not frozen:
            quotation.price = round_currency(sum((i.subtotal or ZERO) for i in quotation.items))

    logger.info(f"[PRICING] Cotización {quotation_id}: {synced} líneas sincronizadas, {skipped} omitidas")
    return {'quotation_id': quotation_id, 'synced': synced, 'skipped': skipped}


def freeze_authorized_structure(session: Session, quotation: Quotation, budget=None,
                                coefficients: Optional[PricingCoefficients] = None) -> int:
    """
    Freeze every line of a quotation being authorized. Caller commits.

    Catalog lines are re-priced first when a configuration exists; without
    one their current operational values are frozen as they are. Custom
    lines are frozen as authored. The commercial terms in force are copied
    onto the quotation.
    """
    if coefficients is None:
        coefficients = find_config(session, quotation.tenant_id)
    if coefficients is None:
        logger.warning(
            f"[PRICING] Cotización {quotation.id} autorizada sin configuración de precios; "
            f"se congelan los valores actuales"
        )

    catalog = {}
    if coefficients is not None:
        catalog = catalog_service.get_items(
            session, quotation.tenant_id, [i.item_id for i in quotation.items if i.item_id is not None]
        )

    frozen = 0
    for item in quotation.items:
        if budget is not None:
            budget.check()
        if coefficients is not None and not item.is_custom and item.item_id is not None:
            _reprice_item(session, quotation.tenant_id, item, catalog, coefficients, quotation.event_duration)
        item.freeze()
        frozen += 1

    freeze_condition_terms(quotation)
    return frozen


def freeze_condition_terms(quotation: Quotation) -> None:
    """Copy negotiated (or standard) commercial terms into the snapshot columns."""
    terms = quotation.negotiation_condition or quotation.commercial_condition
    if terms is None:
        return
    quotation.condition_name_snapshot = terms.name
    quotation.condition_discount_percentage_snapshot = terms.discount_percentage
    quotation.condition_advance_type_snapshot = terms.advance_type.value if terms.advance_type else None
    quotation.condition_advance_percentage_snapshot = terms.advance_percentage
    quotation.condition_advance_amount_snapshot = terms.advance_amount
