"""Catalog adapter: the item and category data the pricing sync needs."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from studio_quotes.exceptions import NotFoundError
from studio_quotes.models import CatalogItem, CatalogCategory, BillingType, ProfitType


@dataclass(frozen=True)
class CatalogItemData:
    id: int
    name: str
    description: Optional[str]
    cost: Decimal
    expense: Decimal
    profit_type: ProfitType
    category_id: Optional[int]
    billing_type: BillingType


@dataclass(frozen=True)
class CategoryPath:
    category_name: Optional[str]
    section_name: Optional[str]
    section_order: Optional[int]
    category_order: Optional[int]


EMPTY_PATH = CategoryPath(None, None, None, None)


def _to_data(item: CatalogItem) -> CatalogItemData:
    return CatalogItemData(
        id=item.id,
        name=item.name,
        description=item.description,
        cost=item.cost or Decimal('0'),
        expense=item.expense or Decimal('0'),
        profit_type=item.utility_type or ProfitType.SERVICE,
        category_id=item.category_id,
        billing_type=item.billing_type or BillingType.SERVICE,
    )


def get_item(session: Session, tenant_id: int, item_id: int) -> CatalogItemData:
    """Current catalog data of one item (tenant-scoped)."""
    item = session.query(CatalogItem).filter(
        CatalogItem.id == item_id,
        CatalogItem.tenant_id == tenant_id
    ).first()
    if not item:
        raise NotFoundError(f'Item de catálogo {item_id} no encontrado.')
    return _to_data(item)


def get_items(session: Session, tenant_id: int, item_ids: Iterable[int]) -> Dict[int, CatalogItemData]:
    """Batch variant of ``get_item``; missing ids are simply absent."""
    ids = list({int(i) for i in item_ids})
    if not ids:
        return {}
    rows = session.query(CatalogItem).filter(
        CatalogItem.id.in_(ids),
        CatalogItem.tenant_id == tenant_id
    ).all()
    return {row.id: _to_data(row) for row in rows}


def get_category_path(session: Session, tenant_id: int, category_id: Optional[int]) -> CategoryPath:
    """Category and section names/orders for a category id."""
    if category_id is None:
        return EMPTY_PATH
    category = session.query(CatalogCategory).filter(
        CatalogCategory.id == category_id,
        CatalogCategory.tenant_id == tenant_id
    ).first()
    if not category:
        return EMPTY_PATH
    section = category.section
    return CategoryPath(
        category_name=category.name,
        section_name=section.name if section else None,
        section_order=section.order if section else None,
        category_order=category.order,
    )
