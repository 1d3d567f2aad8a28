"""
Structure builder: flat quotation lines -> Section > Category > Item tree.

Pure functions over plain records (dicts), so the same code renders a
persisted quotation, a draft coming from the API, or a contract preview.
Records carry both field views (``name`` / ``name_snapshot`` ...); every
textual attribute is resolved through ``resolve_record_field``.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from studio_quotes.exceptions import ValidationFailedError
from studio_quotes.utils.line_fields import resolve_record_field
from studio_quotes.utils.money import ZERO, round_currency

ORDER_INCREMENTAL = 'incremental'
ORDER_CATALOG = 'catalogo'
ORDER_INSERTION = 'insercion'
ORDER_MODES = (ORDER_INCREMENTAL, ORDER_CATALOG, ORDER_INSERTION)

PRICE_KEYS = ('unit_price', 'subtotal', 'public_price')
DESCRIPTION_KEYS = ('description',)

SESSION_WEIGHT = 0
DEFAULT_WEIGHT = 1000
ASSISTANCE_WEIGHT = 5000

_MODIFIED_SUFFIX = re.compile(r'\s*-\s*modificado\s*$')


class Order:
    """Nullable numeric order. Missing values sort last, after any real order."""

    MISSING = 999

    @classmethod
    def key(cls, value: Optional[Any]) -> int:
        if value is None or value == '':
            return cls.MISSING
        try:
            return int(value)
        except (TypeError, ValueError):
            return cls.MISSING


def normalize_item_name(name: Optional[str]) -> str:
    """Lower-cased, trimmed, without a trailing '- modificado'."""
    if not name:
        return ''
    return _MODIFIED_SUFFIX.sub('', name.strip().lower()).strip()


def item_weight(name: Optional[str]) -> int:
    """Session work first, assistance last, everything else in between."""
    normalized = normalize_item_name(name)
    if any(word in normalized for word in ('shooting', 'sesión', 'sesion')):
        return SESSION_WEIGHT
    if any(word in normalized for word in ('asistencia', 'asistente')):
        return ASSISTANCE_WEIGHT
    return DEFAULT_WEIGHT


def _amount(value: Any) -> Decimal:
    # Lines are not validated here; non-numeric subtotals add nothing.
    if value is None:
        return ZERO
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO


class _Group:
    __slots__ = ('name', 'order', 'first_seen', 'children', 'items')

    def __init__(self, name, order, first_seen):
        self.name = name
        self.order = order
        self.first_seen = first_seen
        self.children = {}
        self.items = []


def _output_item(record: Dict[str, Any], include_prices: bool, include_descriptions: bool) -> Dict[str, Any]:
    item = dict(record)
    item['name'] = resolve_record_field(record, 'name')
    item['description'] = resolve_record_field(record, 'description', '') or None
    item['unit_price'] = resolve_record_field(record, 'unit_price', ZERO)
    item['subtotal'] = resolve_record_field(record, 'subtotal', ZERO)
    if not include_prices:
        for key in PRICE_KEYS:
            item.pop(key, None)
            item.pop(f'{key}_snapshot', None)
    if not include_descriptions:
        for key in DESCRIPTION_KEYS:
            item.pop(key, None)
            item.pop(f'{key}_snapshot', None)
    return item


def _group_orders(record, mode, section_position, category_position):
    if mode == ORDER_CATALOG:
        return (
            Order.key(resolve_record_field(record, 'section_order', Order.MISSING)),
            Order.key(resolve_record_field(record, 'category_order', Order.MISSING)),
        )
    if mode == ORDER_INSERTION:
        own = Order.key(record.get('order'))
        return own, own
    return section_position, category_position


def build_hierarchy(
    items: Iterable[Dict[str, Any]],
    include_prices: bool = True,
    include_descriptions: bool = True,
    order_by: str = ORDER_INCREMENTAL,
) -> Dict[str, Any]:
    """
    Group flat lines into sections and categories with a deterministic order.

    Args:
        items: flat records; unknown keys pass through untouched.
        include_prices: drop unit price / subtotal from output items when False
            (the grand total is still computed).
        include_descriptions: drop descriptions from output items when False.
        order_by: 'incremental' (first-seen), 'catalogo' (catalog section and
            category orders) or 'insercion' (order of the first line placed in
            each group).

    Returns:
        {'sections': [{'name', 'order', 'categories': [{'name', 'order',
        'items'}]}], 'total': Decimal}
    """
    if order_by not in ORDER_MODES:
        raise ValidationFailedError(f'Modo de orden desconocido: {order_by}')

    records = list(items)
    if order_by == ORDER_INSERTION:
        # Insertion position is the line's own order; stable for ties.
        records.sort(key=lambda r: Order.key(r.get('order')))

    sections: Dict[str, _Group] = {}
    category_positions: Dict[str, int] = {}
    total = ZERO

    for index, record in enumerate(records):
        section_name = resolve_record_field(record, 'section_name')
        category_name = resolve_record_field(record, 'category_name')

        section = sections.get(section_name)
        category_key = f'{section_name}::{category_name}'
        if category_key not in category_positions:
            category_positions[category_key] = len(section.children) if section else 0

        section_order, category_order = _group_orders(
            record, order_by, len(sections) if section is None else section.order,
            category_positions[category_key]
        )
        if section is None:
            section = _Group(section_name, section_order, index)
            sections[section_name] = section
        elif order_by == ORDER_CATALOG and section.order == Order.MISSING:
            section.order = section_order

        category = section.children.get(category_name)
        if category is None:
            category = _Group(category_name, category_order, index)
            section.children[category_name] = category
        elif order_by == ORDER_CATALOG and category.order == Order.MISSING:
            category.order = category_order

        category.items.append((index, record))
        total += _amount(resolve_record_field(record, 'subtotal', ZERO))

    def item_sort_key(entry):
        index, record = entry
        weight = item_weight(resolve_record_field(record, 'name'))
        if order_by == ORDER_INCREMENTAL:
            return (weight, index)
        return (weight, Order.key(record.get('order')), index)

    output_sections = []
    for section in sorted(sections.values(), key=lambda g: (g.order, g.first_seen)):
        output_categories = []
        for category in sorted(section.children.values(), key=lambda g: (g.order, g.first_seen)):
            ordered = sorted(category.items, key=item_sort_key)
            output_categories.append({
                'name': category.name,
                'order': category.order,
                'items': [_output_item(r, include_prices, include_descriptions) for _, r in ordered],
            })
        output_sections.append({
            'name': section.name,
            'order': section.order,
            'categories': output_categories,
        })

    return {'sections': output_sections, 'total': round_currency(total)}


def flatten_to_canonical_order(hierarchy: Dict[str, Any]) -> List[Any]:
    """Item ids in section > category > item order, skipping empty groups."""
    ids = []
    for section in hierarchy.get('sections') or []:
        for category in section.get('categories') or []:
            for item in category.get('items') or []:
                if item.get('id') is not None:
                    ids.append(item['id'])
    return ids


def items_from_quotation(quotation) -> List[Dict[str, Any]]:
    """Flat records for every persisted line of ``quotation``."""
    return [item.to_record() for item in quotation.items]


def canonical_item_order(items: Iterable[Dict[str, Any]], order_by: str = ORDER_INCREMENTAL) -> List[Any]:
    return flatten_to_canonical_order(build_hierarchy(items, order_by=order_by))
