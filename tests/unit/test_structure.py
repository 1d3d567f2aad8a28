"""
Unit tests for the structure builder.
"""

import pytest
from decimal import Decimal
from studio_quotes.exceptions import ValidationFailedError
from studio_quotes.services.structure_service import (
    ORDER_CATALOG, ORDER_INCREMENTAL, ORDER_INSERTION, Order,
    build_hierarchy, canonical_item_order, flatten_to_canonical_order, item_weight
)


def line(id, name, section, category, subtotal='0', **extra):
    record = {
        'id': id,
        'name': name,
        'section_name': section,
        'category_name': category,
        'unit_price': Decimal(subtotal),
        'subtotal': Decimal(subtotal),
        'quantity': 1,
    }
    record.update(extra)
    return record


@pytest.fixture
def lines():
    return [
        line(1, 'Asistente de video', 'Video', 'Edición', '60.00', section_order=2, category_order=1, order=0),
        line(2, 'Álbum impreso', 'Fotografía', 'Cobertura', '126.00', section_order=1, category_order=1, order=1),
        line(3, 'Sesión de fotos', 'Fotografía', 'Cobertura', '136.50', section_order=1, category_order=1, order=2),
    ]


class TestItemWeight:
    """Tests for the within-category weight."""

    def test_session_items_first(self):
        assert item_weight('Sesión de fotos') == 0
        assert item_weight('SHOOTING exterior') == 0
        assert item_weight('sesion express - modificado') == 0

    def test_assistance_items_last(self):
        assert item_weight('Asistente de video') == 5000
        assert item_weight('Asistencia técnica') == 5000

    def test_other_items_in_between(self):
        assert item_weight('Álbum impreso') == 1000
        assert item_weight(None) == 1000


class TestOrder:

    def test_missing_order_sorts_last(self):
        assert Order.key(None) == 999
        assert Order.key('') == 999
        assert Order.key('x') == 999
        assert Order.key(3) == 3


class TestBuildHierarchy:
    """Tests for grouping and ordering."""

    def test_incremental_keeps_first_seen_order(self, lines):
        hierarchy = build_hierarchy(lines)

        assert [s['name'] for s in hierarchy['sections']] == ['Video', 'Fotografía']
        assert flatten_to_canonical_order(hierarchy) == [1, 3, 2]

    def test_catalog_mode_uses_section_and_category_orders(self, lines):
        hierarchy = build_hierarchy(lines, order_by=ORDER_CATALOG)

        assert [s['name'] for s in hierarchy['sections']] == ['Fotografía', 'Video']
        assert flatten_to_canonical_order(hierarchy) == [3, 2, 1]

    def test_catalog_mode_puts_unordered_sections_last(self, lines):
        lines.append(line(4, 'Drone', 'Extras', 'Aéreo', '10.00'))

        hierarchy = build_hierarchy(lines, order_by=ORDER_CATALOG)

        assert hierarchy['sections'][-1]['name'] == 'Extras'
        assert hierarchy['sections'][-1]['order'] == Order.MISSING

    def test_insertion_mode_orders_groups_by_first_line(self):
        records = [
            line(1, 'Retoque', 'Fotografía', 'Post', order=5),
            line(2, 'Cobertura', 'Fotografía', 'Evento', order=1),
            line(3, 'Impresión', 'Fotografía', 'Post', order=3),
        ]

        hierarchy = build_hierarchy(records, order_by=ORDER_INSERTION)

        categories = hierarchy['sections'][0]['categories']
        assert [c['name'] for c in categories] == ['Evento', 'Post']
        assert flatten_to_canonical_order(hierarchy) == [2, 3, 1]

    def test_insertion_mode_is_idempotent(self):
        records = [
            line(1, 'Retoque', 'Fotografía', 'Post', order=5),
            line(2, 'Cobertura', 'Fotografía', 'Evento', order=1),
            line(3, 'Impresión', 'Fotografía', 'Post', order=3),
        ]
        first = canonical_item_order(records, ORDER_INSERTION)
        by_id = {r['id']: r for r in records}

        second = canonical_item_order([by_id[i] for i in first], ORDER_INSERTION)

        assert first == second

    def test_weight_beats_order_within_category(self):
        records = [
            line(1, 'Asistente', 'S', 'C', order=0),
            line(2, 'Sesión', 'S', 'C', order=9),
        ]

        for mode in (ORDER_INCREMENTAL, ORDER_CATALOG, ORDER_INSERTION):
            assert canonical_item_order(records, mode) == [2, 1]

    def test_total_sums_subtotals(self, lines):
        assert build_hierarchy(lines)['total'] == Decimal('322.50')

    def test_invalid_subtotal_counts_as_zero(self):
        records = [line(1, 'A', 'S', 'C', '10.00'), line(2, 'B', 'S', 'C')]
        records[1]['subtotal'] = 'abc'

        assert build_hierarchy(records)['total'] == Decimal('10.00')

    def test_snapshot_wins_over_operational(self):
        record = line(1, 'Nombre actual', 'S', 'C', '10.00', name_snapshot='Nombre congelado', subtotal_snapshot=Decimal('8.00'))

        hierarchy = build_hierarchy([record])

        item = hierarchy['sections'][0]['categories'][0]['items'][0]
        assert item['name'] == 'Nombre congelado'
        assert item['subtotal'] == Decimal('8.00')
        assert hierarchy['total'] == Decimal('8.00')

    def test_missing_names_get_default_labels(self):
        hierarchy = build_hierarchy([{'id': 1, 'name': '  ', 'quantity': 1}])

        section = hierarchy['sections'][0]
        assert section['name'] == 'Sin sección'
        assert section['categories'][0]['name'] == 'Sin categoría'
        assert section['categories'][0]['items'][0]['name'] == 'Item sin nombre'

    def test_can_hide_prices_and_descriptions(self, lines):
        lines[0]['description'] = 'Edición completa'

        hierarchy = build_hierarchy(lines, include_prices=False, include_descriptions=False)

        item = hierarchy['sections'][0]['categories'][0]['items'][0]
        assert 'unit_price' not in item
        assert 'subtotal' not in item
        assert 'description' not in item
        assert hierarchy['total'] == Decimal('322.50')

    def test_unknown_keys_pass_through(self):
        record = line(1, 'A', 'S', 'C', scheduler_task_id=77)

        item = build_hierarchy([record])['sections'][0]['categories'][0]['items'][0]

        assert item['scheduler_task_id'] == 77

    def test_empty_input(self):
        assert build_hierarchy([]) == {'sections': [], 'total': Decimal('0.00')}

    def test_unknown_mode_is_rejected(self, lines):
        with pytest.raises(ValidationFailedError):
            build_hierarchy(lines, order_by='alfabetico')
