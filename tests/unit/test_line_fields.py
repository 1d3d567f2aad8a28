"""
Unit tests for the dual field views of quotation lines.
"""

from decimal import Decimal
from studio_quotes.models import QuotationItem, BillingType, ProfitType
from studio_quotes.utils.line_fields import LineFieldSet, resolve_line_field, resolve_record_field


class TestResolveLineField:
    """Snapshot, then operational, then default."""

    def test_snapshot_first(self):
        snapshot = LineFieldSet(name='Congelado')
        operational = LineFieldSet(name='Actual')

        assert resolve_line_field(snapshot, operational, 'name') == 'Congelado'

    def test_blank_snapshot_falls_back(self):
        snapshot = LineFieldSet(name='   ')
        operational = LineFieldSet(name='Actual')

        assert resolve_line_field(snapshot, operational, 'name') == 'Actual'

    def test_default_labels(self):
        empty = LineFieldSet()

        assert resolve_line_field(empty, empty, 'section_name') == 'Sin sección'
        assert resolve_line_field(empty, empty, 'category_name') == 'Sin categoría'
        assert resolve_line_field(empty, empty, 'description') is None
        assert resolve_line_field(empty, empty, 'subtotal', Decimal('0')) == Decimal('0')

    def test_zero_snapshot_is_a_value(self):
        assert resolve_record_field({'subtotal': Decimal('10'), 'subtotal_snapshot': Decimal('0')}, 'subtotal') == Decimal('0')


class TestQuotationItemViews:
    """Tests for freeze / to_record on a transient line."""

    def _line(self):
        item = QuotationItem(quantity=2, billing_type=BillingType.HOUR, order=0, is_custom=False, is_courtesy=False)
        item.write_operational(LineFieldSet(
            name='Cobertura', category_name='Cobertura', section_name='Fotografía',
            cost=Decimal('200.00'), expense=Decimal('0.00'), profit=Decimal('60.00'),
            public_price=Decimal('273.00'), unit_price=Decimal('273.00'), subtotal=Decimal('546.00'),
            profit_type=ProfitType.SERVICE,
        ))
        return item

    def test_freeze_copies_operational_view(self):
        item = self._line()

        item.freeze()

        assert item.snapshot == item.operational
        assert item.unit_price_snapshot == Decimal('273.00')

    def test_snapshot_survives_operational_changes(self):
        item = self._line()
        item.freeze()

        item.write_operational(item.operational.with_changes(name='Cobertura extendida', unit_price=Decimal('300.00')))

        assert item.resolve('name') == 'Cobertura'
        assert item.resolve('unit_price') == Decimal('273.00')

    def test_to_record_uses_plain_values(self):
        record = self._line().to_record()

        assert record['billing_type'] == 'HOUR'
        assert record['profit_type'] == 'servicio'
        assert record['name'] == 'Cobertura'
        assert record['name_snapshot'] is None
