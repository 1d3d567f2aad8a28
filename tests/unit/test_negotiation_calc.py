"""
Unit tests for the negotiation calculator.
"""

import pytest
from decimal import Decimal
from studio_quotes.services.negotiation_calc import (
    HEALTH_DANGER, HEALTH_HEALTHY, HEALTH_WARNING, MARGIN_ACCEPTABLE, MARGIN_CRITICAL, MARGIN_LOW,
    calculate_courtesy_impact, calculate_financial_health, calculate_negotiated_price,
    validate_negotiated_margin
)

CONFIG = {'sales_commission': 0.05}


@pytest.fixture
def items():
    return [
        {'id': 1, 'unit_price': '136.50', 'quantity': 1, 'cost': '100', 'expense': '0', 'billing_type': 'SERVICE'},
        {'id': 2, 'unit_price': '126.00', 'quantity': 1, 'cost': '100', 'expense': '0', 'billing_type': 'UNIT'},
    ]


class TestNegotiatedPrice:
    """Tests for calculate_negotiated_price."""

    def test_without_changes(self, items):
        result = calculate_negotiated_price(items, original_price='262.50', config=CONFIG)

        assert result.final_price == Decimal('262.50')
        assert result.total_cost == Decimal('200.00')
        assert result.commission_amount == Decimal('13.13')
        assert result.net_profit == Decimal('49.38')
        assert result.margin_percentage == Decimal('18.81')
        assert result.profit_impact == Decimal('0.00')

    def test_custom_price_with_discounts(self, items):
        result = calculate_negotiated_price(
            items, original_price='262.50', config=CONFIG,
            custom_price=250, extra_discount=10, condition_discount_percentage=10
        )

        assert result.base_price == Decimal('250.00')
        assert result.total_discount == Decimal('35.00')
        assert result.final_price == Decimal('215.00')

    def test_courtesy_items_are_free(self, items):
        items[0]['cost'] = '10'

        result = calculate_negotiated_price(items, original_price='262.50', config=CONFIG, courtesy_ids={2})

        assert result.final_price == Decimal('136.50')
        courtesy = [line for line in result.items if line.is_courtesy]
        assert [line.id for line in courtesy] == [2]
        assert courtesy[0].negotiated_price == Decimal('0')

    def test_below_cost_returns_none(self, items):
        assert calculate_negotiated_price(items, original_price='262.50', config=CONFIG, custom_price=150) is None

    def test_hourly_cost_scales_with_duration(self, items):
        items[0]['billing_type'] = 'HOUR'

        result = calculate_negotiated_price(
            items, original_price='1000', config=CONFIG, custom_price=1000, event_duration=4
        )

        assert result.total_cost == Decimal('500.00')


class TestMarginValidation:

    def test_levels(self):
        assert validate_negotiated_margin(5, 300, 200, 0).level == MARGIN_CRITICAL
        assert validate_negotiated_margin(15, 300, 200, 0).level == MARGIN_LOW
        assert validate_negotiated_margin(25, 300, 200, 0).level == MARGIN_ACCEPTABLE

    def test_price_below_cost_is_invalid(self):
        validation = validate_negotiated_margin(0, 150, 200, 0)

        assert validation.is_valid is False
        assert validation.level == MARGIN_CRITICAL


class TestFinancialHealth:

    def test_warning_with_rescue_price(self):
        health = calculate_financial_health(800, 0, 1000, commission=0.05)

        assert health.status == HEALTH_WARNING
        assert health.current_margin == Decimal('15.00')
        assert health.rescue_price == Decimal('1066.67')
        assert health.missing_amount == Decimal('66.67')

    def test_healthy(self):
        assert calculate_financial_health(800, 0, 2000, commission=0.05).status == HEALTH_HEALTHY

    def test_danger(self):
        assert calculate_financial_health(800, 0, 850).status == HEALTH_DANGER


class TestCourtesyImpact:

    def test_impact(self, items):
        impact = calculate_courtesy_impact(items, {2})

        assert impact == {'total_courtesies': Decimal('126.00'), 'profit_impact': Decimal('-26.00')}

    def test_no_courtesies(self, items):
        assert calculate_courtesy_impact(items, set())['total_courtesies'] == Decimal('0.00')
