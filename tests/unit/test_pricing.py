"""
Unit tests for the pricing calculator.
"""

import pytest
from decimal import Decimal
from studio_quotes.models import BillingType, ProfitType, PricingConfiguration
from studio_quotes.services.pricing_service import (
    PricingCoefficients, calculate_price, effective_quantity, line_subtotal
)


CONFIG = {'service_margin': 0.30, 'product_margin': 0.20, 'sales_commission': 0.05, 'markup': 0.05}


class TestCalculatePrice:
    """Tests for the unit price formula."""

    def test_service_item_price(self):
        """(100 + 30 % margin) * 1.05 markup."""
        result = calculate_price(100, 0, ProfitType.SERVICE, CONFIG)

        assert result.final_price == Decimal('136.50')
        assert result.base_profit == Decimal('30.00')

    def test_doubling_cost_doubles_price(self):
        result = calculate_price(200, 0, 'servicio', CONFIG)

        assert result.final_price == Decimal('273.00')

    def test_expense_is_part_of_basis(self):
        result = calculate_price(60, 40, ProfitType.SERVICE, CONFIG)

        assert result.final_price == Decimal('136.50')

    def test_product_uses_product_margin(self):
        result = calculate_price(100, 0, ProfitType.PRODUCT, CONFIG)

        assert result.final_price == Decimal('126.00')
        assert result.base_profit == Decimal('20.00')

    def test_unknown_profit_type_uses_service_margin(self):
        result = calculate_price(100, 0, None, CONFIG)

        assert result.final_price == Decimal('136.50')

    def test_whole_percentages_are_normalized(self):
        """A configuration stored as 30 / 5 prices the same as 0.30 / 0.05."""
        result = calculate_price(100, 0, ProfitType.SERVICE, {'service_margin': 30, 'markup': 5})

        assert result.final_price == Decimal('136.50')

    def test_rounds_half_up_to_cents(self):
        result = calculate_price(Decimal('1.01'), 0, ProfitType.SERVICE, {'service_margin': '0.5'})

        assert result.final_price == Decimal('1.52')

    def test_zero_cost_is_free(self):
        result = calculate_price(0, 0, ProfitType.SERVICE, CONFIG)

        assert result.final_price == Decimal('0.00')

    def test_accepts_configuration_row(self):
        config = PricingConfiguration(
            service_margin=Decimal('0.30'), product_margin=Decimal('0.20'),
            sales_commission=Decimal('0.05'), markup=Decimal('0.05')
        )

        assert calculate_price(100, 0, ProfitType.SERVICE, config).final_price == Decimal('136.50')

    @pytest.mark.parametrize('cost', ['0', '0.01', '0.33', '19.99', '100', '1234.57'])
    @pytest.mark.parametrize('expense', ['0', '0.01', '7.49', '250'])
    @pytest.mark.parametrize('profit_type', [ProfitType.SERVICE, ProfitType.PRODUCT, None])
    @pytest.mark.parametrize('config', [
        {},
        CONFIG,
        {'service_margin': '0.005', 'product_margin': '0.001', 'markup': '0.003'},
        {'service_margin': 1, 'product_margin': '0.99', 'sales_commission': '0.5', 'markup': 1},
    ])
    def test_never_prices_below_cost_plus_expense(self, cost, expense, profit_type, config):
        result = calculate_price(Decimal(cost), Decimal(expense), profit_type, config)

        assert result.final_price >= Decimal(cost) + Decimal(expense)
        assert result.base_profit >= 0


class TestPricingCoefficients:
    """Tests for coefficient normalization."""

    def test_from_mapping(self):
        coefficients = PricingCoefficients.from_config(CONFIG)

        assert coefficients.service_margin == Decimal('0.3')
        assert coefficients.sales_commission == Decimal('0.05')

    def test_from_itself_is_identity(self):
        coefficients = PricingCoefficients.from_config(CONFIG)

        assert PricingCoefficients.from_config(coefficients) is coefficients

    def test_missing_values_are_zero(self):
        coefficients = PricingCoefficients.from_config({})

        assert coefficients.markup == Decimal('0')
        assert coefficients.margin_for(ProfitType.PRODUCT) == Decimal('0')


class TestEffectiveQuantity:
    """Tests for per-hour quantity scaling."""

    def test_hourly_line_scales_by_duration(self):
        assert effective_quantity(2, BillingType.HOUR, Decimal('5')) == Decimal('10')

    def test_hourly_line_accepts_raw_value(self):
        assert effective_quantity(1, 'HOUR', 3) == Decimal('3')

    @pytest.mark.parametrize('duration', [None, 0])
    def test_hourly_line_without_duration_uses_quantity(self, duration):
        assert effective_quantity(2, BillingType.HOUR, duration) == Decimal('2')

    def test_service_line_ignores_duration(self):
        assert effective_quantity(2, BillingType.SERVICE, 8) == Decimal('2')

    def test_line_subtotal(self):
        assert line_subtotal(Decimal('136.50'), 2, BillingType.HOUR, Decimal('5')) == Decimal('1365.00')
        assert line_subtotal(Decimal('136.50'), 2, BillingType.UNIT, Decimal('5')) == Decimal('273.00')
