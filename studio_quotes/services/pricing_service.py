"""
Pricing calculator.

Pure functions: no session, no I/O. Given cost, expense, utility class and
the tenant's coefficients, returns the public price of one unit.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from studio_quotes.models.catalog import BillingType, ProfitType
from studio_quotes.utils.money import ONE, ZERO, normalize_ratio, round_currency, to_decimal


@dataclass(frozen=True)
class PricingCoefficients:
    """Normalized (fractional) coefficients of a PricingConfiguration."""
    service_margin: Decimal = ZERO
    product_margin: Decimal = ZERO
    sales_commission: Decimal = ZERO
    markup: Decimal = ZERO

    @classmethod
    def from_config(cls, config: Any) -> 'PricingCoefficients':
        """Build from a model row, a mapping or another PricingCoefficients."""
        if isinstance(config, cls):
            return config
        if isinstance(config, dict):
            get = config.get
        else:
            def get(key, default=None):
                return getattr(config, key, default)
        return cls(
            service_margin=normalize_ratio(get('service_margin')),
            product_margin=normalize_ratio(get('product_margin')),
            sales_commission=normalize_ratio(get('sales_commission')),
            markup=normalize_ratio(get('markup')),
        )

    def margin_for(self, profit_type) -> Decimal:
        if _as_profit_type(profit_type) == ProfitType.PRODUCT:
            return self.product_margin
        return self.service_margin


@dataclass(frozen=True)
class PriceResult:
    final_price: Decimal
    base_profit: Decimal


def _as_profit_type(value) -> ProfitType:
    if isinstance(value, ProfitType):
        return value
    if value is None:
        return ProfitType.SERVICE
    normalized = str(value).strip().lower()
    if normalized in ('producto', 'product'):
        return ProfitType.PRODUCT
    return ProfitType.SERVICE


def calculate_price(cost, expense, profit_type, config) -> PriceResult:
    """
    Unit price of a catalog item.

    basis = cost + expense
    profit = basis * margin(profit_type)
    final_price = (basis + profit) * (1 + markup)

    Only the returned amounts are rounded (to cents). ``base_profit`` is the
    margin amount before markup and before sales commission.
    """
    coefficients = PricingCoefficients.from_config(config)
    basis = to_decimal(cost) + to_decimal(expense)
    profit = basis * coefficients.margin_for(profit_type)
    public_price = (basis + profit) * (ONE + coefficients.markup)
    return PriceResult(
        final_price=round_currency(public_price),
        base_profit=round_currency(profit),
    )


def effective_quantity(quantity, billing_type, event_duration: Optional[Any] = None) -> Decimal:
    """
    Quantity the unit price is multiplied by.

    Per-hour lines scale by the event duration in hours when one is set;
    per-service and per-unit lines use the raw quantity.
    """
    qty = to_decimal(quantity)
    duration = to_decimal(event_duration)
    billing = billing_type.value if isinstance(billing_type, BillingType) else billing_type
    if billing == BillingType.HOUR.value and duration > ZERO:
        return qty * duration
    return qty


def line_subtotal(unit_price, quantity, billing_type, event_duration=None) -> Decimal:
    return round_currency(to_decimal(unit_price) * effective_quantity(quantity, billing_type, event_duration))
