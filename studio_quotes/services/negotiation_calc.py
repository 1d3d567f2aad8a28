"""
Negotiation calculator.

Pure helpers used before and while negotiating: negotiated price with
courtesy lines and extra discounts, margin checks, financial health and
the cost of courtesies.
"""
from dataclasses import dataclass, field, asdict
from decimal import Decimal
from typing import Any, Iterable, List, Mapping, Optional, Set

from studio_quotes.services.pricing_service import PricingCoefficients, effective_quantity
from studio_quotes.utils.money import HUNDRED, ZERO, normalize_ratio, percentage_of, round_currency, to_decimal

MARGIN_ACCEPTABLE = 'aceptable'
MARGIN_LOW = 'bajo'
MARGIN_CRITICAL = 'critico'

HEALTH_HEALTHY = 'saludable'
HEALTH_WARNING = 'advertencia'
HEALTH_CRITICAL = 'critico'
HEALTH_DANGER = 'peligro'

TARGET_MARGIN = Decimal('0.20')


@dataclass(frozen=True)
class NegotiatedLine:
    id: Any
    original_price: Decimal
    negotiated_price: Decimal
    is_courtesy: bool


@dataclass(frozen=True)
class NegotiationResult:
    final_price: Decimal
    base_price: Decimal
    total_discount: Decimal
    total_cost: Decimal
    total_expense: Decimal
    commission_amount: Decimal
    commission_ratio: Decimal
    net_profit: Decimal
    margin_percentage: Decimal
    profit_impact: Decimal
    items: List[NegotiatedLine] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class MarginValidation:
    is_valid: bool
    level: str
    message: str


@dataclass(frozen=True)
class FinancialHealth:
    status: str
    current_margin: Decimal
    rescue_price: Decimal
    missing_amount: Decimal
    message: str


def _get(item: Any, key: str, default=None):
    if isinstance(item, Mapping):
        return item.get(key, default)
    return getattr(item, key, default)


def _line_amount(item) -> Decimal:
    return to_decimal(_get(item, 'unit_price')) * to_decimal(_get(item, 'quantity'))


def calculate_negotiated_price(
    items: Iterable[Any],
    original_price,
    config: Any,
    custom_price=None,
    extra_discount=None,
    condition_discount_percentage=None,
    courtesy_ids: Optional[Set[Any]] = None,
    event_duration=None,
) -> Optional[NegotiationResult]:
    """
    Price the client would pay under the proposed negotiation.

    Returns None when the final price would not cover cost + expense.
    Cost and expense use the effective quantity (per-hour lines scale by
    the event duration); the commission ratio is normalized (5 -> 0.05).
    """
    courtesy_ids = set(courtesy_ids or ())
    lines = list(items)

    items_base = ZERO
    total_cost = ZERO
    total_expense = ZERO
    for item in lines:
        qty = effective_quantity(_get(item, 'quantity'), _get(item, 'billing_type'), event_duration)
        total_cost += to_decimal(_get(item, 'cost')) * qty
        total_expense += to_decimal(_get(item, 'expense')) * qty
        if _get(item, 'id') not in courtesy_ids:
            items_base += _line_amount(item)

    base_price = to_decimal(custom_price) if custom_price is not None else items_base

    condition_discount = ZERO
    if condition_discount_percentage:
        condition_discount = percentage_of(base_price, condition_discount_percentage)
    total_discount = condition_discount + to_decimal(extra_discount)
    final_price = max(ZERO, base_price - total_discount)

    if final_price < total_cost + total_expense:
        return None

    ratio = PricingCoefficients.from_config(config).sales_commission
    commission = final_price * ratio
    net_profit = final_price - total_cost - total_expense - commission
    margin = (net_profit / final_price) * HUNDRED if final_price > ZERO else ZERO

    original = to_decimal(original_price)
    original_profit = original - total_cost - total_expense - original * ratio

    return NegotiationResult(
        final_price=round_currency(final_price),
        base_price=round_currency(base_price),
        total_discount=round_currency(total_discount),
        total_cost=round_currency(total_cost),
        total_expense=round_currency(total_expense),
        commission_amount=round_currency(commission),
        commission_ratio=ratio,
        net_profit=round_currency(net_profit),
        margin_percentage=round_currency(margin),
        profit_impact=round_currency(net_profit - original_profit),
        items=[
            NegotiatedLine(
                id=_get(item, 'id'),
                original_price=round_currency(_line_amount(item)),
                negotiated_price=ZERO if _get(item, 'id') in courtesy_ids else round_currency(_line_amount(item)),
                is_courtesy=_get(item, 'id') in courtesy_ids,
            )
            for item in lines
        ],
    )


def validate_negotiated_margin(margin_percentage, final_price, total_cost, total_expense) -> MarginValidation:
    """Critical under 10 %, low under 20 %, acceptable otherwise."""
    margin = to_decimal(margin_percentage)
    minimum = to_decimal(total_cost) + to_decimal(total_expense)

    if to_decimal(final_price) < minimum:
        return MarginValidation(
            False, MARGIN_CRITICAL,
            f'El precio no puede ser menor a {round_currency(minimum)} (costo + gasto)'
        )
    if margin < 10:
        return MarginValidation(
            True, MARGIN_CRITICAL,
            f'Margen crítico: {margin:.1f}%. Se recomienda margen mínimo del 10%.'
        )
    if margin < 20:
        return MarginValidation(
            True, MARGIN_LOW,
            f'Margen bajo: {margin:.1f}%. Se recomienda margen mínimo del 20%.'
        )
    return MarginValidation(True, MARGIN_ACCEPTABLE, f'Margen aceptable: {margin:.1f}%')


def calculate_financial_health(costs, expenses, negotiated_price, commission=None) -> FinancialHealth:
    """
    Margin after commission and the price that would bring it back to 20 %.

    rescue price = (costs + expenses) / (0.80 - commission)
    """
    total_costs = to_decimal(costs) + to_decimal(expenses)
    price = to_decimal(negotiated_price)
    ratio = normalize_ratio(commission) if commission is not None else ZERO

    net_profit = price - total_costs - price * ratio
    margin = (net_profit / price) * HUNDRED if price > ZERO else ZERO

    denominator = (1 - TARGET_MARGIN) - ratio
    rescue = total_costs / denominator if denominator > ZERO else price
    missing = rescue - price

    if margin >= 20:
        status, message = HEALTH_HEALTHY, 'Margen sólido para la operación.'
    elif margin >= 15:
        status = HEALTH_WARNING
        message = (
            f'Margen bajo: {margin:.1f}%. Te faltan {round_currency(missing)} para alcanzar el 20%. '
            f'Se recomienda ajustar a {round_currency(rescue)}.'
        )
    elif margin >= 10:
        status = HEALTH_CRITICAL
        message = f'Atención: Rentabilidad comprometida. Precio mínimo recomendado: {round_currency(rescue)}.'
    else:
        status, message = HEALTH_DANGER, 'RIESGO OPERATIVO. El precio está por debajo del límite de seguridad.'

    return FinancialHealth(
        status=status,
        current_margin=round_currency(margin),
        rescue_price=round_currency(rescue),
        missing_amount=round_currency(missing),
        message=message,
    )


def calculate_courtesy_impact(items: Iterable[Any], courtesy_ids: Set[Any]) -> dict:
    """Amount given away in courtesies and what it does to profit."""
    total = ZERO
    impact = ZERO
    for item in items:
        if _get(item, 'id') not in courtesy_ids:
            continue
        qty = to_decimal(_get(item, 'quantity'))
        price = _line_amount(item)
        cost = to_decimal(_get(item, 'cost')) * qty
        expense = to_decimal(_get(item, 'expense')) * qty
        total += price
        impact -= price - cost - expense
    return {
        'total_courtesies': round_currency(total),
        'profit_impact': round_currency(impact),
    }
