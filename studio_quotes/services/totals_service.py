"""
Quotation totals: amount payable, applied discount, advance and balance.

Rules, in priority order:
1. A positive negotiated price is the amount payable; percentage discounts
   are ignored and the savings against the negotiation anchor reported.
2. Otherwise a percentage discount (frozen terms preferred over live
   terms) applies to the real base price (price + absolute discount).
3. Otherwise an absolute discount means ``price`` is already discounted.

The advance is a percentage of the amount payable or a fixed amount; the
deferred balance is what remains.
"""
from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Mapping, Optional

from studio_quotes.models.commercial_condition import AdvanceType
from studio_quotes.utils.money import ZERO, percentage_of, round_currency, to_decimal

SOURCE_NEGOTIATED = 'negociado'
SOURCE_PERCENTAGE = 'descuento_porcentaje'
SOURCE_AMOUNT = 'descuento_monto'
SOURCE_NONE = 'sin_descuento'

_PERCENTAGE_TYPES = {'percentage'}
_FIXED_TYPES = {'fixed_amount', 'amount'}


@dataclass(frozen=True)
class ConditionTerms:
    discount_percentage: Optional[Decimal] = None
    advance_type: Optional[str] = None
    advance_percentage: Optional[Decimal] = None
    advance_amount: Optional[Decimal] = None

    @classmethod
    def from_condition(cls, condition: Any) -> Optional['ConditionTerms']:
        if condition is None:
            return None
        advance_type = condition.advance_type
        return cls(
            discount_percentage=condition.discount_percentage,
            advance_type=advance_type.value if isinstance(advance_type, AdvanceType) else advance_type,
            advance_percentage=condition.advance_percentage,
            advance_amount=condition.advance_amount,
        )


@dataclass(frozen=True)
class QuotationTotals:
    total_payable: Decimal
    base_price: Decimal
    real_base_price: Decimal
    discount_applied: Decimal
    discount_percentage: Optional[Decimal]
    source: str
    advance: Decimal
    deferred: Decimal
    comparison_price: Decimal
    savings: Optional[Decimal] = None

    def to_dict(self):
        return asdict(self)


def _first_present(*values):
    for value in values:
        if value is not None:
            return value
    return None


def calculate_quotation_totals(
    price,
    discount=None,
    negotiated_original=None,
    negotiated_custom=None,
    condition_terms: Optional[ConditionTerms] = None,
    snapshot_terms: Optional[ConditionTerms] = None,
) -> QuotationTotals:
    """Resolve what the client pays and how it splits into advance and balance."""
    price = to_decimal(price)
    existing_discount = to_decimal(discount)
    real_base = price + existing_discount if existing_discount > ZERO else price

    custom = to_decimal(negotiated_custom, default=None)
    negotiated = custom if custom is not None and custom > ZERO else None

    live = condition_terms or ConditionTerms()
    frozen = snapshot_terms or ConditionTerms()
    discount_pct = _first_present(frozen.discount_percentage, live.discount_percentage)
    advance_pct = _first_present(frozen.advance_percentage, live.advance_percentage)
    advance_type = _first_present(frozen.advance_type, live.advance_type)
    advance_amount = _first_present(frozen.advance_amount, live.advance_amount)
    discount_pct = to_decimal(discount_pct) if discount_pct is not None else None

    comparison = real_base
    savings = None
    if negotiated is not None:
        total = negotiated
        applied = ZERO
        applied_pct = None
        source = SOURCE_NEGOTIATED
        if negotiated_original is not None:
            comparison = to_decimal(negotiated_original)
        savings = comparison - negotiated
    elif discount_pct is not None and discount_pct > ZERO:
        applied = percentage_of(real_base, discount_pct)
        total = real_base - applied
        applied_pct = discount_pct
        source = SOURCE_PERCENTAGE
    elif existing_discount > ZERO:
        total = price
        applied = existing_discount
        applied_pct = None
        source = SOURCE_AMOUNT
    else:
        total = price
        applied = ZERO
        applied_pct = None
        source = SOURCE_NONE

    advance = ZERO
    normalized_type = str(advance_type).lower() if advance_type else None
    if normalized_type in _PERCENTAGE_TYPES and advance_pct is not None and to_decimal(advance_pct) > ZERO:
        advance = percentage_of(total, advance_pct)
    elif normalized_type in _FIXED_TYPES and advance_amount is not None and to_decimal(advance_amount) > ZERO:
        advance = to_decimal(advance_amount)

    return QuotationTotals(
        total_payable=round_currency(total),
        base_price=round_currency(price),
        real_base_price=round_currency(real_base),
        discount_applied=round_currency(applied),
        discount_percentage=applied_pct,
        source=source,
        advance=round_currency(advance),
        deferred=round_currency(total - advance),
        comparison_price=round_currency(comparison),
        savings=round_currency(savings) if savings is not None else None,
    )


def totals_for_quotation(quotation) -> QuotationTotals:
    """Totals of a persisted quotation, preferring its frozen terms."""
    live = ConditionTerms.from_condition(quotation.negotiation_condition or quotation.commercial_condition)
    frozen = ConditionTerms(
        discount_percentage=quotation.condition_discount_percentage_snapshot,
        advance_type=quotation.condition_advance_type_snapshot,
        advance_percentage=quotation.condition_advance_percentage_snapshot,
        advance_amount=quotation.condition_advance_amount_snapshot,
    )
    return calculate_quotation_totals(
        price=quotation.price,
        discount=quotation.discount,
        negotiated_original=quotation.negotiation_original_price,
        negotiated_custom=quotation.negotiation_custom_price,
        condition_terms=live,
        snapshot_terms=frozen,
    )


def terms_from_mapping(data: Optional[Mapping[str, Any]]) -> Optional[ConditionTerms]:
    if not data:
        return None
    return ConditionTerms(
        discount_percentage=data.get('discount_percentage'),
        advance_type=data.get('advance_type'),
        advance_percentage=data.get('advance_percentage'),
        advance_amount=data.get('advance_amount'),
    )
