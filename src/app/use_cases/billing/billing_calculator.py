"""Billing Calculator

Pure pricing rules: per-line amounts, subtotal, ACH auto-pay discount, card
processing fee and the clamped total. No I/O; identical inputs always give
identical results.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional, Sequence, Union

from src.domain.invoice_line import LineType
from src.domain.project import PaymentMethodType

Number = Union[Decimal, int, float, str]

ACH_DISCOUNT_DESCRIPTION = "ACH auto-pay discount"
PROCESSING_FEE_DESCRIPTION = "Card processing fee"


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves toward positive infinity (2.5 -> 3, -2.5 -> -2)"""
    return int((to_decimal(value) + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


@dataclass(frozen=True)
class DraftLine:
    """A line before pricing: quantity may be fractional, unit price may be negative"""

    line_type: LineType
    description: str
    quantity: Decimal
    unit_price_cents: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def pending_item_id(self) -> Optional[str]:
        return self.metadata.get("pending_item_id")


@dataclass(frozen=True)
class CalculatedLine:
    line_type: LineType
    description: str
    quantity: Decimal
    unit_price_cents: int
    amount_cents: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def pending_item_id(self) -> Optional[str]:
        return self.metadata.get("pending_item_id")


@dataclass(frozen=True)
class PricingPolicy:
    payment_method_type: PaymentMethodType
    auto_pay_enabled: bool = False
    ach_discount_cents: int = 0
    show_processing_fee_line: bool = True
    card_fee_rate: Decimal = Decimal("0.029")
    card_fee_fixed_cents: int = 30


@dataclass(frozen=True)
class CalculationResult:
    lines: List[CalculatedLine]
    subtotal_cents: int
    total_cents: int

    @property
    def processing_fee_cents(self) -> int:
        return sum(line.amount_cents for line in self.lines if line.line_type == LineType.PROCESSING_FEE)


def calculate_line(line: DraftLine) -> CalculatedLine:
    quantity = to_decimal(line.quantity)
    return CalculatedLine(
        line_type=line.line_type,
        description=line.description,
        quantity=quantity,
        unit_price_cents=line.unit_price_cents,
        amount_cents=round_half_up(quantity * line.unit_price_cents),
        metadata=dict(line.metadata),
    )


def calculate_processing_fee(subtotal_cents: int, policy: PricingPolicy) -> int:
    return round_half_up(Decimal(subtotal_cents) * to_decimal(policy.card_fee_rate)) + policy.card_fee_fixed_cents


def apply_payment_method_adjustments(
    base_lines: Sequence[DraftLine],
    policy: PricingPolicy,
) -> CalculationResult:
    """
    Price base lines and append payment-method adjustments

    Rules:
    1. amount_cents = round_half_up(quantity * unit_price_cents) per line
    2. subtotal = sum of base line amounts
    3. ACH with auto-pay and a positive discount appends a negative discount line
    4. Card with a positive subtotal appends a processing fee line
       (round(subtotal * rate) + fixed) when the fee line is shown
    5. total = max(0, subtotal + adjustments)

    Args:
        base_lines: Lines to price, in display order
        policy: Payment method and fee parameters

    Returns:
        CalculationResult with base lines followed by adjustment lines
    """
    lines = [calculate_line(line) for line in base_lines]
    subtotal_cents = sum(line.amount_cents for line in lines)
    adjustments: List[CalculatedLine] = []

    if (
        policy.payment_method_type == PaymentMethodType.ACH
        and policy.auto_pay_enabled
        and policy.ach_discount_cents > 0
    ):
        adjustments.append(
            CalculatedLine(
                line_type=LineType.PROJECT,
                description=ACH_DISCOUNT_DESCRIPTION,
                quantity=Decimal("1"),
                unit_price_cents=-policy.ach_discount_cents,
                amount_cents=-policy.ach_discount_cents,
                metadata={"adjustment": "ach_discount"},
            )
        )

    if (
        policy.show_processing_fee_line
        and policy.payment_method_type == PaymentMethodType.CARD
        and subtotal_cents > 0
    ):
        fee_cents = calculate_processing_fee(subtotal_cents, policy)
        adjustments.append(
            CalculatedLine(
                line_type=LineType.PROCESSING_FEE,
                description=PROCESSING_FEE_DESCRIPTION,
                quantity=Decimal("1"),
                unit_price_cents=fee_cents,
                amount_cents=fee_cents,
                metadata={"adjustment": "processing_fee"},
            )
        )

    total_cents = max(0, subtotal_cents + sum(line.amount_cents for line in adjustments))

    return CalculationResult(
        lines=lines + adjustments,
        subtotal_cents=subtotal_cents,
        total_cents=total_cents,
    )
