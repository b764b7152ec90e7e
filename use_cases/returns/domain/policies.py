"""
Pricing and Settlement Policies - Pure Business Rules.

These policies encapsulate the rules for pricing a return pickup and for
settling it at delivery time. They have NO dependencies on databases or
external services. All data needed for evaluation is passed in as
parameters, including the PricingConfig in force.
"""

import json
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from core.domain import (
    PolicyEngine,
    PolicyDecision,
    PolicyResult,
    InvalidRequestError,
    Validator,
    ValidationError,
    to_decimal,
    to_money,
)

from .models import GiftCardDeclaration, OrderStatus, RefundMethod


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class PricingTier:
    """A value band: lower bound inclusive, upper bound exclusive."""
    name: str
    lower_bound: Decimal
    upper_bound: Optional[Decimal]
    base_company_fee: Decimal
    driver_size_bonus: Decimal

    def contains(self, value: Decimal) -> bool:
        if value < self.lower_bound:
            return False
        return self.upper_bound is None or value < self.upper_bound

    @property
    def label(self) -> str:
        if self.upper_bound is None:
            return f"{self.name} (${self.lower_bound:,.0f}+)"
        return f"{self.name} (${self.lower_bound:,.0f}-${self.upper_bound - 1:,.0f})"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingTier":
        upper = data.get("upper_bound")
        return cls(
            name=data["name"],
            lower_bound=to_decimal(data["lower_bound"]),
            upper_bound=None if upper is None else to_decimal(upper),
            base_company_fee=to_money(data["base_company_fee"]),
            driver_size_bonus=to_money(data["driver_size_bonus"]),
        )


DEFAULT_PRICING_TIERS: Tuple[PricingTier, ...] = (
    PricingTier("Standard", Decimal("0"), Decimal("50"), Decimal("0.99"), Decimal("0.00")),
    PricingTier("Express", Decimal("50"), Decimal("100"), Decimal("1.49"), Decimal("0.50")),
    PricingTier("Basic+", Decimal("100"), Decimal("500"), Decimal("2.99"), Decimal("1.00")),
    PricingTier("Value", Decimal("500"), Decimal("1000"), Decimal("4.99"), Decimal("1.50")),
    PricingTier("Enhanced", Decimal("1000"), Decimal("5000"), Decimal("8.99"), Decimal("3.00")),
    PricingTier("Premium", Decimal("5000"), Decimal("10000"), Decimal("15.99"), Decimal("5.00")),
    PricingTier("Ultra Premium", Decimal("10000"), None, Decimal("25.99"), Decimal("8.00")),
)


@dataclass(frozen=True)
class PricingConfig:
    """
    Versioned pricing configuration.

    Every quote records the version it was priced with, so a change to any
    rate is a new version rather than an in-place edit.

    Attributes:
        version: Identifier recorded on every FareBreakdown
        tiers: Ordered value bands covering [0, infinity)
        per_mile_rate: Driver pay per mile
        per_minute_rate: Driver pay per estimated minute
        rush_surcharge: Flat driver bonus for rush orders
        additional_item_factor: Share of tier fee and size bonus charged
            for each item after the first (0..1)
        service_fee_rate: Company margin on top of driver pay and tier fee
        gift_card_delivery_fee: Fee for the gift-card return leg
    """
    version: str = "2024-01-standard"
    tiers: Tuple[PricingTier, ...] = DEFAULT_PRICING_TIERS
    per_mile_rate: Decimal = Decimal("0.35")
    per_minute_rate: Decimal = Decimal("0.15")
    rush_surcharge: Decimal = Decimal("3.00")
    additional_item_factor: Decimal = Decimal("0.50")
    service_fee_rate: Decimal = Decimal("0.00")
    gift_card_delivery_fee: Decimal = Decimal("3.99")

    def validate(self) -> List[ValidationError]:
        errors = []

        for name in ("per_mile_rate", "per_minute_rate", "rush_surcharge",
                     "service_fee_rate", "gift_card_delivery_fee"):
            if getattr(self, name) < 0:
                errors.append(ValidationError(name, f"{name} must not be negative", "min_value"))

        if not Decimal("0") <= self.additional_item_factor <= Decimal("1"):
            errors.append(ValidationError(
                "additional_item_factor",
                "additional_item_factor must be between 0 and 1",
                "out_of_range",
            ))

        if not self.tiers:
            errors.append(ValidationError("tiers", "At least one tier is required", "min_length"))
            return errors

        if self.tiers[0].lower_bound != 0:
            errors.append(ValidationError("tiers[0].lower_bound", "First tier must start at 0", "gap"))

        for i, tier in enumerate(self.tiers):
            if tier.base_company_fee < 0 or tier.driver_size_bonus < 0:
                errors.append(ValidationError(f"tiers[{i}]", "Tier amounts must not be negative", "min_value"))
            is_last = i == len(self.tiers) - 1
            if is_last:
                if tier.upper_bound is not None:
                    errors.append(ValidationError(
                        f"tiers[{i}].upper_bound", "Last tier must be unbounded", "bounded_top",
                    ))
                continue
            nxt = self.tiers[i + 1]
            if tier.upper_bound is None or tier.upper_bound <= tier.lower_bound:
                errors.append(ValidationError(
                    f"tiers[{i}].upper_bound", "Tier upper bound must exceed its lower bound", "invalid_range",
                ))
            elif tier.upper_bound != nxt.lower_bound:
                errors.append(ValidationError(
                    f"tiers[{i + 1}].lower_bound",
                    f"Tier must start where '{tier.name}' ends ({tier.upper_bound})",
                    "gap_or_overlap",
                ))
            if nxt.base_company_fee < tier.base_company_fee or nxt.driver_size_bonus < tier.driver_size_bonus:
                errors.append(ValidationError(
                    f"tiers[{i + 1}]",
                    f"Tier '{nxt.name}' must not be cheaper than '{tier.name}'",
                    "non_monotonic",
                ))

        return errors

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingConfig":
        defaults = cls()
        tiers = data.get("tiers")
        return cls(
            version=str(data.get("version", defaults.version)),
            tiers=tuple(PricingTier.from_dict(t) for t in tiers) if tiers else defaults.tiers,
            per_mile_rate=to_decimal(data.get("per_mile_rate", defaults.per_mile_rate)),
            per_minute_rate=to_decimal(data.get("per_minute_rate", defaults.per_minute_rate)),
            rush_surcharge=to_money(data.get("rush_surcharge", defaults.rush_surcharge)),
            additional_item_factor=to_decimal(data.get("additional_item_factor", defaults.additional_item_factor)),
            service_fee_rate=to_decimal(data.get("service_fee_rate", defaults.service_fee_rate)),
            gift_card_delivery_fee=to_money(data.get("gift_card_delivery_fee", defaults.gift_card_delivery_fee)),
        )


DEFAULT_PRICING_CONFIG = PricingConfig()


def load_pricing_config(path: Union[str, Path]) -> PricingConfig:
    """Load and validate a PricingConfig from a JSON file."""
    with open(path, "r", encoding="utf-8") as fh:
        config = PricingConfig.from_dict(json.load(fh))
    errors = config.validate()
    if errors:
        raise InvalidRequestError(errors)
    return config


# Order states from which a driver may complete the delivery
COMPLETABLE_STATUSES = frozenset({
    OrderStatus.PICKED_UP,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
})

DEFAULT_REFUND_REASON = "return_delivered"


# =============================================================================
# POLICIES
# =============================================================================

def find_tier(tiers: Sequence[PricingTier], item_value: Decimal) -> PricingTier:
    """Return the single tier whose band contains item_value."""
    for tier in tiers:
        if tier.contains(item_value):
            return tier
    raise ValueError(f"No pricing tier covers item value {item_value}")


class PricingTierPolicy(PolicyEngine):
    """
    Classifies a declared item value into a pricing tier.

    Context required:
        - item_value: Declared value of the returned goods (>= 0)
    """

    def __init__(self, config: PricingConfig = DEFAULT_PRICING_CONFIG):
        self.config = config

    def tier_for(self, item_value: Decimal) -> PricingTier:
        return find_tier(self.config.tiers, to_decimal(item_value))

    def evaluate(self, context: Dict[str, Any]) -> PolicyDecision:
        item_value = to_decimal(context.get("item_value", 0))
        if item_value < 0:
            return PolicyDecision(
                result=PolicyResult.DENIED,
                reason="Item value must not be negative",
                metadata={"item_value": item_value},
            )

        tier = self.tier_for(item_value)
        return PolicyDecision(
            result=PolicyResult.APPROVED,
            reason=f"Item value ${item_value:,.2f} is priced as {tier.label}",
            metadata={
                "tier": tier.name,
                "base_company_fee": tier.base_company_fee,
                "driver_size_bonus": tier.driver_size_bonus,
            },
        )


class CompletionEligibilityPolicy(PolicyEngine):
    """
    Checks whether an order is in a state that allows completion.

    Context required:
        - status: Current OrderStatus (or its string value)
    """

    def evaluate(self, context: Dict[str, Any]) -> PolicyDecision:
        status = OrderStatus(context.get("status", OrderStatus.CREATED))

        if status == OrderStatus.COMPLETED:
            return PolicyDecision(
                result=PolicyResult.DENIED,
                reason="Order already completed",
                metadata={"status": status.value},
            )

        if status not in COMPLETABLE_STATUSES:
            return PolicyDecision(
                result=PolicyResult.DENIED,
                reason=f"Order status '{status.value}' cannot be completed",
                metadata={"status": status.value},
            )

        return PolicyDecision(
            result=PolicyResult.APPROVED,
            reason="Order can be completed",
            metadata={"status": status.value},
        )


# =============================================================================
# VALIDATORS
# =============================================================================

def _as_number(value: Any) -> Optional[Decimal]:
    """Decimal for a finite number, None for anything else (text, NaN, infinity)."""
    if isinstance(value, bool):
        return None
    try:
        number = to_decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    return number if number.is_finite() else None


class FareInputValidator(Validator):
    """
    Validates fare inputs. Negative values are rejected, never clamped.
    """

    NON_NEGATIVE_FIELDS = [
        "item_value",
        "distance_miles",
        "estimated_minutes",
        "tip",
    ]

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []

        for name in self.NON_NEGATIVE_FIELDS:
            value = data.get(name)
            if value is None:
                errors.append(ValidationError(name, f"{name} is required", "required"))
                continue
            number = _as_number(value)
            if number is None:
                errors.append(ValidationError(name, f"{name} must be a number", "invalid_number"))
            elif number < 0:
                errors.append(ValidationError(name, f"{name} must not be negative", "min_value"))

        count = _as_number(data.get("number_of_items"))
        if count is None or count != count.to_integral_value() or count < 1:
            errors.append(ValidationError(
                "number_of_items",
                "number_of_items must be a whole number of at least 1",
                "min_value",
            ))

        return errors


class CompletionRequestValidator(Validator):
    """
    Validates what the driver submits when completing a delivery.

    Data required:
        - delivery_notes: Free text from the driver
        - photos: Sequence of uploaded photo references
        - refund_method: RefundMethod or its string value
        - custom_refund_amount: Optional Decimal
        - gift_card: Optional GiftCardDeclaration
        - order_total: Decimal price the customer was charged
    """

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []

        notes = data.get("delivery_notes") or ""
        if not notes.strip():
            errors.append(ValidationError(
                field="delivery_notes",
                message="Delivery notes are required",
                code="required",
            ))

        method = data.get("refund_method")
        valid_methods = [m.value for m in RefundMethod]
        if method is not None and getattr(method, "value", method) not in valid_methods:
            errors.append(ValidationError(
                field="refund_method",
                message=f"Invalid refund method. Must be one of: {', '.join(valid_methods)}",
                code="invalid_choice",
            ))

        custom = data.get("custom_refund_amount")
        if custom is not None:
            total = to_money(data.get("order_total", 0))
            # Compare the amount that would be stored, not the raw input
            amount = _as_number(custom)
            if amount is not None:
                amount = to_money(amount)
            if amount is None or amount <= 0 or amount > total:
                errors.append(ValidationError(
                    field="custom_refund_amount",
                    message=f"Custom refund amount must be between 0 and {total}",
                    code="out_of_range",
                ))

        gift_card: Optional[GiftCardDeclaration] = data.get("gift_card")
        if gift_card is not None and gift_card.has_physical_gift_card:
            if not data.get("photos"):
                errors.append(ValidationError(
                    field="photos",
                    message="Photo of the gift card is required",
                    code="required",
                ))
            card_amount = _as_number(gift_card.card_amount)
            if card_amount is None or to_money(card_amount) <= 0:
                errors.append(ValidationError(
                    field="gift_card_amount",
                    message="Gift card amount must be greater than 0",
                    code="min_value",
                ))

        return errors


class GiftCardHandoffValidator(Validator):
    """Validates the proof submitted when a gift card reaches the customer."""

    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        errors = []
        if not data.get("photos"):
            errors.append(ValidationError(
                field="delivery_photos",
                message="Delivery photos are required",
                code="required",
            ))
        return errors
