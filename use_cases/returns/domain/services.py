"""
Domain Services - Pricing and Settlement Operations.

These services orchestrate business logic without I/O dependencies.
They use policies for decisions and work with pure data structures.
"""

import dataclasses
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Union
import uuid

from core.domain import (
    ConflictError,
    DomainEvent,
    DomainService,
    Number,
    to_decimal,
    to_money,
    utc_now,
)

from .models import (
    FareBreakdown,
    GiftCardDeclaration,
    GiftCardDelivery,
    GiftCardDeliveryStatus,
    Order,
    OrderStatus,
    RefundMethod,
    RefundStatus,
    RefundTransaction,
)
from .policies import (
    CompletionEligibilityPolicy,
    CompletionRequestValidator,
    DEFAULT_PRICING_CONFIG,
    DEFAULT_REFUND_REASON,
    FareInputValidator,
    GiftCardHandoffValidator,
    PricingConfig,
    PricingTierPolicy,
)


ZERO = Decimal("0.00")


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


class FareCalculator(DomainService):
    """
    Prices a return pickup and splits it between driver and company.

    This is pure business logic with no I/O, so it is safe to call on every
    keystroke of a booking form.
    """

    def __init__(self, config: PricingConfig = DEFAULT_PRICING_CONFIG):
        self.config = config
        self.tier_policy = PricingTierPolicy(config)
        self.validator = FareInputValidator()

    def execute(
        self,
        item_value: Number,
        number_of_items: int = 1,
        distance_miles: Number = 0,
        estimated_minutes: Number = 0,
        is_rush: bool = False,
        tip: Number = 0,
    ) -> FareBreakdown:
        """
        Calculate the fare for a return.

        Args:
            item_value: Declared value of the returned goods
            number_of_items: Items picked up (at least 1)
            distance_miles: Route distance
            estimated_minutes: Estimated route duration
            is_rush: Same-day/rush service
            tip: Customer tip, passed through to the driver in full

        Returns:
            FareBreakdown with driver and company shares

        Raises:
            InvalidRequestError: If any input is out of range
        """
        self.validator.check({
            "item_value": item_value,
            "number_of_items": number_of_items,
            "distance_miles": distance_miles,
            "estimated_minutes": estimated_minutes,
            "tip": tip,
        })

        config = self.config
        tier = self.tier_policy.tier_for(to_decimal(item_value))

        # Items after the first share handling overhead with it
        multiplier = 1 + config.additional_item_factor * (int(to_decimal(number_of_items)) - 1)

        distance_pay = to_money(to_decimal(distance_miles) * config.per_mile_rate)
        time_pay = to_money(to_decimal(estimated_minutes) * config.per_minute_rate)
        size_bonus = to_money(tier.driver_size_bonus * multiplier)
        rush_bonus = to_money(config.rush_surcharge) if is_rush else ZERO
        tip_amount = to_money(tip)

        driver_pay = distance_pay + time_pay + size_bonus + rush_bonus

        tier_fee = to_money(tier.base_company_fee * multiplier)
        service_fee = to_money((driver_pay + tier_fee) * config.service_fee_rate)
        company_revenue = tier_fee + service_fee

        return FareBreakdown(
            tier_name=tier.name,
            driver_distance_pay=distance_pay,
            driver_time_pay=time_pay,
            driver_size_bonus=size_bonus,
            driver_rush_bonus=rush_bonus,
            tip=tip_amount,
            driver_total_earning=driver_pay + tip_amount,
            tier_fee=tier_fee,
            service_fee=service_fee,
            company_revenue=company_revenue,
            total_price=driver_pay + company_revenue,
            pricing_version=config.version,
        )

    def quote(self, order: Order) -> FareBreakdown:
        """Price a stored order from its own facts."""
        return self.execute(
            item_value=order.item_value,
            number_of_items=order.number_of_items,
            distance_miles=order.distance_miles,
            estimated_minutes=order.estimated_minutes,
            is_rush=order.is_rush,
            tip=order.tip_amount,
        )


def compute_fare(
    item_value: Number,
    number_of_items: int = 1,
    distance_miles: Number = 0,
    estimated_minutes: Number = 0,
    is_rush: bool = False,
    tip: Number = 0,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> FareBreakdown:
    """Shortcut for FareCalculator(config).execute(...)."""
    return FareCalculator(config).execute(
        item_value, number_of_items, distance_miles, estimated_minutes, is_rush, tip,
    )


@dataclass
class CompletionResult:
    """Everything a completion decides, ready to be persisted."""
    order: Order
    refund: RefundTransaction
    order_total: Decimal
    gift_card: Optional[GiftCardDelivery] = None
    events: List[DomainEvent] = field(default_factory=list)


class CompletionResolver(DomainService):
    """
    Settles an order at delivery time.

    This service:
    1. Checks the order can still be completed
    2. Validates the driver's submission
    3. Decides the refund amount and method
    4. Creates the gift-card delivery leg when one was declared
    5. Returns the completed order (nothing is written here)
    """

    def __init__(self, config: PricingConfig = DEFAULT_PRICING_CONFIG):
        self.config = config
        self.fare_calculator = FareCalculator(config)
        self.eligibility_policy = CompletionEligibilityPolicy()
        self.validator = CompletionRequestValidator()

    def order_total(self, order: Order) -> Decimal:
        """The price the customer was charged; re-quoted if never stored."""
        if order.total_price is not None:
            return order.total_price
        return self.fare_calculator.quote(order).total_price

    def execute(
        self,
        order: Order,
        delivery_notes: str,
        photos: Sequence[str] = (),
        refund_method: Union[RefundMethod, str, None] = RefundMethod.ORIGINAL_PAYMENT,
        custom_refund_amount: Optional[Number] = None,
        gift_card: Optional[GiftCardDeclaration] = None,
        refund_reason: str = DEFAULT_REFUND_REASON,
    ) -> CompletionResult:
        """
        Resolve the settlement of a delivered return.

        Raises:
            ConflictError: If the order is already completed or not deliverable
            InvalidRequestError: If the submission is incomplete; lists
                every missing or invalid field
        """
        decision = self.eligibility_policy.evaluate({"status": order.status})
        if decision.is_denied:
            raise ConflictError(decision.reason)

        total = self.order_total(order)
        self.validator.check({
            "delivery_notes": delivery_notes,
            "photos": list(photos),
            "refund_method": refund_method,
            "custom_refund_amount": custom_refund_amount,
            "gift_card": gift_card,
            "order_total": total,
        })

        method = RefundMethod(refund_method or RefundMethod.ORIGINAL_PAYMENT)
        is_custom = custom_refund_amount is not None
        amount = to_money(custom_refund_amount) if is_custom else total

        now = utc_now()
        refund = RefundTransaction(
            id=_new_id("RFD"),
            order_id=order.id,
            method=method,
            amount=amount,
            reason=refund_reason or DEFAULT_REFUND_REASON,
            is_custom_amount=is_custom,
            status=RefundStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

        completed = dataclasses.replace(
            order,
            status=OrderStatus.COMPLETED,
            total_price=total,
            driver_notes=delivery_notes.strip(),
            completed_at=now,
        )

        events = [
            DomainEvent("order.completed", now, {"order_id": order.id, "driver_id": order.driver_id}),
            DomainEvent("refund.requested", now, {
                "order_id": order.id,
                "refund_id": refund.id,
                "amount": str(amount),
                "method": method.value,
            }),
        ]

        delivery = None
        if gift_card is not None and gift_card.has_physical_gift_card:
            delivery = GiftCardDelivery(
                id=_new_id("GCD"),
                order_id=order.id,
                driver_id=order.driver_id,
                card_amount=to_money(gift_card.card_amount),
                delivery_fee=self.config.gift_card_delivery_fee,
                photo_evidence=tuple(photos),
                status=GiftCardDeliveryStatus.PENDING,
                created_at=now,
            )
            events.append(DomainEvent("gift_card_delivery.scheduled", now, {
                "order_id": order.id,
                "gift_card_delivery_id": delivery.id,
                "delivery_fee": str(delivery.delivery_fee),
            }))

        return CompletionResult(
            order=completed,
            refund=refund,
            order_total=total,
            gift_card=delivery,
            events=events,
        )


def resolve_completion(
    order: Order,
    delivery_notes: str,
    photos: Sequence[str] = (),
    refund_method: Union[RefundMethod, str, None] = RefundMethod.ORIGINAL_PAYMENT,
    custom_refund_amount: Optional[Number] = None,
    gift_card: Optional[GiftCardDeclaration] = None,
    refund_reason: str = DEFAULT_REFUND_REASON,
    config: PricingConfig = DEFAULT_PRICING_CONFIG,
) -> CompletionResult:
    """Shortcut for CompletionResolver(config).execute(...)."""
    return CompletionResolver(config).execute(
        order,
        delivery_notes,
        photos=photos,
        refund_method=refund_method,
        custom_refund_amount=custom_refund_amount,
        gift_card=gift_card,
        refund_reason=refund_reason,
    )


class GiftCardHandoffService(DomainService):
    """Marks a pending gift-card delivery as handed to the customer."""

    def __init__(self):
        self.validator = GiftCardHandoffValidator()

    def execute(
        self,
        delivery: GiftCardDelivery,
        photos: Sequence[str],
        notes: Optional[str] = None,
        signature: Optional[str] = None,
    ) -> GiftCardDelivery:
        if delivery.status != GiftCardDeliveryStatus.PENDING:
            raise ConflictError("Gift card already delivered")

        self.validator.check({"photos": list(photos)})

        return dataclasses.replace(
            delivery,
            status=GiftCardDeliveryStatus.DELIVERED,
            handoff_photos=tuple(photos),
            handoff_notes=notes,
            customer_signature=signature,
            delivered_at=utc_now(),
        )
