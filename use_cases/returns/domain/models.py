"""
Return Order Settlement Models.

Value objects and entities for pricing and settling a return pickup.
Upstream order payloads are resolved into an Order exactly once, in
Order.from_dict, so that pricing code never has to guess field names.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from core.domain import parse_datetime, to_decimal, to_money, utc_now


class OrderStatus(str, Enum):
    CREATED = "created"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class RefundMethod(str, Enum):
    ORIGINAL_PAYMENT = "original_payment"
    STORE_CREDIT = "store_credit"
    CASH = "cash"


class RefundStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    PENDING_APPROVAL = "pending_approval"
    FAILED = "failed"
    DENIED = "denied"


class GiftCardDeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"


# Upstream payloads have used several names for the same order facts.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "item_value": ("item_value", "itemValue", "declaredValue", "itemCost"),
    "number_of_items": ("number_of_items", "numberOfItems", "numberOfBoxes"),
    "distance_miles": ("distance_miles", "distanceMiles", "distance"),
    "estimated_minutes": ("estimated_minutes", "estimatedMinutes", "estimatedTime"),
    "is_rush": ("is_rush", "isRush"),
    "tip_amount": ("tip_amount", "tipAmount", "tip"),
    "total_price": ("total_price", "totalPrice"),
    "driver_id": ("driver_id", "driverId"),
    "customer_id": ("customer_id", "customerId", "userId"),
    "payment_intent_id": ("payment_intent_id", "paymentIntentId", "stripePaymentIntentId"),
    "driver_notes": ("driver_notes", "driverNotes"),
    "completed_at": ("completed_at", "completedAt"),
}


def _pick(data: Dict[str, Any], name: str, default: Any = None) -> Any:
    for key in FIELD_ALIASES.get(name, (name,)):
        value = data.get(key)
        if value is not None:
            return value
    return default


_TRUE_STRINGS = frozenset({"true", "1", "yes", "y", "on"})


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return bool(value)


def _money_or_none(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


@dataclass(frozen=True)
class Order:
    """A return pickup order, as far as pricing and settlement are concerned."""
    id: str
    item_value: Decimal = Decimal("0")
    number_of_items: int = 1
    distance_miles: Decimal = Decimal("0")
    estimated_minutes: Decimal = Decimal("0")
    is_rush: bool = False
    tip_amount: Decimal = Decimal("0")
    status: OrderStatus = OrderStatus.CREATED
    total_price: Optional[Decimal] = None
    driver_id: Optional[str] = None
    customer_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    driver_notes: Optional[str] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        total_price = _pick(data, "total_price")
        completed_at = _pick(data, "completed_at")
        driver_id = _pick(data, "driver_id")
        customer_id = _pick(data, "customer_id")
        return cls(
            id=str(data["id"]),
            item_value=to_decimal(_pick(data, "item_value", 0)),
            number_of_items=int(_pick(data, "number_of_items", 1)),
            distance_miles=to_decimal(_pick(data, "distance_miles", 0)),
            estimated_minutes=to_decimal(_pick(data, "estimated_minutes", 0)),
            is_rush=_to_bool(_pick(data, "is_rush", False)),
            tip_amount=to_decimal(_pick(data, "tip_amount", 0)),
            status=OrderStatus(data.get("status", OrderStatus.CREATED.value)),
            total_price=None if total_price is None else to_money(total_price),
            driver_id=None if driver_id is None else str(driver_id),
            customer_id=None if customer_id is None else str(customer_id),
            payment_intent_id=_pick(data, "payment_intent_id"),
            driver_notes=_pick(data, "driver_notes"),
            completed_at=completed_at if isinstance(completed_at, datetime) else parse_datetime(completed_at),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "id": self.id,
            "item_value": str(self.item_value),
            "number_of_items": self.number_of_items,
            "distance_miles": str(self.distance_miles),
            "estimated_minutes": str(self.estimated_minutes),
            "is_rush": self.is_rush,
            "tip_amount": str(self.tip_amount),
            "status": self.status.value,
            "total_price": _money_or_none(self.total_price),
            "driver_id": self.driver_id,
            "customer_id": self.customer_id,
            "payment_intent_id": self.payment_intent_id,
            "driver_notes": self.driver_notes,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass(frozen=True)
class FareBreakdown:
    """
    Itemized price of an order.

    ``total_price`` is what the customer is charged before tip. The tip is
    carried separately and passes through to the driver in full.
    """
    tier_name: str
    driver_distance_pay: Decimal
    driver_time_pay: Decimal
    driver_size_bonus: Decimal
    driver_rush_bonus: Decimal
    tip: Decimal
    driver_total_earning: Decimal
    tier_fee: Decimal
    service_fee: Decimal
    company_revenue: Decimal
    total_price: Decimal
    pricing_version: str

    @property
    def customer_charge(self) -> Decimal:
        """Total price plus tip."""
        return self.total_price + self.tip

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier_name": self.tier_name,
            "driver_distance_pay": self.driver_distance_pay,
            "driver_time_pay": self.driver_time_pay,
            "driver_size_bonus": self.driver_size_bonus,
            "driver_rush_bonus": self.driver_rush_bonus,
            "tip": self.tip,
            "driver_total_earning": self.driver_total_earning,
            "tier_fee": self.tier_fee,
            "service_fee": self.service_fee,
            "company_revenue": self.company_revenue,
            "total_price": self.total_price,
            "customer_charge": self.customer_charge,
            "pricing_version": self.pricing_version,
        }


@dataclass(frozen=True)
class GiftCardDeclaration:
    """What the driver reports about a retailer-issued physical gift card.

    Carries no fee. The delivery fee always comes from PricingConfig.
    """
    has_physical_gift_card: bool
    card_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class RefundTransaction:
    id: str
    order_id: str
    method: RefundMethod
    amount: Decimal
    reason: str
    is_custom_amount: bool = False
    status: RefundStatus = RefundStatus.PENDING
    processor_reference: Optional[str] = None
    failure_message: Optional[str] = None
    attempts: int = 0
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RefundTransaction":
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            method=RefundMethod(data["method"]),
            amount=to_money(data["amount"]),
            reason=data.get("reason", ""),
            is_custom_amount=bool(data.get("is_custom_amount", False)),
            status=RefundStatus(data.get("status", RefundStatus.PENDING.value)),
            processor_reference=data.get("processor_reference"),
            failure_message=data.get("failure_message"),
            attempts=int(data.get("attempts", 0)),
            notes=data.get("notes"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=parse_datetime(data.get("updated_at")) or utc_now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "method": self.method.value,
            "amount": str(self.amount),
            "reason": self.reason,
            "is_custom_amount": self.is_custom_amount,
            "status": self.status.value,
            "processor_reference": self.processor_reference,
            "failure_message": self.failure_message,
            "attempts": self.attempts,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class GiftCardDelivery:
    """Second delivery leg: bringing a retailer gift card back to the customer."""
    id: str
    order_id: str
    card_amount: Decimal
    delivery_fee: Decimal
    photo_evidence: Tuple[str, ...]
    driver_id: Optional[str] = None
    status: GiftCardDeliveryStatus = GiftCardDeliveryStatus.PENDING
    handoff_photos: Tuple[str, ...] = ()
    handoff_notes: Optional[str] = None
    customer_signature: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    delivered_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GiftCardDelivery":
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            card_amount=to_money(data["card_amount"]),
            delivery_fee=to_money(data["delivery_fee"]),
            photo_evidence=tuple(data.get("photo_evidence") or ()),
            driver_id=data.get("driver_id"),
            status=GiftCardDeliveryStatus(data.get("status", GiftCardDeliveryStatus.PENDING.value)),
            handoff_photos=tuple(data.get("handoff_photos") or ()),
            handoff_notes=data.get("handoff_notes"),
            customer_signature=data.get("customer_signature"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            delivered_at=parse_datetime(data.get("delivered_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "card_amount": str(self.card_amount),
            "delivery_fee": str(self.delivery_fee),
            "photo_evidence": list(self.photo_evidence),
            "driver_id": self.driver_id,
            "status": self.status.value,
            "handoff_photos": list(self.handoff_photos),
            "handoff_notes": self.handoff_notes,
            "customer_signature": self.customer_signature,
            "created_at": self.created_at.isoformat(),
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
        }
