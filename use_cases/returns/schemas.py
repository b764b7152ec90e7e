"""
API request/response models for the settlement endpoints.

Bodies are camelCase to match the driver app and booking form payloads.
Unknown request fields are ignored, which is how a client-sent
``giftCardDeliveryFee`` is dropped before it can reach the domain.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from .domain.models import (
    FareBreakdown,
    GiftCardDeclaration,
    GiftCardDelivery,
    Order,
    RefundTransaction,
)
from .domain.policies import DEFAULT_REFUND_REASON
from .workflow import CompletionCommand, CompletionOutcome

# Photo reference recorded when the app reports an upload without URLs
DRIVER_APP_UPLOAD = "driver-app-upload"

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# =============================================================================
# REQUESTS
# =============================================================================

class FareQuoteRequest(CamelModel):
    item_value: Decimal
    number_of_items: int = 1
    distance_miles: Decimal = Decimal("0")
    estimated_minutes: Decimal = Decimal("0")
    is_rush: bool = False
    tip: Decimal = Decimal("0")


class CompleteOrderRequest(CamelModel):
    """Body of POST /api/driver/orders/{id}/complete."""
    delivery_notes: str = ""
    photos_uploaded: bool = False
    photo_urls: List[str] = Field(default_factory=list)
    refund_method: Optional[str] = None
    custom_refund_amount: Optional[Decimal] = None
    refund_reason: str = DEFAULT_REFUND_REASON
    has_physical_gift_card: bool = False
    gift_card_amount: Optional[Decimal] = None

    def photo_evidence(self) -> List[str]:
        if self.photo_urls:
            return list(self.photo_urls)
        if self.photos_uploaded:
            return [DRIVER_APP_UPLOAD]
        return []

    def to_command(self) -> CompletionCommand:
        gift_card = None
        if self.has_physical_gift_card:
            gift_card = GiftCardDeclaration(
                has_physical_gift_card=True,
                card_amount=self.gift_card_amount,
            )
        return CompletionCommand(
            delivery_notes=self.delivery_notes,
            photos=self.photo_evidence(),
            refund_method=self.refund_method,
            custom_refund_amount=self.custom_refund_amount,
            refund_reason=self.refund_reason or DEFAULT_REFUND_REASON,
            gift_card=gift_card,
        )


class GiftCardHandoffRequest(CamelModel):
    delivery_notes: Optional[str] = None
    delivery_photos: List[str] = Field(default_factory=list)
    customer_signature: Optional[str] = None


class CashRefundReview(CamelModel):
    approved: bool
    admin_notes: Optional[str] = None


# =============================================================================
# RESPONSES
# =============================================================================

class FareBreakdownResponse(CamelModel):
    tier_name: str
    driver_distance_pay: Money
    driver_time_pay: Money
    driver_size_bonus: Money
    driver_rush_bonus: Money
    tip: Money
    driver_total_earning: Money
    tier_fee: Money
    service_fee: Money
    company_revenue: Money
    total_price: Money
    customer_charge: Money
    pricing_version: str

    @classmethod
    def from_domain(cls, fare: FareBreakdown) -> "FareBreakdownResponse":
        return cls(**fare.to_dict())


class OrderResponse(CamelModel):
    id: str
    status: str
    total_price: Optional[Money] = None
    driver_id: Optional[str] = None
    driver_notes: Optional[str] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderResponse":
        return cls(
            id=order.id,
            status=order.status.value,
            total_price=order.total_price,
            driver_id=order.driver_id,
            driver_notes=order.driver_notes,
            completed_at=order.completed_at,
        )


class RefundResponse(CamelModel):
    id: str
    order_id: str
    method: str
    amount: Money
    reason: str
    is_custom_amount: bool
    status: str
    processor_reference: Optional[str] = None
    failure_message: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_domain(cls, refund: RefundTransaction) -> "RefundResponse":
        return cls(
            id=refund.id,
            order_id=refund.order_id,
            method=refund.method.value,
            amount=refund.amount,
            reason=refund.reason,
            is_custom_amount=refund.is_custom_amount,
            status=refund.status.value,
            processor_reference=refund.processor_reference,
            failure_message=refund.failure_message,
            notes=refund.notes,
        )


class GiftCardDeliveryResponse(CamelModel):
    id: str
    order_id: str
    driver_id: Optional[str] = None
    card_amount: Money
    delivery_fee: Money
    status: str
    photo_count: int
    delivered_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, delivery: GiftCardDelivery) -> "GiftCardDeliveryResponse":
        return cls(
            id=delivery.id,
            order_id=delivery.order_id,
            driver_id=delivery.driver_id,
            card_amount=delivery.card_amount,
            delivery_fee=delivery.delivery_fee,
            status=delivery.status.value,
            photo_count=len(delivery.photo_evidence),
            delivered_at=delivery.delivered_at,
        )


class CompletionResponse(CamelModel):
    success: bool = True
    message: str
    order: OrderResponse
    refund: RefundResponse
    gift_card_delivery: Optional[GiftCardDeliveryResponse] = None

    @classmethod
    def from_outcome(cls, outcome: CompletionOutcome) -> "CompletionResponse":
        return cls(
            message=outcome.message,
            order=OrderResponse.from_domain(outcome.order),
            refund=RefundResponse.from_domain(outcome.refund),
            gift_card_delivery=(
                GiftCardDeliveryResponse.from_domain(outcome.gift_card)
                if outcome.gift_card else None
            ),
        )
