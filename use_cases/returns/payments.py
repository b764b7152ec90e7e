"""
Refund gateways.

Original-payment refunds are issued through Stripe against the payment
intent that charged the customer. Store credit and cash refunds never
reach a gateway.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import stripe

from .domain.models import Order, RefundStatus, RefundTransaction

logger = logging.getLogger(__name__)


class RefundGatewayError(Exception):
    """The payment processor did not accept the refund."""


@dataclass
class RefundReceipt:
    reference: str
    status: RefundStatus = RefundStatus.PROCESSING


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value())


class RefundGateway(ABC):
    """Issues a refund to the customer's original payment instrument."""

    @abstractmethod
    def issue_refund(self, refund: RefundTransaction, order: Order) -> RefundReceipt:
        """
        Ask the processor to refund ``refund.amount``.

        Raises:
            RefundGatewayError: If the processor rejects or cannot be reached
        """
        pass


class StripeRefundGateway(RefundGateway):
    """Refunds through Stripe's Refund API."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def issue_refund(self, refund: RefundTransaction, order: Order) -> RefundReceipt:
        if not order.payment_intent_id:
            raise RefundGatewayError(f"Order {order.id} has no payment intent to refund")

        try:
            result = stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=order.payment_intent_id,
                amount=to_cents(refund.amount),
                metadata={
                    "order_id": order.id,
                    "refund_id": refund.id,
                    "refund_reason": refund.reason,
                    "refund_method": refund.method.value,
                },
                idempotency_key=f"{refund.id}-{refund.attempts}",
            )
        except stripe.StripeError as e:
            raise RefundGatewayError(str(e.user_message or e)) from e

        logger.info(f"Stripe refund {result.id} created for order {order.id}")
        status = RefundStatus.COMPLETED if result.status == "succeeded" else RefundStatus.PROCESSING
        return RefundReceipt(reference=result.id, status=status)


class ManualRefundGateway(RefundGateway):
    """Used when no processor is configured; refunds are left for an admin."""

    def issue_refund(self, refund: RefundTransaction, order: Order) -> RefundReceipt:
        raise RefundGatewayError("No payment processor configured - admin will process manually")


def build_refund_gateway(stripe_secret_key: Optional[str]) -> RefundGateway:
    if stripe_secret_key:
        return StripeRefundGateway(stripe_secret_key)
    logger.warning("STRIPE_SECRET_KEY not set; original-payment refunds need manual processing")
    return ManualRefundGateway()
