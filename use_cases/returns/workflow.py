"""
Settlement Workflow.

Wires the pricing and settlement domain services to repositories and the
refund gateway. This is the only layer that writes: the domain services
decide, the workflow persists their decisions.

Completion is at-most-once per order. The pending refund and any gift-card
record are written first, then the order row is moved to ``completed`` with
a status-guarded conditional update. A request that loses that race, or
fails before it, removes its own records, so exactly one refund survives
and a failed attempt can simply be retried.
"""

import dataclasses
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from core.data import Repository
from core.domain import (
    ConflictError,
    NotAuthorizedError,
    NotFoundError,
    Number,
    utc_now,
)

from .domain.models import (
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
from .domain.policies import DEFAULT_PRICING_CONFIG, DEFAULT_REFUND_REASON, PricingConfig
from .domain.services import (
    CompletionResolver,
    CompletionResult,
    FareCalculator,
    GiftCardHandoffService,
)
from .payments import RefundGateway, RefundGatewayError

logger = logging.getLogger(__name__)

REFUND_FAILED_MESSAGE = "Refund failed - will retry"


@dataclass
class CompletionCommand:
    """A driver's completion submission, after boundary parsing."""
    delivery_notes: str
    photos: Sequence[str] = ()
    refund_method: Union[RefundMethod, str, None] = RefundMethod.ORIGINAL_PAYMENT
    custom_refund_amount: Optional[Decimal] = None
    refund_reason: str = DEFAULT_REFUND_REASON
    gift_card: Optional[GiftCardDeclaration] = None


@dataclass
class CompletionOutcome:
    order: Order
    refund: RefundTransaction
    gift_card: Optional[GiftCardDelivery]
    message: str


class SettlementWorkflow:
    """Quotes, completes and settles return orders."""

    def __init__(
        self,
        orders: Repository[Order],
        refunds: Repository[RefundTransaction],
        gift_cards: Repository[GiftCardDelivery],
        gateway: RefundGateway,
        config: PricingConfig = DEFAULT_PRICING_CONFIG,
    ):
        self.orders = orders
        self.refunds = refunds
        self.gift_cards = gift_cards
        self.gateway = gateway
        self.config = config
        self.fare_calculator = FareCalculator(config)
        self.resolver = CompletionResolver(config)
        self.handoff = GiftCardHandoffService()

    # =========================================================================
    # QUOTES
    # =========================================================================

    def quote(
        self,
        item_value: Number,
        number_of_items: int = 1,
        distance_miles: Number = 0,
        estimated_minutes: Number = 0,
        is_rush: bool = False,
        tip: Number = 0,
    ) -> FareBreakdown:
        return self.fare_calculator.execute(
            item_value, number_of_items, distance_miles, estimated_minutes, is_rush, tip,
        )

    def quote_order(self, order_id: str) -> FareBreakdown:
        return self.fare_calculator.quote(self._get_order(order_id))

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def complete_order(
        self,
        order_id: str,
        command: CompletionCommand,
        driver_id: Optional[str] = None,
    ) -> CompletionOutcome:
        """
        Complete a delivered return and settle its refund.

        Raises:
            NotFoundError: Unknown order
            NotAuthorizedError: Driver is not assigned to the order
            ConflictError: Order already completed (including a lost race)
            InvalidRequestError: Submission incomplete; nothing written
        """
        order = self._get_order(order_id)
        self._authorize(order.driver_id, driver_id)

        result = self.resolver.execute(
            order,
            command.delivery_notes,
            photos=command.photos,
            refund_method=command.refund_method,
            custom_refund_amount=command.custom_refund_amount,
            gift_card=command.gift_card,
            refund_reason=command.refund_reason,
        )

        # Settlement records go in first; the order flip is the commit point
        try:
            self.refunds.save(result.refund)
            if result.gift_card is not None:
                self.gift_cards.save(result.gift_card)
            committed = self.orders.save_if_status(result.order, [order.status])
        except Exception:
            logger.exception(f"Completion of order {order_id} failed before commit")
            self._discard(result)
            raise

        if not committed:
            self._discard(result)
            raise ConflictError("Order already completed")

        for event in result.events:
            logger.info(f"{event.event_type}: {event.data}")

        refund = self._settle_refund(result.refund, result.order)

        if refund.status == RefundStatus.FAILED:
            message = f"Order completed. {REFUND_FAILED_MESSAGE}"
        elif result.gift_card is not None:
            message = "Order completed. Gift card must be delivered to the customer"
        else:
            message = "Order completed successfully"

        logger.info(
            f"Order {order_id} completed by driver {driver_id or order.driver_id}: "
            f"refund {refund.id} {refund.method.value} ${refund.amount} {refund.status.value}"
        )
        return CompletionOutcome(
            order=result.order,
            refund=refund,
            gift_card=result.gift_card,
            message=message,
        )

    def _discard(self, result: CompletionResult) -> None:
        """Remove settlement records of a completion that did not commit."""
        self.refunds.delete(result.refund.id)
        if result.gift_card is not None:
            self.gift_cards.delete(result.gift_card.id)

    def _settle_refund(self, refund: RefundTransaction, order: Order) -> RefundTransaction:
        if refund.method == RefundMethod.STORE_CREDIT:
            settled = dataclasses.replace(refund, status=RefundStatus.COMPLETED, updated_at=utc_now())
            return self.refunds.save(settled)
        if refund.method == RefundMethod.CASH:
            settled = dataclasses.replace(
                refund,
                status=RefundStatus.PENDING_APPROVAL,
                notes="Cash refund requested by driver",
                updated_at=utc_now(),
            )
            return self.refunds.save(settled)
        return self._issue_refund(refund, order)

    def _issue_refund(self, refund: RefundTransaction, order: Order) -> RefundTransaction:
        attempt = dataclasses.replace(refund, attempts=refund.attempts + 1)
        try:
            receipt = self.gateway.issue_refund(attempt, order)
        except RefundGatewayError as e:
            logger.error(f"Refund {refund.id} for order {order.id} failed: {e}")
            failed = dataclasses.replace(
                attempt,
                status=RefundStatus.FAILED,
                failure_message=str(e),
                updated_at=utc_now(),
            )
            return self.refunds.save(failed)

        issued = dataclasses.replace(
            attempt,
            status=receipt.status,
            processor_reference=receipt.reference,
            failure_message=None,
            updated_at=utc_now(),
        )
        return self.refunds.save(issued)

    # =========================================================================
    # REFUND FOLLOW-UP
    # =========================================================================

    def refunds_for_order(self, order_id: str) -> List[RefundTransaction]:
        self._get_order(order_id)
        return self.refunds.find_all(order_id=order_id)

    def retry_refund(self, order_id: str) -> RefundTransaction:
        """
        Re-issue a failed refund, or settle one that was recorded at
        completion but never settled (still ``pending``).
        """
        order = self._get_order(order_id)
        if order.status != OrderStatus.COMPLETED:
            raise ConflictError("No failed refund to retry for this order")

        failed = self.refunds.find_all(order_id=order_id, status=RefundStatus.FAILED)
        if failed:
            refund = self._issue_refund(failed[0], order)
        else:
            stuck = self.refunds.find_all(order_id=order_id, status=RefundStatus.PENDING)
            if not stuck:
                raise ConflictError("No failed refund to retry for this order")
            refund = self._settle_refund(stuck[0], order)
        logger.info(f"Retried refund {refund.id} for order {order_id}: {refund.status.value}")
        return refund

    def review_cash_refund(
        self,
        order_id: str,
        approved: bool,
        admin_notes: Optional[str] = None,
    ) -> RefundTransaction:
        """Approve or deny a cash refund requested at completion."""
        self._get_order(order_id)
        pending = self.refunds.find_all(order_id=order_id, status=RefundStatus.PENDING_APPROVAL)
        if not pending:
            raise ConflictError("No cash refund awaiting approval for this order")

        refund = pending[0]
        verdict = "approved" if approved else "denied"
        reviewed = dataclasses.replace(
            refund,
            status=RefundStatus.COMPLETED if approved else RefundStatus.DENIED,
            notes=f"Cash refund {verdict}: {admin_notes or 'No additional notes'}",
            updated_at=utc_now(),
        )
        if not self.refunds.save_if_status(reviewed, [RefundStatus.PENDING_APPROVAL]):
            raise ConflictError("Cash refund was already reviewed")

        logger.info(f"Cash refund {refund.id} for order {order_id} {verdict}")
        return reviewed

    # =========================================================================
    # GIFT-CARD DELIVERY LEG
    # =========================================================================

    def pending_gift_card_deliveries(self, driver_id: str) -> List[GiftCardDelivery]:
        return self.gift_cards.find_all(driver_id=driver_id, status=GiftCardDeliveryStatus.PENDING)

    def complete_gift_card_delivery(
        self,
        order_id: str,
        photos: Sequence[str],
        notes: Optional[str] = None,
        signature: Optional[str] = None,
        driver_id: Optional[str] = None,
    ) -> GiftCardDelivery:
        self._get_order(order_id)
        deliveries = self.gift_cards.find_all(order_id=order_id)
        if not deliveries:
            raise NotFoundError("No gift card delivery for this order")

        delivery = deliveries[0]
        self._authorize(delivery.driver_id, driver_id)

        delivered = self.handoff.execute(delivery, photos, notes=notes, signature=signature)
        if not self.gift_cards.save_if_status(delivered, [GiftCardDeliveryStatus.PENDING]):
            raise ConflictError("Gift card already delivered")

        logger.info(f"gift_card_delivery.delivered: order {order_id}, delivery {delivery.id}")
        return delivered

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get_order(self, order_id: str) -> Order:
        order = self.orders.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    @staticmethod
    def _authorize(assigned_driver_id: Optional[str], driver_id: Optional[str]) -> None:
        if driver_id is not None and assigned_driver_id is not None and driver_id != assigned_driver_id:
            raise NotAuthorizedError("Not authorized for this order")
