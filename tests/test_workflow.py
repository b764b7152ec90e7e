import threading
from decimal import Decimal

import pytest

from core.domain import ConflictError, InvalidRequestError, NotAuthorizedError, NotFoundError
from use_cases.returns.domain.models import (
    GiftCardDeclaration,
    GiftCardDeliveryStatus,
    OrderStatus,
    RefundMethod,
    RefundStatus,
)
from use_cases.returns.memory_store import InMemoryOrderRepository, InMemoryRefundRepository
from use_cases.returns.payments import ManualRefundGateway
from use_cases.returns.workflow import CompletionCommand, SettlementWorkflow


def command(**overrides) -> CompletionCommand:
    values = dict(delivery_notes="Dropped at returns counter", photos=["box.jpg"])
    values.update(overrides)
    return CompletionCommand(**values)


def test_original_payment_refund_goes_through_gateway(workflow, orders, refunds, gateway):
    outcome = workflow.complete_order("ORD-1001", command())

    assert outcome.message == "Order completed successfully"
    assert orders.get_by_id("ORD-1001").status == OrderStatus.COMPLETED
    assert outcome.refund.status == RefundStatus.PROCESSING
    assert outcome.refund.processor_reference == "re_1"
    assert outcome.refund.attempts == 1
    assert refunds.get_by_id(outcome.refund.id) == outcome.refund

    refund, order = gateway.calls[0]
    assert refund.amount == Decimal("4.64")
    assert order.payment_intent_id == "pi_123"


def test_second_completion_conflicts_and_keeps_one_refund(workflow, refunds):
    first = workflow.complete_order("ORD-1001", command())

    with pytest.raises(ConflictError, match="Order already completed"):
        workflow.complete_order("ORD-1001", command(delivery_notes="retry"))

    stored = refunds.find_all(order_id="ORD-1001")
    assert stored == [first.refund]


def test_concurrent_completions_create_exactly_one_refund(workflow, refunds):
    results = []

    def complete():
        try:
            workflow.complete_order("ORD-1001", command())
            results.append("ok")
        except ConflictError:
            results.append("conflict")

    threads = [threading.Thread(target=complete) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert len(refunds.find_all(order_id="ORD-1001")) == 1


def test_rejected_submission_writes_nothing(workflow, orders, refunds, gift_cards, gateway):
    gift_card = GiftCardDeclaration(has_physical_gift_card=True, card_amount=Decimal("45.00"))

    with pytest.raises(InvalidRequestError):
        workflow.complete_order("ORD-1001", command(photos=[], gift_card=gift_card))

    assert orders.get_by_id("ORD-1001").status == OrderStatus.PICKED_UP
    assert len(refunds) == 0
    assert len(gift_cards) == 0
    assert gateway.calls == []


def test_gateway_failure_is_recorded_and_order_stays_completed(workflow, orders, gateway):
    gateway.error = "Card issuer unavailable"

    outcome = workflow.complete_order("ORD-1001", command())

    assert outcome.message == "Order completed. Refund failed - will retry"
    assert outcome.refund.status == RefundStatus.FAILED
    assert outcome.refund.failure_message == "Card issuer unavailable"
    assert orders.get_by_id("ORD-1001").status == OrderStatus.COMPLETED


def test_retry_refund_reissues_failed_refund(workflow, gateway):
    gateway.error = "timeout"
    failed = workflow.complete_order("ORD-1001", command()).refund

    gateway.error = None
    retried = workflow.retry_refund("ORD-1001")

    assert retried.id == failed.id
    assert retried.status == RefundStatus.PROCESSING
    assert retried.failure_message is None
    assert retried.attempts == 2

    with pytest.raises(ConflictError, match="No failed refund"):
        workflow.retry_refund("ORD-1001")


def test_store_credit_completes_without_gateway(workflow, gateway):
    outcome = workflow.complete_order("ORD-1001", command(refund_method=RefundMethod.STORE_CREDIT))

    assert outcome.refund.status == RefundStatus.COMPLETED
    assert gateway.calls == []


def test_cash_refund_waits_for_admin_review(workflow, orders):
    outcome = workflow.complete_order("ORD-1001", command(refund_method="cash"))
    assert outcome.refund.status == RefundStatus.PENDING_APPROVAL

    approved = workflow.review_cash_refund("ORD-1001", approved=True, admin_notes="Receipt checked")

    assert approved.status == RefundStatus.COMPLETED
    assert approved.notes == "Cash refund approved: Receipt checked"
    assert orders.get_by_id("ORD-1001").status == OrderStatus.COMPLETED

    with pytest.raises(ConflictError):
        workflow.review_cash_refund("ORD-1001", approved=False)


def test_cash_refund_can_be_denied(workflow):
    workflow.complete_order("ORD-1001", command(refund_method="cash"))

    denied = workflow.review_cash_refund("ORD-1001", approved=False)

    assert denied.status == RefundStatus.DENIED
    assert denied.notes == "Cash refund denied: No additional notes"


def test_gift_card_leg_is_scheduled_and_delivered(workflow, gift_cards):
    gift_card = GiftCardDeclaration(has_physical_gift_card=True, card_amount=Decimal("45.00"))
    outcome = workflow.complete_order("ORD-1001", command(gift_card=gift_card))

    assert outcome.message == "Order completed. Gift card must be delivered to the customer"
    assert outcome.gift_card.delivery_fee == workflow.config.gift_card_delivery_fee
    assert [d.id for d in workflow.pending_gift_card_deliveries("DRV-1")] == [outcome.gift_card.id]

    delivered = workflow.complete_gift_card_delivery("ORD-1001", photos=["door.jpg"], notes="Handed over")

    assert delivered.status == GiftCardDeliveryStatus.DELIVERED
    assert gift_cards.get_by_id(delivered.id).status == GiftCardDeliveryStatus.DELIVERED
    assert workflow.pending_gift_card_deliveries("DRV-1") == []

    with pytest.raises(ConflictError):
        workflow.complete_gift_card_delivery("ORD-1001", photos=["door.jpg"])


def test_gift_card_delivery_missing_for_order(workflow):
    workflow.complete_order("ORD-1001", command())

    with pytest.raises(NotFoundError, match="No gift card delivery"):
        workflow.complete_gift_card_delivery("ORD-1001", photos=["door.jpg"])


def test_other_driver_cannot_complete(workflow, orders):
    with pytest.raises(NotAuthorizedError):
        workflow.complete_order("ORD-1001", command(), driver_id="DRV-2")

    assert orders.get_by_id("ORD-1001").status == OrderStatus.PICKED_UP


def test_unknown_order(workflow):
    with pytest.raises(NotFoundError, match="Order not found"):
        workflow.complete_order("ORD-404", command())

    with pytest.raises(NotFoundError):
        workflow.quote_order("ORD-404")


def test_refunds_for_order_lists_stored_refunds(workflow):
    outcome = workflow.complete_order("ORD-1001", command())

    assert workflow.refunds_for_order("ORD-1001") == [outcome.refund]


def test_manual_gateway_leaves_refund_failed(orders, refunds, gift_cards):
    workflow = SettlementWorkflow(orders, refunds, gift_cards, ManualRefundGateway())

    refund = workflow.complete_order("ORD-1001", command()).refund

    assert refund.status == RefundStatus.FAILED
    assert "admin will process manually" in refund.failure_message


def test_refund_never_exceeds_order_total(workflow, order):
    outcome = workflow.complete_order("ORD-1001", command(custom_refund_amount=Decimal("4.64")))

    assert outcome.refund.amount <= order.total_price


class FlakyRefundRepository(InMemoryRefundRepository):
    """Raises on the listed (1-based) save calls, like a transient store outage."""

    def __init__(self, fail_on=()):
        super().__init__()
        self.fail_on = set(fail_on)
        self.saves = 0

    def save(self, entity):
        self.saves += 1
        if self.saves in self.fail_on:
            raise ConnectionError("store unavailable")
        return super().save(entity)


class FlakyOrderRepository(InMemoryOrderRepository):
    def save_if_status(self, entity, expected_statuses):
        raise ConnectionError("store unavailable")


def test_refund_write_failure_leaves_order_open_for_retry(orders, gift_cards, gateway):
    refunds = FlakyRefundRepository(fail_on={1})
    workflow = SettlementWorkflow(orders, refunds, gift_cards, gateway)

    with pytest.raises(ConnectionError):
        workflow.complete_order("ORD-1001", command())

    assert orders.get_by_id("ORD-1001").status == OrderStatus.PICKED_UP
    assert len(refunds) == 0
    assert gateway.calls == []

    outcome = workflow.complete_order("ORD-1001", command())

    assert outcome.refund.status == RefundStatus.PROCESSING
    assert refunds.find_all(order_id="ORD-1001") == [outcome.refund]


def test_order_write_failure_discards_settlement_records(order, refunds, gift_cards, gateway):
    workflow = SettlementWorkflow(FlakyOrderRepository([order]), refunds, gift_cards, gateway)
    gift_card = GiftCardDeclaration(has_physical_gift_card=True, card_amount=Decimal("45.00"))

    with pytest.raises(ConnectionError):
        workflow.complete_order("ORD-1001", command(gift_card=gift_card))

    assert len(refunds) == 0
    assert len(gift_cards) == 0


def test_unsettled_refund_after_commit_can_be_retried(orders, gift_cards, gateway):
    refunds = FlakyRefundRepository(fail_on={2})
    workflow = SettlementWorkflow(orders, refunds, gift_cards, gateway)

    with pytest.raises(ConnectionError):
        workflow.complete_order("ORD-1001", command())

    assert orders.get_by_id("ORD-1001").status == OrderStatus.COMPLETED
    [stuck] = refunds.find_all(order_id="ORD-1001")
    assert stuck.status == RefundStatus.PENDING

    retried = workflow.retry_refund("ORD-1001")

    assert retried.id == stuck.id
    assert retried.status == RefundStatus.PROCESSING
    assert refunds.find_all(order_id="ORD-1001") == [retried]
    # Same attempt number, so the processor sees the same idempotency key
    assert [r.attempts for r, _ in gateway.calls] == [1, 1]


def test_retry_before_completion_is_a_conflict(workflow):
    with pytest.raises(ConflictError):
        workflow.retry_refund("ORD-1001")
