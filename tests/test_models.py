import dataclasses
from decimal import Decimal

import pytest

from use_cases.returns.domain.models import (
    GiftCardDelivery,
    Order,
    OrderStatus,
    RefundMethod,
    RefundStatus,
    RefundTransaction,
)
from use_cases.returns.memory_store import InMemoryOrderRepository
from core.data import QueryOptions


def test_order_resolves_upstream_field_names_once():
    order = Order.from_dict({
        "id": 1001,
        "declaredValue": "129.99",
        "numberOfBoxes": 2,
        "distance": 3.5,
        "estimatedTime": 18,
        "isRush": True,
        "tip": 2,
        "status": "in_transit",
        "driverId": 7,
        "stripePaymentIntentId": "pi_abc",
    })

    assert order.id == "1001"
    assert order.item_value == Decimal("129.99")
    assert order.number_of_items == 2
    assert order.distance_miles == Decimal("3.5")
    assert order.estimated_minutes == Decimal("18")
    assert order.is_rush is True
    assert order.tip_amount == Decimal("2")
    assert order.status == OrderStatus.IN_TRANSIT
    assert order.driver_id == "7"
    assert order.payment_intent_id == "pi_abc"
    assert order.total_price is None


def test_order_defaults_when_fields_missing():
    order = Order.from_dict({"id": "ORD-1"})

    assert order.item_value == Decimal("0")
    assert order.number_of_items == 1
    assert order.status == OrderStatus.CREATED


def test_first_matching_alias_wins():
    order = Order.from_dict({"id": "ORD-1", "itemValue": 40, "itemCost": 900})

    assert order.item_value == Decimal("40")


def test_persisted_order_reads_back(order):
    assert Order.from_dict(order.to_dict()) == order


def test_refund_and_gift_card_read_back():
    refund = RefundTransaction(
        id="RFD-1", order_id="ORD-1", method=RefundMethod.CASH,
        amount=Decimal("12.50"), reason="return_delivered", status=RefundStatus.PENDING_APPROVAL,
    )
    delivery = GiftCardDelivery(
        id="GCD-1", order_id="ORD-1", card_amount=Decimal("45.00"),
        delivery_fee=Decimal("3.99"), photo_evidence=("card.jpg",), driver_id="DRV-1",
    )

    assert RefundTransaction.from_dict(refund.to_dict()) == refund
    assert GiftCardDelivery.from_dict(delivery.to_dict()) == delivery


def test_memory_repository_filters_and_pages(order_factory):
    repo = InMemoryOrderRepository([
        order_factory(id=f"ORD-{i}", status=OrderStatus.COMPLETED if i % 2 else OrderStatus.PICKED_UP)
        for i in range(5)
    ])

    completed = repo.find(QueryOptions(filters={"status": "completed"}, limit=1))

    assert completed.total_count == 2
    assert len(completed.data) == 1
    assert completed.has_more
    assert completed.next_offset == 1


def test_save_if_status_rejects_stale_transition(order):
    repo = InMemoryOrderRepository([order])
    completed = dataclasses.replace(order, status=OrderStatus.COMPLETED)

    assert repo.save_if_status(completed, [OrderStatus.PICKED_UP])
    assert not repo.save_if_status(completed, [OrderStatus.PICKED_UP])


@pytest.mark.parametrize("raw, expected", [
    ("false", False), ("0", False), ("", False), ("no", False),
    ("true", True), ("True", True), ("1", True), (1, True), (False, False),
])
def test_rush_flag_parses_exported_strings(raw, expected):
    assert Order.from_dict({"id": "ORD-1", "isRush": raw}).is_rush is expected
