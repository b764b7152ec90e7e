"""Shared fixtures: in-memory repositories, a scripted gateway, the workflow and the API client."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from use_cases.returns.domain.models import Order, OrderStatus, RefundStatus
from use_cases.returns.memory_store import (
    InMemoryGiftCardDeliveryRepository,
    InMemoryOrderRepository,
    InMemoryRefundRepository,
)
from use_cases.returns.payments import RefundGateway, RefundGatewayError, RefundReceipt
from use_cases.returns.workflow import SettlementWorkflow


class FakeRefundGateway(RefundGateway):
    """Records every refund it is asked for; fails while ``error`` is set."""

    def __init__(self):
        self.calls = []
        self.error = None

    def issue_refund(self, refund, order):
        self.calls.append((refund, order))
        if self.error:
            raise RefundGatewayError(self.error)
        return RefundReceipt(reference=f"re_{len(self.calls)}", status=RefundStatus.PROCESSING)


def make_order(**overrides) -> Order:
    values = dict(
        id="ORD-1001",
        item_value=Decimal("30"),
        number_of_items=1,
        distance_miles=Decimal("4"),
        estimated_minutes=Decimal("15"),
        is_rush=False,
        status=OrderStatus.PICKED_UP,
        total_price=Decimal("4.64"),
        driver_id="DRV-1",
        customer_id="CUST-1",
        payment_intent_id="pi_123",
    )
    values.update(overrides)
    return Order(**values)


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def order():
    return make_order()


@pytest.fixture
def orders(order):
    return InMemoryOrderRepository([order])


@pytest.fixture
def refunds():
    return InMemoryRefundRepository()


@pytest.fixture
def gift_cards():
    return InMemoryGiftCardDeliveryRepository()


@pytest.fixture
def gateway():
    return FakeRefundGateway()


@pytest.fixture
def workflow(orders, refunds, gift_cards, gateway):
    return SettlementWorkflow(orders, refunds, gift_cards, gateway)


@pytest.fixture
def client(workflow):
    from main import app, get_workflow

    app.dependency_overrides[get_workflow] = lambda: workflow
    yield TestClient(app)
    app.dependency_overrides.clear()
