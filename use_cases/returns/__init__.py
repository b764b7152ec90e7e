"""
Return Pickup Settlement Use Case.

Prices return pickups and settles them when the driver completes the
delivery: refund to the customer, driver/company split, and the optional
gift-card delivery leg.

Components:
- domain/: Fare calculator, completion resolver, pricing policies
- workflow.py: SettlementWorkflow, the only layer that writes
- memory_store.py / cosmos_client.py: Repository implementations
- payments.py: Stripe refund gateway
- schemas.py: camelCase API bodies

Usage:
    from use_cases.returns import build_workflow

    workflow = build_workflow(settings)
    fare = workflow.quote(item_value=30, distance_miles=4, estimated_minutes=15)
"""

import logging

from use_cases.returns.domain import (
    DEFAULT_PRICING_CONFIG,
    PricingConfig,
    load_pricing_config,
)
from use_cases.returns.memory_store import (
    InMemoryGiftCardDeliveryRepository,
    InMemoryOrderRepository,
    InMemoryRefundRepository,
)
from use_cases.returns.payments import build_refund_gateway
from use_cases.returns.workflow import (
    CompletionCommand,
    CompletionOutcome,
    SettlementWorkflow,
)

logger = logging.getLogger(__name__)


def build_workflow(settings) -> SettlementWorkflow:
    """Assemble the settlement workflow from application settings."""
    config: PricingConfig = DEFAULT_PRICING_CONFIG
    if settings.pricing_config_file:
        config = load_pricing_config(settings.pricing_config_file)
        logger.info(f"Loaded pricing config {config.version} from {settings.pricing_config_file}")

    gateway = build_refund_gateway(settings.stripe_secret_key)

    store = settings.order_store.lower()
    if store == "cosmos":
        from use_cases.returns.cosmos_client import get_returns_client

        client = get_returns_client()
        return SettlementWorkflow(
            orders=client.orders(),
            refunds=client.refunds(),
            gift_cards=client.gift_card_deliveries(),
            gateway=gateway,
            config=config,
        )

    if store != "memory":
        raise ValueError(f"Unknown ORDER_STORE '{settings.order_store}' (expected 'memory' or 'cosmos')")

    logger.info("Using in-memory order store")
    return SettlementWorkflow(
        orders=InMemoryOrderRepository(),
        refunds=InMemoryRefundRepository(),
        gift_cards=InMemoryGiftCardDeliveryRepository(),
        gateway=gateway,
        config=config,
    )


__all__ = [
    "build_workflow",
    "SettlementWorkflow",
    "CompletionCommand",
    "CompletionOutcome",
]
