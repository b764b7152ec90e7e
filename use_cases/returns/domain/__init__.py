"""
Returns Settlement Domain Layer.

Contains pure business logic for pricing and settling return pickups.
No database access or I/O - just business rules.
"""

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
    DEFAULT_PRICING_CONFIG,
    PricingConfig,
    PricingTier,
    PricingTierPolicy,
    CompletionEligibilityPolicy,
    find_tier,
    load_pricing_config,
)
from .services import (
    CompletionResolver,
    CompletionResult,
    FareCalculator,
    GiftCardHandoffService,
    compute_fare,
    resolve_completion,
)

__all__ = [
    "FareBreakdown",
    "GiftCardDeclaration",
    "GiftCardDelivery",
    "GiftCardDeliveryStatus",
    "Order",
    "OrderStatus",
    "RefundMethod",
    "RefundStatus",
    "RefundTransaction",
    "DEFAULT_PRICING_CONFIG",
    "PricingConfig",
    "PricingTier",
    "PricingTierPolicy",
    "CompletionEligibilityPolicy",
    "find_tier",
    "load_pricing_config",
    "CompletionResolver",
    "CompletionResult",
    "FareCalculator",
    "GiftCardHandoffService",
    "compute_fare",
    "resolve_completion",
]
