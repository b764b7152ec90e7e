"""
Azure Cosmos DB Configuration.

Centralized configuration for all Cosmos DB settings used across the application.
This ensures consistency between the API and any maintenance scripts.

Environment Variables (optional overrides):
    COSMOS_ENDPOINT - Override the default Cosmos DB endpoint
    COSMOS_DATABASE - Override the default database name
"""

import os

# =============================================================================
# COSMOS DB CONNECTION
# =============================================================================

COSMOS_ENDPOINT = os.getenv(
    "COSMOS_ENDPOINT",
    "https://localhost:8081/"
)

DATABASE_NAME = os.getenv(
    "COSMOS_DATABASE",
    "returns"
)

# =============================================================================
# SETTLEMENT CONTAINERS
# =============================================================================

# Format: logical_name -> (container_name, partition_key_path)
# Everything is partitioned on /id so point reads need only the id.
RETURNS_CONTAINERS = {
    "orders": ("Returns_Orders", "/id"),
    "refunds": ("Returns_Refunds", "/id"),
    "gift_card_deliveries": ("Returns_GiftCardDeliveries", "/id"),
}

RETURNS_CONTAINER_NAMES = {
    key: name for key, (name, _) in RETURNS_CONTAINERS.items()
}

# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def get_returns_container_config(logical_name: str) -> tuple:
    """Get (container_name, partition_key_path) for a container."""
    if logical_name in RETURNS_CONTAINERS:
        return RETURNS_CONTAINERS[logical_name]
    raise ValueError(f"Unknown returns container: {logical_name}")
