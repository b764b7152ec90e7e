"""
Cosmos DB Setup Script for the Returns Settlement service.

Creates the settlement containers and, optionally, loads orders exported
from the booking system so they can be quoted and completed.

Usage:
    python scripts/setup_cosmosdb.py [orders.json]

Environment:
    COSMOS_ENDPOINT - Override the default Cosmos DB endpoint
    COSMOS_DATABASE - Override the default database name

Containers:
    - Returns_Orders             (partition: /id)
    - Returns_Refunds            (partition: /id) - created empty
    - Returns_GiftCardDeliveries (partition: /id) - created empty
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from azure.cosmos import CosmosClient, PartitionKey
from azure.cosmos.exceptions import CosmosHttpResponseError
from azure.identity import AzureCliCredential

# Import configuration from shared module
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    RETURNS_CONTAINERS,
    get_returns_container_config,
)
from use_cases.returns.domain.models import Order

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


# =============================================================================
# DATA PREPARATION
# =============================================================================

def prepare_orders(raw_orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Normalize upstream order payloads into the stored Order shape."""
    return [Order.from_dict(o).to_dict() for o in raw_orders]


def load_orders_file(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("orders", [])
    return prepare_orders(data)


# =============================================================================
# COSMOS DB OPERATIONS
# =============================================================================

def ensure_containers(database) -> Dict[str, Any]:
    """Create any missing settlement containers and return their clients."""
    containers = {}
    for key in RETURNS_CONTAINERS:
        container_name, partition_key = get_returns_container_config(key)
        containers[key] = database.create_container_if_not_exists(
            id=container_name,
            partition_key=PartitionKey(path=partition_key),
        )
        logger.info(f"  {container_name} (partition: {partition_key})")
    return containers


def upsert_items(container, items: List[Dict[str, Any]]) -> int:
    """Upsert items into a container."""
    count = 0
    for item in items:
        try:
            container.upsert_item(item)
            count += 1
        except CosmosHttpResponseError as e:
            logger.error(f"Failed to upsert item {item.get('id')}: {e}")
    return count


def main():
    """Create the settlement containers and load orders if a file is given."""
    logger.info("=" * 60)
    logger.info("Returns Settlement - Cosmos DB Setup Script")
    logger.info("=" * 60)
    logger.info(f"Endpoint: {COSMOS_ENDPOINT}")
    logger.info(f"Database: {DATABASE_NAME}")
    logger.info("Authentication: AzureCliCredential")
    logger.info("=" * 60)

    orders = load_orders_file(sys.argv[1]) if len(sys.argv) > 1 else []

    credential = AzureCliCredential()
    client = CosmosClient(COSMOS_ENDPOINT, credential=credential)

    logger.info(f"Connecting to database '{DATABASE_NAME}'...")
    try:
        database = client.create_database_if_not_exists(id=DATABASE_NAME)
    except CosmosHttpResponseError as e:
        logger.error(f"Database '{DATABASE_NAME}' could not be opened: {e}")
        logger.error("Check RBAC permissions for the signed-in Azure CLI account")
        return

    logger.info("\n--- Settlement Containers ---")
    containers = ensure_containers(database)

    if orders:
        count = upsert_items(containers["orders"], orders)
        logger.info(f"\nLoaded {count} of {len(orders)} orders")
    else:
        logger.info("\nNo orders file given; containers created empty")


if __name__ == "__main__":
    main()
