"""
Cosmos DB repositories for the returns settlement use case.

Provides data access for orders, refunds and gift-card deliveries.
Uses DefaultAzureCredential for flexible authentication.

Status transitions use optimistic concurrency: the document is read,
its status checked, and it is replaced only if its _etag is unchanged.
"""

import logging
import re
from typing import Any, Callable, Dict, Generic, Iterable, Optional

from azure.core import MatchConditions
from azure.cosmos import CosmosClient
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceNotFoundError,
)
from azure.identity import DefaultAzureCredential

from core.data import QueryOptions, QueryResult, Repository, T

# Import shared configuration
from shared.cosmos_config import (
    COSMOS_ENDPOINT,
    DATABASE_NAME,
    RETURNS_CONTAINER_NAMES,
)

from .domain.models import GiftCardDelivery, Order, RefundTransaction

logger = logging.getLogger(__name__)

_FIELD_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _plain(value: Any) -> Any:
    return getattr(value, "value", value)


class CosmosRepository(Repository[T], Generic[T]):
    """Repository backed by one Cosmos DB container partitioned on /id."""

    def __init__(self, container, from_dict: Callable[[Dict[str, Any]], T]):
        self._container = container
        self._from_dict = from_dict

    def _read(self, id: str) -> Optional[Dict[str, Any]]:
        try:
            return self._container.read_item(item=id, partition_key=id)
        except CosmosResourceNotFoundError:
            return None

    def get_by_id(self, id: str) -> Optional[T]:
        doc = self._read(id)
        return self._from_dict(doc) if doc else None

    def find(self, options: Optional[QueryOptions] = None) -> QueryResult[T]:
        options = options or QueryOptions()
        clauses = []
        params = []
        for i, (name, value) in enumerate(options.filters.items()):
            if not _FIELD_NAME.match(name):
                raise ValueError(f"Invalid filter field: {name}")
            clauses.append(f"c.{name} = @p{i}")
            params.append({"name": f"@p{i}", "value": _plain(value)})

        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        count_query = f"SELECT VALUE COUNT(1) FROM c{where}"
        total = next(iter(self._container.query_items(
            count_query, parameters=params, enable_cross_partition_query=True
        )), 0)

        query = f"SELECT * FROM c{where}"
        if options.order_by:
            if not _FIELD_NAME.match(options.order_by):
                raise ValueError(f"Invalid order field: {options.order_by}")
            query += f" ORDER BY c.{options.order_by} {'DESC' if options.order_desc else 'ASC'}"
        query += f" OFFSET {int(options.offset)} LIMIT {int(options.limit)}"

        docs = list(self._container.query_items(
            query, parameters=params, enable_cross_partition_query=True
        ))
        next_offset = options.offset + len(docs)
        has_more = next_offset < total
        return QueryResult(
            data=[self._from_dict(d) for d in docs],
            total_count=total,
            has_more=has_more,
            next_offset=next_offset if has_more else None,
        )

    def save(self, entity: T) -> T:
        self._container.upsert_item(body=entity.to_dict())
        return entity

    def save_if_status(self, entity: T, expected_statuses: Iterable[Any]) -> bool:
        expected = {_plain(s) for s in expected_statuses}
        doc = self._read(entity.id)
        if doc is None or doc.get("status") not in expected:
            return False
        try:
            self._container.replace_item(
                item=entity.id,
                body=entity.to_dict(),
                etag=doc["_etag"],
                match_condition=MatchConditions.IfNotModified,
            )
        except CosmosAccessConditionFailedError:
            logger.info(f"Conditional update of {entity.id} lost a concurrent write")
            return False
        return True

    def delete(self, id: str) -> bool:
        try:
            self._container.delete_item(item=id, partition_key=id)
        except CosmosResourceNotFoundError:
            return False
        return True


class ReturnsCosmosClient:
    """Client for accessing settlement data in Cosmos DB."""

    def __init__(self, endpoint: str = COSMOS_ENDPOINT, database_name: str = DATABASE_NAME):
        """Initialize the Cosmos DB client."""
        logger.info("Initializing Returns Cosmos DB client...")
        self._credential = DefaultAzureCredential(
            exclude_interactive_browser_credential=True,
        )
        self._client = CosmosClient(endpoint, credential=self._credential)
        self._database = self._client.get_database_client(database_name)
        self._containers = {}
        logger.info(f"Returns Cosmos DB client initialized: {database_name}")

    def _get_container(self, name: str):
        """Get a container client, caching for reuse."""
        if name not in self._containers:
            container_name = RETURNS_CONTAINER_NAMES.get(name, name)
            self._containers[name] = self._database.get_container_client(container_name)
        return self._containers[name]

    def orders(self) -> CosmosRepository[Order]:
        return CosmosRepository(self._get_container("orders"), Order.from_dict)

    def refunds(self) -> CosmosRepository[RefundTransaction]:
        return CosmosRepository(self._get_container("refunds"), RefundTransaction.from_dict)

    def gift_card_deliveries(self) -> CosmosRepository[GiftCardDelivery]:
        return CosmosRepository(self._get_container("gift_card_deliveries"), GiftCardDelivery.from_dict)


# Singleton instance
_client: Optional[ReturnsCosmosClient] = None


def get_returns_client() -> ReturnsCosmosClient:
    """Get the singleton Cosmos DB client instance."""
    global _client
    if _client is None:
        _client = ReturnsCosmosClient()
    return _client
