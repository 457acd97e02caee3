"""
Thin async gateway over the Cosmos DB REST surface used by the seeder.

Request signing (master key HMAC or Azure AD token) is delegated to the
azure-cosmos SDK client; this module only exposes the handful of operations the
import and export engines need, and reports the request charge and continuation
token of every page read.
"""

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Optional

from azure.cosmos import PartitionKey, exceptions
from azure.cosmos.aio import CosmosClient

from dataseeder.models import (DEFAULT_PARTITION_KEY_PATH, DocumentPage,
                               PartitionKeyRange)


# Give a newly created container time to become ready
CONTAINER_READY_DELAY_SECONDS = 1.0

REQUEST_CHARGE_HEADER = "x-ms-request-charge"

SELECT_ALL_QUERY = "SELECT * FROM c"
COUNT_QUERY = "SELECT VALUE COUNT(1) FROM c"


class CosmosGateway:
    """
    Serial access to one Cosmos DB account.

    The underlying client is shared by every database and container touched in
    a run and is closed when the gateway is closed.
    """

    def __init__(
        self,
        client: CosmosClient,
        container_ready_delay: float = CONTAINER_READY_DELAY_SECONDS,
        credential=None,
    ):
        self.client = client
        self.container_ready_delay = container_ready_delay
        self.credential = credential

    async def __aenter__(self) -> "CosmosGateway":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        await self.client.close()
        if self.credential is not None:
            await self.credential.close()

    def _container(self, database: str, container: str):
        return self.client.get_database_client(database).get_container_client(container)

    # ------------------------------------------------------------------
    # Databases and containers
    # ------------------------------------------------------------------

    async def create_database_if_not_exists(self, database: str) -> bool:
        """
        Create a database.

        Returns:
            True if the database was created, False if it already existed
        """
        try:
            await self.client.create_database(id=database)
            return True
        except exceptions.CosmosResourceExistsError:
            return False

    async def create_container_if_not_exists(
        self,
        database: str,
        container: str,
        partition_key_path: str = DEFAULT_PARTITION_KEY_PATH,
    ) -> bool:
        """
        Create a hash-partitioned container.

        Returns:
            True if the container was created, False if it already existed
        """
        database_client = self.client.get_database_client(database)
        try:
            await database_client.create_container(
                id=container,
                partition_key=PartitionKey(path=partition_key_path, kind="Hash"),
            )
        except exceptions.CosmosResourceExistsError:
            return False

        await asyncio.sleep(self.container_ready_delay)
        return True

    async def delete_container(self, database: str, container: str) -> bool:
        """
        Delete a container.

        Returns:
            True if the container was deleted, False if it did not exist
        """
        try:
            await self.client.get_database_client(database).delete_container(container)
            return True
        except exceptions.CosmosResourceNotFoundError:
            return False

    async def list_containers(self, database: str) -> List[str]:
        try:
            database_client = self.client.get_database_client(database)
            return [properties["id"] async for properties in database_client.list_containers()]
        except exceptions.CosmosHttpResponseError as e:
            logging.error(
                f"Failed to get containers for database '{database}'. "
                f"Status: {e.status_code}, Response: {e.message}"
            )
            return []

    async def get_partition_key_path(self, database: str, container: str) -> Optional[str]:
        """
        Read the first partition key path of a container.

        Returns:
            The path without its leading slash (e.g. 'pk'), or None when the
            container has no partition key definition or cannot be read
        """
        try:
            properties = await self._container(database, container).read()
        except exceptions.CosmosHttpResponseError as e:
            logging.warning(
                f"Failed to read metadata for container '{container}'. Status: {e.status_code}"
            )
            return None

        paths = properties.get("partitionKey", {}).get("paths", [])
        if not paths:
            return None
        return paths[0].lstrip("/") or None

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    async def create_document(self, database: str, container: str, body: Dict[str, Any]) -> float:
        """
        Create a document. The partition key is read from the body by the SDK
        and sent as a single-element array header.

        Returns:
            RU charge of the request

        Raises:
            CosmosResourceExistsError: If a document with the same id exists
            CosmosHttpResponseError: On any other failed request
        """
        container_client = self._container(database, container)
        await container_client.create_item(body=body)
        return self._last_request_charge(container_client)

    async def count_documents(self, database: str, container: str) -> int:
        try:
            container_client = self._container(database, container)
            counts = [value async for value in container_client.query_items(query=COUNT_QUERY)]
            return int(counts[0]) if counts else 0
        except exceptions.CosmosHttpResponseError as e:
            logging.warning(
                f"Failed to count documents in container '{container}'. Status: {e.status_code}"
            )
            return 0

    async def read_partition_key_ranges(
        self, database: str, container: str
    ) -> List[PartitionKeyRange]:
        """
        Enumerate the partition key ranges of a container.

        Returns:
            Ranges in server order, or an empty list if they cannot be read
        """
        try:
            feed_ranges = self._container(database, container).read_feed_ranges()
            if inspect.isawaitable(feed_ranges):
                feed_ranges = await feed_ranges
            if hasattr(feed_ranges, "__aiter__"):
                feed_ranges = [feed_range async for feed_range in feed_ranges]
        except exceptions.CosmosHttpResponseError as e:
            logging.warning(
                f"Failed to get partition key ranges for container '{container}'. "
                f"Status: {e.status_code}"
            )
            return []

        ranges = []
        for index, feed_range in enumerate(feed_ranges):
            bounds = feed_range.get("Range", {})
            ranges.append(
                PartitionKeyRange(
                    id=str(index),
                    min_inclusive=bounds.get("min", ""),
                    max_exclusive=bounds.get("max", ""),
                    feed_range=feed_range,
                )
            )
        return ranges

    async def read_document_page(
        self,
        database: str,
        container: str,
        page_size: int,
        continuation_token: Optional[str] = None,
        partition_key_range: Optional[PartitionKeyRange] = None,
    ) -> DocumentPage:
        """
        Read a single page of documents.

        Args:
            database: Database name
            container: Container name
            page_size: Maximum number of documents in the page
            continuation_token: Token returned by the previous page, if any
            partition_key_range: Restrict the read to this range

        Returns:
            The page with its continuation token and RU charge

        Raises:
            CosmosHttpResponseError: If the request fails
        """
        container_client = self._container(database, container)
        if partition_key_range is None:
            items = container_client.read_all_items(max_item_count=page_size)
        else:
            items = container_client.query_items(
                query=SELECT_ALL_QUERY,
                feed_range=partition_key_range.feed_range,
                max_item_count=page_size,
            )

        pager = items.by_page(continuation_token)
        documents = []
        async for page in pager:
            documents = [item async for item in page]
            break

        return DocumentPage(
            documents=documents,
            continuation_token=pager.continuation_token or None,
            request_charge=self._last_request_charge(container_client),
        )

    @staticmethod
    def _last_request_charge(container_client) -> float:
        try:
            headers = container_client.client_connection.last_response_headers
            return float(headers.get(REQUEST_CHARGE_HEADER, 0))
        except (AttributeError, TypeError, ValueError):
            return 0.0
