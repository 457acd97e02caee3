"""Tests for the Cosmos DB gateway against a fake SDK client."""

import pytest
from azure.cosmos import exceptions

from dataseeder.cosmos_gateway import CosmosGateway
from dataseeder.models import PartitionKeyRange


class _AsyncList:
    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._items:
            yield item


class _FakePager:
    def __init__(self, pages, token):
        self._pages = pages
        self.continuation_token = token

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for page in self._pages:
            yield _AsyncList(page)


class _FakeItems:
    def __init__(self, container, pages, token):
        self.container = container
        self.pages = pages
        self.token = token

    def by_page(self, continuation_token=None):
        self.container.requested_tokens.append(continuation_token)
        return _FakePager(self.pages, self.token)


class _FakeConnection:
    def __init__(self, charge):
        self.last_response_headers = {"x-ms-request-charge": str(charge)}


class FakeContainerClient:
    def __init__(self, properties=None, pages=(), token=None, feed_ranges=(), charge=3.5):
        self.properties = properties or {}
        self.pages = list(pages)
        self.token = token
        self.feed_ranges = list(feed_ranges)
        self.client_connection = _FakeConnection(charge)
        self.requested_tokens = []
        self.read_all_kwargs = None
        self.query_kwargs = None
        self.created = []

    async def read(self):
        return self.properties

    def read_all_items(self, **kwargs):
        self.read_all_kwargs = kwargs
        return _FakeItems(self, self.pages, self.token)

    def query_items(self, **kwargs):
        self.query_kwargs = kwargs
        if kwargs["query"].startswith("SELECT VALUE COUNT"):
            return _AsyncList([42])
        return _FakeItems(self, self.pages, self.token)

    async def read_feed_ranges(self):
        return _AsyncList(self.feed_ranges)

    async def create_item(self, body):
        self.created.append(body)


class FakeDatabaseClient:
    def __init__(self, containers):
        self.containers = containers
        self.created = []

    def get_container_client(self, name):
        return self.containers[name]

    async def create_container(self, id, partition_key):
        if id in self.containers:
            raise exceptions.CosmosResourceExistsError(status_code=409, message="Conflict")
        self.created.append((id, partition_key))

    def list_containers(self):
        return _AsyncList({"id": name} for name in self.containers)


class FakeCosmosClient:
    def __init__(self, containers):
        self.database = FakeDatabaseClient(containers)
        self.closed = False

    def get_database_client(self, name):
        return self.database

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_read_document_page_uses_continuation_token():
    container = FakeContainerClient(pages=[[{"id": "1"}, {"id": "2"}], [{"id": "3"}]], token="next")
    gateway = CosmosGateway(FakeCosmosClient({"orders": container}))

    page = await gateway.read_document_page("shop", "orders", 2, continuation_token="prev")

    assert page.documents == [{"id": "1"}, {"id": "2"}]
    assert page.continuation_token == "next"
    assert page.request_charge == 3.5
    assert container.requested_tokens == ["prev"]
    assert container.read_all_kwargs == {"max_item_count": 2}


@pytest.mark.asyncio
async def test_read_document_page_scoped_to_range():
    container = FakeContainerClient(pages=[[{"id": "1"}]], token="")
    gateway = CosmosGateway(FakeCosmosClient({"orders": container}))
    feed_range = {"Range": {"min": "", "max": "FF"}}

    page = await gateway.read_document_page(
        "shop", "orders", 10, partition_key_range=PartitionKeyRange("0", "", "FF", feed_range))

    assert page.continuation_token is None
    assert container.query_kwargs["feed_range"] == feed_range
    assert container.query_kwargs["max_item_count"] == 10


@pytest.mark.asyncio
async def test_read_partition_key_ranges():
    container = FakeContainerClient(feed_ranges=[
        {"Range": {"min": "", "max": "7F"}},
        {"Range": {"min": "7F", "max": "FF"}},
    ])
    gateway = CosmosGateway(FakeCosmosClient({"orders": container}))

    ranges = await gateway.read_partition_key_ranges("shop", "orders")

    assert ranges == [PartitionKeyRange("0", "", "7F"), PartitionKeyRange("1", "7F", "FF")]
    assert ranges[1].feed_range == {"Range": {"min": "7F", "max": "FF"}}


@pytest.mark.asyncio
async def test_partition_key_path_and_count():
    container = FakeContainerClient(properties={"partitionKey": {"paths": ["/tenant/id"], "kind": "Hash"}})
    gateway = CosmosGateway(FakeCosmosClient({"orders": container}))

    assert await gateway.get_partition_key_path("shop", "orders") == "tenant/id"
    assert await gateway.count_documents("shop", "orders") == 42


@pytest.mark.asyncio
async def test_partition_key_path_missing():
    gateway = CosmosGateway(FakeCosmosClient({"orders": FakeContainerClient(properties={})}))
    assert await gateway.get_partition_key_path("shop", "orders") is None


@pytest.mark.asyncio
async def test_create_container_waits_only_when_created(monkeypatch):
    delays = []

    async def _sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("dataseeder.cosmos_gateway.asyncio.sleep", _sleep)
    client = FakeCosmosClient({"orders": FakeContainerClient()})
    gateway = CosmosGateway(client)

    assert await gateway.create_container_if_not_exists("shop", "customers") is True
    assert await gateway.create_container_if_not_exists("shop", "orders") is False

    assert delays == [1.0]
    (name, partition_key), = client.database.created
    assert name == "customers"
    assert partition_key["paths"] == ["/pk"]


@pytest.mark.asyncio
async def test_create_document_returns_request_charge():
    container = FakeContainerClient(charge=6.2)
    gateway = CosmosGateway(FakeCosmosClient({"orders": container}))

    assert await gateway.create_document("shop", "orders", {"id": "1", "pk": "1"}) == 6.2
    assert container.created == [{"id": "1", "pk": "1"}]


@pytest.mark.asyncio
async def test_list_containers_and_close():
    client = FakeCosmosClient({"orders": FakeContainerClient(), "customers": FakeContainerClient()})

    async with CosmosGateway(client) as gateway:
        assert await gateway.list_containers("shop") == ["orders", "customers"]

    assert client.closed is True
