"""Shared fixtures: an in-memory gateway and seed file helpers."""

import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from azure.cosmos import exceptions

from dataseeder.models import DocumentPage, PartitionKeyRange


class FakeGateway:
    """
    In-memory stand-in for CosmosGateway.

    Containers hold documents in insertion order. When ranges are configured
    for a container, each range serves its own slice of documents. Every page
    read is recorded with the page size that was requested.
    """

    def __init__(self):
        self.databases: Dict[str, Dict[str, List[dict]]] = {}
        self.partition_key_paths: Dict[str, Optional[str]] = {}
        self.ranges: Dict[str, Dict[str, List[dict]]] = {}
        self.charges: List[float] = []
        self.default_charge = 1.0
        self.failing_ranges = set()
        self.fail_paging = False
        self.failing_documents = set()
        # name -> exception raised by the matching request
        self.database_errors = {}
        self.container_errors = {}
        self.document_errors = {}
        self.page_errors = {}
        self.page_requests = []
        self.calls = []
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    # --- helpers ---

    def add_container(self, database, container, documents=(), partition_key_path=None):
        self.databases.setdefault(database, {})[container] = list(documents)
        self.partition_key_paths[container] = partition_key_path

    def set_ranges(self, container, ranges: Dict[str, List[dict]]):
        self.ranges[container] = ranges

    def _next_charge(self):
        return self.charges.pop(0) if self.charges else self.default_charge

    # --- gateway surface ---

    async def create_database_if_not_exists(self, database):
        self.calls.append(("create_database", database))
        if database in self.database_errors:
            raise self.database_errors[database]
        if database in self.databases:
            return False
        self.databases[database] = {}
        return True

    async def create_container_if_not_exists(self, database, container, partition_key_path="/pk"):
        self.calls.append(("create_container", database, container, partition_key_path))
        if (database, container) in self.container_errors:
            raise self.container_errors[(database, container)]
        containers = self.databases.setdefault(database, {})
        if container in containers:
            return False
        containers[container] = []
        self.partition_key_paths[container] = partition_key_path.lstrip("/")
        return True

    async def delete_container(self, database, container):
        self.calls.append(("delete_container", database, container))
        return self.databases.get(database, {}).pop(container, None) is not None

    async def list_containers(self, database):
        return list(self.databases.get(database, {}))

    async def get_partition_key_path(self, database, container):
        return self.partition_key_paths.get(container)

    async def create_document(self, database, container, body):
        if body["id"] in self.document_errors:
            raise self.document_errors[body["id"]]
        if body["id"] in self.failing_documents:
            raise exceptions.CosmosHttpResponseError(status_code=400, message="Bad Request")
        documents = self.databases[database][container]
        if any(d["id"] == body["id"] for d in documents):
            raise exceptions.CosmosResourceExistsError(status_code=409, message="Conflict")
        documents.append(dict(body))
        return 5.0

    async def count_documents(self, database, container):
        return len(self.databases.get(database, {}).get(container, []))

    async def read_partition_key_ranges(self, database, container):
        return [
            PartitionKeyRange(id=range_id, min_inclusive=f"min{range_id}", max_exclusive=f"max{range_id}",
                              feed_range={"Range": {"min": f"min{range_id}", "max": f"max{range_id}"}})
            for range_id in self.ranges.get(container, {})
        ]

    async def read_document_page(self, database, container, page_size, continuation_token=None,
                                 partition_key_range=None):
        self.page_requests.append(
            (container, partition_key_range.id if partition_key_range else None, page_size, continuation_token)
        )
        if container in self.page_errors:
            raise self.page_errors[container]
        if partition_key_range is None:
            if self.fail_paging:
                raise exceptions.CosmosHttpResponseError(status_code=503, message="Service Unavailable")
            documents = self.databases[database][container]
        else:
            if partition_key_range.id in self.failing_ranges:
                raise exceptions.CosmosHttpResponseError(status_code=500, message="Internal Server Error")
            documents = self.ranges[container][partition_key_range.id]

        start = int(continuation_token or 0)
        end = start + page_size
        return DocumentPage(
            documents=documents[start:end],
            continuation_token=str(end) if end < len(documents) else None,
            request_charge=self._next_charge(),
        )


@pytest.fixture
def gateway():
    return FakeGateway()


def write_seed_file(directory: Path, name: str, seed_config: dict, seed_data=None) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    content = {"seedConfig": seed_config}
    if seed_data is not None:
        content["seedData"] = seed_data
    path.write_text(json.dumps(content), encoding="utf-8")
    return path


@pytest.fixture
def seed_file(tmp_path):
    def _write(name, seed_config, seed_data=None, directory=None):
        return write_seed_file(directory or tmp_path, name, seed_config, seed_data)
    return _write
