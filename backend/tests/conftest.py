"""
CloudMart Functions — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.
Who:   Used by all test files in the tests/ directory.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── settings: Settings pointing at a (never contacted) development account
    ├── backends: In-memory file share / queue / blob / table fakes
    ├── dispatcher: StorageDispatcher over the fakes
    ├── app: FastAPI app with get_dispatcher overridden to use the fakes
    ├── test_client: HTTPX AsyncClient for API endpoint testing
    ├── unconfigured_client: client for an app with no connection string
    └── sample_png_bytes: Minimal PNG content for upload tests

The fakes implement the same abstract base classes and error contract as
the Azure backends, so the dispatcher and routes run unmodified against them.
Any fake can be told to fail its next call via `fail_with`.
"""

import os
from dataclasses import replace
from itertools import count
from types import SimpleNamespace
from typing import AsyncIterator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from cloudmart.config import Settings
from cloudmart.dependencies import get_dispatcher
from cloudmart.exceptions import ConflictError, NotFoundError
from cloudmart.main import create_app
from cloudmart.models.storage import Record
from cloudmart.services.dispatcher import StorageDispatcher
from cloudmart.storage.base import (
    BlobBackend,
    FileShareBackend,
    QueueBackend,
    TableBackend,
    UpdateMode,
)


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

DEV_CONNECTION_STRING = "UseDevelopmentStorage=true"
BLOB_ENDPOINT = "http://127.0.0.1:10000/devstoreaccount1"


# ══════════════════════════════════════════════════════════════════════════
# In-Memory Backends
# ══════════════════════════════════════════════════════════════════════════

class _FailureInjection:
    """Mixin: raise `fail_with` on the next backend call, then clear it."""

    fail_with: Optional[Exception] = None

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            exc, self.fail_with = self.fail_with, None
            raise exc


class InMemoryFileShareBackend(_FailureInjection, FileShareBackend):
    def __init__(self):
        self.shares: Dict[str, Dict[str, Dict[str, bytearray]]] = {}
        self.calls: List[str] = []

    async def ensure_share(self, share):
        self._maybe_fail()
        self.calls.append("ensure_share")
        self.shares.setdefault(share, {})

    async def ensure_directory(self, share, directory):
        self._maybe_fail()
        self.calls.append("ensure_directory")
        if share not in self.shares:
            raise NotFoundError(resource="share", resource_id=share)
        self.shares[share].setdefault(directory, {})

    async def create_file(self, share, directory, name, size):
        self._maybe_fail()
        self.calls.append("create_file")
        try:
            self.shares[share][directory][name] = bytearray(size)
        except KeyError:
            raise NotFoundError(resource="directory", resource_id=directory)

    async def write_range(self, share, directory, name, offset, data):
        self._maybe_fail()
        self.calls.append("write_range")
        try:
            target = self.shares[share][directory][name]
        except KeyError:
            raise NotFoundError(resource="file", resource_id=name)
        target[offset:offset + len(data)] = data

    def files_in(self, share: str, directory: str) -> Dict[str, bytes]:
        return {
            name: bytes(content)
            for name, content in self.shares.get(share, {}).get(directory, {}).items()
        }


class InMemoryQueueBackend(_FailureInjection, QueueBackend):
    def __init__(self):
        self.queues: Dict[str, List[str]] = {}

    async def ensure_queue(self, queue):
        self._maybe_fail()
        self.queues.setdefault(queue, [])

    async def send_message(self, queue, content):
        self._maybe_fail()
        if queue not in self.queues:
            raise NotFoundError(resource="queue", resource_id=queue)
        self.queues[queue].append(content)


class InMemoryBlobBackend(_FailureInjection, BlobBackend):
    def __init__(self):
        self.containers: Dict[str, Dict[str, Tuple[bytes, Optional[str]]]] = {}
        self.public_access: Dict[str, Optional[str]] = {}

    async def ensure_container(self, container, public_access=None):
        self._maybe_fail()
        if container not in self.containers:
            self.containers[container] = {}
            self.public_access[container] = public_access

    async def upload(self, container, name, stream: AsyncIterator[bytes], overwrite=True, content_type=None):
        self._maybe_fail()
        if container not in self.containers:
            raise NotFoundError(resource="container", resource_id=container)
        blobs = self.containers[container]
        if name in blobs and not overwrite:
            raise ConflictError(context={"blob": name})
        data = b"".join([chunk async for chunk in stream])
        blobs[name] = (data, content_type)
        return f"{BLOB_ENDPOINT}/{container}/{name}"


class InMemoryTableBackend(_FailureInjection, TableBackend):
    def __init__(self):
        self.tables: Dict[str, Dict[Tuple[str, str], Record]] = {}
        self._versions = count(1)

    def _stamp(self, record: Record) -> Record:
        return replace(record, etag=f'W/"{next(self._versions)}"')

    def _rows(self, table: str) -> Dict[Tuple[str, str], Record]:
        if table not in self.tables:
            raise NotFoundError(resource="table", resource_id=table)
        return self.tables[table]

    async def ensure_table(self, table):
        self._maybe_fail()
        self.tables.setdefault(table, {})

    async def insert(self, table, record):
        self._maybe_fail()
        rows = self._rows(table)
        key = (record.partition_key, record.row_key)
        if key in rows:
            raise ConflictError(context={"row_key": record.row_key})
        stored = self._stamp(record)
        rows[key] = stored
        return stored

    async def get(self, table, partition_key, row_key):
        self._maybe_fail()
        try:
            return self._rows(table)[(partition_key, row_key)]
        except KeyError:
            raise NotFoundError(resource="entity", resource_id=row_key)

    async def update(self, table, record, etag, mode=UpdateMode.REPLACE):
        self._maybe_fail()
        rows = self._rows(table)
        key = (record.partition_key, record.row_key)
        if key not in rows:
            raise NotFoundError(resource="entity", resource_id=record.row_key)
        if etag is not None and rows[key].etag != etag:
            raise ConflictError(context={"row_key": record.row_key})
        if mode is UpdateMode.MERGE:
            record = rows[key].overlay(record.fields)
        stored = self._stamp(record)
        rows[key] = stored
        return stored

    async def delete(self, table, partition_key, row_key):
        self._maybe_fail()
        rows = self._rows(table)
        if (partition_key, row_key) not in rows:
            raise NotFoundError(resource="entity", resource_id=row_key)
        del rows[(partition_key, row_key)]

    async def scan(self, table):
        self._maybe_fail()
        for record in list(self.tables.get(table, {}).values()):
            yield record


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def settings():
    """
    Settings for a configured app.

    The connection string is only checked for presence; the fakes replace
    every Azure call, so nothing is contacted.
    """
    return Settings(AzureWebJobsStorage=DEV_CONNECTION_STRING, _env_file=None)


@pytest.fixture
def backends():
    return SimpleNamespace(
        files=InMemoryFileShareBackend(),
        queues=InMemoryQueueBackend(),
        blobs=InMemoryBlobBackend(),
        tables=InMemoryTableBackend(),
    )


@pytest.fixture
def dispatcher(backends):
    return StorageDispatcher(
        files=backends.files,
        queues=backends.queues,
        blobs=backends.blobs,
        tables=backends.tables,
    )


@pytest.fixture
def app(settings, dispatcher):
    """FastAPI app whose storage dependency resolves to the in-memory fakes."""
    application = create_app(settings)
    application.dependency_overrides[get_dispatcher] = lambda: dispatcher
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """
    Provides an async HTTP test client for endpoint testing.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def unconfigured_client():
    """Client for an app without AzureWebJobsStorage and no dependency overrides."""
    application = create_app(Settings(AzureWebJobsStorage="", _env_file=None))
    transport = ASGITransport(app=application)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_png_bytes():
    """A complete 1x1 RGBA PNG (signature, IHDR, IDAT, IEND)."""
    return bytes.fromhex(
        "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
        "1f15c4890000000a49444154789c63000100000500010d0a2db40000"
        "000049454e44ae426082"
    )


@pytest.fixture
def seeded_product(backends, settings):
    """Insert one product directly into the fake table and return its Record."""
    record = Record(
        partition_key=settings.product_partition,
        row_key="p-100",
        fields={
            "Name": "Desk Lamp",
            "Price": 24.5,
            "Description": "Warm white LED",
            "ImageUrl": f"{BLOB_ENDPOINT}/product-images/lamp.png",
            "InventoryCount": 7,
        },
    )
    stored = replace(record, etag='W/"seed"')
    backends.tables.tables.setdefault(settings.products_table, {})[
        (record.partition_key, record.row_key)
    ] = stored
    return stored
