"""
CloudMart Functions — Azure Storage Backends
=============================================

What:  Implementations of the storage capability sets on top of the async
       Azure SDKs (Tables, Queues, Blobs, Files).
How:   Every operation opens its own SDK client from the connection string
       inside "async with" and closes it on exit. No client outlives a call,
       so no state is shared between requests.
Who:   Built by cloudmart.dependencies.get_dispatcher for each request.

Error translation (Azure SDK → CloudMart):
    ValueError from from_connection_string  → ConfigurationError
    ResourceNotFoundError                   → NotFoundError
    ResourceExistsError / ResourceModified  → ConflictError
    HTTP 409 / 412                          → ConflictError
    any other AzureError                    → BackendError

Retries are the SDK pipeline's business (its default retry policy applies);
nothing here retries.
"""

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, AsyncIterator, Callable, Dict, Iterator, Optional, TypeVar

from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.data.tables import UpdateMode as TableUpdateMode
from azure.data.tables.aio import TableClient
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import ContainerClient
from azure.storage.fileshare.aio import ShareClient
from azure.storage.queue.aio import QueueClient

from cloudmart.exceptions import (
    BackendError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
)
from cloudmart.models.storage import Record
from cloudmart.storage.base import (
    BlobBackend,
    FileShareBackend,
    QueueBackend,
    TableBackend,
    UpdateMode,
)

logger = logging.getLogger(__name__)

ClientT = TypeVar("ClientT")

KEY_COLUMNS = ("PartitionKey", "RowKey")
CONFLICT_STATUS_CODES = {409, 412}


@contextmanager
def translate_azure_errors(operation: str, resource: str, resource_id: Optional[str] = None) -> Iterator[None]:
    """Re-raise Azure SDK failures inside the block as CloudMart errors."""
    try:
        yield
    except ResourceNotFoundError as exc:
        raise NotFoundError(
            resource=resource,
            resource_id=resource_id,
            context={"operation": operation, "azure_error": str(exc)},
        ) from exc
    except (ResourceExistsError, ResourceModifiedError) as exc:
        raise ConflictError(
            context={"operation": operation, "resource": resource, "azure_error": str(exc)},
        ) from exc
    except AzureError as exc:
        context = {
            "operation": operation,
            "resource": resource,
            "azure_error": type(exc).__name__,
            "detail": str(exc),
        }
        if getattr(exc, "status_code", None) in CONFLICT_STATUS_CODES:
            raise ConflictError(context=context) from exc
        raise BackendError(context=context) from exc


class AzureStorageClientFactory:
    """Opens short-lived SDK clients from a single connection string."""

    def __init__(self, connection_string: str):
        self._connection_string = connection_string

    def open(self, factory: Callable[..., ClientT], *args: Any, **kwargs: Any) -> ClientT:
        try:
            return factory(self._connection_string, *args, **kwargs)
        except ValueError as exc:
            logger.error("Storage connection string rejected by the SDK: %s", exc)
            raise ConfigurationError(context={"error": str(exc)}) from exc


# ══════════════════════════════════════════════════════════════════════════
# File Share
# ══════════════════════════════════════════════════════════════════════════

class AzureFileShareBackend(FileShareBackend):
    """Azure Files: share → directory → file, written by ranges."""

    def __init__(self, clients: AzureStorageClientFactory):
        self._clients = clients

    def _share(self, share: str) -> ShareClient:
        return self._clients.open(ShareClient.from_connection_string, share_name=share)

    async def ensure_share(self, share: str) -> None:
        async with self._share(share) as client:
            with translate_azure_errors("ensure_share", "share", share):
                try:
                    await client.create_share()
                    logger.info("Created file share '%s'", share)
                except ResourceExistsError:
                    pass

    async def ensure_directory(self, share: str, directory: str) -> None:
        async with self._share(share) as client:
            with translate_azure_errors("ensure_directory", "directory", directory):
                try:
                    await client.get_directory_client(directory).create_directory()
                    logger.info("Created directory '%s/%s'", share, directory)
                except ResourceExistsError:
                    pass

    async def create_file(self, share: str, directory: str, name: str, size: int) -> None:
        async with self._share(share) as client:
            file_client = client.get_directory_client(directory).get_file_client(name)
            with translate_azure_errors("create_file", "file", name):
                await file_client.create_file(size=size)

    async def write_range(
        self, share: str, directory: str, name: str, offset: int, data: bytes
    ) -> None:
        async with self._share(share) as client:
            file_client = client.get_directory_client(directory).get_file_client(name)
            with translate_azure_errors("write_range", "file", name):
                await file_client.upload_range(data, offset=offset, length=len(data))


# ══════════════════════════════════════════════════════════════════════════
# Queue
# ══════════════════════════════════════════════════════════════════════════

class AzureQueueBackend(QueueBackend):
    """Azure Queue Storage. Messages are sent as-is (no encode policy)."""

    def __init__(self, clients: AzureStorageClientFactory):
        self._clients = clients

    def _queue(self, queue: str) -> QueueClient:
        return self._clients.open(QueueClient.from_connection_string, queue_name=queue)

    async def ensure_queue(self, queue: str) -> None:
        async with self._queue(queue) as client:
            with translate_azure_errors("ensure_queue", "queue", queue):
                try:
                    await client.create_queue()
                except ResourceExistsError:
                    pass

    async def send_message(self, queue: str, content: str) -> None:
        async with self._queue(queue) as client:
            with translate_azure_errors("send_message", "queue", queue):
                await client.send_message(content)


# ══════════════════════════════════════════════════════════════════════════
# Blob
# ══════════════════════════════════════════════════════════════════════════

class AzureBlobBackend(BlobBackend):
    """Azure Blob Storage (block blobs)."""

    def __init__(self, clients: AzureStorageClientFactory):
        self._clients = clients

    def _container(self, container: str) -> ContainerClient:
        return self._clients.open(ContainerClient.from_connection_string, container_name=container)

    async def ensure_container(self, container: str, public_access: Optional[str] = None) -> None:
        async with self._container(container) as client:
            with translate_azure_errors("ensure_container", "container", container):
                try:
                    await client.create_container(public_access=public_access)
                    logger.info("Created container '%s' (public_access=%s)", container, public_access)
                except ResourceExistsError:
                    pass

    async def upload(
        self,
        container: str,
        name: str,
        stream: AsyncIterator[bytes],
        overwrite: bool = True,
        content_type: Optional[str] = None,
    ) -> str:
        async with self._container(container) as client:
            blob_client = client.get_blob_client(name)
            kwargs: Dict[str, Any] = {"overwrite": overwrite}
            if content_type:
                kwargs["content_settings"] = ContentSettings(content_type=content_type)
            with translate_azure_errors("upload", "blob", name):
                await blob_client.upload_blob(stream, **kwargs)
            return blob_client.url


# ══════════════════════════════════════════════════════════════════════════
# Table
# ══════════════════════════════════════════════════════════════════════════

def record_to_entity(record: Record) -> Dict[str, Any]:
    """Flatten a Record into a table entity dict. None-valued fields are omitted."""
    entity: Dict[str, Any] = {
        "PartitionKey": record.partition_key,
        "RowKey": record.row_key,
    }
    for key, value in record.fields.items():
        if value is not None and key not in KEY_COLUMNS:
            entity[key] = value
    return entity


def entity_to_record(entity: Dict[str, Any]) -> Record:
    """Build a Record from a TableEntity, lifting etag/timestamp out of its metadata."""
    metadata = getattr(entity, "metadata", None) or {}
    return Record(
        partition_key=entity["PartitionKey"],
        row_key=entity["RowKey"],
        fields={key: value for key, value in entity.items() if key not in KEY_COLUMNS},
        etag=metadata.get("etag"),
        timestamp=metadata.get("timestamp"),
    )


class AzureTableBackend(TableBackend):
    """Azure Table Storage."""

    def __init__(self, clients: AzureStorageClientFactory):
        self._clients = clients

    def _table(self, table: str) -> TableClient:
        return self._clients.open(TableClient.from_connection_string, table_name=table)

    async def ensure_table(self, table: str) -> None:
        async with self._table(table) as client:
            with translate_azure_errors("ensure_table", "table", table):
                try:
                    await client.create_table()
                    logger.info("Created table '%s'", table)
                except ResourceExistsError:
                    pass

    async def insert(self, table: str, record: Record) -> Record:
        async with self._table(table) as client:
            with translate_azure_errors("insert", "entity", record.row_key):
                metadata = await client.create_entity(entity=record_to_entity(record))
        return replace(record, etag=metadata.get("etag"), timestamp=metadata.get("date"))

    async def get(self, table: str, partition_key: str, row_key: str) -> Record:
        async with self._table(table) as client:
            with translate_azure_errors("get", "entity", row_key):
                entity = await client.get_entity(partition_key=partition_key, row_key=row_key)
        return entity_to_record(entity)

    async def update(
        self,
        table: str,
        record: Record,
        etag: Optional[str],
        mode: UpdateMode = UpdateMode.REPLACE,
    ) -> Record:
        table_mode = TableUpdateMode.REPLACE if mode is UpdateMode.REPLACE else TableUpdateMode.MERGE
        match_condition = (
            MatchConditions.IfNotModified if etag else MatchConditions.Unconditionally
        )
        async with self._table(table) as client:
            with translate_azure_errors("update", "entity", record.row_key):
                metadata = await client.update_entity(
                    entity=record_to_entity(record),
                    mode=table_mode,
                    etag=etag,
                    match_condition=match_condition,
                )
        return replace(record, etag=metadata.get("etag"), timestamp=metadata.get("date"))

    async def delete(self, table: str, partition_key: str, row_key: str) -> None:
        # The SDK's delete_entity ignores a missing entity, so existence is
        # checked first to report NotFoundError.
        async with self._table(table) as client:
            with translate_azure_errors("delete", "entity", row_key):
                await client.get_entity(partition_key=partition_key, row_key=row_key)
                await client.delete_entity(partition_key=partition_key, row_key=row_key)

    async def scan(self, table: str) -> AsyncIterator[Record]:
        async with self._table(table) as client:
            with translate_azure_errors("scan", "table", table):
                try:
                    async for entity in client.list_entities():
                        yield entity_to_record(entity)
                except ResourceNotFoundError:
                    # A table that was never created holds no records.
                    logger.info("Table '%s' does not exist yet; scan is empty", table)
                    return


class AzureStorageBackends:
    """The four Azure backends bound to one storage account."""

    def __init__(self, connection_string: str):
        clients = AzureStorageClientFactory(connection_string)
        self.files = AzureFileShareBackend(clients)
        self.queues = AzureQueueBackend(clients)
        self.blobs = AzureBlobBackend(clients)
        self.tables = AzureTableBackend(clients)
