"""
CloudMart Functions — Storage Operation Dispatcher
===================================================

What:  Performs exactly one logical storage operation per request and
       reports how it ended as a tagged Outcome.
How:   Each operation is a short sequence of backend capability calls run
       inside _run(), which converts the backend's NotFound / Conflict /
       Backend errors into Outcome kinds. Nothing is retried here.
Who:   Called by the route handlers with already validated values; the
       Outcome goes to the response mapper.

Operation → backend calls:
    append_text_artifact   ensure_share, ensure_directory, create_file, write_range
    enqueue_message        ensure_queue, send_message
    upload_blob            ensure_container(public "blob"), upload(overwrite)
    create_record          ensure_table, insert
    read_record            get
    read_all_records       scan (fresh per call, collected into a list)
    update_record          get, overlay, update(REPLACE, etag of the read)
    delete_record          delete

Errors outside the taxonomy (DecodeError/ValidationError raised while an
upload stream is consumed, ConfigurationError, programming errors)
propagate to the global exception handlers unchanged.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar

from cloudmart.exceptions import BackendError, CloudMartError, ConflictError, NotFoundError
from cloudmart.models.storage import BlobObject, Record, TextArtifact
from cloudmart.schemas.order import OrderMessage
from cloudmart.storage.base import (
    BlobBackend,
    FileShareBackend,
    QueueBackend,
    TableBackend,
    UpdateMode,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

BLOB_PUBLIC_ACCESS = "blob"


class OutcomeKind(str, Enum):
    """Terminal states of one storage operation."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BACKEND_UNAVAILABLE = "backend_unavailable"


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of one dispatcher call.

    Attributes:
        kind:   How the operation ended
        value:  Operation result on SUCCESS (record, URL, list, None)
        error:  The backend error for every other kind
    """

    kind: OutcomeKind
    value: Optional[T] = None
    error: Optional[CloudMartError] = None

    @property
    def ok(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS


class StorageDispatcher:
    """
    Stateless gateway from validated values to storage backends.

    A new instance is created per request by cloudmart.dependencies; tests
    build one over in-memory fakes.
    """

    def __init__(
        self,
        files: FileShareBackend,
        queues: QueueBackend,
        blobs: BlobBackend,
        tables: TableBackend,
    ):
        self.files = files
        self.queues = queues
        self.blobs = blobs
        self.tables = tables

    async def _run(self, operation: str, action: Callable[[], Awaitable[T]]) -> Outcome[T]:
        try:
            value = await action()
        except NotFoundError as exc:
            logger.warning("%s: not found (%s)", operation, exc.context)
            return Outcome(kind=OutcomeKind.NOT_FOUND, error=exc)
        except ConflictError as exc:
            logger.warning("%s: conflict (%s)", operation, exc.context)
            return Outcome(kind=OutcomeKind.CONFLICT, error=exc)
        except BackendError as exc:
            logger.error("%s: backend failure (%s)", operation, exc.context)
            return Outcome(kind=OutcomeKind.BACKEND_UNAVAILABLE, error=exc)
        return Outcome(kind=OutcomeKind.SUCCESS, value=value)

    # ── File share ────────────────────────────────────────────────────────

    async def append_text_artifact(
        self, share: str, directory: str, artifact: TextArtifact
    ) -> Outcome[str]:
        async def action() -> str:
            data = artifact.encoded()
            await self.files.ensure_share(share)
            await self.files.ensure_directory(share, directory)
            await self.files.create_file(share, directory, artifact.name, len(data))
            await self.files.write_range(share, directory, artifact.name, 0, data)
            logger.info("Wrote %d bytes to %s/%s/%s", len(data), share, directory, artifact.name)
            return artifact.name

        return await self._run("append_text_artifact", action)

    # ── Queue ─────────────────────────────────────────────────────────────

    async def enqueue_message(self, queue: str, message: OrderMessage) -> Outcome[None]:
        async def action() -> None:
            await self.queues.ensure_queue(queue)
            await self.queues.send_message(queue, message.encode())
            logger.info("Enqueued order for RowKey '%s' on '%s'", message.row_key, queue)

        return await self._run("enqueue_message", action)

    # ── Blob ──────────────────────────────────────────────────────────────

    async def upload_blob(self, container: str, blob: BlobObject) -> Outcome[str]:
        async def action() -> str:
            await self.blobs.ensure_container(container, public_access=BLOB_PUBLIC_ACCESS)
            url = await self.blobs.upload(
                container,
                blob.name,
                blob.stream,
                overwrite=True,
                content_type=blob.content_type,
            )
            logger.info("Image uploaded successfully. URL: %s", url)
            return url

        return await self._run("upload_blob", action)

    # ── Table ─────────────────────────────────────────────────────────────

    async def create_record(self, table: str, record: Record) -> Outcome[Record]:
        async def action() -> Record:
            await self.tables.ensure_table(table)
            created = await self.tables.insert(table, record)
            logger.info("Record added to '%s' with RowKey '%s'.", table, created.row_key)
            return created

        return await self._run("create_record", action)

    async def read_record(self, table: str, partition_key: str, row_key: str) -> Outcome[Record]:
        async def action() -> Record:
            return await self.tables.get(table, partition_key, row_key)

        return await self._run("read_record", action)

    async def read_all_records(self, table: str) -> Outcome[List[Record]]:
        async def action() -> List[Record]:
            return [record async for record in self.tables.scan(table)]

        return await self._run("read_all_records", action)

    async def update_record(
        self,
        table: str,
        partition_key: str,
        row_key: str,
        new_fields: Dict[str, Any],
    ) -> Outcome[Record]:
        async def action() -> Record:
            existing = await self.tables.get(table, partition_key, row_key)
            updated = existing.overlay(new_fields)
            return await self.tables.update(table, updated, existing.etag, UpdateMode.REPLACE)

        return await self._run("update_record", action)

    async def delete_record(self, table: str, partition_key: str, row_key: str) -> Outcome[None]:
        async def action() -> None:
            await self.tables.delete(table, partition_key, row_key)
            logger.info("Deleted RowKey '%s' from '%s'", row_key, table)

        return await self._run("delete_record", action)
