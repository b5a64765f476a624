"""
CloudMart Functions — Storage Dispatcher Unit Tests
====================================================

What:  Tests for StorageDispatcher against the in-memory backends.
How:   Backend failures are injected with `fail_with`; AsyncMock backends
       check call order where the fakes cannot.

What we test:
    ✅ Each operation performs its backend calls and returns SUCCESS
    ✅ NotFound / Conflict / Backend errors become the matching Outcome kinds
    ✅ Update is read → overlay → replace guarded by the read etag
    ✅ Errors outside the storage taxonomy propagate unchanged
"""

import base64
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from cloudmart.exceptions import BackendError, ConflictError, ValidationError
from cloudmart.models.storage import BlobObject, Record, TextArtifact
from cloudmart.schemas.order import OrderMessage
from cloudmart.services.dispatcher import OutcomeKind, StorageDispatcher
from cloudmart.storage.base import UpdateMode

TABLE = "Products"
PARTITION = "ProductPartition"


async def stream_of(*chunks):
    for chunk in chunks:
        yield chunk


def product_record(row_key="p-1", **fields):
    return Record(
        partition_key=PARTITION,
        row_key=row_key,
        fields={"Name": "Lamp", "Price": 10.0, **fields},
    )


# ══════════════════════════════════════════════════════════════════════════
# File share
# ══════════════════════════════════════════════════════════════════════════

class TestAppendTextArtifact:
    @pytest.mark.asyncio
    async def test_writes_new_file(self, dispatcher, backends):
        artifact = TextArtifact.create("The box arrived damaged.", now=datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc))

        outcome = await dispatcher.append_text_artifact("share", "reviews", artifact)

        assert outcome.kind is OutcomeKind.SUCCESS
        assert outcome.value == artifact.name
        assert backends.files.files_in("share", "reviews") == {artifact.name: b"The box arrived damaged."}
        assert backends.files.calls == ["ensure_share", "ensure_directory", "create_file", "write_range"]

    @pytest.mark.asyncio
    async def test_file_sized_in_utf8_bytes(self, dispatcher, backends):
        artifact = TextArtifact.create("Très bien ☕")
        await dispatcher.append_text_artifact("share", "reviews", artifact)
        stored = backends.files.files_in("share", "reviews")[artifact.name]
        assert stored.decode("utf-8") == "Très bien ☕"

    @pytest.mark.asyncio
    async def test_backend_failure(self, dispatcher, backends):
        backends.files.fail_with = BackendError(context={"status": 503})

        outcome = await dispatcher.append_text_artifact("share", "reviews", TextArtifact.create("x"))

        assert outcome.kind is OutcomeKind.BACKEND_UNAVAILABLE
        assert isinstance(outcome.error, BackendError)
        assert not outcome.ok


# ══════════════════════════════════════════════════════════════════════════
# Queue
# ══════════════════════════════════════════════════════════════════════════

class TestEnqueueMessage:
    @pytest.mark.asyncio
    async def test_message_is_base64_json(self, dispatcher, backends):
        order = OrderMessage(RowKey="p-1", Quantity=3, ProductName="Lamp")

        outcome = await dispatcher.enqueue_message("order-queue", order)

        assert outcome.ok
        [message] = backends.queues.queues["order-queue"]
        assert json.loads(base64.b64decode(message)) == {
            "RowKey": "p-1",
            "Quantity": 3,
            "ProductName": "Lamp",
        }

    @pytest.mark.asyncio
    async def test_backend_failure(self, dispatcher, backends):
        backends.queues.fail_with = BackendError()
        outcome = await dispatcher.enqueue_message("order-queue", OrderMessage(RowKey="p", Quantity=1))
        assert outcome.kind is OutcomeKind.BACKEND_UNAVAILABLE


# ══════════════════════════════════════════════════════════════════════════
# Blob
# ══════════════════════════════════════════════════════════════════════════

class TestUploadBlob:
    @pytest.mark.asyncio
    async def test_upload_returns_url_and_public_container(self, dispatcher, backends):
        blob = BlobObject.for_upload("a.png", stream_of(b"PN", b"G"), "image/png")

        outcome = await dispatcher.upload_blob("product-images", blob)

        assert outcome.ok
        assert outcome.value.endswith(f"/product-images/{blob.name}")
        assert outcome.value.endswith("_a.png")
        assert backends.blobs.containers["product-images"][blob.name] == (b"PNG", "image/png")
        assert backends.blobs.public_access["product-images"] == "blob"

    @pytest.mark.asyncio
    async def test_validation_error_from_stream_propagates(self, dispatcher):
        async def too_big():
            yield b"x"
            raise ValidationError(message="File size exceeds maximum of 10MB. Please upload a smaller image.")

        blob = BlobObject.for_upload("a.png", too_big())
        with pytest.raises(ValidationError):
            await dispatcher.upload_blob("product-images", blob)


# ══════════════════════════════════════════════════════════════════════════
# Table
# ══════════════════════════════════════════════════════════════════════════

class TestRecords:
    @pytest.mark.asyncio
    async def test_create_then_read(self, dispatcher):
        created = await dispatcher.create_record(TABLE, product_record(Description="Warm"))
        assert created.ok
        assert created.value.etag is not None

        read = await dispatcher.read_record(TABLE, PARTITION, "p-1")
        assert read.ok
        assert read.value.fields == {"Name": "Lamp", "Price": 10.0, "Description": "Warm"}

    @pytest.mark.asyncio
    async def test_create_existing_identity_is_conflict(self, dispatcher):
        await dispatcher.create_record(TABLE, product_record())
        outcome = await dispatcher.create_record(TABLE, product_record(Name="Other"))

        assert outcome.kind is OutcomeKind.CONFLICT
        assert isinstance(outcome.error, ConflictError)

    @pytest.mark.asyncio
    async def test_read_missing_is_not_found(self, dispatcher):
        await dispatcher.create_record(TABLE, product_record())
        outcome = await dispatcher.read_record(TABLE, PARTITION, "nope")
        assert outcome.kind is OutcomeKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_read_all_on_missing_table_is_empty(self, dispatcher):
        outcome = await dispatcher.read_all_records(TABLE)
        assert outcome.ok
        assert outcome.value == []

    @pytest.mark.asyncio
    async def test_read_all_returns_every_record(self, dispatcher):
        await dispatcher.create_record(TABLE, product_record("a"))
        await dispatcher.create_record(TABLE, product_record("b"))

        outcome = await dispatcher.read_all_records(TABLE)

        assert sorted(record.row_key for record in outcome.value) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_read_all_backend_failure(self, dispatcher, backends):
        backends.tables.fail_with = BackendError()
        outcome = await dispatcher.read_all_records(TABLE)
        assert outcome.kind is OutcomeKind.BACKEND_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_update_overlays_fields(self, dispatcher):
        await dispatcher.create_record(TABLE, product_record(Description="Old", Colour="Red"))

        outcome = await dispatcher.update_record(TABLE, PARTITION, "p-1", {"Name": "Lamp v2", "Description": None})

        assert outcome.ok
        assert outcome.value.fields == {"Name": "Lamp v2", "Price": 10.0, "Description": None, "Colour": "Red"}

    @pytest.mark.asyncio
    async def test_update_missing_creates_nothing(self, dispatcher, backends):
        await dispatcher.create_record(TABLE, product_record())

        outcome = await dispatcher.update_record(TABLE, PARTITION, "ghost", {"Name": "x"})

        assert outcome.kind is OutcomeKind.NOT_FOUND
        assert (PARTITION, "ghost") not in backends.tables.tables[TABLE]

    @pytest.mark.asyncio
    async def test_update_uses_read_etag_and_replace_mode(self):
        existing = Record(PARTITION, "p-1", {"Name": "Lamp"}, etag='W/"7"')
        tables = MagicMock()
        tables.get = AsyncMock(return_value=existing)
        tables.update = AsyncMock(side_effect=lambda table, record, etag, mode: record)
        dispatcher = StorageDispatcher(files=MagicMock(), queues=MagicMock(), blobs=MagicMock(), tables=tables)

        await dispatcher.update_record(TABLE, PARTITION, "p-1", {"Price": 12.0})

        tables.get.assert_awaited_once_with(TABLE, PARTITION, "p-1")
        args = tables.update.await_args.args
        assert args[1].fields == {"Name": "Lamp", "Price": 12.0}
        assert args[2] == 'W/"7"'
        assert args[3] is UpdateMode.REPLACE

    @pytest.mark.asyncio
    async def test_stale_etag_is_conflict(self):
        tables = MagicMock()
        tables.get = AsyncMock(return_value=Record(PARTITION, "p-1", {}, etag="e1"))
        tables.update = AsyncMock(side_effect=ConflictError())
        dispatcher = StorageDispatcher(files=MagicMock(), queues=MagicMock(), blobs=MagicMock(), tables=tables)

        outcome = await dispatcher.update_record(TABLE, PARTITION, "p-1", {"Name": "x"})

        assert outcome.kind is OutcomeKind.CONFLICT

    @pytest.mark.asyncio
    async def test_delete_then_read_is_not_found(self, dispatcher):
        await dispatcher.create_record(TABLE, product_record())

        deleted = await dispatcher.delete_record(TABLE, PARTITION, "p-1")
        read = await dispatcher.read_record(TABLE, PARTITION, "p-1")

        assert deleted.ok
        assert read.kind is OutcomeKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_missing_is_not_found(self, dispatcher):
        await dispatcher.create_record(TABLE, product_record())
        outcome = await dispatcher.delete_record(TABLE, PARTITION, "ghost")
        assert outcome.kind is OutcomeKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unexpected_exception_propagates(self):
        tables = MagicMock()
        tables.get = AsyncMock(side_effect=RuntimeError("bug"))
        dispatcher = StorageDispatcher(files=MagicMock(), queues=MagicMock(), blobs=MagicMock(), tables=tables)

        with pytest.raises(RuntimeError):
            await dispatcher.read_record(TABLE, PARTITION, "p-1")
