"""
CloudMart Functions — Storage Entities
=======================================

What:  Backend-neutral representations of the things the handlers store.
How:   Plain dataclasses. Routes build them from validated payloads, the
       dispatcher hands them to a storage backend.

    Record        keyed table entity (partition + row key + fields + etag)
    BlobObject    named byte stream bound for a blob container
    TextArtifact  text file written once under a fixed share directory

Identity is generated here (blob and artifact names) so that every entity
carries a non-empty identity before it reaches a backend.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import PureWindowsPath
from typing import Any, AsyncIterator, Dict, Optional

ARTIFACT_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"


@dataclass(frozen=True)
class Record:
    """
    Keyed entity stored in a table backend.

    Attributes:
        partition_key: Fixed grouping key for the entity kind
        row_key:       Unique identifier within the partition
        fields:        Field name → scalar value (str, int, float, bool, None)
        etag:          Opaque version token; None until the backend returns one
        timestamp:     Last-modified time reported by the backend
    """

    partition_key: str
    row_key: str
    fields: Dict[str, Any] = field(default_factory=dict)
    etag: Optional[str] = None
    timestamp: Optional[datetime] = None

    def overlay(self, new_fields: Dict[str, Any]) -> "Record":
        """Return a copy with every key of new_fields written over ours."""
        merged = dict(self.fields)
        merged.update(new_fields)
        return replace(self, fields=merged)


@dataclass
class BlobObject:
    """
    A byte stream to upload, with its generated blob name.

    The stream is consumed exactly once by the upload call.
    """

    name: str
    stream: AsyncIterator[bytes]
    content_type: Optional[str] = None

    @classmethod
    def for_upload(
        cls,
        original_filename: str,
        stream: AsyncIterator[bytes],
        content_type: Optional[str] = None,
    ) -> "BlobObject":
        """
        Build a blob with a collision-free name: "<uuid4>_<file name>".

        Only the final path component of the client file name is kept;
        PureWindowsPath strips both "/" and "\\" separators.
        """
        base_name = PureWindowsPath(original_filename).name
        return cls(
            name=f"{uuid.uuid4()}_{base_name}",
            stream=stream,
            content_type=content_type,
        )


@dataclass(frozen=True)
class TextArtifact:
    """Text content plus its generated, timestamped file name."""

    name: str
    content: str

    @classmethod
    def create(
        cls,
        content: str,
        prefix: str = "review",
        now: Optional[datetime] = None,
    ) -> "TextArtifact":
        """
        Name the artifact "<prefix>-<yyyyMMdd-HHmmss>-<8 hex>.txt" (UTC).

        The random suffix separates artifacts created within the same second.
        """
        moment = now or datetime.now(timezone.utc)
        stamp = moment.strftime(ARTIFACT_TIMESTAMP_FORMAT)
        suffix = uuid.uuid4().hex[:8]
        return cls(name=f"{prefix}-{stamp}-{suffix}.txt", content=content)

    def encoded(self) -> bytes:
        return self.content.encode("utf-8")
