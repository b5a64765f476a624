"""
CloudMart Functions — Abstract Storage Backends
================================================

What:  Abstract base classes defining the capability set of each storage
       service the handlers talk to.
How:   Concrete implementations (azure_backends.py for Azure Storage, fakes
       in the test suite) inherit from these and translate their own failures
       into the CloudMart exception taxonomy.
Who:   Called only by StorageDispatcher.

Error contract shared by every backend:
    NotFoundError       the addressed entity (or its container) does not exist
    ConflictError       insert of an existing identity / stale version token
    BackendError        any other failure of the storage service
    ConfigurationError  the credentials cannot be used at all

"Ensure" operations are create-if-absent: an already existing resource is
not an error.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, Optional

from cloudmart.models.storage import Record


class UpdateMode(str, Enum):
    """How an update combines with the stored entity."""

    REPLACE = "replace"
    MERGE = "merge"


class FileShareBackend(ABC):
    """File service: shares containing directories containing files."""

    @abstractmethod
    async def ensure_share(self, share: str) -> None:
        ...

    @abstractmethod
    async def ensure_directory(self, share: str, directory: str) -> None:
        ...

    @abstractmethod
    async def create_file(self, share: str, directory: str, name: str, size: int) -> None:
        """Create (or truncate) a file of the given size."""
        ...

    @abstractmethod
    async def write_range(
        self, share: str, directory: str, name: str, offset: int, data: bytes
    ) -> None:
        """Write data into an existing file starting at offset."""
        ...


class QueueBackend(ABC):
    """Queue service: named queues of opaque text messages."""

    @abstractmethod
    async def ensure_queue(self, queue: str) -> None:
        ...

    @abstractmethod
    async def send_message(self, queue: str, content: str) -> None:
        ...


class BlobBackend(ABC):
    """Blob service: containers of named byte objects."""

    @abstractmethod
    async def ensure_container(self, container: str, public_access: Optional[str] = None) -> None:
        """
        Create the container if it is missing.

        Args:
            public_access: None (private), "blob" or "container"
        """
        ...

    @abstractmethod
    async def upload(
        self,
        container: str,
        name: str,
        stream: AsyncIterator[bytes],
        overwrite: bool = True,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Upload the stream to container/name.

        Returns:
            The absolute URL of the stored blob.
        """
        ...


class TableBackend(ABC):
    """Table service: entities addressed by (partition key, row key)."""

    @abstractmethod
    async def ensure_table(self, table: str) -> None:
        ...

    @abstractmethod
    async def insert(self, table: str, record: Record) -> Record:
        """Insert a new entity. ConflictError if the identity exists."""
        ...

    @abstractmethod
    async def get(self, table: str, partition_key: str, row_key: str) -> Record:
        """Fetch by exact key. NotFoundError if absent."""
        ...

    @abstractmethod
    async def update(
        self,
        table: str,
        record: Record,
        etag: Optional[str],
        mode: UpdateMode = UpdateMode.REPLACE,
    ) -> Record:
        """
        Write record back over an existing entity.

        With an etag the write only succeeds while the stored version still
        matches it (ConflictError otherwise). NotFoundError if absent.
        """
        ...

    @abstractmethod
    async def delete(self, table: str, partition_key: str, row_key: str) -> None:
        """Delete by exact key. NotFoundError if absent."""
        ...

    @abstractmethod
    def scan(self, table: str) -> AsyncIterator[Record]:
        """Lazily yield every entity; each call starts a fresh scan."""
        ...
