"""Base types for protocol document storage.

DocumentStore is the seam to wherever rendered protocols live (local
disk, object storage). Implementations satisfy the protocol structurally.
"""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class StoredDocument(BaseModel):
    """Result of storing a document."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Storage key the document is addressable by")
    size_bytes: int = Field(ge=0)
    location: str | None = Field(
        default=None, description="Backend-specific location (path, URL)"
    )


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for stores that hold rendered protocol documents.

    Keys are content-addressed by the caller, so writing the same key
    twice with the same bytes is harmless.
    """

    async def put(self, key: str, data: bytes) -> StoredDocument:
        """Store bytes under key, replacing anything already there."""
        ...

    async def get(self, key: str) -> bytes:
        """Read the document stored under key.

        Raises:
            FileNotFoundError: If nothing is stored under key
        """
        ...

    async def delete(self, key: str) -> None:
        """Remove the document stored under key (no-op if absent)."""
        ...

    async def health_check(self) -> bool:
        """Check if the store is reachable and writable."""
        ...
