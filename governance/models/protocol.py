"""Generated meeting protocol record."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from governance.models.base import BaseEntity


class MeetingProtocol(BaseEntity):
    """The rendered, hash-sealed protocol of a meeting.

    content_hash is a pure function of the meeting snapshot: regenerating
    from an unchanged snapshot gives the same hash.
    """

    meeting_id: UUID
    number: str = Field(description="Protocol number, e.g. '12/2026'")
    snapshot_digest: str = Field(description="sha256 of the canonical snapshot")
    content_hash: str = Field(description="sha256 of the rendered document bytes")
    storage_key: str = Field(description="Key of the document in document storage")
    size_bytes: int = Field(ge=0)
    generated_at: datetime
    approved_by: str | None = None
    approved_at: datetime | None = None
