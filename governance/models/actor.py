"""Actor supplied by the identity/session collaborator."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Role of the acting user."""

    ADMIN = "admin"
    DIRECTOR = "director"
    MANAGER = "manager"
    RESIDENT = "resident"


MANAGEMENT_ROLES = frozenset({Role.ADMIN, Role.DIRECTOR, Role.MANAGER})


class Actor(BaseModel):
    """The authenticated user performing an operation."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str = Field(min_length=1, description="Identity of the caller")
    role: Role = Field(description="Caller's role")
    building_id: str | None = Field(
        default=None, description="Building the caller belongs to (residents)"
    )
    name: str | None = Field(default=None, description="Display name")
    phone: str | None = Field(default=None, description="Phone for one-time codes")

    @property
    def is_management(self) -> bool:
        """Check if the actor acts for the management company."""
        return self.role in MANAGEMENT_ROLES

    @property
    def otp_target(self) -> str:
        """Destination a one-time code is bound to for this actor."""
        return self.phone or f"user:{self.user_id}"
