"""Shared API dependencies and error mapping."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from governance.errors import (
    AlreadyUsed,
    AmbiguousWinner,
    ExpiredCode,
    Forbidden,
    GovernanceError,
    IneligibleVoter,
    InvalidCode,
    InvalidTransition,
    NotFound,
    VotingClosed,
)
from governance.models.actor import Actor, Role
from governance.services.meeting_service import MeetingService

# Most specific class first
ERROR_STATUS: list[tuple[type[GovernanceError], int]] = [
    (NotFound, 404),
    (Forbidden, 403),
    (IneligibleVoter, 403),
    (InvalidTransition, 409),
    (VotingClosed, 409),
    (AmbiguousWinner, 409),
    (AlreadyUsed, 409),
    (ExpiredCode, 410),
    (InvalidCode, 400),
]


def status_for(error: GovernanceError) -> int:
    """HTTP status code for a domain error (400 if unmapped)."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return 400


async def governance_error_handler(request: Request, exc: GovernanceError) -> JSONResponse:
    """Render a GovernanceError as {"detail", "error"}."""
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": exc.message, "error": exc.code},
    )


def get_meeting_service(request: Request) -> MeetingService:
    """Dependency to get MeetingService from app state.

    Raises:
        HTTPException: If service not initialized
    """
    service = getattr(request.app.state, "meeting_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="MeetingService not initialized")
    return service


def get_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    x_user_role: Annotated[Role | None, Header()] = None,
    x_building_id: Annotated[str | None, Header()] = None,
    x_user_name: Annotated[str | None, Header()] = None,
    x_user_phone: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the calling Actor from identity headers set by the gateway.

    Raises:
        HTTPException: 401 if the user id or role header is missing
    """
    if not x_user_id or x_user_role is None:
        raise HTTPException(status_code=401, detail="Missing identity headers")
    return Actor(
        user_id=x_user_id,
        role=x_user_role,
        building_id=x_building_id,
        name=x_user_name,
        phone=x_user_phone,
    )


CurrentActor = Annotated[Actor, Depends(get_actor)]
Service = Annotated[MeetingService, Depends(get_meeting_service)]
