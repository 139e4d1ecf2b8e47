"""Health endpoints: process status and readiness of the vote store and protocol storage."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from governance.config import settings

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


class ReadinessResponse(BaseModel):
    """Per-dependency check results; ready only when every check is ok."""

    status: str
    checks: dict[str, str]


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.app_env,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    """Ready when the database and the protocol document store both respond."""
    checks: dict[str, str] = {}

    db = getattr(request.app.state, "db", None)
    if db is None:
        checks["database"] = "not_configured"
    else:
        checks["database"] = "ok" if await db.is_healthy() else "failed"

    store = getattr(request.app.state, "document_store", None)
    if store is None:
        checks["document_store"] = "not_configured"
    else:
        checks["document_store"] = "ok" if await store.health_check() else "failed"

    ready = all(result == "ok" for result in checks.values())
    return ReadinessResponse(status="ready" if ready else "not_ready", checks=checks)
