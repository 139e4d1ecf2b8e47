"""API router aggregation."""

from fastapi import APIRouter

from governance.api.buildings import router as buildings_router
from governance.api.health import router as health_router
from governance.api.meetings import router as meetings_router
from governance.api.otp import router as otp_router
from governance.api.votes import router as votes_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(meetings_router)
# Votes live under /meetings/{id}/votes and /meetings/{id}/schedule/votes
api_router.include_router(votes_router)
api_router.include_router(otp_router)
# Directory feed of voting units and per-building settings
api_router.include_router(buildings_router)
