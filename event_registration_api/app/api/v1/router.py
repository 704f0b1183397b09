"""
Top-level router for version 1 of the API.

This router aggregates the domain routers under a unified prefix.
When new endpoints are added, update this file to include their
routers.
"""

from fastapi import APIRouter

from .endpoints import audit, events, registrations

router = APIRouter()

router.include_router(registrations.router, prefix="/registrations", tags=["registrations"])
router.include_router(events.router, prefix="/events", tags=["events"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])
