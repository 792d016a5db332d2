"""API routers for the gift split backend."""
from fastapi import APIRouter

from . import checkout_sessions, gifts, health, join, stripe


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(gifts.router)
    api_router.include_router(join.router)
    api_router.include_router(stripe.router)
    api_router.include_router(checkout_sessions.router)
    return api_router
