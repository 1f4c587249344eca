from __future__ import annotations

from fastapi import APIRouter

from api.routes import events, health, insurance, liquidity


def get_api_router() -> APIRouter:
    router = APIRouter()

    router.include_router(health.router, tags=["health"])
    router.include_router(liquidity.router, tags=["liquidity"])
    router.include_router(insurance.router, tags=["insurance"])
    router.include_router(events.router, tags=["events"])

    return router
