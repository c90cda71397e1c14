"""
API v1 Router

Partner federation endpoints live under /auth/external.
"""

from fastapi import APIRouter
from docsign_federation_shared.schemas.common import ErrorResponse
from . import external

router = APIRouter()

router.include_router(
    external.router,
    prefix="/auth/external",
    tags=["Federation"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)


@router.get("/", tags=["API"])
async def api_root():
    """List the partner endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth/external/generate-token",
            "/auth/external/exchange-token",
            "/auth/external/authorize",
            "/auth/external/authorize-business",
            "/auth/external/verify",
            "/auth/external/remove-member",
        ],
    }
