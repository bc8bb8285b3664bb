from __future__ import annotations

from fastapi import APIRouter, Response, status

router = APIRouter()


@router.api_route("/liveness", methods=["GET", "HEAD"])
async def liveness() -> Response:
    """
    200 for as long as the process is serving.
    """
    return Response(status_code=status.HTTP_200_OK)


@router.api_route("/readiness", methods=["GET", "HEAD"])
async def readiness() -> Response:
    """
    The index is built before the listener starts, so a running server is
    always ready.
    """
    return Response(status_code=status.HTTP_200_OK)
