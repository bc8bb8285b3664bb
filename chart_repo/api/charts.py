from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import FileResponse

from chart_repo.api.logging_route import LoggingRoute
from chart_repo.core.config import INDEX_FILENAME, RepoConfig
from chart_repo.core.dependencies import get_index_store, get_repo_config
from chart_repo.data.index_store import IndexStore

logger = logging.getLogger(__name__)
router = APIRouter(route_class=LoggingRoute)

INDEX_MEDIA_TYPE = "application/x-yaml"


# ---------------------------------------------------------------------------
# 1. GET /charts/index.yaml
# ---------------------------------------------------------------------------

@router.api_route(f"/{INDEX_FILENAME}", methods=["GET", "HEAD"])
async def get_index(store: IndexStore = Depends(get_index_store)) -> Response:
    """
    Serve the index built at startup, straight from memory.
    """
    return Response(
        content=store.read(),
        status_code=status.HTTP_200_OK,
        media_type=INDEX_MEDIA_TYPE,
    )


# ---------------------------------------------------------------------------
# 2. GET /charts/{filename}
# ---------------------------------------------------------------------------

@router.api_route("/{filename:path}", methods=["GET", "HEAD"])
async def get_chart_archive(
    filename: str,
    config: RepoConfig = Depends(get_repo_config),
) -> FileResponse:
    """
    Serve a file from the repository directory as-is.
    """
    repo_dir = config.repo_dir.resolve()
    target = (repo_dir / filename).resolve()

    # Anything resolving outside the repository directory does not exist here.
    if not target.is_relative_to(repo_dir) or not target.is_file():
        raise HTTPException(status_code=404, detail="Chart archive not found")

    return FileResponse(path=str(target))
