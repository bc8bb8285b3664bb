from __future__ import annotations

import logging

from fastapi import FastAPI

from chart_repo import __version__
from chart_repo.api.charts import router as charts_router
from chart_repo.api.health import router as health_router
from chart_repo.core.config import CHARTS_PREFIX, RepoConfig
from chart_repo.data.index_store import IndexStore

logger = logging.getLogger(__name__)


def create_app(config: RepoConfig, index_store: IndexStore) -> FastAPI:
    """
    Build the HTTP application around an already populated index store.
    """
    app = FastAPI(
        title="Helm chart repository",
        version=__version__,
        description="Serves packaged Helm charts and their index.yaml.",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.repo_config = config
    app.state.index_store = index_store

    app.include_router(health_router, tags=["health"])
    app.include_router(charts_router, prefix=CHARTS_PREFIX, tags=["charts"])

    logger.debug("Router ready, serving %s from %s", CHARTS_PREFIX, config.repo_dir)
    return app
