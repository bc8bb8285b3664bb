from fastapi import Request

from chart_repo.core.config import RepoConfig
from chart_repo.data.index_store import IndexStore


def get_repo_config(request: Request) -> RepoConfig:
    return request.app.state.repo_config


def get_index_store(request: Request) -> IndexStore:
    return request.app.state.index_store
