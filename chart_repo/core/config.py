from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from chart_repo.core.errors import InvalidConfiguration
from chart_repo.domain.versioning import validate_version

CHART_DIR_ENV_VAR = "CHART_REPO_CHART_DIR"
REPO_DIR_ENV_VAR = "CHART_REPO_REPO_DIR"
VERSION_ENV_VAR = "CHART_REPO_VERSION"
PORT_ENV_VAR = "CHART_REPO_PORT"
HOST_ENV_VAR = "CHART_REPO_HOST"
LOG_LEVEL_ENV_VAR = "CHART_REPO_LOG_LEVEL"

DEFAULT_CHART_DIR = "./charts/"
DEFAULT_REPO_DIR = "/repo/charts"
DEFAULT_VERSION = "2.5.0"
DEFAULT_PORT = 3000

MIN_PORT = 1024
MAX_PORT = 65535

# Route prefix under which archives and the index are served.
CHARTS_PREFIX = "/charts"
INDEX_FILENAME = "index.yaml"

# Per-connection timeout for slow or stalled clients, in seconds.
CONNECTION_TIMEOUT_SECONDS = 30
# How long in-flight requests may run after a shutdown signal.
SHUTDOWN_GRACE_SECONDS = 10


class RepoConfig(BaseModel):
    """
    Startup configuration of the chart repository. Immutable once loaded.
    """

    model_config = ConfigDict(frozen=True)

    chart_dir: Path = Field(
        default=Path(DEFAULT_CHART_DIR),
        description="Directory the chart sources are read from.",
    )
    repo_dir: Path = Field(
        default=Path(DEFAULT_REPO_DIR),
        description="Directory the packaged charts are written to and served from.",
    )
    version: str = Field(
        default=DEFAULT_VERSION,
        description="Version stamped onto every packaged chart.",
    )
    port: int = Field(
        default=DEFAULT_PORT,
        ge=MIN_PORT,
        le=MAX_PORT,
        description="Port the repository listens on.",
    )
    host: Optional[str] = Field(
        default=None,
        description="Externally visible host name used in index download URLs.",
    )
    bind_address: str = Field(
        default="0.0.0.0",
        description="Interface the listener binds to.",
    )

    @property
    def base_url(self) -> str:
        if not self.host:
            raise InvalidConfiguration("host for the helm chart repo is not resolved")
        return f"https://{self.host}{CHARTS_PREFIX}"

    def with_host(self, host: str) -> RepoConfig:
        return self.model_copy(update={"host": host})


def load_repo_config(
    chart_dir: str = DEFAULT_CHART_DIR,
    repo_dir: str = DEFAULT_REPO_DIR,
    version: str = DEFAULT_VERSION,
    port: object = DEFAULT_PORT,
    host: Optional[str] = None,
) -> RepoConfig:
    """
    Build a RepoConfig, raising InvalidConfiguration for an out-of-range
    port or a version that is not a semantic version.
    """
    try:
        port = int(port)
    except (TypeError, ValueError) as e:
        raise InvalidConfiguration(f"port for the helm chart repo is not a number: {port!r}") from e

    if port < MIN_PORT or port > MAX_PORT:
        raise InvalidConfiguration(
            f"port for the helm chart repo should be in the range: {MIN_PORT} - {MAX_PORT}, got {port}"
        )

    validate_version(version)

    try:
        return RepoConfig(
            chart_dir=Path(chart_dir),
            repo_dir=Path(repo_dir),
            version=version,
            port=port,
            host=host or None,
        )
    except ValidationError as e:
        raise InvalidConfiguration(str(e)) from e
