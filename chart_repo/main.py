from __future__ import annotations

import argparse
import logging
import os
import platform
from typing import List, Optional

from chart_repo.core.config import (
    CHART_DIR_ENV_VAR,
    DEFAULT_CHART_DIR,
    DEFAULT_PORT,
    DEFAULT_REPO_DIR,
    DEFAULT_VERSION,
    HOST_ENV_VAR,
    LOG_LEVEL_ENV_VAR,
    PORT_ENV_VAR,
    REPO_DIR_ENV_VAR,
    VERSION_ENV_VAR,
    load_repo_config,
)
from chart_repo.core.errors import ChartRepoError
from chart_repo.server import RepoServer
from chart_repo.services.route_domain import resolve_route_domain

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chart-repo",
        description="Package Helm charts and serve them as a chart repository.",
    )
    parser.add_argument(
        "--chart-dir",
        default=os.environ.get(CHART_DIR_ENV_VAR, DEFAULT_CHART_DIR),
        help="directory of reading charts from.",
    )
    parser.add_argument(
        "--repo-dir",
        default=os.environ.get(REPO_DIR_ENV_VAR, DEFAULT_REPO_DIR),
        help="directory of writing helm charts to.",
    )
    parser.add_argument(
        "--version",
        default=os.environ.get(VERSION_ENV_VAR, DEFAULT_VERSION),
        help="version of helm charts.",
    )
    parser.add_argument(
        "--port",
        default=os.environ.get(PORT_ENV_VAR, str(DEFAULT_PORT)),
        help="The port for the helm chart repo.",
    )
    parser.add_argument(
        "--host",
        default=os.environ.get(HOST_ENV_VAR, ""),
        help="The host for the helm chart repo. Discovered from the cluster when empty.",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get(LOG_LEVEL_ENV_VAR, "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Logging level.",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    logger.info("Python Version: %s", platform.python_version())
    logger.info("Python OS/Arch: %s/%s", platform.system().lower(), platform.machine())

    try:
        config = load_repo_config(
            chart_dir=args.chart_dir,
            repo_dir=args.repo_dir,
            version=args.version,
            port=args.port,
            host=args.host,
        )
        if not config.host:
            config = config.with_host(resolve_route_domain())
    except ChartRepoError as e:
        logger.error("%s", e)
        return 1

    return RepoServer(config).run()


if __name__ == "__main__":
    raise SystemExit(main())
