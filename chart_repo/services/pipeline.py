from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from chart_repo.core.errors import LoadError, PackagingError, SaveError
from chart_repo.domain.versioning import validate_version
from chart_repo.services.packager import package_chart

logger = logging.getLogger(__name__)


def package_charts(chart_dir: Path, repo_dir: Path, version: str) -> List[Path]:
    """
    Package every immediate subdirectory of chart_dir into repo_dir.

    The version is validated before anything is written. The pass stops at
    the first chart that fails; files at the top level of chart_dir are
    ignored.
    """
    validate_version(version)

    chart_dir = Path(chart_dir)
    try:
        entries = sorted(chart_dir.iterdir(), key=lambda p: p.name)
    except OSError as e:
        raise LoadError(f"cannot read chart directory {chart_dir}: {e}") from e

    archives: List[Path] = []
    for entry in entries:
        if not entry.is_dir():
            logger.debug("Skipping non-directory entry %s", entry)
            continue
        try:
            archives.append(package_chart(entry, repo_dir, version))
        except (LoadError, SaveError) as e:
            raise PackagingError(entry.name, e) from e

    logger.info("Packaged %d chart(s) from %s into %s", len(archives), chart_dir, repo_dir)
    return archives
