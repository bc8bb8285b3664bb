"""
Build the repository index.yaml from the archives present in a directory.
"""
from __future__ import annotations

import hashlib
import logging
import tarfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from chart_repo.core.errors import IndexBuildError, InvalidVersion
from chart_repo.domain.models import ChartMetadata, ChartVersionEntry, IndexFile
from chart_repo.domain.versioning import parse_version

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tgz"


def compute_digest(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def read_archive_metadata(archive: Path) -> ChartMetadata:
    """
    Read <name>/Chart.yaml out of a packaged chart.
    """
    try:
        with tarfile.open(archive, mode="r:gz") as tar:
            member = next(
                (
                    m for m in tar.getmembers()
                    if m.isfile() and m.name.count("/") == 1 and m.name.endswith("/Chart.yaml")
                ),
                None,
            )
            if member is None:
                raise IndexBuildError(f"{archive.name} does not contain a Chart.yaml")
            f = tar.extractfile(member)
            if f is None:
                raise IndexBuildError(f"cannot read Chart.yaml from {archive.name}")
            raw = yaml.safe_load(f.read().decode("utf-8"))
    except (OSError, tarfile.TarError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise IndexBuildError(f"cannot read chart archive {archive.name}: {e}") from e

    if not isinstance(raw, dict):
        raise IndexBuildError(f"Chart.yaml in {archive.name} does not contain a mapping")

    try:
        metadata = ChartMetadata.model_validate(raw)
        parse_version(metadata.version)
    except (ValidationError, InvalidVersion) as e:
        raise IndexBuildError(f"invalid chart metadata in {archive.name}: {e}") from e
    return metadata


def list_archives(repo_dir: Path) -> List[Path]:
    """
    Recognized archives directly inside repo_dir, sorted by file name.
    """
    return sorted(
        (
            p for p in repo_dir.iterdir()
            if p.name.endswith(ARCHIVE_SUFFIX) and not p.name.startswith(".") and p.is_file()
        ),
        key=lambda p: p.name,
    )


def index_directory(repo_dir: Path, base_url: str, now: Optional[datetime] = None) -> IndexFile:
    """
    Scan repo_dir (non-recursively) and return an index with one entry per
    chart archive, each downloadable from `<base_url>/<filename>`. Archives
    that cannot be read as charts are logged and left out.
    """
    repo_dir = Path(repo_dir)
    now = now or datetime.now(timezone.utc)
    base_url = base_url.rstrip("/")

    try:
        archives = list_archives(repo_dir)
    except OSError as e:
        raise IndexBuildError(f"cannot read repository directory {repo_dir}: {e}") from e

    entries: Dict[str, List[ChartVersionEntry]] = {}
    for archive in archives:
        try:
            metadata = read_archive_metadata(archive)
        except IndexBuildError as e:
            logger.warning("Skipping %s, not a chart archive: %s", archive.name, e)
            continue

        try:
            digest = compute_digest(archive)
        except OSError as e:
            raise IndexBuildError(f"cannot hash {archive.name}: {e}") from e

        data = metadata.model_dump(by_alias=True, exclude_none=True)
        data.update(
            urls=[f"{base_url}/{archive.name}"],
            created=now,
            digest=digest,
        )
        entries.setdefault(metadata.name, []).append(ChartVersionEntry.model_validate(data))

    for versions in entries.values():
        versions.sort(key=lambda e: parse_version(e.version), reverse=True)

    return IndexFile(entries=dict(sorted(entries.items())), generated=now)


def serialize_index(index: IndexFile) -> bytes:
    try:
        data = index.model_dump(mode="json", by_alias=True, exclude_none=True)
        return yaml.safe_dump(data, sort_keys=True, default_flow_style=False, allow_unicode=True).encode("utf-8")
    except (yaml.YAMLError, ValueError, TypeError) as e:
        raise IndexBuildError(f"cannot serialize index: {e}") from e


def build_index(repo_dir: Path, base_url: str) -> bytes:
    """
    Scan repo_dir and return the serialized index.yaml document.
    """
    index = index_directory(repo_dir, base_url)
    logger.info("Indexed %d chart version(s) from %s", index.entry_count(), repo_dir)
    return serialize_index(index)
