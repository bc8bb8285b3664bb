"""
Turn a chart source directory into a versioned .tgz archive.
"""
from __future__ import annotations

import fnmatch
import io
import logging
import os
import tarfile
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

import yaml
from pydantic import BaseModel, ValidationError

from chart_repo.core.errors import LoadError, SaveError
from chart_repo.domain.models import ChartMetadata

logger = logging.getLogger(__name__)

CHART_FILE = "Chart.yaml"
IGNORE_FILE = ".helmignore"

# (pattern, directories_only, negated)
IgnoreRule = Tuple[str, bool, bool]

# Hidden files in templates/ are never packaged.
DEFAULT_IGNORE_RULES: List[IgnoreRule] = [("templates/.?*", False, False)]


class LoadedChart(BaseModel):
    """
    A chart read from disk: its metadata plus the files that go into the archive.
    """

    source_dir: Path
    metadata: ChartMetadata
    raw_metadata: Dict[str, Any]
    # POSIX paths relative to source_dir, Chart.yaml excluded.
    files: List[str]

    def stamp_version(self, version: str) -> None:
        self.metadata.version = version
        self.raw_metadata["version"] = version


def _load_ignore_rules(chart_dir: Path) -> List[IgnoreRule]:
    rules: List[IgnoreRule] = []
    ignore_path = chart_dir / IGNORE_FILE
    if not ignore_path.is_file():
        return list(DEFAULT_IGNORE_RULES)

    for line in ignore_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        negated = line.startswith("!")
        if negated:
            line = line[1:]
        dir_only = line.endswith("/")
        pattern = line.rstrip("/").lstrip("/")
        if pattern:
            rules.append((pattern, dir_only, negated))
    return rules + DEFAULT_IGNORE_RULES


def _is_ignored(rel_path: str, is_dir: bool, rules: List[IgnoreRule]) -> bool:
    ignored = False
    base = rel_path.rsplit("/", 1)[-1]
    for pattern, dir_only, negated in rules:
        if dir_only and not is_dir:
            continue
        if fnmatch.fnmatch(rel_path, pattern) or fnmatch.fnmatch(base, pattern):
            ignored = not negated
    return ignored


def _walk_chart_files(chart_dir: Path, rules: List[IgnoreRule]) -> Iterator[str]:
    for root, dirs, files in os.walk(chart_dir):
        root_path = Path(root)
        rel_root = root_path.relative_to(chart_dir).as_posix()
        prefix = "" if rel_root == "." else f"{rel_root}/"

        dirs.sort()
        dirs[:] = [d for d in dirs if not _is_ignored(prefix + d, True, rules)]

        for name in sorted(files):
            rel_path = prefix + name
            if rel_path == CHART_FILE or _is_ignored(rel_path, False, rules):
                continue
            if not (root_path / name).is_file():
                continue
            yield rel_path


def load_chart_dir(chart_dir: Path) -> LoadedChart:
    """
    Load a chart from its source directory.

    Raises LoadError when the directory or its Chart.yaml is missing, the
    YAML cannot be parsed, or mandatory metadata is absent.
    """
    chart_dir = Path(chart_dir)
    if not chart_dir.is_dir():
        raise LoadError(f"{chart_dir} is not a directory")

    chart_yaml = chart_dir / CHART_FILE
    if not chart_yaml.is_file():
        raise LoadError(f"{CHART_FILE} file is missing in {chart_dir}")

    try:
        raw = yaml.safe_load(chart_yaml.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise LoadError(f"cannot read {chart_yaml}: {e}") from e

    if not isinstance(raw, dict):
        raise LoadError(f"{chart_yaml} does not contain a mapping")

    try:
        metadata = ChartMetadata.model_validate(raw)
    except ValidationError as e:
        raise LoadError(f"invalid {chart_yaml}: {e}") from e

    try:
        rules = _load_ignore_rules(chart_dir)
        files = list(_walk_chart_files(chart_dir, rules))
    except (OSError, UnicodeDecodeError) as e:
        raise LoadError(f"cannot read files of {chart_dir}: {e}") from e

    return LoadedChart(
        source_dir=chart_dir,
        metadata=metadata,
        raw_metadata=dict(raw),
        files=files,
    )


def save_chart_archive(chart: LoadedChart, dest_dir: Path) -> Path:
    """
    Write the chart as <name>-<version>.tgz into dest_dir.

    The archive is written to a hidden temporary file next to the target and
    renamed into place, so the target is either the previous file or the
    complete new one.
    """
    dest_dir = Path(dest_dir)
    if dest_dir.exists() and not dest_dir.is_dir():
        raise SaveError(f"location {dest_dir} is not a directory")
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SaveError(f"cannot create {dest_dir}: {e}") from e

    name = chart.metadata.name
    target = dest_dir / chart.metadata.archive_name
    if target.is_dir():
        raise SaveError(f"{target} already exists and is a directory")

    chart_yaml = yaml.safe_dump(
        chart.raw_metadata,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    ).encode("utf-8")

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=dest_dir)
    except OSError as e:
        raise SaveError(f"cannot write to {dest_dir}: {e}") from e

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh, tarfile.open(fileobj=fh, mode="w:gz") as tar:
            info = tarfile.TarInfo(f"{name}/{CHART_FILE}")
            info.size = len(chart_yaml)
            info.mode = 0o644
            info.mtime = int((chart.source_dir / CHART_FILE).stat().st_mtime)
            tar.addfile(info, io.BytesIO(chart_yaml))

            for rel_path in chart.files:
                tar.add(chart.source_dir / rel_path, arcname=f"{name}/{rel_path}", recursive=False)

        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, target)
    except (OSError, tarfile.TarError) as e:
        tmp_path.unlink(missing_ok=True)
        raise SaveError(f"failed to save {target}: {e}") from e

    return target


def package_chart(chart_dir: Path, dest_dir: Path, version: str) -> Path:
    """
    Load one chart, stamp it with `version` and save it into dest_dir.

    Returns the path of the written archive.
    """
    try:
        chart = load_chart_dir(chart_dir)
    except LoadError as e:
        raise LoadError(f"failed to load: {e}") from e

    chart.stamp_version(version)

    try:
        archive = save_chart_archive(chart, dest_dir)
    except SaveError as e:
        raise SaveError(f"failed to save: {e}") from e

    logger.info("Packaged chart as %s", archive)
    return archive
