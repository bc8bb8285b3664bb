from __future__ import annotations

import semver

from chart_repo.core.errors import InvalidVersion


def parse_version(version: str) -> semver.Version:
    """
    Parse a strict semantic version (MAJOR.MINOR.PATCH with optional
    pre-release and build metadata).
    """
    if not isinstance(version, str):
        raise InvalidVersion(version)
    try:
        return semver.Version.parse(version)
    except (TypeError, ValueError) as e:
        raise InvalidVersion(version) from e


def validate_version(version: str) -> str:
    parse_version(version)
    return version
