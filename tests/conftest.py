from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import pytest
import yaml


def write_chart(
    root: Path,
    name: str,
    version: str = "0.1.0",
    files: Optional[Dict[str, str]] = None,
    **metadata,
) -> Path:
    """Create a minimal chart source directory under root."""
    chart_dir = root / name
    (chart_dir / "templates").mkdir(parents=True)
    chart_yaml = {"apiVersion": "v2", "name": name, "version": version}
    chart_yaml.update(metadata)
    (chart_dir / "Chart.yaml").write_text(yaml.safe_dump(chart_yaml), encoding="utf-8")
    (chart_dir / "values.yaml").write_text("replicas: 1\n", encoding="utf-8")
    (chart_dir / "templates" / "deployment.yaml").write_text("kind: Deployment\n", encoding="utf-8")
    for rel_path, content in (files or {}).items():
        path = chart_dir / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return chart_dir


@pytest.fixture
def chart_dir(tmp_path: Path) -> Path:
    d = tmp_path / "charts"
    d.mkdir()
    return d


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    return tmp_path / "repo"
