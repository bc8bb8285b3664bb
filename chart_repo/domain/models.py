from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChartMaintainer(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    email: Optional[str] = None
    url: Optional[str] = None


class ChartMetadata(BaseModel):
    """
    Contents of a chart's Chart.yaml.

    Only name and version are mandatory; apiVersion defaults to v1. Unknown keys are kept so
    they survive the round trip into the packaged archive and the index.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(default="v1", alias="apiVersion")
    name: str
    version: str
    description: Optional[str] = None
    app_version: Optional[str] = Field(default=None, alias="appVersion")
    kube_version: Optional[str] = Field(default=None, alias="kubeVersion")
    type: Optional[str] = None
    home: Optional[str] = None
    icon: Optional[str] = None
    deprecated: Optional[bool] = None
    keywords: Optional[List[str]] = None
    sources: Optional[List[str]] = None
    maintainers: Optional[List[ChartMaintainer]] = None
    dependencies: Optional[List[Dict[str, Any]]] = None
    annotations: Optional[Dict[str, str]] = None

    @field_validator("name")
    @classmethod
    def _name_is_a_single_path_segment(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"chart name {value!r} is not a valid file name")
        return value

    @field_validator("version", "api_version", mode="before")
    @classmethod
    def _coerce_to_string(cls, value: Any) -> Any:
        # YAML turns `version: 1.0` into a float.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @property
    def archive_name(self) -> str:
        return f"{self.name}-{self.version}.tgz"


class ChartVersionEntry(ChartMetadata):
    """
    One entry of index.yaml: a packaged chart version and where to fetch it.
    """

    urls: List[str] = Field(default_factory=list)
    created: datetime
    digest: str


class IndexFile(BaseModel):
    """
    The repository index document served as /charts/index.yaml.
    """

    model_config = ConfigDict(populate_by_name=True)

    api_version: str = Field(default="v1", alias="apiVersion")
    entries: Dict[str, List[ChartVersionEntry]] = Field(default_factory=dict)
    generated: datetime

    def entry_count(self) -> int:
        return sum(len(versions) for versions in self.entries.values())
