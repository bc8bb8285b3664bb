from __future__ import annotations

from typing import Optional


class ChartRepoError(Exception):
    """
    Base class for every startup failure of the chart repository.

    Anything raised as a ChartRepoError before the listener starts is fatal:
    the lifecycle logs it and the process exits with status 1.
    """


class InvalidConfiguration(ChartRepoError):
    pass


class InvalidVersion(InvalidConfiguration):
    def __init__(self, version: object):
        self.version = version
        super().__init__(f"invalid semantic version: {version!r}")


class HostDiscoveryError(ChartRepoError):
    pass


class LoadError(ChartRepoError):
    pass


class SaveError(ChartRepoError):
    pass


class PackagingError(ChartRepoError):
    """
    Raised by the packaging pass when a single chart fails. The original
    LoadError/SaveError is kept as __cause__.
    """

    def __init__(self, chart: str, cause: Optional[BaseException] = None):
        self.chart = chart
        message = f"failed to package directory {chart}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class IndexBuildError(ChartRepoError):
    pass
