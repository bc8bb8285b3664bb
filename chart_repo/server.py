"""
Startup and shutdown of the chart repository.

Startup is a single linear pass: package the charts, build the index,
build the router, then listen. Nothing before the listener runs again for
the lifetime of the process; serving new content requires a restart.
"""
from __future__ import annotations

import enum
import logging
import signal
import threading
from types import FrameType
from typing import Callable, Dict, Optional

import uvicorn
from fastapi import FastAPI

from chart_repo.app import create_app
from chart_repo.core.config import (
    CONNECTION_TIMEOUT_SECONDS,
    SHUTDOWN_GRACE_SECONDS,
    RepoConfig,
)
from chart_repo.core.errors import ChartRepoError
from chart_repo.data.index_store import IndexStore
from chart_repo.services.indexer import build_index
from chart_repo.services.pipeline import package_charts

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleState(str, enum.Enum):
    INIT = "init"
    PACKAGING = "packaging"
    INDEXING = "indexing"
    ROUTER_READY = "router-ready"
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"


class DrainingServer(uvicorn.Server):
    """
    uvicorn server that reports the shutdown signal before draining.

    uvicorn already stops accepting connections on SIGINT/SIGTERM, waits up
    to timeout_graceful_shutdown for in-flight requests and then cancels
    whatever is left.
    """

    def __init__(self, config: uvicorn.Config, on_exit: Callable[[int], None]):
        super().__init__(config)
        self._on_exit = on_exit

    def handle_exit(self, sig: int, frame: Optional[FrameType]) -> None:
        if not self.should_exit:
            self._on_exit(sig)
        super().handle_exit(sig, frame)


def _absorb_replayed_signal(sig: int, frame: Optional[FrameType]) -> None:
    # uvicorn re-raises the captured signal once it has shut down; the
    # shutdown already happened, so exit normally instead of dying by signal.
    logger.debug("Ignoring replayed signal %s after shutdown", signal.Signals(sig).name)


class RepoServer:
    """
    Owns the repository configuration, the index store and the HTTP server.
    """

    def __init__(self, config: RepoConfig):
        self.config = config
        self.index_store = IndexStore()
        self.state = LifecycleState.INIT
        self.app: Optional[FastAPI] = None

    def _transition(self, state: LifecycleState) -> None:
        logger.debug("Lifecycle %s -> %s", self.state.value, state.value)
        self.state = state

    def prepare(self) -> FastAPI:
        """
        Package all charts, build the index and the router.

        Raises ChartRepoError on the first failure; no socket is bound yet.
        """
        base_url = self.config.base_url

        self._transition(LifecycleState.PACKAGING)
        package_charts(self.config.chart_dir, self.config.repo_dir, self.config.version)

        self._transition(LifecycleState.INDEXING)
        self.index_store.install(build_index(self.config.repo_dir, base_url))

        self.app = create_app(self.config, self.index_store)
        self._transition(LifecycleState.ROUTER_READY)
        return self.app

    def _on_shutdown_signal(self, sig: int) -> None:
        logger.info("Received signal: %s", signal.Signals(sig).name)
        self._transition(LifecycleState.DRAINING)

    def build_http_server(self) -> DrainingServer:
        if self.app is None:
            raise RuntimeError("prepare() must run before the server is built")

        uv_config = uvicorn.Config(
            self.app,
            host=self.config.bind_address,
            port=self.config.port,
            log_config=None,
            timeout_keep_alive=CONNECTION_TIMEOUT_SECONDS,
            timeout_graceful_shutdown=SHUTDOWN_GRACE_SECONDS,
        )
        return DrainingServer(uv_config, on_exit=self._on_shutdown_signal)

    def serve(self) -> None:
        """
        Listen until a shutdown signal arrives and the drain has finished.
        """
        server = self.build_http_server()

        previous: Dict[int, object] = {}
        if threading.current_thread() is threading.main_thread():
            previous = {sig: signal.signal(sig, _absorb_replayed_signal) for sig in SHUTDOWN_SIGNALS}

        self._transition(LifecycleState.LISTENING)
        logger.info("serving on port %d", self.config.port)
        try:
            server.run()
        finally:
            for sig, handler in previous.items():
                if handler is not None:
                    signal.signal(sig, handler)
            self._transition(LifecycleState.STOPPED)

        if not server.started:
            raise ChartRepoError(f"failed to listen on port {self.config.port}")

    def run(self) -> int:
        """
        Full lifecycle. Returns the process exit code.
        """
        try:
            self.prepare()
            self.serve()
        except ChartRepoError as e:
            logger.error("%s", e)
            return 1

        logger.info("exiting...")
        return 0
