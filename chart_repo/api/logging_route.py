from __future__ import annotations

import logging
import time
from typing import Callable, Coroutine, Any

from fastapi import HTTPException, Request, Response
from fastapi.routing import APIRoute

logger = logging.getLogger(__name__)


class LoggingRoute(APIRoute):
    """
    Route class that logs method, status, duration and URI of every request.
    """

    def get_route_handler(self) -> Callable[[Request], Coroutine[Any, Any, Response]]:
        handler = super().get_route_handler()

        async def logged_handler(request: Request) -> Response:
            status_code = 500
            start = time.perf_counter()
            try:
                response = await handler(request)
                status_code = response.status_code
                return response
            except HTTPException as e:
                status_code = e.status_code
                raise
            finally:
                duration_ms = (time.perf_counter() - start) * 1000
                uri = request.url.path
                if request.url.query:
                    uri = f"{uri}?{request.url.query}"
                logger.info("%s %d %3dms %s", request.method, status_code, duration_ms, uri)

        return logged_handler
