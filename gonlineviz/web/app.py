"""FastAPI application factory."""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from gonlineviz import __version__
from gonlineviz.config import Settings
from gonlineviz.errors import FetchError, GraphError
from gonlineviz.service import RenderService
from gonlineviz.web.api import ErrorResponse, router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, service: RenderService | None = None) -> FastAPI:
    app = FastAPI(title="gonlineviz", version=__version__)
    if service is None:
        service = RenderService.from_settings(settings or Settings())
    app.state.service = service

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.monotonic()
        response: Response = await call_next(request)
        logger.info(
            "%s %s %d %.1fms",
            request.method, request.url.path, response.status_code,
            (time.monotonic() - start) * 1000,
        )
        return response

    @app.exception_handler(GraphError)
    async def graph_error(request: Request, exc: GraphError):
        if isinstance(exc, FetchError):
            logger.error("fetch failed for %s: %s", request.url.path, exc, exc_info=exc)
        elif exc.status_code >= 500:
            logger.error("%s: %s", request.url.path, exc)
        else:
            logger.info("%s: %s", request.url.path, exc)
        body = ErrorResponse(error=exc.kind, message=exc.message)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    app.include_router(router)
    return app
