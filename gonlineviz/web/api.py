"""FastAPI route rendering import graphs as PNG images."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Awaitable

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from gonlineviz.errors import BadRequestError
from gonlineviz.models import DEFAULT_DEPTH, RenderVariant
from gonlineviz.service import RenderService

logger = logging.getLogger(__name__)

router = APIRouter()

DISCONNECT_POLL_SECONDS = 0.5


class ErrorResponse(BaseModel):
    error: str
    message: str


class ClientDisconnected(Exception):
    pass


def get_service(request: Request) -> RenderService:
    return request.app.state.service


async def run_until_disconnect(request: Request, work: Awaitable[Any]) -> Any:
    """Await ``work``, cancelling it if the client goes away first.

    Cancelling the task kills in-flight VCS and layout subprocesses.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("client disconnected, cancelling render of %s", request.url.path)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                raise ClientDisconnected(request.url.path)
    except asyncio.CancelledError:
        task.cancel()
        raise


# --- Endpoints ---

@router.get("/", responses={400: {"model": ErrorResponse}})
async def index():
    raise BadRequestError("please provide a valid package path")


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return PlainTextResponse("Not Found", status_code=404)


@router.get(
    "/{import_path:path}",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}},
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def render_graph(
    request: Request,
    import_path: str,
    leaf: bool = False,
    depth: int = Query(DEFAULT_DEPTH, ge=0),
    reversed: str | None = None,
):
    variant = RenderVariant(with_leaf=leaf, depth=depth, reversed=reversed or None)
    service = get_service(request)
    try:
        image = await run_until_disconnect(request, service.render(import_path, variant))
    except ClientDisconnected:
        return Response(status_code=499)
    return Response(content=image, media_type="image/png")
