"""Web server exposing the subscriber registry.

This module exposes a small JSON API using FastAPI: subscribe, a subscriber
count and a health check.  The server can be run standalone::

    uvicorn --factory waitlist.api.server:create_app

or through ``python -m waitlist.app``, which also configures logging.
Subscribe and count are plain ``def`` endpoints, so FastAPI runs them on its
worker thread pool and concurrent requests really do overlap; the registry
store serializes the writes.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from waitlist.config import Settings, build_store
from waitlist.errors import AlreadyExists, InternalError, InvalidInput
from waitlist.registry.models import UNKNOWN_IP, format_timestamp
from waitlist.registry.service import SubscriptionService

LOGGER = logging.getLogger(__name__)

COUNT_ERROR = "Failed to get subscriber count"

router = APIRouter(prefix="/api")


class SubscribeRequest(BaseModel):
    email: Optional[str] = None


def _client_ip(request: Request) -> str:
    """Best-effort client address for the audit trail.

    Peer address first, then the first ``X-Forwarded-For`` hop, then
    ``"unknown"``.  Never used for any decision.
    """
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    return first_hop or UNKNOWN_IP


def _service(request: Request) -> SubscriptionService:
    return request.app.state.service


def _subscribe_response(status: int, success: bool, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status, content={"success": success, "message": message}
    )


@router.post("/subscribe", response_class=JSONResponse, summary="Join the waitlist")
def subscribe(req: SubscribeRequest, request: Request) -> JSONResponse:
    """Register an email address.

    Invalid and duplicate addresses are expected outcomes and return 400;
    store failures return 500 with a generic message.
    """
    try:
        result = _service(request).subscribe(req.email, _client_ip(request))
    except (InvalidInput, AlreadyExists) as exc:
        return _subscribe_response(400, False, exc.message)
    except InternalError as exc:
        return _subscribe_response(500, False, exc.message)
    return _subscribe_response(200, True, result.message)


@router.get("/subscribers/count", response_class=JSONResponse,
            summary="Number of subscribers")
def subscriber_count(request: Request) -> JSONResponse:
    try:
        count = _service(request).count()
    except InternalError:
        return JSONResponse(status_code=500, content={"error": COUNT_ERROR})
    return JSONResponse(content={"count": count})


@router.get("/health", summary="Liveness probe")
async def health() -> dict:
    """Report liveness without touching the registry."""
    now = dt.datetime.now(dt.timezone.utc)
    return {"status": "ok", "timestamp": format_timestamp(now)}


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    # A missing or unparsable body is reported like a bad address.
    LOGGER.info("Rejected request body on %s: %s", request.url.path, exc.errors())
    return _subscribe_response(400, False, InvalidInput.default_message)


def create_app(service: Optional[SubscriptionService] = None) -> FastAPI:
    """Return a FastAPI application bound to ``service``.

    When no service is given one is built from :class:`Settings`.  The
    service, and with it the registry store and its lock, lives on
    ``app.state`` for the lifetime of the application.
    """
    if service is None:
        service = SubscriptionService(build_store(Settings.from_env()))
    application = FastAPI(title="Waitlist Registry API")
    application.state.service = service
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_exception_handler(RequestValidationError, _invalid_body)
    application.include_router(router)
    return application


__all__ = ["create_app"]
