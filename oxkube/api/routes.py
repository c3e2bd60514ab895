"""Webhook routes.

    GET  /        -- readiness text naming the webhook path.
    GET  /{path}  -- webhook readiness text.
    POST /{path}  -- one change event per request.

POST responses:
    201 "created"            -- the protocol inserted at least one element.
    200 "updated"            -- the protocol changed existing elements.
    200 "nothing to update"  -- the CMDB already held the same state.
    400                      -- the body is not a mappable event.
    501                      -- the kind/change type has no handler.
    500                      -- a CMDB write failed or was rejected.
"""

from __future__ import annotations

import secrets

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse

from oxkube.cmdb.auth import basic_token
from oxkube.errors import MappingError, OxKubeError, UnsupportedKindError
from oxkube.models.cmdb import Operation, Result
from oxkube.models.config import WebhookConfig
from oxkube.models.events import ChangeType, ResourceKind
from oxkube.observability.metrics import events_total
from oxkube.sync.reader import EventReader

_log = structlog.get_logger(component="api.routes")


def _require_webhook_auth(request: Request) -> None:
    """Enforce basic authentication when the webhook is configured for it."""
    config: WebhookConfig = request.app.state.webhook_config
    if config.auth_mode != "basic":
        return
    provided = request.headers.get("Authorization", "")
    if not provided:
        _log.debug("unauthorised webhook request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication required",
            headers={"WWW-Authenticate": 'Basic realm="oxkube"'},
        )
    required = basic_token(config.username, config.password)
    if not secrets.compare_digest(provided.encode(), required.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="forbidden")


def _count_event(event: EventReader | None, outcome: str) -> None:
    kind = ResourceKind.parse(event.kind) if event is not None else None
    change = ChangeType.parse(event.change_type) if event is not None else None
    events_total.labels(
        kind=str(kind) if kind else "unknown",
        change_type=str(change) if change else "unknown",
        outcome=outcome,
    ).inc()


def _response_for(result: Result) -> PlainTextResponse:
    if result.error:
        return PlainTextResponse(result.message or "synchronization failed", status_code=500)
    if not result.changed:
        return PlainTextResponse("nothing to update", status_code=200)
    if result.operation == Operation.INSERT:
        return PlainTextResponse("created", status_code=201)
    return PlainTextResponse("updated", status_code=200)


def build_router(webhook_path: str) -> APIRouter:
    """Create the router serving the webhook at ``/{webhook_path}``."""
    router = APIRouter()
    path = f"/{webhook_path.strip('/')}"

    @router.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return f"OxKube is ready.\nPOST events to webhook: {path}."

    @router.api_route("/", methods=["POST", "PUT", "DELETE"], response_class=PlainTextResponse)
    async def root_not_allowed() -> PlainTextResponse:
        return PlainTextResponse("405 - Method Not Allowed", status_code=405)

    @router.get(path, response_class=PlainTextResponse, dependencies=[Depends(_require_webhook_auth)])
    async def webhook_ready() -> str:
        return "OxKube webhook is ready.\nUse an HTTP POST to send events."

    @router.post(path, dependencies=[Depends(_require_webhook_auth)])
    async def webhook(request: Request) -> PlainTextResponse:
        synchronizer = request.app.state.synchronizer
        event: EventReader | None = None
        try:
            event = EventReader.from_bytes(await request.body())
            result = await synchronizer.process(event)
        except MappingError as exc:
            _log.warning("event_mapping_failed", error=str(exc))
            _count_event(event, "invalid")
            return PlainTextResponse(str(exc), status_code=400)
        except UnsupportedKindError as exc:
            _log.info("event_not_supported", kind=exc.kind, change_type=exc.change_type)
            _count_event(event, "unsupported")
            return PlainTextResponse(str(exc), status_code=501)
        except OxKubeError as exc:
            _log.error("event_processing_failed", error=str(exc))
            _count_event(event, "error")
            return PlainTextResponse(str(exc), status_code=500)

        if result.error:
            outcome = "error"
        elif result.changed:
            outcome = "changed"
        else:
            outcome = "unchanged"
        _count_event(event, outcome)
        _log.info(
            "event_processed",
            kind=event.kind,
            change_type=event.change_type,
            name=event.name,
            outcome=outcome,
        )
        return _response_for(result)

    return router
