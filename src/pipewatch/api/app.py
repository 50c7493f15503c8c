"""FastAPI app entrypoint."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from fastapi.websockets import WebSocketState

from pipewatch.api.deps import Services, build_services
from pipewatch.api.routes.alerts import router as alerts_router
from pipewatch.api.routes.builds import router as builds_router
from pipewatch.api.routes.events import router as events_router
from pipewatch.api.routes.metrics import router as metrics_router
from pipewatch.api.routes.notifications import router as notifications_router
from pipewatch.api.routes.rules import router as rules_router
from pipewatch.api.routes.webhooks import router as webhooks_router
from pipewatch.config import get_settings
from pipewatch.core.errors import StoreUnavailableError
from pipewatch.core.events import Subscription
from pipewatch.log import configure_logging

logger = structlog.get_logger(__name__)


def create_app(services: Services | None = None) -> FastAPI:
    if services is None:
        settings = get_settings()
        configure_logging(settings)
        services = build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("service_started", database=str(services.settings.database_path))
        yield
        pending = services.dispatcher.pending_deliveries
        if pending:
            logger.info("draining_notifications", pending=pending)
        await services.dispatcher.drain()
        logger.info("service_stopped")

    app = FastAPI(title="Pipewatch API", version="0.1.0", lifespan=lifespan)
    app.state.services = services
    app.include_router(webhooks_router)
    app.include_router(metrics_router)
    app.include_router(builds_router)
    app.include_router(rules_router)
    app.include_router(alerts_router)
    app.include_router(events_router)
    app.include_router(notifications_router)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable(request: Request, exc: StoreUnavailableError) -> JSONResponse:
        logger.error("store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": str(exc)},
        )

    @app.get("/api/v1/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.websocket("/api/v1/ws")
    async def live_events(websocket: WebSocket) -> None:
        bus = websocket.app.state.services.events
        subscription = bus.subscribe()
        await websocket.accept()
        receiver = asyncio.create_task(_receive_subscriptions(websocket, subscription))
        forwarder = asyncio.create_task(_forward_events(websocket, subscription))
        try:
            await asyncio.wait({receiver, forwarder}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            receiver.cancel()
            forwarder.cancel()
            results = await asyncio.gather(receiver, forwarder, return_exceptions=True)
            bus.unsubscribe(subscription)
        failures = [
            result
            for result in results
            if isinstance(result, Exception) and not isinstance(result, WebSocketDisconnect)
        ]
        for failure in failures:
            logger.error(
                "live_events_failed",
                subscription=subscription.id,
                error=repr(failure),
            )
        if failures and websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            except (RuntimeError, WebSocketDisconnect):
                logger.debug("live_events_close_failed", subscription=subscription.id)

    return app


async def _receive_subscriptions(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        try:
            message = json.loads(await websocket.receive_text())
        except WebSocketDisconnect:
            return
        except ValueError:
            logger.warning("invalid_client_message", subscription=subscription.id)
            continue
        if not isinstance(message, dict) or not message.get("project"):
            continue
        action = message.get("action")
        project = str(message["project"])
        if action == "subscribe":
            subscription.join(project)
        elif action == "unsubscribe":
            subscription.leave(project)
        else:
            continue
        logger.info(
            "client_subscription_changed",
            subscription=subscription.id,
            action=action,
            project=project,
        )
        await websocket.send_json({"action": f"{action}d", "project": project})


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await subscription.queue.get()
        await websocket.send_json(event.model_dump(mode="json"))


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host=settings.host, port=settings.port, reload=False)
