"""
FastAPI server exposing the drawer to local clients.

Tills without an intercepted page (kiosk apps, scripts) connect to
http://localhost:PORT or ws://localhost:PORT/ws to open the cash drawer
through the same lock and availability cache as the page integration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import BridgeConfig
from .integration import DrawerIntegration
from .protocol import (
    drawer_error_event,
    drawer_opened_event,
    error_event,
    parse_message,
    status_event,
)

logger = logging.getLogger('till.bridge.server')


def create_app(
    config: BridgeConfig | None = None,
    integration: DrawerIntegration | None = None,
) -> FastAPI:
    """Build the agent app around one integration."""
    config = config or BridgeConfig.from_file()
    integration = integration or DrawerIntegration(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        logger.info(f"Till Bridge v{__version__} starting on {config.host}:{config.port}")
        await integration.initialize()

        yield

        await integration.close()
        logger.info("Till Bridge shutting down")

    app = FastAPI(
        title="Till Bridge",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.integration = integration
    app.state.connections = set()

    # Allow browser pages on any localhost origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_api_route("/status", get_status, methods=["GET"])
    app.add_api_route("/debug", get_debug, methods=["GET"])
    app.add_api_route("/drawer/open", open_drawer, methods=["POST"])
    app.add_api_route("/availability/recheck", recheck_availability, methods=["POST"])
    app.add_api_websocket_route("/ws", websocket_endpoint)

    return app


def _integration(request_or_ws) -> DrawerIntegration:
    return request_or_ws.app.state.integration


def _status(integration: DrawerIntegration) -> dict:
    return {"status": "ok", **_status_args(integration)}


async def run_drawer_operation(integration: DrawerIntegration):
    """One drawer attempt under the transaction lock. None when busy."""
    with integration.lock.guard() as acquired:
        if not acquired:
            return None
        return await integration.controller.attempt()


async def run_recheck(integration: DrawerIntegration) -> bool | None:
    """Fresh availability probe under the transaction lock. None when busy."""
    with integration.lock.guard() as acquired:
        if not acquired:
            return None
        return await integration.availability.recheck_availability()


# ─── HTTP ───────────────────────────────────────────────────────────────────

async def get_status(request: Request):
    """Health check endpoint for client detection."""
    return _status(_integration(request))


async def get_debug(request: Request):
    return _integration(request).get_debug_info()


async def open_drawer(request: Request):
    result = await run_drawer_operation(_integration(request))
    if result is None:
        raise HTTPException(status_code=409, detail="Drawer operation already in progress")
    return result.as_dict()


async def recheck_availability(request: Request):
    integration = _integration(request)
    available = await run_recheck(integration)
    if available is None:
        raise HTTPException(status_code=409, detail="Drawer operation in progress, try again later")
    return {"available": available, "availability": integration.availability.state.value}


# ─── WebSocket ──────────────────────────────────────────────────────────────

async def websocket_endpoint(ws: WebSocket):
    """Action/event channel for local clients."""
    connections: set[WebSocket] = ws.app.state.connections
    integration = _integration(ws)

    await ws.accept()
    connections.add(ws)
    logger.info(f"Client connected (total: {len(connections)})")

    await ws.send_text(status_event(**_status_args(integration)))

    try:
        while True:
            raw = await ws.receive_text()
            await handle_message(ws, raw, integration)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        connections.discard(ws)
        logger.info(f"Client disconnected (total: {len(connections)})")


def _status_args(integration: DrawerIntegration) -> dict:
    return {
        'version': __version__,
        'availability': integration.availability.state.value,
        'locked': integration.lock.is_locked(),
    }


async def handle_message(ws: WebSocket, raw: str, integration: DrawerIntegration):
    """Route incoming messages to the appropriate handler."""
    try:
        msg = parse_message(raw)
    except ValueError as e:
        await ws.send_text(error_event(str(e), 'parse_error'))
        return

    action = msg.get('action')
    logger.debug(f"Action: {action}")

    if action == 'get_status':
        await ws.send_text(status_event(**_status_args(integration)))
    elif action == 'open_drawer':
        await handle_open_drawer(ws, integration)
    elif action == 'recheck_availability':
        if await run_recheck(integration) is None:
            await ws.send_text(error_event('Drawer operation in progress, try again later', 'busy'))
            return
        await ws.send_text(status_event(**_status_args(integration)))
    else:
        await ws.send_text(error_event(f"Unknown action: {action}", 'unknown_action'))


async def handle_open_drawer(ws: WebSocket, integration: DrawerIntegration):
    result = await run_drawer_operation(integration)

    if result is None:
        await ws.send_text(error_event('Drawer operation already in progress', 'busy'))
    elif result.ok:
        await ws.send_text(drawer_opened_event(result.printer))
    else:
        await ws.send_text(drawer_error_event(str(result.error), result.error_class))
