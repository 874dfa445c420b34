"""
FastAPI HTTP/WebSocket server for the cash drawer bridge.

POS front-ends running in a browser connect to http://localhost:PORT to
list printers and kick the drawer, either over plain HTTP or through the
ws://localhost:PORT/ws socket.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Body, FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import BridgeConfig
from .drawer import get_bridge
from .protocol import (
    drawer_result_event,
    error_event,
    parse_message,
    printers_event,
    status_event,
)

logger = logging.getLogger('cashdrawer.bridge')

_config: BridgeConfig | None = None


def get_config() -> BridgeConfig:
    global _config
    if _config is None:
        _config = BridgeConfig()
    return _config


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    config = get_config()
    logger.info(f"Cash Drawer Bridge v{__version__} starting on {config.host}:{config.port}")
    yield
    logger.info("Cash Drawer Bridge shutting down")


app = FastAPI(
    title="Cash Drawer Bridge",
    version=__version__,
    lifespan=lifespan,
)

# Allow browser to connect from any localhost origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/status")
async def health_check():
    """Health check endpoint for browser detection."""
    return {
        "status": "ok",
        "version": __version__,
        "backend": get_config().backend,
    }


@app.get("/printers")
async def list_printers():
    printers = await get_bridge().get_available_printers()
    return [p.to_dict() for p in printers]


@app.post("/drawer")
async def open_drawer(payload: dict = Body(...)):
    """Kick the drawer. Always answers 200 with an OpenResult body."""
    result = await get_bridge().open_cash_drawer(
        payload.get('printerName'),
        payload.get('options'),
    )
    return result.to_dict()


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """Main WebSocket endpoint."""
    await ws.accept()
    logger.info("Client connected")

    await ws.send_text(status_event(__version__, get_config().backend))

    try:
        while True:
            raw = await ws.receive_text()
            await handle_message(ws, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        logger.info("Client disconnected")


async def handle_message(ws: WebSocket, raw: str):
    """Route incoming messages to the appropriate handler."""
    try:
        msg = parse_message(raw)
    except ValueError as e:
        await ws.send_text(error_event(str(e), 'parse_error'))
        return

    action = msg.get('action')
    logger.debug(f"Action: {action}")

    if action == 'get_status':
        await ws.send_text(status_event(__version__, get_config().backend))
    elif action == 'discover_printers':
        await handle_discover_printers(ws)
    elif action == 'open_drawer':
        await handle_open_drawer(ws, msg)
    else:
        await ws.send_text(error_event(f"Unknown action: {action}", 'unknown_action'))


async def handle_discover_printers(ws: WebSocket):
    """Handle discover_printers command."""
    logger.info("Discovering printers...")
    printers = await get_bridge().get_available_printers()
    await ws.send_text(printers_event([p.to_dict() for p in printers]))


async def handle_open_drawer(ws: WebSocket, msg: dict):
    """Handle open_drawer command."""
    printer_name = msg.get('printerName')
    result = await get_bridge().open_cash_drawer(printer_name, msg.get('options'))
    await ws.send_text(drawer_result_event(printer_name, result.to_dict()))
