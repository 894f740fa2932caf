"""
FastAPI server for the chat page. Browsers connect over a WebSocket, send
user actions to the conversation controller and receive its state changes.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse

from ..chat.controller import ConversationController
from ..config import UIConfig
from ..shared.event_bus import Event, EventBus
from ..shared.protocol import (
    BROADCAST_EVENTS,
    ClientMessage,
    ClientMessageType,
    ServerMessage,
)

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


class ClientConnection:
    """
    One connected browser. Sends are serialized so the snapshot always goes
    out first, and bus events at or below ``seq`` are skipped because the
    snapshot already contains them.
    """

    def __init__(self, websocket: WebSocket, seq: int = 0):
        self.websocket = websocket
        self.seq = seq
        self._lock = asyncio.Lock()

    async def send(self, message: ServerMessage, seq: int = 0) -> bool:
        """Send one message; returns False if it was skipped as stale."""
        async with self._lock:
            if seq:
                if seq <= self.seq:
                    return False
                self.seq = seq
            await self.websocket.send_text(message.to_json())
            return True


class ChatUIServer:
    """
    Rendering surface for the conversation controller. State events are
    broadcast to all connected browsers; a new browser gets a full snapshot.
    Replies to a single browser's request (open) go to that browser only.
    """

    def __init__(self, config: UIConfig, controller: ConversationController, event_bus: EventBus):
        self.config = config
        self.controller = controller
        self.bus = event_bus
        self.app = FastAPI(title="Code Assistant", docs_url=None, lifespan=self._lifespan)
        self._connections: Dict[WebSocket, ClientConnection] = {}
        self._pending: Set[asyncio.Task] = set()
        self._server = None

        self._setup_routes()
        self.bus.subscribe(self._handle_event, *BROADCAST_EVENTS)

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.bus.start()
        try:
            yield
        finally:
            for task in self._pending:
                task.cancel()
            await self.controller.close()
            await self.bus.stop()

    def _setup_routes(self):
        """Configure FastAPI routes."""

        @self.app.get("/")
        async def index():
            html_path = STATIC_DIR / "index.html"
            if html_path.exists():
                return FileResponse(html_path, media_type="text/html")
            return HTMLResponse("<h1>Code Assistant</h1><p>Static files not found.</p>")

        @self.app.get("/health")
        async def health():
            return {"status": "ok", "connections": len(self._connections)}

        @self.app.get("/blobs/{blob_id}")
        async def blob(blob_id: str):
            text = self.controller.blobs.get(blob_id)
            if text is None:
                raise HTTPException(status_code=404, detail="Blob not found")
            return PlainTextResponse(text)

        @self.app.websocket("/ws")
        async def websocket_endpoint(websocket: WebSocket):
            await websocket.accept()

            # No await between snapshot and registration.
            snapshot = self.controller.snapshot()
            connection = ClientConnection(websocket, snapshot["seq"])
            self._connections[websocket] = connection
            logger.info("Client connected. Total: %d", len(self._connections))
            try:
                await connection.send(ServerMessage.sync(snapshot))
                while True:
                    raw = await websocket.receive_text()
                    await self._handle_client_message(raw, connection)
            except WebSocketDisconnect:
                pass
            finally:
                self._connections.pop(websocket, None)
                logger.info("Client disconnected. Total: %d", len(self._connections))

    async def _handle_client_message(self, raw: str, connection: Optional[ClientConnection] = None):
        """Route one browser action to the controller."""
        try:
            message = ClientMessage.from_json(raw)
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            logger.warning("Ignoring malformed client message: %s", e)
            return

        payload = message.payload
        if message.type is ClientMessageType.PROMPT:
            await self.controller.set_prompt(str(payload.get("text", "")))
        elif message.type is ClientMessageType.SUBMIT:
            if "prompt" in payload:
                await self.controller.set_prompt(str(payload["prompt"]))
            # The relay call can take seconds; keep reading other actions meanwhile.
            task = asyncio.create_task(self.controller.submit())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        elif message.type is ClientMessageType.RESET:
            await self.controller.reset()
        elif message.type is ClientMessageType.COPY:
            await self.controller.copy(str(payload.get("content", "")))
        elif message.type is ClientMessageType.OPEN:
            blob_id = await self.controller.open_external(str(payload.get("content", "")))
            if connection is not None:
                await connection.send(ServerMessage.open(blob_id, f"/blobs/{blob_id}"))

    async def _handle_event(self, event: Event):
        await self._broadcast(ServerMessage.from_event(event), event.seq)

    async def _broadcast(self, message: ServerMessage, seq: int = 0):
        """Send a message to all connected clients."""
        if not self._connections:
            return
        disconnected = []
        for ws, connection in list(self._connections.items()):
            try:
                await connection.send(message, seq)
            except Exception:
                disconnected.append(ws)
        for ws in disconnected:
            self._connections.pop(ws, None)

    async def start(self):
        """Start the uvicorn server."""
        import uvicorn
        config = uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        logger.info("Chat UI starting on %s:%d", self.config.host, self.config.port)
        await self._server.serve()

    async def stop(self):
        """Close all connections."""
        for ws in list(self._connections):
            try:
                await ws.close()
            except Exception:
                logger.debug("Close failed for a client", exc_info=True)
        self._connections.clear()
        if self._server:
            self._server.should_exit = True
        logger.info("Chat UI server stopped")
