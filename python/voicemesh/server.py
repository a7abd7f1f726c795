"""
FastAPI WebSocket server for voicemesh.

Provides VoiceMeshServer, which decodes WebSocket frames, hands events to the
SignalingGateway and runs the janitor for the lifetime of the app.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRouter
from pydantic import ValidationError

from .config import ServerConfig
from .errors import ErrorCode
from .gateway import SignalingGateway
from .janitor import JanitorScheduler
from .protocol import Envelope, ErrorEvent, ack_frame
from .ratelimit import RateLimiter
from .room import RoomRegistry

logger = logging.getLogger(__name__)


class VoiceMeshServer:
    """
    FastAPI WebSocket server for voice room signaling.

    Handles:
    - WebSocket connections and frame decoding
    - Event dispatch and acknowledgements
    - Health reporting
    - Janitor start/stop with the app lifespan
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        registry: Optional[RoomRegistry] = None,
        rate_limiter: Optional[RateLimiter] = None,
        gateway: Optional[SignalingGateway] = None,
        janitor: Optional[JanitorScheduler] = None,
    ):
        self._config = config if config is not None else ServerConfig()
        if registry is None:
            registry = RoomRegistry(
                max_members=self._config.max_room_size,
                max_name_length=self._config.max_name_length,
            )
        self._registry = registry
        if rate_limiter is None:
            rate_limiter = RateLimiter(
                window=self._config.rate_limit_window,
                max_attempts=self._config.rate_limit_max_attempts,
            )
        if gateway is None:
            gateway = SignalingGateway(self._registry, rate_limiter)
        self._gateway = gateway
        if janitor is None:
            janitor = JanitorScheduler(
                self._registry,
                self._gateway.rate_limiter,
                room_max_age=self._config.room_max_age,
                room_sweep_interval=self._config.room_sweep_interval,
                rate_limit_sweep_interval=self._config.rate_limit_sweep_interval,
            )
        self._janitor = janitor
        self._janitor.set_expired_callback(self._gateway.expire_rooms)

        self._router = APIRouter()
        self._app: Optional[FastAPI] = None
        self._setup_routes()

    @property
    def app(self) -> FastAPI:
        """Get the FastAPI application with routes configured."""
        if self._app is None:
            self._app = FastAPI(title="voicemesh", lifespan=self._lifespan)
            self._app.add_middleware(
                CORSMiddleware,
                allow_origins=[self._config.client_url],
                allow_methods=["GET", "POST"],
                allow_headers=["*"],
            )
            self._app.include_router(self._router)
        return self._app

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Lifespan handler for startup/shutdown events."""
        await self.start()
        logger.info(f"voicemesh signaling server ready on {self._config.ws_path}")

        yield

        await self.stop()

    @property
    def config(self) -> ServerConfig:
        return self._config

    @property
    def registry(self) -> RoomRegistry:
        """Get the room registry."""
        return self._registry

    @property
    def gateway(self) -> SignalingGateway:
        return self._gateway

    @property
    def rate_limiter(self) -> RateLimiter:
        """Get the limiter shared by the gateway and the janitor."""
        return self._gateway.rate_limiter

    @property
    def janitor(self) -> JanitorScheduler:
        return self._janitor

    def _setup_routes(self) -> None:
        """Setup WebSocket and health routes."""
        @self._router.websocket(self._config.ws_path)
        async def websocket_endpoint(websocket: WebSocket):
            await self._handle_connection(websocket)

        @self._router.get("/health")
        async def health() -> Dict[str, Any]:
            return {"status": "ok", "rooms": self._registry.room_count}

    def mount(self, app: FastAPI, prefix: str = "") -> None:
        """Mount the voicemesh routes on an existing FastAPI application."""
        self._app = app
        app.include_router(self._router, prefix=prefix)

    async def _handle_connection(self, websocket: WebSocket) -> None:
        """Handle a new WebSocket connection."""
        await websocket.accept()

        address = websocket.client.host if websocket.client else "unknown"
        connection_id = await self._gateway.connect(websocket, address)

        try:
            while True:
                raw_data = await websocket.receive_text()

                if len(raw_data) > self._config.max_message_size:
                    await self._send_error(websocket, ErrorCode.INVALID_MESSAGE, "Message too large.")
                    continue

                try:
                    data = json.loads(raw_data)
                except json.JSONDecodeError:
                    await self._send_error(websocket, ErrorCode.INVALID_MESSAGE, "Invalid JSON.")
                    continue

                await self._handle_frame(websocket, connection_id, data)

        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("WebSocket error")
        finally:
            await self._gateway.disconnect(connection_id)

    async def _handle_frame(self, websocket: WebSocket, connection_id: str, data: Any) -> None:
        """Decode one frame and send its acknowledgement, if any."""
        try:
            envelope = Envelope.model_validate(data)
        except ValidationError:
            await self._send_error(websocket, ErrorCode.INVALID_MESSAGE, "Invalid message format.")
            return

        result = await self._gateway.dispatch(connection_id, envelope.event, envelope.data)

        if envelope.ack is not None and result is not None:
            await websocket.send_json(ack_frame(envelope.ack, result))

    async def _send_error(self, websocket: WebSocket, code: ErrorCode, message: str) -> None:
        """Send a frame-level error to a WebSocket."""
        try:
            await websocket.send_json(ErrorEvent(error=message, code=code.value).to_frame())
        except Exception:
            logger.debug("Failed to send error message to WebSocket")

    async def start(self) -> None:
        """Start background tasks."""
        await self._janitor.start()

    async def stop(self) -> None:
        """Stop background tasks."""
        await self._janitor.stop()


__all__ = ["VoiceMeshServer"]
