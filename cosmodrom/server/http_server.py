"""
Coordination Server - aiohttp application serving vehicles and observers.

Provides:
- WebSocket endpoint (/ws) carrying the JSON message protocol
- Read-only HTTP endpoints for tooling:
  - GET /rockets                       current vehicles (id, name, state, config)
  - GET /rockets/{rocket_id}/trajectory recorded trajectory of one vehicle
  - GET /api/logs[?since=RFC3339]      recent server log lines
  - GET /health, GET /status
- Server-initiated command / shutdown / trajectory messages to a vehicle

Each server instance owns its registry, logger and log buffer, so several
instances can run in one process.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import List, Optional, Set

from aiohttp import WSMsgType, web

from ..physics import Vector3D
from ..protocol import (
    CommandPayload,
    ShutdownPayload,
    TrajectoryPayload,
    encode_message,
    parse_timestamp,
)
from ..vehicle import ControlCommand
from .collision import CollisionMonitor
from .config import ServerConfig
from .fanout import Fanout
from .handler import ConnectionSession, ProtocolHandler
from .log_buffer import LogBuffer
from .registry import ConnectionRegistry


LOGGER_PREFIX = "cosmodrom.server.instance"

_instance_ids = itertools.count(1)


class WebSocketChannel:
    """Outbound side of an aiohttp WebSocket."""

    def __init__(self, ws: web.WebSocketResponse):
        self._ws = ws

    async def send_text(self, text: str) -> None:
        await self._ws.send_str(text)

    async def close(self) -> None:
        await self._ws.close()


class CoordinationServer:
    """
    Launch coordination server.

    Relays vehicle telemetry to observers, validates registrations and runs
    the collision monitor. It never simulates physics itself.
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        """
        Initialize the server.

        Args:
            config: Server configuration (defaults if not provided)
        """
        self.config = config or ServerConfig()

        # Per-instance logger and log buffer, unique even for equal names
        self.log = logging.getLogger(f"{LOGGER_PREFIX}.{self.config.name}.{next(_instance_ids)}")
        if self.log.level == logging.NOTSET:
            self.log.setLevel(logging.INFO)
        self.log_buffer = LogBuffer(self.config.log_buffer_size)
        self.log.addHandler(self.log_buffer)

        self.registry = ConnectionRegistry(
            trajectory_history_size=self.config.trajectory_history_size,
            trajectory_min_point_distance_m=self.config.trajectory_min_point_distance_m,
            log=self.log,
        )
        self.fanout = Fanout(self.registry, self.log)
        self.handler = ProtocolHandler(self.registry, self.fanout, self.log)
        self.collision_monitor = CollisionMonitor(
            self.registry,
            interval_s=self.config.collision_check_interval_s,
            min_safe_distance_m=self.config.min_safe_distance_m,
            log=self.log,
        )

        # Open connections, closed on shutdown
        self._sessions: Set[ConnectionSession] = set()

        # Server instances
        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def create_app(self) -> web.Application:
        """Build the aiohttp application (routes plus startup/shutdown hooks)."""
        app = web.Application()
        self._setup_routes(app)
        app.on_startup.append(self._on_startup)
        app.on_shutdown.append(self._on_shutdown)
        return app

    async def start(self) -> None:
        """Start serving on the configured host and port."""
        self._app = self.create_app()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        self.log.info(
            f"Coordination server '{self.config.name}' running on "
            f"http://{self.config.host}:{self.config.port} (WebSocket at /ws)"
        )

    async def stop(self) -> None:
        """Stop serving and detach the log buffer."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._site = None
        self._runner = None
        self._app = None
        self.log.removeHandler(self.log_buffer)

    async def _on_startup(self, app: web.Application) -> None:
        self.collision_monitor.start()

    async def _on_shutdown(self, app: web.Application) -> None:
        await self.collision_monitor.stop()
        for session in list(self._sessions):
            await self.handler.close_session(session, reason="server shutdown")
        self.log.removeHandler(self.log_buffer)

    def _setup_routes(self, app: web.Application) -> None:
        """Setup HTTP routes."""
        app.router.add_get("/ws", self._handle_websocket)
        app.router.add_get("/rockets", self._handle_rockets)
        app.router.add_get("/rockets/{rocket_id}/trajectory", self._handle_trajectory)
        app.router.add_get("/api/logs", self._handle_logs)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/status", self._handle_status)

    # =========================================================================
    # WEBSOCKET
    # =========================================================================

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Read loop of one client connection."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        session = ConnectionSession(channel=WebSocketChannel(ws), remote=request.remote or "")
        self._sessions.add(session)
        self.log.info(f"New connection from {session.remote}")

        reason = "connection lost"
        try:
            while not session.closed:
                try:
                    msg = await ws.receive(timeout=self.config.idle_timeout_s)
                except asyncio.TimeoutError:
                    self.log.warning(
                        f"{session.describe()} idle for {self.config.idle_timeout_s} s, closing"
                    )
                    reason = "idle timeout"
                    break

                if msg.type in (WSMsgType.TEXT, WSMsgType.BINARY):
                    await self.handler.handle_text(session, msg.data)
                elif msg.type == WSMsgType.ERROR:
                    self.log.warning(f"Read error on {session.describe()}: {ws.exception()}")
                    break
                else:
                    # CLOSE / CLOSING / CLOSED
                    if session.vehicle is not None:
                        self.log.warning(f"Rocket {session.bound_id} disconnected")
                    break
        finally:
            await self.handler.close_session(session, reason=reason)
            self._sessions.discard(session)

        return ws

    # =========================================================================
    # HTTP ENDPOINTS
    # =========================================================================

    async def _handle_rockets(self, request: web.Request) -> web.Response:
        """Snapshot of all registered vehicles."""
        rockets = [vehicle.info().to_dict() for vehicle in self.registry.snapshot_vehicles()]
        return web.json_response(rockets)

    async def _handle_trajectory(self, request: web.Request) -> web.Response:
        """Recorded trajectory of one vehicle."""
        rocket_id = request.match_info["rocket_id"]
        vehicle = self.registry.get_vehicle(rocket_id)
        if vehicle is None:
            return web.json_response(
                {"error": f"Unknown rocket: {rocket_id}"},
                status=404,
            )
        return web.json_response({
            "rocket_id": rocket_id,
            "points": [point.to_dict() for point in vehicle.trajectory()],
        })

    async def _handle_logs(self, request: web.Request) -> web.Response:
        """Recent log lines, optionally only those newer than ?since=."""
        since_text = request.query.get("since", "")
        entries = None
        if since_text:
            try:
                entries = self.log_buffer.get_since(parse_timestamp(since_text))
            except ValueError:
                entries = None
        if entries is None:
            entries = self.log_buffer.get_all()
        return web.json_response([entry.to_dict() for entry in entries])

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "ok"})

    async def _handle_status(self, request: web.Request) -> web.Response:
        """Server status."""
        return web.json_response({
            "name": self.config.name,
            "rockets": self.registry.vehicle_count,
            "observers": self.registry.observer_count,
            "collision_check_interval_s": self.config.collision_check_interval_s,
            "min_safe_distance_m": self.config.min_safe_distance_m,
            "collision_monitor_running": self.collision_monitor.running,
        })

    # =========================================================================
    # SERVER-INITIATED MESSAGES
    # =========================================================================

    async def send_command(self, rocket_id: str, command: ControlCommand) -> bool:
        """
        Send a control command to a registered vehicle.

        Returns:
            False if the vehicle is unknown or the send failed
        """
        vehicle = self.registry.get_vehicle(rocket_id)
        if vehicle is None:
            return False
        self.log.info(f"Sending command to rocket {rocket_id}")
        return await vehicle.send(encode_message(CommandPayload(rocket_id=rocket_id, command=command)))

    async def shutdown_vehicle(self, rocket_id: str, reason: str = "") -> bool:
        """Ask a registered vehicle to stop."""
        vehicle = self.registry.get_vehicle(rocket_id)
        if vehicle is None:
            return False
        self.log.info(f"Sending shutdown to rocket {rocket_id}")
        return await vehicle.send(encode_message(ShutdownPayload(rocket_id=rocket_id, reason=reason)))

    async def send_trajectory(self, rocket_id: str, waypoints: List[Vector3D]) -> bool:
        """Send recommended waypoints to a registered vehicle."""
        vehicle = self.registry.get_vehicle(rocket_id)
        if vehicle is None:
            return False
        return await vehicle.send(encode_message(TrajectoryPayload(rocket_id=rocket_id, waypoints=waypoints)))


async def run_server(config: Optional[ServerConfig] = None) -> None:
    """Run a coordination server until cancelled."""
    server = CoordinationServer(config)
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()
