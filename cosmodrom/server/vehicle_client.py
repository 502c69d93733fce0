"""
Vehicle client - simulates one vehicle and streams it to a coordination server.

The client connects over WebSocket, registers its configuration, then runs
the local simulation at a fixed time step and sends telemetry at a fixed
rate of simulated time. In the background it handles server messages:
- command: replaces the control command (guidance still sets the pitch)
- warning: logged and kept in `warnings`
- shutdown: stops the flight
- trajectory: recommended waypoints kept in `waypoints`

The flight ends on landing, crash, shutdown, lost connection or after
max_flight_time_s; the client then sends disconnect and closes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import aiohttp

from ..guidance import create_guidance
from ..physics import EARTH, BodyModel, Vector3D, spherical_to_cartesian
from ..protocol import (
    AcceptedPayload,
    CommandPayload,
    DisconnectPayload,
    Payload,
    ProtocolError,
    RegisterPayload,
    RejectedPayload,
    ShutdownPayload,
    TelemetryPayload,
    TrajectoryPayload,
    WarningPayload,
    decode_message,
    encode_message,
)
from ..simulation import VehicleSimulation
from ..vehicle import VehicleState
from .config import VehicleClientConfig

logger = logging.getLogger(__name__)


class RegistrationRejected(RuntimeError):
    """The server answered a registration with `rejected`."""

    def __init__(self, rocket_id: str, reason: str):
        self.rocket_id = rocket_id
        self.reason = reason
        super().__init__(f"Registration of rocket '{rocket_id}' rejected: {reason}")


class VehicleClient:
    """
    WebSocket client driving one simulated vehicle.

    Args:
        config: Client configuration (vehicle, launch site, timing, guidance)
        body: Dominant body
        session: Existing aiohttp session (created and owned if not given)
    """

    def __init__(
        self,
        config: VehicleClientConfig,
        body: BodyModel = EARTH,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.rocket_id = config.rocket_id

        launch_position = spherical_to_cartesian(config.latitude, config.longitude, config.altitude, body)
        self.simulation = VehicleSimulation(
            config.vehicle,
            position=launch_position,
            guidance=create_guidance(config.guidance, config.target_altitude, body),
            body=body,
            dt=config.dt,
            name=config.rocket_id,
        )

        self._session = session
        self._owns_session = session is None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None

        self.registered = False
        self.running = False
        self.stop_reason = ""
        self.warnings: List[WarningPayload] = []
        self.waypoints: List[Vector3D] = []
        self.telemetry_sent = 0

    @property
    def state(self) -> VehicleState:
        return self.simulation.state

    async def __aenter__(self) -> VehicleClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # =========================================================================
    # CONNECTION
    # =========================================================================

    async def connect(self) -> None:
        """Open the WebSocket connection."""
        if self._session is None:
            self._session = aiohttp.ClientSession()
        self._ws = await self._session.ws_connect(self.config.server_url)
        logger.info(f"Connected to {self.config.server_url}")

    async def close(self) -> None:
        """Close the connection (and the session if owned)."""
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _send(self, payload: Payload) -> None:
        if self._ws is None:
            raise RuntimeError("Not connected")
        await self._ws.send_str(encode_message(payload))

    async def register(self) -> AcceptedPayload:
        """
        Register the vehicle and wait for the server's answer.

        Raises:
            RegistrationRejected: If the server rejects the registration
            RuntimeError: If the connection closes or the answer is unexpected
        """
        await self._send(RegisterPayload(rocket_id=self.rocket_id, config=self.config.vehicle))

        msg = await self._ws.receive()
        if msg.type != aiohttp.WSMsgType.TEXT:
            raise RuntimeError(f"Connection closed during registration ({msg.type.name})")

        try:
            payload = decode_message(msg.data).payload
        except ProtocolError as e:
            raise RuntimeError(f"Invalid registration answer: {e}") from e

        if isinstance(payload, RejectedPayload):
            raise RegistrationRejected(self.rocket_id, payload.reason)
        if not isinstance(payload, AcceptedPayload):
            raise RuntimeError(f"Unexpected answer to registration: {payload.message_type.value}")

        self.registered = True
        logger.info(f"Registration accepted: {payload.message}")
        return payload

    async def send_telemetry(self) -> None:
        """Send the current state."""
        if not self.registered:
            return
        await self._send(TelemetryPayload(rocket_id=self.rocket_id, state=self.simulation.state))
        self.telemetry_sent += 1

    async def disconnect(self, reason: str = "flight finished") -> None:
        """Tell the server the vehicle is leaving, then close."""
        if self._ws is not None and not self._ws.closed and self.registered:
            try:
                await self._send(DisconnectPayload(rocket_id=self.rocket_id, reason=reason))
            except (ConnectionError, RuntimeError) as e:
                logger.warning(f"Could not send disconnect: {e}")
        self.registered = False
        await self.close()

    # =========================================================================
    # SERVER MESSAGES
    # =========================================================================

    def handle_payload(self, payload: Payload) -> None:
        """React to one server message."""
        if isinstance(payload, CommandPayload):
            self.simulation.apply_command(payload.command)
        elif isinstance(payload, WarningPayload):
            self.warnings.append(payload)
            logger.warning(f"WARNING [{payload.severity}]: {payload.warning}")
        elif isinstance(payload, ShutdownPayload):
            logger.info(f"Shutdown requested by server{': ' + payload.reason if payload.reason else ''}")
            self.stop_reason = "shutdown"
            self.running = False
        elif isinstance(payload, TrajectoryPayload):
            self.waypoints = list(payload.waypoints)
            logger.info(f"Received {len(self.waypoints)} trajectory waypoints")
        else:
            logger.debug(f"Ignoring '{payload.message_type.value}' message")

    async def _receive_loop(self) -> None:
        async for msg in self._ws:
            if msg.type != aiohttp.WSMsgType.TEXT:
                continue
            try:
                envelope = decode_message(msg.data)
            except ProtocolError as e:
                logger.error(f"Error decoding server message: {e}")
                continue
            self.handle_payload(envelope.payload)

        if self.running:
            logger.warning("Connection to server closed")
            self.stop_reason = self.stop_reason or "connection closed"
            self.running = False

    # =========================================================================
    # FLIGHT LOOP
    # =========================================================================

    async def run(self) -> VehicleState:
        """
        Fly until the vehicle lands, crashes, is shut down, loses the
        connection or reaches max_flight_time_s.

        Returns:
            The final state
        """
        config = self.config
        loop = asyncio.get_running_loop()
        start_wall = loop.time()
        next_telemetry_s = 0.0

        vehicle = config.vehicle
        logger.info(
            f"Launching rocket {self.rocket_id}: {vehicle.name}, "
            f"{len(vehicle.engines)} engines x {vehicle.engines[0].thrust_n / 1000.0:.0f} kN"
        )

        self.running = True
        receiver = asyncio.create_task(self._receive_loop())
        try:
            while self.running:
                state = self.simulation.step()

                if state.time_s >= next_telemetry_s or self.simulation.finished:
                    try:
                        await self.send_telemetry()
                    except (ConnectionError, RuntimeError) as e:
                        logger.error(f"Error sending telemetry: {e}")
                        self.stop_reason = "connection lost"
                        break
                    next_telemetry_s = state.time_s + config.telemetry_interval_s

                if self.simulation.finished:
                    self.stop_reason = state.phase
                    logger.info(
                        f"Rocket {self.rocket_id} {state.phase}: "
                        f"altitude {state.altitude_m:.2f} m, t={state.time_s:.1f} s"
                    )
                    break

                if config.max_flight_time_s is not None and state.time_s >= config.max_flight_time_s:
                    self.stop_reason = "time limit"
                    logger.info(f"Rocket {self.rocket_id}: flight time limit reached")
                    break

                # Pace simulated time against wall time
                if config.time_warp > 0:
                    delay = start_wall + state.time_s / config.time_warp - loop.time()
                    await asyncio.sleep(max(0.0, delay))
                else:
                    await asyncio.sleep(0)
        finally:
            self.running = False
            await self.disconnect(reason=self.stop_reason or "flight finished")
            receiver.cancel()
            try:
                await receiver
            except asyncio.CancelledError:
                pass

        return self.simulation.state


async def run_vehicle(config: VehicleClientConfig, body: BodyModel = EARTH) -> VehicleState:
    """Connect, register and fly one vehicle."""
    async with VehicleClient(config, body) as client:
        await client.register()
        return await client.run()
