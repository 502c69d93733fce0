"""
Protocol handler: per-connection state machine and message dispatch.

A connection starts Unbound and commits to exactly one role on its first
successful register (Vehicle) or subscribe (Observer). It stays in that role
until it is Closed by an explicit disconnect/unsubscribe or a transport
error. Messages that are valid but not allowed in the current role are
logged and dropped; malformed messages are logged and dropped without
affecting the connection.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Type, Union

from ..protocol import (
    AcceptedPayload,
    BroadcastPayload,
    DisconnectPayload,
    Payload,
    ProtocolError,
    RegisterPayload,
    RejectedPayload,
    RocketJoinedPayload,
    RocketLeftPayload,
    SubscribePayload,
    TelemetryPayload,
    UnsubscribePayload,
    decode_message,
    encode_message,
)
from ..vehicle import ValidationError, create_initial_state, validate_vehicle_config
from .fanout import Fanout
from .registry import Channel, ConnectionRegistry, ObserverConnection, VehicleConnection

logger = logging.getLogger(__name__)


ACCEPTED_MESSAGE = "Registration successful. You may start the launch."

# Simulated seconds between periodic telemetry log lines per vehicle
TELEMETRY_LOG_INTERVAL_S = 10.0


class ConnectionRole(Enum):
    """Role a connection has committed to."""
    UNBOUND = "unbound"
    VEHICLE = "vehicle"
    OBSERVER = "observer"
    CLOSED = "closed"


@dataclass(eq=False)
class ConnectionSession:
    """
    State of one client connection, owned by its read loop.

    Attributes:
        channel: Outbound channel of the connection
        remote: Peer description for log lines
        role: Current role
        vehicle: Registry entry once bound as a vehicle
        observer: Registry entry once bound as an observer
    """
    channel: Channel
    remote: str = ""
    role: ConnectionRole = ConnectionRole.UNBOUND
    vehicle: Optional[VehicleConnection] = None
    observer: Optional[ObserverConnection] = None
    last_log_bucket: Optional[int] = None

    @property
    def closed(self) -> bool:
        return self.role == ConnectionRole.CLOSED

    @property
    def bound_id(self) -> str:
        if self.vehicle is not None:
            return self.vehicle.id
        if self.observer is not None:
            return self.observer.id
        return ""

    def describe(self) -> str:
        if self.role == ConnectionRole.VEHICLE:
            return f"rocket '{self.bound_id}'"
        if self.role == ConnectionRole.OBSERVER:
            return f"observer '{self.bound_id}'"
        return f"connection {self.remote}".rstrip()


Handler = Callable[[ConnectionSession, Payload], Awaitable[None]]


class ProtocolHandler:
    """
    Dispatches decoded client messages for every connection of a server.

    Args:
        registry: Shared connection registry
        fanout: Observer broadcaster
        log: Logger of the owning server instance
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        fanout: Fanout,
        log: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.fanout = fanout
        self._log = log or logger

        # Client -> server message types; anything else is a role violation
        self._handlers: Dict[Type, Handler] = {
            RegisterPayload: self._handle_register,
            TelemetryPayload: self._handle_telemetry,
            DisconnectPayload: self._handle_disconnect,
            SubscribePayload: self._handle_subscribe,
            UnsubscribePayload: self._handle_unsubscribe,
        }

    async def handle_text(self, session: ConnectionSession, text: Union[str, bytes]) -> None:
        """
        Handle one inbound message.

        Never raises: every failure is logged and confined to this message.
        """
        if session.closed:
            return

        try:
            envelope = decode_message(text)
        except ProtocolError as e:
            self._log.error(f"Protocol error from {session.describe()}: {e}")
            return

        payload = envelope.payload
        handler = self._handlers.get(type(payload))
        if handler is None:
            self._log.warning(
                f"Unexpected '{envelope.type.value}' message from {session.describe()}, dropped"
            )
            return

        try:
            await handler(session, payload)
        except Exception:
            self._log.exception(
                f"Error handling '{envelope.type.value}' from {session.describe()}"
            )

    async def close_session(self, session: ConnectionSession, reason: str = "connection lost") -> None:
        """
        Clean up a connection: unregister it, notify observers, close the channel.

        Safe to call more than once.
        """
        if session.closed:
            return
        role = session.role
        session.role = ConnectionRole.CLOSED

        if role == ConnectionRole.VEHICLE and session.vehicle is not None:
            vehicle = session.vehicle
            removed = self.registry.remove_vehicle(vehicle.id, vehicle)
            if removed is not None:
                self._log.info(f"Rocket {vehicle.id} ({vehicle.name}) removed: {reason}")
                await self.fanout.broadcast(RocketLeftPayload(rocket_id=vehicle.id, reason=reason))
            await vehicle.close()
        elif role == ConnectionRole.OBSERVER and session.observer is not None:
            observer = session.observer
            if self.registry.remove_observer(observer.id, observer):
                self._log.info(f"Observer {observer.id} removed: {reason}")
            await observer.close()
        else:
            try:
                await session.channel.close()
            except (OSError, RuntimeError) as e:
                self._log.debug(f"Closing {session.describe()}: {e}")

    # =========================================================================
    # SENDING
    # =========================================================================

    async def _reply(self, session: ConnectionSession, payload: Payload) -> bool:
        """Send a payload to the session's own peer."""
        text = encode_message(payload)
        if session.vehicle is not None:
            return await session.vehicle.send(text)
        if session.observer is not None:
            return await session.observer.send(text)
        # Unbound connections are not reachable by any other task
        try:
            await session.channel.send_text(text)
            return True
        except (OSError, RuntimeError) as e:
            self._log.warning(f"Send to {session.describe()} failed: {e}")
            return False

    async def _reject(self, session: ConnectionSession, rocket_id: str, reason: str) -> None:
        self._log.info(f"Registration of rocket '{rocket_id}' rejected: {reason}")
        await self._reply(session, RejectedPayload(rocket_id=rocket_id, reason=reason))

    def _role_violation(self, session: ConnectionSession, message_type: str) -> None:
        self._log.warning(
            f"'{message_type}' not allowed for {session.describe()} "
            f"in role {session.role.value}, dropped"
        )

    # =========================================================================
    # VEHICLE MESSAGES
    # =========================================================================

    async def _handle_register(self, session: ConnectionSession, payload: RegisterPayload) -> None:
        if session.role != ConnectionRole.UNBOUND:
            await self._reject(
                session,
                payload.rocket_id,
                f"connection is already bound as {session.describe()}",
            )
            return

        if not payload.rocket_id:
            await self._reject(session, payload.rocket_id, "rocket_id: rocket id must not be empty")
            return

        try:
            validate_vehicle_config(payload.config)
        except ValidationError as e:
            await self._reject(session, payload.rocket_id, str(e))
            return

        connection = self.registry.register_vehicle(
            payload.rocket_id,
            payload.config,
            session.channel,
            initial_state=create_initial_state(payload.config),
        )
        if connection is None:
            await self._reject(
                session,
                payload.rocket_id,
                f"rocket with id '{payload.rocket_id}' is already registered",
            )
            return

        session.role = ConnectionRole.VEHICLE
        session.vehicle = connection
        self._log.info(f"Rocket {connection.id} ({connection.name}) registered")

        await self._reply(session, AcceptedPayload(rocket_id=connection.id, message=ACCEPTED_MESSAGE))
        await self.fanout.broadcast(RocketJoinedPayload(
            rocket_id=connection.id,
            name=connection.name,
            config=connection.config,
        ))

    async def _handle_telemetry(self, session: ConnectionSession, payload: TelemetryPayload) -> None:
        if session.role != ConnectionRole.VEHICLE or session.vehicle is None:
            self._role_violation(session, "telemetry")
            return

        vehicle = session.vehicle
        if payload.rocket_id and payload.rocket_id != vehicle.id:
            self._log.warning(
                f"Telemetry for '{payload.rocket_id}' on the connection of rocket "
                f"{vehicle.id}; attributed to {vehicle.id}"
            )

        if not self.registry.update_vehicle_state(vehicle.id, payload.state):
            return

        await self.fanout.broadcast(BroadcastPayload(
            rocket_id=vehicle.id,
            name=vehicle.name,
            state=payload.state,
        ))

        state = payload.state
        bucket = int(state.time_s // TELEMETRY_LOG_INTERVAL_S)
        if bucket != session.last_log_bucket:
            session.last_log_bucket = bucket
            self._log.info(
                f"Rocket {vehicle.id}: altitude={state.altitude_m / 1000.0:.2f} km, "
                f"speed={state.speed_ms:.1f} m/s, fuel={state.fuel_remaining_kg:.0f} kg"
            )

    async def _handle_disconnect(self, session: ConnectionSession, payload: DisconnectPayload) -> None:
        if session.role != ConnectionRole.VEHICLE:
            self._role_violation(session, "disconnect")
            return
        self._log.info(f"Rocket {session.bound_id} requested disconnect")
        await self.close_session(session, reason=payload.reason or "disconnected")

    # =========================================================================
    # OBSERVER MESSAGES
    # =========================================================================

    async def _handle_subscribe(self, session: ConnectionSession, payload: SubscribePayload) -> None:
        if session.role != ConnectionRole.UNBOUND:
            self._role_violation(session, "subscribe")
            return

        if not payload.observer_id:
            self._log.error(f"Protocol error from {session.describe()}: subscribe without observer_id")
            return

        observer = self.registry.register_observer(payload.observer_id, session.channel)
        session.role = ConnectionRole.OBSERVER
        session.observer = observer
        self._log.info(f"Observer {observer.id} subscribed")

        # Catch-up replay from one snapshot: each vehicle's joined/state pair
        # comes from the same consistent read
        infos = [vehicle.info() for vehicle in self.registry.snapshot_vehicles()]
        for info in infos:
            await self._reply(session, RocketJoinedPayload(
                rocket_id=info.rocket_id,
                name=info.name,
                config=info.config,
            ))
            await self._reply(session, BroadcastPayload(
                rocket_id=info.rocket_id,
                name=info.name,
                state=info.state,
            ))

    async def _handle_unsubscribe(self, session: ConnectionSession, payload: UnsubscribePayload) -> None:
        if session.role != ConnectionRole.OBSERVER:
            self._role_violation(session, "unsubscribe")
            return
        self._log.info(f"Observer {session.bound_id} unsubscribed")
        await self.close_session(session, reason="unsubscribed")
