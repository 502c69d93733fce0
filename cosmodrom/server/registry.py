"""
Connection Registry - thread-safe record of connected vehicles and observers.

Manages:
- Vehicle connections (id, config, latest state, trajectory history)
- Observer connections
- Per-connection outbound send path (one writer at a time)

The registry lock only guards the two id -> connection maps. Snapshots copy
the connection references under the lock and release it before any I/O, so
a slow broadcast never blocks registrations.
"""

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Protocol

from ..physics import Vector3D
from ..protocol import RocketInfo, utc_now
from ..vehicle import VehicleConfig, VehicleState, create_initial_state

logger = logging.getLogger(__name__)


class Channel(Protocol):
    """Bidirectional message channel of one connection (outbound side)."""

    async def send_text(self, text: str) -> None:
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# TRAJECTORY HISTORY
# =============================================================================

@dataclass(frozen=True)
class TrajectoryPoint:
    """A recorded position at a simulated time."""
    position: Vector3D
    time_s: float

    def to_dict(self) -> Dict[str, Any]:
        return {"position": self.position.to_dict(), "time": self.time_s}


class TrajectoryHistory:
    """
    Bounded history of a vehicle's positions, oldest evicted first.

    A point is only recorded when it is at least min_point_distance_m from
    the last recorded one.
    """

    def __init__(self, max_points: int = 10000, min_point_distance_m: float = 100.0):
        self.max_points = max_points
        self.min_point_distance_m = min_point_distance_m
        self._points: Deque[TrajectoryPoint] = deque(maxlen=max_points)

    def add(self, position: Vector3D, time_s: float) -> bool:
        """Record a point; returns False if it was too close to the last one."""
        if self._points:
            last = self._points[-1].position
            if position.distance_to(last) < self.min_point_distance_m:
                return False
        self._points.append(TrajectoryPoint(Vector3D(position.x, position.y, position.z), time_s))
        return True

    def points(self) -> List[TrajectoryPoint]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)


# =============================================================================
# CONNECTIONS
# =============================================================================

class _Connection:
    """Common send path for vehicle and observer connections."""

    def __init__(self, connection_id: str, channel: Channel, log: Optional[logging.Logger] = None):
        self.id = connection_id
        self.channel = channel
        self.last_update: datetime = utc_now()
        self._log = log or logger
        self._lock = threading.Lock()
        self._send_lock = asyncio.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, text: str) -> bool:
        """
        Send one message, serialized with other sends on this connection.

        A failed send is logged and closes the channel; the connection's read
        loop then ends and runs the normal cleanup.

        Returns:
            True if the message was written
        """
        async with self._send_lock:
            if self._closed:
                return False
            try:
                await self.channel.send_text(text)
                return True
            except (OSError, RuntimeError, asyncio.TimeoutError) as e:
                self._log.warning(f"Send to {self.id} failed: {e}")
            await self._close_channel()
            return False

    async def close(self) -> None:
        """Close the underlying channel (idempotent)."""
        async with self._send_lock:
            await self._close_channel()

    async def _close_channel(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.channel.close()
        except (OSError, RuntimeError) as e:
            self._log.debug(f"Closing channel of {self.id}: {e}")


class VehicleConnection(_Connection):
    """A registered vehicle: config, latest state and trajectory history."""

    def __init__(
        self,
        rocket_id: str,
        config: VehicleConfig,
        channel: Channel,
        state: Optional[VehicleState] = None,
        history: Optional[TrajectoryHistory] = None,
        log: Optional[logging.Logger] = None,
    ):
        super().__init__(rocket_id, channel, log)
        self.config = config
        self._state = state.copy() if state is not None else create_initial_state(config)
        self.history = history or TrajectoryHistory()
        self._has_telemetry = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def has_telemetry(self) -> bool:
        """True once the vehicle has reported at least one state."""
        with self._lock:
            return self._has_telemetry

    @property
    def state(self) -> VehicleState:
        """Copy of the latest state."""
        with self._lock:
            return self._state.copy()

    def update_state(self, state: VehicleState) -> None:
        """Store a telemetry state and extend the trajectory history."""
        with self._lock:
            self._state = state.copy()
            self._has_telemetry = True
            self.last_update = utc_now()
            self.history.add(state.position, state.time_s)

    def trajectory(self) -> List[TrajectoryPoint]:
        with self._lock:
            return self.history.points()

    def info(self) -> RocketInfo:
        """Consistent snapshot of id, name, state and config."""
        with self._lock:
            return RocketInfo(
                rocket_id=self.id,
                name=self.config.name,
                state=self._state.copy(),
                config=self.config,
            )


class ObserverConnection(_Connection):
    """A subscribed observer."""

    def touch(self) -> None:
        with self._lock:
            self.last_update = utc_now()


# =============================================================================
# REGISTRY
# =============================================================================

class ConnectionRegistry:
    """
    Thread-safe maps of vehicle and observer connections.

    Vehicle ids are unique while registered. Observer ids are replaced on
    re-subscription, and removal with an explicit connection only deletes the
    entry if it is still that connection.
    """

    def __init__(
        self,
        trajectory_history_size: int = 10000,
        trajectory_min_point_distance_m: float = 100.0,
        log: Optional[logging.Logger] = None,
    ):
        self._lock = threading.Lock()
        self._vehicles: Dict[str, VehicleConnection] = {}
        self._observers: Dict[str, ObserverConnection] = {}
        self._history_size = trajectory_history_size
        self._min_point_distance_m = trajectory_min_point_distance_m
        self._log = log or logger

    # === Vehicles ===

    def register_vehicle(
        self,
        rocket_id: str,
        config: VehicleConfig,
        channel: Channel,
        initial_state: Optional[VehicleState] = None,
    ) -> Optional[VehicleConnection]:
        """
        Register a vehicle.

        Returns:
            The new connection, or None if the id is already registered (the
            registry is left unchanged)
        """
        with self._lock:
            if rocket_id in self._vehicles:
                return None
            connection = VehicleConnection(
                rocket_id,
                config,
                channel,
                state=initial_state,
                history=TrajectoryHistory(self._history_size, self._min_point_distance_m),
                log=self._log,
            )
            self._vehicles[rocket_id] = connection
            return connection

    def remove_vehicle(
        self,
        rocket_id: str,
        connection: Optional[VehicleConnection] = None,
    ) -> Optional[VehicleConnection]:
        """
        Remove a vehicle.

        Args:
            rocket_id: Vehicle id
            connection: If given, only remove the entry if it is this connection

        Returns:
            The removed connection, or None if nothing was removed
        """
        with self._lock:
            current = self._vehicles.get(rocket_id)
            if current is None or (connection is not None and current is not connection):
                return None
            del self._vehicles[rocket_id]
            return current

    def get_vehicle(self, rocket_id: str) -> Optional[VehicleConnection]:
        with self._lock:
            return self._vehicles.get(rocket_id)

    def update_vehicle_state(self, rocket_id: str, state: VehicleState) -> bool:
        """
        Store the latest state of a vehicle.

        Returns:
            False if the vehicle is not registered
        """
        connection = self.get_vehicle(rocket_id)
        if connection is None:
            return False
        connection.update_state(state)
        return True

    def snapshot_vehicles(self) -> List[VehicleConnection]:
        """Copy of the current vehicle connections."""
        with self._lock:
            return list(self._vehicles.values())

    # === Observers ===

    def register_observer(self, observer_id: str, channel: Channel) -> ObserverConnection:
        """Register an observer, replacing any entry with the same id."""
        connection = ObserverConnection(observer_id, channel, self._log)
        with self._lock:
            self._observers[observer_id] = connection
        return connection

    def remove_observer(
        self,
        observer_id: str,
        connection: Optional[ObserverConnection] = None,
    ) -> bool:
        """
        Remove an observer.

        Args:
            observer_id: Observer id
            connection: If given, only remove the entry if it is this connection

        Returns:
            True if an entry was removed
        """
        with self._lock:
            current = self._observers.get(observer_id)
            if current is None or (connection is not None and current is not connection):
                return False
            del self._observers[observer_id]
            return True

    def snapshot_observers(self) -> List[ObserverConnection]:
        """Copy of the current observer connections."""
        with self._lock:
            return list(self._observers.values())

    # === Counts ===

    @property
    def vehicle_count(self) -> int:
        with self._lock:
            return len(self._vehicles)

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)
