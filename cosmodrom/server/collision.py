"""
Collision monitor: periodic all-pairs proximity check of registered vehicles.

Every tick the monitor snapshots the stored position of every registered
vehicle (its pre-launch state until the first telemetry), compares every
unordered pair and sends a warning to both vehicles of each pair closer
than the minimum safe distance. A sustained approach is warned
about again on every tick.

The check is O(n^2) in the number of vehicles, which is fine for the tens
of vehicles a single server coordinates.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..physics import Vector3D
from ..protocol import WarningPayload, encode_message
from .registry import ConnectionRegistry, VehicleConnection

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Proximity warning tiers."""
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def classify_severity(distance_m: float, min_safe_distance_m: float) -> Optional[Severity]:
    """
    Severity of an approach, or None if the pair is at a safe distance.

    critical below 1/4 of the safe distance, high below 1/2, medium below it.
    """
    if distance_m >= min_safe_distance_m:
        return None
    if distance_m < min_safe_distance_m / 4:
        return Severity.CRITICAL
    if distance_m < min_safe_distance_m / 2:
        return Severity.HIGH
    return Severity.MEDIUM


def format_warning(other_id: str, distance_m: float) -> str:
    """Warning text naming the other vehicle."""
    return f"Dangerous approach to rocket {other_id}! Distance: {distance_m:.1f} m"


@dataclass(frozen=True)
class CloseApproach:
    """Two vehicles closer than the safe distance."""
    first_id: str
    second_id: str
    distance_m: float
    severity: Severity


def find_close_approaches(
    positions: Sequence[Tuple[str, Vector3D]],
    min_safe_distance_m: float
) -> List[CloseApproach]:
    """
    Compare every unordered pair of positions.

    Args:
        positions: (vehicle id, position) pairs
        min_safe_distance_m: Warning threshold

    Returns:
        One CloseApproach per pair below the threshold
    """
    approaches = []
    for i in range(len(positions)):
        first_id, first_pos = positions[i]
        for j in range(i + 1, len(positions)):
            second_id, second_pos = positions[j]
            distance = first_pos.distance_to(second_pos)
            severity = classify_severity(distance, min_safe_distance_m)
            if severity is not None:
                approaches.append(CloseApproach(first_id, second_id, distance, severity))
    return approaches


class CollisionMonitor:
    """
    Timer-driven proximity checker.

    Args:
        registry: Connection registry to read vehicles from
        interval_s: Seconds between checks
        min_safe_distance_m: Warning threshold
        log: Logger of the owning server instance
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        interval_s: float = 1.0,
        min_safe_distance_m: float = 1000.0,
        log: Optional[logging.Logger] = None,
    ):
        if interval_s <= 0:
            raise ValueError("Check interval must be positive")
        if min_safe_distance_m <= 0:
            raise ValueError("Minimum safe distance must be positive")
        self.registry = registry
        self.interval_s = interval_s
        self.min_safe_distance_m = min_safe_distance_m
        self._log = log or logger
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_once(self) -> List[CloseApproach]:
        """
        Run one check and send the resulting warnings.

        Returns:
            The close approaches found
        """
        vehicles = {v.id: v for v in self.registry.snapshot_vehicles()}
        positions = [(vehicle_id, vehicle.state.position) for vehicle_id, vehicle in vehicles.items()]

        approaches = find_close_approaches(positions, self.min_safe_distance_m)
        for approach in approaches:
            self._log.warning(
                f"Warning: rockets {approach.first_id} and {approach.second_id} "
                f"at {approach.distance_m:.1f} m ({approach.severity.value})"
            )
            await asyncio.gather(
                self._warn(vehicles[approach.first_id], approach.second_id, approach),
                self._warn(vehicles[approach.second_id], approach.first_id, approach),
            )
        return approaches

    async def _warn(self, vehicle: VehicleConnection, other_id: str, approach: CloseApproach) -> None:
        await vehicle.send(encode_message(WarningPayload(
            rocket_id=vehicle.id,
            warning=format_warning(other_id, approach.distance_m),
            severity=approach.severity.value,
        )))

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_s)
            try:
                await self.check_once()
            except Exception:
                self._log.exception("Collision check failed")

    def start(self) -> asyncio.Task:
        """Start the periodic check on the running event loop."""
        if not self.running:
            self._task = asyncio.create_task(self._run())
        return self._task

    async def stop(self) -> None:
        """Stop the periodic check."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
