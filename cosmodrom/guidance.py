"""
Ascent guidance policies.

A guidance policy maps the current altitude to a pitch angle (0 = vertical,
90 = horizontal). Policies run inside a vehicle's own control loop; the
coordination server never calls them.

- GravityTurnGuidance: smooth sine-shaped turn sized from a target orbit
- StagedPitchProfile: piecewise-linear pitch vs. altitude table
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence, Tuple

from .physics import EARTH, BodyModel


# =============================================================================
# BASE POLICY
# =============================================================================

class AscentGuidance(ABC):
    """Abstract base class for pitch-vs-altitude ascent policies."""

    name: str = ""

    @abstractmethod
    def pitch_for_altitude(self, altitude_m: float) -> float:
        """
        Pitch command for the given altitude.

        Args:
            altitude_m: Altitude above the body surface (meters)

        Returns:
            Pitch in degrees, 0 (vertical) to 90 (horizontal)
        """
        pass

    def __call__(self, altitude_m: float) -> float:
        return self.pitch_for_altitude(altitude_m)


# =============================================================================
# GRAVITY TURN
# =============================================================================

@dataclass(frozen=True)
class GravityTurnGuidance(AscentGuidance):
    """
    Smoothed gravity turn.

    Vertical below turn_start_m, horizontal at or above turn_end_m and
    90 * sin(progress * pi/2) in between. When turn_end_m is not above
    turn_start_m the turn collapses to a step at turn_start_m.
    """
    turn_start_m: float
    turn_end_m: float

    name = "gravity_turn"

    @classmethod
    def for_orbit(cls, target_altitude_m: float, body: BodyModel = EARTH) -> GravityTurnGuidance:
        """
        Size the turn for a target orbital altitude.

        The turn starts at 1% of the target (at least 1 km) and ends at 70% of
        the target or half the atmosphere height, whichever is higher.
        """
        turn_start = max(0.01 * target_altitude_m, 1000.0)
        turn_end = max(0.7 * target_altitude_m, 0.5 * body.atmosphere_height_m)
        return cls(turn_start_m=turn_start, turn_end_m=turn_end)

    def pitch_for_altitude(self, altitude_m: float) -> float:
        if altitude_m < self.turn_start_m:
            return 0.0
        if altitude_m >= self.turn_end_m:
            return 90.0
        progress = (altitude_m - self.turn_start_m) / (self.turn_end_m - self.turn_start_m)
        return 90.0 * math.sin(progress * math.pi / 2.0)


# =============================================================================
# STAGED PROFILE
# =============================================================================

# (altitude_m, pitch_deg) breakpoints of the hand-tuned low-altitude profile
STAGED_BREAKPOINTS: Tuple[Tuple[float, float], ...] = (
    (500.0, 0.0),
    (600.0, 25.0),
    (700.0, 60.0),
    (800.0, 80.0),
    (900.0, 90.0),
)


class StagedPitchProfile(AscentGuidance):
    """
    Piecewise-linear pitch table.

    Pitch holds the first breakpoint's value below it, interpolates linearly
    between breakpoints and holds the last value above the final one.
    """

    name = "staged"

    def __init__(self, breakpoints: Sequence[Tuple[float, float]] = STAGED_BREAKPOINTS):
        points = sorted((float(a), float(p)) for a, p in breakpoints)
        if not points:
            raise ValueError("Pitch profile needs at least one breakpoint")
        for (a0, _), (a1, _) in zip(points, points[1:]):
            if a1 == a0:
                raise ValueError(f"Duplicate breakpoint altitude: {a0}")
        self.breakpoints: Tuple[Tuple[float, float], ...] = tuple(points)

    def pitch_for_altitude(self, altitude_m: float) -> float:
        first_alt, first_pitch = self.breakpoints[0]
        if altitude_m <= first_alt:
            return first_pitch

        for (a0, p0), (a1, p1) in zip(self.breakpoints, self.breakpoints[1:]):
            if altitude_m < a1:
                return p0 + (altitude_m - a0) / (a1 - a0) * (p1 - p0)

        return self.breakpoints[-1][1]

    def __repr__(self) -> str:
        return f"StagedPitchProfile({list(self.breakpoints)})"


# =============================================================================
# FACTORY
# =============================================================================

GUIDANCE_NAMES = ("staged", "gravity_turn")


def create_guidance(
    name: str,
    target_altitude_m: float = 200_000.0,
    body: BodyModel = EARTH
) -> AscentGuidance:
    """
    Create a guidance policy by name.

    Args:
        name: "staged" or "gravity_turn"
        target_altitude_m: Target orbit altitude (gravity turn only)
        body: Dominant body (gravity turn only)

    Raises:
        ValueError: If the name is unknown
    """
    if name == "staged":
        return StagedPitchProfile()
    if name == "gravity_turn":
        return GravityTurnGuidance.for_orbit(target_altitude_m, body)
    raise ValueError(f"Unknown guidance policy: {name!r} (expected one of {', '.join(GUIDANCE_NAMES)})")
