"""
Orbit prediction from a single state vector.

Classifies the two-body conic a vehicle is on from its position and velocity
relative to the dominant body, and decides whether it is a stable orbit
(periapsis above the atmosphere, bound trajectory).
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .physics import EARTH, BodyModel, Vector3D
from .vehicle import VehicleState


# Below this magnitude the specific energy is treated as parabolic
PARABOLIC_ENERGY_EPSILON = 1e-10

# Sentinel apoapsis for open (parabolic / hyperbolic) trajectories
NO_APOAPSIS = -1.0


@dataclass(frozen=True)
class OrbitEstimate:
    """
    Derived orbit parameters, recomputed every tick.

    Attributes:
        apoapsis_m: Highest point above the surface, or -1 for open trajectories
        periapsis_m: Lowest point above the surface (current altitude if open)
        eccentricity: 0 = circular, <1 elliptical, >=1 escape
        current_speed_ms: Speed at the moment of prediction
        required_speed_ms: Circular orbit speed at the current altitude
        is_stable: Bound orbit whose periapsis clears the atmosphere
    """
    apoapsis_m: float
    periapsis_m: float
    eccentricity: float
    current_speed_ms: float
    required_speed_ms: float
    is_stable: bool

    @property
    def is_closed(self) -> bool:
        """True for elliptical orbits (apoapsis defined)."""
        return self.apoapsis_m != NO_APOAPSIS


def predict_orbit_from_vectors(
    position: Vector3D,
    velocity: Vector3D,
    body: BodyModel = EARTH
) -> OrbitEstimate:
    """
    Predict the orbit defined by a position/velocity pair.

    Args:
        position: Body-centred position (meters)
        velocity: Velocity (m/s)
        body: Dominant body

    Returns:
        OrbitEstimate for the conic through the given state
    """
    mu = body.mu
    r = position.magnitude
    v = velocity.magnitude
    altitude_m = r - body.radius_m

    required_speed = math.sqrt(mu / (body.radius_m + altitude_m)) if r > 0 else 0.0

    if r <= 0:
        # Degenerate: at the body centre there is no orbit to speak of
        return OrbitEstimate(
            apoapsis_m=NO_APOAPSIS,
            periapsis_m=altitude_m,
            eccentricity=1.0,
            current_speed_ms=v,
            required_speed_ms=required_speed,
            is_stable=False,
        )

    energy = v * v / 2.0 - mu / r
    h = position.cross(velocity).magnitude

    if abs(energy) < PARABOLIC_ENERGY_EPSILON:
        semi_major_axis = math.inf
        eccentricity = 1.0
    else:
        semi_major_axis = -mu / (2.0 * energy)
        eccentricity = math.sqrt(max(0.0, 1.0 - h * h / (mu * semi_major_axis)))

    if eccentricity < 1.0 and 0 < semi_major_axis < math.inf:
        apoapsis = semi_major_axis * (1.0 + eccentricity) - body.radius_m
        periapsis = semi_major_axis * (1.0 - eccentricity) - body.radius_m
    else:
        apoapsis = NO_APOAPSIS
        periapsis = altitude_m

    return OrbitEstimate(
        apoapsis_m=apoapsis,
        periapsis_m=periapsis,
        eccentricity=eccentricity,
        current_speed_ms=v,
        required_speed_ms=required_speed,
        is_stable=periapsis > body.atmosphere_height_m and eccentricity < 1.0,
    )


def predict_orbit(state: VehicleState, body: BodyModel = EARTH) -> OrbitEstimate:
    """Predict the orbit of a vehicle state. Pure function."""
    return predict_orbit_from_vectors(state.position, state.velocity, body)
