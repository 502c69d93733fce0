#!/usr/bin/env python3
"""
Physics Primitives for the Cosmodrom Launch Coordination System

Implements the building blocks shared by the vehicle integrator and the
coordination server:
- 3D vector operations
- Physical constants and the dominant-body model (radius, mass, atmosphere)
- Spherical (latitude, longitude, altitude) <-> cartesian conversion

All units in SI (meters, m/s, kg) unless otherwise specified. Positions are
body-centred cartesian coordinates with +Z through the north pole.
"""

from __future__ import annotations
import math
from dataclasses import dataclass


# =============================================================================
# PHYSICAL CONSTANTS
# =============================================================================

# Gravitational constant (m^3 / (kg * s^2))
G_CONSTANT = 6.674e-11

# Earth reference values
EARTH_RADIUS_M = 6_371_000.0
EARTH_MASS_KG = 5.972e24
EARTH_ATMOSPHERE_HEIGHT_M = 100_000.0  # Karman line
EARTH_SCALE_HEIGHT_M = 8_500.0
EARTH_SURFACE_PRESSURE = 1.0  # Relative to Earth sea level

# Sea-level air density (kg/m^3)
SEA_LEVEL_AIR_DENSITY = 1.225

# First cosmic velocity for Earth (m/s), informational
ORBITAL_VELOCITY_MS = 7_900.0

# Below this magnitude a vector is treated as zero
VECTOR_EPSILON = 1e-10


# =============================================================================
# VECTOR3D CLASS
# =============================================================================

@dataclass
class Vector3D:
    """
    3D vector for positions, velocities, accelerations and directions.

    Uses a right-handed, body-centred coordinate system where:
    - X: towards latitude 0, longitude 0
    - Y: towards latitude 0, longitude 90 E
    - Z: towards the north pole

    All units in SI (meters, m/s, etc.) unless otherwise specified.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: Vector3D) -> Vector3D:
        """Vector addition."""
        return Vector3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector3D) -> Vector3D:
        """Vector subtraction."""
        return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> Vector3D:
        """Scalar multiplication."""
        return Vector3D(self.x * scalar, self.y * scalar, self.z * scalar)

    def __rmul__(self, scalar: float) -> Vector3D:
        """Right scalar multiplication."""
        return self.__mul__(scalar)

    def __truediv__(self, scalar: float) -> Vector3D:
        """Scalar division."""
        if scalar == 0:
            raise ValueError("Cannot divide vector by zero")
        return Vector3D(self.x / scalar, self.y / scalar, self.z / scalar)

    def __neg__(self) -> Vector3D:
        """Negation."""
        return Vector3D(-self.x, -self.y, -self.z)

    def __eq__(self, other: object) -> bool:
        """Equality check with tolerance."""
        if not isinstance(other, Vector3D):
            return False
        eps = 1e-10
        return (abs(self.x - other.x) < eps and
                abs(self.y - other.y) < eps and
                abs(self.z - other.z) < eps)

    def dot(self, other: Vector3D) -> float:
        """Dot product."""
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector3D) -> Vector3D:
        """Cross product."""
        return Vector3D(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x
        )

    @property
    def magnitude(self) -> float:
        """Vector magnitude (length)."""
        return math.sqrt(self.x**2 + self.y**2 + self.z**2)

    @property
    def magnitude_squared(self) -> float:
        """Squared magnitude (avoids sqrt for comparisons)."""
        return self.x**2 + self.y**2 + self.z**2

    def normalized(self) -> Vector3D:
        """Return unit vector in same direction (zero vector if degenerate)."""
        mag = self.magnitude
        if mag < VECTOR_EPSILON:
            return Vector3D(0.0, 0.0, 0.0)
        return self / mag

    def distance_to(self, other: Vector3D) -> float:
        """Distance to another point."""
        return (self - other).magnitude

    def to_tuple(self) -> tuple[float, float, float]:
        """Convert to tuple."""
        return (self.x, self.y, self.z)

    def to_dict(self) -> dict[str, float]:
        """Convert to a JSON-ready dictionary."""
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_tuple(cls, t: tuple[float, float, float]) -> Vector3D:
        """Create from tuple."""
        return cls(t[0], t[1], t[2])

    @classmethod
    def from_dict(cls, data: dict) -> Vector3D:
        """Create from a {"x", "y", "z"} dictionary (missing axes are zero)."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected a vector object, got {type(data).__name__}")
        return cls(
            float(data.get("x", 0.0)),
            float(data.get("y", 0.0)),
            float(data.get("z", 0.0)),
        )

    @classmethod
    def zero(cls) -> Vector3D:
        """Zero vector."""
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def unit_x(cls) -> Vector3D:
        """Unit vector in X direction."""
        return cls(1.0, 0.0, 0.0)

    @classmethod
    def unit_y(cls) -> Vector3D:
        """Unit vector in Y direction."""
        return cls(0.0, 1.0, 0.0)

    @classmethod
    def unit_z(cls) -> Vector3D:
        """Unit vector in Z direction (north pole)."""
        return cls(0.0, 0.0, 1.0)

    def __repr__(self) -> str:
        return f"Vector3D({self.x:.6g}, {self.y:.6g}, {self.z:.6g})"


# =============================================================================
# BODY MODEL
# =============================================================================

@dataclass(frozen=True)
class BodyModel:
    """
    Dominant gravitating body with an exponential atmosphere.

    Attributes:
        radius_m: Body radius (meters)
        mass_kg: Body mass (kg)
        atmosphere_height_m: Altitude above which drag is zero (meters)
        surface_pressure: Surface pressure relative to Earth (1.0 = Earth-like)
        scale_height_m: Altitude over which density falls by a factor of e
        name: Display name
    """
    radius_m: float
    mass_kg: float
    atmosphere_height_m: float = 0.0
    surface_pressure: float = 0.0
    scale_height_m: float = 1.0
    name: str = "body"

    def __post_init__(self) -> None:
        """Validate body parameters."""
        if self.radius_m <= 0:
            raise ValueError("Body radius must be positive")
        if self.mass_kg <= 0:
            raise ValueError("Body mass must be positive")
        if self.atmosphere_height_m < 0:
            raise ValueError("Atmosphere height cannot be negative")
        if self.surface_pressure < 0:
            raise ValueError("Surface pressure cannot be negative")
        if self.scale_height_m <= 0:
            raise ValueError("Scale height must be positive")

    @property
    def mu(self) -> float:
        """Standard gravitational parameter G*M (m^3/s^2)."""
        return G_CONSTANT * self.mass_kg

    def air_density(self, altitude_m: float) -> float:
        """
        Air density at a given altitude (kg/m^3).

        Zero outside the atmosphere band (0, atmosphere_height).
        """
        if altitude_m <= 0 or altitude_m >= self.atmosphere_height_m:
            return 0.0
        return (self.surface_pressure * SEA_LEVEL_AIR_DENSITY *
                math.exp(-altitude_m / self.scale_height_m))

    def circular_speed(self, altitude_m: float) -> float:
        """Speed of a circular orbit at the given altitude (m/s)."""
        return math.sqrt(self.mu / (self.radius_m + altitude_m))


EARTH = BodyModel(
    radius_m=EARTH_RADIUS_M,
    mass_kg=EARTH_MASS_KG,
    atmosphere_height_m=EARTH_ATMOSPHERE_HEIGHT_M,
    surface_pressure=EARTH_SURFACE_PRESSURE,
    scale_height_m=EARTH_SCALE_HEIGHT_M,
    name="Earth",
)


# =============================================================================
# COORDINATE CONVERSION
# =============================================================================

def spherical_to_cartesian(
    latitude_deg: float,
    longitude_deg: float,
    altitude_m: float,
    body: BodyModel = EARTH
) -> Vector3D:
    """
    Convert latitude/longitude/altitude to a body-centred cartesian position.

    Args:
        latitude_deg: Latitude in degrees (+90 = north pole)
        longitude_deg: Longitude in degrees
        altitude_m: Altitude above the body surface (meters)
        body: Reference body (default: Earth)

    Returns:
        Position vector in meters
    """
    lat_rad = math.radians(latitude_deg)
    lon_rad = math.radians(longitude_deg)
    r = body.radius_m + altitude_m

    return Vector3D(
        r * math.cos(lat_rad) * math.cos(lon_rad),
        r * math.cos(lat_rad) * math.sin(lon_rad),
        r * math.sin(lat_rad)
    )


def cartesian_to_spherical(
    position: Vector3D,
    body: BodyModel = EARTH
) -> tuple[float, float, float]:
    """
    Convert a body-centred cartesian position to latitude/longitude/altitude.

    Args:
        position: Position vector in meters
        body: Reference body (default: Earth)

    Returns:
        Tuple of (latitude_deg, longitude_deg, altitude_m). The body centre
        maps to (0, 0, -radius).
    """
    r = position.magnitude
    altitude_m = r - body.radius_m
    if r < VECTOR_EPSILON:
        return 0.0, 0.0, altitude_m

    # Clamp to avoid floating point errors with asin
    sin_lat = max(-1.0, min(1.0, position.z / r))
    latitude_deg = math.degrees(math.asin(sin_lat))
    longitude_deg = math.degrees(math.atan2(position.y, position.x))

    return latitude_deg, longitude_deg, altitude_m
