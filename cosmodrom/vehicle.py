"""
Vehicle data model for the Cosmodrom launch coordination system.

Defines:
- Static vehicle configuration (masses, fuel, engines, aerodynamics)
- Mutable kinematic state reported in telemetry
- Per-tick control command (throttles and attitude angles)
- Registration-time validation of configurations
- Loading of the sample vehicle catalog (cosmodrom/data/vehicles.json)

Field names in to_dict()/from_dict() follow the wire format used by vehicle
clients and observers.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .physics import EARTH, BodyModel, Vector3D


DEFAULT_CATALOG_PATH = Path(__file__).parent / "data" / "vehicles.json"


# =============================================================================
# ENUMS
# =============================================================================

class FuelType(Enum):
    """Propellant kinds a vehicle may declare."""
    KEROSENE = "kerosene"
    LIQUID_H2 = "liquid_h2"
    SOLID = "solid"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class Engine:
    """
    A single engine.

    Attributes:
        thrust_n: Full-throttle thrust (Newtons)
        fuel_consumption_kg_s: Full-throttle propellant flow (kg/s)
        active: Inactive engines produce no thrust and burn no fuel
    """
    thrust_n: float
    fuel_consumption_kg_s: float = 0.0
    active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "thrust": self.thrust_n,
            "fuel_consumption": self.fuel_consumption_kg_s,
            "is_active": self.active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Engine:
        """Create an engine from its wire representation."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected an engine object, got {type(data).__name__}")
        return cls(
            thrust_n=float(data.get("thrust", 0.0)),
            fuel_consumption_kg_s=float(data.get("fuel_consumption", 0.0)),
            active=bool(data.get("is_active", False)),
        )


@dataclass(frozen=True)
class VehicleConfig:
    """
    Static configuration of a vehicle, fixed at registration time.

    Attributes:
        name: Display name
        empty_mass_kg: Dry mass (kg)
        fuel_mass_kg: Fuel loaded at launch (kg)
        fuel_mass_max_kg: Tank capacity (kg)
        fuel_type: Propellant kind
        engines: Ordered engines; throttle i in a ControlCommand drives engine i
        drag_coefficient: Aerodynamic drag coefficient
        cross_section_m2: Frontal area (m^2)
    """
    name: str
    empty_mass_kg: float
    fuel_mass_kg: float
    fuel_mass_max_kg: float
    engines: Tuple[Engine, ...]
    fuel_type: FuelType = FuelType.KEROSENE
    drag_coefficient: float = 0.0
    cross_section_m2: float = 1.0

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored immutably
        if not isinstance(self.engines, tuple):
            object.__setattr__(self, "engines", tuple(self.engines))

    @property
    def wet_mass_kg(self) -> float:
        """Launch mass with the loaded fuel."""
        return self.empty_mass_kg + self.fuel_mass_kg

    @property
    def total_thrust_n(self) -> float:
        """Full-throttle thrust of all active engines."""
        return sum(engine.thrust_n for engine in self.engines if engine.active)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "mass_empty": self.empty_mass_kg,
            "mass_fuel": self.fuel_mass_kg,
            "mass_fuel_max": self.fuel_mass_max_kg,
            "fuel_type": self.fuel_type.value,
            "engines": [engine.to_dict() for engine in self.engines],
            "drag_coefficient": self.drag_coefficient,
            "cross_section": self.cross_section_m2,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VehicleConfig:
        """
        Create a configuration from its wire representation.

        Only checks shape and types; value ranges are checked by
        validate_vehicle_config().

        Raises:
            ValueError: If a field has the wrong type or the fuel kind is unknown
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a config object, got {type(data).__name__}")

        engines_data = data.get("engines") or []
        if not isinstance(engines_data, list):
            raise ValueError("engines must be a list")

        name = data.get("name", "")
        if not isinstance(name, str):
            raise ValueError("name must be a string")

        return cls(
            name=name,
            empty_mass_kg=float(data.get("mass_empty", 0.0)),
            fuel_mass_kg=float(data.get("mass_fuel", 0.0)),
            fuel_mass_max_kg=float(data.get("mass_fuel_max", 0.0)),
            fuel_type=FuelType(data.get("fuel_type", FuelType.KEROSENE.value)),
            engines=tuple(Engine.from_dict(e) for e in engines_data),
            drag_coefficient=float(data.get("drag_coefficient", 0.0)),
            cross_section_m2=float(data.get("cross_section", 0.0)),
        )


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(ValueError):
    """A vehicle configuration failed a registration rule."""

    def __init__(self, field_name: str, message: str, index: Optional[int] = None):
        self.field = field_name
        self.message = message
        self.index = index
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.index is not None:
            return f"{self.field}[{self.index}]: {self.message}"
        return f"{self.field}: {self.message}"


def validate_vehicle_config(config: VehicleConfig) -> None:
    """
    Check a configuration against the registration rules.

    Rules are checked in a fixed priority order and the first failure is
    raised, so the rejection reason is deterministic.

    Raises:
        ValidationError: On the first rule that fails
    """
    if not config.name:
        raise ValidationError("name", "rocket name must not be empty")
    if config.empty_mass_kg <= 0:
        raise ValidationError("mass_empty", "empty mass must be positive")
    if config.fuel_mass_kg < 0:
        raise ValidationError("mass_fuel", "fuel mass cannot be negative")
    if config.fuel_mass_max_kg < config.fuel_mass_kg:
        raise ValidationError("mass_fuel_max", "maximum fuel mass must be >= fuel mass")
    if not config.engines:
        raise ValidationError("engines", "rocket must have at least one engine")

    for i, engine in enumerate(config.engines):
        if engine.thrust_n <= 0:
            raise ValidationError("engines", "engine thrust must be positive", index=i)
        if engine.fuel_consumption_kg_s < 0:
            raise ValidationError("engines", "engine fuel consumption cannot be negative", index=i)

    if config.drag_coefficient < 0:
        raise ValidationError("drag_coefficient", "drag coefficient cannot be negative")
    if config.cross_section_m2 <= 0:
        raise ValidationError("cross_section", "cross section area must be positive")


# =============================================================================
# STATE AND COMMAND
# =============================================================================

@dataclass
class VehicleState:
    """
    Kinematic state of a vehicle, advanced by the integrator each tick.

    Once landed or crashed is set the state is terminal: velocity and
    acceleration are zero and further ticks leave it unchanged.

    The orbit_* fields hold the latest orbit estimate so observers can
    display it; apoapsis is -1 when the trajectory is not a closed orbit.
    """
    position: Vector3D = field(default_factory=Vector3D.zero)
    velocity: Vector3D = field(default_factory=Vector3D.zero)
    acceleration: Vector3D = field(default_factory=Vector3D.zero)
    altitude_m: float = 0.0
    speed_ms: float = 0.0
    mass_kg: float = 0.0
    fuel_remaining_kg: float = 0.0
    in_orbit: bool = False
    landed: bool = False
    crashed: bool = False
    time_s: float = 0.0

    orbit_apoapsis_m: float = -1.0
    orbit_periapsis_m: float = 0.0
    orbit_eccentricity: float = 0.0
    orbit_required_velocity_ms: float = 0.0
    orbit_is_stable: bool = False

    @property
    def is_terminal(self) -> bool:
        """True once the vehicle has landed or crashed."""
        return self.landed or self.crashed

    @property
    def phase(self) -> str:
        """Flight phase label: crashed, landed, orbit or flight."""
        if self.crashed:
            return "crashed"
        if self.landed:
            return "landed"
        if self.in_orbit:
            return "orbit"
        return "flight"

    def copy(self) -> VehicleState:
        """Create a deep copy of the state."""
        return VehicleState(
            position=Vector3D(self.position.x, self.position.y, self.position.z),
            velocity=Vector3D(self.velocity.x, self.velocity.y, self.velocity.z),
            acceleration=Vector3D(
                self.acceleration.x,
                self.acceleration.y,
                self.acceleration.z
            ),
            altitude_m=self.altitude_m,
            speed_ms=self.speed_ms,
            mass_kg=self.mass_kg,
            fuel_remaining_kg=self.fuel_remaining_kg,
            in_orbit=self.in_orbit,
            landed=self.landed,
            crashed=self.crashed,
            time_s=self.time_s,
            orbit_apoapsis_m=self.orbit_apoapsis_m,
            orbit_periapsis_m=self.orbit_periapsis_m,
            orbit_eccentricity=self.orbit_eccentricity,
            orbit_required_velocity_ms=self.orbit_required_velocity_ms,
            orbit_is_stable=self.orbit_is_stable,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "position": self.position.to_dict(),
            "velocity": self.velocity.to_dict(),
            "acceleration": self.acceleration.to_dict(),
            "altitude": self.altitude_m,
            "speed": self.speed_ms,
            "mass_current": self.mass_kg,
            "fuel_remaining": self.fuel_remaining_kg,
            "in_orbit": self.in_orbit,
            "landed": self.landed,
            "crashed": self.crashed,
            "time": self.time_s,
            "orbit_apoapsis": self.orbit_apoapsis_m,
            "orbit_periapsis": self.orbit_periapsis_m,
            "orbit_eccentricity": self.orbit_eccentricity,
            "orbit_required_velocity": self.orbit_required_velocity_ms,
            "orbit_is_stable": self.orbit_is_stable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> VehicleState:
        """Create a state from its wire representation (missing fields default)."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected a state object, got {type(data).__name__}")
        return cls(
            position=Vector3D.from_dict(data.get("position", {})),
            velocity=Vector3D.from_dict(data.get("velocity", {})),
            acceleration=Vector3D.from_dict(data.get("acceleration", {})),
            altitude_m=float(data.get("altitude", 0.0)),
            speed_ms=float(data.get("speed", 0.0)),
            mass_kg=float(data.get("mass_current", 0.0)),
            fuel_remaining_kg=float(data.get("fuel_remaining", 0.0)),
            in_orbit=bool(data.get("in_orbit", False)),
            landed=bool(data.get("landed", False)),
            crashed=bool(data.get("crashed", False)),
            time_s=float(data.get("time", 0.0)),
            orbit_apoapsis_m=float(data.get("orbit_apoapsis", -1.0)),
            orbit_periapsis_m=float(data.get("orbit_periapsis", 0.0)),
            orbit_eccentricity=float(data.get("orbit_eccentricity", 0.0)),
            orbit_required_velocity_ms=float(data.get("orbit_required_velocity", 0.0)),
            orbit_is_stable=bool(data.get("orbit_is_stable", False)),
        )


@dataclass
class ControlCommand:
    """
    Control input for one integrator tick.

    Attributes:
        throttles: Per-engine throttle 0.0-1.0, indexed like VehicleConfig.engines.
            Entries beyond the engine count are ignored.
        pitch_deg: 0 = radial up (vertical), 90 = horizontal
        yaw_deg: Accepted but does not affect thrust direction
        roll_deg: Accepted but does not affect thrust direction
    """
    throttles: List[float] = field(default_factory=list)
    pitch_deg: float = 0.0
    yaw_deg: float = 0.0
    roll_deg: float = 0.0

    @classmethod
    def full_throttle(cls, engine_count: int, pitch_deg: float = 0.0) -> ControlCommand:
        """Command with every engine at 1.0."""
        return cls(throttles=[1.0] * engine_count, pitch_deg=pitch_deg)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "engine_throttle": list(self.throttles),
            "pitch": self.pitch_deg,
            "yaw": self.yaw_deg,
            "roll": self.roll_deg,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ControlCommand:
        """Create a command from its wire representation."""
        if not isinstance(data, dict):
            raise ValueError(f"Expected a command object, got {type(data).__name__}")
        throttles = data.get("engine_throttle") or []
        if not isinstance(throttles, list):
            raise ValueError("engine_throttle must be a list")
        return cls(
            throttles=[float(t) for t in throttles],
            pitch_deg=float(data.get("pitch", 0.0)),
            yaw_deg=float(data.get("yaw", 0.0)),
            roll_deg=float(data.get("roll", 0.0)),
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_initial_state(
    config: VehicleConfig,
    position: Optional[Vector3D] = None,
    body: BodyModel = EARTH
) -> VehicleState:
    """
    Create the pre-launch state of a vehicle.

    Args:
        config: Vehicle configuration
        position: Launch position (default: on the surface at lat 0, lon 0)
        body: Reference body for the altitude

    Returns:
        State at rest with the configured fuel load
    """
    if position is None:
        position = Vector3D(body.radius_m, 0.0, 0.0)

    return VehicleState(
        position=Vector3D(position.x, position.y, position.z),
        altitude_m=position.magnitude - body.radius_m,
        mass_kg=config.wet_mass_kg,
        fuel_remaining_kg=config.fuel_mass_kg,
    )


def load_vehicle_catalog(path: Optional[Path] = None) -> Dict[str, VehicleConfig]:
    """
    Load named vehicle configurations from a JSON catalog.

    The catalog has the form {"vehicles": {"<key>": {<config>}, ...}}.

    Args:
        path: Catalog file (default: the bundled cosmodrom/data/vehicles.json)

    Returns:
        Mapping of catalog key to configuration
    """
    catalog_path = Path(path) if path is not None else DEFAULT_CATALOG_PATH
    if not catalog_path.exists():
        raise FileNotFoundError(f"Vehicle catalog not found: {catalog_path}")

    with open(catalog_path) as f:
        data = json.load(f)

    return {
        key: VehicleConfig.from_dict(entry)
        for key, entry in data.get("vehicles", {}).items()
    }
