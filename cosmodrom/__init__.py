"""Cosmodrom launch coordination system: vehicle physics and wire protocol."""

from .physics import (
    EARTH,
    BodyModel,
    Vector3D,
    cartesian_to_spherical,
    spherical_to_cartesian,
)

from .vehicle import (
    ControlCommand,
    Engine,
    FuelType,
    ValidationError,
    VehicleConfig,
    VehicleState,
    create_initial_state,
    load_vehicle_catalog,
    validate_vehicle_config,
)

from .orbit import (
    OrbitEstimate,
    predict_orbit,
)

from .integrator import (
    advance,
    propagate_trajectory,
    thrust_direction,
)

from .guidance import (
    AscentGuidance,
    GravityTurnGuidance,
    StagedPitchProfile,
    create_guidance,
)

from .protocol import (
    Envelope,
    MessageType,
    ProtocolError,
    decode_message,
    encode_message,
)

from .simulation import VehicleSimulation

__all__ = [
    # Physics
    "EARTH",
    "BodyModel",
    "Vector3D",
    "cartesian_to_spherical",
    "spherical_to_cartesian",
    # Vehicle
    "ControlCommand",
    "Engine",
    "FuelType",
    "ValidationError",
    "VehicleConfig",
    "VehicleState",
    "create_initial_state",
    "load_vehicle_catalog",
    "validate_vehicle_config",
    # Orbit
    "OrbitEstimate",
    "predict_orbit",
    # Integrator
    "advance",
    "propagate_trajectory",
    "thrust_direction",
    # Guidance
    "AscentGuidance",
    "GravityTurnGuidance",
    "StagedPitchProfile",
    "create_guidance",
    # Protocol
    "Envelope",
    "MessageType",
    "ProtocolError",
    "decode_message",
    "encode_message",
    # Simulation
    "VehicleSimulation",
]
