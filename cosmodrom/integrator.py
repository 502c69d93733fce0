"""
Flight integrator: advances a vehicle state by one fixed time step.

Per tick the integrator sums gravity, atmospheric drag and engine thrust,
integrates with semi-implicit Euler (velocity first, then position with the
new velocity), burns fuel, checks for ground contact and classifies the
resulting orbit.

Preconditions (not validated): dt >= 0, throttles in [0, 1]. Degenerate input
never raises; zero mass gives zero acceleration and zero vectors normalize to
zero.
"""

from __future__ import annotations

import math
from typing import Iterator, List, Tuple

from .orbit import predict_orbit
from .physics import EARTH, BodyModel, Vector3D
from .vehicle import ControlCommand, Engine, VehicleConfig, VehicleState


# Touchdown slower than this counts as a landing, otherwise a crash (m/s)
LANDING_SPEED_LIMIT_MS = 5.0

# Below this speed drag is treated as zero (m/s)
DRAG_MIN_SPEED_MS = 1e-6

# Below this magnitude radial x Z is considered degenerate (near the poles)
POLAR_DEGENERACY_LIMIT = 0.01


# =============================================================================
# FORCES
# =============================================================================

def active_engines(
    config: VehicleConfig,
    command: ControlCommand
) -> Iterator[Tuple[Engine, float]]:
    """
    Yield (engine, throttle) for each engine driven by the command.

    Only the first min(engine count, throttle count) engines are considered
    and inactive engines are skipped.
    """
    for engine, throttle in zip(config.engines, command.throttles):
        if engine.active:
            yield engine, throttle


def calculate_gravity(position: Vector3D, mass_kg: float, body: BodyModel = EARTH) -> Vector3D:
    """
    Gravitational force on a vehicle (Newtons).

    Zero at or inside the body surface.
    """
    distance = position.magnitude
    if distance <= body.radius_m:
        return Vector3D.zero()
    magnitude = body.mu * mass_kg / (distance * distance)
    return -position.normalized() * magnitude


def calculate_drag(
    velocity: Vector3D,
    altitude_m: float,
    config: VehicleConfig,
    body: BodyModel = EARTH
) -> Vector3D:
    """
    Aerodynamic drag force opposing the velocity (Newtons).

    F = 0.5 * rho * v^2 * Cd * A, zero outside the atmosphere or when the
    vehicle is (nearly) at rest.
    """
    speed = velocity.magnitude
    if speed < DRAG_MIN_SPEED_MS:
        return Vector3D.zero()

    density = body.air_density(altitude_m)
    if density <= 0:
        return Vector3D.zero()

    magnitude = 0.5 * density * speed * speed * config.drag_coefficient * config.cross_section_m2
    return -velocity.normalized() * magnitude


def calculate_thrust(config: VehicleConfig, command: ControlCommand) -> float:
    """Total thrust magnitude for the commanded throttles (Newtons)."""
    return sum(engine.thrust_n * throttle for engine, throttle in active_engines(config, command))


def fuel_consumption(config: VehicleConfig, command: ControlCommand, dt: float) -> float:
    """Fuel burned over dt at the commanded throttles (kg)."""
    return sum(
        engine.fuel_consumption_kg_s * throttle * dt
        for engine, throttle in active_engines(config, command)
    )


def thrust_direction(position: Vector3D, pitch_deg: float) -> Vector3D:
    """
    Unit thrust direction for a pitch angle.

    Pitch 0 points radially up, 90 along the local horizontal given by
    normalize(radial x Z). Near the poles, where that cross product
    vanishes, radial x X is used instead. Yaw and roll do not enter.

    Args:
        position: Body-centred position
        pitch_deg: Pitch from vertical (degrees)

    Returns:
        Direction vector (zero if position is the body centre)
    """
    radial = position.normalized()

    horizontal = radial.cross(Vector3D.unit_z())
    if horizontal.magnitude < POLAR_DEGENERACY_LIMIT:
        horizontal = radial.cross(Vector3D.unit_x())
    east = horizontal.normalized()

    pitch_rad = math.radians(pitch_deg)
    return radial * math.cos(pitch_rad) + east * math.sin(pitch_rad)


# =============================================================================
# INTEGRATION
# =============================================================================

def advance(
    state: VehicleState,
    config: VehicleConfig,
    command: ControlCommand,
    body: BodyModel = EARTH,
    dt: float = 0.01
) -> VehicleState:
    """
    Advance a vehicle state by one time step.

    Args:
        state: Current state (not modified)
        config: Vehicle configuration
        command: Throttles and attitude for this tick
        body: Dominant body
        dt: Time step in seconds

    Returns:
        New state. Landed or crashed states are returned unchanged (as a copy).
    """
    new_state = state.copy()
    if state.is_terminal:
        return new_state

    altitude_m = state.position.magnitude - body.radius_m

    gravity = calculate_gravity(state.position, state.mass_kg, body)
    drag = calculate_drag(state.velocity, altitude_m, config, body)
    thrust = thrust_direction(state.position, command.pitch_deg) * calculate_thrust(config, command)

    total_force = gravity + drag + thrust
    if state.mass_kg > 0:
        acceleration = total_force / state.mass_kg
    else:
        acceleration = Vector3D.zero()

    # Semi-implicit Euler: position uses the updated velocity
    new_state.acceleration = acceleration
    new_state.velocity = state.velocity + acceleration * dt
    new_state.speed_ms = new_state.velocity.magnitude
    new_state.position = state.position + new_state.velocity * dt

    burned = fuel_consumption(config, command, dt)
    new_state.fuel_remaining_kg = max(0.0, state.fuel_remaining_kg - burned)
    new_state.mass_kg = config.empty_mass_kg + new_state.fuel_remaining_kg

    distance = new_state.position.magnitude
    new_state.altitude_m = distance - body.radius_m

    if distance <= body.radius_m:
        if new_state.speed_ms < LANDING_SPEED_LIMIT_MS:
            new_state.landed = True
        else:
            new_state.crashed = True
        new_state.in_orbit = False
        new_state.velocity = Vector3D.zero()
        new_state.acceleration = Vector3D.zero()
        new_state.speed_ms = 0.0
        return new_state

    estimate = predict_orbit(new_state, body)
    new_state.in_orbit = estimate.is_stable
    new_state.orbit_apoapsis_m = estimate.apoapsis_m
    new_state.orbit_periapsis_m = estimate.periapsis_m
    new_state.orbit_eccentricity = estimate.eccentricity
    new_state.orbit_required_velocity_ms = estimate.required_speed_ms
    new_state.orbit_is_stable = estimate.is_stable

    new_state.time_s = state.time_s + dt
    return new_state


def propagate_trajectory(
    initial_state: VehicleState,
    config: VehicleConfig,
    command: ControlCommand,
    total_time: float,
    dt: float = 0.01,
    body: BodyModel = EARTH
) -> List[VehicleState]:
    """
    Propagate a vehicle under a constant command.

    Stops early once the vehicle lands or crashes.

    Args:
        initial_state: Starting state
        config: Vehicle configuration
        command: Constant command applied every tick
        total_time: Total simulated time (seconds)
        dt: Time step (seconds)
        body: Dominant body

    Returns:
        List of states, starting with a copy of the initial state
    """
    states = [initial_state.copy()]
    current_state = initial_state.copy()

    t = 0.0
    while t < total_time and not current_state.is_terminal:
        step = min(dt, total_time - t)
        current_state = advance(current_state, config, command, body, step)
        states.append(current_state)
        t += step

    return states
