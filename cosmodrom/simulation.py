"""
Vehicle-side simulation loop body.

VehicleSimulation owns one vehicle's state and command and advances them
tick by tick: guidance sets the pitch, the integrator advances the state and
the throttles are cut once the tanks are dry. It does no I/O; the vehicle
client (or an offline script) decides when to step and what to send.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .guidance import AscentGuidance
from .integrator import advance
from .physics import EARTH, BodyModel, Vector3D
from .vehicle import ControlCommand, VehicleConfig, VehicleState, create_initial_state

logger = logging.getLogger(__name__)


class VehicleSimulation:
    """
    Fixed-step simulation of a single vehicle.

    Attributes:
        config: Vehicle configuration
        state: Latest state
        command: Command applied on the next tick
        guidance: Pitch policy, or None to fly the command pitch as given
        body: Dominant body
        dt: Time step (seconds)
    """

    def __init__(
        self,
        config: VehicleConfig,
        position: Optional[Vector3D] = None,
        guidance: Optional[AscentGuidance] = None,
        body: BodyModel = EARTH,
        dt: float = 0.01,
        name: str = "",
    ):
        if dt <= 0:
            raise ValueError("Time step must be positive")

        self.config = config
        self.body = body
        self.dt = dt
        self.guidance = guidance
        self.name = name or config.name
        self.state = create_initial_state(config, position, body)
        self.command = ControlCommand.full_throttle(len(config.engines))

        self._orbit_reported = False
        self._engines_cut = False

    @property
    def finished(self) -> bool:
        """True once the vehicle has landed or crashed."""
        return self.state.is_terminal

    def apply_command(self, command: ControlCommand) -> None:
        """Replace the current command (guidance still overrides pitch)."""
        self.command = ControlCommand(
            throttles=list(command.throttles),
            pitch_deg=command.pitch_deg,
            yaw_deg=command.yaw_deg,
            roll_deg=command.roll_deg,
        )
        logger.info(f"{self.name}: control command received")

    def cut_engines(self) -> None:
        """Set every throttle to zero."""
        self.command.throttles = [0.0] * len(self.command.throttles)

    def step(self) -> VehicleState:
        """
        Advance one tick.

        Returns:
            The new state
        """
        if self.finished:
            return self.state

        if self.guidance is not None:
            self.command.pitch_deg = self.guidance.pitch_for_altitude(self.state.altitude_m)

        self.state = advance(self.state, self.config, self.command, self.body, self.dt)

        if self.state.fuel_remaining_kg <= 0 and not self._engines_cut:
            self.cut_engines()
            self._engines_cut = True
            logger.info(f"{self.name}: fuel exhausted at {self.state.altitude_m / 1000.0:.2f} km, engines cut")

        if self.state.landed:
            logger.info(f"{self.name}: landed at t={self.state.time_s:.1f} s")
        elif self.state.crashed:
            logger.warning(f"{self.name}: crashed at t={self.state.time_s:.1f} s")
        elif self.state.in_orbit and not self._orbit_reported:
            self._orbit_reported = True
            logger.info(
                f"{self.name}: orbit reached, altitude {self.state.altitude_m / 1000.0:.2f} km, "
                f"speed {self.state.speed_ms:.1f} m/s, fuel {self.state.fuel_remaining_kg:.0f} kg"
            )

        return self.state

    def run(
        self,
        duration_s: float,
        stop_when: Optional[Callable[[VehicleState], bool]] = None
    ) -> VehicleState:
        """
        Step until duration_s of simulated time has passed.

        Stops early when the vehicle lands or crashes, or when stop_when
        returns True for a new state.

        Returns:
            The final state
        """
        end_time = self.state.time_s + duration_s
        while not self.finished and self.state.time_s < end_time:
            state = self.step()
            if stop_when is not None and stop_when(state):
                break
        return self.state
