"""
Tests for orbit prediction from a single state vector.
"""

import math
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.orbit import NO_APOAPSIS, predict_orbit, predict_orbit_from_vectors
from cosmodrom.physics import EARTH, EARTH_RADIUS_M, BodyModel, Vector3D
from cosmodrom.vehicle import VehicleState


def circular(altitude_m: float, factor: float = 1.0):
    r = EARTH_RADIUS_M + altitude_m
    return Vector3D(r, 0, 0), Vector3D(0, factor * math.sqrt(EARTH.mu / r), 0)


class TestCircularOrbits:
    """Circular orbits at different altitudes."""

    def test_leo_is_stable(self):
        """A circular orbit at 400 km is a stable orbit."""
        estimate = predict_orbit_from_vectors(*circular(400_000.0))
        assert estimate.is_stable
        assert estimate.is_closed
        assert estimate.eccentricity < 1e-6
        assert estimate.apoapsis_m == pytest.approx(400_000.0, abs=1.0)
        assert estimate.periapsis_m == pytest.approx(400_000.0, abs=1.0)

    def test_required_speed_matches_current(self):
        estimate = predict_orbit_from_vectors(*circular(400_000.0))
        assert estimate.current_speed_ms == pytest.approx(estimate.required_speed_ms)

    def test_inside_atmosphere_is_not_stable(self):
        """A circular orbit at 50 km has its periapsis inside the atmosphere."""
        estimate = predict_orbit_from_vectors(*circular(50_000.0))
        assert estimate.is_closed
        assert not estimate.is_stable

    @pytest.mark.parametrize("altitude,stable", [
        (99_000.0, False),
        (101_000.0, True),
    ])
    def test_atmosphere_boundary(self, altitude, stable):
        assert predict_orbit_from_vectors(*circular(altitude)).is_stable is stable


class TestEllipticalAndOpen:
    """Elliptical, escape and degenerate trajectories."""

    def test_elliptical_periapsis_at_burn_point(self):
        """Extra horizontal speed raises the apoapsis, periapsis stays put."""
        estimate = predict_orbit_from_vectors(*circular(200_000.0, factor=1.05))
        assert 0 < estimate.eccentricity < 1
        assert estimate.periapsis_m == pytest.approx(200_000.0, abs=1.0)
        assert estimate.apoapsis_m > 200_000.0
        assert estimate.is_stable

    def test_escape_trajectory(self):
        position, velocity = circular(300_000.0, factor=1.6)
        estimate = predict_orbit_from_vectors(position, velocity)
        assert estimate.eccentricity > 1
        assert estimate.apoapsis_m == NO_APOAPSIS
        assert not estimate.is_closed
        assert estimate.periapsis_m == pytest.approx(300_000.0)
        assert not estimate.is_stable

    def test_vertical_fall_is_open(self):
        """Zero angular momentum gives eccentricity 1 and no apoapsis."""
        estimate = predict_orbit_from_vectors(Vector3D(EARTH_RADIUS_M + 100_000.0, 0, 0), Vector3D.zero())
        assert estimate.eccentricity == pytest.approx(1.0)
        assert estimate.apoapsis_m == NO_APOAPSIS
        assert not estimate.is_stable

    def test_body_centre(self):
        estimate = predict_orbit_from_vectors(Vector3D.zero(), Vector3D(1.0, 0, 0))
        assert not estimate.is_stable
        assert estimate.apoapsis_m == NO_APOAPSIS


class TestPredictOrbit:
    """State-based entry point."""

    def test_matches_vector_form(self):
        position, velocity = circular(250_000.0, factor=1.02)
        state = VehicleState(position=position, velocity=velocity)
        assert predict_orbit(state) == predict_orbit_from_vectors(position, velocity)

    def test_state_not_modified(self):
        position, velocity = circular(250_000.0)
        state = VehicleState(position=position, velocity=velocity)
        before = state.to_dict()
        predict_orbit(state)
        assert state.to_dict() == before

    def test_airless_body(self):
        """Without an atmosphere any orbit clearing the surface is stable."""
        moon = BodyModel(radius_m=1_737_400.0, mass_kg=7.342e22, atmosphere_height_m=0.0, name="Moon")
        r = moon.radius_m + 20_000.0
        estimate = predict_orbit_from_vectors(Vector3D(r, 0, 0), Vector3D(0, math.sqrt(moon.mu / r), 0), moon)
        assert estimate.is_stable
