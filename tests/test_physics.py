#!/usr/bin/env python3
"""
Test Suite for Physics Primitives

Tests cover:
1. Vector3D operations (add, subtract, multiply, divide, dot, cross, magnitude, normalization)
2. Body model (validation, gravitational parameter, exponential atmosphere)
3. Coordinate conversion (spherical <-> cartesian)
"""

import math
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.physics import (
    EARTH,
    EARTH_RADIUS_M,
    G_CONSTANT,
    SEA_LEVEL_AIR_DENSITY,
    BodyModel,
    Vector3D,
    cartesian_to_spherical,
    spherical_to_cartesian,
)


def assert_close(v1: Vector3D, v2: Vector3D, tol: float = 1e-6) -> None:
    assert abs(v1.x - v2.x) < tol
    assert abs(v1.y - v2.y) < tol
    assert abs(v1.z - v2.z) < tol


# =============================================================================
# VECTOR3D TESTS
# =============================================================================

class TestVector3DBasicOperations:
    """Tests for basic Vector3D arithmetic operations."""

    @pytest.mark.parametrize("v1,v2,expected", [
        ((1, 2, 3), (4, 5, 6), (5, 7, 9)),
        ((0, 0, 0), (1, 1, 1), (1, 1, 1)),
        ((-1, -2, -3), (1, 2, 3), (0, 0, 0)),
        ((1.5, 2.5, 3.5), (0.5, 0.5, 0.5), (2, 3, 4)),
    ])
    def test_vector_addition(self, v1, v2, expected):
        """Test vector addition."""
        assert Vector3D(*v1) + Vector3D(*v2) == Vector3D(*expected)

    @pytest.mark.parametrize("v1,v2,expected", [
        ((5, 7, 9), (4, 5, 6), (1, 2, 3)),
        ((1, 1, 1), (1, 1, 1), (0, 0, 0)),
        ((0, 0, 0), (1, 2, 3), (-1, -2, -3)),
    ])
    def test_vector_subtraction(self, v1, v2, expected):
        """Test vector subtraction."""
        assert Vector3D(*v1) - Vector3D(*v2) == Vector3D(*expected)

    @pytest.mark.parametrize("v,scalar,expected", [
        ((1, 2, 3), 2, (2, 4, 6)),
        ((1, 2, 3), 0, (0, 0, 0)),
        ((1, 2, 3), -1, (-1, -2, -3)),
    ])
    def test_scalar_multiplication(self, v, scalar, expected):
        """Test scalar multiplication (both left and right)."""
        vec = Vector3D(*v)
        assert vec * scalar == Vector3D(*expected)
        assert scalar * vec == Vector3D(*expected)

    def test_scalar_division(self):
        """Test scalar division."""
        assert Vector3D(2, 4, 6) / 2 == Vector3D(1, 2, 3)

    def test_division_by_zero_raises_error(self):
        """Test that division by zero raises ValueError."""
        with pytest.raises(ValueError, match="Cannot divide vector by zero"):
            Vector3D(1, 2, 3) / 0

    def test_negation(self):
        """Test vector negation."""
        assert -Vector3D(1, -2, 3) == Vector3D(-1, 2, -3)


class TestVector3DProducts:
    """Tests for dot and cross products."""

    @pytest.mark.parametrize("v1,v2,expected", [
        ((1, 0, 0), (0, 1, 0), 0),  # Perpendicular
        ((1, 0, 0), (-1, 0, 0), -1),  # Parallel opposite
        ((1, 2, 3), (4, 5, 6), 32),  # 1*4 + 2*5 + 3*6
    ])
    def test_dot_product(self, v1, v2, expected):
        """Test dot product calculations."""
        assert abs(Vector3D(*v1).dot(Vector3D(*v2)) - expected) < 1e-10

    @pytest.mark.parametrize("v1,v2,expected", [
        ((1, 0, 0), (0, 1, 0), (0, 0, 1)),  # i x j = k
        ((0, 1, 0), (0, 0, 1), (1, 0, 0)),  # j x k = i
        ((1, 0, 0), (0, 0, 1), (0, -1, 0)),  # i x k = -j
        ((1, 0, 0), (1, 0, 0), (0, 0, 0)),  # Parallel vectors
    ])
    def test_cross_product(self, v1, v2, expected):
        """Test cross product calculations."""
        assert Vector3D(*v1).cross(Vector3D(*v2)) == Vector3D(*expected)

    def test_cross_product_perpendicular_to_inputs(self):
        """Test that cross product is perpendicular to both input vectors."""
        v1 = Vector3D(1, 2, 3)
        v2 = Vector3D(4, 5, 6)
        result = v1.cross(v2)
        assert abs(result.dot(v1)) < 1e-10
        assert abs(result.dot(v2)) < 1e-10


class TestVector3DMagnitude:
    """Tests for Vector3D magnitude and normalization."""

    @pytest.mark.parametrize("v,expected_mag", [
        ((3, 4, 0), 5),
        ((0, 0, 0), 0),
        ((1, 1, 1), math.sqrt(3)),
        ((2, 3, 6), 7),
    ])
    def test_magnitude(self, v, expected_mag):
        """Test magnitude calculation."""
        assert abs(Vector3D(*v).magnitude - expected_mag) < 1e-10

    def test_normalized_has_unit_length(self):
        """Test normalization produces a unit vector in the same direction."""
        n = Vector3D(3, 4, 0).normalized()
        assert abs(n.magnitude - 1.0) < 1e-10
        assert n == Vector3D(0.6, 0.8, 0)

    def test_normalized_zero_vector_is_zero(self):
        """Degenerate vectors normalize to zero instead of raising."""
        assert Vector3D(0, 0, 0).normalized() == Vector3D.zero()
        assert Vector3D(1e-12, 0, 0).normalized() == Vector3D.zero()

    def test_distance_to(self):
        """Test distance between points."""
        assert abs(Vector3D(1, 2, 3).distance_to(Vector3D(4, 6, 3)) - 5.0) < 1e-10


class TestVector3DSerialization:
    """Tests for dict conversion."""

    def test_to_dict(self):
        assert Vector3D(1.0, 2.0, 3.0).to_dict() == {"x": 1.0, "y": 2.0, "z": 3.0}

    def test_from_dict_missing_axes_are_zero(self):
        assert Vector3D.from_dict({"x": 5}) == Vector3D(5, 0, 0)

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ValueError):
            Vector3D.from_dict([1, 2, 3])


# =============================================================================
# BODY MODEL TESTS
# =============================================================================

class TestBodyModel:
    """Tests for the dominant-body model."""

    def test_earth_constants(self):
        assert EARTH.radius_m == 6_371_000.0
        assert EARTH.mass_kg == 5.972e24
        assert EARTH.atmosphere_height_m == 100_000.0
        assert EARTH.scale_height_m == 8_500.0
        assert EARTH.surface_pressure == 1.0

    def test_mu(self):
        assert EARTH.mu == pytest.approx(G_CONSTANT * 5.972e24)

    @pytest.mark.parametrize("kwargs", [
        {"radius_m": 0, "mass_kg": 1e20},
        {"radius_m": 1000, "mass_kg": 0},
        {"radius_m": 1000, "mass_kg": 1e20, "atmosphere_height_m": -1},
        {"radius_m": 1000, "mass_kg": 1e20, "surface_pressure": -0.5},
        {"radius_m": 1000, "mass_kg": 1e20, "scale_height_m": 0},
    ])
    def test_invalid_parameters_raise(self, kwargs):
        with pytest.raises(ValueError):
            BodyModel(**kwargs)

    def test_air_density_near_surface(self):
        """Density just above the surface is close to sea-level density."""
        assert EARTH.air_density(1.0) == pytest.approx(SEA_LEVEL_AIR_DENSITY, rel=1e-3)

    def test_air_density_one_scale_height(self):
        assert EARTH.air_density(8_500.0) == pytest.approx(SEA_LEVEL_AIR_DENSITY / math.e)

    @pytest.mark.parametrize("altitude", [0.0, -10.0, 100_000.0, 250_000.0])
    def test_air_density_zero_outside_atmosphere(self, altitude):
        assert EARTH.air_density(altitude) == 0.0

    def test_airless_body_has_no_density(self):
        moon = BodyModel(radius_m=1_737_400.0, mass_kg=7.342e22, name="Moon")
        assert moon.air_density(10.0) == 0.0

    def test_circular_speed_leo(self):
        """Circular speed at 400 km is about 7.67 km/s."""
        assert EARTH.circular_speed(400_000.0) == pytest.approx(7669, abs=5)


# =============================================================================
# COORDINATE CONVERSION TESTS
# =============================================================================

class TestCoordinateConversion:
    """Tests for spherical <-> cartesian conversion."""

    @pytest.mark.parametrize("lat,lon,alt,expected", [
        (0, 0, 0, (EARTH_RADIUS_M, 0, 0)),
        (0, 90, 100, (0, EARTH_RADIUS_M + 100, 0)),
        (90, 0, 0, (0, 0, EARTH_RADIUS_M)),
        (-90, 0, 50, (0, 0, -(EARTH_RADIUS_M + 50))),
        (0, 180, 0, (-EARTH_RADIUS_M, 0, 0)),
    ])
    def test_spherical_to_cartesian(self, lat, lon, alt, expected):
        assert_close(spherical_to_cartesian(lat, lon, alt), Vector3D(*expected))

    def test_distance_from_centre_is_radius_plus_altitude(self):
        pos = spherical_to_cartesian(45.0, 63.0, 100.0)
        assert pos.magnitude == pytest.approx(EARTH_RADIUS_M + 100.0)

    @pytest.mark.parametrize("lat,lon,alt", [
        (45.0, 63.0, 100.0),
        (-33.5, -70.25, 2500.0),
        (10.0, 170.0, 400_000.0),
    ])
    def test_round_trip(self, lat, lon, alt):
        lat2, lon2, alt2 = cartesian_to_spherical(spherical_to_cartesian(lat, lon, alt))
        assert lat2 == pytest.approx(lat, abs=1e-9)
        assert lon2 == pytest.approx(lon, abs=1e-9)
        assert alt2 == pytest.approx(alt, abs=1e-6)

    def test_custom_body(self):
        body = BodyModel(radius_m=1000.0, mass_kg=1e20)
        pos = spherical_to_cartesian(0, 0, 10, body)
        assert_close(pos, Vector3D(1010, 0, 0))
        assert cartesian_to_spherical(pos, body)[2] == pytest.approx(10.0)

    def test_body_centre(self):
        lat, lon, alt = cartesian_to_spherical(Vector3D.zero())
        assert (lat, lon) == (0.0, 0.0)
        assert alt == -EARTH_RADIUS_M
