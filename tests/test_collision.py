"""
Tests for the collision monitor.

Tests cover:
1. Severity tiers relative to the minimum safe distance
2. All-pairs approach detection
3. Warning delivery to both vehicles of a pair
4. Periodic task start/stop
"""

import asyncio
import pytest

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.physics import EARTH_RADIUS_M, Vector3D
from cosmodrom.protocol import MessageType
from cosmodrom.server.collision import (
    CollisionMonitor,
    Severity,
    classify_severity,
    find_close_approaches,
    format_warning,
)
from cosmodrom.server.registry import ConnectionRegistry
from cosmodrom.vehicle import VehicleState


def at_altitude(altitude_m: float, offset_m: float = 0.0) -> VehicleState:
    return VehicleState(
        position=Vector3D(EARTH_RADIUS_M + altitude_m, offset_m, 0.0),
        altitude_m=altitude_m,
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def monitor(registry) -> CollisionMonitor:
    return CollisionMonitor(registry, interval_s=1.0, min_safe_distance_m=1000.0)


# =============================================================================
# CLASSIFICATION
# =============================================================================

class TestSeverity:
    """Tests for classify_severity."""

    @pytest.mark.parametrize("distance,expected", [
        (0.0, Severity.CRITICAL),
        (200.0, Severity.CRITICAL),
        (249.9, Severity.CRITICAL),
        (250.0, Severity.HIGH),
        (400.0, Severity.HIGH),
        (499.9, Severity.HIGH),
        (500.0, Severity.MEDIUM),
        (999.0, Severity.MEDIUM),
        (1000.0, None),
        (1001.0, None),
    ])
    def test_tiers(self, distance, expected):
        assert classify_severity(distance, 1000.0) == expected

    def test_scales_with_threshold(self):
        assert classify_severity(600.0, 2000.0) == Severity.HIGH

    def test_warning_text(self):
        assert format_warning("r2", 450.0) == "Dangerous approach to rocket r2! Distance: 450.0 m"


class TestFindCloseApproaches:
    """Tests for all-pairs detection."""

    def test_each_pair_once(self):
        positions = [
            ("a", Vector3D(0, 0, 0)),
            ("b", Vector3D(100, 0, 0)),
            ("c", Vector3D(0, 5000, 0)),
        ]
        approaches = find_close_approaches(positions, 1000.0)
        assert len(approaches) == 1
        assert (approaches[0].first_id, approaches[0].second_id) == ("a", "b")
        assert approaches[0].distance_m == pytest.approx(100.0)
        assert approaches[0].severity == Severity.CRITICAL

    def test_cluster(self):
        positions = [(str(i), Vector3D(i * 10.0, 0, 0)) for i in range(4)]
        assert len(find_close_approaches(positions, 1000.0)) == 6

    @pytest.mark.parametrize("count", [0, 1])
    def test_fewer_than_two(self, count):
        positions = [("a", Vector3D.zero())][:count]
        assert find_close_approaches(positions, 1000.0) == []


# =============================================================================
# MONITOR
# =============================================================================

class TestCollisionMonitor:
    """Tests for CollisionMonitor."""

    @pytest.mark.parametrize("kwargs", [
        {"interval_s": 0.0},
        {"min_safe_distance_m": -1.0},
    ])
    def test_invalid_parameters(self, registry, kwargs):
        with pytest.raises(ValueError):
            CollisionMonitor(registry, **kwargs)

    def test_warns_both_vehicles(self, registry, monitor, make_channel, vehicle_config):
        channels = {rid: make_channel() for rid in ("r1", "r2", "r3")}
        for rid, channel in channels.items():
            registry.register_vehicle(rid, vehicle_config, channel)
        registry.update_vehicle_state("r1", at_altitude(10_000.0))
        registry.update_vehicle_state("r2", at_altitude(10_000.0, offset_m=400.0))
        registry.update_vehicle_state("r3", at_altitude(50_000.0))

        approaches = asyncio.run(monitor.check_once())

        assert len(approaches) == 1
        w1 = channels["r1"].last()
        w2 = channels["r2"].last()
        assert w1.type == MessageType.WARNING
        assert w1.payload.rocket_id == "r1"
        assert w1.payload.warning == "Dangerous approach to rocket r2! Distance: 400.0 m"
        assert w1.payload.severity == "high"
        assert w2.payload.rocket_id == "r2"
        assert w2.payload.warning == "Dangerous approach to rocket r1! Distance: 400.0 m"
        assert channels["r3"].sent == []

    def test_stored_state_compared_before_telemetry(self, registry, monitor, make_channel, vehicle_config):
        """Every registered vehicle is compared, including those that have not reported yet."""
        first, second = make_channel(), make_channel()
        registry.register_vehicle("r1", vehicle_config, first, initial_state=at_altitude(100.0))
        registry.register_vehicle("r2", vehicle_config, second, initial_state=at_altitude(100.0, offset_m=200.0))

        approaches = asyncio.run(monitor.check_once())

        assert [(a.first_id, a.second_id, a.severity) for a in approaches] == [("r1", "r2", Severity.CRITICAL)]
        assert first.last().payload.warning == "Dangerous approach to rocket r2! Distance: 200.0 m"
        assert second.last().payload.warning == "Dangerous approach to rocket r1! Distance: 200.0 m"

    def test_vehicles_sharing_the_pad_are_warned(self, registry, monitor, make_channel, vehicle_config):
        first, second = make_channel(), make_channel()
        registry.register_vehicle("r1", vehicle_config, first)
        registry.register_vehicle("r2", vehicle_config, second)

        approaches = asyncio.run(monitor.check_once())

        assert len(approaches) == 1
        assert approaches[0].distance_m == 0.0
        assert first.last().payload.severity == "critical"
        assert second.last().payload.severity == "critical"

    def test_sustained_approach_warned_every_check(self, registry, monitor, make_channel, vehicle_config):
        channel = make_channel()
        registry.register_vehicle("r1", vehicle_config, channel)
        registry.register_vehicle("r2", vehicle_config, make_channel())
        registry.update_vehicle_state("r1", at_altitude(1000.0))
        registry.update_vehicle_state("r2", at_altitude(1000.0, offset_m=100.0))

        async def scenario():
            await monitor.check_once()
            await monitor.check_once()

        asyncio.run(scenario())
        assert channel.types() == [MessageType.WARNING, MessageType.WARNING]
        assert channel.last().payload.severity == "critical"

    def test_broken_channel_does_not_raise(self, registry, monitor, make_channel, vehicle_config):
        healthy = make_channel()
        registry.register_vehicle("r1", vehicle_config, healthy)
        registry.register_vehicle("r2", vehicle_config, make_channel(fail=True))
        registry.update_vehicle_state("r1", at_altitude(1000.0))
        registry.update_vehicle_state("r2", at_altitude(1000.0, offset_m=700.0))

        approaches = asyncio.run(monitor.check_once())
        assert len(approaches) == 1
        assert healthy.last().payload.severity == "medium"

    def test_start_and_stop(self, registry, make_channel, vehicle_config):
        channel = make_channel()
        registry.register_vehicle("r1", vehicle_config, channel)
        registry.register_vehicle("r2", vehicle_config, make_channel())
        registry.update_vehicle_state("r1", at_altitude(1000.0))
        registry.update_vehicle_state("r2", at_altitude(1000.0, offset_m=50.0))
        monitor = CollisionMonitor(registry, interval_s=0.01)

        async def scenario():
            task = monitor.start()
            assert monitor.start() is task
            assert monitor.running
            await asyncio.sleep(0.1)
            await monitor.stop()
            assert not monitor.running
            await monitor.stop()

        asyncio.run(scenario())
        assert len(channel.sent) >= 1
