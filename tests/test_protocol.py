"""
Tests for the JSON wire protocol.

Tests:
- Envelope encoding (type, timestamp, data)
- Decoding of every message type
- RFC3339 timestamp handling
- Rejection of malformed input
"""

import json
import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.physics import Vector3D
from cosmodrom.protocol import (
    PAYLOAD_TYPES,
    AcceptedPayload,
    BroadcastPayload,
    CommandPayload,
    DisconnectPayload,
    MessageType,
    ProtocolError,
    RegisterPayload,
    RejectedPayload,
    RocketInfo,
    RocketJoinedPayload,
    RocketLeftPayload,
    RocketListPayload,
    ShutdownPayload,
    SubscribePayload,
    TelemetryPayload,
    TrajectoryPayload,
    UnsubscribePayload,
    WarningPayload,
    decode_message,
    encode_message,
    format_timestamp,
    parse_timestamp,
)
from cosmodrom.vehicle import ControlCommand, Engine, VehicleConfig, VehicleState


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config() -> VehicleConfig:
    return VehicleConfig(
        name="Falcon",
        empty_mass_kg=5000.0,
        fuel_mass_kg=15000.0,
        fuel_mass_max_kg=15000.0,
        engines=(Engine(500_000.0, 250.0),),
        drag_coefficient=0.5,
        cross_section_m2=10.0,
    )


@pytest.fixture
def state() -> VehicleState:
    return VehicleState(
        position=Vector3D(6_372_000.0, 10.0, 0.0),
        velocity=Vector3D(150.0, 2.0, 0.0),
        altitude_m=1000.0,
        speed_ms=150.01,
        mass_kg=19000.0,
        fuel_remaining_kg=14000.0,
        time_s=7.5,
    )


FIXED_TIME = datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)


# =============================================================================
# ENCODING
# =============================================================================

class TestEncode:
    """Tests for encode_message."""

    def test_envelope_shape(self):
        raw = json.loads(encode_message(SubscribePayload(observer_id="obs-1"), FIXED_TIME))
        assert raw == {
            "type": "subscribe",
            "timestamp": "2024-03-01T12:30:45.123456Z",
            "data": {"observer_id": "obs-1"},
        }

    def test_default_timestamp_is_now(self):
        before = datetime.now(timezone.utc)
        envelope = decode_message(encode_message(RocketLeftPayload(rocket_id="r1", reason="idle timeout")))
        after = datetime.now(timezone.utc)
        assert before - timedelta(seconds=1) <= envelope.timestamp <= after

    def test_register_wire_fields(self, config):
        raw = json.loads(encode_message(RegisterPayload(rocket_id="r1", config=config)))
        assert raw["data"]["config"]["mass_empty"] == 5000.0
        assert raw["data"]["config"]["engines"][0]["is_active"] is True

    def test_every_type_has_payload(self):
        assert set(PAYLOAD_TYPES) == set(MessageType)


# =============================================================================
# DECODING
# =============================================================================

class TestDecode:
    """Tests for decode_message on valid input."""

    def test_register(self, config):
        envelope = decode_message(encode_message(RegisterPayload(rocket_id="r1", config=config), FIXED_TIME))
        assert envelope.type == MessageType.REGISTER
        assert envelope.timestamp == FIXED_TIME
        assert envelope.payload == RegisterPayload(rocket_id="r1", config=config)

    def test_telemetry(self, state):
        envelope = decode_message(encode_message(TelemetryPayload(rocket_id="r1", state=state)))
        assert isinstance(envelope.payload, TelemetryPayload)
        assert envelope.payload.state.to_dict() == state.to_dict()

    def test_broadcast(self, state):
        payload = BroadcastPayload(rocket_id="r1", name="Falcon", state=state)
        decoded = decode_message(encode_message(payload)).payload
        assert decoded.name == "Falcon"
        assert decoded.state.time_s == 7.5

    def test_rocket_joined(self, config):
        payload = RocketJoinedPayload(rocket_id="r1", name="Falcon", config=config)
        assert decode_message(encode_message(payload)).payload == payload

    @pytest.mark.parametrize("payload", [
        DisconnectPayload(rocket_id="r1", reason="mission complete"),
        UnsubscribePayload(observer_id="obs-1"),
        AcceptedPayload(rocket_id="r1", message="Registration successful. You may start the launch."),
        RejectedPayload(rocket_id="r1", reason="name: rocket name must not be empty"),
        RocketLeftPayload(rocket_id="r1", reason="connection lost"),
        WarningPayload(rocket_id="r1", warning="Dangerous approach to rocket r2! Distance: 450.0 m", severity="high"),
        ShutdownPayload(rocket_id="r1", reason="range safety"),
    ])
    def test_simple_payloads(self, payload):
        assert decode_message(encode_message(payload)).payload == payload

    def test_command(self):
        payload = CommandPayload(rocket_id="r1", command=ControlCommand(throttles=[0.5, 1.0], pitch_deg=30.0))
        decoded = decode_message(encode_message(payload)).payload
        assert decoded.command == payload.command

    def test_trajectory(self):
        payload = TrajectoryPayload(rocket_id="r1", waypoints=[Vector3D(1, 2, 3), Vector3D(4, 5, 6)])
        decoded = decode_message(encode_message(payload)).payload
        assert decoded.waypoints == payload.waypoints

    def test_rocket_list(self, config, state):
        payload = RocketListPayload(rockets=[RocketInfo(rocket_id="r1", name="Falcon", state=state, config=config)])
        decoded = decode_message(encode_message(payload)).payload
        assert len(decoded.rockets) == 1
        assert decoded.rockets[0].config == config

    def test_bytes_input(self):
        text = encode_message(SubscribePayload(observer_id="obs"))
        assert decode_message(text.encode()).payload.observer_id == "obs"

    def test_missing_timestamp_uses_receive_time(self):
        before = datetime.now(timezone.utc)
        envelope = decode_message('{"type": "unsubscribe", "data": {"observer_id": "o"}}')
        assert envelope.timestamp >= before - timedelta(seconds=1)

    def test_missing_data_is_empty(self):
        envelope = decode_message('{"type": "disconnect"}')
        assert envelope.payload == DisconnectPayload(rocket_id="", reason="")

    def test_null_string_field_is_empty(self):
        envelope = decode_message('{"type": "disconnect", "data": {"rocket_id": "r1", "reason": null}}')
        assert envelope.payload.reason == ""


class TestDecodeErrors:
    """Tests for decode_message on malformed input."""

    @pytest.mark.parametrize("text", [
        "not json",
        "{",
        "[1, 2, 3]",
        '"register"',
    ])
    def test_not_an_envelope(self, text):
        with pytest.raises(ProtocolError):
            decode_message(text)

    def test_unknown_type(self):
        with pytest.raises(ProtocolError, match="Unknown message type"):
            decode_message('{"type": "launch_nukes", "data": {}}')

    def test_missing_type(self):
        with pytest.raises(ProtocolError):
            decode_message('{"data": {}}')

    def test_bad_timestamp(self):
        with pytest.raises(ProtocolError, match="timestamp"):
            decode_message('{"type": "subscribe", "timestamp": "yesterday", "data": {"observer_id": "o"}}')

    def test_data_not_object(self):
        with pytest.raises(ProtocolError, match="data must be an object"):
            decode_message('{"type": "subscribe", "data": [1]}')

    def test_wrong_field_type(self):
        with pytest.raises(ProtocolError, match="rocket_id must be a string"):
            decode_message('{"type": "telemetry", "data": {"rocket_id": 5, "state": {}}}')

    def test_malformed_nested_value(self):
        with pytest.raises(ProtocolError, match="telemetry"):
            decode_message('{"type": "telemetry", "data": {"rocket_id": "r1", "state": {"altitude": "high"}}}')

    def test_protocol_error_is_value_error(self):
        assert issubclass(ProtocolError, ValueError)


# =============================================================================
# TIMESTAMPS
# =============================================================================

class TestTimestamps:
    """Tests for RFC3339 parsing and formatting."""

    def test_format(self):
        assert format_timestamp(FIXED_TIME) == "2024-03-01T12:30:45.123456Z"

    def test_format_naive_is_utc(self):
        assert format_timestamp(datetime(2024, 1, 1)) == "2024-01-01T00:00:00.000000Z"

    def test_format_converts_offset(self):
        moment = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(moment) == "2024-01-01T12:00:00.000000Z"

    @pytest.mark.parametrize("text,expected", [
        ("2024-03-01T12:30:45Z", datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)),
        ("2024-03-01T12:30:45.5Z", datetime(2024, 3, 1, 12, 30, 45, 500000, tzinfo=timezone.utc)),
        ("2024-03-01T12:30:45.123456789Z", datetime(2024, 3, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)),
        ("2024-03-01T14:30:45+02:00", datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)),
        ("2024-03-01T07:00:45-0530", datetime(2024, 3, 1, 12, 30, 45, tzinfo=timezone.utc)),
    ])
    def test_parse(self, text, expected):
        assert parse_timestamp(text) == expected

    @pytest.mark.parametrize("text", ["", "2024-03-01", "12:30:45Z", "2024-03-01T12:30:45"])
    def test_parse_invalid(self, text):
        with pytest.raises(ValueError):
            parse_timestamp(text)
