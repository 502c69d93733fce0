"""
Wire protocol for vehicle, observer and server messages.

Every message is a JSON envelope:

    {"type": "<message type>", "timestamp": "<RFC3339>", "data": {...}}

Each message type has exactly one payload dataclass. Decoding maps the type
string to its payload class, so adding a MessageType without a payload class
fails at import time rather than at runtime.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Type, Union

from .physics import Vector3D
from .vehicle import ControlCommand, VehicleConfig, VehicleState


class ProtocolError(ValueError):
    """Malformed envelope or payload."""
    pass


# =============================================================================
# MESSAGE TYPES
# =============================================================================

class MessageType(Enum):
    """Message type catalog."""
    # Vehicle -> server
    REGISTER = "register"
    TELEMETRY = "telemetry"
    DISCONNECT = "disconnect"

    # Observer -> server
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"

    # Server -> vehicle / observer
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ROCKET_JOINED = "rocket_joined"
    ROCKET_LEFT = "rocket_left"
    BROADCAST = "broadcast"
    WARNING = "warning"
    ROCKET_LIST = "rocket_list"

    # Server -> vehicle, reserved
    COMMAND = "command"
    SHUTDOWN = "shutdown"
    TRAJECTORY = "trajectory"


# =============================================================================
# FIELD HELPERS
# =============================================================================

def _str_field(data: Dict[str, Any], key: str) -> str:
    value = data.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProtocolError(f"{key} must be a string, got {type(value).__name__}")
    return value


def _object_field(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ProtocolError(f"{key} must be an object, got {type(value).__name__}")
    return value


# =============================================================================
# PAYLOADS
# =============================================================================

@dataclass
class RegisterPayload:
    """Vehicle asks to join with a configuration."""
    rocket_id: str
    config: VehicleConfig

    message_type: ClassVar[MessageType] = MessageType.REGISTER

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "config": self.config.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RegisterPayload:
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            config=VehicleConfig.from_dict(_object_field(data, "config")),
        )


@dataclass
class TelemetryPayload:
    """Vehicle reports its latest state."""
    rocket_id: str
    state: VehicleState

    message_type: ClassVar[MessageType] = MessageType.TELEMETRY

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "state": self.state.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TelemetryPayload:
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            state=VehicleState.from_dict(_object_field(data, "state")),
        )


@dataclass
class DisconnectPayload:
    """Vehicle leaves."""
    rocket_id: str = ""
    reason: str = ""

    message_type: ClassVar[MessageType] = MessageType.DISCONNECT

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> DisconnectPayload:
        return cls(rocket_id=_str_field(data, "rocket_id"), reason=_str_field(data, "reason"))


@dataclass
class SubscribePayload:
    """Observer asks for the event stream."""
    observer_id: str

    message_type: ClassVar[MessageType] = MessageType.SUBSCRIBE

    def to_dict(self) -> Dict[str, Any]:
        return {"observer_id": self.observer_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SubscribePayload:
        return cls(observer_id=_str_field(data, "observer_id"))


@dataclass
class UnsubscribePayload:
    """Observer leaves."""
    observer_id: str = ""

    message_type: ClassVar[MessageType] = MessageType.UNSUBSCRIBE

    def to_dict(self) -> Dict[str, Any]:
        return {"observer_id": self.observer_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UnsubscribePayload:
        return cls(observer_id=_str_field(data, "observer_id"))


@dataclass
class AcceptedPayload:
    rocket_id: str
    message: str = ""

    message_type: ClassVar[MessageType] = MessageType.ACCEPTED

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "message": self.message}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AcceptedPayload:
        return cls(rocket_id=_str_field(data, "rocket_id"), message=_str_field(data, "message"))


@dataclass
class RejectedPayload:
    rocket_id: str
    reason: str

    message_type: ClassVar[MessageType] = MessageType.REJECTED

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RejectedPayload:
        return cls(rocket_id=_str_field(data, "rocket_id"), reason=_str_field(data, "reason"))


@dataclass
class RocketJoinedPayload:
    rocket_id: str
    name: str
    config: VehicleConfig

    message_type: ClassVar[MessageType] = MessageType.ROCKET_JOINED

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "name": self.name, "config": self.config.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RocketJoinedPayload:
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            name=_str_field(data, "name"),
            config=VehicleConfig.from_dict(_object_field(data, "config")),
        )


@dataclass
class RocketLeftPayload:
    rocket_id: str
    reason: str = ""

    message_type: ClassVar[MessageType] = MessageType.ROCKET_LEFT

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RocketLeftPayload:
        return cls(rocket_id=_str_field(data, "rocket_id"), reason=_str_field(data, "reason"))


@dataclass
class BroadcastPayload:
    """Telemetry relayed to observers."""
    rocket_id: str
    name: str
    state: VehicleState

    message_type: ClassVar[MessageType] = MessageType.BROADCAST

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "name": self.name, "state": self.state.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BroadcastPayload:
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            name=_str_field(data, "name"),
            state=VehicleState.from_dict(_object_field(data, "state")),
        )


@dataclass
class WarningPayload:
    """Proximity warning sent to one vehicle."""
    rocket_id: str
    warning: str
    severity: str

    message_type: ClassVar[MessageType] = MessageType.WARNING

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "warning": self.warning, "severity": self.severity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> WarningPayload:
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            warning=_str_field(data, "warning"),
            severity=_str_field(data, "severity"),
        )


@dataclass
class RocketInfo:
    """Snapshot entry of one registered vehicle."""
    rocket_id: str
    name: str
    state: VehicleState
    config: VehicleConfig

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rocket_id": self.rocket_id,
            "name": self.name,
            "state": self.state.to_dict(),
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RocketInfo:
        if not isinstance(data, dict):
            raise ProtocolError(f"Expected a rocket object, got {type(data).__name__}")
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            name=_str_field(data, "name"),
            state=VehicleState.from_dict(_object_field(data, "state")),
            config=VehicleConfig.from_dict(_object_field(data, "config")),
        )


@dataclass
class RocketListPayload:
    """Full list of registered vehicles."""
    rockets: List[RocketInfo] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.ROCKET_LIST

    def to_dict(self) -> Dict[str, Any]:
        return {"rockets": [r.to_dict() for r in self.rockets]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RocketListPayload:
        rockets = data.get("rockets") or []
        if not isinstance(rockets, list):
            raise ProtocolError("rockets must be a list")
        return cls(rockets=[RocketInfo.from_dict(r) for r in rockets])


@dataclass
class CommandPayload:
    """Server overrides a vehicle's control command."""
    rocket_id: str
    command: ControlCommand

    message_type: ClassVar[MessageType] = MessageType.COMMAND

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "command": self.command.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CommandPayload:
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            command=ControlCommand.from_dict(_object_field(data, "command")),
        )


@dataclass
class ShutdownPayload:
    """Server asks a vehicle to stop."""
    rocket_id: str
    reason: str = ""

    message_type: ClassVar[MessageType] = MessageType.SHUTDOWN

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ShutdownPayload:
        return cls(rocket_id=_str_field(data, "rocket_id"), reason=_str_field(data, "reason"))


@dataclass
class TrajectoryPayload:
    """Recommended waypoints for a vehicle."""
    rocket_id: str
    waypoints: List[Vector3D] = field(default_factory=list)

    message_type: ClassVar[MessageType] = MessageType.TRAJECTORY

    def to_dict(self) -> Dict[str, Any]:
        return {"rocket_id": self.rocket_id, "waypoints": [w.to_dict() for w in self.waypoints]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TrajectoryPayload:
        waypoints = data.get("waypoints") or []
        if not isinstance(waypoints, list):
            raise ProtocolError("waypoints must be a list")
        return cls(
            rocket_id=_str_field(data, "rocket_id"),
            waypoints=[Vector3D.from_dict(w) for w in waypoints],
        )


Payload = Union[
    RegisterPayload, TelemetryPayload, DisconnectPayload,
    SubscribePayload, UnsubscribePayload,
    AcceptedPayload, RejectedPayload, RocketJoinedPayload, RocketLeftPayload,
    BroadcastPayload, WarningPayload, RocketListPayload,
    CommandPayload, ShutdownPayload, TrajectoryPayload,
]

PAYLOAD_TYPES: Dict[MessageType, Type] = {
    cls.message_type: cls
    for cls in (
        RegisterPayload, TelemetryPayload, DisconnectPayload,
        SubscribePayload, UnsubscribePayload,
        AcceptedPayload, RejectedPayload, RocketJoinedPayload, RocketLeftPayload,
        BroadcastPayload, WarningPayload, RocketListPayload,
        CommandPayload, ShutdownPayload, TrajectoryPayload,
    )
}

_missing = [t.value for t in MessageType if t not in PAYLOAD_TYPES]
if _missing:
    raise RuntimeError(f"Message types without a payload class: {', '.join(_missing)}")


# =============================================================================
# TIMESTAMPS
# =============================================================================

_TIMESTAMP_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:?\d{2})$"
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Format as RFC3339 UTC with microseconds, e.g. 2024-01-01T12:00:00.000000Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def parse_timestamp(text: str) -> datetime:
    """
    Parse an RFC3339 timestamp into an aware datetime.

    Accepts a Z suffix or a numeric offset and fractional seconds of any
    precision (truncated to microseconds).

    Raises:
        ValueError: If the text is not an RFC3339 timestamp
    """
    match = _TIMESTAMP_RE.match(text.strip()) if isinstance(text, str) else None
    if match is None:
        raise ValueError(f"Invalid RFC3339 timestamp: {text!r}")

    date_part, time_part, fraction, offset = match.groups()
    fraction = (fraction or "0")[:6].ljust(6, "0")
    if offset in ("Z", "z"):
        offset = "+00:00"
    elif ":" not in offset:
        offset = f"{offset[:3]}:{offset[3:]}"

    return datetime.fromisoformat(f"{date_part}T{time_part}.{fraction}{offset}")


# =============================================================================
# ENVELOPE
# =============================================================================

@dataclass
class Envelope:
    """A decoded message: payload plus the sender's timestamp."""
    payload: Payload
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def type(self) -> MessageType:
        return self.payload.message_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": format_timestamp(self.timestamp),
            "data": self.payload.to_dict(),
        }


def encode_message(payload: Payload, timestamp: Optional[datetime] = None) -> str:
    """
    Encode a payload into a JSON envelope string.

    Args:
        payload: Any payload dataclass
        timestamp: Envelope timestamp (default: now)

    Returns:
        JSON text
    """
    envelope = Envelope(payload=payload, timestamp=timestamp or utc_now())
    return json.dumps(envelope.to_dict())


def decode_message(text: Union[str, bytes]) -> Envelope:
    """
    Decode a JSON envelope string.

    A missing timestamp is replaced by the receive time; missing data is
    treated as an empty object.

    Raises:
        ProtocolError: On invalid JSON, unknown type or a malformed payload
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ProtocolError(f"Envelope must be an object, got {type(raw).__name__}")

    type_str = raw.get("type")
    try:
        message_type = MessageType(type_str)
    except ValueError:
        raise ProtocolError(f"Unknown message type: {type_str!r}") from None

    timestamp_raw = raw.get("timestamp")
    if timestamp_raw is None:
        timestamp = utc_now()
    else:
        try:
            timestamp = parse_timestamp(timestamp_raw)
        except ValueError as e:
            raise ProtocolError(str(e)) from e

    data = raw.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ProtocolError(f"{message_type.value}: data must be an object")

    try:
        payload = PAYLOAD_TYPES[message_type].from_dict(data)
    except ProtocolError as e:
        raise ProtocolError(f"{message_type.value}: {e}") from e
    except (ValueError, TypeError) as e:
        raise ProtocolError(f"{message_type.value}: malformed payload ({e})") from e

    return Envelope(payload=payload, timestamp=timestamp)
