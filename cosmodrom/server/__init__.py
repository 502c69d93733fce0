"""
Coordination server for Cosmodrom.

Relays vehicle telemetry to observers over WebSocket, validates
registrations and warns vehicles about dangerous approaches. Also provides
the vehicle client and an HTTP client for the read-only endpoints.
"""

from .config import ServerConfig, VehicleClientConfig
from .registry import ConnectionRegistry, ObserverConnection, VehicleConnection, TrajectoryHistory
from .fanout import Fanout
from .handler import ConnectionRole, ConnectionSession, ProtocolHandler
from .collision import CollisionMonitor, Severity, classify_severity
from .log_buffer import LogBuffer, LogEntry
from .http_server import CoordinationServer, run_server
from .http_client import CosmodromHttpClient
from .vehicle_client import RegistrationRejected, VehicleClient, run_vehicle

__all__ = [
    # Config
    "ServerConfig",
    "VehicleClientConfig",
    # Registry
    "ConnectionRegistry",
    "ObserverConnection",
    "VehicleConnection",
    "TrajectoryHistory",
    # Dispatch
    "Fanout",
    "ConnectionRole",
    "ConnectionSession",
    "ProtocolHandler",
    # Collision
    "CollisionMonitor",
    "Severity",
    "classify_severity",
    # Logging
    "LogBuffer",
    "LogEntry",
    # Server / clients
    "CoordinationServer",
    "run_server",
    "CosmodromHttpClient",
    "RegistrationRejected",
    "VehicleClient",
    "run_vehicle",
]
