"""
Configuration for the coordination server and the vehicle client.

Both configs are plain dataclasses with defaults matching a local setup and
can be loaded from a JSON file or a dictionary.
"""

import json
from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path

from ..guidance import GUIDANCE_NAMES
from ..vehicle import VehicleConfig, load_vehicle_catalog


DEFAULT_VEHICLE_KEY = "default"


def _load_json(path: str, what: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"{what} not found: {path}")
    with open(config_path) as f:
        return json.load(f)


@dataclass
class ServerConfig:
    """Configuration of one coordination server instance."""
    host: str = "0.0.0.0"
    port: int = 8080
    name: str = "main"
    collision_check_interval_s: float = 1.0
    min_safe_distance_m: float = 1000.0
    log_buffer_size: int = 500
    trajectory_history_size: int = 10000
    trajectory_min_point_distance_m: float = 100.0
    idle_timeout_s: Optional[float] = None  # None = connections never time out

    def __post_init__(self) -> None:
        if self.collision_check_interval_s <= 0:
            raise ValueError("collision_check_interval_s must be positive")
        if self.min_safe_distance_m <= 0:
            raise ValueError("min_safe_distance_m must be positive")
        if self.log_buffer_size <= 0:
            raise ValueError("log_buffer_size must be positive")
        if self.trajectory_history_size <= 0:
            raise ValueError("trajectory_history_size must be positive")
        if self.trajectory_min_point_distance_m < 0:
            raise ValueError("trajectory_min_point_distance_m cannot be negative")
        if self.idle_timeout_s is not None and self.idle_timeout_s <= 0:
            raise ValueError("idle_timeout_s must be positive")

    @classmethod
    def from_json(cls, path: str) -> 'ServerConfig':
        """Load configuration from JSON file."""
        return cls.from_dict(_load_json(path, "Server config"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ServerConfig':
        """Create configuration from dictionary."""
        idle_timeout = data.get("idle_timeout_s")
        return cls(
            host=data.get("host", "0.0.0.0"),
            port=int(data.get("port", 8080)),
            name=data.get("name", "main"),
            collision_check_interval_s=float(data.get("collision_check_interval_s", 1.0)),
            min_safe_distance_m=float(data.get("min_safe_distance_m", 1000.0)),
            log_buffer_size=int(data.get("log_buffer_size", 500)),
            trajectory_history_size=int(data.get("trajectory_history_size", 10000)),
            trajectory_min_point_distance_m=float(data.get("trajectory_min_point_distance_m", 100.0)),
            idle_timeout_s=float(idle_timeout) if idle_timeout is not None else None,
        )


@dataclass
class VehicleClientConfig:
    """Configuration of one vehicle client (launch site, loop timing, guidance)."""
    rocket_id: str
    vehicle: VehicleConfig
    server_url: str = "ws://localhost:8080/ws"
    latitude: float = 45.0
    longitude: float = 63.0
    altitude: float = 100.0
    dt: float = 0.01
    telemetry_hz: float = 10.0
    guidance: str = "staged"  # "staged" or "gravity_turn"
    target_altitude: float = 200_000.0
    max_flight_time_s: Optional[float] = None
    time_warp: float = 1.0  # 1.0 = real time, 0 = as fast as possible

    def __post_init__(self) -> None:
        if not self.rocket_id:
            raise ValueError("rocket_id must not be empty")
        if self.dt <= 0:
            raise ValueError("dt must be positive")
        if self.telemetry_hz <= 0:
            raise ValueError("telemetry_hz must be positive")
        if self.guidance not in GUIDANCE_NAMES:
            raise ValueError(f"Unknown guidance: {self.guidance}")
        if self.time_warp < 0:
            raise ValueError("time_warp cannot be negative")
        if self.max_flight_time_s is not None and self.max_flight_time_s <= 0:
            raise ValueError("max_flight_time_s must be positive")

    @property
    def telemetry_interval_s(self) -> float:
        """Simulated seconds between telemetry messages."""
        return 1.0 / self.telemetry_hz

    @classmethod
    def from_json(cls, path: str) -> 'VehicleClientConfig':
        """Load configuration from JSON file."""
        return cls.from_dict(_load_json(path, "Vehicle client config"))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VehicleClientConfig':
        """
        Create configuration from dictionary.

        "vehicle" may be an inline config object or the key of an entry in
        the vehicle catalog (default: the catalog's "default" vehicle).
        """
        vehicle_data = data.get("vehicle", DEFAULT_VEHICLE_KEY)
        if isinstance(vehicle_data, dict):
            vehicle = VehicleConfig.from_dict(vehicle_data)
        else:
            catalog = load_vehicle_catalog(data.get("catalog"))
            if vehicle_data not in catalog:
                raise ValueError(f"Unknown vehicle: {vehicle_data}")
            vehicle = catalog[vehicle_data]

        max_flight_time = data.get("max_flight_time_s")
        return cls(
            rocket_id=data.get("rocket_id", ""),
            vehicle=vehicle,
            server_url=data.get("server_url", "ws://localhost:8080/ws"),
            latitude=float(data.get("latitude", 45.0)),
            longitude=float(data.get("longitude", 63.0)),
            altitude=float(data.get("altitude", 100.0)),
            dt=float(data.get("dt", 0.01)),
            telemetry_hz=float(data.get("telemetry_hz", 10.0)),
            guidance=data.get("guidance", "staged"),
            target_altitude=float(data.get("target_altitude", 200_000.0)),
            max_flight_time_s=float(max_flight_time) if max_flight_time is not None else None,
            time_warp=float(data.get("time_warp", 1.0)),
        )
