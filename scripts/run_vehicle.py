#!/usr/bin/env python3
"""
Launch a simulated vehicle against a Cosmodrom coordination server.

Usage:
    python scripts/run_vehicle.py
    python scripts/run_vehicle.py --id rocket-7 --vehicle test_rocket_1 --guidance gravity_turn
    python scripts/run_vehicle.py --time-warp 0 --max-flight-time 600
"""

import argparse
import asyncio
import logging
import os
import random
import sys
from dataclasses import replace
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from cosmodrom.guidance import GUIDANCE_NAMES
from cosmodrom.server.config import VehicleClientConfig
from cosmodrom.server.vehicle_client import RegistrationRejected, run_vehicle

load_dotenv()


def main():
    parser = argparse.ArgumentParser(
        description="Launch a simulated vehicle",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--server",
        default=os.getenv("COSMODROM_SERVER_URL", "ws://localhost:8080/ws"),
        help="Server WebSocket URL (env: COSMODROM_SERVER_URL)",
    )
    parser.add_argument(
        "--id",
        default=f"rocket-{random.randint(0, 9999)}",
        help="Vehicle id (default: random)",
    )
    parser.add_argument("--name", help="Override the vehicle's display name")
    parser.add_argument(
        "--vehicle",
        default="default",
        help="Vehicle key in the bundled vehicle catalog",
    )
    parser.add_argument("--lat", type=float, default=45.0, help="Launch latitude")
    parser.add_argument("--lon", type=float, default=63.0, help="Launch longitude")
    parser.add_argument("--alt", type=float, default=100.0, help="Launch altitude (m)")
    parser.add_argument(
        "--guidance",
        default="staged",
        choices=GUIDANCE_NAMES,
        help="Ascent guidance policy",
    )
    parser.add_argument(
        "--target-altitude",
        type=float,
        default=200_000.0,
        help="Target orbit altitude for gravity_turn (m)",
    )
    parser.add_argument("--telemetry-hz", type=float, default=10.0, help="Telemetry rate")
    parser.add_argument(
        "--time-warp",
        type=float,
        default=1.0,
        help="Simulation speed relative to wall time (0 = as fast as possible)",
    )
    parser.add_argument(
        "--max-flight-time",
        type=float,
        help="Stop after this many simulated seconds",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        config = VehicleClientConfig.from_dict({
            "rocket_id": args.id,
            "vehicle": args.vehicle,
            "server_url": args.server,
            "latitude": args.lat,
            "longitude": args.lon,
            "altitude": args.alt,
            "guidance": args.guidance,
            "target_altitude": args.target_altitude,
            "telemetry_hz": args.telemetry_hz,
            "time_warp": args.time_warp,
            "max_flight_time_s": args.max_flight_time,
        })
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.name:
        config.vehicle = replace(config.vehicle, name=args.name)

    try:
        final_state = asyncio.run(run_vehicle(config))
    except RegistrationRejected as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nFlight aborted.")
        return 1
    except OSError as e:
        print(f"Error: cannot reach {args.server}: {e}", file=sys.stderr)
        return 1

    print(f"Flight ended ({final_state.phase}) at t={final_state.time_s:.1f} s, "
          f"altitude {final_state.altitude_m / 1000.0:.2f} km")
    return 0


if __name__ == "__main__":
    sys.exit(main())
