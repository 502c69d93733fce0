#!/usr/bin/env python3
"""
Run a Cosmodrom coordination server.

Usage:
    python scripts/run_server.py
    python scripts/run_server.py --port 9000 --min-safe-distance 2000
    python scripts/run_server.py --config data/server.json
"""

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import asdict
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from cosmodrom.server.config import ServerConfig
from cosmodrom.server.http_server import run_server

load_dotenv()


def main():
    parser = argparse.ArgumentParser(
        description="Run the Cosmodrom launch coordination server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python scripts/run_server.py
    python scripts/run_server.py --port 9000 --idle-timeout 60
        """,
    )

    parser.add_argument(
        "--config",
        help="JSON server config (command line options override it)",
    )
    parser.add_argument("--host", help="Host to bind to (default: 0.0.0.0)")
    parser.add_argument(
        "--port",
        type=int,
        default=os.getenv("COSMODROM_PORT"),
        help="Port to listen on (env: COSMODROM_PORT, default: 8080)",
    )
    parser.add_argument(
        "--name",
        default=os.getenv("COSMODROM_SERVER_NAME"),
        help="Server instance name (env: COSMODROM_SERVER_NAME, default: main)",
    )
    parser.add_argument(
        "--collision-interval",
        type=float,
        help="Seconds between collision checks (default: 1.0)",
    )
    parser.add_argument(
        "--min-safe-distance",
        type=float,
        help="Proximity warning threshold in meters (default: 1000)",
    )
    parser.add_argument(
        "--idle-timeout",
        type=float,
        help="Close connections silent for this many seconds (default: never)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    try:
        data = {}
        if args.config:
            data = asdict(ServerConfig.from_json(args.config))
        overrides = {
            "host": args.host,
            "port": args.port,
            "name": args.name,
            "collision_check_interval_s": args.collision_interval,
            "min_safe_distance_m": args.min_safe_distance,
            "idle_timeout_s": args.idle_timeout,
        }
        data.update({k: v for k, v in overrides.items() if v is not None})
        config = ServerConfig.from_dict(data)
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        print("\nServer stopped.")

    return 0


if __name__ == "__main__":
    sys.exit(main())
