#!/usr/bin/env python3
# /// script
# requires-python = ">=3.10"
# dependencies = ["numpy"]
# ///
"""
Ascent Guidance Sweep for Cosmodrom

Flies a catalog vehicle offline (no server) with the gravity-turn policy for
a range of target altitudes, plus the staged profile as a baseline, and
tabulates the resulting orbit. Useful for picking a target altitude before
launching against a live server.

Usage:
    python scripts/ascent_sweep.py
    python scripts/ascent_sweep.py --vehicle test_rocket_1 --min-target 100 --max-target 400 --steps 7
"""

import argparse
import sys
from pathlib import Path

import numpy as np

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.guidance import AscentGuidance, GravityTurnGuidance, StagedPitchProfile
from cosmodrom.physics import spherical_to_cartesian
from cosmodrom.simulation import VehicleSimulation
from cosmodrom.vehicle import VehicleConfig, VehicleState, load_vehicle_catalog


# =============================================================================
# SWEEP
# =============================================================================

def fly(
    config: VehicleConfig,
    guidance: AscentGuidance,
    duration_s: float,
    dt: float,
    latitude: float,
    longitude: float,
) -> VehicleState:
    """Fly one ascent and return the final state (stops once in orbit)."""
    position = spherical_to_cartesian(latitude, longitude, 100.0)
    sim = VehicleSimulation(config, position=position, guidance=guidance, dt=dt)
    return sim.run(duration_s, stop_when=lambda s: s.in_orbit)


def summarize(label: str, state: VehicleState) -> list:
    """One table row for a finished ascent."""
    apo_km = state.orbit_apoapsis_m / 1000.0 if state.orbit_apoapsis_m >= 0 else float("nan")
    return [
        label,
        state.phase,
        state.time_s,
        state.altitude_m / 1000.0,
        state.speed_ms,
        apo_km,
        state.orbit_periapsis_m / 1000.0,
        state.orbit_eccentricity,
        state.fuel_remaining_kg,
    ]


def print_table(rows: list) -> None:
    header = f"{'Policy':<22} {'Phase':<8} {'t (s)':>8} {'Alt km':>9} {'v m/s':>8} {'Apo km':>9} {'Peri km':>9} {'Ecc':>7} {'Fuel kg':>9}"
    print(header)
    print("-" * len(header))
    for r in rows:
        print(f"{r[0]:<22} {r[1]:<8} {r[2]:>8.1f} {r[3]:>9.1f} {r[4]:>8.1f} {r[5]:>9.1f} {r[6]:>9.1f} {r[7]:>7.3f} {r[8]:>9.0f}")


def main():
    parser = argparse.ArgumentParser(description="Sweep ascent guidance targets offline")
    parser.add_argument("--vehicle", default="default", help="Vehicle key in the bundled vehicle catalog")
    parser.add_argument("--min-target", type=float, default=150.0, help="Lowest target altitude (km)")
    parser.add_argument("--max-target", type=float, default=400.0, help="Highest target altitude (km)")
    parser.add_argument("--steps", type=int, default=6, help="Number of targets")
    parser.add_argument("--duration", type=float, default=900.0, help="Max flight time per run (s)")
    parser.add_argument("--dt", type=float, default=0.1, help="Integrator time step (s)")
    parser.add_argument("--lat", type=float, default=45.0, help="Launch latitude")
    parser.add_argument("--lon", type=float, default=63.0, help="Launch longitude")
    args = parser.parse_args()

    catalog = load_vehicle_catalog()
    if args.vehicle not in catalog:
        print(f"Error: unknown vehicle '{args.vehicle}' (known: {', '.join(catalog)})", file=sys.stderr)
        return 1
    config = catalog[args.vehicle]

    print(f"Vehicle: {config.name}, {len(config.engines)} engines, "
          f"T/W at launch {config.total_thrust_n / (config.wet_mass_kg * 9.81):.2f}")
    print()

    targets_km = np.linspace(args.min_target, args.max_target, args.steps)
    rows = []
    periapses = np.full(len(targets_km), np.nan)

    for i, target_km in enumerate(targets_km):
        guidance = GravityTurnGuidance.for_orbit(target_km * 1000.0)
        state = fly(config, guidance, args.duration, args.dt, args.lat, args.lon)
        rows.append(summarize(f"gravity_turn {target_km:.0f} km", state))
        if state.orbit_is_stable:
            periapses[i] = state.orbit_periapsis_m / 1000.0

    baseline = fly(config, StagedPitchProfile(), args.duration, args.dt, args.lat, args.lon)
    rows.append(summarize("staged", baseline))

    print_table(rows)
    print()

    if np.all(np.isnan(periapses)):
        print("No target reached a stable orbit.")
    else:
        best = int(np.nanargmax(periapses))
        print(f"Highest stable periapsis: {periapses[best]:.1f} km "
              f"(target {targets_km[best]:.0f} km, {np.count_nonzero(~np.isnan(periapses))}/{len(targets_km)} stable)")

    return 0


if __name__ == "__main__":
    sys.exit(main())
