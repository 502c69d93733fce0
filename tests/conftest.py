"""Shared test doubles for the server tests."""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from cosmodrom.protocol import Envelope, MessageType, decode_message
from cosmodrom.vehicle import Engine, VehicleConfig


class FakeChannel:
    """In-memory outbound channel that records what was sent."""

    def __init__(self, fail: bool = False):
        self.sent: List[str] = []
        self.closed = False
        self.close_calls = 0
        self.fail = fail

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        if self.closed:
            raise RuntimeError("channel is closed")
        self.sent.append(text)

    async def close(self) -> None:
        self.close_calls += 1
        self.closed = True

    def messages(self) -> List[Envelope]:
        return [decode_message(text) for text in self.sent]

    def types(self) -> List[MessageType]:
        return [envelope.type for envelope in self.messages()]

    def last(self) -> Optional[Envelope]:
        return decode_message(self.sent[-1]) if self.sent else None


@pytest.fixture
def make_channel():
    """Factory for FakeChannel instances."""
    return FakeChannel


@pytest.fixture
def vehicle_config() -> VehicleConfig:
    """A valid four-engine vehicle."""
    return VehicleConfig(
        name="Test Rocket 1",
        empty_mass_kg=5000.0,
        fuel_mass_kg=15000.0,
        fuel_mass_max_kg=15000.0,
        engines=tuple(Engine(500_000.0, 250.0) for _ in range(4)),
        drag_coefficient=0.5,
        cross_section_m2=10.0,
    )
