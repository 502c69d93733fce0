"""Broadcast of server messages to every subscribed observer."""

import asyncio
import logging
from typing import Optional

from ..protocol import Payload, encode_message
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Fanout:
    """
    Sends one message to all current observers.

    The message is encoded once. Observers are sent to concurrently, each
    through its own send lock, so one slow or broken observer neither blocks
    nor fails the others.
    """

    def __init__(self, registry: ConnectionRegistry, log: Optional[logging.Logger] = None):
        self.registry = registry
        self._log = log or logger

    async def broadcast(self, payload: Payload) -> int:
        """
        Broadcast a payload.

        Returns:
            Number of observers the message was delivered to
        """
        observers = self.registry.snapshot_observers()
        if not observers:
            return 0

        text = encode_message(payload)
        results = await asyncio.gather(*(observer.send(text) for observer in observers))
        delivered = sum(1 for ok in results if ok)

        if delivered < len(observers):
            self._log.warning(
                f"{payload.message_type.value} delivered to {delivered}/{len(observers)} observers"
            )
        return delivered
