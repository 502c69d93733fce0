"""
HTTP client for the coordination server's read-only endpoints.

Used by tooling and dashboards that poll the server instead of holding a
WebSocket subscription.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from ..protocol import RocketInfo, format_timestamp


class CosmodromHttpClient:
    """
    Async client for /rockets, /api/logs, /health and /status.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL of the server (e.g., "http://localhost:8080")
            timeout: Request timeout in seconds
            transport: Custom httpx transport (e.g. a MockTransport in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "CosmodromHttpClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def get_rockets(self) -> List[RocketInfo]:
        """
        Fetch the current vehicle list.

        Returns:
            One RocketInfo per registered vehicle
        """
        client = await self._get_client()
        response = await client.get(f"{self.base_url}/rockets")
        response.raise_for_status()
        return [RocketInfo.from_dict(item) for item in response.json()]

    async def get_trajectory(self, rocket_id: str) -> List[Dict[str, Any]]:
        """
        Fetch the recorded trajectory of a vehicle.

        Returns:
            List of {"position": {...}, "time": ...} points, oldest first

        Raises:
            httpx.HTTPStatusError: If the vehicle is unknown (404)
        """
        client = await self._get_client()
        response = await client.get(f"{self.base_url}/rockets/{rocket_id}/trajectory")
        response.raise_for_status()
        return response.json().get("points", [])

    async def get_logs(self, since: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Fetch buffered server log lines.

        Args:
            since: Only return entries newer than this time

        Returns:
            List of {"timestamp", "level", "message"} entries
        """
        client = await self._get_client()
        params = {"since": format_timestamp(since)} if since is not None else None
        response = await client.get(f"{self.base_url}/api/logs", params=params)
        response.raise_for_status()
        return response.json()

    async def get_status(self) -> Dict[str, Any]:
        """
        Get current server status.

        Returns:
            Status dict with keys: name, rockets, observers, etc.
        """
        client = await self._get_client()
        response = await client.get(f"{self.base_url}/status")
        response.raise_for_status()
        return response.json()

    async def health_check(self) -> bool:
        """
        Check if the server is healthy.

        Returns:
            True if server is responding, False otherwise
        """
        try:
            client = await self._get_client()
            response = await client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False
