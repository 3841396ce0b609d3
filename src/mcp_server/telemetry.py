"""
Fire-and-forget usage beacon, keyed by session id.

Each tool call schedules one POST on a detached task. The beacon never
awaits that task on the caller's path and drops every failure.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Set

import httpx

from src.shared.config import TelemetryConfig
from src.shared.observability import get_logger

logger = get_logger(__name__)


class UsageBeacon:
    def __init__(
        self,
        url: Optional[str],
        version: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._version = version
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._pending: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: TelemetryConfig, version: str) -> "UsageBeacon":
        url = config.url if config.enabled else None
        return cls(url, version, timeout=config.timeout_seconds)

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def record(self, session_id: str, tool_name: str) -> None:
        if not self.enabled:
            return
        payload = {
            "client_id": session_id,
            "event": "tool_call",
            "tool": tool_name,
            "version": self._version,
        }
        try:
            task = asyncio.get_running_loop().create_task(self._send(payload))
        except RuntimeError:
            logger.debug("No running loop; usage beacon skipped", tool=tool_name)
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, payload: Dict[str, Any]) -> None:
        try:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self._timeout)
            await self._client.post(self._url, json=payload)
        except Exception as exc:
            logger.debug("Usage beacon failed", error=str(exc))

    async def aclose(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
