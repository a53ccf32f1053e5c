"""Activity log: structured event records plus an optional remote sink.

`record()` never blocks and never raises. Entries always go to the
`mapfetch.activity` logger. Error-level entries are also POSTed as JSON to
the configured endpoint in a background task whose failures are swallowed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Set

import aiohttp

logger = logging.getLogger("mapfetch.activity")

_POST_TIMEOUT_SECONDS = 5.0
ERROR_EVENT_SUFFIXES = ("_error", "_timeout")


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class ActivityLog:
    """Fire-and-forget implementation of the activity logger capability."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        *,
        verbose: bool = False,
        user_agent: Optional[str] = None,
    ) -> None:
        self.endpoint = endpoint
        self.verbose = verbose
        self.user_agent = user_agent
        self._pending: Set[asyncio.Task] = set()

    def record(
        self,
        event_name: str,
        fields: Optional[Mapping[str, Any]] = None,
        *,
        level: Optional[int] = None,
    ) -> None:
        if level is None:
            level = logging.ERROR if event_name.endswith(ERROR_EVENT_SUFFIXES) else logging.INFO
        entry: Dict[str, Any] = {
            "timestamp": _now_iso(),
            "action": event_name,
            "data": dict(fields or {}),
        }
        try:
            logger.log(level, "%s %s", event_name, json.dumps(entry["data"], ensure_ascii=False, default=str))
        except Exception:
            if self.verbose:
                logger.debug("could not format activity entry %s", event_name, exc_info=True)
        if level >= logging.ERROR:
            self._send(entry, level)

    def _send(self, entry: Dict[str, Any], level: int) -> None:
        if not self.endpoint:
            if self.verbose:
                logger.debug("backend logging disabled, skipping %s", entry.get("action"))
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if self.verbose:
                logger.debug("no running loop, skipping backend log for %s", entry.get("action"))
            return
        payload = {**entry, "level": logging.getLevelName(level).lower()}
        if self.user_agent:
            payload["user_agent"] = self.user_agent
        task = loop.create_task(self._post(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _post(self, payload: Dict[str, Any]) -> None:
        try:
            body = json.dumps(payload, ensure_ascii=False, default=str)
            timeout = aiohttp.ClientTimeout(total=_POST_TIMEOUT_SECONDS)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.endpoint,
                    data=body,
                    headers={"Content-Type": "application/json"},
                ) as resp:
                    if resp.status >= 400 and self.verbose:
                        logger.debug("backend log rejected %s: HTTP %s", payload.get("action"), resp.status)
        except Exception as exc:
            if self.verbose:
                logger.debug("failed to send backend log %s: %s", payload.get("action"), exc)

    async def flush(self) -> None:
        """Wait for in-flight backend posts; used on shutdown and in tests."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
