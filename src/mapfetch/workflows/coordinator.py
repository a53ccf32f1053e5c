"""Single-current-token coordination for overlapping asynchronous loads.

Every load attempt takes a `LoadToken`. Starting a new attempt supersedes the
previous one immediately, whatever order the underlying fetches finish in;
a stale attempt keeps running but `complete()` refuses it, so its result can
never reach shared map or status state. Each token also carries a deadline
armed on the running event loop.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .viewer_config import DEFAULT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    SUPERSEDED = "superseded"


TimeoutCallback = Callable[["LoadToken"], None]


@dataclass(eq=False)
class LoadToken:
    """Handle for one load attempt; state is only ever changed by its coordinator."""

    id: int
    created_at: float
    deadline: float
    state: TokenState = TokenState.PENDING
    label: str = ""
    _timer: Optional[asyncio.TimerHandle] = field(default=None, init=False, repr=False)
    _on_timeout: Optional[TimeoutCallback] = field(default=None, init=False, repr=False)

    @property
    def pending(self) -> bool:
        return self.state is TokenState.PENDING


class LoadCoordinator:
    """Owns the current token; the only writer of token state."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._current: Optional[LoadToken] = None
        self._ids = itertools.count(1)

    @property
    def current(self) -> Optional[LoadToken]:
        return self._current

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def _disarm(self, token: LoadToken) -> None:
        if token._timer is not None:
            token._timer.cancel()
            token._timer = None
        token._on_timeout = None

    def _supersede_current(self) -> None:
        previous = self._current
        self._current = None
        if previous is None or not previous.pending:
            return
        previous.state = TokenState.SUPERSEDED
        self._disarm(previous)
        logger.debug("load token %d (%s) superseded", previous.id, previous.label)

    def create_token(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_timeout: Optional[TimeoutCallback] = None,
        label: str = "",
    ) -> LoadToken:
        """Supersede any pending token and install a new current one.

        Must be called from a running event loop (or a coordinator bound to
        one) because the deadline is armed with `loop.call_later`.
        """
        loop = self._get_loop()
        self._supersede_current()
        now = loop.time()
        token = LoadToken(id=next(self._ids), created_at=now, deadline=now + timeout, label=label)
        token._on_timeout = on_timeout
        token._timer = loop.call_later(timeout, self._expire, token)
        self._current = token
        return token

    def is_current(self, token: Optional[LoadToken]) -> bool:
        return token is not None and token is self._current and token.pending

    def complete(self, token: Optional[LoadToken]) -> bool:
        """Mark `token` completed if it is still current.

        Returns False for stale, timed-out or already-completed tokens; the
        caller must then discard whatever result it was holding.
        """
        if not self.is_current(token):
            return False
        assert token is not None
        token.state = TokenState.COMPLETED
        self._disarm(token)
        self._current = None
        return True

    def cancel_current(self) -> None:
        """Supersede the current token without starting a new attempt."""
        self._supersede_current()

    def _expire(self, token: LoadToken) -> None:
        if not self.is_current(token):
            return
        callback = token._on_timeout
        token.state = TokenState.TIMED_OUT
        token._timer = None
        token._on_timeout = None
        self._current = None
        logger.warning("load token %d (%s) timed out", token.id, token.label)
        if callback is None:
            return
        try:
            callback(token)
        except Exception:
            logger.exception("timeout callback failed for token %d", token.id)
