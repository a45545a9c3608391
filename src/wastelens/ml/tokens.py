"""Per-client request tokens for discarding superseded results.

Each classify request from a client is issued a token larger than any issued
before. When the result is ready, it is delivered only if its token is still
the latest for that client; otherwise a newer upload has replaced it.
"""

from __future__ import annotations

import itertools
import logging
import threading

logger = logging.getLogger(__name__)


class RequestTokens:
    """Thread-safe table of the latest token issued per client."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._latest: dict[str, int] = {}
        self._lock = threading.Lock()

    def issue(self, client_id: str) -> int:
        """Issue a new token for ``client_id``, superseding any earlier one."""
        with self._lock:
            token = next(self._counter)
            self._latest[client_id] = token
            return token

    def is_current(self, client_id: str, token: int) -> bool:
        """Return True if ``token`` is the most recent one issued to the client."""
        with self._lock:
            current = self._latest.get(client_id) == token
        if not current:
            logger.debug("Discarding stale result for client %s (token %d)", client_id, token)
        return current

    def release(self, client_id: str, token: int) -> None:
        """Forget the client once its latest request has been answered."""
        with self._lock:
            if self._latest.get(client_id) == token:
                del self._latest[client_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest)
