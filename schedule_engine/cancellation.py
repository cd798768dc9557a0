"""
Cancellable Request Handles

A view opens a RequestScope, hands a token to each request it issues, and closes
the scope when it goes away. Responses that arrive after that are discarded.
"""

import logging
import threading

from .errors import RequestCancelledError

logger = logging.getLogger(__name__)


class CancellationToken:
    """A one-way flag checked before sending and before applying a response."""

    def __init__(self, label: str = ""):
        self.label = label
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.debug(f"Request cancelled: {self.label or 'unnamed'}")
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(f"Request was cancelled: {self.label or 'unnamed'}")


class RequestScope:
    """Owns the tokens issued for one view; closing it cancels all of them."""

    def __init__(self, name: str = ""):
        self.name = name
        self._tokens: list[CancellationToken] = []
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def token(self, label: str = "") -> CancellationToken:
        token = CancellationToken(label or self.name)
        with self._lock:
            if self._closed:
                token.cancel()
            else:
                self._tokens.append(token)
        return token

    def close(self) -> None:
        with self._lock:
            self._closed = True
            tokens, self._tokens = self._tokens, []
        for token in tokens:
            token.cancel()

    def __enter__(self) -> "RequestScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
