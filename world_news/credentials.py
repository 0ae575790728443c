"""Holder for API credentials that become available asynchronously."""

from __future__ import annotations

import logging
import os
import threading
from typing import Callable, List, Optional, Protocol

from .models import Credentials

logger = logging.getLogger(__name__)

CLIENT_ID_ENV = "WORLD_NEWS_CLIENT_ID"
CLIENT_SECRET_ENV = "WORLD_NEWS_CLIENT_SECRET"


class CredentialSource(Protocol):
    def current(self) -> Optional[Credentials]: ...

    def add_listener(self, listener: Callable[[Credentials], None]) -> None: ...


class CredentialSlot:
    """Thread-safe slot filled once the credential pair has been obtained."""

    def __init__(self, credentials: Optional[Credentials] = None):
        self._lock = threading.Lock()
        self._credentials: Optional[Credentials] = None
        self._listeners: List[Callable[[Credentials], None]] = []
        if credentials is not None:
            self.provide(credentials)

    @classmethod
    def from_env(cls) -> "CredentialSlot":
        client_id = os.environ.get(CLIENT_ID_ENV, "")
        client_secret = os.environ.get(CLIENT_SECRET_ENV, "")
        slot = cls()
        if client_id and client_secret:
            slot.provide(Credentials(client_id=client_id, client_secret=client_secret))
        else:
            logger.warning(
                "%s / %s not set; requests will wait for credentials.",
                CLIENT_ID_ENV,
                CLIENT_SECRET_ENV,
            )
        return slot

    def current(self) -> Optional[Credentials]:
        with self._lock:
            return self._credentials

    def provide(self, credentials: Credentials) -> None:
        """Store usable credentials and notify listeners."""
        if not credentials.is_usable():
            raise ValueError("Client id and secret must both be non-empty.")
        with self._lock:
            self._credentials = credentials
            listeners = list(self._listeners)
        logger.info("API credentials available")
        for listener in listeners:
            try:
                listener(credentials)
            except Exception:
                logger.exception("Credential listener failed")

    def add_listener(self, listener: Callable[[Credentials], None]) -> None:
        with self._lock:
            self._listeners.append(listener)
