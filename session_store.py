"""Zwischenspeicher für offene Rückfragen ("pending question").

Stellt das System eine Rückfrage, merkt es sich die ursprüngliche Anfrage pro
Benutzer (JWT ``sub``) bzw. Client-Adresse. Die nächste Anfrage derselben
Identität innerhalb der TTL wird an den gemerkten Text angehängt.

Der Speicher wird als :class:`SessionStore` in den
:class:`abrechnung.BillingAssistant` injiziert. Die mitgelieferte
In-Memory-Variante lebt nur im aktuellen Prozess; für mehrere Instanzen ist
ein gemeinsamer Speicher mit derselben Schnittstelle nötig.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

DEFAULT_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class PendingSession:
    prompt: str
    timestamp: float


class SessionStore(Protocol):
    def get(self, key: str) -> Optional[PendingSession]: ...

    def set(self, key: str, prompt: str) -> PendingSession: ...

    def delete(self, key: str) -> None: ...


class InMemorySessionStore:
    """Prozesslokaler Speicher mit TTL; abgelaufene Einträge werden beim Zugriff entfernt."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._data: Dict[str, PendingSession] = {}

    def _expired(self, session: PendingSession, now: float) -> bool:
        return now - session.timestamp > self.ttl_seconds

    def get(self, key: str) -> Optional[PendingSession]:
        if not key:
            return None
        now = self._clock()
        with self._lock:
            session = self._data.get(key)
            if session is None:
                return None
            if self._expired(session, now):
                del self._data[key]
                return None
            return session

    def _purge_locked(self, now: float) -> int:
        stale = [k for k, s in self._data.items() if self._expired(s, now)]
        for k in stale:
            del self._data[k]
        return len(stale)

    def set(self, key: str, prompt: str) -> PendingSession:
        now = self._clock()
        session = PendingSession(prompt=prompt, timestamp=now)
        with self._lock:
            self._purge_locked(now)
            self._data[key] = session
        return session

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def purge_expired(self) -> int:
        """Entfernt alle abgelaufenen Einträge und gibt deren Anzahl zurück."""
        now = self._clock()
        with self._lock:
            return self._purge_locked(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
