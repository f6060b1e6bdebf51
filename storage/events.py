"""Echtzeit-Kanäle: Benachrichtigung über Datenänderungen und Importe.

Abonnenten registrieren sich pro Kanal; `publish()` ruft sie synchron auf.
"""

import logging
import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Kanal für Tabellenänderungen (INSERT / UPDATE / DELETE)
CHANGES_CHANNEL = "table-changes"
# Kanal für abgeschlossene Stundenplan-Importe
IMPORT_CHANNEL = "data-import-updates"


class ChannelEvent(BaseModel):
    """Eine Nachricht auf einem Kanal."""

    channel: str
    event: str
    payload: dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


Subscriber = Callable[[ChannelEvent], None]


class EventBus:
    """Verteilt Nachrichten an die Abonnenten eines Kanals."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, channel: str, callback: Subscriber) -> Callable[[], None]:
        """Registriert einen Abonnenten. Gibt eine Abmelde-Funktion zurück."""
        with self._lock:
            self._subscribers[channel].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                subs = self._subscribers.get(channel, [])
                if callback in subs:
                    subs.remove(callback)

        return unsubscribe

    def publish(self, channel: str, event: str,
                payload: dict[str, Any] | None = None) -> int:
        """Sendet eine Nachricht. Gibt die Anzahl erreichter Abonnenten zurück.

        Ein fehlschlagender Abonnent wird protokolliert; die übrigen
        erhalten die Nachricht trotzdem.
        """
        message = ChannelEvent(channel=channel, event=event, payload=payload or {})
        with self._lock:
            subs = list(self._subscribers.get(channel, []))

        delivered = 0
        for callback in subs:
            try:
                callback(message)
                delivered += 1
            except Exception:
                logger.exception("Abonnent auf Kanal '%s' fehlgeschlagen (%s)",
                                 channel, event)
        return delivered

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))
