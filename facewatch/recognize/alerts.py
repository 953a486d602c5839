"""
Dedup & alert engine.

Consumes per-tick batches of sightings from the detection loop and turns
them into recognition events and alerts:

- A sighting is keyed by name and 5-second bucket (`Alice-342817`). A key
  seen inside its window is dropped, so one person standing in front of
  the camera produces one event per window instead of ten per second.
- Accepted events go to the live history (50, newest first) and to the
  audit log (500).
- Unknown faces raise an alert at most once per cooldown (10 s), engine-wide.
"""

from __future__ import annotations
import logging
import math
import time
import uuid
from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, Iterable, List, Optional

from ..config import AppSettings
from ..storage import RECOGNITION_HISTORY_KEY, KeyValueStore, read_json_or, write_json
from .errors import StorageError
from .logger import RecognitionLogger
from .types import AlertEvent, RecognitionEvent, Sighting

logger = logging.getLogger(__name__)

EventsCallback = Callable[[List[RecognitionEvent]], None]
AlertCallback = Callable[[AlertEvent], None]
ClearCallback = Callable[[], None]


class ExpiringKeySet:
    """key -> expiry time; expired keys are dropped lazily on access."""

    def __init__(self, ttl: float):
        self.ttl = float(ttl)
        self._expiry: Dict[str, float] = {}

    def purge(self, now: float) -> None:
        expired = [k for k, exp in self._expiry.items() if exp <= now]
        for k in expired:
            del self._expiry[k]

    def contains(self, key: str, now: float) -> bool:
        self.purge(now)
        return key in self._expiry

    def add_if_absent(self, key: str, now: float) -> bool:
        """Returns True if `key` was inserted, False if it is still live."""
        if self.contains(key, now):
            return False
        self._expiry[key] = now + self.ttl
        return True

    def __len__(self) -> int:
        return len(self._expiry)


class DedupAlertEngine:
    def __init__(
        self,
        kv: Optional[KeyValueStore] = None,
        settings: Optional[AppSettings] = None,
        window_s: float = 5.0,
        alert_cooldown_s: float = 10.0,
        history_capacity: int = 50,
        live_alert_capacity: int = 10,
        log_capacity: int = 500,
        alert_log_capacity: int = 100,
        location: str = "Main Entrance",
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.settings = settings or AppSettings()
        self.window_s = float(window_s)
        self.alert_cooldown_s = float(alert_cooldown_s)
        self.location = location
        self.clock = clock

        self.audit: Optional[RecognitionLogger] = None
        if kv is not None:
            self.audit = RecognitionLogger(kv, log_capacity=log_capacity, alert_capacity=alert_log_capacity)

        self._seen = ExpiringKeySet(ttl=self.window_s)
        self.history: Deque[RecognitionEvent] = deque(maxlen=int(history_capacity))
        self.alerts: Deque[AlertEvent] = deque(maxlen=int(live_alert_capacity))
        self.last_alert_at: Optional[float] = None

        self._on_events: List[EventsCallback] = []
        self._on_alert: List[AlertCallback] = []
        self._on_clear: List[ClearCallback] = []

    # -------------------------
    # Subscriptions
    # -------------------------

    def subscribe(
        self,
        on_events: Optional[EventsCallback] = None,
        on_alert: Optional[AlertCallback] = None,
        on_clear: Optional[ClearCallback] = None,
    ) -> None:
        if on_events:
            self._on_events.append(on_events)
        if on_alert:
            self._on_alert.append(on_alert)
        if on_clear:
            self._on_clear.append(on_clear)

    @staticmethod
    def _notify(callbacks: Iterable[Callable], *args) -> None:
        for cb in callbacks:
            try:
                cb(*args)
            except Exception:
                logger.exception("[Engine] Subscriber %r failed", cb)

    # -------------------------
    # Stream input
    # -------------------------

    def dedup_key(self, name: str, t: float) -> str:
        return f"{name}-{int(math.floor(t / self.window_s))}"

    def handle_batch(self, sightings: Iterable[Sighting]) -> List[RecognitionEvent]:
        accepted: List[RecognitionEvent] = []
        for s in sightings:
            event = self._accept(s)
            if event is not None:
                accepted.append(event)

        if accepted:
            self._save_history()
            self._notify(self._on_events, accepted)
        return accepted

    def handle_clear(self) -> None:
        self._notify(self._on_clear)

    def _accept(self, s: Sighting) -> Optional[RecognitionEvent]:
        key = self.dedup_key(s.match.label, s.timestamp)
        if not self._seen.add_if_absent(key, s.timestamp):
            return None

        event = RecognitionEvent(
            id=uuid.uuid4().hex,
            name=s.match.label,
            confidence=s.match.confidence,
            timestamp=s.timestamp,
            is_unknown=s.match.is_unknown,
            location=self.location,
        )
        self.history.appendleft(event)
        if self.audit is not None and self.settings.detection.auto_save_logs:
            self.audit.log_recognition(event)

        if event.is_unknown:
            self._maybe_alert(event)
        return event

    def _maybe_alert(self, event: RecognitionEvent) -> None:
        if not self.settings.notifications.unauthorized:
            return
        if self.last_alert_at is not None and event.timestamp - self.last_alert_at < self.alert_cooldown_s:
            logger.debug("[Engine] Alert throttled for %s", event.name)
            return

        alert = AlertEvent(
            id=uuid.uuid4().hex,
            message=f"Unrecognized person detected at {event.location}",
            timestamp=event.timestamp,
        )
        self.last_alert_at = event.timestamp
        self.alerts.appendleft(alert)
        if self.audit is not None:
            self.audit.log_alert(alert)
        logger.warning("[Engine] %s", alert.message)
        self._notify(self._on_alert, alert)

    # -------------------------
    # History
    # -------------------------

    def _save_history(self) -> None:
        if self.kv is None:
            return
        try:
            write_json(self.kv, RECOGNITION_HISTORY_KEY, [e.to_dict() for e in self.history])
        except StorageError as e:
            logger.error("[Engine] Error saving recognition history: %s", e)

    def load_history(self, now: Optional[float] = None) -> int:
        """Restore today's events from `recognitionHistory`. Returns the count loaded."""
        if self.kv is None:
            return 0
        today = datetime.fromtimestamp(self.clock() if now is None else now).date()
        self.history.clear()
        loaded = []
        for item in read_json_or(self.kv, RECOGNITION_HISTORY_KEY, []):
            try:
                event = RecognitionEvent.from_dict(item)
            except (KeyError, TypeError, ValueError):
                continue
            if datetime.fromtimestamp(event.timestamp).date() == today:
                loaded.append(event)
        # stored newest first; keep that order
        self.history.extend(loaded[: self.history.maxlen])
        return len(self.history)

    def stats(self, now: Optional[float] = None) -> Dict[str, int]:
        today = datetime.fromtimestamp(self.clock() if now is None else now).date()
        todays = [e for e in self.history if datetime.fromtimestamp(e.timestamp).date() == today]
        return {
            "total_today": len(todays),
            "authorized": sum(1 for e in todays if not e.is_unknown),
            "unauthorized": sum(1 for e in todays if e.is_unknown),
            "unique": len({e.name for e in todays}),
        }

    def clear_alerts(self) -> None:
        self.alerts.clear()
        if self.audit is not None:
            try:
                self.audit.clear_alerts()
            except StorageError as e:
                logger.error("[Engine] Error clearing alerts: %s", e)
