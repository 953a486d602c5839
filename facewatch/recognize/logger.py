import calendar
import logging
import time
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from ..storage import ALERTS_KEY, RECOGNITION_LOGS_KEY, KeyValueStore, read_json_or, write_json
from .errors import StorageError
from .types import AlertEvent, RecognitionEvent

logger = logging.getLogger(__name__)

STATUS_FILTERS = ("all", "known", "unknown")
DATE_FILTERS = ("all", "today", "week", "month")


def _month_ago(d: date) -> date:
    y, m = (d.year, d.month - 1) if d.month > 1 else (d.year - 1, 12)
    return d.replace(year=y, month=m, day=min(d.day, calendar.monthrange(y, m)[1]))


def log_entry(event: RecognitionEvent) -> dict:
    """Audit-log row for `recognitionLogs`; date and time are local."""
    dt = datetime.fromtimestamp(event.timestamp)
    return {
        "id": event.id,
        "date": dt.strftime("%Y-%m-%d"),
        "time": dt.strftime("%H:%M:%S"),
        "name": event.name,
        "status": "Unknown" if event.is_unknown else "Known",
        "location": event.location,
        "confidence": event.confidence,
    }


class RecognitionLogger:
    """
    Persistent audit trail: the newest `log_capacity` recognitions under
    `recognitionLogs` and the newest `alert_capacity` alerts under `alerts`.
    Both lists are newest first. Write failures are logged, never raised,
    so a full or broken store cannot stall the detection loop.
    """

    def __init__(
        self,
        kv: KeyValueStore,
        log_capacity: int = 500,
        alert_capacity: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.log_capacity = int(log_capacity)
        self.alert_capacity = int(alert_capacity)
        self.clock = clock

    def _prepend(self, key: str, item: dict, capacity: int) -> None:
        items = read_json_or(self.kv, key, [])
        if not isinstance(items, list):
            items = []
        items.insert(0, item)
        try:
            write_json(self.kv, key, items[:capacity])
        except StorageError as e:
            logger.error("[RecognitionLogger] Error saving to '%s': %s", key, e)

    def log_recognition(self, event: RecognitionEvent) -> None:
        self._prepend(RECOGNITION_LOGS_KEY, log_entry(event), self.log_capacity)

    def log_alert(self, alert: AlertEvent) -> None:
        self._prepend(ALERTS_KEY, alert.to_dict(), self.alert_capacity)

    def logs(self) -> List[dict]:
        items = read_json_or(self.kv, RECOGNITION_LOGS_KEY, [])
        return items if isinstance(items, list) else []

    def alerts(self) -> List[AlertEvent]:
        items = read_json_or(self.kv, ALERTS_KEY, [])
        out: List[AlertEvent] = []
        for item in items if isinstance(items, list) else []:
            try:
                out.append(AlertEvent.from_dict(item))
            except (KeyError, TypeError, ValueError):
                continue
        return out

    def clear_logs(self) -> None:
        write_json(self.kv, RECOGNITION_LOGS_KEY, [])

    def clear_alerts(self) -> None:
        write_json(self.kv, ALERTS_KEY, [])

    def query(
        self,
        search: str = "",
        status: str = "all",
        date_filter: str = "all",
        ascending: bool = False,
        now: Optional[float] = None,
    ) -> List[dict]:
        """Filter the audit log the way the logs view does."""
        if status not in STATUS_FILTERS:
            raise ValueError(f"status must be one of {STATUS_FILTERS}")
        if date_filter not in DATE_FILTERS:
            raise ValueError(f"date_filter must be one of {DATE_FILTERS}")

        today = datetime.fromtimestamp(self.clock() if now is None else now).date()
        if date_filter == "week":
            since = today - timedelta(days=7)
        elif date_filter == "month":
            since = _month_ago(today)
        else:
            since = today

        needle = search.lower()
        out = []
        for row in self.logs():
            try:
                row_date = datetime.strptime(row["date"], "%Y-%m-%d").date()
                haystack = (row["name"], row["status"], row["location"])
            except (KeyError, TypeError, ValueError):
                continue

            if needle and not any(needle in str(h).lower() for h in haystack):
                continue
            if status == "known" and row["status"] != "Known":
                continue
            if status == "unknown" and row["status"] != "Unknown":
                continue
            if date_filter == "today" and row_date != today:
                continue
            if date_filter in ("week", "month") and row_date < since:
                continue
            out.append(row)

        out.sort(key=lambda r: (r["date"], r["time"]), reverse=not ascending)
        return out
