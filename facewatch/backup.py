"""
Roster backup export / import, and clearing all stored data.

Backup document:
    {"users": [<person>, ...], "settings": {...}, "exportDate": "<ISO-8601>"}

Descriptors are written with full float precision (json uses repr), so an
export followed by an import reproduces the roster exactly.
"""

from __future__ import annotations
import json
import logging
import time
from pathlib import Path
from typing import Optional, Union

from .config import AppSettings, save_settings
from .recognize.enrollment import EnrollmentService
from .recognize.errors import ValidationError
from .recognize.types import Person, utc_iso
from .storage import DATA_KEYS, KNOWN_FACES_KEY, KeyValueStore

logger = logging.getLogger(__name__)


def backup_filename(now: Optional[float] = None) -> str:
    day = time.strftime("%Y-%m-%d", time.gmtime(time.time() if now is None else now))
    return f"face-recognition-backup-{day}.json"


def export_backup(service: EnrollmentService, settings: AppSettings, now: Optional[float] = None) -> dict:
    return {
        "users": [p.to_dict() for p in service.list_all()],
        "settings": settings.to_dict(),
        "exportDate": utc_iso(time.time() if now is None else now),
    }


def write_backup(path: Union[str, Path], service: EnrollmentService, settings: AppSettings) -> Path:
    path = Path(path)
    if path.is_dir():
        path = path / backup_filename()
    path.write_text(json.dumps(export_backup(service, settings), indent=2), encoding="utf-8")
    logger.info("[Backup] Exported roster to %s", path)
    return path


def import_backup(
    data: Union[str, dict],
    service: EnrollmentService,
    kv: Optional[KeyValueStore] = None,
) -> int:
    """
    Replace the roster with the backup's `users` and reload the matcher.
    Settings are restored too when `kv` is given. Returns the person count.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except ValueError as e:
            raise ValidationError(f"Failed to import data. Please check the file format. ({e})") from e

    if not isinstance(data, dict) or not isinstance(data.get("users"), list):
        raise ValidationError("Failed to import data. Backup has no 'users' list.")

    try:
        persons = [Person.from_dict(u) for u in data["users"]]
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Failed to import data. Invalid person record: {e}") from e

    names = [p.name for p in persons]
    if len(set(names)) != len(names):
        raise ValidationError("Failed to import data. Duplicate person names in backup.")

    service.restore(persons)
    if kv is not None and isinstance(data.get("settings"), dict):
        save_settings(kv, AppSettings.from_dict(data["settings"]))

    logger.info("[Backup] Imported %d person(s)", len(persons))
    return len(persons)


def read_backup(path: Union[str, Path], service: EnrollmentService, kv: Optional[KeyValueStore] = None) -> int:
    return import_backup(Path(path).read_text(encoding="utf-8"), service, kv)


def clear_all_data(kv: KeyValueStore, service: EnrollmentService) -> None:
    """Delete the roster, recognition logs, live history and alerts. Settings are kept."""
    for key in DATA_KEYS:
        if key != KNOWN_FACES_KEY:
            kv.delete(key)
    service.clear()
    logger.info("[Backup] All data has been cleared")
