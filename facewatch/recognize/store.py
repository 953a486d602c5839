from __future__ import annotations
import logging
import time
from typing import Callable, List, Sequence

from ..storage import KNOWN_FACES_KEY, KeyValueStore, read_json, write_json
from .errors import StorageError, ValidationError
from .types import DEFAULT_ROLE, Person, utc_iso

logger = logging.getLogger(__name__)


class DescriptorStore:
    """
    Persists the roster as a JSON list under `knownFaces`.
    Each mutation is a single read-modify-write of the whole document.
    """

    def __init__(self, kv: KeyValueStore, clock: Callable[[], float] = time.time):
        self.kv = kv
        self.clock = clock

    def _read_records(self) -> List[dict]:
        data = read_json(self.kv, KNOWN_FACES_KEY)
        if data is None:
            return []
        if not isinstance(data, list):
            raise StorageError(f"'{KNOWN_FACES_KEY}' is not a list")
        return data

    def register(self, name: str, descriptors: Sequence[Sequence[float]]) -> Person:
        if len(descriptors) == 0:
            raise ValidationError("register() needs at least one descriptor")

        records = self._read_records()
        new_descs = [[float(v) for v in d] for d in descriptors]

        for rec in records:
            if isinstance(rec, dict) and rec.get("name") == name:
                try:
                    existing = Person.from_dict(rec)
                except (KeyError, TypeError, ValueError) as e:
                    raise StorageError(f"stored record for '{name}' is malformed: {e}") from e
                rec["descriptors"] = existing.descriptors + new_descs
                person = rec
                break
        else:
            person = Person(
                name=name,
                descriptors=new_descs,
                role=DEFAULT_ROLE,
                registered_at=utc_iso(self.clock()),
            ).to_dict()
            records.append(person)

        write_json(self.kv, KNOWN_FACES_KEY, records)
        logger.info("[DescriptorStore] Registered %d descriptor(s) for '%s'", len(new_descs), name)
        return Person.from_dict(person)

    def remove(self, name: str) -> bool:
        """Removes `name`. Returns False (and writes nothing) when absent."""
        records = self._read_records()
        kept = [r for r in records if not (isinstance(r, dict) and r.get("name") == name)]
        if len(kept) == len(records):
            return False
        write_json(self.kv, KNOWN_FACES_KEY, kept)
        logger.info("[DescriptorStore] Removed '%s'", name)
        return True

    def list_all(self) -> List[Person]:
        try:
            records = self._read_records()
        except StorageError as e:
            logger.error("[DescriptorStore] Error loading roster: %s", e)
            return []

        persons: List[Person] = []
        for rec in records:
            try:
                persons.append(Person.from_dict(rec))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("[DescriptorStore] Skipping malformed person record: %s", e)
        return persons

    def replace_all(self, persons: Sequence[Person]) -> None:
        write_json(self.kv, KNOWN_FACES_KEY, [p.to_dict() for p in persons])

    def clear(self) -> None:
        self.kv.delete(KNOWN_FACES_KEY)
        logger.info("[DescriptorStore] Roster cleared")
