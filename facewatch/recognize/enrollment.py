from __future__ import annotations
import logging
from typing import List, Sequence

from .errors import ValidationError
from .matcher import FaceDBMatcher
from .store import DescriptorStore
from .types import DESCRIPTOR_DIM, Person, RawDetection

logger = logging.getLogger(__name__)


class EnrollmentService:
    """
    Roster mutations composed with the matcher refresh.

    Every method that writes the DescriptorStore reloads the matcher before
    returning, so classify() never sees a roster older than the last
    successful write. If the write succeeds and the reload raises, the write
    stands and reload() must be retried by the caller.
    """

    def __init__(self, store: DescriptorStore, matcher: FaceDBMatcher):
        self.store = store
        self.matcher = matcher

    @staticmethod
    def descriptor_from_capture(detections: Sequence[RawDetection]) -> List[float]:
        """Capture precondition: exactly one face per enrollment sample."""
        if len(detections) == 0:
            raise ValidationError("No face detected. Please try again.")
        if len(detections) > 1:
            raise ValidationError("Multiple faces detected. Please ensure only one person is in frame.")
        return [float(v) for v in detections[0].descriptor]

    def enroll(self, name: str, descriptors: Sequence[Sequence[float]]) -> Person:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Please enter a name")
        if len(descriptors) == 0:
            raise ValidationError("Please capture at least 1 image")
        for i, d in enumerate(descriptors):
            if len(d) != DESCRIPTOR_DIM:
                raise ValidationError(f"Descriptor {i} has {len(d)} values, expected {DESCRIPTOR_DIM}")

        person = self.store.register(name, descriptors)
        self.reload()
        logger.info("[Enrollment] Registered face for %s (%d samples)", name, len(descriptors))
        return person

    def remove(self, name: str) -> bool:
        removed = self.store.remove(name)
        self.reload()
        return removed

    def list_all(self) -> List[Person]:
        return self.store.list_all()

    def restore(self, persons: Sequence[Person]) -> None:
        """Replace the whole roster (backup import)."""
        self.store.replace_all(persons)
        self.reload()

    def clear(self) -> None:
        self.store.clear()
        self.reload()

    def reload(self) -> None:
        self.matcher.load_roster(self.store.list_all())
