import logging
import math
import numpy as np
from typing import List, Optional, Sequence, Tuple
from .types import DESCRIPTOR_DIM, MatchResult, Person

logger = logging.getLogger(__name__)

EMPTY_ROSTER_LABEL = "Unknown"
REJECTED_LABEL = "unknown"

# (name, (N, 128) read-only matrix) in roster order
Snapshot = Tuple[Tuple[str, np.ndarray], ...]


def euclidean_distances(mat: np.ndarray, q: np.ndarray) -> np.ndarray:
    return np.sqrt(((mat - q) ** 2).sum(axis=1))


def confidence_from_distance(distance: float) -> int:
    # half-up rounding, clamped to [0, 100]
    c = int(math.floor((1.0 - distance) * 100.0 + 0.5))
    return max(0, min(100, c))


class FaceDBMatcher:
    """
    Nearest-neighbour matcher over an in-memory roster snapshot.

    The snapshot is an immutable tuple replaced wholesale by load_roster();
    classify() reads it once at entry, so a reload racing with a classify
    only affects later calls. The matcher never reloads on its own: whoever
    mutates the DescriptorStore must call load_roster() afterwards
    (EnrollmentService does this for you).

    Ties between two persons at the same minimal distance go to the person
    that comes first in roster order.
    """

    def __init__(self, dist_thresh: float = 0.6):
        self.dist_thresh = float(dist_thresh)
        self._snapshot: Snapshot = ()

    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self._snapshot]

    def load_roster(self, persons: Sequence[Person]) -> None:
        rows = []
        for p in persons:
            mat = np.asarray(p.descriptors, dtype=np.float64).reshape(-1, DESCRIPTOR_DIM)
            if mat.shape[0] == 0:
                continue
            mat.setflags(write=False)
            rows.append((p.name, mat))
        self._snapshot = tuple(rows)
        logger.info("[Matcher] Loaded %d known faces", len(rows))

    def classify(self, descriptor: Sequence[float]) -> MatchResult:
        return self._classify(descriptor, self._snapshot)

    def classify_all(self, descriptors: Sequence[Sequence[float]], snapshot: Optional[Snapshot] = None) -> List[MatchResult]:
        """Classify a whole batch against one snapshot (the current one by default)."""
        if snapshot is None:
            snapshot = self._snapshot
        return [self._classify(d, snapshot) for d in descriptors]

    def _classify(self, descriptor: Sequence[float], snapshot: Snapshot) -> MatchResult:
        if not snapshot:
            return MatchResult(label=EMPTY_ROSTER_LABEL, distance=1.0, confidence=0, is_unknown=True)

        q = np.asarray(descriptor, dtype=np.float64).reshape(-1)
        if q.size != DESCRIPTOR_DIM:
            raise ValueError(f"descriptor must have {DESCRIPTOR_DIM} values, got {q.size}")

        best_name = None
        best_dist = math.inf
        for name, mat in snapshot:
            d = float(euclidean_distances(mat, q).min())
            if d < best_dist:
                best_name, best_dist = name, d

        ok = best_dist <= self.dist_thresh
        return MatchResult(
            label=best_name if ok else REJECTED_LABEL,
            distance=best_dist,
            confidence=confidence_from_distance(best_dist),
            is_unknown=not ok,
        )
