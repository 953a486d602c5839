"""
Shared pytest fixtures for facewatch tests.
"""
from typing import List

import pytest

from facewatch.recognize.enrollment import EnrollmentService
from facewatch.recognize.matcher import FaceDBMatcher
from facewatch.recognize.store import DescriptorStore
from facewatch.recognize.types import DESCRIPTOR_DIM
from facewatch.storage import MemoryStore

FIXED_NOW = 1_700_000_000.0  # divisible by 5


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def store(kv):
    return DescriptorStore(kv, clock=lambda: FIXED_NOW)


@pytest.fixture
def matcher():
    return FaceDBMatcher(dist_thresh=0.6)


@pytest.fixture
def service(store, matcher):
    return EnrollmentService(store, matcher)


@pytest.fixture
def axis():
    """axis(i, v) -> 128-d descriptor that is zero except v at index i."""
    def _axis(i: int, v: float = 1.0) -> List[float]:
        d = [0.0] * DESCRIPTOR_DIM
        d[i] = v
        return d
    return _axis


@pytest.fixture
def bob_descriptor() -> List[float]:
    return [(i + 1) * 0.1 for i in range(DESCRIPTOR_DIM)]


@pytest.fixture
def zeros() -> List[float]:
    return [0.0] * DESCRIPTOR_DIM
