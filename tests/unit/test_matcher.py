"""
Unit tests for facewatch.recognize.matcher
"""
import pytest

from facewatch.recognize.matcher import (
    EMPTY_ROSTER_LABEL,
    REJECTED_LABEL,
    FaceDBMatcher,
    confidence_from_distance,
)
from facewatch.recognize.types import Person


class TestEmptyRoster:
    def test_unknown_with_zero_confidence(self, matcher, zeros):
        r = matcher.classify(zeros)
        assert r.is_unknown is True
        assert r.confidence == 0
        assert r.distance == 1.0
        assert r.label == EMPTY_ROSTER_LABEL

    def test_any_threshold(self, bob_descriptor):
        for thresh in (0.0, 0.6, 10.0):
            r = FaceDBMatcher(dist_thresh=thresh).classify(bob_descriptor)
            assert r.is_unknown and r.confidence == 0


class TestClassify:
    def test_exact_resubmission(self, matcher, axis):
        d1, d2 = axis(0, 0.5), axis(1, 0.5)
        matcher.load_roster([Person("Alice", [d1, d2])])
        r = matcher.classify(d2)
        assert r.label == "Alice"
        assert r.distance == 0.0
        assert r.confidence == 100
        assert r.is_unknown is False

    def test_person_distance_is_min_over_descriptors(self, matcher, axis, zeros):
        matcher.load_roster([
            Person("Alice", [axis(0, 0.9), axis(1, 0.2)]),
            Person("Bob", [axis(2, 0.3)]),
        ])
        r = matcher.classify(zeros)
        assert r.label == "Alice"
        assert r.distance == pytest.approx(0.2)
        assert r.confidence == 80

    def test_over_threshold_is_rejected_but_keeps_confidence(self, matcher, axis, zeros):
        matcher.load_roster([Person("Alice", [axis(0, 0.61)])])
        r = matcher.classify(zeros)
        assert r.is_unknown is True
        assert r.label == REJECTED_LABEL
        assert r.distance == pytest.approx(0.61)
        assert r.confidence == 39

    def test_under_threshold_is_accepted(self, matcher, axis, zeros):
        matcher.load_roster([Person("Alice", [axis(0, 0.59)])])
        r = matcher.classify(zeros)
        assert r.is_unknown is False
        assert r.label == "Alice"

    def test_tie_goes_to_first_in_roster_order(self, matcher, axis, zeros):
        matcher.load_roster([Person("Zed", [axis(0, 0.3)]), Person("Amy", [axis(1, 0.3)])])
        assert matcher.classify(zeros).label == "Zed"

        matcher.load_roster([Person("Amy", [axis(1, 0.3)]), Person("Zed", [axis(0, 0.3)])])
        assert matcher.classify(zeros).label == "Amy"

    def test_wrong_dimension_raises(self, matcher, axis):
        matcher.load_roster([Person("Alice", [axis(0)])])
        with pytest.raises(ValueError):
            matcher.classify([0.0, 1.0])


class TestSnapshot:
    def test_snapshot_is_a_copy(self, matcher, axis, zeros):
        person = Person("Alice", [axis(0, 0.1)])
        matcher.load_roster([person])
        person.descriptors[0][0] = 5.0
        assert matcher.classify(zeros).label == "Alice"

    def test_load_roster_replaces(self, matcher, axis):
        matcher.load_roster([Person("Alice", [axis(0)])])
        matcher.load_roster([Person("Bob", [axis(1)])])
        assert matcher.names == ["Bob"]

    def test_classify_all_uses_one_snapshot(self, matcher, axis):
        matcher.load_roster([Person("Alice", [axis(0)]), Person("Bob", [axis(1)])])
        results = matcher.classify_all([axis(1), axis(0)])
        assert [r.label for r in results] == ["Bob", "Alice"]


class TestConfidence:
    def test_clamped(self):
        assert confidence_from_distance(1.7) == 0
        assert confidence_from_distance(-0.2) == 100

    def test_rounding(self):
        assert confidence_from_distance(0.0) == 100
        assert confidence_from_distance(0.25) == 75
        assert confidence_from_distance(0.5) == 50
