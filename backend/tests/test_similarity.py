# tests/test_similarity.py
import pytest

from stsync.services.similarity import Anchoring, score

PAIRS = [
    ("the quick brown fox", "the quick brown dog"),
    ("one two", "one two three four five"),
    ("a b c d", "d c b a"),
    ("fox jumps over the dog", "a fox jumps over the dog"),
]


@pytest.mark.parametrize("anchored", list(Anchoring))
def test_identical_strings_score_one(anchored):
    assert score("the quick fox", "the quick fox", anchored) == (1.0, 1.0)
    assert score("", "", anchored) == (1.0, 1.0)


def test_one_empty_side_scores_zero():
    assert score("something", "") == (0.0, 0.0)
    assert score("", "something") == (0.0, 0.0)


@pytest.mark.parametrize("anchored", list(Anchoring))
def test_confidence_is_symmetric(anchored):
    for a, b in PAIRS:
        assert score(a, b, anchored) == score(b, a, anchored)


def test_confidence_does_not_grow_as_overlap_drops():
    base = "one two three four five"
    candidates = [
        "one two three four six",
        "one two three seven six",
        "one eight nine seven six",
        "ten eight nine seven six",
    ]
    scores = [score(base, c) for c in candidates]
    similarities = [s for s, _ in scores]
    confidences = [c for _, c in scores]
    assert similarities == sorted(similarities, reverse=True)
    assert confidences == sorted(confidences, reverse=True)
    assert confidences[-1] == 0.0


def test_left_anchoring_compares_prefixes():
    deleted = "the quick brown fox jumps"
    added = "the quick brown fox jumps over"
    similarity, confidence = score(deleted, added, Anchoring.left)
    assert similarity == 1.0
    assert confidence > 0.9
    assert score(deleted, added)[0] < 0.9


def test_right_anchoring_compares_suffixes():
    similarity, confidence = score("fox jumps over the dog", "a fox jumps over the dog", Anchoring.right)
    assert similarity == 1.0
    assert confidence > 0.9
    assert score("fox jumps over the dog", "a fox jumps over the dog", Anchoring.left)[0] < 0.9
