# tests/test_grouping.py
import random

import pytest

from stsync.core.errors import UnhandledOperationsGroupError
from stsync.models.schemas import AlignedPair, PairKind, Subtitle
from stsync.services.grouping import (
    GroupingState,
    compute_operations_groups,
    fold_operations_groups,
)


def _pairs(*kinds: PairKind) -> list[AlignedPair]:
    return [
        AlignedPair(position=i, kind=kind, subtitle=Subtitle(persistent_id=f"st{i}"))
        for i, kind in enumerate(kinds)
    ]


def _kinds(groups):
    return [[p.kind for p in group] for group in groups]


def test_identical_pairs_form_no_group():
    state, groups = fold_operations_groups(_pairs(PairKind.identical, PairKind.identical))
    assert state == GroupingState.idle
    assert groups == []


def test_left_then_right_is_one_group():
    groups = compute_operations_groups(_pairs(PairKind.left_aligned, PairKind.right_aligned))
    assert _kinds(groups) == [[PairKind.left_aligned, PairKind.right_aligned]]


def test_open_group_closes_before_identical_and_left_aligned():
    groups = compute_operations_groups(_pairs(
        PairKind.mark_added,
        PairKind.left_aligned,
        PairKind.unaligned,
        PairKind.identical,
        PairKind.mark_removed,
    ))
    assert _kinds(groups) == [
        [PairKind.mark_added],
        [PairKind.left_aligned, PairKind.unaligned],
        [PairKind.mark_removed],
    ]


def test_right_aligned_closes_group_itself():
    groups = compute_operations_groups(_pairs(PairKind.unaligned, PairKind.right_aligned, PairKind.unaligned))
    assert _kinds(groups) == [[PairKind.unaligned, PairKind.right_aligned], [PairKind.unaligned]]


def test_invalid_transition_raises():
    with pytest.raises(UnhandledOperationsGroupError):
        fold_operations_groups(_pairs(PairKind.identical), GroupingState.operations_group_active)


def test_fold_returns_to_idle_for_random_sequences():
    rng = random.Random(20240917)
    kinds = list(PairKind)
    for _ in range(500):
        sequence = [rng.choice(kinds) for _ in range(rng.randint(0, 12))]
        if sequence and rng.random() < 0.5:
            sequence.append(PairKind.identical)
        pairs = _pairs(*sequence)
        state, groups = fold_operations_groups(pairs)
        assert state == GroupingState.idle
        grouped = [p.position for group in groups for p in group]
        assert grouped == sorted(set(grouped))
        assert all(group for group in groups)
        assert all(p.kind != PairKind.identical for group in groups for p in group)
        ungrouped = set(range(len(pairs))) - set(grouped)
        assert all(pairs[i].kind == PairKind.identical for i in ungrouped)
