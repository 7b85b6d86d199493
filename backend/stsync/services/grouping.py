"""Grouping of aligned pairs into operation groups.

A small state machine run as a pure fold over the pairs. Every pair kind is
an event; two synthetic events close a group (``end_operations_group``) and
return to ``idle`` after a decision (``reset``). A group still open when the
next pair is missing, ``left_aligned`` or ``identical`` is closed in the same
step, so a well-formed sequence always ends in ``idle``.
"""

from enum import Enum
from typing import Optional

from stsync.core.errors import UnhandledOperationsGroupError
from stsync.models.schemas import AlignedPair, PairKind


class GroupingState(str, Enum):
    idle = "idle"
    operations_group_active = "operations_group_active"
    operations_group_found = "operations_group_found"
    no_operation = "no_operation"


END_OPERATIONS_GROUP = "end_operations_group"
RESET = "reset"

_IDLE = GroupingState.idle
_ACTIVE = GroupingState.operations_group_active
_FOUND = GroupingState.operations_group_found
_NO_OP = GroupingState.no_operation

TRANSITIONS: dict[tuple[GroupingState, str], GroupingState] = {
    (_IDLE, PairKind.identical.value): _NO_OP,
    (_IDLE, PairKind.left_aligned.value): _ACTIVE,
    (_IDLE, PairKind.right_aligned.value): _FOUND,
    (_ACTIVE, PairKind.right_aligned.value): _FOUND,
    (_IDLE, PairKind.mark_added.value): _ACTIVE,
    (_ACTIVE, PairKind.mark_added.value): _ACTIVE,
    (_IDLE, PairKind.mark_removed.value): _ACTIVE,
    (_ACTIVE, PairKind.mark_removed.value): _ACTIVE,
    (_IDLE, PairKind.unaligned.value): _ACTIVE,
    (_ACTIVE, PairKind.unaligned.value): _ACTIVE,
    (_ACTIVE, END_OPERATIONS_GROUP): _FOUND,
    (_NO_OP, RESET): _IDLE,
    (_FOUND, RESET): _IDLE,
}

_CLOSES_OPEN_GROUP = {PairKind.identical, PairKind.left_aligned}


def transition(state: GroupingState, event: str) -> GroupingState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise UnhandledOperationsGroupError(
            "Invalid grouping transition", state=state.value, event=event
        ) from None


def fold_operations_groups(
    pairs: list[AlignedPair],
    initial_state: GroupingState = GroupingState.idle,
) -> tuple[GroupingState, list[list[AlignedPair]]]:
    """Fold pairs through the state machine, returning (final_state, groups)."""
    state = initial_state
    pending: list[AlignedPair] = []
    groups: list[list[AlignedPair]] = []
    for index, pair in enumerate(pairs):
        next_pair: Optional[AlignedPair] = pairs[index + 1] if index + 1 < len(pairs) else None
        state = transition(state, pair.kind.value)
        pending = pending + [pair]
        if state == _ACTIVE and (next_pair is None or next_pair.kind in _CLOSES_OPEN_GROUP):
            state = transition(state, END_OPERATIONS_GROUP)
        if state == _FOUND:
            groups = groups + [pending]
        if state in (_FOUND, _NO_OP):
            state = transition(state, RESET)
            pending = []
    return state, groups


def compute_operations_groups(pairs: list[AlignedPair]) -> list[list[AlignedPair]]:
    final_state, groups = fold_operations_groups(pairs)
    if final_state != GroupingState.idle:
        raise UnhandledOperationsGroupError(
            "Grouping did not return to idle", final_state=final_state.value
        )
    return groups
