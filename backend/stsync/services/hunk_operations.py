"""Derive subtitle operations from a single zero-context diff hunk.

The hunk's deleted and added text are split into captions, the captions are
aligned, and each aligned pair is classified. Pure insertions and pure
deletions of marks are handled directly; everything else goes through the
grouping state machine and one rule per group shape.
"""

from typing import Optional

import structlog

from stsync.core.errors import (
    ContentHunkMismatchError,
    MissingAnchorError,
    UnhandledOperationsGroupError,
    UnsupportedHunkShapeError,
)
from stsync.models.schemas import (
    AlignedPair,
    Caption,
    DeleteOperation,
    Hunk,
    InsertOperation,
    LineOrigin,
    MergeOperation,
    MoveLeftOperation,
    MoveRightOperation,
    PairKind,
    SplitOperation,
    Subtitle,
    SubtitleOperation,
    TEMP_SUBTITLE_ID_PREFIX,
)
from stsync.services.aligner import align_captions
from stsync.services.captions import count_marks, normalize_for_similarity, split_into_captions, strip_marks
from stsync.services.grouping import compute_operations_groups
from stsync.services.similarity import Anchoring, score

logger = structlog.get_logger()

SIMILARITY_THRESHOLD = 0.9
CONFIDENCE_THRESHOLD = 0.9
HUNK_START = "hunk_start"

SUPPORTED_SIGNATURE = [LineOrigin.deletion, LineOrigin.addition]


def hunk_signature(hunk: Hunk) -> list[LineOrigin]:
    """Line origins with consecutive repeats collapsed."""
    signature: list[LineOrigin] = []
    for line in hunk.lines:
        if not signature or signature[-1] != line.origin:
            signature.append(line.origin)
    return signature


def _joined(hunk: Hunk, origin: LineOrigin) -> str:
    return "".join(line.content for line in hunk.lines if line.origin == origin)


def _passes(measure: tuple[float, float]) -> bool:
    similarity, confidence = measure
    return similarity > SIMILARITY_THRESHOLD and confidence > CONFIDENCE_THRESHOLD


def classify_pair(deleted_text: str, added_text: str) -> dict:
    """Measure one aligned pair and decide its kind. Deterministic in its inputs."""
    deleted_norm = normalize_for_similarity(deleted_text)
    added_norm = normalize_for_similarity(added_text)
    sim_abs = score(deleted_norm, added_norm)
    sim_left = score(deleted_norm, added_norm, Anchoring.left)
    sim_right = score(deleted_norm, added_norm, Anchoring.right)
    mark_count_delta = count_marks(added_text) - count_marks(deleted_text)

    if mark_count_delta == 1:
        kind = PairKind.mark_added
    elif mark_count_delta == -1:
        kind = PairKind.mark_removed
    elif _passes(sim_abs):
        kind = PairKind.identical
    elif _passes(sim_left):
        kind = PairKind.left_aligned
    elif _passes(sim_right):
        kind = PairKind.right_aligned
    else:
        kind = PairKind.unaligned

    return {
        "kind": kind,
        "sim_abs": sim_abs,
        "sim_left": sim_left,
        "sim_right": sim_right,
        "content_length_delta": len(added_norm) - len(deleted_norm),
        "mark_count_delta": mark_count_delta,
    }


def build_aligned_pairs(
    aligned_deleted: list[Optional[Caption]],
    aligned_added: list[Optional[Caption]],
    hunk_subtitles: list[Subtitle],
    preceding_subtitle: Optional[Subtitle] = None,
) -> list[AlignedPair]:
    """Classify aligned captions and assign a subtitle to each pair.

    Deleted captions with a mark take the next hunk subtitle; all others get
    a temporary id counted from the most recent real subtitle.
    """
    subtitles = iter(hunk_subtitles)
    anchor_id = preceding_subtitle.persistent_id if preceding_subtitle else HUNK_START
    tmp_offset = 0
    pairs = []
    for position, (deleted, added) in enumerate(zip(aligned_deleted, aligned_added)):
        deleted_text = deleted.text if deleted is not None else ""
        added_text = added.text if added is not None else ""
        if deleted is not None and deleted.mark_count:
            subtitle = next(subtitles, None)
            if subtitle is None:
                raise ContentHunkMismatchError(
                    "More marks in hunk than subtitles", position=position
                )
            anchor_id = subtitle.persistent_id
            tmp_offset = 0
        else:
            tmp_offset += 1
            subtitle = Subtitle(persistent_id=f"{TEMP_SUBTITLE_ID_PREFIX}{anchor_id}+{tmp_offset}")
        subtitle = subtitle.model_copy(update={
            "before_text": strip_marks(deleted_text),
            "after_text": strip_marks(added_text),
        })
        pairs.append(AlignedPair(
            position=position,
            subtitle=subtitle,
            deleted_caption=deleted,
            added_caption=added,
            **classify_pair(deleted_text, added_text),
        ))
    return pairs


def _survives(pair: AlignedPair) -> bool:
    """Whether the pair's subtitle exists once the preceding operations are applied."""
    if pair.kind == PairKind.mark_added:
        return True
    return not pair.subtitle.is_temporary and pair.kind != PairKind.mark_removed


def _neighbour(pairs: list[AlignedPair], position: int, preceding_subtitle: Optional[Subtitle]) -> Optional[Subtitle]:
    for pair in reversed(pairs[:position]):
        if _survives(pair):
            return pair.subtitle
    return preceding_subtitle


def _anchor(pairs: list[AlignedPair], position: int, preceding_subtitle: Optional[Subtitle]) -> Subtitle:
    anchor = _neighbour(pairs, position, preceding_subtitle)
    if anchor is None:
        raise MissingAnchorError(
            "No preceding subtitle to anchor on",
            subtitle=pairs[position].subtitle.persistent_id,
        )
    return anchor


def _single_pair_operation(pair: AlignedPair, pairs: list[AlignedPair], preceding_subtitle) -> list[SubtitleOperation]:
    if pair.kind == PairKind.mark_added:
        anchor = _anchor(pairs, pair.position, preceding_subtitle)
        return [InsertOperation(affected_subtitles=[pair.subtitle], after_subtitle_id=anchor.persistent_id)]
    if pair.kind == PairKind.mark_removed:
        anchor = _anchor(pairs, pair.position, preceding_subtitle)
        return [DeleteOperation(affected_subtitles=[pair.subtitle], after_subtitle_id=anchor.persistent_id)]
    if pair.kind in (PairKind.left_aligned, PairKind.right_aligned, PairKind.unaligned):
        return []
    raise UnhandledOperationsGroupError(f"Unhandled single pair group: {pair.kind.value}", group=[pair])


def _move(affected: list[Subtitle], length_delta: int) -> SubtitleOperation:
    if length_delta < 0:
        return MoveLeftOperation(affected_subtitles=affected)
    return MoveRightOperation(affected_subtitles=affected)


def _two_pair_operation(group: list[AlignedPair]) -> list[SubtitleOperation]:
    # Decided by mark count changes; a pair gaining a mark need not have a gap
    affected = [p.subtitle for p in group]
    delta_pairs = [p for p in group if p.mark_count_delta != 0]
    if not delta_pairs:
        return [_move(affected, group[0].content_length_delta)]
    if len(delta_pairs) == 1:
        delta_pair = delta_pairs[0]
        if delta_pair.mark_count_delta == 1:
            return [SplitOperation(affected_subtitles=affected, added_subtitle_id=delta_pair.subtitle.persistent_id)]
        if delta_pair.mark_count_delta == -1:
            return [MergeOperation(affected_subtitles=affected, removed_subtitle_id=delta_pair.subtitle.persistent_id)]
    raise UnhandledOperationsGroupError(
        f"Unhandled two pair group with {len(delta_pairs)} subtitle mark changes", group=group
    )


def _multi_pair_operations(group: list[AlignedPair], pairs: list[AlignedPair], preceding_subtitle) -> list[SubtitleOperation]:
    operations: list[SubtitleOperation] = []
    cumulative_delta = 0
    for pair in group:
        neighbour = _neighbour(pairs, pair.position, preceding_subtitle)
        affected = [neighbour, pair.subtitle] if neighbour is not None else [pair.subtitle]
        if pair.kind == PairKind.left_aligned:
            pass
        elif pair.kind in (PairKind.right_aligned, PairKind.unaligned):
            operations.append(_move(affected, cumulative_delta))
        elif pair.kind in (PairKind.mark_added, PairKind.mark_removed):
            if neighbour is None:
                raise MissingAnchorError(
                    "No neighbouring subtitle for split/merge",
                    subtitle=pair.subtitle.persistent_id,
                )
            if pair.kind == PairKind.mark_added:
                operations.append(SplitOperation(affected_subtitles=affected, added_subtitle_id=pair.subtitle.persistent_id))
            else:
                operations.append(MergeOperation(affected_subtitles=affected, removed_subtitle_id=pair.subtitle.persistent_id))
        else:
            raise UnhandledOperationsGroupError(f"Unhandled pair in group: {pair.kind.value}", group=group)
        cumulative_delta += pair.content_length_delta
    return operations


def operations_for_pairs(pairs: list[AlignedPair], preceding_subtitle: Optional[Subtitle] = None) -> list[SubtitleOperation]:
    kinds = {p.kind for p in pairs}
    if kinds <= {PairKind.identical, PairKind.mark_added}:
        return [op for p in pairs if p.kind == PairKind.mark_added for op in _single_pair_operation(p, pairs, preceding_subtitle)]
    if kinds <= {PairKind.identical, PairKind.mark_removed}:
        return [op for p in pairs if p.kind == PairKind.mark_removed for op in _single_pair_operation(p, pairs, preceding_subtitle)]

    operations: list[SubtitleOperation] = []
    for group in compute_operations_groups(pairs):
        if len(group) == 1:
            operations.extend(_single_pair_operation(group[0], pairs, preceding_subtitle))
        elif len(group) == 2:
            operations.extend(_two_pair_operation(group))
        else:
            operations.extend(_multi_pair_operations(group, pairs, preceding_subtitle))
    return operations


def compute_hunk_operations(
    hunk: Hunk,
    hunk_subtitles: list[Subtitle],
    preceding_subtitle: Optional[Subtitle] = None,
    expected_deleted_content: Optional[str] = None,
) -> list[SubtitleOperation]:
    """Derive the operations for one hunk.

    hunk_subtitles are the subtitles whose marks are in the deleted text, in
    order. preceding_subtitle owns any text before the first of those marks
    and anchors inserts/deletes when nothing in the hunk can.
    """
    signature = hunk_signature(hunk)
    if signature != SUPPORTED_SIGNATURE:
        raise UnsupportedHunkShapeError([origin.value for origin in signature], hunk=hunk, old_start=hunk.old_start)

    deleted_text = _joined(hunk, LineOrigin.deletion)
    added_text = _joined(hunk, LineOrigin.addition)
    if expected_deleted_content is not None and expected_deleted_content != deleted_text:
        raise ContentHunkMismatchError("Hunk deleted lines differ from file content", old_start=hunk.old_start)
    if count_marks(deleted_text) != len(hunk_subtitles):
        raise ContentHunkMismatchError(
            "Marks in hunk do not match its subtitles",
            old_start=hunk.old_start,
            marks=count_marks(deleted_text),
            subtitles=len(hunk_subtitles),
        )

    aligned_deleted, aligned_added = align_captions(
        split_into_captions(deleted_text), split_into_captions(added_text)
    )
    pairs = build_aligned_pairs(aligned_deleted, aligned_added, hunk_subtitles, preceding_subtitle)
    operations = operations_for_pairs(pairs, preceding_subtitle)
    logger.debug(
        "hunk_operations_computed",
        old_start=hunk.old_start,
        pairs=len(pairs),
        operations=[op.operation_type for op in operations],
    )
    return operations
