# tests/test_hunk_operations.py
import pytest

from stsync.core.errors import (
    ContentHunkMismatchError,
    MissingAnchorError,
    UnhandledOperationsGroupError,
    UnsupportedHunkShapeError,
)
from stsync.models.schemas import (
    AlignedPair,
    DeleteOperation,
    Hunk,
    HunkLine,
    InsertOperation,
    LineOrigin,
    MergeOperation,
    MoveLeftOperation,
    MoveRightOperation,
    PairKind,
    SplitOperation,
    Subtitle,
)
from stsync.services.captions import count_marks, split_into_captions
from stsync.services.hunk_operations import (
    classify_pair,
    compute_hunk_operations,
    hunk_signature,
    operations_for_pairs,
)


def test_insertion_between_subtitles(make_hunk, make_subtitles):
    hunk = make_hunk(["@one two three @four five six\n"], ["@one two three @new words here @four five six\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert len(ops) == 1
    assert isinstance(ops[0], InsertOperation)
    assert ops[0].affected_subtitle_ids == ["tmp-st1+1"]
    assert ops[0].after_subtitle_id == "st1"
    assert ops[0].affected_subtitles[0].after_text == "new words here "


def test_insertion_after_text_owned_by_preceding_subtitle(make_hunk, make_subtitles):
    hunk = make_hunk(["word1@word2\n"], ["word1@wordNew@word2\n"])
    ops = compute_hunk_operations(
        hunk, make_subtitles("st2"), preceding_subtitle=Subtitle(persistent_id="st1")
    )
    assert [(op.operation_type, op.affected_subtitle_ids) for op in ops] == [("insert", ["tmp-st1+2"])]
    assert ops[0].after_subtitle_id == "st1"


def test_insertion_at_start_needs_an_anchor(make_hunk, make_subtitles):
    hunk = make_hunk(["@a b c\n"], ["@new @a b c\n"])
    with pytest.raises(MissingAnchorError):
        compute_hunk_operations(hunk, make_subtitles("st1"))

    ops = compute_hunk_operations(hunk, make_subtitles("st1"), preceding_subtitle=Subtitle(persistent_id="st0"))
    assert ops[0].affected_subtitle_ids == ["tmp-st0+1"]
    assert ops[0].after_subtitle_id == "st0"


def test_deletion(make_hunk, make_subtitles):
    hunk = make_hunk(["@a b c @d e f\n"], ["@a b c\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert len(ops) == 1
    assert isinstance(ops[0], DeleteOperation)
    assert ops[0].affected_subtitle_ids == ["st2"]
    assert ops[0].after_subtitle_id == "st1"


def test_merge_removes_the_later_subtitle(make_hunk, make_subtitles):
    hunk = make_hunk(["@sentence one. @Sentence two.\n"], ["@sentence one. Sentence two.\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert len(ops) == 1
    assert isinstance(ops[0], MergeOperation)
    assert ops[0].affected_subtitle_ids == ["st1", "st2"]
    assert ops[0].removed_subtitle_id == "st2"


def test_split_adds_the_later_subtitle(make_hunk, make_subtitles):
    hunk = make_hunk(["@sentence one. Sentence two.\n"], ["@sentence one. @Sentence two.\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1"))
    assert len(ops) == 1
    assert isinstance(ops[0], SplitOperation)
    assert ops[0].affected_subtitle_ids == ["st1", "tmp-st1+1"]
    assert ops[0].added_subtitle_id == "tmp-st1+1"


def test_split_before_an_unchanged_subtitle(make_hunk, make_subtitles):
    hunk = make_hunk(["@one two three four @five\n"], ["@one two @three four @five\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert [(op.operation_type, op.affected_subtitle_ids) for op in ops] == [
        ("split", ["st1", "tmp-st1+1"]),
    ]


def test_move_right(make_hunk, make_subtitles):
    hunk = make_hunk(["@The quick @fox\n"], ["@The quick fox@\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert len(ops) == 1
    assert isinstance(ops[0], MoveRightOperation)
    assert ops[0].affected_subtitle_ids == ["st1", "st2"]


def test_move_left(make_hunk, make_subtitles):
    hunk = make_hunk(["@The quick @brown fox\n"], ["@The @quick brown fox\n"])
    ops = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert len(ops) == 1
    assert isinstance(ops[0], MoveLeftOperation)
    assert ops[0].affected_subtitle_ids == ["st1", "st2"]


def test_derivation_is_deterministic(make_hunk, make_subtitles):
    hunk = make_hunk(["@sentence one. @Sentence two.\n"], ["@sentence one. Sentence two.\n"])
    first = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    second = compute_hunk_operations(hunk, make_subtitles("st1", "st2"))
    assert [op.model_dump() for op in first] == [op.model_dump() for op in second]


def test_unsupported_hunk_shapes(make_subtitles):
    only_deleted = Hunk(
        old_start=1, old_lines=1, new_start=0, new_lines=0,
        lines=[HunkLine(origin=LineOrigin.deletion, content="@a\n", old_line_no=1)],
    )
    with pytest.raises(UnsupportedHunkShapeError) as exc_info:
        compute_hunk_operations(only_deleted, make_subtitles("st1"))
    assert exc_info.value.signature == ["deletion"]

    with_eof_marker = Hunk(
        old_start=1, old_lines=1, new_start=1, new_lines=1,
        lines=[
            HunkLine(origin=LineOrigin.deletion, content="@a\n", old_line_no=1),
            HunkLine(origin=LineOrigin.addition, content="@a"),
            HunkLine(origin=LineOrigin.eof_newline_added, content=""),
        ],
    )
    assert hunk_signature(with_eof_marker) == [
        LineOrigin.deletion, LineOrigin.addition, LineOrigin.eof_newline_added,
    ]
    with pytest.raises(UnsupportedHunkShapeError):
        compute_hunk_operations(with_eof_marker, make_subtitles("st1"))


def test_mark_count_must_match_subtitles(make_hunk, make_subtitles):
    hunk = make_hunk(["@a b c @d e f\n"], ["@a b c\n"])
    with pytest.raises(ContentHunkMismatchError):
        compute_hunk_operations(hunk, make_subtitles("st1"))


def test_deleted_lines_must_match_file_content(make_hunk, make_subtitles):
    hunk = make_hunk(["@a b c @d e f\n"], ["@a b c\n"])
    with pytest.raises(ContentHunkMismatchError):
        compute_hunk_operations(hunk, make_subtitles("st1", "st2"), expected_deleted_content="@a b c @d e g\n")


def test_classify_pair_anchoring():
    assert classify_pair("@the quick brown fox jumps", "@the quick brown fox jumps over")["kind"] == PairKind.left_aligned
    assert classify_pair("@fox jumps over the dog", "@a fox jumps over the dog")["kind"] == PairKind.right_aligned
    assert classify_pair("@same words here", "@same words here")["kind"] == PairKind.identical
    assert classify_pair("", "@new")["kind"] == PairKind.mark_added
    assert classify_pair("@old", "")["kind"] == PairKind.mark_removed


def test_long_group_emits_one_operation_per_pair():
    def pair(position, kind, persistent_id, delta):
        return AlignedPair(
            position=position,
            kind=kind,
            subtitle=Subtitle(persistent_id=persistent_id),
            content_length_delta=delta,
            mark_count_delta=1 if kind == PairKind.mark_added else 0,
        )

    pairs = [
        pair(0, PairKind.unaligned, "st1", -4),
        pair(1, PairKind.mark_added, "tmp-st1+1", 1),
        pair(2, PairKind.unaligned, "st2", 2),
    ]
    ops = operations_for_pairs(pairs)
    assert [(op.operation_type, op.affected_subtitle_ids) for op in ops] == [
        ("move_right", ["st1"]),
        ("split", ["st1", "tmp-st1+1"]),
        ("move_left", ["tmp-st1+1", "st2"]),
    ]


def test_split_in_long_group_without_neighbour_fails():
    pairs = [
        AlignedPair(position=0, kind=PairKind.mark_added, subtitle=Subtitle(persistent_id="tmp-hunk_start+1"), mark_count_delta=1),
        AlignedPair(position=1, kind=PairKind.unaligned, subtitle=Subtitle(persistent_id="st1")),
        AlignedPair(position=2, kind=PairKind.unaligned, subtitle=Subtitle(persistent_id="st2")),
    ]
    with pytest.raises(MissingAnchorError):
        operations_for_pairs(pairs)


def test_mark_gained_without_a_gap_is_a_split(make_hunk, make_subtitles):
    deleted = "lorem ipsum dolor sit@amet consectetur adipiscing\n"
    added = "@lorem ipsum dolor sit amet@consectetur adipiscing\n"
    ops = compute_hunk_operations(
        make_hunk([deleted], [added]), make_subtitles("st2"), preceding_subtitle=Subtitle(persistent_id="st1")
    )
    assert [op.operation_type for op in ops] == ["split"]
    assert ops[0].added_subtitle_id == "tmp-st1+1"
    assert sum(op.count_delta for op in ops) == count_marks(added) - count_marks(deleted)


def _caption(text):
    return split_into_captions(text)[0]


def test_two_pair_group_uses_mark_changes_not_gaps():
    pairs = [
        AlignedPair(
            position=0, kind=PairKind.mark_added, subtitle=Subtitle(persistent_id="tmp-st1+1"),
            deleted_caption=_caption("lorem ipsum"), added_caption=_caption("@lorem ipsum"),
            mark_count_delta=1,
        ),
        AlignedPair(
            position=1, kind=PairKind.unaligned, subtitle=Subtitle(persistent_id="st2"),
            deleted_caption=_caption("@amet dolor"), added_caption=_caption("@dolor"),
            content_length_delta=-5,
        ),
    ]
    assert not pairs[0].has_gap
    ops = operations_for_pairs(pairs, Subtitle(persistent_id="st1"))
    assert [(op.operation_type, op.affected_subtitle_ids) for op in ops] == [("split", ["tmp-st1+1", "st2"])]


def test_two_pair_group_with_two_mark_changes_fails():
    pairs = [
        AlignedPair(
            position=0, kind=PairKind.mark_added, subtitle=Subtitle(persistent_id="tmp-st1+1"),
            deleted_caption=_caption("lorem ipsum"), added_caption=_caption("@lorem ipsum"),
            mark_count_delta=1,
        ),
        AlignedPair(
            position=1, kind=PairKind.mark_removed, subtitle=Subtitle(persistent_id="st2"),
            deleted_caption=_caption("@amet"), mark_count_delta=-1,
        ),
    ]
    with pytest.raises(UnhandledOperationsGroupError) as exc_info:
        operations_for_pairs(pairs, Subtitle(persistent_id="st1"))
    assert exc_info.value.group == pairs
