"""Subtitle operations for one content file over a commit range."""

from typing import Optional

import structlog

from stsync.core.errors import SubtitleCountMismatchError, SubtitleSyncError, UnsupportedHunkShapeError
from stsync.models.schemas import Hunk, OperationsForFile, Subtitle, SubtitleOperation
from stsync.services.captions import count_marks
from stsync.services.hunk_operations import compute_hunk_operations
from stsync.services.timing_store import parse_timing_csv
from stsync.utils.filenames import product_identity_id, timing_store_path

logger = structlog.get_logger()


def split_lines(content: str) -> list[str]:
    """Split on newlines only, keeping them, the way git counts lines."""
    parts = content.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def subtitles_count_delta(operations: list[SubtitleOperation]) -> int:
    return sum(op.count_delta for op in operations)


def subtitles_requiring_review(operations: list[SubtitleOperation]) -> dict[str, str]:
    """Subtitle id -> operation type for split/merge/move. First flag wins."""
    flags: dict[str, str] = {}
    for op in operations:
        if not op.requires_review:
            continue
        for persistent_id in op.affected_subtitle_ids:
            flags.setdefault(persistent_id, op.operation_type)
    return flags


def load_subtitles_as_of(repo, commit: str, content_path: str) -> list[Subtitle]:
    """Timing store rows for the content as of commit.

    The store is updated after the content it describes is committed, so its
    state for `commit` is in the next commit that touched it, or still only
    in the working tree.
    """
    text = repo.read_file_at_next_commit_or_current(commit, timing_store_path(content_path))
    if text is None:
        return []
    return parse_timing_csv(text)


def hunk_subtitle_context(
    lines: list[str],
    subtitles: list[Subtitle],
    hunk: Hunk,
) -> tuple[list[Subtitle], Optional[Subtitle], str]:
    """(subtitles in the hunk, subtitle preceding it, expected deleted text)."""
    start = hunk.old_start - 1 if hunk.old_lines else hunk.old_start
    marks_before = count_marks("".join(lines[:start]))
    expected_deleted = "".join(lines[start:start + hunk.old_lines])
    marks_in_hunk = count_marks(expected_deleted)
    hunk_subtitles = subtitles[marks_before:marks_before + marks_in_hunk]
    preceding = subtitles[marks_before - 1] if marks_before else None
    return hunk_subtitles, preceding, expected_deleted


def _derive_operations(repo, file_path, content, from_commit, to_commit, skip_unsupported_hunks) -> list[SubtitleOperation]:
    subtitles = load_subtitles_as_of(repo, from_commit, file_path)
    if len(subtitles) != count_marks(content):
        raise SubtitleCountMismatchError(
            "Timing store and content disagree on subtitle count",
            timing_rows=len(subtitles),
            marks=count_marks(content),
        )

    lines = split_lines(content)
    operations: list[SubtitleOperation] = []
    for file_diff in repo.diff(from_commit, to_commit, paths=[file_path], context_lines=0):
        for hunk in file_diff.hunks:
            hunk_subtitles, preceding, expected_deleted = hunk_subtitle_context(lines, subtitles, hunk)
            try:
                operations.extend(compute_hunk_operations(
                    hunk,
                    hunk_subtitles,
                    preceding_subtitle=preceding,
                    expected_deleted_content=expected_deleted,
                ))
            except UnsupportedHunkShapeError as e:
                if not skip_unsupported_hunks:
                    raise
                logger.warning("unsupported_hunk_skipped", file=file_path, old_start=hunk.old_start, signature=e.signature)
    return operations


def compute_file_operations(
    repo,
    file_path: str,
    from_commit: str,
    to_commit: str,
    *,
    skip_unsupported_hunks: bool = False,
) -> OperationsForFile:
    """Derive the ordered operations for file_path between the two commits."""
    content = repo.read_file_at(from_commit, file_path)
    if content is None:
        logger.info("file_absent_at_from_commit", file=file_path, from_commit=from_commit)
        operations = []
    else:
        try:
            operations = _derive_operations(repo, file_path, content, from_commit, to_commit, skip_unsupported_hunks)
        except SubtitleSyncError as e:
            raise e.with_context(file=file_path, from_commit=from_commit, to_commit=to_commit)

    ops_for_file = OperationsForFile(
        file_path=file_path,
        product_identity_id=product_identity_id(file_path),
        from_commit=from_commit,
        to_commit=to_commit,
        operations=operations,
        subtitles_count_delta=subtitles_count_delta(operations),
        subtitles_requiring_review=subtitles_requiring_review(operations),
    )
    logger.info(
        "file_operations_computed",
        file=file_path,
        operations=len(operations),
        count_delta=ops_for_file.subtitles_count_delta,
    )
    return ops_for_file
