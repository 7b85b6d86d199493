"""Updating the primary timing store after its content changed.

Operations tell how the old rows map onto the new subtitles; new time
slices (from subtitle import) and caption lengths (from the current
content) are then merged in by position.
"""

from typing import Optional

import structlog

from stsync.core.errors import DataIntegrityError, SubtitleCountMismatchError
from stsync.models.schemas import OperationsForFile, Subtitle, TimeSlice
from stsync.services.captions import caption_char_lengths
from stsync.services.file_operations import load_subtitles_as_of
from stsync.services.sync_data import ST_SYNC_REQUIRED, DataJsonFile
from stsync.services.timing_store import SubtitleTimingStore, parse_import_markers
from stsync.utils.filenames import data_json_path, import_markers_path, timing_store_path

logger = structlog.get_logger()


def update_primary_subtitles(
    old_subtitles: list[Subtitle],
    new_time_slices: list[TimeSlice],
    new_char_lengths: list[int],
    operations_for_file: Optional[OperationsForFile] = None,
) -> list[Subtitle]:
    delta = operations_for_file.subtitles_count_delta if operations_for_file else 0
    if len(old_subtitles) + delta != len(new_time_slices):
        raise SubtitleCountMismatchError(
            "Subtitle count mismatch",
            old_count=len(old_subtitles),
            count_delta=delta,
            new_count=len(new_time_slices),
        )
    missing = [s.persistent_id for s in old_subtitles if not s.record_id]
    if missing:
        raise DataIntegrityError("Subtitles without record id", persistent_ids=missing[:10])

    subtitles = operations_for_file.apply_to_subtitles(old_subtitles) if operations_for_file else list(old_subtitles)
    if not (len(subtitles) == len(new_time_slices) == len(new_char_lengths)):
        raise SubtitleCountMismatchError(
            "Subtitle count mismatch after applying operations",
            subtitles=len(subtitles),
            time_slices=len(new_time_slices),
            captions=len(new_char_lengths),
        )
    return [
        subtitle.model_copy(update={
            "relative_milliseconds": time_slice.relative_milliseconds,
            "samples": time_slice.samples,
            "char_length": char_length,
            "before_text": None,
            "after_text": None,
        })
        for subtitle, time_slice, char_length in zip(subtitles, new_time_slices, new_char_lengths)
    ]


def sync_primary_file(
    repo,
    content_path: str,
    from_commit: str,
    operations_for_file: Optional[OperationsForFile] = None,
) -> list[Subtitle]:
    """Rewrite the timing store of one primary file for its current content
    and clear the file's sync-required flag."""
    old_subtitles = load_subtitles_as_of(repo, from_commit, content_path)
    markers = repo.read_working_file(import_markers_path(content_path))
    if markers is None:
        raise DataIntegrityError("Missing subtitle import markers", file=content_path)
    content = repo.read_working_file(content_path) or ""

    try:
        subtitles = update_primary_subtitles(
            old_subtitles,
            parse_import_markers(markers),
            caption_char_lengths(content),
            operations_for_file,
        )
    except DataIntegrityError as e:
        raise e.with_context(file=content_path, from_commit=from_commit)

    SubtitleTimingStore(repo.path / timing_store_path(content_path)).rewrite_all(subtitles)
    DataJsonFile(repo.path / data_json_path(content_path)).update_data(**{ST_SYNC_REQUIRED: False})
    logger.info("primary_timing_store_updated", file=content_path, subtitles=len(subtitles))
    return subtitles
