"""Subtitle timing store: tab separated marker CSV kept next to each content file."""

import csv
import io
from pathlib import Path
from typing import Optional

from stsync.models.schemas import Subtitle, TimeSlice
from stsync.utils.files import atomic_write

TIMING_COLUMNS = ["relativeMS", "samples", "charLength", "persistentId", "recordId"]
IMPORT_MARKER_COLUMNS = ["relativeMS", "samples"]


def _int_or_none(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


def parse_timing_csv(text: str) -> list[Subtitle]:
    reader = csv.DictReader(io.StringIO(text), delimiter="\t")
    subtitles = []
    for row in reader:
        subtitles.append(Subtitle(
            persistent_id=row["persistentId"],
            record_id=row.get("recordId") or None,
            char_length=_int_or_none(row.get("charLength")),
            relative_milliseconds=_int_or_none(row.get("relativeMS")),
            samples=_int_or_none(row.get("samples")),
        ))
    return subtitles


def render_timing_csv(subtitles: list[Subtitle]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, delimiter="\t", lineterminator="\n")
    writer.writerow(TIMING_COLUMNS)
    for s in subtitles:
        writer.writerow([
            s.relative_milliseconds if s.relative_milliseconds is not None else 0,
            s.samples if s.samples is not None else 0,
            s.char_length if s.char_length is not None else 0,
            s.persistent_id,
            s.record_id or "",
        ])
    return buf.getvalue()


def parse_import_markers(text: str) -> list[TimeSlice]:
    """Time slices produced by subtitle import, one per subtitle of the new content."""
    reader = csv.DictReader(io.StringIO(text), delimiter="\t")
    return [
        TimeSlice(relative_milliseconds=int(row["relativeMS"]), samples=int(row["samples"]))
        for row in reader
    ]


class SubtitleTimingStore:
    """Rewrite-all access to one timing CSV file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def rewrite_all(self, subtitles: list[Subtitle]) -> None:
        atomic_write(render_timing_csv(subtitles), self.path)
