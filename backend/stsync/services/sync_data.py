"""File and repository level sync metadata stored in ``data.json`` files.

The files hold ``{"data": {...}, "settings": {...}}``. Subtitle sync keeps
its pointer under ``data.st_sync_commit`` and the review flags under
``data.st_sync_subtitles_to_review``.
"""

import json
from pathlib import Path
from typing import Any

from stsync.models.schemas import FileSyncData
from stsync.utils.files import atomic_write

ST_SYNC_COMMIT = "st_sync_commit"
ST_SYNC_SUBTITLES_TO_REVIEW = "st_sync_subtitles_to_review"
ST_SYNC_REQUIRED = "st_sync_required"


def merge_review_flags(existing: dict[str, str], new: dict[str, str]) -> dict[str, str]:
    """Union of both maps. Entries already present are never overwritten."""
    merged = dict(existing)
    for persistent_id, operation_type in new.items():
        merged.setdefault(persistent_id, operation_type)
    return merged


class DataJsonFile:
    def __init__(self, path: str | Path):
        self.path = Path(path)

    def read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {"data": {}, "settings": {}}
        raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        return {"data": raw.get("data", {}), "settings": raw.get("settings", {})}

    def read_data(self) -> dict[str, Any]:
        return self.read()["data"]

    def update_data(self, **values: Any) -> dict[str, Any]:
        """Merge values into the data section and write the file atomically."""
        contents = self.read()
        contents["data"].update(values)
        atomic_write(json.dumps(contents, indent=2, sort_keys=True, ensure_ascii=False) + "\n", self.path)
        return contents["data"]

    def read_sync_data(self) -> FileSyncData:
        data = self.read_data()
        return FileSyncData(
            st_sync_commit=data.get(ST_SYNC_COMMIT),
            subtitles_to_review=data.get(ST_SYNC_SUBTITLES_TO_REVIEW) or {},
        )

    def write_sync_data(self, sync_data: FileSyncData) -> None:
        self.update_data(**{
            ST_SYNC_COMMIT: sync_data.st_sync_commit,
            ST_SYNC_SUBTITLES_TO_REVIEW: sync_data.subtitles_to_review,
        })
