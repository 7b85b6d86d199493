"""Naming conventions for content AT files and the files that travel with them.

``content/47/eng47-0412_0123.at`` has product identity id ``0123``; its
timing store is ``content/47/eng47-0412_0123.subtitle_markers.csv`` and its
file level data lives in ``content/47/eng47-0412_0123.data.json``.
"""

import re
from pathlib import PurePosixPath

CONTENT_AT_EXTENSION = ".at"
TIMING_STORE_SUFFIX = ".subtitle_markers.csv"
IMPORT_MARKERS_SUFFIX = ".subtitle_import.markers.csv"
DATA_JSON_SUFFIX = ".data.json"
REPOSITORY_DATA_JSON = "data.json"

_PRODUCT_IDENTITY_ID = re.compile(r"_(\d{4})\.at$")


def is_content_at_file(path: str, content_dir_name: str = "content") -> bool:
    p = PurePosixPath(path)
    return (
        content_dir_name in p.parts[:-1]
        and p.suffix == CONTENT_AT_EXTENSION
        and _PRODUCT_IDENTITY_ID.search(p.name) is not None
    )


def product_identity_id(path: str) -> str:
    match = _PRODUCT_IDENTITY_ID.search(PurePosixPath(path).name)
    if not match:
        raise ValueError(f"No product identity id in filename: {path}")
    return match.group(1)


def _with_suffix(content_path: str, suffix: str) -> str:
    if not content_path.endswith(CONTENT_AT_EXTENSION):
        raise ValueError(f"Not a content AT file: {content_path}")
    return content_path[: -len(CONTENT_AT_EXTENSION)] + suffix


def timing_store_path(content_path: str) -> str:
    return _with_suffix(content_path, TIMING_STORE_SUFFIX)


def import_markers_path(content_path: str) -> str:
    return _with_suffix(content_path, IMPORT_MARKERS_SUFFIX)


def data_json_path(content_path: str) -> str:
    return _with_suffix(content_path, DATA_JSON_SUFFIX)
