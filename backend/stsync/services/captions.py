"""Caption splitting: text between subtitle marks."""

import re

from stsync.models.schemas import Caption

SUBTITLE_MARK = "@"

_CAPTION_BOUNDARY = re.compile(f"(?={re.escape(SUBTITLE_MARK)})")


def split_into_captions(text: str) -> list[Caption]:
    """Split text into captions that start at each mark.

    Only the first caption may lack a mark. Concatenating the captions'
    text gives back the input.
    """
    parts = [p for p in _CAPTION_BOUNDARY.split(text) if p] or [text]
    return [Caption(text=p, length=len(p), mark_count=p.count(SUBTITLE_MARK)) for p in parts]


def count_marks(text: str) -> int:
    return text.count(SUBTITLE_MARK)


def strip_marks(text: str) -> str:
    return text.replace(SUBTITLE_MARK, "")


def normalize_for_similarity(text: str) -> str:
    """Marks become spaces so adjacent words don't fuse; case is folded."""
    return text.replace(SUBTITLE_MARK, " ").lower()


def caption_char_lengths(content: str) -> list[int]:
    """Mark-stripped length of every caption that starts with a mark, in document order."""
    return [
        len(strip_marks(c.text))
        for c in split_into_captions(content)
        if c.mark_count
    ]
