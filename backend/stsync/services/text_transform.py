"""Applying a primary file's subtitle operations to foreign language text."""

from typing import Optional

import structlog

from stsync.core.errors import OperationApplicationError, SubtitleCountMismatchError
from stsync.models.schemas import (
    OperationsForFile,
    OperationType,
    Subtitle,
    SubtitleOperation,
)
from stsync.services.captions import SUBTITLE_MARK, count_marks, split_into_captions

logger = structlog.get_logger()


class ForeignTextTransformer:
    """Base class for foreign text transformers."""

    def apply(
        self,
        operations_for_file: OperationsForFile,
        content: str,
        from_subtitles: list[Subtitle],
        to_subtitles: list[Subtitle],
    ) -> str:
        """Return content with the operations applied. from_subtitles are the
        primary subtitles the foreign marks currently correspond to, to_subtitles
        the primary subtitles after the operations."""
        raise NotImplementedError


def _boundary(text: str, ratio: float) -> int:
    """Word boundary in text (after its mark) closest to ratio of its length."""
    start = 1 if text.startswith(SUBTITLE_MARK) else 0
    target = start + ratio * (len(text) - start)
    candidates = [
        i for i in range(start + 1, len(text))
        if text[i - 1].isspace() and not text[i].isspace()
    ]
    if not candidates:
        return len(text.rstrip("\n"))
    return min(candidates, key=lambda i: (abs(i - target), i))


class _MarkedText:
    """Foreign text as leading text plus one caption per mark, keyed by subtitle id."""

    def __init__(self, content: str, subtitle_ids: list[str]):
        captions = [c.text for c in split_into_captions(content)]
        self.leading = "" if captions[0].startswith(SUBTITLE_MARK) else captions.pop(0)
        self.captions = captions
        self.ids = list(subtitle_ids)

    def render(self) -> str:
        return self.leading + "".join(self.captions)

    def index(self, persistent_id: str) -> int:
        try:
            return self.ids.index(persistent_id)
        except ValueError:
            raise OperationApplicationError(
                "Subtitle not present in foreign text", persistent_id=persistent_id
            ) from None

    def insert_mark(self, slot: int, persistent_id: str, ratio: float) -> None:
        """Give persistent_id a new caption at slot, cut from the caption before it."""
        if slot == 0:
            host = self.leading
            cut = _boundary(host, ratio) if host else 0
            self.leading, tail = host[:cut], host[cut:]
        else:
            host = self.captions[slot - 1]
            cut = _boundary(host, ratio)
            self.captions[slot - 1], tail = host[:cut], host[cut:]
        self.captions.insert(slot, SUBTITLE_MARK + tail)
        self.ids.insert(slot, persistent_id)

    def remove_mark(self, persistent_id: str) -> None:
        """Drop a subtitle's mark; its text joins the caption before it."""
        k = self.index(persistent_id)
        text = self.captions.pop(k)[len(SUBTITLE_MARK):]
        self.ids.pop(k)
        if k == 0:
            self.leading += text
        else:
            self.captions[k - 1] += text

    def move_boundary(self, first_id: str, second_id: str, ratio: float) -> None:
        a, b = self.index(first_id), self.index(second_id)
        if b != a + 1:
            raise OperationApplicationError(
                "Moved subtitles are not adjacent in foreign text",
                first=first_id,
                second=second_id,
            )
        combined = self.captions[a] + self.captions[b][len(SUBTITLE_MARK):]
        cut = _boundary(combined, ratio)
        self.captions[a], self.captions[b] = combined[:cut], SUBTITLE_MARK + combined[cut:]


class MarkPositionTransformer(ForeignTextTransformer):
    """Maps the n-th foreign mark to the n-th subtitle of the from snapshot and
    places new boundaries at word boundaries proportional to the primary caption
    lengths."""

    def apply(self, operations_for_file, content, from_subtitles, to_subtitles) -> str:
        if count_marks(content) != len(from_subtitles):
            raise SubtitleCountMismatchError(
                "Foreign marks do not match primary subtitles",
                marks=count_marks(content),
                subtitles=len(from_subtitles),
            )
        text = _MarkedText(content, [s.persistent_id for s in from_subtitles])
        lengths = {s.persistent_id: s.char_length for s in to_subtitles if s.char_length}
        handlers = {
            OperationType.insert: self._insert,
            OperationType.delete: self._delete,
            OperationType.split: self._split,
            OperationType.merge: self._merge,
            OperationType.move_left: self._move,
            OperationType.move_right: self._move,
            OperationType.content_change: self._content_change,
        }
        for op in operations_for_file.operations:
            handlers[OperationType(op.operation_type)](text, op, lengths)
        return text.render()

    @staticmethod
    def _ratio(op: SubtitleOperation, first_id: str, second_id: str, lengths: dict[str, int]) -> float:
        first, second = lengths.get(first_id), lengths.get(second_id)
        if not (first and second):
            texts = {s.persistent_id: s.after_text for s in op.affected_subtitles}
            first = len(texts.get(first_id) or "")
            second = len(texts.get(second_id) or "")
        if not (first or second):
            return 0.5
        return first / (first + second)

    def _insert(self, text: _MarkedText, op, lengths) -> None:
        previous = op.after_subtitle_id
        for subtitle in op.affected_subtitles:
            slot = text.index(previous) + 1
            text.insert_mark(slot, subtitle.persistent_id, self._ratio(op, previous, subtitle.persistent_id, lengths))
            previous = subtitle.persistent_id

    def _delete(self, text: _MarkedText, op, lengths) -> None:
        for persistent_id in op.affected_subtitle_ids:
            text.remove_mark(persistent_id)

    def _split(self, text: _MarkedText, op, lengths) -> None:
        ids = op.affected_subtitle_ids
        pos = ids.index(op.added_subtitle_id)
        before = [i for i in ids[:pos] if i in text.ids]
        after = [i for i in ids[pos + 1:] if i in text.ids]
        if before:
            slot = text.index(before[-1]) + 1
        elif after:
            slot = text.index(after[0])
        else:
            raise OperationApplicationError("Split has no neighbour in foreign text", operation=op.operation_type)
        host: Optional[str] = text.ids[slot - 1] if slot > 0 else None
        ratio = self._ratio(op, host, op.added_subtitle_id, lengths) if host else 0.5
        text.insert_mark(slot, op.added_subtitle_id, ratio)

    def _merge(self, text: _MarkedText, op, lengths) -> None:
        text.remove_mark(op.removed_subtitle_id)

    def _move(self, text: _MarkedText, op, lengths) -> None:
        ids = op.affected_subtitle_ids
        if len(ids) != 2 or not all(i in text.ids for i in ids):
            logger.debug("foreign_move_skipped", subtitles=ids)
            return
        text.move_boundary(ids[0], ids[1], self._ratio(op, ids[0], ids[1], lengths))

    def _content_change(self, text: _MarkedText, op, lengths) -> None:
        pass
