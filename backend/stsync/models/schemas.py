from pydantic import BaseModel, Field, field_validator
from typing import Annotated, ClassVar, Literal, Optional, Union
from enum import Enum

from stsync.core.errors import OperationApplicationError

TEMP_SUBTITLE_ID_PREFIX = "tmp-"


# --- Enums ---
class OperationType(str, Enum):
    insert = "insert"
    delete = "delete"
    merge = "merge"
    split = "split"
    move_left = "move_left"
    move_right = "move_right"
    content_change = "content_change"


class PairKind(str, Enum):
    identical = "identical"
    left_aligned = "left_aligned"
    right_aligned = "right_aligned"
    mark_added = "mark_added"
    mark_removed = "mark_removed"
    unaligned = "unaligned"


class LineOrigin(str, Enum):
    context = "context"
    deletion = "deletion"
    addition = "addition"
    eof_newline_added = "eof_newline_added"
    eof_newline_removed = "eof_newline_removed"


# --- Subtitles and captions ---
class Subtitle(BaseModel):
    """A subtitle as known to the timing store, plus transient edit texts."""

    persistent_id: str
    record_id: Optional[str] = None
    before_text: Optional[str] = None
    after_text: Optional[str] = None
    char_length: Optional[int] = None
    relative_milliseconds: Optional[int] = None
    samples: Optional[int] = None

    @property
    def is_temporary(self) -> bool:
        return self.persistent_id.startswith(TEMP_SUBTITLE_ID_PREFIX)


class TimeSlice(BaseModel):
    relative_milliseconds: int
    samples: int


class Caption(BaseModel):
    text: str
    length: int
    mark_count: int

    model_config = {"frozen": True}


class AlignedPair(BaseModel):
    """One deleted/added caption pair with its similarity measurements."""

    position: int
    kind: PairKind
    subtitle: Subtitle
    deleted_caption: Optional[Caption] = None
    added_caption: Optional[Caption] = None
    sim_left: tuple[float, float] = (0.0, 0.0)
    sim_right: tuple[float, float] = (0.0, 0.0)
    sim_abs: tuple[float, float] = (0.0, 0.0)
    content_length_delta: int = 0
    mark_count_delta: int = 0

    @property
    def has_gap(self) -> bool:
        return self.deleted_caption is None or self.added_caption is None


# --- Diffs ---
class HunkLine(BaseModel):
    origin: LineOrigin
    content: str
    old_line_no: Optional[int] = None


class Hunk(BaseModel):
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: list[HunkLine] = []


class FileDiff(BaseModel):
    old_path: str
    new_path: str
    hunks: list[Hunk] = []


# --- Operations ---
class SubtitleOperation(BaseModel):
    """Common shape of all operation variants."""

    operation_type: str
    operation_id: str = ""
    affected_subtitles: list[Subtitle]

    count_delta: ClassVar[int] = 0
    requires_review: ClassVar[bool] = False

    model_config = {"frozen": True}

    @field_validator("affected_subtitles")
    @classmethod
    def _affected_not_empty_and_unique(cls, value: list[Subtitle]) -> list[Subtitle]:
        if not value:
            raise ValueError("Operation needs at least one affected subtitle")
        ids = [s.persistent_id for s in value]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate affected subtitle ids: {ids}")
        return value

    @property
    def affected_subtitle_ids(self) -> list[str]:
        return [s.persistent_id for s in self.affected_subtitles]

    def apply_to_subtitles(self, subtitles: list[Subtitle]) -> list[Subtitle]:
        """Return the subtitle list after this operation. Count-neutral by default."""
        return list(subtitles)

    def _index_of(self, subtitles: list[Subtitle], persistent_id: str) -> int:
        for i, s in enumerate(subtitles):
            if s.persistent_id == persistent_id:
                return i
        raise OperationApplicationError(
            f"{self.operation_type} references unknown subtitle",
            persistent_id=persistent_id,
        )

    def _insert_next_to_neighbour(self, subtitles: list[Subtitle], new_id: str) -> list[Subtitle]:
        """Insert new_id after the affected subtitle before it, or before the one after it."""
        known = {s.persistent_id for s in subtitles}
        if new_id in known:
            raise OperationApplicationError(
                f"{self.operation_type} would add an existing subtitle", persistent_id=new_id
            )
        ids = self.affected_subtitle_ids
        pos = ids.index(new_id)
        new_subtitle = self.affected_subtitles[pos]
        before = [i for i in ids[:pos] if i in known]
        after = [i for i in ids[pos + 1:] if i in known]
        if before:
            index = self._index_of(subtitles, before[-1])
            neighbour = subtitles[index]
            index += 1
        elif after:
            index = self._index_of(subtitles, after[0])
            neighbour = subtitles[index]
        else:
            raise OperationApplicationError(
                f"{self.operation_type} has no existing neighbour", persistent_id=new_id
            )
        added = new_subtitle.model_copy(update={"record_id": neighbour.record_id})
        return subtitles[:index] + [added] + subtitles[index:]


class InsertOperation(SubtitleOperation):
    operation_type: Literal["insert"] = "insert"
    after_subtitle_id: str
    count_delta: ClassVar[int] = 1

    def apply_to_subtitles(self, subtitles: list[Subtitle]) -> list[Subtitle]:
        index = self._index_of(subtitles, self.after_subtitle_id)
        record_id = subtitles[index].record_id
        added = [s.model_copy(update={"record_id": record_id}) for s in self.affected_subtitles]
        return subtitles[:index + 1] + added + subtitles[index + 1:]


class DeleteOperation(SubtitleOperation):
    operation_type: Literal["delete"] = "delete"
    after_subtitle_id: str
    count_delta: ClassVar[int] = -1

    def apply_to_subtitles(self, subtitles: list[Subtitle]) -> list[Subtitle]:
        for persistent_id in self.affected_subtitle_ids:
            self._index_of(subtitles, persistent_id)
        removed = set(self.affected_subtitle_ids)
        return [s for s in subtitles if s.persistent_id not in removed]


class SplitOperation(SubtitleOperation):
    operation_type: Literal["split"] = "split"
    added_subtitle_id: str
    count_delta: ClassVar[int] = 1
    requires_review: ClassVar[bool] = True

    def apply_to_subtitles(self, subtitles: list[Subtitle]) -> list[Subtitle]:
        return self._insert_next_to_neighbour(subtitles, self.added_subtitle_id)


class MergeOperation(SubtitleOperation):
    operation_type: Literal["merge"] = "merge"
    removed_subtitle_id: str
    count_delta: ClassVar[int] = -1
    requires_review: ClassVar[bool] = True

    def apply_to_subtitles(self, subtitles: list[Subtitle]) -> list[Subtitle]:
        index = self._index_of(subtitles, self.removed_subtitle_id)
        return subtitles[:index] + subtitles[index + 1:]


class MoveLeftOperation(SubtitleOperation):
    operation_type: Literal["move_left"] = "move_left"
    requires_review: ClassVar[bool] = True


class MoveRightOperation(SubtitleOperation):
    operation_type: Literal["move_right"] = "move_right"
    requires_review: ClassVar[bool] = True


class ContentChangeOperation(SubtitleOperation):
    operation_type: Literal["content_change"] = "content_change"


Operation = Annotated[
    Union[
        InsertOperation,
        DeleteOperation,
        SplitOperation,
        MergeOperation,
        MoveLeftOperation,
        MoveRightOperation,
        ContentChangeOperation,
    ],
    Field(discriminator="operation_type"),
]


class OperationsForFile(BaseModel):
    file_path: str
    product_identity_id: str
    from_commit: str
    to_commit: str
    operations: list[Operation] = []
    subtitles_count_delta: int = 0
    subtitles_requiring_review: dict[str, str] = {}

    model_config = {"frozen": True}

    def apply_to_subtitles(self, subtitles: list[Subtitle]) -> list[Subtitle]:
        """Replay all operations, in order, onto an ordered subtitle list."""
        result = list(subtitles)
        for operation in self.operations:
            result = operation.apply_to_subtitles(result)
        return result


class OperationsForRepository(BaseModel):
    repository_name: str
    from_commit: str
    to_commit: str
    files: list[OperationsForFile] = []

    model_config = {"frozen": True}

    def for_product(self, product_identity_id: str) -> Optional[OperationsForFile]:
        for ops in self.files:
            if ops.product_identity_id == product_identity_id:
                return ops
        return None

    @property
    def product_identity_ids(self) -> list[str]:
        return [ops.product_identity_id for ops in self.files]


# --- Sync metadata ---
class FileSyncData(BaseModel):
    st_sync_commit: Optional[str] = None
    subtitles_to_review: dict[str, str] = {}
