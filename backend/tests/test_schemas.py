# tests/test_schemas.py
import pytest
from pydantic import ValidationError

from stsync.core.errors import OperationApplicationError
from stsync.models.schemas import (
    ContentChangeOperation,
    DeleteOperation,
    InsertOperation,
    MergeOperation,
    MoveLeftOperation,
    MoveRightOperation,
    OperationsForFile,
    OperationsForRepository,
    SplitOperation,
    Subtitle,
)


def _subs(*ids):
    return [Subtitle(persistent_id=i, record_id="rec1") for i in ids]


def test_operation_needs_unique_affected_subtitles():
    with pytest.raises(ValidationError):
        MoveLeftOperation(affected_subtitles=[])
    with pytest.raises(ValidationError):
        MoveLeftOperation(affected_subtitles=_subs("st1", "st1"))


def test_count_delta_and_review_per_type():
    classes = [
        InsertOperation, DeleteOperation, SplitOperation, MergeOperation,
        MoveLeftOperation, MoveRightOperation, ContentChangeOperation,
    ]
    assert {cls.model_fields["operation_type"].default: cls.count_delta for cls in classes} == {
        "insert": 1,
        "delete": -1,
        "split": 1,
        "merge": -1,
        "move_left": 0,
        "move_right": 0,
        "content_change": 0,
    }
    review = {cls.model_fields["operation_type"].default for cls in classes if cls.requires_review}
    assert review == {"split", "merge", "move_left", "move_right"}


def test_operations_round_trip_through_json():
    ops = OperationsForRepository(
        repository_name="primary",
        from_commit="a" * 40,
        to_commit="b" * 40,
        files=[OperationsForFile(
            file_path="content/47/eng47-0412_0123.at",
            product_identity_id="0123",
            from_commit="a" * 40,
            to_commit="b" * 40,
            operations=[
                InsertOperation(affected_subtitles=_subs("tmp-st1+1"), after_subtitle_id="st1"),
                MergeOperation(affected_subtitles=_subs("st2", "st3"), removed_subtitle_id="st3"),
            ],
            subtitles_count_delta=0,
            subtitles_requiring_review={"st2": "merge", "st3": "merge"},
        )],
    )
    loaded = OperationsForRepository.model_validate_json(ops.model_dump_json())
    assert loaded == ops
    assert isinstance(loaded.files[0].operations[1], MergeOperation)
    assert loaded.product_identity_ids == ["0123"]


def test_split_inserts_next_to_existing_neighbour():
    subtitles = [Subtitle(persistent_id="st1", record_id="recA"), Subtitle(persistent_id="st2", record_id="recB")]
    after = SplitOperation(
        affected_subtitles=[Subtitle(persistent_id="st2"), Subtitle(persistent_id="tmp-st2+1")],
        added_subtitle_id="tmp-st2+1",
    ).apply_to_subtitles(subtitles)
    assert [(s.persistent_id, s.record_id) for s in after] == [("st1", "recA"), ("st2", "recB"), ("tmp-st2+1", "recB")]

    before = SplitOperation(
        affected_subtitles=[Subtitle(persistent_id="tmp-x"), Subtitle(persistent_id="st1")],
        added_subtitle_id="tmp-x",
    ).apply_to_subtitles(subtitles)
    assert [s.persistent_id for s in before] == ["tmp-x", "st1", "st2"]


def test_applying_to_unknown_subtitles_fails():
    with pytest.raises(OperationApplicationError):
        DeleteOperation(affected_subtitles=_subs("st9"), after_subtitle_id="st1").apply_to_subtitles(_subs("st1"))
    with pytest.raises(OperationApplicationError):
        InsertOperation(affected_subtitles=_subs("tmp-st9+1"), after_subtitle_id="st9").apply_to_subtitles(_subs("st1"))


def test_temporary_ids():
    assert Subtitle(persistent_id="tmp-st1+1").is_temporary
    assert not Subtitle(persistent_id="st1").is_temporary
