# tests/test_repository_operations.py
import pytest

from fakes import PRIMARY_FILE, timing_csv
from stsync.core.errors import OperationsStoreError, StaleCommitRangeError
from stsync.models.schemas import OperationsForRepository
from stsync.services.operations_store import OperationsStore
from stsync.services.repository_operations import (
    compute_repository_operations,
    extract_or_load_repository_operations,
)
from stsync.utils.filenames import timing_store_path

SECOND_FILE = "content/48/eng48-0001_0456.at"


@pytest.fixture
def two_file_repo(primary_repo):
    first = primary_repo.commit({
        PRIMARY_FILE: "@a b c @d e f\n",
        timing_store_path(PRIMARY_FILE): timing_csv(["st1", "st2"]),
        SECOND_FILE: "@one two three\n@four five six\n",
        timing_store_path(SECOND_FILE): timing_csv(["x1", "x2"]),
        "content/README.md": "notes\n",
    })
    second = primary_repo.commit({
        PRIMARY_FILE: "@a b c\n",
        SECOND_FILE: "@one two three\n@four five six\n",
        "content/README.md": "more notes\n",
    })
    return primary_repo, first, second


def test_only_changed_content_files_with_operations_are_kept(two_file_repo):
    repo, first, second = two_file_repo
    ops = compute_repository_operations(repo, first, second)
    assert ops.repository_name == "primary"
    assert [f.file_path for f in ops.files] == [PRIMARY_FILE]
    assert ops.for_product("0123").operations[0].operation_type == "delete"
    assert ops.for_product("0456") is None


def test_file_list_restricts_the_files(two_file_repo):
    repo, first, second = two_file_repo
    ops = compute_repository_operations(repo, first, second, file_list=[SECOND_FILE])
    assert ops.files == []
    assert ("diff", first, second, (PRIMARY_FILE,)) not in repo.calls


def test_to_commit_must_be_latest(two_file_repo):
    repo, first, second = two_file_repo
    with pytest.raises(StaleCommitRangeError) as exc_info:
        compute_repository_operations(repo, first, first)
    assert exc_info.value.recoverable


def test_files_deleted_by_to_commit_are_skipped(primary_repo):
    first = primary_repo.commit({PRIMARY_FILE: "@a\n", timing_store_path(PRIMARY_FILE): timing_csv(["st1"])})
    primary_repo.commits.append(("f" * 40, {}))
    ops = compute_repository_operations(primary_repo, first, "f" * 40)
    assert ops.files == []


def test_extract_or_load_caches_by_commit_range(two_file_repo, tmp_path):
    repo, first, second = two_file_repo
    store = OperationsStore(tmp_path / "st_ops")

    ops, created = extract_or_load_repository_operations(store, repo, first, second, max_workers=2)
    assert created
    assert store.path_for(first, second).exists()

    diff_calls = len([c for c in repo.calls if c[0] == "diff"])
    cached, created = extract_or_load_repository_operations(store, repo, first, second)
    assert not created
    assert cached == ops
    assert len([c for c in repo.calls if c[0] == "diff"]) == diff_calls


def test_store_rejects_file_from_another_range(tmp_path):
    store = OperationsStore(tmp_path)
    ops = OperationsForRepository(repository_name="primary", from_commit="abcdef111", to_commit="123456999")
    store.save(ops)
    assert store.load("abcdef111", "123456999") == ops
    with pytest.raises(OperationsStoreError):
        store.load("abcdef222", "123456999")


def test_store_chain(tmp_path):
    store = OperationsStore(tmp_path)
    for from_commit, to_commit in [("aaaaaa1", "bbbbbb1"), ("bbbbbb1", "cccccc1"), ("zzzzzz1", "yyyyyy1")]:
        store.save(OperationsForRepository(repository_name="primary", from_commit=from_commit, to_commit=to_commit))

    chain = store.chain("aaaaaa1", "cccccc1")
    assert [(ops.from_commit, ops.to_commit) for ops in chain] == [("aaaaaa1", "bbbbbb1"), ("bbbbbb1", "cccccc1")]
    assert store.chain("aaaaaa1", "aaaaaa1") == []
    with pytest.raises(OperationsStoreError):
        store.chain("aaaaaa1", "yyyyyy1")


def test_latest_operations_file_is_the_end_of_the_chain(tmp_path):
    store = OperationsStore(tmp_path / "st_ops")
    assert store.latest() is None
    for from_commit, to_commit in [("2" * 40, "3" * 40), ("1" * 40, "2" * 40)]:
        store.save(OperationsForRepository(repository_name="primary", from_commit=from_commit, to_commit=to_commit))
    assert store.latest().to_commit == "3" * 40
