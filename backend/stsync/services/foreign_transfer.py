"""Replaying primary subtitle operations onto foreign content files.

The core is ``transfer_operations_to_foreign_file``: a loop over the
applicable operation sets that threads an immutable ``ForeignFileState``
through each step. Writing to disk and reading back is the ``persist``
argument, so the loop itself has no I/O.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional

import structlog
from pydantic import BaseModel

from stsync.core.errors import SubtitleCountMismatchError, SubtitleSyncError
from stsync.models.schemas import FileSyncData, OperationsForFile, OperationsForRepository, Subtitle
from stsync.services.captions import count_marks
from stsync.services.operations_store import OperationsStore
from stsync.services.sync_data import DataJsonFile, merge_review_flags
from stsync.services.text_transform import ForeignTextTransformer
from stsync.services.timing_store import parse_timing_csv
from stsync.utils.filenames import data_json_path, is_content_at_file, product_identity_id, timing_store_path
from stsync.utils.files import atomic_write

logger = structlog.get_logger()


class ForeignFileState(BaseModel):
    file_path: str
    content: str
    st_sync_commit: Optional[str] = None
    subtitles_to_review: dict[str, str] = {}

    model_config = {"frozen": True}


SnapshotLoader = Callable[[OperationsForFile], tuple[list[Subtitle], list[Subtitle]]]
Persist = Callable[[ForeignFileState], ForeignFileState]


def _unchanged(state: ForeignFileState) -> ForeignFileState:
    return state


def applicable_operations(operations_sets: list[OperationsForRepository], product_identity_id: str) -> list[OperationsForFile]:
    """The file's operations from each set, in set order. Sets that don't touch it are skipped."""
    result = []
    for ops in operations_sets:
        ops_for_file = ops.for_product(product_identity_id)
        if ops_for_file is not None:
            result.append(ops_for_file)
    return result


def apply_operations_for_file(
    state: ForeignFileState,
    operations_for_file: OperationsForFile,
    transformer: ForeignTextTransformer,
    from_subtitles: list[Subtitle],
    to_subtitles: list[Subtitle],
) -> ForeignFileState:
    """One step: transform the text, check the mark count, merge flags, advance the pointer."""
    new_content = transformer.apply(operations_for_file, state.content, from_subtitles, to_subtitles)
    expected = count_marks(state.content) + operations_for_file.subtitles_count_delta
    if count_marks(new_content) != expected:
        raise SubtitleCountMismatchError(
            "Foreign subtitle count mismatch after applying operations",
            file=state.file_path,
            expected=expected,
            actual=count_marks(new_content),
        )
    return state.model_copy(update={
        "content": new_content,
        "st_sync_commit": operations_for_file.to_commit,
        "subtitles_to_review": merge_review_flags(
            state.subtitles_to_review, operations_for_file.subtitles_requiring_review
        ),
    })


def transfer_operations_to_foreign_file(
    state: ForeignFileState,
    operations_for_files: list[OperationsForFile],
    transformer: ForeignTextTransformer,
    load_snapshots: SnapshotLoader,
    to_commit: str,
    persist: Optional[Persist] = None,
) -> ForeignFileState:
    """Apply each operation set in order, persisting after every step.

    A state already at to_commit is returned unchanged. Without applicable
    sets only the sync pointer moves.
    """
    if persist is None:
        persist = _unchanged
    if state.st_sync_commit == to_commit:
        logger.debug("foreign_file_up_to_date", file=state.file_path, commit=to_commit)
        return state

    for ops_for_file in operations_for_files:
        from_subtitles, to_subtitles = load_snapshots(ops_for_file)
        try:
            next_state = apply_operations_for_file(state, ops_for_file, transformer, from_subtitles, to_subtitles)
        except SubtitleSyncError as e:
            raise e.with_context(
                file=state.file_path,
                from_commit=ops_for_file.from_commit,
                to_commit=ops_for_file.to_commit,
            )
        state = persist(next_state)
        logger.info(
            "foreign_operations_applied",
            file=state.file_path,
            operations=len(ops_for_file.operations),
            to_commit=ops_for_file.to_commit,
        )

    if state.st_sync_commit != to_commit:
        state = persist(state.model_copy(update={"st_sync_commit": to_commit}))
    return state


class ForeignFileTransfer:
    """Binds the transfer loop to a foreign content file and its data.json."""

    def __init__(self, foreign_repo_path: str | Path, file_path: str, primary_repo, transformer: ForeignTextTransformer):
        self.root = Path(foreign_repo_path)
        self.file_path = file_path
        self.primary_repo = primary_repo
        self.transformer = transformer
        self.data_json = DataJsonFile(self.root / data_json_path(file_path))

    def load_state(self) -> ForeignFileState:
        sync_data = self.data_json.read_sync_data()
        return ForeignFileState(
            file_path=self.file_path,
            content=(self.root / self.file_path).read_text(encoding="utf-8"),
            st_sync_commit=sync_data.st_sync_commit,
            subtitles_to_review=sync_data.subtitles_to_review,
        )

    def load_snapshots(self, ops_for_file: OperationsForFile) -> tuple[list[Subtitle], list[Subtitle]]:
        path = timing_store_path(ops_for_file.file_path)
        from_text = self.primary_repo.read_file_at(ops_for_file.from_commit, path)
        to_text = self.primary_repo.read_file_at_next_commit_or_current(ops_for_file.to_commit, path)
        return parse_timing_csv(from_text or ""), parse_timing_csv(to_text or "")

    def persist(self, state: ForeignFileState) -> ForeignFileState:
        """Write the step's content, then its data.json, and reload both.

        Each write is atomic but the pair is not. A crash after the content
        write leaves the new text next to the previous st_sync_commit, and a
        re-run applies that step's operations a second time. Such a file has
        to be reset from git before syncing again.
        """
        content_path = self.root / self.file_path
        if content_path.read_text(encoding="utf-8") != state.content:
            atomic_write(state.content, content_path)
        self.data_json.write_sync_data(FileSyncData(
            st_sync_commit=state.st_sync_commit,
            subtitles_to_review=state.subtitles_to_review,
        ))
        return self.load_state()

    def run(self, operations_for_files: list[OperationsForFile], to_commit: str) -> ForeignFileState:
        return transfer_operations_to_foreign_file(
            self.load_state(),
            operations_for_files,
            self.transformer,
            self.load_snapshots,
            to_commit,
            persist=self.persist,
        )


def foreign_content_files(repo_path: str | Path, content_dir_name: str = "content") -> list[str]:
    root = Path(repo_path)
    return sorted(
        rel for rel in (p.relative_to(root).as_posix() for p in root.rglob("*.at"))
        if is_content_at_file(rel, content_dir_name)
    )


def _sync_file(foreign_repo_path, file_path, primary_repo, store, to_commit, transformer) -> str:
    transfer = ForeignFileTransfer(foreign_repo_path, file_path, primary_repo, transformer)
    sync_commit = transfer.data_json.read_sync_data().st_sync_commit
    if sync_commit is None:
        return "not_sync_active"
    if sync_commit == to_commit:
        return "up_to_date"
    applicable = applicable_operations(store.chain(sync_commit, to_commit), product_identity_id(file_path))
    transfer.run(applicable, to_commit)
    return "synced" if applicable else "advanced"


def sync_foreign_repository(
    foreign_repo_path: str | Path,
    primary_repo,
    store: OperationsStore,
    to_commit: str,
    transformer: ForeignTextTransformer,
    *,
    max_workers: int = 4,
    content_dir_name: str = "content",
) -> dict[str, str]:
    """Bring every sync-active content file of a foreign repository to to_commit.

    Files are processed concurrently; operation sets within a file in order.
    Returns file path -> status. The first failure is raised after all files
    have been attempted.
    """
    files = foreign_content_files(foreign_repo_path, content_dir_name)
    statuses: dict[str, str] = {}
    errors: list[Exception] = []
    logger.info("foreign_repository_sync_start", repo=str(foreign_repo_path), files=len(files), to_commit=to_commit)
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(files) or 1))) as pool:
        futures = {
            pool.submit(_sync_file, foreign_repo_path, f, primary_repo, store, to_commit, transformer): f
            for f in files
        }
        for future in as_completed(futures):
            file_path = futures[future]
            try:
                statuses[file_path] = future.result()
            except SubtitleSyncError as e:
                logger.error("foreign_file_sync_failed", file=file_path, error=str(e))
                statuses[file_path] = "failed"
                errors.append(e)
    if errors:
        raise errors[0]
    logger.info("foreign_repository_sync_done", repo=str(foreign_repo_path), statuses=statuses)
    return statuses
