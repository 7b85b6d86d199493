from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional
import structlog

from stsync.core.errors import StaleCommitRangeError
from stsync.models.schemas import OperationsForFile, OperationsForRepository
from stsync.services.file_operations import compute_file_operations
from stsync.services.operations_store import OperationsStore
from stsync.utils.filenames import is_content_at_file

logger = structlog.get_logger()


def _file_operations(repo, file_path, from_commit, to_commit, skip_unsupported_hunks) -> Optional[OperationsForFile]:
    if repo.read_file_at(to_commit, file_path) is None:
        logger.info("file_absent_at_to_commit", file=file_path, to_commit=to_commit)
        return None
    return compute_file_operations(
        repo, file_path, from_commit, to_commit, skip_unsupported_hunks=skip_unsupported_hunks
    )


def compute_repository_operations(
    repo,
    from_commit: str,
    to_commit: str,
    file_list: Optional[list[str]] = None,
    *,
    max_workers: int = 4,
    skip_unsupported_hunks: bool = False,
    content_dir_name: str = "content",
) -> OperationsForRepository:
    """Operations for every changed content file in the range.

    to_commit must be the repository's latest local commit. file_list, when
    given, restricts which files are considered.
    """
    latest = repo.latest_commit_sha()
    if latest != to_commit:
        raise StaleCommitRangeError(
            "to_commit is not the latest local commit",
            repo=repo.name,
            to_commit=to_commit,
            latest_commit=latest,
        )

    allowed = set(file_list) if file_list is not None else None
    paths = sorted(
        p for p in repo.changed_files(from_commit, to_commit)
        if is_content_at_file(p, content_dir_name) and (allowed is None or p in allowed)
    )
    logger.info("repository_operations_start", repo=repo.name, from_commit=from_commit, to_commit=to_commit, files=len(paths))

    results: list[OperationsForFile] = []
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(paths) or 1))) as pool:
        futures = {
            pool.submit(_file_operations, repo, p, from_commit, to_commit, skip_unsupported_hunks): p
            for p in paths
        }
        for future in as_completed(futures):
            ops_for_file = future.result()
            if ops_for_file is not None and ops_for_file.operations:
                results.append(ops_for_file)

    results.sort(key=lambda ops: ops.file_path)
    logger.info("repository_operations_done", repo=repo.name, files_with_operations=len(results))
    return OperationsForRepository(
        repository_name=repo.name,
        from_commit=from_commit,
        to_commit=to_commit,
        files=results,
    )


def extract_or_load_repository_operations(
    store: OperationsStore,
    repo,
    from_commit: str,
    to_commit: str,
    file_list: Optional[list[str]] = None,
    **kwargs,
) -> tuple[OperationsForRepository, bool]:
    """Cached operations for the range if present, else compute and cache them.

    Returns (operations, created_new).
    """
    cached = store.load(from_commit, to_commit)
    if cached is not None:
        logger.info("operations_loaded_from_cache", from_commit=from_commit, to_commit=to_commit)
        return cached, False
    ops = compute_repository_operations(repo, from_commit, to_commit, file_list, **kwargs)
    store.save(ops)
    return ops, True
