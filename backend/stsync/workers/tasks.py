import structlog

from stsync.workers.celery_app import celery_app
from stsync.core.config import get_settings
from stsync.core.errors import SubtitleSyncError
from stsync.services.file_operations import compute_file_operations
from stsync.services.foreign_transfer import sync_foreign_repository
from stsync.services.operations_store import OperationsStore
from stsync.services.text_transform import MarkPositionTransformer
from stsync.utils.git import GitRepository

logger = structlog.get_logger()


@celery_app.task(bind=True, max_retries=2, default_retry_delay=30)
def compute_file_operations_task(self, repo_path: str, file_path: str, from_commit: str, to_commit: str):
    """Celery task: derive one primary file's operations, returned as JSON data."""
    settings = get_settings()
    repo = GitRepository(repo_path, timeout=settings.git_timeout_seconds)
    try:
        ops_for_file = compute_file_operations(
            repo, file_path, from_commit, to_commit,
            skip_unsupported_hunks=settings.skip_unsupported_hunks,
        )
    except SubtitleSyncError as e:
        logger.error("compute_file_operations_failed", file=file_path, error=str(e))
        if e.recoverable:
            raise self.retry(exc=e)
        raise
    return ops_for_file.model_dump(mode="json")


@celery_app.task(bind=True, max_retries=2, default_retry_delay=60)
def sync_foreign_repository_task(self, foreign_repo_path: str, to_commit: str):
    """Celery task: transfer cached primary operations to one foreign repository."""
    settings = get_settings()
    primary_repo = GitRepository(settings.primary_repo_path, timeout=settings.git_timeout_seconds)
    store = OperationsStore(settings.st_ops_path)
    try:
        statuses = sync_foreign_repository(
            foreign_repo_path,
            primary_repo,
            store,
            to_commit,
            MarkPositionTransformer(),
            max_workers=settings.transfer_workers,
            content_dir_name=settings.content_dir_name,
        )
    except SubtitleSyncError as e:
        logger.error("foreign_repository_sync_failed", repo=foreign_repo_path, error=str(e))
        if e.recoverable:
            raise self.retry(exc=e)
        raise
    logger.info("foreign_repository_synced", repo=foreign_repo_path, files=len(statuses))
    return {"status": "completed", "files": statuses}
