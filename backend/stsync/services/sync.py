"""End-to-end subtitle sync: primary operations, primary timing, foreign files."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional
import structlog
from pydantic import BaseModel

from stsync.core.config import Settings, get_settings
from stsync.core.errors import RepositoryNotReadyError, SyncCommitMismatchError
from stsync.services.foreign_transfer import sync_foreign_repository
from stsync.services.operations_store import OperationsStore
from stsync.services.primary_sync import sync_primary_file
from stsync.services.repository_operations import extract_or_load_repository_operations
from stsync.services.sync_data import ST_SYNC_COMMIT, DataJsonFile
from stsync.services.text_transform import ForeignTextTransformer, MarkPositionTransformer
from stsync.utils.filenames import REPOSITORY_DATA_JSON
from stsync.utils.git import GitRepository

logger = structlog.get_logger()


class SyncSummary(BaseModel):
    status: str
    from_commit: str
    to_commit: str
    created_operations: bool = False
    files_with_operations: list[str] = []
    foreign: dict[str, dict[str, str]] = {}


class SubtitleSync:
    def __init__(
        self,
        primary_repo,
        foreign_repos: list,
        store: OperationsStore,
        transformer: Optional[ForeignTextTransformer] = None,
        settings: Optional[Settings] = None,
        file_list: Optional[list[str]] = None,
        from_commit: Optional[str] = None,
        to_commit: Optional[str] = None,
    ):
        self.primary_repo = primary_repo
        self.foreign_repos = foreign_repos
        self.store = store
        self.transformer = transformer or MarkPositionTransformer()
        self.settings = settings or get_settings()
        self.file_list = file_list
        self.from_commit_override = from_commit
        self.to_commit_override = to_commit
        self.repository_data = DataJsonFile(primary_repo.path / REPOSITORY_DATA_JSON)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "SubtitleSync":
        settings = settings or get_settings()
        timeout = settings.git_timeout_seconds
        return cls(
            GitRepository(settings.primary_repo_path, timeout=timeout),
            [GitRepository(p, timeout=timeout) for p in settings.foreign_repo_path_list],
            OperationsStore(settings.st_ops_path),
            settings=settings,
            **kwargs,
        )

    def bounding_commits(self) -> tuple[str, str]:
        from_commit = self.from_commit_override or self.recorded_sync_commit()
        to_commit = self.to_commit_override or self.primary_repo.latest_commit_sha()
        return from_commit, to_commit

    def recorded_sync_commit(self) -> str:
        """The repository's st_sync_commit, checked against the latest cached operations.

        Matching the set's from_commit means it gets reused, matching its
        to_commit means the next set gets created.
        """
        commit = self.repository_data.read_data().get(ST_SYNC_COMMIT)
        if not commit:
            raise ValueError(f"No st_sync_commit recorded for {self.primary_repo.name} and none given")
        latest = self.store.latest()
        if latest is not None and commit[:6] not in (latest.from_commit[:6], latest.to_commit[:6]):
            raise SyncCommitMismatchError(
                "Recorded st_sync_commit does not match the latest operations file",
                st_sync_commit=commit,
                latest_from_commit=latest.from_commit,
                latest_to_commit=latest.to_commit,
            )
        return commit

    def ensure_repositories_ready(self) -> None:
        issues = {}
        for repo in [self.primary_repo, *self.foreign_repos]:
            problems = repo.readiness_issues(
                self.settings.git_branch, self.settings.git_remote, self.settings.git_check_remote
            )
            if problems:
                issues[repo.name] = problems
        if issues:
            raise RepositoryNotReadyError(issues)

    def sync(self) -> SyncSummary:
        from_commit, to_commit = self.bounding_commits()
        if from_commit == to_commit:
            logger.info("subtitles_up_to_date", repo=self.primary_repo.name, commit=to_commit)
            return SyncSummary(status="up_to_date", from_commit=from_commit, to_commit=to_commit)

        self.ensure_repositories_ready()
        logger.info("subtitle_sync_start", from_commit=from_commit, to_commit=to_commit)

        ops, created = extract_or_load_repository_operations(
            self.store,
            self.primary_repo,
            from_commit,
            to_commit,
            self.file_list,
            max_workers=self.settings.derivation_workers,
            skip_unsupported_hunks=self.settings.skip_unsupported_hunks,
            content_dir_name=self.settings.content_dir_name,
        )
        # A reused operations file means the primary timing stores were updated already
        if created:
            for ops_for_file in ops.files:
                sync_primary_file(self.primary_repo, ops_for_file.file_path, from_commit, ops_for_file)

        foreign = self._transfer_to_foreign_repos(to_commit)
        self.repository_data.update_data(**{ST_SYNC_COMMIT: to_commit})
        logger.info("subtitle_sync_done", from_commit=from_commit, to_commit=to_commit, files=len(ops.files))
        return SyncSummary(
            status="synced",
            from_commit=from_commit,
            to_commit=to_commit,
            created_operations=created,
            files_with_operations=[f.file_path for f in ops.files],
            foreign=foreign,
        )

    def _transfer_to_foreign_repos(self, to_commit: str) -> dict[str, dict[str, str]]:
        results: dict[str, dict[str, str]] = {}
        if not self.foreign_repos:
            return results
        with ThreadPoolExecutor(max_workers=max(1, min(self.settings.transfer_workers, len(self.foreign_repos)))) as pool:
            futures = {
                pool.submit(
                    sync_foreign_repository,
                    repo.path,
                    self.primary_repo,
                    self.store,
                    to_commit,
                    self.transformer,
                    max_workers=self.settings.transfer_workers,
                    content_dir_name=self.settings.content_dir_name,
                ): repo.name
                for repo in self.foreign_repos
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return results
