"""Error types raised while deriving and transferring subtitle operations.

Derivation and transfer errors are fatal for the file (or batch) they occur
in. Pre-flight errors (stale commit range, repository not ready) are raised
before any work is done and are marked ``recoverable``: fixing the repository
state and re-running is enough.
"""


class SubtitleSyncError(RuntimeError):
    """Base class. Carries a context dict that is rendered into the message."""

    recoverable = False

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = dict(context)

    def with_context(self, **context) -> "SubtitleSyncError":
        """Add context (file, commit range, ...) while the error propagates."""
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class UnsupportedHunkShapeError(SubtitleSyncError):
    """Hunk line-origin signature other than [deletion, addition]."""

    def __init__(self, signature: list[str], hunk=None, **context):
        super().__init__(f"Unsupported hunk shape: {signature}", signature=signature, **context)
        self.signature = signature
        self.hunk = hunk


class UnhandledOperationsGroupError(SubtitleSyncError):
    """Aligned pairs formed a group (or FSM path) no operation rule covers."""

    def __init__(self, message: str, group=None, **context):
        super().__init__(message, **context)
        self.group = group


class ContentHunkMismatchError(SubtitleSyncError):
    """Hunk content disagrees with the file content or its subtitles."""


class MissingAnchorError(SubtitleSyncError):
    """An insert or delete has no preceding subtitle to anchor on."""


class DataIntegrityError(SubtitleSyncError):
    """Stored subtitle data is inconsistent with the content or operations."""


class SubtitleCountMismatchError(DataIntegrityError):
    """Subtitle counts before/after applying operations do not add up."""


class OperationApplicationError(DataIntegrityError):
    """An operation references subtitles that are not where it expects them."""


class StaleCommitRangeError(SubtitleSyncError):
    """to_commit is not the latest local commit of the repository."""

    recoverable = True


class RepositoryNotReadyError(SubtitleSyncError):
    """One or more repositories failed the pre-flight readiness checks."""

    recoverable = True

    def __init__(self, issues: dict[str, list[str]]):
        lines = [f"{repo}: {', '.join(problems)}" for repo, problems in sorted(issues.items())]
        super().__init__("Repositories are not ready for sync: " + "; ".join(lines))
        self.issues = issues


class OperationsStoreError(SubtitleSyncError):
    """Cached operation sets are missing or do not form a chain."""


class SyncCommitMismatchError(SubtitleSyncError):
    """The recorded st_sync_commit is neither end of the latest cached operations set."""


class GitCommandError(SubtitleSyncError):
    """A git invocation exited with a non-zero status."""

    def __init__(self, command: list[str], returncode: int, stderr: str):
        super().__init__(
            f"git {' '.join(command)} failed",
            returncode=returncode,
            stderr=stderr[:300],
        )
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
