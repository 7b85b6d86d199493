import re
import subprocess
from pathlib import Path
from typing import Optional
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from stsync.core.errors import GitCommandError
from stsync.models.schemas import FileDiff, Hunk, HunkLine, LineOrigin

logger = structlog.get_logger()

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_NO_NEWLINE_MARKER = "\\ No newline at end of file"


def parse_unified_diff(text: str) -> list[FileDiff]:
    """Parse `git diff` output into files and hunks.

    Line contents keep their trailing newline. A "No newline at end of file"
    marker strips the newline from the line it follows and is recorded as an
    eof line (added when it follows a deletion, removed when it follows an
    addition).
    """
    diffs: list[FileDiff] = []
    current: Optional[FileDiff] = None
    hunk: Optional[Hunk] = None
    old_line_no = 0

    for raw in text.split("\n"):
        if raw.startswith("diff --git "):
            parts = raw[len("diff --git "):].split(" b/", 1)
            old_path = parts[0][2:] if parts[0].startswith("a/") else parts[0]
            new_path = parts[1] if len(parts) > 1 else old_path
            current = FileDiff(old_path=old_path, new_path=new_path)
            diffs.append(current)
            hunk = None
        elif current is None:
            continue
        elif hunk is None and raw.startswith("--- "):
            if raw != "--- /dev/null":
                current.old_path = raw[len("--- a/"):]
        elif hunk is None and raw.startswith("+++ "):
            if raw != "+++ /dev/null":
                current.new_path = raw[len("+++ b/"):]
        elif raw.startswith("@@"):
            match = _HUNK_HEADER.match(raw)
            if not match:
                raise ValueError(f"Malformed hunk header: {raw}")
            old_start, old_lines, new_start, new_lines = match.groups()
            hunk = Hunk(
                old_start=int(old_start),
                old_lines=int(old_lines) if old_lines is not None else 1,
                new_start=int(new_start),
                new_lines=int(new_lines) if new_lines is not None else 1,
            )
            current.hunks.append(hunk)
            old_line_no = hunk.old_start
        elif hunk is None:
            continue
        elif raw == _NO_NEWLINE_MARKER:
            previous = hunk.lines[-1]
            previous.content = previous.content[:-1]
            origin = LineOrigin.eof_newline_removed if previous.origin == LineOrigin.addition else LineOrigin.eof_newline_added
            hunk.lines.append(HunkLine(origin=origin, content="\n"))
        elif raw.startswith("-"):
            hunk.lines.append(HunkLine(origin=LineOrigin.deletion, content=raw[1:] + "\n", old_line_no=old_line_no))
            old_line_no += 1
        elif raw.startswith("+"):
            hunk.lines.append(HunkLine(origin=LineOrigin.addition, content=raw[1:] + "\n"))
        elif raw.startswith(" "):
            hunk.lines.append(HunkLine(origin=LineOrigin.context, content=raw[1:] + "\n", old_line_no=old_line_no))
            old_line_no += 1
    return diffs


class GitRepository:
    """Thin wrapper around the git binary for one working copy."""

    def __init__(self, path: str | Path, timeout: int = 120):
        self.path = Path(path)
        self.timeout = timeout

    @property
    def name(self) -> str:
        return self.path.resolve().name

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        cmd = ["git", "-c", "core.quotepath=off", *args]
        result = subprocess.run(
            cmd,
            cwd=self.path,
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=self.timeout,
        )
        if check and result.returncode != 0:
            logger.error("git_command_failed", repo=self.name, args=list(args), stderr=result.stderr[:500])
            raise GitCommandError(list(args), result.returncode, result.stderr)
        return result

    def latest_commit_sha(self, path: str = "") -> str:
        args = ["log", "-1", "--pretty=format:%H"]
        if path:
            args += ["--", path]
        return self._run(*args).stdout.strip()

    def current_branch(self) -> str:
        return self._run("rev-parse", "--abbrev-ref", "HEAD").stdout.strip()

    def has_uncommitted_changes(self) -> bool:
        return bool(self._run("status", "--porcelain", "--untracked-files=no").stdout.strip())

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type((GitCommandError, subprocess.TimeoutExpired)),
        reraise=True,
    )
    def remote_head_sha(self, remote: str, branch: str) -> str:
        out = self._run("ls-remote", remote, f"refs/heads/{branch}").stdout.strip()
        return out.split()[0] if out else ""

    def contains_commit(self, sha: str) -> bool:
        return self._run("cat-file", "-e", f"{sha}^{{commit}}", check=False).returncode == 0

    def readiness_issues(self, branch: str, remote: str, check_remote: bool = True) -> list[str]:
        """Reasons this working copy can't take part in a sync. Empty when ready."""
        issues = []
        current = self.current_branch()
        if current != branch:
            issues.append(f"Is not on {branch} branch ({current})")
        if self.has_uncommitted_changes():
            issues.append("Has uncommitted changes")
        if check_remote:
            try:
                remote_sha = self.remote_head_sha(remote, branch)
            except (GitCommandError, subprocess.TimeoutExpired) as e:
                issues.append(f"Could not reach {remote}: {e}")
            else:
                if remote_sha and not self.contains_commit(remote_sha):
                    issues.append(f"Is not up-to-date with {remote}")
        return issues

    def changed_files(self, from_commit: str, to_commit: str) -> list[str]:
        out = self._run("diff", "--name-only", "--no-renames", from_commit, to_commit).stdout
        return [line for line in out.split("\n") if line]

    def diff(
        self,
        from_commit: str,
        to_commit: str,
        paths: Optional[list[str]] = None,
        context_lines: int = 0,
    ) -> list[FileDiff]:
        args = ["diff", f"-U{context_lines}", "--no-color", "--no-renames", "--no-ext-diff", from_commit, to_commit]
        if paths:
            args += ["--", *paths]
        return parse_unified_diff(self._run(*args).stdout)

    def read_file_at(self, commit: str, path: str) -> Optional[str]:
        """File contents as of commit, None if it didn't exist there."""
        result = self._run("show", f"{commit}:{path}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout

    def read_working_file(self, path: str) -> Optional[str]:
        file_path = self.path / path
        if not file_path.exists():
            return None
        return file_path.read_text(encoding="utf-8")

    def next_commit_touching(self, commit: str, path: str) -> Optional[str]:
        """First commit after `commit` (on the path to HEAD) that changed `path`."""
        out = self._run(
            "log", "--reverse", "--ancestry-path", "--format=%H", f"{commit}..HEAD", "--", path
        ).stdout
        shas = [line for line in out.split("\n") if line]
        return shas[0] if shas else None

    def read_file_at_next_commit_or_current(self, commit: str, path: str) -> Optional[str]:
        child = self.next_commit_touching(commit, path)
        if child:
            return self.read_file_at(child, path)
        return self.read_working_file(path)
