# tests/conftest.py
from pathlib import Path
import pytest

from fakes import FakeGitRepository
from stsync.core.config import Settings
from stsync.models.schemas import Hunk, HunkLine, LineOrigin, Subtitle


@pytest.fixture
def primary_repo(tmp_path: Path) -> FakeGitRepository:
    return FakeGitRepository(tmp_path / "primary", name="primary")


@pytest.fixture
def foreign_root(tmp_path: Path) -> Path:
    root = tmp_path / "foreign"
    root.mkdir()
    return root


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings that never touch a network remote or a .env file."""
    return Settings(
        _env_file=None,
        primary_repo_path=str(tmp_path / "primary"),
        st_ops_dir=str(tmp_path / "st_ops"),
        git_check_remote=False,
        derivation_workers=2,
        transfer_workers=2,
    )


@pytest.fixture
def make_subtitles():
    def _make(*ids: str, record_id: str = "rec1") -> list[Subtitle]:
        return [Subtitle(persistent_id=i, record_id=record_id) for i in ids]
    return _make


@pytest.fixture
def make_hunk():
    """Hunk with the given deleted lines followed by the given added lines."""
    def _make(deleted: list[str], added: list[str], old_start: int = 1) -> Hunk:
        lines = [
            HunkLine(origin=LineOrigin.deletion, content=text, old_line_no=old_start + i)
            for i, text in enumerate(deleted)
        ] + [HunkLine(origin=LineOrigin.addition, content=text) for text in added]
        return Hunk(
            old_start=old_start,
            old_lines=len(deleted),
            new_start=old_start,
            new_lines=len(added),
            lines=lines,
        )
    return _make
