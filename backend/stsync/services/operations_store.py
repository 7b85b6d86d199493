"""On-disk cache of subtitle operations, one JSON file per commit range."""

from pathlib import Path
from typing import Optional

import structlog

from stsync.core.errors import OperationsStoreError
from stsync.models.schemas import OperationsForRepository
from stsync.utils.files import atomic_write

logger = structlog.get_logger()


class OperationsStore:
    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, from_commit: str, to_commit: str) -> Path:
        return self.directory / f"st-ops-{from_commit[:6]}-{to_commit[:6]}.json"

    def load(self, from_commit: str, to_commit: str) -> Optional[OperationsForRepository]:
        path = self.path_for(from_commit, to_commit)
        if not path.exists():
            return None
        ops = self._read(path)
        if ops.from_commit != from_commit or ops.to_commit != to_commit:
            raise OperationsStoreError(
                "Cached operations file belongs to another commit range",
                path=str(path),
                cached_from=ops.from_commit,
                cached_to=ops.to_commit,
            )
        return ops

    def save(self, ops: OperationsForRepository) -> Path:
        path = self.path_for(ops.from_commit, ops.to_commit)
        atomic_write(ops.model_dump_json(indent=2) + "\n", path)
        logger.info("operations_saved", path=str(path), files=len(ops.files))
        return path

    def all(self) -> list[OperationsForRepository]:
        if not self.directory.exists():
            return []
        return [self._read(p) for p in sorted(self.directory.glob("st-ops-*.json"))]

    def latest(self) -> Optional[OperationsForRepository]:
        """The cached set no other set continues from, or None when there are none."""
        sets = self.all()
        starts = {ops.from_commit for ops in sets}
        open_ends = [ops for ops in sets if ops.to_commit not in starts]
        candidates = open_ends or sets
        return candidates[-1] if candidates else None

    def chain(self, from_commit: str, to_commit: str) -> list[OperationsForRepository]:
        """Cached sets leading from from_commit to to_commit, in order."""
        by_from = {ops.from_commit: ops for ops in self.all()}
        result: list[OperationsForRepository] = []
        commit = from_commit
        while commit != to_commit:
            ops = by_from.get(commit)
            if ops is None or len(result) > len(by_from):
                raise OperationsStoreError(
                    "No cached operations continue the chain",
                    at_commit=commit,
                    from_commit=from_commit,
                    to_commit=to_commit,
                )
            result.append(ops)
            commit = ops.to_commit
        return result

    @staticmethod
    def _read(path: Path) -> OperationsForRepository:
        return OperationsForRepository.model_validate_json(path.read_text(encoding="utf-8"))
