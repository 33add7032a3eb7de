from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Protocol

from .models import PerformanceSnapshot


logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def load(self) -> Optional[PerformanceSnapshot]:
        ...

    def save(self, snapshot: PerformanceSnapshot) -> None:
        ...


class NullSnapshotStore:
    """Every session starts from the default snapshot."""

    def load(self) -> Optional[PerformanceSnapshot]:
        return None

    def save(self, snapshot: PerformanceSnapshot) -> None:
        return None


class JsonFileSnapshotStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> Optional[PerformanceSnapshot]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable snapshot file %s", self.path)
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring snapshot file %s without a JSON object", self.path)
            return None
        try:
            return PerformanceSnapshot.from_dict(data)
        except (ValueError, TypeError, AttributeError, OverflowError):
            logger.warning("Ignoring snapshot file %s with invalid fields", self.path, exc_info=True)
            return None

    def save(self, snapshot: PerformanceSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(snapshot.to_dict(), indent=2))


def snapshot_store_for(path: Optional[Path]) -> SnapshotStore:
    return JsonFileSnapshotStore(path) if path else NullSnapshotStore()
