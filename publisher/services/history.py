"""
HistoryStore - Append-only, size-bounded JSON audit log.

Each write reads the existing array, appends, keeps the newest ``limit``
entries and rewrites the file. Unreadable content is treated as an empty
history. There is no cross-process locking: the last writer wins.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

from ..models import HistoryRecord

logger = logging.getLogger(__name__)

RELEASE_HISTORY_FILE = "upload-history.json"
PREVIEW_HISTORY_FILE = "preview-history.json"
RELEASE_HISTORY_LIMIT = 100
PREVIEW_HISTORY_LIMIT = 50


class HistoryStore:
    """JSON array file keeping the most recent ``limit`` records."""

    def __init__(self, path: Path, limit: int):
        if limit <= 0:
            raise ValueError("History limit must be positive")
        self._path = Path(path)
        self._limit = limit

    @property
    def path(self) -> Path:
        return self._path

    @property
    def limit(self) -> int:
        return self._limit

    def load(self) -> List[Dict[str, Any]]:
        """Read all records; corrupt or missing files read as empty."""
        if not self._path.exists():
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning("[history] %s is not valid JSON (%s), starting fresh", self._path.name, e)
            return []
        except UnicodeDecodeError as e:
            logger.warning("[history] %s is not UTF-8 (%s), starting fresh", self._path.name, e)
            return []

        if not isinstance(data, list):
            logger.warning("[history] %s does not hold a JSON array, starting fresh", self._path.name)
            return []
        return data

    def append(self, record: Union[HistoryRecord, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Append one record, trim to the limit and write back."""
        entry = record.to_dict() if isinstance(record, HistoryRecord) else dict(record)

        history = self.load()
        history.append(entry)
        if len(history) > self._limit:
            history = history[-self._limit:]

        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(history, f, indent=2, ensure_ascii=False)

        logger.debug("[history] Saved %d entries to %s", len(history), self._path.name)
        return history


class PublishHistory:
    """Release and preview stores rooted in one working directory."""

    def __init__(
        self,
        work_dir: Path,
        release_limit: int = RELEASE_HISTORY_LIMIT,
        preview_limit: int = PREVIEW_HISTORY_LIMIT,
    ):
        work_dir = Path(work_dir)
        self.releases = HistoryStore(work_dir / RELEASE_HISTORY_FILE, release_limit)
        self.previews = HistoryStore(work_dir / PREVIEW_HISTORY_FILE, preview_limit)

    def record_release(self, record: HistoryRecord) -> None:
        self.releases.append(record)

    def record_preview(self, record: HistoryRecord) -> None:
        self.previews.append(record)
