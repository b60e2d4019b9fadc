"""
Persisted plugin index: unique id -> stored object and metadata.

Storage is delegated to an IndexBackend so tests and embedders can keep the
index in memory or somewhere other than a JSON file.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import ValidationError

from pluginhub.models.plugin import IndexRecord, PluginSource

logger = logging.getLogger(__name__)


class IndexBackend(Protocol):
    def load(self) -> dict[str, Any]: ...

    def save(self, data: dict[str, Any]) -> None: ...


class MemoryIndexBackend:
    def __init__(self, data: Optional[dict[str, Any]] = None):
        self.data: dict[str, Any] = dict(data or {})

    def load(self) -> dict[str, Any]:
        return json.loads(json.dumps(self.data))

    def save(self, data: dict[str, Any]) -> None:
        self.data = json.loads(json.dumps(data))


class JsonFileIndexBackend:
    """Index stored as a JSON file, replaced atomically on every save."""

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to read index {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed index {self.path}")
            return {}
        return data

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(data, indent=2, sort_keys=True) + "\n"
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, suffix=".tmp", prefix=f".{self.path.stem}-"
        )
        closed = False
        try:
            os.write(fd, content.encode("utf-8"))
            os.fsync(fd)
            os.close(fd)
            closed = True
            os.rename(tmp_path, self.path)
        except Exception:
            if not closed:
                os.close(fd)
            if Path(tmp_path).exists():
                os.unlink(tmp_path)
            raise


class PluginIndex:
    """Thread-safe view over an IndexBackend."""

    def __init__(self, backend: IndexBackend):
        self.backend = backend
        self._lock = threading.Lock()
        self._records: dict[str, IndexRecord] = {}
        for unique_id, raw in backend.load().items():
            try:
                self._records[unique_id] = IndexRecord.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping invalid index record {unique_id}: {e}")

    def _save(self) -> None:
        self.backend.save(
            {uid: rec.model_dump(mode="json") for uid, rec in sorted(self._records.items())}
        )

    def get(self, unique_id: str) -> Optional[IndexRecord]:
        with self._lock:
            return self._records.get(unique_id)

    def record(
        self,
        unique_id: str,
        store_path: Path | str,
        version: Optional[str] = None,
        source: PluginSource = PluginSource.LINKED,
        display_name: str = "",
    ) -> IndexRecord:
        rec = IndexRecord(
            store_path=os.fspath(store_path),
            version=version,
            source=source,
            display_name=display_name,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._records[unique_id] = rec
            self._save()
        logger.debug(f"Indexed {unique_id} -> {rec.store_path}")
        return rec

    def remove(self, unique_id: str) -> bool:
        with self._lock:
            if self._records.pop(unique_id, None) is None:
                return False
            self._save()
        return True

    def items(self) -> list[tuple[str, IndexRecord]]:
        with self._lock:
            return sorted(self._records.items())

    def store_paths(self) -> list[str]:
        with self._lock:
            return [rec.store_path for rec in self._records.values()]

    def prune_missing(self) -> list[str]:
        """Drop records whose store path no longer exists. Returns the dropped ids."""
        with self._lock:
            missing = [
                uid for uid, rec in self._records.items() if not os.path.lexists(rec.store_path)
            ]
            for uid in missing:
                del self._records[uid]
            if missing:
                self._save()
        if missing:
            logger.info(f"Pruned {len(missing)} index records with missing objects")
        return missing

    def clear(self) -> None:
        with self._lock:
            self._records.clear()
            self._save()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, unique_id: str) -> bool:
        return unique_id in self._records
