"""JSON file store for processed photo id sets."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from printbooth.services.processed import ProcessedSetStore

_logger = logging.getLogger(__name__)


@dataclass
class JsonFileProcessedSetStore(ProcessedSetStore):
    """Keeps each processed set as a JSON array in its own file."""

    directory: Path

    def load(self, key: str) -> list[str]:
        """Read the ids for a key; missing or broken files read as empty."""
        path = self._path(key)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _logger.warning("Unreadable processed set file", extra={"path": str(path)})
            return []
        if not isinstance(data, list):
            return []
        return [str(item) for item in data]

    def save(self, key: str, ids: list[str]) -> None:
        """Rewrite the file for a key."""
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(ids), encoding="utf-8")
        tmp_path.replace(path)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"
