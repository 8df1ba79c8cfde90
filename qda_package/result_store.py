"""Result stores for analysis payloads.

The analysis core never persists anything itself. Callers that want to reuse
results across runs inject a store into `QuantitativeDriverAnalysis`; payloads
are plain JSON-compatible dictionaries keyed by the input data hash.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ResultStore(ABC):
    """Keyed storage for serialized analysis results."""

    @abstractmethod
    def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Stored payload for `key`, or None on a miss."""

    @abstractmethod
    def save(self, key: str, payload: Dict[str, Any]) -> None:
        """Store `payload` under `key`, replacing any previous value."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every stored payload."""


class InMemoryResultStore(ResultStore):
    """Process-local store, useful in notebooks and tests."""

    def __init__(self) -> None:
        self._payloads: Dict[str, Dict[str, Any]] = {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        payload = self._payloads.get(key)
        # callers get a copy so cached results stay untouched
        return json.loads(json.dumps(payload)) if payload is not None else None

    def save(self, key: str, payload: Dict[str, Any]) -> None:
        self._payloads[key] = json.loads(json.dumps(payload))

    def clear(self) -> None:
        self._payloads.clear()

    def __len__(self) -> int:
        return len(self._payloads)


class JsonFileResultStore(ResultStore):
    """One JSON file per key inside a directory.

    Args:
        directory: Folder holding the payload files (created on first save)
    """

    SUFFIX = '.json'

    def __init__(self, directory: str) -> None:
        self.directory = directory
        self.logger = logging.getLogger(__name__)

    def _path(self, key: str) -> str:
        safe_key = ''.join(c if c.isalnum() or c in '-_' else '_' for c in key)
        return os.path.join(self.directory, safe_key + self.SUFFIX)

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Ignoring unreadable cached results {path}: {e}")
            return None

    def save(self, key: str, payload: Dict[str, Any]) -> None:
        os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2)
        self.logger.info(f"Saved analysis results to {path}")

    def clear(self) -> None:
        if not os.path.isdir(self.directory):
            return
        for name in os.listdir(self.directory):
            if name.endswith(self.SUFFIX):
                os.remove(os.path.join(self.directory, name))
