"""
Selection set: records the visitor has ticked (e.g. plants for a garden plan).

Two interchangeable stores: FileSelection keeps the selection in a small
JSON file so it survives between page loads; MemorySelection lasts only as
long as the process. open_selection() picks the file store when it can be
written and quietly falls back to memory otherwise.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Mapping

from content_ids import selection_key

logger = logging.getLogger(__name__)

PROBE_KEY = 'test-key'


class Selection(ABC):
    """Common interface; records are keyed by their identity key values."""

    def __init__(self, id_keys: list[str], sep: str = ' '):
        self.id_keys = list(id_keys)
        self.sep = sep

    def key(self, record: Mapping[str, Any]) -> str:
        return selection_key(record, self.id_keys, self.sep)

    def all(self, records: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
        """Selected records, in collection order."""
        return [r for r in records if r in self]

    @abstractmethod
    def is_empty(self) -> bool:
        pass

    @abstractmethod
    def __contains__(self, record: Mapping[str, Any]) -> bool:
        pass

    @abstractmethod
    def add(self, record: Mapping[str, Any]) -> None:
        pass

    @abstractmethod
    def remove(self, record: Mapping[str, Any]) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class MemorySelection(Selection):

    def __init__(self, id_keys: list[str], sep: str = ' '):
        super().__init__(id_keys, sep)
        self._keys: dict[str, int] = {}

    def is_empty(self) -> bool:
        return not self._keys

    def __contains__(self, record):
        return self.key(record) in self._keys

    def add(self, record):
        self._keys[self.key(record)] = 1

    def remove(self, record):
        self._keys.pop(self.key(record), None)

    def clear(self):
        self._keys = {}


class FileSelection(Selection):
    """Selection stored as a JSON object {key: quantity} (quantity is 1 for now)."""

    def __init__(self, path: Path, id_keys: list[str], sep: str = ' '):
        super().__init__(id_keys, sep)
        self.path = Path(path)

    def _read(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Selection file {self.path} does not hold a JSON object")
        return data

    def _write(self, data: dict[str, int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def probe(self) -> None:
        """Check the store can be read and modified; raises on failure."""
        data = self._read()
        data[PROBE_KEY] = 1
        self._write(data)
        del data[PROBE_KEY]
        self._write(data)

    def is_empty(self) -> bool:
        return not self._read()

    def __contains__(self, record):
        return self.key(record) in self._read()

    def add(self, record):
        data = self._read()
        data[self.key(record)] = 1
        self._write(data)

    def remove(self, record):
        data = self._read()
        if data.pop(self.key(record), None) is not None:
            self._write(data)

    def clear(self):
        self._write({})


def open_selection(path: Path | None, id_keys: list[str], sep: str = ' ') -> Selection:
    """File-backed selection if path is usable, in-memory selection otherwise."""
    if path is not None:
        store = FileSelection(path, id_keys, sep)
        try:
            store.probe()
            return store
        except (OSError, ValueError) as e:
            logger.info(f"Selection file not available; falling back on memory ({type(e).__name__}: {e})")
    return MemorySelection(id_keys, sep)
