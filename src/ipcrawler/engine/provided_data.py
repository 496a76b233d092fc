"""Shared store for values workflows hand to later levels."""

from __future__ import annotations

import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

# Value stored when a provided key could not be extracted from any source
PROVIDES_PLACEHOLDER = "extracted_by_reporting_pipeline"


class ProvidedDataStore:
    """Thread-safe ``key -> str`` map shared by every workflow of a run.

    Workers never see the underlying dict; ``snapshot`` returns an
    immutable copy taken under the lock.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def update(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._data.update(values)

    def snapshot(self) -> Mapping[str, str]:
        with self._lock:
            return MappingProxyType(dict(self._data))

    def has_valid(self, keys: Iterable[str]) -> bool:
        """Whether any of keys holds a real value.

        Empty strings and the extraction placeholder do not count.
        """
        with self._lock:
            for key in keys:
                value = self._data.get(key)
                if value and value != PROVIDES_PLACEHOLDER:
                    return True
        return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
