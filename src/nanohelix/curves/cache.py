"""Content-addressed cache for fitted helix curves."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Callable, Dict, Mapping, Optional

LOGGER = logging.getLogger(__name__)


def _stable_payload(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


class CurveCache:
    """Thread-safe cache of immutable curve fits keyed by their geometry.

    A key covers every input of the fit, so moving a control point yields a
    new key and the stale fit is simply never looked up again. Readers take a
    reference without locking; writers build outside the lock and publish
    under it.
    """

    def __init__(self, max_entries: int = 256) -> None:
        self._store: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self.max_entries = max_entries

    @staticmethod
    def key(inputs: Mapping[str, Any]) -> str:
        digest = hashlib.sha256()
        digest.update(_stable_payload(inputs).encode("utf-8"))
        return digest.hexdigest()

    def get(self, inputs: Mapping[str, Any]) -> Optional[Any]:
        return self._store.get(self.key(inputs))

    def get_or_fit(self, inputs: Mapping[str, Any], build: Callable[[], Any]) -> Any:
        key = self.key(inputs)
        cached = self._store.get(key)
        if cached is not None:
            return cached
        value = build()
        with self._lock:
            existing = self._store.get(key)
            if existing is not None:
                return existing
            if len(self._store) >= self.max_entries:
                self._store.pop(next(iter(self._store)))
            self._store[key] = value
        LOGGER.debug("CurveCache stored fit %s (entries=%d)", key[:12], len(self._store))
        return value

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)
