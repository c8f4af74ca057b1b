"""In-memory cache of the active template text per category."""

from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple


class TemplateCache:
    """Category-keyed cache of whole template strings.

    Readers take a :meth:`token` before they consult the store and pass it
    back to :meth:`put`. Every invalidation bumps the category's generation,
    so a value loaded before an invalidation is discarded instead of
    re-populating the cache with stale text.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, str] = {}
        self._generations: Dict[str, int] = {}
        self._epoch = 0

    def get(self, category: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(category)

    def token(self, category: str) -> Tuple[int, int]:
        with self._lock:
            return self._epoch, self._generations.get(category, 0)

    def put(self, category: str, template: str, token: Tuple[int, int]) -> bool:
        """Store ``template`` unless the category was invalidated since ``token``."""
        with self._lock:
            if token != (self._epoch, self._generations.get(category, 0)):
                return False
            self._entries[category] = template
            return True

    def invalidate(self, category: Optional[str] = None) -> None:
        """Drop one category, or every category when ``category`` is ``None``."""
        with self._lock:
            if category is None:
                self._entries.clear()
                self._epoch += 1
            else:
                self._entries.pop(category, None)
                self._generations[category] = self._generations.get(category, 0) + 1

    def __contains__(self, category: str) -> bool:
        with self._lock:
            return category in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
