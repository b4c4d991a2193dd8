#!/usr/bin/env python3

import threading
import time
from typing import Callable, Dict, Tuple

from prreview.syntax_highlighter import TokenizedLines, Tokenizer, pygments_tokenizer

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193

DEFAULT_CAPACITY = 200


def fingerprint(content: str) -> str:
    """32-bit FNV-1a over the code points of ``content``, as 8 hex digits. Not collision safe."""
    value = FNV_OFFSET_BASIS
    for char in content:
        value ^= ord(char)
        value = (value * FNV_PRIME) & 0xFFFFFFFF
    return f"{value:08x}"


class HighlightCache:
    """
    Bounded cache of tokenized file content keyed by (path, fingerprint).

    When full, an insert first evicts the least recently accessed entry.
    """

    def __init__(
        self,
        tokenizer: Tokenizer = pygments_tokenizer,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.tokenizer = tokenizer
        self.capacity = capacity
        self._clock = clock
        self._entries: Dict[Tuple[str, str], Tuple[TokenizedLines, float]] = {}
        self._lock = threading.Lock()

    def get(self, path: str, content: str) -> TokenizedLines:
        key = (path, fingerprint(content))
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries[key] = (entry[0], self._clock())
                return entry[0]

            tokens = self.tokenizer(content, path)
            if len(self._entries) >= self.capacity:
                self._evict_oldest()
            self._entries[key] = (tokens, self._clock())
            return tokens

    def _evict_oldest(self) -> None:
        oldest_key = None
        oldest_time = None
        for key, (_, last_access) in self._entries.items():
            if oldest_time is None or last_access < oldest_time:
                oldest_key, oldest_time = key, last_access
        if oldest_key is not None:
            del self._entries[oldest_key]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, item: Tuple[str, str]) -> bool:
        path, content = item
        return (path, fingerprint(content)) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
