from __future__ import annotations

import threading
from typing import Hashable


class StripedLock:
    """Fixed pool of locks selected by key hash.

    Operations on the same key always share a lock; keys on different
    stripes proceed independently.
    """

    def __init__(self, stripes: int = 16) -> None:
        if stripes <= 0:
            raise ValueError("stripes must be positive")
        self._locks = tuple(threading.Lock() for _ in range(stripes))

    def __len__(self) -> int:
        return len(self._locks)

    def for_key(self, key: Hashable) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]
