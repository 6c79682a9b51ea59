#!/usr/bin/env python3
"""
Fixed-capacity ring buffer

Array-backed circular store used to keep a short window of recent frame
sequence numbers and timestamps. Inserts overwrite the oldest slot once
the buffer is full. Snapshots are taken under the same lock as inserts,
so a reader on another thread never sees a half-applied insert.
"""

import threading
import logging
from typing import Any, Generic, List, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Circular buffer with overwrite-on-full semantics.

    Example:
        seqs = RingBuffer(10, dtype=np.uint16)
        seqs.push(17)
        seqs.snapshot()   # -> [17]
    """

    def __init__(self, capacity: int, dtype: Any = object):
        """
        Initialize ring buffer.

        Args:
            capacity: Maximum number of retained elements
            dtype: numpy dtype of the backing array (object for arbitrary values)
        """
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self._buf = np.empty(capacity, dtype=dtype)
        self._tail = 0   # next insert position
        self._len = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return len(self._buf)

    def __len__(self) -> int:
        with self._lock:
            return self._len

    @property
    def is_full(self) -> bool:
        with self._lock:
            return self._len == len(self._buf)

    def push(self, item: T) -> None:
        """Insert an element, overwriting the oldest one when full"""
        with self._lock:
            self._buf[self._tail] = item
            self._tail = (self._tail + 1) % len(self._buf)
            if self._len < len(self._buf):
                self._len += 1

    def snapshot(self) -> List[T]:
        """
        Copy of the contents, oldest element first.

        Returns:
            List of between 0 and capacity elements
        """
        with self._lock:
            if self._len < len(self._buf):
                view = self._buf[:self._len]
            else:
                view = np.concatenate((self._buf[self._tail:], self._buf[:self._tail]))
            return view.tolist()

    def clear(self) -> None:
        with self._lock:
            self._tail = 0
            self._len = 0
