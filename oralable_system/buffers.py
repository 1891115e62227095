"""
Fixed-capacity ring buffer
O(1) append with automatic eviction of the oldest sample
"""

from typing import Optional

import numpy as np


class CircularBuffer:
    """
    Fixed-capacity FIFO backed by a preallocated numpy array.

    Appending to a full buffer overwrites the oldest value. The buffer never
    grows past its capacity, so per-sample cost stays constant regardless of
    window length.
    """

    def __init__(self, capacity: int, dtype=np.float64):
        """
        Args:
            capacity: Maximum number of samples held
            dtype:    numpy dtype of the stored values
        """
        if capacity <= 0:
            raise ValueError(f"CircularBuffer capacity must be positive, got {capacity}")

        self._data = np.zeros(capacity, dtype=dtype)
        self._capacity = capacity
        self._head = 0  # next write position
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._count == self._capacity

    @property
    def last(self) -> Optional[float]:
        """Most recently appended value, or None when empty."""
        if self._count == 0:
            return None
        return self._data[(self._head - 1) % self._capacity].item()

    def append(self, value: float):
        self._data[self._head] = value
        self._head = (self._head + 1) % self._capacity
        if self._count < self._capacity:
            self._count += 1

    def to_array(self) -> np.ndarray:
        """
        Return the contents oldest-first as a new array.

        Returns:
            numpy array of length len(self).
        """
        if self._count < self._capacity:
            return self._data[:self._count].copy()
        return np.concatenate((self._data[self._head:], self._data[:self._head]))

    def clear(self):
        self._data.fill(0)
        self._head = 0
        self._count = 0

    def __len__(self) -> int:
        return self._count

    def __repr__(self):
        return f"<CircularBuffer(size={self._count}/{self._capacity})>"
