"""Growable circular byte buffer."""

from __future__ import annotations

import threading

DEFAULT_MAX_DATA_SIZE = 4096


class ByteRing:
    """FIFO of bytes stored in a ring that grows when a write does not fit."""

    def __init__(self, size: int = DEFAULT_MAX_DATA_SIZE) -> None:
        self._lock = threading.Lock()
        self._reset(size)

    def _reset(self, size: int) -> None:
        if size <= 0:
            raise ValueError(f"ring size must be positive, got {size}")
        self._buf = bytearray(size)
        self._read_pos = 0
        self._write_pos = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return len(self._buf)

    def __len__(self) -> int:
        with self._lock:
            return self._count

    def set_size(self, n: int) -> None:
        """Replace the storage with *n* bytes, discarding any data."""
        with self._lock:
            self._reset(n)

    def clear(self) -> None:
        """Drop all buffered data."""
        with self._lock:
            self._read_pos = 0
            self._write_pos = 0
            self._count = 0

    def put(self, data: bytes) -> int:
        """Append *data*, growing the ring if needed; return the byte count."""
        data = bytes(data)
        n = len(data)
        if n == 0:
            raise ValueError("cannot put empty data")
        with self._lock:
            size = len(self._buf)
            if n > size - self._count:
                existing = self._take(self._count)
                new_size = size + max(DEFAULT_MAX_DATA_SIZE, n)
                buf = bytearray(new_size)
                used = len(existing) + n
                buf[: len(existing)] = existing
                buf[len(existing) : used] = data
                self._buf = buf
                self._read_pos = 0
                self._write_pos = used % new_size
                self._count = used
                return n

            first = min(n, size - self._write_pos)
            self._buf[self._write_pos : self._write_pos + first] = data[:first]
            rest = n - first
            if rest:
                self._buf[:rest] = data[first:]
            self._write_pos = (self._write_pos + n) % size
            self._count += n
            return n

    def get(self, size: int) -> bytes:
        """Remove and return up to *size* bytes from the front."""
        if size < 0:
            raise ValueError(f"size must not be negative, got {size}")
        with self._lock:
            return self._take(min(size, self._count))

    def _take(self, n: int) -> bytes:
        if n == 0:
            return b""
        cap = len(self._buf)
        first = min(n, cap - self._read_pos)
        out = bytes(self._buf[self._read_pos : self._read_pos + first])
        if n > first:
            out += bytes(self._buf[: n - first])
        self._read_pos = (self._read_pos + n) % cap
        self._count -= n
        return out