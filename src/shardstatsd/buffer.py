"""Per-shard message coalescing.

A Buffer collects newline-terminated wire messages and hands them to its
sink as one payload once the next message would reach capacity. A message
that is larger than the capacity on its own is still appended whole after
the flush, so the pending bytes may exceed capacity until the next flush.
"""

from __future__ import annotations

import threading
from typing import Callable

DEFAULT_BUFFER_CAPACITY = 512

DELIMITER = b"\n"


class Buffer:
    """Accumulates messages for one shard.

    Args:
        sink: Receives each flushed payload.
        capacity: Flush threshold in bytes.

    Example:
        >>> payloads = []
        >>> buffer = Buffer(payloads.append, capacity=16)
        >>> buffer.send(b"foo:1|c")
        >>> buffer.send(b"bar:1|c")
        >>> buffer.flush()
        >>> payloads
        [b'foo:1|c\\nbar:1|c\\n']
    """

    def __init__(
        self,
        sink: Callable[[bytes], object],
        capacity: int | None = None,
    ) -> None:
        capacity = DEFAULT_BUFFER_CAPACITY if capacity is None else capacity
        if capacity <= 0:
            raise ValueError(f"Buffer capacity must be positive, got {capacity}")
        self._sink = sink
        self._capacity = capacity
        self._pending = bytearray()
        self._lock = threading.Lock()
        self._closed = False
        self.flush_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def pending(self) -> bytes:
        """Bytes waiting for the next flush."""
        with self._lock:
            return bytes(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def send(self, message: bytes) -> None:
        """Queue a message, flushing first if it would reach capacity.

        Once the buffer is closed, messages go straight to the sink.
        """
        with self._lock:
            if self._closed:
                self._sink(message)
                return
            if len(self._pending) + len(message) >= self._capacity:
                self._flush_locked()
            self._pending += message
            self._pending += DELIMITER

    def flush(self) -> None:
        """Hand all pending bytes to the sink as one payload."""
        with self._lock:
            self._flush_locked()

    def close(self) -> None:
        """Flush a final time and stop buffering."""
        with self._lock:
            self._flush_locked()
            self._closed = True

    def _flush_locked(self) -> None:
        if not self._pending:
            return
        payload = bytes(self._pending)
        self._pending.clear()
        self.flush_count += 1
        self._sink(payload)
