"""Tests for Buffer."""

from __future__ import annotations

import threading

import pytest

from shardstatsd.buffer import DEFAULT_BUFFER_CAPACITY, Buffer


class TestBuffer:
    """Tests for message coalescing."""

    def setup_method(self):
        self.payloads: list[bytes] = []

    def make(self, capacity: int | None = None) -> Buffer:
        return Buffer(self.payloads.append, capacity)

    def test_default_capacity(self):
        assert self.make().capacity == DEFAULT_BUFFER_CAPACITY == 512

    def test_messages_are_newline_terminated(self):
        buffer = self.make()
        buffer.send(b"foo:1|c")
        buffer.send(b"bar:1|c")

        assert buffer.pending == b"foo:1|c\nbar:1|c\n"
        assert len(buffer) == 16
        assert self.payloads == []

    def test_flush(self):
        buffer = self.make()
        buffer.send(b"foo:1|c")
        buffer.flush()

        assert self.payloads == [b"foo:1|c\n"]
        assert buffer.pending == b""
        assert buffer.flush_count == 1

    def test_flush_empty_is_noop(self):
        buffer = self.make()
        buffer.flush()
        buffer.flush()

        assert self.payloads == []
        assert buffer.flush_count == 0

    def test_flushes_before_reaching_capacity(self):
        buffer = self.make(16)
        buffer.send(b"a" * 7)
        buffer.send(b"b" * 8)

        # 8 pending + 8 new == capacity, so the first message goes out alone.
        assert self.payloads == [b"aaaaaaa\n"]
        assert buffer.pending == b"bbbbbbbb\n"
        assert buffer.flush_count == 1

    def test_below_capacity_does_not_flush(self):
        buffer = self.make(16)
        buffer.send(b"a" * 7)
        buffer.send(b"b" * 7)

        assert self.payloads == []
        assert len(buffer) == 16

    def test_oversized_message_is_kept_whole(self):
        buffer = self.make(10)
        buffer.send(b"x" * 20)

        assert self.payloads == []
        assert buffer.pending == b"x" * 20 + b"\n"

        buffer.send(b"y")
        assert self.payloads == [b"x" * 20 + b"\n"]
        assert buffer.pending == b"y\n"

    def test_oversized_message_flushes_pending_first(self):
        buffer = self.make(10)
        buffer.send(b"abc")
        buffer.send(b"z" * 30)
        buffer.flush()

        assert self.payloads == [b"abc\n", b"z" * 30 + b"\n"]
        assert buffer.flush_count == 2

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            self.make(0)
        with pytest.raises(ValueError):
            self.make(-5)

    def test_close_flushes_pending(self):
        buffer = self.make()
        buffer.send(b"foo:1|c")
        buffer.close()

        assert self.payloads == [b"foo:1|c\n"]
        assert buffer.closed is True
        assert len(buffer) == 0

    def test_send_after_close_goes_to_sink(self):
        buffer = self.make()
        buffer.close()
        buffer.send(b"late:1|c")
        buffer.send(b"later:1|c")

        assert self.payloads == [b"late:1|c", b"later:1|c"]
        assert buffer.pending == b""
        assert buffer.flush_count == 0

    def test_len_waits_for_lock(self):
        buffer = self.make()
        buffer.send(b"foo:1|c")
        sizes: list[int] = []

        with buffer._lock:
            reader = threading.Thread(target=lambda: sizes.append(len(buffer)))
            reader.start()
            reader.join(timeout=0.05)
            assert reader.is_alive()
            assert sizes == []

        reader.join(timeout=5)
        assert sizes == [8]
