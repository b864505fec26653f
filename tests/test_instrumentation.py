"""Tests for decorators and the global client."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from shardstatsd import (
    InMemoryTransport,
    Shard,
    Statsd,
    StatsdConfig,
    UDPTransport,
    configure_client,
    counted,
    get_client,
    reset_client,
    set_client,
    timed,
)


class TestTimed:
    """Tests for @timed."""

    def test_reports_duration(self, statsd, transport):
        @timed("work.duration", client=statsd)
        def work(x):
            return x * 2

        with patch("shardstatsd.instrumentation.perf_counter", side_effect=[5.0, 5.01]):
            assert work(21) == 42

        (message,) = transport.messages
        assert message.startswith("work.duration:10.0")
        assert message.endswith("|ms")

    def test_default_name(self, statsd, transport):
        @timed(client=statsd)
        def work():
            return None

        work()
        assert transport.messages[0].startswith(f"{__name__}.TestTimed.test_default_name.<locals>.work:")

    def test_exception_not_reported(self, statsd, transport):
        @timed("work", client=statsd)
        def work():
            raise KeyError("x")

        with pytest.raises(KeyError):
            work()
        assert transport.payloads == []

    def test_preserves_metadata(self, statsd):
        @timed(client=statsd)
        def documented():
            """Docstring."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Docstring."


class TestCounted:
    """Tests for @counted."""

    def test_counts_calls(self, statsd, transport):
        @counted("calls", client=statsd)
        def work():
            return "ok"

        work()
        work()
        assert transport.payloads == [b"calls:1|c", b"calls:1|c"]

    def test_counts_exceptions(self, statsd, transport):
        @counted("calls", client=statsd)
        def work():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            work()
        assert transport.payloads == [b"calls:1|c", b"calls.exceptions:1|c"]

    def test_exceptions_disabled(self, statsd, transport):
        @counted("calls", count_exceptions=False, client=statsd)
        def work():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            work()
        assert transport.payloads == [b"calls:1|c"]

    def test_uses_global_client(self, statsd, transport):
        set_client(statsd)

        @counted("global.calls")
        def work():
            pass

        work()
        assert transport.payloads == [b"global.calls:1|c"]


class TestGlobalClient:
    """Tests for get_client / configure_client / reset_client."""

    def test_get_client_from_environment(self):
        with patch.dict("os.environ", {"STATSD_SHARDS": "10.0.0.7:9125"}, clear=True):
            client = get_client()

        assert client.shards == (Shard("10.0.0.7", 9125),)
        assert get_client() is client

    def test_get_client_defaults_to_localhost(self):
        with patch.dict("os.environ", {}, clear=True):
            client = get_client()

        assert client.shards == (Shard("localhost", 8125),)
        assert isinstance(client.routes[0].transport, UDPTransport)

    def test_configure_client(self):
        transports = []

        def factory(shard):
            transports.append(InMemoryTransport())
            return transports[-1]

        config = StatsdConfig(shards=["10.0.0.1"], namespace="svc")
        client = configure_client(config, transport_factory=factory)

        assert get_client() is client
        client.increment("foo")
        assert transports[0].payloads == [b"svc.foo:1|c"]

    def test_reset_client_closes(self):
        transport = InMemoryTransport()
        client = Statsd("10.0.0.1", transport_factory=lambda shard: transport)
        client.enable_buffering()
        set_client(client)
        client.increment("foo")

        reset_client()
        assert transport.payloads == [b"foo:1|c\n"]
        assert transport.closed is True
