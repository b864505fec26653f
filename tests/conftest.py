"""Shared fixtures for shardstatsd tests."""

from __future__ import annotations

import pytest

from shardstatsd import InMemoryTransport, Shard, Statsd, reset_client


class TransportRecorder:
    """Transport factory that keeps one InMemoryTransport per shard."""

    def __init__(self) -> None:
        self.transports: dict[Shard, InMemoryTransport] = {}

    def __call__(self, shard: Shard) -> InMemoryTransport:
        transport = InMemoryTransport()
        self.transports[shard] = transport
        return transport

    def payloads(self) -> list[bytes]:
        """Payloads from every shard, shard order then send order."""
        return [p for t in self.transports.values() for p in t.payloads]


def always() -> float:
    return 0.0


def never() -> float:
    return 0.9999999


@pytest.fixture
def recorder() -> TransportRecorder:
    return TransportRecorder()


@pytest.fixture
def statsd(recorder: TransportRecorder) -> Statsd:
    """Single-shard client that always samples."""
    return Statsd("127.0.0.1", 8125, transport_factory=recorder, random_source=always)


@pytest.fixture
def transport(statsd: Statsd, recorder: TransportRecorder) -> InMemoryTransport:
    return recorder.transports[statsd.shards[0]]


@pytest.fixture(autouse=True)
def _reset_global_client():
    yield
    reset_client()
