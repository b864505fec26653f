"""Payload transports.

A transport takes finished payloads for one shard and makes a single
best-effort attempt to deliver them. Nothing here retries or blocks on
the receiver.
"""

from __future__ import annotations

import logging
import socket
import threading
from typing import Protocol, runtime_checkable

from shardstatsd.exceptions import TransportError
from shardstatsd.sharding import Shard

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Delivers payloads to one endpoint."""

    def send(self, payload: bytes) -> bool:
        """Send one payload; return whether it was handed to the network."""
        ...

    def close(self) -> None:
        """Release any resources held by the transport."""
        ...


# =============================================================================
# UDP
# =============================================================================


class UDPTransport:
    """Connected datagram socket to one host.

    The address is resolved and the socket opened on first send, so
    building a client performs no network I/O.
    """

    def __init__(self, host: str, port: int) -> None:
        self._host = host
        self._port = port
        self._sock: socket.socket | None = None
        self._lock = threading.Lock()

    @classmethod
    def for_shard(cls, shard: Shard) -> "UDPTransport":
        return cls(shard.host, shard.port)

    def __repr__(self) -> str:
        return f"UDPTransport({self._host!r}, {self._port})"

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    def _connect(self) -> socket.socket:
        with self._lock:
            if self._sock is None:
                try:
                    infos = socket.getaddrinfo(
                        self._host, self._port, type=socket.SOCK_DGRAM
                    )
                except socket.gaierror as exc:
                    raise TransportError(
                        f"Cannot resolve shard host {self._host!r}: {exc}",
                        cause=exc,
                    ) from exc
                family, socktype, proto, _, sockaddr = infos[0]
                sock = socket.socket(family, socktype, proto)
                try:
                    sock.connect(sockaddr)
                except OSError:
                    sock.close()
                    raise
                self._sock = sock
            return self._sock

    def send(self, payload: bytes) -> bool:
        try:
            self._connect().send(payload)
            return True
        except OSError as exc:
            raise TransportError(
                f"Failed to send {len(payload)} bytes to {self._host}:{self._port}",
                cause=exc,
            ) from exc

    def close(self) -> None:
        with self._lock:
            if self._sock is not None:
                self._sock.close()
                self._sock = None


# =============================================================================
# Testing and Development
# =============================================================================


class InMemoryTransport:
    """Records payloads instead of sending them.

    Args:
        fail: Raise TransportError on every send.
    """

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.closed = False
        self._payloads: list[bytes] = []

    @property
    def payloads(self) -> list[bytes]:
        """All payloads received, in order."""
        return self._payloads

    @property
    def messages(self) -> list[str]:
        """Payloads decoded as UTF-8 (signed payloads may not decode)."""
        return [payload.decode("utf-8", errors="replace") for payload in self._payloads]

    def send(self, payload: bytes) -> bool:
        if self.fail:
            raise TransportError("InMemoryTransport configured to fail")
        self._payloads.append(payload)
        return True

    def clear(self) -> None:
        self._payloads.clear()

    def close(self) -> None:
        self.closed = True


class LoggingTransport:
    """Writes payloads to a logger at DEBUG instead of the network."""

    def __init__(self, shard: Shard | None = None, log: logging.Logger | None = None) -> None:
        self._shard = shard
        self._logger = log or logger

    @classmethod
    def for_shard(cls, shard: Shard) -> "LoggingTransport":
        return cls(shard)

    def send(self, payload: bytes) -> bool:
        target = self._shard.address if self._shard else "-"
        self._logger.debug("statsd payload to %s: %r", target, payload)
        return True

    def close(self) -> None:
        pass
