"""StatsD client.

The client formats measurements, samples them, routes them to a shard,
and delivers them directly or through a per-shard buffer, signing the
payload when the shard has a key.

Pipeline:
    Statsd.count / timing / gauge / histogram
         |
         +---> Sampler (may drop the measurement)
         +---> Measurement (sanitized name, wire message)
         +---> select_shard (CRC-32 of the unprefixed name)
         |
         v
    Route
         |
         +---> Buffer (when buffering is enabled)
         +---> Signer (when the shard has a key)
         |
         v
    Transport.send (failures are logged and dropped)

Usage:
    >>> from shardstatsd import Statsd
    >>>
    >>> statsd = Statsd("localhost", 8125)
    >>> statsd.increment("garets")
    >>> statsd.timing("glork", 320)
    >>>
    >>> # Time a block
    >>> statsd.time("account.activate", account.activate)
    >>>
    >>> # Namespaced client, reports "account.activate"
    >>> statsd = Statsd("localhost", namespace="account")
    >>> statsd.increment("activate")

Thread safety:
    Configuration changes take a lock and publish a new immutable tuple of
    routes, so measurement calls read one consistent snapshot. Each
    Buffer has its own lock. Measurement calls may be shared across
    threads.
"""

from __future__ import annotations

import functools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from time import perf_counter
from typing import TYPE_CHECKING, Any, Callable, Iterator, TypeVar

from shardstatsd.buffer import DEFAULT_BUFFER_CAPACITY, Buffer
from shardstatsd.sampling import RandomSource, Sampler
from shardstatsd.sharding import DEFAULT_PORT, Shard, parse_shard, select_shard
from shardstatsd.transport import Transport, UDPTransport
from shardstatsd.wire import Measurement, MetricType

if TYPE_CHECKING:
    from shardstatsd.config import StatsdConfig
    from shardstatsd.signing import Signer

R = TypeVar("R")

TransportFactory = Callable[[Shard], Transport]


# =============================================================================
# Routes
# =============================================================================


@dataclass(frozen=True)
class Route:
    """A shard together with everything needed to deliver to it."""

    shard: Shard
    transport: Transport
    signer: Signer | None = None
    buffer: Buffer | None = None


# =============================================================================
# Client
# =============================================================================


class Statsd:
    """A sharded StatsD client.

    Args:
        host: First shard, as a host or ``host[:port][:key]`` descriptor.
        port: Port for the first shard.
        key: Signing key for the first shard.
        namespace: Prefix for every stat name.
        transport_factory: Builds the transport for each shard.
        random_source: Uniform [0, 1) source used for sampling.
        logger: Receives debug output and delivery failures.
        default_port: Port used when a descriptor has none.
    """

    def __init__(
        self,
        host: str | Shard | None = None,
        port: int | None = None,
        key: bytes | str | None = None,
        *,
        namespace: str | None = None,
        transport_factory: TransportFactory | None = None,
        random_source: RandomSource | None = None,
        logger: logging.Logger | None = None,
        default_port: int = DEFAULT_PORT,
    ) -> None:
        self._transport_factory = transport_factory or UDPTransport.for_shard
        self._sampler = Sampler(random_source)
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._default_port = default_port
        self._lock = threading.Lock()
        self._routes: tuple[Route, ...] = ()
        self._buffer_capacity: int | None = None
        self._namespace: str | None = None
        self.set_namespace(namespace)

        if host is not None:
            self.add_shard(host, port, key)

    @classmethod
    def simple(cls, host: str, port: int | None = None, **kwargs: Any) -> "Statsd":
        """Single-shard client."""
        return cls(host, port, **kwargs)

    @classmethod
    def from_config(cls, config: "StatsdConfig", **kwargs: Any) -> "Statsd":
        """Build a client from a StatsdConfig."""
        return config.create_client(**kwargs)

    def __repr__(self) -> str:
        shards = ", ".join(route.shard.address for route in self._routes)
        return (
            f"Statsd(shards=[{shards}], namespace={self._namespace!r}, "
            f"buffering={self.buffering})"
        )

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def namespace(self) -> str | None:
        """Prefix prepended to every stat name."""
        return self._namespace

    @namespace.setter
    def namespace(self, value: str | None) -> None:
        self.set_namespace(value)

    def set_namespace(self, value: str | None) -> None:
        self._namespace = value or None

    @property
    def shards(self) -> tuple[Shard, ...]:
        return tuple(route.shard for route in self._routes)

    @property
    def routes(self) -> tuple[Route, ...]:
        return self._routes

    @property
    def sampler(self) -> Sampler:
        return self._sampler

    def add_shard(
        self,
        host: str | Shard,
        port: int | None = None,
        key: bytes | str | None = None,
    ) -> "Statsd":
        """Add an endpoint.

        Routing depends on the number of shards, so add every shard before
        sending traffic.

        Raises:
            ConfigurationError: If the host or port is malformed.
        """
        if isinstance(host, Shard):
            shard = host
        else:
            shard = parse_shard(host, port, key, default_port=self._default_port)

        route = self._build_route(shard)
        with self._lock:
            if self._buffer_capacity is not None:
                route = self._with_buffer(route, self._buffer_capacity)
            self._routes = (*self._routes, route)
        return self

    def _build_route(self, shard: Shard) -> Route:
        signer = None
        if shard.key is not None:
            from shardstatsd.signing import Signer

            signer = Signer(shard.key)
        return Route(shard=shard, transport=self._transport_factory(shard), signer=signer)

    def _with_buffer(self, route: Route, capacity: int) -> Route:
        unbuffered = replace(route, buffer=None)
        sink = functools.partial(self._deliver, unbuffered)
        return replace(route, buffer=Buffer(sink, capacity))

    # -------------------------------------------------------------------------
    # Buffering
    # -------------------------------------------------------------------------

    @property
    def buffering(self) -> bool:
        return self._buffer_capacity is not None

    @property
    def buffers(self) -> tuple[Buffer, ...]:
        """Active buffers, in shard order."""
        return tuple(route.buffer for route in self._routes if route.buffer is not None)

    def enable_buffering(self, capacity: int | None = None) -> None:
        """Coalesce messages per shard into payloads of up to ``capacity`` bytes.

        Does nothing if buffering is already enabled.
        """
        capacity = DEFAULT_BUFFER_CAPACITY if capacity is None else capacity
        if capacity <= 0:
            raise ValueError(f"Buffer capacity must be positive, got {capacity}")
        with self._lock:
            if self._buffer_capacity is not None:
                return
            self._routes = tuple(self._with_buffer(route, capacity) for route in self._routes)
            self._buffer_capacity = capacity

    def disable_buffering(self) -> None:
        """Close every buffer and go back to one payload per message.

        Closing flushes each buffer; a send that still reaches an old buffer
        is delivered directly instead of being stranded.

        Does nothing if buffering is already disabled.
        """
        with self._lock:
            if self._buffer_capacity is None:
                return
            buffered = self._routes
            self._routes = tuple(replace(route, buffer=None) for route in buffered)
            self._buffer_capacity = None
        for route in buffered:
            if route.buffer is not None:
                route.buffer.close()

    def flush_all(self) -> None:
        """Flush every buffer. No-op when buffering is disabled."""
        for route in self._routes:
            if route.buffer is not None:
                route.buffer.flush()

    # -------------------------------------------------------------------------
    # Measurements
    # -------------------------------------------------------------------------

    def increment(self, stat: Any, sample_rate: float = 1) -> None:
        """Count one occurrence of ``stat``."""
        self.count(stat, 1, sample_rate)

    def decrement(self, stat: Any, sample_rate: float = 1) -> None:
        """Count ``stat`` down by one."""
        self.count(stat, -1, sample_rate)

    def count(self, stat: Any, delta: int | float, sample_rate: float = 1) -> None:
        """Send an arbitrary counter delta.

        Args:
            stat: Stat name.
            delta: Amount to add.
            sample_rate: Fraction of calls actually sent, 1 for always.
        """
        self._send(stat, delta, MetricType.COUNTER, sample_rate)

    def gauge(self, stat: Any, value: int | float) -> None:
        """Send an absolute value, e.g. ``statsd.gauge("user.count", n)``."""
        self._send(stat, value, MetricType.GAUGE)

    def timing(self, stat: Any, ms: int | float, sample_rate: float = 1) -> None:
        """Send a duration in milliseconds.

        The server uses ``sample_rate`` to scale its counts back up.
        """
        self._send(stat, ms, MetricType.TIMING, sample_rate)

    def histogram(self, stat: Any, value: int | float, sample_rate: float = 1) -> None:
        """Send a histogram sample."""
        self._send(stat, value, MetricType.HISTOGRAM, sample_rate)

    def time(self, stat: Any, body: Callable[[], R], sample_rate: float = 1) -> R:
        """Run ``body``, report how long it took via :meth:`timing`, return its result.

        Exceptions from ``body`` propagate and nothing is reported.

        Example:
            >>> statsd.time("account.activate", account.activate)
        """
        start = perf_counter()
        result = body()
        self.timing(stat, _elapsed_ms(start), sample_rate)
        return result

    @contextmanager
    def timer(self, stat: Any, sample_rate: float = 1) -> Iterator[None]:
        """Context manager form of :meth:`time`.

        Example:
            >>> with statsd.timer("db.query"):
            ...     rows = cursor.fetchall()
        """
        start = perf_counter()
        yield
        self.timing(stat, _elapsed_ms(start), sample_rate)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _send(
        self,
        stat: Any,
        value: int | float,
        metric_type: MetricType,
        sample_rate: float = 1,
    ) -> None:
        self._sampler.sampled(
            sample_rate, lambda: self._dispatch(stat, value, metric_type, sample_rate)
        )

    def _dispatch(
        self,
        stat: Any,
        value: int | float,
        metric_type: MetricType,
        sample_rate: float,
    ) -> None:
        measurement = Measurement(stat, value, metric_type, sample_rate)
        name = measurement.name
        message = measurement.to_wire(self._namespace)

        routes = self._routes
        if not routes:
            self._logger.debug("statsd: no shards configured, dropped %r", message)
            return
        route = select_shard(routes, name)

        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug("statsd: %s", message.decode("utf-8"))

        if route.buffer is not None:
            route.buffer.send(message)
        else:
            self._deliver(route, message)

    def _deliver(self, route: Route, payload: bytes) -> bool:
        if route.signer is not None:
            payload = route.signer.sign(payload)
        try:
            return route.transport.send(payload)
        except Exception as exc:
            # Transport failures never reach the caller.
            self._logger.warning(
                "statsd: delivery to %s failed: %s", route.shard.address, exc
            )
            return False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Flush pending data and release transports."""
        self.disable_buffering()
        for route in self._routes:
            route.transport.close()

    def __enter__(self) -> "Statsd":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


def _elapsed_ms(start: float) -> float:
    return round((perf_counter() - start) * 1000, 5)


# =============================================================================
# Global Client
# =============================================================================

_global_client: Statsd | None = None
_lock = threading.Lock()


def _environment_config() -> "StatsdConfig":
    from shardstatsd.config import StatsdConfig

    config = StatsdConfig.from_environment()
    if not config.shards:
        config.shards = [f"localhost:{config.default_port}"]
    return config


def get_client() -> Statsd:
    """Get the process-wide client.

    Built from ``STATSD_*`` environment variables on first use, reporting
    to ``localhost:8125`` when no shard is configured there.
    """
    global _global_client

    with _lock:
        if _global_client is None:
            _global_client = _environment_config().create_client()
        return _global_client


def set_client(client: Statsd) -> None:
    """Replace the process-wide client."""
    global _global_client

    with _lock:
        _global_client = client


def configure_client(
    config: "StatsdConfig | None" = None,
    **kwargs: Any,
) -> Statsd:
    """Build a client from ``config`` (or the environment) and install it globally.

    Keyword arguments are passed to :meth:`StatsdConfig.create_client`.
    """
    config = config or _environment_config()
    client = config.create_client(**kwargs)
    reset_client()
    set_client(client)
    return client


def reset_client() -> None:
    """Close and forget the process-wide client."""
    global _global_client

    with _lock:
        client, _global_client = _global_client, None
    if client is not None:
        client.close()
