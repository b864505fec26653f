"""shardstatsd - sharded StatsD client with buffering and signed payloads.

Example:
    >>> from shardstatsd import Statsd
    >>>
    >>> statsd = Statsd("10.0.0.1:8125")
    >>> statsd.add_shard("10.0.0.2", 8125, key="secret")
    >>> statsd.namespace = "billing"
    >>> statsd.increment("invoices.created")
    >>> statsd.timing("invoices.render", 12.5, sample_rate=0.1)
"""

from shardstatsd.buffer import DEFAULT_BUFFER_CAPACITY, Buffer
from shardstatsd.client import (
    Route,
    Statsd,
    configure_client,
    get_client,
    reset_client,
    set_client,
)
from shardstatsd.config import StatsdConfig, load_config
from shardstatsd.exceptions import (
    ConfigurationError,
    SignatureError,
    StatsdError,
    TransportError,
)
from shardstatsd.instrumentation import counted, timed
from shardstatsd.naming import sanitize_name
from shardstatsd.sampling import Sampler
from shardstatsd.sharding import DEFAULT_PORT, Shard, parse_shard, select_shard
from shardstatsd.transport import (
    InMemoryTransport,
    LoggingTransport,
    Transport,
    UDPTransport,
)
from shardstatsd.wire import Measurement, MetricType, format_message

__version__ = "0.1.0"

__all__ = [
    # Client
    "Statsd",
    "Route",
    "get_client",
    "set_client",
    "configure_client",
    "reset_client",
    # Configuration
    "StatsdConfig",
    "load_config",
    # Pipeline
    "Buffer",
    "DEFAULT_BUFFER_CAPACITY",
    "Sampler",
    "Shard",
    "DEFAULT_PORT",
    "parse_shard",
    "select_shard",
    "sanitize_name",
    "Measurement",
    "MetricType",
    "format_message",
    # Signing (lazy)
    "Signer",
    "SignedPayload",
    "sign_payload",
    "unpack_payload",
    "verify_payload",
    # Transports
    "Transport",
    "UDPTransport",
    "InMemoryTransport",
    "LoggingTransport",
    # Instrumentation
    "timed",
    "counted",
    # Errors
    "StatsdError",
    "ConfigurationError",
    "TransportError",
    "SignatureError",
]

# Signing is loaded on first use so clients without keys never import it.
_LAZY_SIGNING = frozenset(
    {"Signer", "SignedPayload", "sign_payload", "unpack_payload", "verify_payload"}
)


def __getattr__(name: str):
    if name in _LAZY_SIGNING:
        from shardstatsd import signing

        return getattr(signing, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
