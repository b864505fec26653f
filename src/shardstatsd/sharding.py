"""Shard descriptors and deterministic shard selection.

Routing hashes the sanitized stat name with CRC-32 (the zlib polynomial),
so a given stat always lands on the same shard for a given shard count,
in every process.
"""

from __future__ import annotations

import ipaddress
import re
import zlib
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from shardstatsd.exceptions import ConfigurationError

T = TypeVar("T")

DEFAULT_PORT = 8125

_HOSTNAME_LABEL_RE = re.compile(r"^[A-Za-z0-9_]([A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?$")


# =============================================================================
# Shard
# =============================================================================


def is_valid_host(host: str) -> bool:
    """Check that ``host`` is an IP literal or an RFC 1123 hostname."""
    if not host:
        return False
    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        pass

    name = host[:-1] if host.endswith(".") else host
    if not name or len(name) > 253:
        return False
    return all(_HOSTNAME_LABEL_RE.match(label) for label in name.split("."))


@dataclass(frozen=True)
class Shard:
    """One metrics endpoint, optionally with its own signing key.

    Attributes:
        host: Hostname or IP literal (IPv6 without brackets).
        port: UDP port.
        key: Secret used to sign payloads sent to this shard.
    """

    host: str
    port: int = DEFAULT_PORT
    key: bytes | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.host, str) or not is_valid_host(self.host):
            raise ConfigurationError(f"Malformed shard host: {self.host!r}")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigurationError(f"Shard port must be an integer: {self.port!r}")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Shard port out of range: {self.port}")
        if isinstance(self.key, str):
            object.__setattr__(self, "key", self.key.encode("utf-8"))
        if self.key is not None and not self.key:
            object.__setattr__(self, "key", None)

    @property
    def signed(self) -> bool:
        """Whether payloads to this shard are signed."""
        return self.key is not None

    @property
    def address(self) -> str:
        """``host:port`` form, with IPv6 hosts bracketed."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def _parse_port(value: str | int | None, descriptor: str) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(
            f"Invalid port {value!r} in shard descriptor {descriptor!r}"
        ) from None


def parse_shard(
    descriptor: str,
    port: int | str | None = None,
    key: bytes | str | None = None,
    *,
    default_port: int = DEFAULT_PORT,
) -> Shard:
    """Build a Shard from a ``host[:port][:key]`` descriptor.

    IPv6 hosts are written bracketed (``[::1]:8125``) or bare when no
    port follows. Port and key embedded in the descriptor take precedence
    over the ``port`` and ``key`` arguments.

    Raises:
        ConfigurationError: If the descriptor is malformed.
    """
    if not isinstance(descriptor, str):
        raise ConfigurationError(f"Shard descriptor must be a string: {descriptor!r}")
    text = descriptor.strip()

    embedded_port: str | None = None
    embedded_key: str | None = None

    if text.startswith("["):
        end = text.find("]")
        if end == -1:
            raise ConfigurationError(f"Unterminated IPv6 address in {descriptor!r}")
        host = text[1:end]
        rest = text[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ConfigurationError(f"Malformed shard descriptor: {descriptor!r}")
            parts = rest[1:].split(":", 1)
            embedded_port = parts[0]
            embedded_key = parts[1] if len(parts) > 1 else None
    elif text.count(":") > 1 and _is_ipv6(text):
        host = text
    else:
        parts = text.split(":", 2)
        host = parts[0]
        embedded_port = parts[1] if len(parts) > 1 else None
        embedded_key = parts[2] if len(parts) > 2 else None

    resolved_port = _parse_port(embedded_port, descriptor)
    if resolved_port is None:
        resolved_port = _parse_port(port, descriptor)
    if resolved_port is None:
        resolved_port = default_port

    return Shard(host=host, port=resolved_port, key=embedded_key or key)


def _is_ipv6(text: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(text), ipaddress.IPv6Address)
    except ValueError:
        return False


# =============================================================================
# Selection
# =============================================================================


def shard_index(key: str, shard_count: int) -> int:
    """Index of the shard that owns ``key``."""
    if shard_count <= 0:
        raise ConfigurationError("No shards configured")
    if shard_count == 1:
        return 0
    return zlib.crc32(key.encode("utf-8")) % shard_count


def select_shard(shards: Sequence[T], key: str) -> T:
    """Pick the shard for a sanitized stat name.

    A single shard is returned without hashing.
    """
    return shards[shard_index(key, len(shards))]
