"""Client configuration.

Configuration can come from code, a dictionary, a file (JSON, TOML or
YAML), or ``STATSD_*`` environment variables. Environment values override
file values when both are loaded through :func:`load_config`.

Environment variables:
    STATSD_SHARDS           Comma-separated ``host[:port][:key]`` descriptors
    STATSD_HOST             Single host, used when STATSD_SHARDS is unset
    STATSD_PORT             Port for STATSD_HOST
    STATSD_NAMESPACE        Prefix for every stat
    STATSD_BUFFERING        Enable buffering (true/false)
    STATSD_BUFFER_CAPACITY  Buffer flush threshold in bytes

Usage:
    >>> from shardstatsd.config import StatsdConfig
    >>>
    >>> config = StatsdConfig(
    ...     shards=["10.0.0.1:8125", "10.0.0.2:8125:secret"],
    ...     namespace="billing",
    ...     buffering=True,
    ... )
    >>> statsd = config.create_client()
"""

from __future__ import annotations

import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from shardstatsd.buffer import DEFAULT_BUFFER_CAPACITY
from shardstatsd.exceptions import ConfigurationError
from shardstatsd.sharding import DEFAULT_PORT, Shard, parse_shard

if TYPE_CHECKING:
    from shardstatsd.client import Statsd

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "yes", "1", "on")
_FALSE_VALUES = ("false", "no", "0", "off", "")


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from None


def _split_shards(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(part).strip() for part in value if str(part).strip()]
    raise ConfigurationError(f"shards must be a string or list, got {type(value).__name__}")


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class StatsdConfig:
    """Settings for building a :class:`~shardstatsd.client.Statsd`.

    Attributes:
        shards: Shard descriptors, ``host[:port][:key]``.
        namespace: Prefix for every stat name.
        buffering: Start with buffering enabled.
        buffer_capacity: Buffer flush threshold in bytes.
        default_port: Port for descriptors that have none.
    """

    shards: list[str] = field(default_factory=list)
    namespace: str | None = None
    buffering: bool = False
    buffer_capacity: int = DEFAULT_BUFFER_CAPACITY
    default_port: int = DEFAULT_PORT

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StatsdConfig":
        """Build from a mapping, ignoring unknown keys.

        Accepts either ``shards`` or a single ``host``/``port`` pair.
        """
        kwargs: dict[str, Any] = {}

        if data.get("shards") is not None:
            kwargs["shards"] = _split_shards(data["shards"])
        elif data.get("host"):
            host = str(data["host"])
            if data.get("port") is not None:
                host = f"{host}:{_parse_int(data['port'], 'port')}"
            kwargs["shards"] = [host]

        if "namespace" in data:
            kwargs["namespace"] = data["namespace"] or None
        if "buffering" in data:
            kwargs["buffering"] = _parse_bool(data["buffering"], "buffering")
        if data.get("buffer_capacity") is not None:
            kwargs["buffer_capacity"] = _parse_int(data["buffer_capacity"], "buffer_capacity")
        if data.get("default_port") is not None:
            kwargs["default_port"] = _parse_int(data["default_port"], "default_port")

        return cls(**kwargs)

    @classmethod
    def from_environment(cls, prefix: str = "STATSD") -> "StatsdConfig":
        """Load from ``{prefix}_*`` environment variables."""
        return cls.from_dict(_environment_values(prefix))

    @classmethod
    def from_file(cls, path: str | Path) -> "StatsdConfig":
        """Load from a JSON, TOML or YAML file.

        A top-level ``statsd`` table is used when present, so the settings
        can live inside a larger application config file.
        """
        return cls.from_dict(_read_file(Path(path)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "shards": list(self.shards),
            "namespace": self.namespace,
            "buffering": self.buffering,
            "buffer_capacity": self.buffer_capacity,
            "default_port": self.default_port,
        }

    def parse_shards(self) -> list[Shard]:
        """Parse every shard descriptor.

        Raises:
            ConfigurationError: On the first malformed descriptor.
        """
        return [
            parse_shard(descriptor, default_port=self.default_port)
            for descriptor in self.shards
        ]

    def validate(self) -> None:
        """Check every setting, reporting all problems at once.

        Raises:
            ConfigurationError: With ``errors`` listing each problem.
        """
        errors: list[str] = []

        if not self.shards:
            errors.append("at least one shard is required")
        for descriptor in self.shards:
            try:
                parse_shard(descriptor, default_port=self.default_port)
            except ConfigurationError as exc:
                errors.append(str(exc))

        if self.buffer_capacity <= 0:
            errors.append(f"buffer_capacity must be positive, got {self.buffer_capacity}")
        if not 0 < self.default_port < 65536:
            errors.append(f"default_port out of range: {self.default_port}")
        if self.namespace is not None and not isinstance(self.namespace, str):
            errors.append(f"namespace must be a string, got {type(self.namespace).__name__}")

        if errors:
            raise ConfigurationError(errors)

    def create_client(self, **kwargs: Any) -> "Statsd":
        """Validate and build a ready client.

        Keyword arguments are passed to the :class:`Statsd` constructor.
        """
        from shardstatsd.client import Statsd

        self.validate()
        client = Statsd(namespace=self.namespace, default_port=self.default_port, **kwargs)
        for shard in self.parse_shards():
            client.add_shard(shard)
        if self.buffering:
            client.enable_buffering(self.buffer_capacity)
        logger.debug("Configured %r", client)
        return client


# =============================================================================
# Sources
# =============================================================================


def _environment_values(prefix: str) -> dict[str, Any]:
    env = os.environ
    values: dict[str, Any] = {}

    shards = env.get(f"{prefix}_SHARDS")
    if shards:
        values["shards"] = shards
    elif env.get(f"{prefix}_HOST"):
        values["host"] = env[f"{prefix}_HOST"]
        if env.get(f"{prefix}_PORT"):
            values["port"] = env[f"{prefix}_PORT"]

    if f"{prefix}_NAMESPACE" in env:
        values["namespace"] = env[f"{prefix}_NAMESPACE"]
    if f"{prefix}_BUFFERING" in env:
        values["buffering"] = env[f"{prefix}_BUFFERING"]
    if env.get(f"{prefix}_BUFFER_CAPACITY"):
        values["buffer_capacity"] = env[f"{prefix}_BUFFER_CAPACITY"]
    if env.get(f"{prefix}_DEFAULT_PORT"):
        values["default_port"] = env[f"{prefix}_DEFAULT_PORT"]

    return values


def _read_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        elif suffix == ".toml":
            with path.open("rb") as f:
                data = tomllib.load(f)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        else:
            raise ConfigurationError(f"Unsupported config file format: {suffix}")
    except (json.JSONDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot parse config file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    section = data.get("statsd")
    return section if isinstance(section, dict) else data


def load_config(path: str | Path | None = None, prefix: str = "STATSD") -> StatsdConfig:
    """Load file settings (if ``path`` is given) overridden by the environment."""
    values: dict[str, Any] = {}
    if path is not None:
        values.update(_read_file(Path(path)))

    env_values = _environment_values(prefix)
    if "shards" in env_values or "host" in env_values:
        values.pop("shards", None)
        values.pop("host", None)
        values.pop("port", None)
    values.update(env_values)

    return StatsdConfig.from_dict(values)
