"""StatsD wire format.

A measurement is rendered as a single line::

    {namespace.}{name}:{value}|{type}[|@{sample_rate}]

The sample rate suffix is only present when the rate is below 1.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from shardstatsd.naming import sanitize_name


# =============================================================================
# Metric Types
# =============================================================================


class MetricType(Enum):
    """StatsD metric type tags."""

    COUNTER = "c"
    TIMING = "ms"
    GAUGE = "g"
    HISTOGRAM = "h"

    @property
    def supports_sampling(self) -> bool:
        """Gauges are absolute values and are never sampled."""
        return self is not MetricType.GAUGE


@dataclass(frozen=True)
class Measurement:
    """A single reported value, before it is rendered."""

    stat: Any
    value: int | float
    type: MetricType
    sample_rate: float = 1

    @property
    def name(self) -> str:
        """Sanitized stat name, also used as the sharding key."""
        return sanitize_name(self.stat)

    def to_wire(self, namespace: str | None = None) -> bytes:
        """Render this measurement as a wire message."""
        return format_message(
            self.name, self.value, self.type, self.sample_rate, namespace=namespace
        )


# =============================================================================
# Formatting
# =============================================================================


def format_number(value: int | float) -> str:
    """Render a number with its shortest round-tripping representation."""
    if isinstance(value, bool):
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def format_message(
    name: str,
    value: int | float,
    metric_type: MetricType,
    sample_rate: float = 1,
    *,
    namespace: str | None = None,
) -> bytes:
    """Build the wire message for an already sanitized stat name.

    Args:
        name: Sanitized stat name.
        value: Counter delta, timing, gauge or histogram value.
        metric_type: Type tag.
        sample_rate: Rate the measurement was sampled at.
        namespace: Optional prefix, joined with a dot.

    Returns:
        UTF-8 encoded message.
    """
    parts = []
    if namespace:
        parts.append(f"{namespace}.")
    parts.append(f"{name}:{format_number(value)}|{metric_type.value}")
    if sample_rate < 1:
        parts.append(f"|@{format_number(sample_rate)}")
    return "".join(parts).encode("utf-8")
