"""Stat name normalization."""

from __future__ import annotations

import re
from typing import Any

# Characters that carry meaning in the wire format.
RESERVED_CHARS = frozenset(":|@")

SCOPE_SEPARATOR = "::"

_RESERVED_CHARS_RE = re.compile(r"[:|@]")


def stat_to_text(stat: Any) -> str:
    """Render a stat identifier as text.

    Classes render as ``module.QualName`` so that passing a type gives a
    stable, readable stat; everything else goes through ``str()``.
    """
    if isinstance(stat, type):
        return f"{stat.__module__}.{stat.__qualname__}"
    return str(stat)


def sanitize_name(stat: Any) -> str:
    """Turn a stat identifier into a wire-safe token.

    Scope separators collapse to a dot, then reserved characters are
    replaced with underscores.

    Example:
        >>> sanitize_name("ray@hostname.blah|blah.blah:blah")
        'ray_hostname.blah_blah.blah_blah'
        >>> sanitize_name("A::B::C")
        'A.B.C'
    """
    text = stat_to_text(stat).replace(SCOPE_SEPARATOR, ".")
    return _RESERVED_CHARS_RE.sub("_", text)
