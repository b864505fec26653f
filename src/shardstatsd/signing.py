"""Authenticated payload envelopes.

A signed payload is laid out as::

    HMAC-SHA256(key, envelope) (32 bytes) || envelope

    envelope = timestamp (8 bytes, little-endian unix seconds)
               || nonce (4 random bytes)
               || message

The timestamp lets a receiver reject stale payloads and the nonce keeps
identical messages from producing identical envelopes. Nothing is
encrypted.

This module is only imported by the client once a shard with a key is
added.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import struct
import time
from dataclasses import dataclass
from typing import Callable

from shardstatsd.exceptions import SignatureError

DIGEST_SIZE = 32
TIMESTAMP_SIZE = 8
NONCE_SIZE = 4
HEADER_SIZE = DIGEST_SIZE + TIMESTAMP_SIZE + NONCE_SIZE

_TIMESTAMP = struct.Struct("<Q")


# =============================================================================
# Signing
# =============================================================================


class Signer:
    """Signs messages for one shard key.

    Args:
        key: Shared secret.
        clock: Returns the current unix time in seconds.
        nonce_source: Returns ``n`` random bytes.
    """

    def __init__(
        self,
        key: bytes | str,
        *,
        clock: Callable[[], float] = time.time,
        nonce_source: Callable[[int], bytes] = os.urandom,
    ) -> None:
        if isinstance(key, str):
            key = key.encode("utf-8")
        if not key:
            raise ValueError("Signing key must not be empty")
        self._key = key
        self._clock = clock
        self._nonce_source = nonce_source
        self._template: hmac.HMAC | None = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key=<{len(self._key)} bytes>)"

    def _mac(self) -> hmac.HMAC:
        # Keyed once, copied per message.
        if self._template is None:
            self._template = hmac.new(self._key, digestmod=hashlib.sha256)
        return self._template.copy()

    def timestamp(self) -> bytes:
        return _TIMESTAMP.pack(int(self._clock()))

    def nonce(self) -> bytes:
        return self._nonce_source(NONCE_SIZE)

    def sign(self, message: bytes) -> bytes:
        """Wrap ``message`` in a signed envelope."""
        envelope = self.timestamp() + self.nonce() + message
        mac = self._mac()
        mac.update(envelope)
        return mac.digest() + envelope


def sign_payload(
    key: bytes | str,
    message: bytes,
    *,
    timestamp: int | None = None,
    nonce: bytes | None = None,
) -> bytes:
    """One-off signing with an optional fixed timestamp and nonce."""
    signer = Signer(
        key,
        clock=(lambda: timestamp) if timestamp is not None else time.time,
        nonce_source=(lambda size: nonce) if nonce is not None else os.urandom,
    )
    return signer.sign(message)


# =============================================================================
# Verification
# =============================================================================


@dataclass(frozen=True)
class SignedPayload:
    """The parts of a signed payload."""

    digest: bytes
    timestamp: int
    nonce: bytes
    message: bytes

    @property
    def envelope(self) -> bytes:
        return _TIMESTAMP.pack(self.timestamp) + self.nonce + self.message


def unpack_payload(payload: bytes) -> SignedPayload:
    """Split a signed payload into its parts without verifying it.

    Raises:
        SignatureError: If the payload is too short to hold a header.
    """
    if len(payload) < HEADER_SIZE:
        raise SignatureError(
            f"Signed payload too short: {len(payload)} < {HEADER_SIZE} bytes"
        )
    digest = payload[:DIGEST_SIZE]
    (timestamp,) = _TIMESTAMP.unpack_from(payload, DIGEST_SIZE)
    nonce = payload[DIGEST_SIZE + TIMESTAMP_SIZE : HEADER_SIZE]
    return SignedPayload(
        digest=digest,
        timestamp=timestamp,
        nonce=nonce,
        message=payload[HEADER_SIZE:],
    )


def verify_payload(
    key: bytes | str,
    payload: bytes,
    *,
    max_age: float | None = None,
    now: float | None = None,
) -> bytes:
    """Check a signed payload and return the message it carries.

    Args:
        key: Shared secret.
        payload: Bytes as produced by :meth:`Signer.sign`.
        max_age: Reject payloads older than this many seconds.
        now: Current unix time (defaults to ``time.time()``).

    Raises:
        SignatureError: If the digest does not match or the payload is stale.
    """
    if isinstance(key, str):
        key = key.encode("utf-8")
    parts = unpack_payload(payload)
    expected = hmac.new(key, parts.envelope, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, parts.digest):
        raise SignatureError("Payload signature does not match")

    if max_age is not None:
        current = time.time() if now is None else now
        if current - parts.timestamp > max_age:
            raise SignatureError(
                f"Payload is stale: signed at {parts.timestamp}, now {int(current)}"
            )
    return parts.message
