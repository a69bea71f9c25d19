"""Wire helpers shared by the local collaborators.

- Canonical JSON bytes for signed payloads (sorted, compact, ASCII).
- ABI-style encoding of clear values: ``0x`` followed by one 32-byte
  big-endian word per unsigned value, the layout the ledger contract
  decodes in ``verifyDecryption``.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

WORD_HEX_CHARS = 64
MAX_UINT256 = 2**256 - 1


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def encode_clear_values(values: list[int]) -> str:
    """Encode unsigned integers as concatenated 32-byte words.

    Examples
    --------
    >>> encode_clear_values([42])[-4:]
    '002a'
    """
    words: list[str] = []
    for value in values:
        if value < 0 or value > MAX_UINT256:
            raise ValueError(f"Clear value out of uint256 range: {value}")
        words.append(f"{value:0{WORD_HEX_CHARS}x}")
    return "0x" + "".join(words)


def decode_clear_values(encoded: str) -> list[int]:
    """Inverse of ``encode_clear_values``.

    Raises
    ------
    ValueError
        If *encoded* is not a ``0x``-prefixed whole number of 32-byte words.
    """
    if not encoded.startswith("0x"):
        raise ValueError("Encoded clear values must start with 0x.")
    body = encoded[2:]
    if len(body) % WORD_HEX_CHARS:
        raise ValueError(
            f"Encoded clear values length {len(body)} is not a multiple of "
            f"{WORD_HEX_CHARS} hex characters."
        )
    return [
        int(body[i : i + WORD_HEX_CHARS], 16)
        for i in range(0, len(body), WORD_HEX_CHARS)
    ]
