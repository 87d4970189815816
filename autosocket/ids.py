"""Identifier generation for generated entity templates.

Two kinds of 16-digit uppercase hex tokens:

- sequential: counter * odd constant XOR wall-clock nanoseconds. Unique per
  process even when called many times within one clock tick.
- random: 64 uniform random bits, for GUIDs that must not collide across
  processes (content GUIDs written into .meta files and zone clones).
"""

import itertools
import re
import secrets
import time

_MASK64 = (1 << 64) - 1
_GOLDEN = 0x9E3779B97F4A7C15

_RE_IDENTIFIER = re.compile(r"[0-9A-Fa-f]{16}")

# next() on itertools.count is atomic under the GIL
_counter = itertools.count(1)


def next_sequential() -> str:
    """Return a process-unique 16-hex-digit identifier."""
    c = next(_counter) & _MASK64
    value = (time.time_ns() & _MASK64) ^ ((c * _GOLDEN) & _MASK64)
    return f"{value:016X}"


def next_random() -> str:
    """Return a random 16-hex-digit identifier."""
    return f"{secrets.randbits(64):016X}"


def is_identifier(value: str) -> bool:
    """True if ``value`` is exactly 16 hex characters."""
    return bool(_RE_IDENTIFIER.fullmatch(value or ""))
