"""
Amora — Round-robin credential rotation for the compatibility oracle.

The oracle enforces rate limits per API key, so each batch call takes the next
key from the pool.  ``itertools.count`` provides the atomic counter: ``next``
on it is a single C-level operation, safe for concurrent batch dispatch.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable


class NoCredentialsError(RuntimeError):
    """Raised when the rotator has no keys to hand out."""


class CredentialRotator:
    """Hands out API keys in round-robin order."""

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys: tuple[str, ...] = tuple(k for k in keys if k)
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._keys)

    def __bool__(self) -> bool:
        return bool(self._keys)

    def next_key(self) -> str:
        if not self._keys:
            raise NoCredentialsError("No oracle API keys configured")
        return self._keys[next(self._counter) % len(self._keys)]
