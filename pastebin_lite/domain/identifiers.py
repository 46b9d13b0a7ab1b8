"""Paste handle generation."""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable
from typing import Protocol

from .errors import IdGenerationError


_UUID_BYTES = 16


class IdGenerator(Protocol):
    def generate(self) -> str: ...


class UuidIdGenerator:
    """
    Version-4 UUID handles drawn from a cryptographic entropy source.

    The handle doubles as the read capability for a paste, so it carries 122
    random bits and nothing derived from time, sequence or content.
    """

    def __init__(self, entropy: Callable[[int], bytes] = os.urandom) -> None:
        self._entropy = entropy

    def generate(self) -> str:
        try:
            raw = self._entropy(_UUID_BYTES)
        except (OSError, NotImplementedError) as exc:
            raise IdGenerationError("Entropy source unavailable.") from exc

        if len(raw) != _UUID_BYTES:
            raise IdGenerationError(
                f"Entropy source returned {len(raw)} bytes, expected {_UUID_BYTES}."
            )
        return str(uuid.UUID(bytes=raw, version=4))
