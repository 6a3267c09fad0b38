from __future__ import annotations

import secrets

from .errors import PayloadGenerationError

DEFAULT_PAYLOAD_LENGTH = 64


def generate_random_string(length: int = DEFAULT_PAYLOAD_LENGTH) -> str:
    """Return ``length`` lowercase hex characters built from ``length // 2`` random bytes."""
    if length < 0 or length % 2:
        raise ValueError(f"payload length must be a non-negative even number, got {length}")
    try:
        return secrets.token_hex(length // 2)
    except (OSError, NotImplementedError) as exc:
        raise PayloadGenerationError(f"failed to read {length // 2} random bytes") from exc


__all__ = ["DEFAULT_PAYLOAD_LENGTH", "generate_random_string"]
