from __future__ import annotations

from typing import Optional

EMPTY_FINGERPRINT = ""
SLICE_LENGTH = 32


def fingerprint_image(value: Optional[str]) -> str:
    """Return a cheap identity string for an encoded image.

    Only the length and the leading / trailing slices are read, so the cost
    does not grow with the payload. Collisions are possible but accepted.
    """

    if not value:
        return EMPTY_FINGERPRINT
    return f"{len(value)}:{value[:SLICE_LENGTH]}:{value[-SLICE_LENGTH:]}"
