from __future__ import annotations

import base64
import json
from typing import Any, Optional


def decode_claims(token: str) -> Optional[dict[str, Any]]:
    """
    Decode the payload segment of a JWT without verifying its signature.

    Returns None for anything that is not a three-segment token with a JSON object payload.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return None
    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (ValueError, UnicodeError):
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def expires_at(token: str) -> Optional[float]:
    claims = decode_claims(token)
    if not claims:
        return None
    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None
    return float(exp)


def is_known_expired(token: str, now: float) -> bool:
    """Opaque tokens carry no expiry and are never considered expired here."""
    exp = expires_at(token)
    if exp is None:
        return False
    return exp < now
