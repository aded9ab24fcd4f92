"""Utility helpers for the places discovery engine."""

from __future__ import annotations

import hashlib
import json
import math
from typing import Any, Iterable, List, Optional


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers."""
    R = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def canonical_key(prefix: str, payload: Any) -> str:
    """Stable cache key for a JSON-able request signature.

    Dict keys are sorted so that two logically equal requests always map to
    the same entry regardless of argument order.
    """
    normalized = json.dumps(payload, sort_keys=True, default=str)
    digest = hashlib.sha256(normalized.encode()).hexdigest()[:16]
    return f"{prefix}:{digest}"


def dedupe(items: Iterable[str]) -> List[str]:
    """Drop duplicates while preserving first-seen order."""
    return list(dict.fromkeys(items))
