"""Weighted 64-bit simhash for near-duplicate content detection.

Tokens are lowercase alphanumeric runs of length >= 2, hashed with FNV-1a
and weighted by frequency. Textually similar samples end up a small Hamming
distance apart; the all-zero fingerprint marks "no signal" and never takes
part in duplicate comparison.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Any, Dict, List, Sequence

from .audit_config import FINGERPRINT_MAX_TOKENS, NEAR_DUPLICATE_MAX_DISTANCE, NEAR_DUPLICATE_MAX_PAIRS

_TOKEN_RE = re.compile(r"[a-z0-9]{2,}")
_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK64 = (1 << 64) - 1


def fnv1a_64(token: str) -> int:
    h = _FNV_OFFSET
    for byte in token.encode("utf-8"):
        h ^= byte
        h = (h * _FNV_PRIME) & _MASK64
    return h


def tokenize(text: str, max_tokens: int = FINGERPRINT_MAX_TOKENS) -> List[str]:
    return _TOKEN_RE.findall((text or "").lower())[:max_tokens]


def simhash64(text: str, max_tokens: int = FINGERPRINT_MAX_TOKENS) -> int:
    tokens = tokenize(text, max_tokens)
    if not tokens:
        return 0
    vector = [0] * 64
    for token, weight in Counter(tokens).items():
        h = fnv1a_64(token)
        for i in range(64):
            vector[i] += weight if (h >> i) & 1 else -weight
    out = 0
    for i, value in enumerate(vector):
        if value > 0:
            out |= 1 << i
    return out


def hamming_distance(a: int, b: int) -> int:
    return bin((a ^ b) & _MASK64).count("1")


def near_duplicate_pairs(
    items: Sequence[Dict[str, Any]],
    max_distance: int = NEAR_DUPLICATE_MAX_DISTANCE,
    limit: int = NEAR_DUPLICATE_MAX_PAIRS,
) -> List[Dict[str, Any]]:
    """Pairwise scan of ``{"url", "type", "fingerprint"}`` items.

    Only items sharing a classification are compared; zero fingerprints are
    skipped. Output keeps scan order and stops at ``limit`` pairs.
    """
    candidates = [item for item in items if item.get("fingerprint")]
    pairs: List[Dict[str, Any]] = []
    for i, left in enumerate(candidates):
        for right in candidates[i + 1:]:
            if left["type"] != right["type"]:
                continue
            distance = hamming_distance(left["fingerprint"], right["fingerprint"])
            if distance <= max_distance:
                pairs.append({"a": left["url"], "b": right["url"], "distance": distance, "type": left["type"]})
                if len(pairs) >= limit:
                    return pairs
    return pairs


__all__ = [
    "fnv1a_64",
    "tokenize",
    "simhash64",
    "hamming_distance",
    "near_duplicate_pairs",
]
