"""Signature-overlap similarity between two payloads."""

from __future__ import annotations

from typing import Any, Iterable

from .structure import extract_structure
from .utils import round_half_up


def signature_similarity(v1_fields: Iterable[str], v2_fields: Iterable[str]) -> float:
    """
    Percentage of the signature union present on both sides.

    Returns 100.0 when both sides have no signatures at all.
    """
    v1_set = set(v1_fields)
    v2_set = set(v2_fields)
    union = v1_set | v2_set
    if not union:
        return 100.0
    shared = len(v1_set & v2_set)
    return round_half_up(shared / len(union) * 100, 1)


def similarity(v1: Any, v2: Any) -> float:
    """
    Structural similarity of two JSON values, 0-100 with one decimal.

    Renamed fields lower the score; rename maps only affect the diff
    classification.
    """
    return signature_similarity(extract_structure(v1), extract_structure(v2))
