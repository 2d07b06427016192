"""Structural extraction: JSON values to sorted path/type signatures."""

from __future__ import annotations

from typing import Any, Iterator

from .models import FieldSignature, KIND_ARRAY_EMPTY, KIND_NULL
from .utils import build_path, get_type_name


def iter_fields(value: Any, prefix: str = "") -> Iterator[tuple[FieldSignature, Any]]:
    """
    Walk a JSON value and yield one (signature, leaf value) pair per leaf.

    Arrays are assumed homogeneous: only element 0 is visited, under
    "<prefix>[0]". A heterogeneous array therefore hides differences in
    its later elements. Empty objects contribute nothing.

    Args:
        value: Decoded JSON value
        prefix: Path of the value within the enclosing document

    Yields:
        Tuples of (FieldSignature, leaf value)
    """
    if value is None:
        yield FieldSignature(prefix, KIND_NULL), None
        return

    if isinstance(value, list):
        if not value:
            yield FieldSignature(prefix, KIND_ARRAY_EMPTY), value
            return
        yield from iter_fields(value[0], build_path(prefix, 0))
        return

    if isinstance(value, dict):
        for key, child in value.items():
            yield from iter_fields(child, build_path(prefix, key))
        return

    yield FieldSignature(prefix, get_type_name(value)), value


def extract_structure(value: Any, prefix: str = "") -> list[str]:
    """
    Extract the sorted structural signatures of a JSON value.

    Example:
        >>> extract_structure({"a": 1, "b": {"c": None}})
        ['a: number', 'b.c: null']
    """
    return sorted(str(sig) for sig, _ in iter_fields(value, prefix))


def signature_map(value: Any) -> dict[str, tuple[FieldSignature, Any]]:
    """
    Map each distinct rendered signature to its signature and leaf value.

    Two leaves can share a path under different kinds, e.g. a literal
    "a.b" key next to a nested {"a": {"b": ...}}; both are kept. When the
    same signature repeats, the first leaf wins.
    """
    signatures: dict[str, tuple[FieldSignature, Any]] = {}
    for sig, leaf in iter_fields(value):
        signatures.setdefault(str(sig), (sig, leaf))
    return signatures


def leaf_paths(value: Any) -> set[str]:
    """Set of leaf paths in a JSON value."""
    return {sig.path for sig, _ in iter_fields(value)}
