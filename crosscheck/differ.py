"""Field-level diff classification between V1 and V2 payloads."""

from __future__ import annotations

from typing import Any, Optional

from .models import (
    ComparisonReport,
    DiffStatus,
    FieldDiff,
    FieldSignature,
    KIND_NULL,
)
from .similarity import signature_similarity
from .structure import iter_fields, signature_map
from .utils import values_equal


class Differ:
    """
    Classifies every leaf field of two payloads.

    Each structural signature is one field. A field whose signature appears
    on both sides is a MATCH or MODIFIED depending on its value. A path that
    exists on both sides under different kinds collapses into one
    TYPE_MISMATCH entry, and a V1-only path whose rename target is V2-only
    collapses into one MODIFIED entry carrying both paths. Everything else
    is REMOVED (V1 only) or ADDED (V2 only).

    Handles:
    - Rename maps (V1 path -> V2 path)
    - Type changes at the same path
    - Null on one side (a value change, not a type change)
    """

    def __init__(self, rename_map: Optional[dict[str, str]] = None):
        self.rename_map = dict(rename_map or {})
        self._reset()

    def _reset(self):
        self.diffs: list[FieldDiff] = []
        self.counts = {status: 0 for status in DiffStatus}
        self.collapsed_pairs = 0

    def diff(self, v1: Any, v2: Any) -> ComparisonReport:
        """
        Compare two decoded JSON values.

        Args:
            v1: The baseline payload (V1 system)
            v2: The payload to validate (V2 system)

        Returns:
            ComparisonReport with one diff per field
        """
        self._reset()

        v1_sigs = signature_map(v1)
        v2_sigs = signature_map(v2)
        v1_by_path = _group_by_path(v1_sigs)
        # V2 signatures with no identical V1 signature, still unclaimed
        v2_rest = _group_by_path(
            {key: entry for key, entry in v2_sigs.items() if key not in v1_sigs}
        )

        for path in sorted(v1_by_path):
            for key, sig1, value1 in v1_by_path[path]:
                if key in v2_sigs:
                    self._diff_values(path, value1, v2_sigs[key][1])
                    continue

                retyped = v2_rest.get(path)
                if retyped:
                    _, sig2, value2 = retyped.pop(0)
                    self._diff_retyped(path, sig1, sig2, value1, value2)
                    continue

                target = self.rename_map.get(path)
                if target is not None and target not in v1_by_path and v2_rest.get(target):
                    _, _, value2 = v2_rest[target].pop(0)
                    self.collapsed_pairs += 1
                    self._add_diff(path, DiffStatus.MODIFIED, value1, value2,
                                   v1_path=path, v2_path=target)
                    continue

                self._add_diff(path, DiffStatus.REMOVED, value1, None, v1_path=path)

        for path in sorted(v2_rest):
            for _, _, value2 in v2_rest[path]:
                self._add_diff(path, DiffStatus.ADDED, None, value2, v2_path=path)

        v1_fields = sorted(str(sig) for sig, _ in iter_fields(v1))
        v2_fields = sorted(str(sig) for sig, _ in iter_fields(v2))

        return ComparisonReport(
            diffs=self.diffs,
            match_count=self.counts[DiffStatus.MATCH],
            modified_count=self.counts[DiffStatus.MODIFIED],
            added_count=self.counts[DiffStatus.ADDED],
            removed_count=self.counts[DiffStatus.REMOVED],
            type_mismatch_count=self.counts[DiffStatus.TYPE_MISMATCH],
            similarity_score=signature_similarity(v1_fields, v2_fields),
            collapsed_pairs=self.collapsed_pairs,
            v1_fields=v1_fields,
            v2_fields=v2_fields,
        )

    def _diff_values(self, path: str, value1: Any, value2: Any):
        """Classify a field whose signature is shared by both sides."""
        status = DiffStatus.MATCH if values_equal(value1, value2) else DiffStatus.MODIFIED
        self._add_diff(path, status, value1, value2)

    def _diff_retyped(
        self,
        path: str,
        sig1: FieldSignature,
        sig2: FieldSignature,
        value1: Any,
        value2: Any
    ):
        """Classify a path present on both sides under different kinds."""
        self.collapsed_pairs += 1
        if sig1.kind == KIND_NULL or sig2.kind == KIND_NULL:
            status = DiffStatus.MODIFIED
        else:
            status = DiffStatus.TYPE_MISMATCH
        self._add_diff(path, status, value1, value2)

    def _add_diff(
        self,
        field: str,
        status: DiffStatus,
        v1_value: Any,
        v2_value: Any,
        v1_path: str = None,
        v2_path: str = None
    ):
        """Add a diff entry and bump its counter."""
        self.diffs.append(FieldDiff(
            field=field,
            status=status,
            v1_value=v1_value,
            v2_value=v2_value,
            v1_path=v1_path,
            v2_path=v2_path,
        ))
        self.counts[status] += 1


def diff_values(
    v1: Any,
    v2: Any,
    rename_map: Optional[dict[str, str]] = None
) -> ComparisonReport:
    """Convenience function to classify the differences of two payloads."""
    return Differ(rename_map).diff(v1, v2)


def _group_by_path(
    signatures: dict[str, tuple[FieldSignature, Any]]
) -> dict[str, list[tuple[str, FieldSignature, Any]]]:
    """Group rendered signatures by leaf path, each group sorted by signature."""
    groups: dict[str, list[tuple[str, FieldSignature, Any]]] = {}
    for key in sorted(signatures):
        sig, value = signatures[key]
        groups.setdefault(sig.path, []).append((key, sig, value))
    return groups
