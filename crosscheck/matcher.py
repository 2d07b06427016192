"""Ranked name matching between V1 and V2 identifiers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from .structure import leaf_paths


class MatchConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class MatchPattern(Enum):
    EXACT = "exact_match"
    CASE_INSENSITIVE = "case_insensitive"
    SNAKE_TO_CAMEL = "snake_to_camel"
    PREFIX_STRIPPED = "prefix_stripped"
    FOLDER = "folder_match"
    SEMANTIC = "semantic_match"
    NO_MATCH = "no_match"


_VERB_PREFIX = re.compile(r'^(sync_|process_|update_|get_|fetch_|handle_|create_|delete_)')
_WORD_SPLIT = re.compile(r'[_\s-]+')


@dataclass(frozen=True)
class MatchResult:
    """Best candidate for a name, with how it was found."""
    pattern: MatchPattern
    confidence: MatchConfidence
    reason: str
    matched_name: Optional[str] = None

    @property
    def matched(self) -> bool:
        return self.matched_name is not None

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern.value,
            "confidence": self.confidence.value,
            "matched_name": self.matched_name,
            "reason": self.reason,
        }


def base_name(full_path: str) -> str:
    """Last segment of a folder path: Workers/sync_fub -> sync_fub."""
    return full_path.split("/")[-1]


def snake_to_camel(name: str) -> str:
    return re.sub(r'_([a-z])', lambda m: m.group(1).upper(), name)


def _words(name: str) -> list[str]:
    return [w for w in _WORD_SPLIT.split(name.lower()) if len(w) > 2]


def find_best_match(name: str, candidates: Iterable[str]) -> MatchResult:
    """
    Find the best candidate for name, trying rules from strongest to weakest.

    High: exact, case-insensitive, snake_case/camelCase.
    Medium: verb prefix stripped (sync_fub ~ fub), folder containment.
    Low: shared significant words.
    """
    candidates = list(candidates)
    v1_base = base_name(name)
    v1_lower = v1_base.lower()
    v1_camel = snake_to_camel(v1_base)

    for candidate in candidates:
        if base_name(candidate) == v1_base:
            return MatchResult(MatchPattern.EXACT, MatchConfidence.HIGH,
                               f'Exact name match: "{v1_base}"', candidate)

    for candidate in candidates:
        if base_name(candidate).lower() == v1_lower:
            return MatchResult(MatchPattern.CASE_INSENSITIVE, MatchConfidence.HIGH,
                               f'Case-insensitive match: "{v1_base}" -> "{base_name(candidate)}"',
                               candidate)

    for candidate in candidates:
        v2_base = base_name(candidate)
        if v2_base == v1_camel or snake_to_camel(v2_base) == v1_camel:
            return MatchResult(MatchPattern.SNAKE_TO_CAMEL, MatchConfidence.HIGH,
                               f'Naming convention: "{v1_base}" -> "{v2_base}"', candidate)

    v1_stripped = _VERB_PREFIX.sub("", v1_base).lower()
    for candidate in candidates:
        v2_base = base_name(candidate)
        if _VERB_PREFIX.sub("", v2_base).lower() == v1_stripped:
            return MatchResult(MatchPattern.PREFIX_STRIPPED, MatchConfidence.MEDIUM,
                               f'Prefix normalization: "{v1_base}" -> "{v2_base}"', candidate)

    if "/" in name:
        for candidate in candidates:
            v2_lower = base_name(candidate).lower()
            if v2_lower and (v2_lower in v1_lower or v1_lower in v2_lower):
                return MatchResult(MatchPattern.FOLDER, MatchConfidence.MEDIUM,
                                   f'Folder path match: "{name}" -> "{candidate}"', candidate)

    v1_words = _words(v1_base)
    for candidate in candidates:
        v2_words = _words(base_name(candidate))
        common = [w for w in v1_words if w in v2_words]
        if len(common) >= 2 or (len(common) == 1 and len(common[0]) > 5):
            return MatchResult(MatchPattern.SEMANTIC, MatchConfidence.LOW,
                               f'Semantic match ({", ".join(common)}): '
                               f'"{v1_base}" -> "{base_name(candidate)}"', candidate)

    return MatchResult(MatchPattern.NO_MATCH, MatchConfidence.LOW,
                       f'No V2 equivalent found for "{name}"')


def _split_field_path(path: str) -> tuple[str, str]:
    parent, _, leaf = path.rpartition(".")
    return parent, leaf


@dataclass
class RenameSuggestions:
    """Rename candidates between V1-only and V2-only field paths."""
    accepted: dict[str, str] = field(default_factory=dict)
    # Every V1-only path with its best match, accepted or not
    matches: dict[str, MatchResult] = field(default_factory=dict)

    def rejected(self) -> dict[str, MatchResult]:
        return {p: m for p, m in self.matches.items() if m.matched and p not in self.accepted}

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "matches": {p: m.to_dict() for p, m in self.matches.items()},
        }


def suggest_renames(
    v1_paths: Iterable[str],
    v2_paths: Iterable[str],
    min_confidence: MatchConfidence = MatchConfidence.HIGH
) -> RenameSuggestions:
    """
    Pair V1-only field paths with V2-only paths under the same parent.

    Only the leaf key is matched. Pairs below min_confidence are kept in
    `matches` with their tier but never accepted, and each V2 path is used
    at most once.
    """
    v2_by_parent: dict[str, list[str]] = {}
    for path in v2_paths:
        parent, leaf = _split_field_path(path)
        v2_by_parent.setdefault(parent, []).append(leaf)

    suggestions = RenameSuggestions()
    taken: set[str] = set()
    for path in sorted(v1_paths):
        parent, leaf = _split_field_path(path)
        candidates = [c for c in v2_by_parent.get(parent, [])
                      if (f"{parent}.{c}" if parent else c) not in taken]
        result = find_best_match(leaf, candidates)
        suggestions.matches[path] = result
        if result.matched and result.confidence.rank >= min_confidence.rank:
            target = f"{parent}.{result.matched_name}" if parent else result.matched_name
            suggestions.accepted[path] = target
            taken.add(target)
    return suggestions


def suggest_rename_map(
    v1: Any,
    v2: Any,
    min_confidence: MatchConfidence = MatchConfidence.HIGH
) -> RenameSuggestions:
    """Suggest renames for the leaf paths present on only one side of two payloads."""
    v1_paths = leaf_paths(v1)
    v2_paths = leaf_paths(v2)
    v1_only = sorted(v1_paths - v2_paths)
    v2_only = sorted(v2_paths - v1_paths)
    return suggest_renames(v1_only, v2_only, min_confidence)
