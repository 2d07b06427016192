"""JSONPath utilities for the crosscheck engine."""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Optional

from jsonpath_ng.jsonpath import Fields, Index
from jsonpath_ng import parse as jsonpath_parse
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError

# Envelope keys that commonly wrap a list of records
RECORD_WRAPPERS = ("items", "data", "records", "results")


class JSONPathMatcher:
    """Utility class for JSONPath matching and manipulation."""

    # Cache for compiled JSONPath expressions
    _cache: dict = {}

    @classmethod
    def compile(cls, path: str):
        """Compile and cache a JSONPath expression."""
        if path not in cls._cache:
            try:
                cls._cache[path] = jsonpath_parse(path)
            except (JsonPathLexerError, JsonPathParserError) as e:
                raise ValueError(f"Invalid JSONPath expression '{path}': {e}")
        return cls._cache[path]

    @classmethod
    def find_values(cls, data: Any, path: str) -> list[Any]:
        """Find all values matching a JSONPath expression."""
        expr = cls.compile(path)
        return [m.value for m in expr.find(data)]

    @classmethod
    def delete_paths(cls, data: Any, paths: list[str]) -> Any:
        """
        Return a copy of data with every match of the given paths removed.

        Args:
            data: The data to filter (left untouched)
            paths: List of JSONPath expressions

        Returns:
            Filtered copy
        """
        result = deepcopy(data)
        for path in paths:
            # Reverse order keeps sibling list indices valid while deleting
            for match in reversed(cls.compile(path).find(result)):
                if match.context is None:
                    continue
                parent = match.context.value
                key = match.path
                if isinstance(key, Fields) and isinstance(parent, dict):
                    for name in key.fields:
                        parent.pop(name, None)
                elif isinstance(key, Index) and isinstance(parent, list):
                    index = key.indices[0] if hasattr(key, "indices") else key.index
                    if 0 <= index < len(parent):
                        del parent[index]
        return result


def count_records(data: Any, records_path: Optional[str] = None) -> int:
    """
    Count the records in a response body.

    With a records_path the first match is counted. Otherwise a top-level
    list, or a list under one of the usual envelope keys, is counted; any
    other payload counts as a single record.
    """
    if records_path:
        values = JSONPathMatcher.find_values(data, records_path)
        if not values:
            return 0
        target = values[0]
        return len(target) if isinstance(target, list) else 1

    if isinstance(data, list):
        return len(data)
    if isinstance(data, dict):
        for key in RECORD_WRAPPERS:
            if isinstance(data.get(key), list):
                return len(data[key])
    return 1
