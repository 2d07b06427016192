"""Main comparison engine for crosscheck."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from .differ import Differ
from .exceptions import PayloadSizeError, ValidationError
from .jsonpath_utils import JSONPathMatcher
from .models import ComparisonReport, EngineConfig, ErrorResponse
from .payload import ParseError, parse_payload
from .utils import get_json_size_mb

logger = logging.getLogger(__name__)


class ComparisonEngine:
    """
    Compares a V1 payload against a V2 payload in three stages:

    1. Validation: payload size limits and rename map shape
    2. Masking: drop configured JSONPath ignore paths from both sides
    3. Classification: field diffs plus signature similarity
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the engine.

        Args:
            config: Engine configuration (uses defaults if not provided)
        """
        self.config = config or EngineConfig()

    def compare(
        self,
        v1_json: Any,
        v2_json: Any,
        rename_map: Optional[dict[str, str]] = None
    ) -> ComparisonReport | ErrorResponse:
        """
        Compare two decoded JSON payloads.

        Args:
            v1_json: The baseline response (V1 system)
            v2_json: The response to validate (V2 system)
            rename_map: V1 path -> V2 path for fields renamed between versions

        Returns:
            ComparisonReport on success, ErrorResponse on validation errors
        """
        start_time = time.perf_counter()

        try:
            self._validate_inputs(v1_json, v2_json, rename_map)

            if self.config.ignore_paths:
                v1_json = JSONPathMatcher.delete_paths(v1_json, self.config.ignore_paths)
                v2_json = JSONPathMatcher.delete_paths(v2_json, self.config.ignore_paths)

            report = Differ(rename_map).diff(v1_json, v2_json)
        except ValidationError as e:
            return self._create_error_response("VALIDATION_ERROR", e.message, e.details)
        except PayloadSizeError as e:
            return self._create_error_response(
                "PAYLOAD_SIZE_ERROR",
                str(e),
                {"size_mb": e.size_mb, "limit_mb": e.limit_mb}
            )
        except ValueError as e:
            return self._create_error_response("VALIDATION_ERROR", str(e), {})

        if not self.config.collect_fields:
            report.v1_fields = []
            report.v2_fields = []

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        logger.debug(
            "Compared payloads in %dms: %d fields, similarity %.1f",
            duration_ms, report.total, report.similarity_score
        )
        return report

    def compare_text(
        self,
        v1_text: str | bytes,
        v2_text: str | bytes,
        rename_map: Optional[dict[str, str]] = None
    ) -> ComparisonReport | ErrorResponse:
        """Decode two raw JSON documents and compare them."""
        v1 = parse_payload(v1_text)
        if isinstance(v1, ParseError):
            return self._create_error_response("PARSE_ERROR", v1.reason, {"side": "v1"})
        v2 = parse_payload(v2_text)
        if isinstance(v2, ParseError):
            return self._create_error_response("PARSE_ERROR", v2.reason, {"side": "v2"})
        return self.compare(v1.value, v2.value, rename_map)

    def _validate_inputs(
        self,
        v1_json: Any,
        v2_json: Any,
        rename_map: Optional[dict]
    ):
        """Validate input parameters."""
        if rename_map is not None:
            if not isinstance(rename_map, dict):
                raise ValidationError(
                    "rename_map must be an object",
                    {"type": type(rename_map).__name__}
                )
            for key, value in rename_map.items():
                if not isinstance(key, str) or not isinstance(value, str):
                    raise ValidationError(
                        "rename_map must map field paths to field paths",
                        {"entry": f"{key!r} -> {value!r}"}
                    )

        try:
            v1_size = get_json_size_mb(v1_json)
            v2_size = get_json_size_mb(v2_json)
        except (TypeError, ValueError) as e:
            raise ValidationError("Payloads must be JSON-serializable", {"reason": str(e)})

        if v1_size > self.config.max_payload_size_mb:
            raise PayloadSizeError(v1_size, self.config.max_payload_size_mb)
        if v2_size > self.config.max_payload_size_mb:
            raise PayloadSizeError(v2_size, self.config.max_payload_size_mb)

    def _create_error_response(
        self,
        code: str,
        message: str,
        details: dict
    ) -> ErrorResponse:
        """Create an error response."""
        logger.warning("Comparison rejected (%s): %s", code, message)
        return ErrorResponse(
            success=False,
            error={
                "code": code,
                "message": message,
                "details": details
            }
        )


def compare(
    v1_json: Any,
    v2_json: Any,
    rename_map: Optional[dict[str, str]] = None,
    config: Optional[EngineConfig] = None
) -> ComparisonReport | ErrorResponse:
    """
    Convenience function to compare two JSON payloads.

    Args:
        v1_json: The baseline response
        v2_json: The response to validate
        rename_map: Optional V1 path -> V2 path mapping
        config: Optional engine configuration

    Returns:
        ComparisonReport on success, ErrorResponse on errors
    """
    engine = ComparisonEngine(config)
    return engine.compare(v1_json, v2_json, rename_map)
