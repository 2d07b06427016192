"""Weighted migration readiness scoring."""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

from .exceptions import ConfigurationError, ValidationError
from .models import (
    CategoryScore,
    ErrorResponse,
    ReadinessReport,
    ReadinessStatus,
    Thresholds,
)
from .utils import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_WEIGHTS = {
    "tables": 0.2,
    "functions": 0.3,
    "endpoints": 0.3,
    "references": 0.2,
}
DEFAULT_CRITICAL = frozenset({"tables", "references"})
DEFAULT_THRESHOLDS = Thresholds(ready=95.0, near_ready=80.0)

WEIGHT_TOLERANCE = 1e-6


class ReadinessScorer:
    """
    Combines category pass rates into one overall score and status.

    Weights must sum to 1.0; they are never renormalised. A category in the
    critical set blocks READY unless its pass rate is exactly 100, whatever
    the weighted average.
    """

    def __init__(
        self,
        weights: Optional[dict[str, float]] = None,
        critical: Optional[Iterable[str]] = None,
        thresholds: Optional[Thresholds] = None
    ):
        self.weights = dict(DEFAULT_WEIGHTS if weights is None else weights)
        self.critical = frozenset(DEFAULT_CRITICAL if critical is None else critical)
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self._validate()

    def _validate(self):
        if not self.weights:
            raise ConfigurationError("At least one category weight is required")

        negative = {n: w for n, w in self.weights.items() if w < 0}
        if negative:
            raise ConfigurationError("Weights must not be negative", {"weights": negative})

        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=WEIGHT_TOLERANCE):
            raise ConfigurationError(
                f"Weights must sum to 1.0, got {total}",
                {"sum": total, "weights": self.weights}
            )

        unknown = sorted(self.critical - self.weights.keys())
        if unknown:
            raise ConfigurationError(
                f"Unknown critical categories: {', '.join(unknown)}",
                {"unknown": unknown}
            )

        if self.thresholds.near_ready > self.thresholds.ready:
            raise ConfigurationError(
                "near_ready threshold must not exceed ready threshold",
                {"ready": self.thresholds.ready, "near_ready": self.thresholds.near_ready}
            )

    def score(self, categories: Iterable[CategoryScore]) -> ReadinessReport:
        """
        Score a set of category results.

        Categories with a weight but no result contribute 0.

        Raises:
            ValidationError: for unknown or duplicate categories and for
                pass rates outside 0..100 (NaN included)
        """
        per_category: dict[str, float] = {}
        for category in categories:
            if category.name not in self.weights:
                raise ValidationError(
                    f"Unknown category: {category.name}",
                    {"category": category.name, "known": sorted(self.weights)}
                )
            if category.name in per_category:
                raise ValidationError(
                    f"Duplicate category: {category.name}",
                    {"category": category.name}
                )
            rate = category.pass_rate
            if not math.isfinite(rate) or not 0 <= rate <= 100:
                raise ValidationError(
                    f"Pass rate for {category.name} must be between 0 and 100, got {rate}",
                    {"category": category.name, "pass_rate": rate}
                )
            per_category[category.name] = rate

        overall = round_half_up(
            sum(self.weights[name] * rate for name, rate in per_category.items()), 1
        )
        blocking = sorted(
            name for name in self.critical if per_category.get(name, 0.0) < 100
        )

        if overall >= self.thresholds.ready and not blocking:
            status = ReadinessStatus.READY
        elif overall >= self.thresholds.near_ready:
            status = ReadinessStatus.NEAR_READY
        else:
            status = ReadinessStatus.IN_PROGRESS

        if blocking and overall >= self.thresholds.ready:
            logger.info(
                "Overall %.1f meets the ready threshold but critical categories "
                "are below 100%%: %s", overall, ", ".join(blocking)
            )

        return ReadinessReport(
            per_category=per_category,
            overall=overall,
            status=status,
            weights=dict(self.weights),
            blocking=blocking,
        )


def compute_readiness(
    categories: Iterable[CategoryScore],
    weights: Optional[dict[str, float]] = None,
    critical: Optional[Iterable[str]] = None,
    thresholds: Optional[Thresholds] = None
) -> ReadinessReport | ErrorResponse:
    """
    Convenience function to score categories in one call.

    Returns:
        ReadinessReport on success, ErrorResponse on configuration or input errors
    """
    try:
        scorer = ReadinessScorer(weights, critical, thresholds)
        return scorer.score(categories)
    except ConfigurationError as e:
        return ErrorResponse(error={
            "code": "CONFIGURATION_ERROR",
            "message": e.message,
            "details": e.details,
        })
    except ValidationError as e:
        return ErrorResponse(error={
            "code": "VALIDATION_ERROR",
            "message": e.message,
            "details": e.details,
        })
