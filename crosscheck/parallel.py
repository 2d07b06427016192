"""Live side-by-side comparison of one endpoint on both systems."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .engine import ComparisonEngine
from .jsonpath_utils import count_records
from .models import ComparisonReport, ErrorResponse
from .payload import Ok, fetch_json

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparableEndpoint:
    """An endpoint that exists on both the V1 and the V2 system."""
    id: str
    v1_url: str
    v2_url: str
    name: str = ""
    method: str = "GET"
    requires_identity: bool = False
    identity_param_name: str = "user_id"
    # JSONPath to the record list; envelope keys are tried when unset
    records_path: Optional[str] = None
    rename_map: Optional[dict] = None


@dataclass
class SideResult:
    """What one system returned."""
    url: str
    status: int = 0
    duration_ms: int = 0
    data: Any = None
    error: Optional[str] = None
    record_count: Optional[int] = None

    def to_dict(self) -> dict:
        result = {
            "url": self.url,
            "status": self.status,
            "duration_ms": self.duration_ms,
            "data": self.data,
        }
        if self.error:
            result["error"] = self.error
        if self.record_count is not None:
            result["record_count"] = self.record_count
        return result


@dataclass
class ParallelComparison:
    """Outcome of calling one endpoint on both systems and comparing the bodies."""
    endpoint: ComparableEndpoint
    v1: SideResult
    v2: SideResult
    comparison: Optional[ComparisonReport] = None
    error: Optional[dict] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')
    )

    @property
    def success(self) -> bool:
        return self.comparison is not None

    @property
    def record_count_match(self) -> bool:
        return (self.v1.record_count is not None
                and self.v1.record_count == self.v2.record_count)

    def to_dict(self) -> dict:
        result = {
            "success": self.success,
            "endpoint": {"id": self.endpoint.id, "name": self.endpoint.name or self.endpoint.id},
            "v1": self.v1.to_dict(),
            "v2": self.v2.to_dict(),
            "timestamp": self.timestamp,
        }
        if self.comparison is not None:
            comparison = self.comparison.to_dict()
            comparison["record_count_match"] = self.record_count_match
            result["comparison"] = comparison
        if self.error:
            result["error"] = self.error
        return result


class ParallelComparator:
    """Calls V1 and V2 concurrently and runs the comparison engine on the results."""

    def __init__(
        self,
        engine: Optional[ComparisonEngine] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout_ms: int = 30000
    ):
        self.engine = engine or ComparisonEngine()
        self.client = client
        self.timeout_ms = timeout_ms

    async def compare_endpoint(
        self,
        endpoint: ComparableEndpoint,
        identity: Any = None,
        params: Optional[dict] = None
    ) -> ParallelComparison:
        """
        Fetch the endpoint from both systems and compare the decoded bodies.

        A failure on either side is reported in that side's `error` and the
        comparison is left empty.
        """
        query = dict(params or {})
        if endpoint.requires_identity and identity is not None:
            query[endpoint.identity_param_name] = identity

        if self.client is not None:
            v1, v2 = await self._fetch_both(self.client, endpoint, query)
        else:
            async with httpx.AsyncClient() as client:
                v1, v2 = await self._fetch_both(client, endpoint, query)

        result = ParallelComparison(endpoint=endpoint, v1=v1, v2=v2)
        if v1.error or v2.error:
            logger.warning("Parallel compare of %s failed: v1=%s v2=%s",
                           endpoint.id, v1.error, v2.error)
            return result

        report = self.engine.compare(v1.data, v2.data, endpoint.rename_map)
        if isinstance(report, ErrorResponse):
            result.error = report.error
        else:
            result.comparison = report
        return result

    async def _fetch_both(
        self,
        client: httpx.AsyncClient,
        endpoint: ComparableEndpoint,
        query: dict
    ) -> tuple[SideResult, SideResult]:
        v1, v2 = await asyncio.gather(
            self._fetch_side(client, endpoint, endpoint.v1_url, query),
            self._fetch_side(client, endpoint, endpoint.v2_url, query),
        )
        return v1, v2

    async def _fetch_side(
        self,
        client: httpx.AsyncClient,
        endpoint: ComparableEndpoint,
        url: str,
        query: dict
    ) -> SideResult:
        outcome = await fetch_json(
            client, endpoint.method, url,
            params=query or None,
            timeout=self.timeout_ms / 1000,
        )
        side = SideResult(
            url=url,
            status=outcome.status_code or 0,
            duration_ms=outcome.duration_ms,
        )

        if isinstance(outcome, Ok):
            side.data = outcome.value
            try:
                side.record_count = count_records(outcome.value, endpoint.records_path)
            except ValueError as e:
                side.error = str(e)
        else:
            side.error = outcome.reason
        return side


def compare_endpoint(
    endpoint: ComparableEndpoint,
    identity: Any = None,
    params: Optional[dict] = None,
    engine: Optional[ComparisonEngine] = None,
    client: Optional[httpx.AsyncClient] = None
) -> ParallelComparison:
    """Convenience function to run one parallel comparison from synchronous code."""
    comparator = ParallelComparator(engine, client)
    return asyncio.run(comparator.compare_endpoint(endpoint, identity, params))
