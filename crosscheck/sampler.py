"""Concurrent endpoint probing and health aggregation."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Iterable, Optional

import httpx

from .exceptions import ValidationError
from .models import (
    ErrorResponse,
    GroupHealth,
    HealthReport,
    ProbeConfig,
    ProbeDescriptor,
    ProbeResult,
)
from .payload import FetchError, send_request
from .utils import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY_PARAM = "user_id"
QUERY_METHODS = ("GET", "DELETE")


class EndpointSampler:
    """
    Probes a bounded batch of endpoints at once.

    Every probe runs under its own timeout. A timeout, transport error or
    non-2xx status becomes a failed ProbeResult; it never raises and never
    cancels the other probes. The sampler applies no concurrency limit of
    its own, so callers bound the batch (see select_probes and
    ProbeConfig.max_probes).
    """

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Args:
            config: Probe configuration (uses defaults if not provided)
            client: Shared AsyncClient; one is created per batch if omitted
        """
        self.config = config or ProbeConfig()
        self.client = client

    def build_request(self, descriptor: ProbeDescriptor, identity: Any) -> dict:
        """
        Build the keyword arguments for one probe request.

        GET and DELETE carry the identity and extra params in the query
        string; other methods send them as a JSON body.
        """
        method = descriptor.method.upper()
        if descriptor.path.startswith(("http://", "https://")):
            url = descriptor.path
        else:
            url = self.config.base_url_for(descriptor.group).rstrip("/") + descriptor.path

        params: dict[str, Any] = {}
        if descriptor.requires_identity and identity is not None:
            params[descriptor.identity_param_name or DEFAULT_IDENTITY_PARAM] = identity
        if descriptor.extra_params:
            params.update(descriptor.extra_params)

        request: dict[str, Any] = {"method": method, "url": url}
        if method in QUERY_METHODS:
            if params:
                request["params"] = params
        else:
            request["json"] = params
        return request

    async def probe(
        self,
        client: httpx.AsyncClient,
        descriptor: ProbeDescriptor,
        identity: Any
    ) -> ProbeResult:
        """Run one probe and capture its outcome."""
        timeout_s = self.config.timeout_ms / 1000
        request = self.build_request(descriptor, identity)
        method = request.pop("method")
        url = request.pop("url")

        start = time.perf_counter()
        try:
            outcome = await asyncio.wait_for(
                send_request(client, method, url, timeout=timeout_s, **request),
                timeout=timeout_s
            )
        except asyncio.TimeoutError:
            outcome = FetchError(f"Timed out after {self.config.timeout_ms}ms")
        latency_ms = int((time.perf_counter() - start) * 1000)

        if isinstance(outcome, FetchError):
            logger.debug("Probe %s %s failed: %s", method, url, outcome.reason)
            return ProbeResult(
                descriptor=descriptor,
                success=False,
                latency_ms=latency_ms,
                status_code=outcome.status_code,
                error=outcome.reason,
            )

        return ProbeResult(
            descriptor=descriptor,
            success=True,
            latency_ms=latency_ms,
            status_code=outcome.status_code,
        )

    async def sample(
        self,
        descriptors: list[ProbeDescriptor],
        identity: Any = None
    ) -> HealthReport:
        """
        Probe every descriptor concurrently and aggregate the results.

        Args:
            descriptors: Pre-selected endpoints to probe
            identity: Value sent for descriptors that require an identity

        Returns:
            HealthReport over all probes

        Raises:
            ValidationError: if the batch exceeds ProbeConfig.max_probes
        """
        if len(descriptors) > self.config.max_probes:
            raise ValidationError(
                f"Too many probes: {len(descriptors)} > {self.config.max_probes}",
                {"count": len(descriptors), "max_probes": self.config.max_probes}
            )

        logger.info("Probing %d endpoints...", len(descriptors))

        if self.client is not None:
            results = await self._gather(self.client, descriptors, identity)
        else:
            async with httpx.AsyncClient(headers=self.config.headers) as client:
                results = await self._gather(client, descriptors, identity)

        report = aggregate_results(results)
        logger.info(
            "Probing complete - %d/%d passed, avg %dms",
            report.passed, report.tested, report.avg_latency_ms
        )
        return report

    async def _gather(
        self,
        client: httpx.AsyncClient,
        descriptors: list[ProbeDescriptor],
        identity: Any
    ) -> list[ProbeResult]:
        return list(await asyncio.gather(
            *(self.probe(client, d, identity) for d in descriptors)
        ))


def _mean_latency(results: list[ProbeResult]) -> int:
    if not results:
        return 0
    return int(round_half_up(sum(r.latency_ms for r in results) / len(results)))


def aggregate_results(results: Iterable[ProbeResult]) -> HealthReport:
    """
    Summarise probe results overall and per group.

    A group's average latency covers only that group's probes; averages over
    no probes are 0.
    """
    results = list(results)
    grouped: dict[str, list[ProbeResult]] = {}
    for result in results:
        grouped.setdefault(result.descriptor.group, []).append(result)

    by_group = {}
    for group, group_results in grouped.items():
        passed = sum(1 for r in group_results if r.success)
        by_group[group] = GroupHealth(
            tested=len(group_results),
            passed=passed,
            failed=len(group_results) - passed,
            avg_latency_ms=_mean_latency(group_results),
        )

    passed = sum(1 for r in results if r.success)
    return HealthReport(
        tested=len(results),
        passed=passed,
        failed=len(results) - passed,
        avg_latency_ms=_mean_latency(results),
        by_group=by_group,
        results=results,
    )


def select_probes(
    descriptors: Iterable[ProbeDescriptor],
    per_group_limits: dict[str, int]
) -> list[ProbeDescriptor]:
    """
    Take the first N descriptors of each listed group.

    Groups appear in the order of per_group_limits; unlisted groups are
    skipped.
    """
    descriptors = list(descriptors)
    selected = []
    for group, limit in per_group_limits.items():
        in_group = [d for d in descriptors if d.group == group]
        selected.extend(in_group[:limit])
    return selected


def sample_endpoints(
    descriptors: list[ProbeDescriptor],
    identity: Any = None,
    timeout_ms: Optional[int] = None,
    config: Optional[ProbeConfig] = None,
    client: Optional[httpx.AsyncClient] = None
) -> HealthReport | ErrorResponse:
    """
    Convenience function to probe endpoints from synchronous code.

    Args:
        descriptors: Pre-selected endpoints to probe
        identity: Identity value for endpoints that require one
        timeout_ms: Per-probe timeout (overrides config.timeout_ms)
        config: Optional probe configuration
        client: Optional AsyncClient (e.g. with a mock transport)

    Returns:
        HealthReport on success, ErrorResponse on input errors
    """
    config = config or ProbeConfig()
    if timeout_ms is not None:
        config = replace(config, timeout_ms=timeout_ms)

    if config.timeout_ms <= 0:
        return ErrorResponse(error={
            "code": "VALIDATION_ERROR",
            "message": "timeout_ms must be positive",
            "details": {"timeout_ms": config.timeout_ms},
        })

    sampler = EndpointSampler(config, client)
    try:
        return asyncio.run(sampler.sample(descriptors, identity))
    except ValidationError as e:
        return ErrorResponse(error={
            "code": "VALIDATION_ERROR",
            "message": e.message,
            "details": e.details,
        })
