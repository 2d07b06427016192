"""Tests for endpoint probing, payload fetching and live parallel comparison."""

import asyncio
import json
import time

import httpx
import pytest
from crosscheck import (
    ComparableEndpoint,
    EndpointSampler,
    ErrorResponse,
    FetchError,
    Ok,
    ParallelComparator,
    ParseError,
    ProbeConfig,
    ProbeDescriptor,
    ProbeResult,
    aggregate_results,
    fetch_json,
    parse_payload,
    sample_endpoints,
    select_probes,
)
from crosscheck.jsonpath_utils import count_records
from crosscheck.parallel import compare_endpoint


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def ok_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"ok": True})


class TestBuildRequest:
    """Test probe request construction."""

    def setup_method(self):
        self.sampler = EndpointSampler(ProbeConfig(
            base_url="http://v2.test",
            group_base_urls={"workers": "http://workers.test/"},
        ))

    def test_get_identity_in_query(self):
        """Test GET probes send the identity as a query parameter."""
        descriptor = ProbeDescriptor("/api/users", requires_identity=True)
        request = self.sampler.build_request(descriptor, 42)

        assert request["method"] == "GET"
        assert request["url"] == "http://v2.test/api/users"
        assert request["params"] == {"user_id": 42}

    def test_post_identity_in_body(self):
        """Test POST probes send identity and extra params as a JSON body."""
        descriptor = ProbeDescriptor(
            "/api/assign",
            method="post",
            requires_identity=True,
            identity_param_name="agent_id",
            extra_params={"limit": 5},
        )
        request = self.sampler.build_request(descriptor, 42)

        assert request["method"] == "POST"
        assert request["json"] == {"agent_id": 42, "limit": 5}
        assert "params" not in request

    def test_identity_not_required(self):
        """Test identity is omitted for descriptors that do not need it."""
        request = self.sampler.build_request(ProbeDescriptor("/api/health"), 42)
        assert "params" not in request

    def test_group_base_url(self):
        """Test per-group base URLs."""
        descriptor = ProbeDescriptor("/jobs", group="workers")
        request = self.sampler.build_request(descriptor, None)
        assert request["url"] == "http://workers.test/jobs"

    def test_absolute_url(self):
        """Test absolute descriptor paths are used as-is."""
        descriptor = ProbeDescriptor("https://other.test/ping")
        request = self.sampler.build_request(descriptor, None)
        assert request["url"] == "https://other.test/ping"


class TestEndpointSampler:
    """Test concurrent probing against a mock transport."""

    def setup_method(self):
        self.config = ProbeConfig(base_url="http://v2.test", timeout_ms=1000)

    def test_all_pass(self):
        """Test every probe succeeds."""
        descriptors = [ProbeDescriptor(f"/api/{n}") for n in ("a", "b", "c")]
        report = sample_endpoints(descriptors, config=self.config, client=make_client(ok_handler))

        assert report.tested == 3
        assert report.passed == 3
        assert report.failed == 0
        assert all(r.status_code == 200 for r in report.results)

    def test_query_identity_reaches_server(self):
        """Test the identity parameter is sent on the wire."""
        seen = []

        def handler(request):
            seen.append(request.url.params.get("user_id"))
            return httpx.Response(200, json=[])

        descriptors = [ProbeDescriptor("/api/me", requires_identity=True)]
        sample_endpoints(descriptors, identity=7, config=self.config, client=make_client(handler))
        assert seen == ["7"]

    def test_body_reaches_server(self):
        """Test POST probes carry a JSON body."""
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201)

        descriptors = [ProbeDescriptor("/api/sync", method="POST", requires_identity=True)]
        report = sample_endpoints(descriptors, identity="u1", config=self.config,
                                  client=make_client(handler))

        assert bodies == [{"user_id": "u1"}]
        assert report.passed == 1

    def test_http_error_status(self):
        """Test non-2xx responses are failed probes."""
        def handler(request):
            if request.url.path == "/broken":
                return httpx.Response(500)
            return httpx.Response(200, json={})

        descriptors = [ProbeDescriptor("/fine"), ProbeDescriptor("/broken")]
        report = sample_endpoints(descriptors, config=self.config, client=make_client(handler))

        assert report.passed == 1
        assert report.failed == 1
        failed = [r for r in report.results if not r.success][0]
        assert failed.status_code == 500
        assert failed.error == "HTTP 500"

    def test_transport_error(self):
        """Test connection errors are captured per probe."""
        def handler(request):
            if request.url.path == "/down":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200)

        descriptors = [ProbeDescriptor("/down"), ProbeDescriptor("/up")]
        report = sample_endpoints(descriptors, config=self.config, client=make_client(handler))

        assert report.tested == 2
        assert report.failed == 1
        assert "connection refused" in report.results[0].error

    def test_timeout(self):
        """Test a slow endpoint times out without affecting the others."""
        async def handler(request):
            if request.url.path == "/slow":
                await asyncio.sleep(2)
            return httpx.Response(200)

        config = ProbeConfig(base_url="http://v2.test", timeout_ms=50)
        descriptors = [ProbeDescriptor("/slow"), ProbeDescriptor("/fast")]
        report = sample_endpoints(descriptors, config=config, client=make_client(handler))

        assert report.passed == 1
        slow = report.results[0]
        assert slow.success is False
        assert slow.error == "Timed out after 50ms"
        assert slow.latency_ms < 2000

    def test_probes_run_concurrently(self):
        """Test wall time is bounded by the slowest probe, not the sum."""
        async def handler(request):
            await asyncio.sleep(0.3)
            return httpx.Response(200)

        descriptors = [ProbeDescriptor(f"/slow/{n}") for n in range(8)]
        start = time.perf_counter()
        report = sample_endpoints(descriptors, config=self.config, client=make_client(handler))
        elapsed = time.perf_counter() - start

        assert report.passed == 8
        assert elapsed < 8 * 0.3 / 2

    def test_timeout_override(self):
        """Test timeout_ms overrides the config without changing it."""
        report = sample_endpoints([ProbeDescriptor("/a")], timeout_ms=500, config=self.config,
                                  client=make_client(ok_handler))
        assert report.passed == 1
        assert self.config.timeout_ms == 1000

    def test_results_keep_descriptor_order(self):
        """Test results are listed in descriptor order."""
        descriptors = [ProbeDescriptor(f"/{n}") for n in range(5)]
        report = sample_endpoints(descriptors, config=self.config, client=make_client(ok_handler))
        assert [r.descriptor.path for r in report.results] == [d.path for d in descriptors]

    def test_grouped_stats(self):
        """Test per-group counts."""
        def handler(request):
            return httpx.Response(503 if "workers" in request.url.path else 200)

        descriptors = [
            ProbeDescriptor("/users/1", group="users"),
            ProbeDescriptor("/users/2", group="users"),
            ProbeDescriptor("/workers/1", group="workers"),
        ]
        report = sample_endpoints(descriptors, config=self.config, client=make_client(handler))

        assert report.by_group["users"].passed == 2
        assert report.by_group["workers"].failed == 1
        assert report.to_dict()["summary"]["by_group"]["workers"]["tested"] == 1

    def test_too_many_probes(self):
        """Test batches above max_probes are rejected."""
        config = ProbeConfig(base_url="http://v2.test", max_probes=2)
        descriptors = [ProbeDescriptor(f"/{n}") for n in range(3)]
        report = sample_endpoints(descriptors, config=config, client=make_client(ok_handler))

        assert isinstance(report, ErrorResponse)
        assert report.error["code"] == "VALIDATION_ERROR"

    def test_non_positive_timeout(self):
        """Test a zero timeout is rejected."""
        report = sample_endpoints([ProbeDescriptor("/a")], timeout_ms=0,
                                  client=make_client(ok_handler))
        assert isinstance(report, ErrorResponse)

    def test_no_descriptors(self):
        """Test an empty batch reports zeros."""
        report = sample_endpoints([], client=make_client(ok_handler))

        assert report.tested == 0
        assert report.avg_latency_ms == 0
        assert report.pass_rate == 0.0


class TestAggregation:
    """Test probe result aggregation."""

    def test_mixed_batch_average(self):
        """Test 8 fast probes and 2 timeouts average to 2160ms."""
        fast = [ProbeResult(ProbeDescriptor(f"/ok/{i}"), True, 200, 200) for i in range(8)]
        slow = [ProbeResult(ProbeDescriptor(f"/slow/{i}"), False, 10000, error="Timed out")
                for i in range(2)]
        report = aggregate_results(fast + slow)

        assert report.tested == 10
        assert report.passed == 8
        assert report.failed == 2
        assert report.avg_latency_ms == 2160
        assert report.to_dict()["avg_response_time_ms"] == 2160

    def test_group_average_rounds_half_up(self):
        """Test group averages cover only that group and round half up."""
        results = [
            ProbeResult(ProbeDescriptor("/a", group="a"), True, 100),
            ProbeResult(ProbeDescriptor("/b", group="a"), True, 201),
            ProbeResult(ProbeDescriptor("/c", group="b"), True, 900),
        ]
        report = aggregate_results(results)

        assert report.by_group["a"].avg_latency_ms == 151
        assert report.by_group["b"].avg_latency_ms == 900
        assert report.avg_latency_ms == 400

    def test_select_probes(self):
        """Test the first N descriptors of each listed group are taken."""
        descriptors = (
            [ProbeDescriptor(f"/u/{i}", group="users") for i in range(4)]
            + [ProbeDescriptor(f"/w/{i}", group="workers") for i in range(3)]
            + [ProbeDescriptor("/x", group="other")]
        )
        selected = select_probes(descriptors, {"workers": 1, "users": 2})

        assert [d.path for d in selected] == ["/w/0", "/u/0", "/u/1"]


class TestPayloads:
    """Test tagged payload results."""

    def test_parse_ok(self):
        """Test valid JSON decodes to Ok."""
        result = parse_payload('{"a": [1, 2]}')
        assert isinstance(result, Ok)
        assert result.unwrap() == {"a": [1, 2]}

    def test_parse_error(self):
        """Test invalid JSON is a ParseError, not an exception."""
        result = parse_payload("<html>")
        assert isinstance(result, ParseError)
        assert result.ok is False
        with pytest.raises(ValueError):
            result.unwrap()

    def test_and_then_short_circuits(self):
        """Test errors pass through and_then untouched."""
        error = ParseError("bad")
        assert error.and_then(lambda v: Ok(v)) is error
        assert Ok(2).and_then(lambda v: Ok(v * 2)).value == 4

    def test_fetch_json(self):
        """Test a successful fetch keeps status and body."""
        async def run():
            async with make_client(lambda r: httpx.Response(200, json={"id": 1})) as client:
                return await fetch_json(client, "GET", "http://v1.test/x")

        result = asyncio.run(run())
        assert isinstance(result, Ok)
        assert result.value == {"id": 1}
        assert result.status_code == 200

    def test_fetch_non_json(self):
        """Test a 200 with a non-JSON body is a ParseError."""
        async def run():
            async with make_client(lambda r: httpx.Response(200, text="oops")) as client:
                return await fetch_json(client, "GET", "http://v1.test/x")

        result = asyncio.run(run())
        assert isinstance(result, ParseError)
        assert result.status_code == 200

    def test_fetch_not_found(self):
        """Test a 404 is a FetchError carrying the status."""
        async def run():
            async with make_client(lambda r: httpx.Response(404)) as client:
                return await fetch_json(client, "GET", "http://v1.test/x")

        result = asyncio.run(run())
        assert isinstance(result, FetchError)
        assert result.status_code == 404


class TestRecordCounts:
    """Test record counting of response bodies."""

    def test_top_level_list(self):
        assert count_records([1, 2, 3]) == 3

    def test_envelope_keys(self):
        """Test common envelope keys are recognised."""
        assert count_records({"data": [1, 2]}) == 2
        assert count_records({"results": []}) == 0

    def test_single_object(self):
        assert count_records({"id": 1}) == 1

    def test_records_path(self):
        """Test an explicit JSONPath to the record list."""
        body = {"payload": {"rows": [{"id": 1}, {"id": 2}]}}
        assert count_records(body, "$.payload.rows") == 2
        assert count_records(body, "$.missing") == 0


class TestParallelCompare:
    """Test live V1/V2 comparison."""

    def setup_method(self):
        self.endpoint = ComparableEndpoint(
            id="users",
            name="Users",
            v1_url="http://v1.test/api/users",
            v2_url="http://v2.test/api/users",
            requires_identity=True,
        )

    def test_matching_systems(self):
        """Test both systems returning the same shape."""
        seen = []

        def handler(request):
            seen.append((request.url.host, request.url.params.get("user_id")))
            return httpx.Response(200, json={"items": [{"id": 1}, {"id": 2}]})

        result = compare_endpoint(self.endpoint, identity=5, client=make_client(handler))

        assert result.success is True
        assert result.comparison.structures_match is True
        assert result.record_count_match is True
        assert result.v1.record_count == 2
        assert sorted(seen) == [("v1.test", "5"), ("v2.test", "5")]

    def test_structural_difference(self):
        """Test a field renamed on V2 shows up in the comparison."""
        def handler(request):
            if request.url.host == "v1.test":
                return httpx.Response(200, json={"items": [{"user_name": "a"}]})
            return httpx.Response(200, json={"items": [{"userName": "a"}]})

        comparator = ParallelComparator(client=make_client(handler))
        result = asyncio.run(comparator.compare_endpoint(self.endpoint, identity=5))

        assert result.success is True
        assert result.comparison.removed_count == 1
        assert result.comparison.added_count == 1

    def test_one_side_fails(self):
        """Test a failing V2 call yields an unsuccessful comparison."""
        def handler(request):
            if request.url.host == "v2.test":
                return httpx.Response(500)
            return httpx.Response(200, json=[])

        result = compare_endpoint(self.endpoint, identity=5, client=make_client(handler))

        assert result.success is False
        assert result.comparison is None
        assert result.v2.error == "HTTP 500"
        assert result.v2.status == 500
        data = result.to_dict()
        assert data["success"] is False
        assert "comparison" not in data

    def test_non_json_side_keeps_status(self):
        """Test a 200 response with a non-JSON body keeps its status."""
        def handler(request):
            if request.url.host == "v1.test":
                return httpx.Response(200, text="<html>")
            return httpx.Response(200, json=[])

        result = compare_endpoint(self.endpoint, identity=5, client=make_client(handler))

        assert result.success is False
        assert result.v1.status == 200
        assert result.v1.error.startswith("Invalid JSON")
        assert result.v2.error is None

    def test_invalid_records_path(self):
        """Test a broken records_path is reported on each side instead of raising."""
        endpoint = ComparableEndpoint(
            id="users",
            v1_url="http://v1.test/api/users",
            v2_url="http://v2.test/api/users",
            records_path="$[[[",
        )
        result = compare_endpoint(endpoint, client=make_client(ok_handler))

        assert result.success is False
        assert result.comparison is None
        assert "Invalid JSONPath" in result.v1.error
        assert "Invalid JSONPath" in result.v2.error
        assert result.v1.status == 200
