"""Data models for the crosscheck engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


KIND_NULL = "null"
KIND_ARRAY_EMPTY = "array_empty"


class DiffStatus(Enum):
    MATCH = "match"
    MODIFIED = "modified"
    ADDED = "added"
    REMOVED = "removed"
    TYPE_MISMATCH = "type_mismatch"


class ReadinessStatus(Enum):
    READY = "READY"
    NEAR_READY = "NEAR_READY"
    IN_PROGRESS = "IN_PROGRESS"


class StageState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class EngineConfig:
    """Global configuration for the comparison engine."""
    max_payload_size_mb: float = 50
    # JSONPath expressions removed from both payloads before comparison
    ignore_paths: list[str] = field(default_factory=list)
    collect_fields: bool = True


@dataclass
class ProbeConfig:
    """Configuration for the endpoint probe sampler."""
    timeout_ms: int = 10000
    base_url: str = ""
    group_base_urls: dict[str, str] = field(default_factory=dict)
    max_probes: int = 50
    headers: dict[str, str] = field(default_factory=lambda: {"Content-Type": "application/json"})

    def base_url_for(self, group: str) -> str:
        return self.group_base_urls.get(group, self.base_url)


@dataclass(frozen=True)
class FieldSignature:
    """One leaf location and its JSON kind."""
    path: str
    kind: str

    def __str__(self) -> str:
        kind = "[]" if self.kind == KIND_ARRAY_EMPTY else self.kind
        return f"{self.path}: {kind}"


@dataclass
class FieldDiff:
    """Classified difference for one field between the V1 and V2 payloads."""
    field: str
    status: DiffStatus
    v1_value: Any = None
    v2_value: Any = None
    # Set when the field lives under a different path on one side
    v1_path: Optional[str] = None
    v2_path: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "field": self.field,
            "status": self.status.value,
            "v1_value": self.v1_value,
            "v2_value": self.v2_value,
        }
        if self.v1_path is not None:
            result["v1_path"] = self.v1_path
        if self.v2_path is not None:
            result["v2_path"] = self.v2_path
        return result


@dataclass
class ComparisonReport:
    """Complete comparison of two payloads."""
    diffs: list[FieldDiff] = field(default_factory=list)
    match_count: int = 0
    modified_count: int = 0
    added_count: int = 0
    removed_count: int = 0
    type_mismatch_count: int = 0
    similarity_score: float = 100.0
    # Renamed or retyped fields reported as one diff for two signatures
    collapsed_pairs: int = 0
    v1_fields: list[str] = field(default_factory=list)
    v2_fields: list[str] = field(default_factory=list)

    @property
    def structures_match(self) -> bool:
        return all(d.status == DiffStatus.MATCH for d in self.diffs)

    @property
    def total(self) -> int:
        return (self.match_count + self.modified_count + self.added_count
                + self.removed_count + self.type_mismatch_count)

    def differences(self) -> list[FieldDiff]:
        return [d for d in self.diffs if d.status != DiffStatus.MATCH]

    def to_dict(self) -> dict:
        return {
            "structures_match": self.structures_match,
            "similarity_score": self.similarity_score,
            "summary": {
                "total": self.total,
                "matches": self.match_count,
                "modified": self.modified_count,
                "added": self.added_count,
                "removed": self.removed_count,
                "type_mismatches": self.type_mismatch_count,
            },
            "diffs": [d.to_dict() for d in self.differences()],
            "v1_fields": self.v1_fields,
            "v2_fields": self.v2_fields,
        }


@dataclass(frozen=True)
class ProbeDescriptor:
    """A single endpoint to probe."""
    path: str
    method: str = "GET"
    group: str = "default"
    requires_identity: bool = False
    identity_param_name: Optional[str] = None
    extra_params: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "method": self.method,
            "group": self.group,
        }


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one probe."""
    descriptor: ProbeDescriptor
    success: bool
    latency_ms: int
    status_code: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "endpoint": self.descriptor.path,
            "method": self.descriptor.method,
            "group": self.descriptor.group,
            "status": self.status_code or 0,
            "response_time_ms": self.latency_ms,
            "success": self.success,
            "error": self.error,
        }


@dataclass
class GroupHealth:
    tested: int = 0
    passed: int = 0
    failed: int = 0
    avg_latency_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "tested": self.tested,
            "passed": self.passed,
            "failed": self.failed,
            "avg_time": self.avg_latency_ms,
        }


@dataclass
class HealthReport:
    """Aggregated health of a probe batch."""
    tested: int = 0
    passed: int = 0
    failed: int = 0
    avg_latency_ms: int = 0
    by_group: dict[str, GroupHealth] = field(default_factory=dict)
    results: list[ProbeResult] = field(default_factory=list)
    timestamp: str = ""

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

    @property
    def pass_rate(self) -> float:
        return self.passed / self.tested * 100 if self.tested > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "success": True,
            "timestamp": self.timestamp,
            "tested": self.tested,
            "passed": self.passed,
            "failed": self.failed,
            "avg_response_time_ms": self.avg_latency_ms,
            "results": [r.to_dict() for r in self.results],
            "summary": {
                "by_group": {name: g.to_dict() for name, g in self.by_group.items()},
            },
        }

    def print_summary(self):
        print(f"\nEndpoint health: {self.passed}/{self.tested} passed, "
              f"avg {self.avg_latency_ms}ms")
        for name, group in self.by_group.items():
            print(f"  {name}: {group.passed}/{group.tested} passed, avg {group.avg_latency_ms}ms")
        for result in self.results:
            if not result.success:
                print(f"  FAIL {result.descriptor.method} {result.descriptor.path}: {result.error}")


@dataclass
class CategoryScore:
    """Pass rate of one validation category."""
    name: str
    validated: int = 0
    total: int = 0
    pass_rate: Optional[float] = None

    def __post_init__(self):
        if self.pass_rate is None:
            self.pass_rate = self.validated / self.total * 100 if self.total > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "validated": self.validated,
            "total": self.total,
            "pass_rate": self.pass_rate,
        }


@dataclass(frozen=True)
class Thresholds:
    ready: float = 95.0
    near_ready: float = 80.0


@dataclass
class ReadinessReport:
    """Weighted readiness of a migration."""
    per_category: dict[str, float]
    overall: float
    status: ReadinessStatus
    weights: dict[str, float] = field(default_factory=dict)
    # Critical categories below 100%
    blocking: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "status": self.status.value,
            "per_category": self.per_category,
            "breakdown": {f"{name}_weight": w for name, w in self.weights.items()},
            "blocking": self.blocking,
        }


@dataclass(frozen=True)
class SuccessCriteria:
    target: int
    threshold: int = 0


@dataclass
class PipelineStage:
    """A validation stage in the pipeline DAG."""
    id: str
    success_criteria: SuccessCriteria
    dependencies: list[str] = field(default_factory=list)
    critical_path: bool = False
    name: str = ""
    command: Optional[str] = None
    # Glob for the stage's report files, relative to the runner's base dir
    report: Optional[str] = None
    estimated_duration: int = 60

    def __post_init__(self):
        if not self.name:
            self.name = self.id


@dataclass
class StageResult:
    """Result of one stage in one pipeline run."""
    stage_id: str
    ran: bool = False
    succeeded: bool = False
    meets_criteria: bool = False
    state: StageState = StageState.PENDING
    report: Optional[dict] = None
    error: Optional[str] = None
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "stage_id": self.stage_id,
            "ran": self.ran,
            "success": self.succeeded,
            "meets_success_criteria": self.meets_criteria,
            "state": self.state.value,
            "report": self.report,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class PipelineReport:
    """Results of one pipeline run, keyed by stage id in execution order."""
    results: dict[str, StageResult] = field(default_factory=dict)
    completed: bool = True
    halted_at: Optional[str] = None

    @property
    def all_passed(self) -> bool:
        return all(r.succeeded and r.meets_criteria for r in self.results.values())

    def to_dict(self) -> dict:
        return {
            "completed": self.completed,
            "all_passed": self.all_passed,
            "halted_at": self.halted_at,
            "results": {sid: r.to_dict() for sid, r in self.results.items()},
        }

    def print_summary(self):
        for stage_id, result in self.results.items():
            status = "PASS" if result.succeeded and result.meets_criteria else "FAIL"
            line = f"{status}: {stage_id}"
            if result.error:
                line += f" ({result.error})"
            print(line)
        if not self.completed:
            print(f"\nPipeline incomplete: critical stage '{self.halted_at}' failed")


@dataclass
class ErrorResponse:
    """Error response structure."""
    success: bool = False
    error: Optional[dict] = None

    def to_dict(self) -> dict:
        result = {"success": self.success}
        if self.error:
            result["error"] = self.error
        return result
