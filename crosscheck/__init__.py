"""
crosscheck - Cross-System Comparison & Readiness Scoring Engine

Compares the JSON structure of payloads returned by a legacy (V1) and a
migrated (V2) system, probes endpoints concurrently, and combines
per-category validation results into a weighted readiness score gated by a
dependency-ordered validation pipeline.
"""

from .engine import ComparisonEngine, compare
from .differ import Differ, diff_values
from .structure import extract_structure, iter_fields
from .similarity import similarity, signature_similarity
from .models import (
    EngineConfig,
    ProbeConfig,
    FieldSignature,
    FieldDiff,
    DiffStatus,
    ComparisonReport,
    ProbeDescriptor,
    ProbeResult,
    GroupHealth,
    HealthReport,
    CategoryScore,
    Thresholds,
    ReadinessStatus,
    ReadinessReport,
    SuccessCriteria,
    PipelineStage,
    StageState,
    StageResult,
    PipelineReport,
    ErrorResponse,
)
from .sampler import (
    EndpointSampler,
    aggregate_results,
    select_probes,
    sample_endpoints,
)
from .readiness import (
    ReadinessScorer,
    compute_readiness,
)
from .pipeline import (
    PipelineExecutor,
    order_stages,
    run_pipeline,
    categories_from_results,
    ReportStore,
    CommandStageRunner,
)
from .parallel import (
    ComparableEndpoint,
    ParallelComparator,
    ParallelComparison,
)
from .matcher import (
    MatchConfidence,
    find_best_match,
    suggest_renames,
)
from .payload import Ok, ParseError, FetchError, parse_payload, fetch_json
from .cache import CacheEntry, is_fresh, refresh
from .config import load_config

__version__ = "1.0.0"
__all__ = [
    # Comparison
    "ComparisonEngine",
    "compare",
    "Differ",
    "diff_values",
    "extract_structure",
    "iter_fields",
    "similarity",
    "signature_similarity",
    "EngineConfig",
    "FieldSignature",
    "FieldDiff",
    "DiffStatus",
    "ComparisonReport",
    "ErrorResponse",
    # Endpoint Probing
    "EndpointSampler",
    "ProbeConfig",
    "ProbeDescriptor",
    "ProbeResult",
    "GroupHealth",
    "HealthReport",
    "aggregate_results",
    "select_probes",
    "sample_endpoints",
    # Readiness
    "ReadinessScorer",
    "CategoryScore",
    "Thresholds",
    "ReadinessStatus",
    "ReadinessReport",
    "compute_readiness",
    # Pipeline
    "PipelineExecutor",
    "PipelineStage",
    "SuccessCriteria",
    "StageState",
    "StageResult",
    "PipelineReport",
    "order_stages",
    "run_pipeline",
    "categories_from_results",
    "ReportStore",
    "CommandStageRunner",
    # Parallel Compare
    "ComparableEndpoint",
    "ParallelComparator",
    "ParallelComparison",
    # Rename Matching
    "MatchConfidence",
    "find_best_match",
    "suggest_renames",
    # Payloads
    "Ok",
    "ParseError",
    "FetchError",
    "parse_payload",
    "fetch_json",
    # Cache
    "CacheEntry",
    "is_fresh",
    "refresh",
    # Config
    "load_config",
]
