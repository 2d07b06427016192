"""Loading scorer, pipeline, probe and endpoint settings from a YAML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import ConfigurationError
from .jsonpath_utils import JSONPathMatcher
from .models import (
    PipelineStage,
    ProbeConfig,
    ProbeDescriptor,
    SuccessCriteria,
    Thresholds,
)
from .parallel import ComparableEndpoint
from .readiness import DEFAULT_THRESHOLDS, ReadinessScorer
from .sampler import select_probes

logger = logging.getLogger(__name__)


def load_config(path: str | Path) -> dict:
    """
    Load a configuration file.

    YAML is parsed with safe_load, which also accepts JSON. An empty file
    gives an empty config.

    Raises:
        FileNotFoundError: if the file does not exist
        ConfigurationError: if the file cannot be parsed or is not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, 'r') as f:
        content = f.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse config file: {e}", {"path": str(path)})

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must contain a mapping", {"path": str(path)})

    logger.debug("Loaded config %s (sections: %s)", path, ", ".join(data))
    return data


def _section(config: dict, name: str, expected: type, default: Any) -> Any:
    value = config.get(name)
    if value is None:
        return default
    if not isinstance(value, expected):
        raise ConfigurationError(
            f"'{name}' must be a {expected.__name__}", {"section": name}
        )
    return value


def readiness_scorer_from_config(config: dict) -> ReadinessScorer:
    """Build a ReadinessScorer from the `readiness` section; defaults apply when absent."""
    section = _section(config, "readiness", dict, {})
    weights = section.get("weights")
    critical = section.get("critical")

    thresholds = DEFAULT_THRESHOLDS
    if section.get("thresholds") is not None:
        raw = section["thresholds"]
        try:
            thresholds = Thresholds(
                ready=float(raw.get("ready", DEFAULT_THRESHOLDS.ready)),
                near_ready=float(raw.get("near_ready", DEFAULT_THRESHOLDS.near_ready)),
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid readiness thresholds: {e}")

    if weights is not None:
        try:
            weights = {str(k): float(v) for k, v in weights.items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid readiness weights: {e}")

    return ReadinessScorer(weights=weights, critical=critical, thresholds=thresholds)


def _stage_from_dict(raw: dict, index: int) -> PipelineStage:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise ConfigurationError(f"Stage #{index + 1} must be a mapping with an 'id'")

    criteria = raw.get("success_criteria") or {}
    if "target" not in criteria:
        raise ConfigurationError(
            f"Stage '{raw['id']}' needs success_criteria.target", {"stage": raw["id"]}
        )

    try:
        return PipelineStage(
            id=str(raw["id"]),
            name=raw.get("name", ""),
            success_criteria=SuccessCriteria(
                target=int(criteria["target"]),
                threshold=int(criteria.get("threshold", 0)),
            ),
            dependencies=[str(d) for d in raw.get("dependencies") or []],
            critical_path=bool(raw.get("critical_path", False)),
            command=raw.get("command"),
            report=raw.get("report"),
            estimated_duration=int(raw.get("estimated_duration", 60)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid stage '{raw['id']}': {e}", {"stage": raw["id"]})


def stages_from_config(config: dict) -> list[PipelineStage]:
    """Build pipeline stages from the `stages` list, in declaration order."""
    return [
        _stage_from_dict(raw, i)
        for i, raw in enumerate(_section(config, "stages", list, []))
    ]


@dataclass
class ProbeSettings:
    """Everything needed to run one health check from a config file."""
    config: ProbeConfig = field(default_factory=ProbeConfig)
    identity: Any = None
    # Empty means probe every descriptor
    per_group_limits: dict[str, int] = field(default_factory=dict)
    descriptors: list[ProbeDescriptor] = field(default_factory=list)

    def selected(self) -> list[ProbeDescriptor]:
        if not self.per_group_limits:
            return list(self.descriptors)
        return select_probes(self.descriptors, self.per_group_limits)


def _descriptor_from_dict(raw: Any, index: int) -> ProbeDescriptor:
    if isinstance(raw, str):
        return ProbeDescriptor(path=raw)
    if not isinstance(raw, dict) or not raw.get("path"):
        raise ConfigurationError(f"Probe endpoint #{index + 1} must have a 'path'")
    return ProbeDescriptor(
        path=raw["path"],
        method=str(raw.get("method", "GET")).upper(),
        group=str(raw.get("group", "default")),
        requires_identity=bool(raw.get("requires_identity", False)),
        identity_param_name=raw.get("identity_param_name"),
        extra_params=raw.get("params"),
    )


def probe_settings_from_config(config: dict) -> ProbeSettings:
    """Build probe settings and descriptors from the `probes` section."""
    section = _section(config, "probes", dict, {})
    defaults = ProbeConfig()

    try:
        probe_config = ProbeConfig(
            timeout_ms=int(section.get("timeout_ms", defaults.timeout_ms)),
            base_url=section.get("base_url", defaults.base_url),
            group_base_urls=dict(section.get("group_base_urls") or {}),
            max_probes=int(section.get("max_probes", defaults.max_probes)),
            headers=dict(section.get("headers") or defaults.headers),
        )
        limits = {str(g): int(n) for g, n in (section.get("per_group_limits") or {}).items()}
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid probes section: {e}")

    descriptors = [
        _descriptor_from_dict(raw, i)
        for i, raw in enumerate(section.get("endpoints") or [])
    ]
    return ProbeSettings(
        config=probe_config,
        identity=section.get("identity"),
        per_group_limits=limits,
        descriptors=descriptors,
    )


def comparable_endpoints_from_config(config: dict) -> list[ComparableEndpoint]:
    """Build V1/V2 endpoint pairs from the `endpoints` list."""
    endpoints = []
    for i, raw in enumerate(_section(config, "endpoints", list, [])):
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Endpoint #{i + 1} must be a mapping")
        missing = [k for k in ("id", "v1_url", "v2_url") if not raw.get(k)]
        if missing:
            raise ConfigurationError(
                f"Endpoint #{i + 1} is missing: {', '.join(missing)}",
                {"index": i, "missing": missing}
            )
        endpoint_id = str(raw["id"])
        records_path = raw.get("records_path")
        if records_path:
            try:
                JSONPathMatcher.compile(str(records_path))
            except ValueError as e:
                raise ConfigurationError(
                    f"Endpoint '{endpoint_id}' has an invalid records_path: {e}",
                    {"endpoint": endpoint_id, "records_path": records_path}
                )
        endpoints.append(ComparableEndpoint(
            id=endpoint_id,
            name=raw.get("name", ""),
            v1_url=raw["v1_url"],
            v2_url=raw["v2_url"],
            method=str(raw.get("method", "GET")).upper(),
            requires_identity=bool(raw.get("requires_identity", False)),
            identity_param_name=raw.get("identity_param_name", "user_id"),
            records_path=records_path,
            rename_map=raw.get("renames"),
        ))
    return endpoints


def find_endpoint(endpoints: list[ComparableEndpoint], endpoint_id: str) -> Optional[ComparableEndpoint]:
    for endpoint in endpoints:
        if endpoint.id == endpoint_id:
            return endpoint
    return None
