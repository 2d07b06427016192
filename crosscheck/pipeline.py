"""Dependency-gated validation pipeline."""

from __future__ import annotations

import logging
import shlex
import subprocess
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from .exceptions import ConfigurationError, StageError
from .models import (
    CategoryScore,
    PipelineReport,
    PipelineStage,
    StageResult,
    StageState,
)
from .payload import ParseError, parse_payload

logger = logging.getLogger(__name__)

# A runner executes one stage and returns its report, or None if it produced none
StageRunner = Callable[[PipelineStage], Optional[dict]]


def order_stages(stages: Iterable[PipelineStage]) -> list[PipelineStage]:
    """
    Sort stages so every stage follows its dependencies.

    Depth-first in declaration order, so independent stages keep the order
    they were declared in.

    Raises:
        ConfigurationError: on duplicate ids, unknown dependencies or cycles
    """
    stages = list(stages)
    by_id: dict[str, PipelineStage] = {}
    for stage in stages:
        if stage.id in by_id:
            raise ConfigurationError(f"Duplicate stage id: {stage.id}")
        by_id[stage.id] = stage

    for stage in stages:
        missing = [d for d in stage.dependencies if d not in by_id]
        if missing:
            raise ConfigurationError(
                f"Stage '{stage.id}' depends on unknown stages: {', '.join(missing)}",
                {"stage": stage.id, "missing": missing}
            )

    ordered: list[PipelineStage] = []
    visited: set[str] = set()
    visiting: list[str] = []

    def visit(stage: PipelineStage):
        if stage.id in visited:
            return
        if stage.id in visiting:
            cycle = visiting[visiting.index(stage.id):] + [stage.id]
            raise ConfigurationError(
                f"Dependency cycle: {' -> '.join(cycle)}", {"cycle": cycle}
            )
        visiting.append(stage.id)
        for dep_id in stage.dependencies:
            visit(by_id[dep_id])
        visiting.pop()
        visited.add(stage.id)
        ordered.append(stage)

    for stage in stages:
        visit(stage)
    return ordered


def meets_success_criteria(report: Optional[dict], stage: PipelineStage) -> bool:
    """
    Check a stage report against the stage's target and failure threshold.

    The failure count is summary.failed when present, else total - passed.
    """
    if not isinstance(report, dict) or not isinstance(report.get("summary"), dict):
        return False

    summary = report["summary"]
    passed = summary.get("passed", 0)
    failed = summary.get("failed")
    if failed is None:
        failed = summary.get("total", 0) - passed

    criteria = stage.success_criteria
    return passed >= criteria.target and failed <= criteria.threshold


class PipelineExecutor:
    """
    Runs validation stages one at a time in dependency order.

    A stage runs only when all its dependencies succeeded and met their
    criteria; otherwise it is recorded as failed without running. When a
    critical-path stage misses its criteria the run halts and the remaining
    stages are left out of the results. There are no retries.
    """

    def __init__(self, stages: Iterable[PipelineStage], runner: StageRunner):
        self.stages = order_stages(stages)
        self.runner = runner

    def run(self) -> PipelineReport:
        report = PipelineReport()
        logger.info("Starting validation pipeline (%d stages)", len(self.stages))

        for stage in self.stages:
            result = self._execute_stage(stage, report.results)
            report.results[stage.id] = result

            if stage.critical_path and not result.meets_criteria:
                logger.error("Critical stage %s failed. Stopping pipeline.", stage.id)
                report.completed = False
                report.halted_at = stage.id
                break

        logger.info("Pipeline execution %s", "complete" if report.completed else "halted")
        return report

    def _execute_stage(
        self,
        stage: PipelineStage,
        results: dict[str, StageResult]
    ) -> StageResult:
        result = StageResult(stage_id=stage.id)

        unmet = [
            dep for dep in stage.dependencies
            if not (results.get(dep) and results[dep].succeeded and results[dep].meets_criteria)
        ]
        if unmet:
            result.state = StageState.FAILED
            result.error = f"Dependencies not met: {', '.join(unmet)}"
            logger.warning("Skipping stage %s: %s", stage.id, result.error)
            return result

        logger.info("Executing stage: %s", stage.name)
        result.state = StageState.RUNNING
        result.ran = True
        start = time.perf_counter()

        try:
            stage_report = self.runner(stage)
        except Exception as e:
            logger.error("Stage %s failed: %s", stage.id, e)
            stage_report = None
            result.error = str(e) or type(e).__name__
        result.duration_ms = int((time.perf_counter() - start) * 1000)
        result.report = stage_report

        if stage_report is None:
            result.error = result.error or "No validation report generated"
        else:
            result.succeeded = True
            result.meets_criteria = meets_success_criteria(stage_report, stage)
            if not result.meets_criteria:
                result.error = (
                    f"Failed success criteria: target {stage.success_criteria.target}, "
                    f"threshold {stage.success_criteria.threshold}"
                )

        result.state = (
            StageState.SUCCEEDED if result.succeeded and result.meets_criteria
            else StageState.FAILED
        )
        logger.info("Stage %s %s in %dms", stage.id, result.state.value, result.duration_ms)
        return result


def run_pipeline(stages: Iterable[PipelineStage], runner: StageRunner) -> PipelineReport:
    """Convenience function to run a pipeline in one call."""
    return PipelineExecutor(stages, runner).run()


def categories_from_results(results: dict[str, StageResult]) -> list[CategoryScore]:
    """
    Turn stage reports into category scores, one per stage with a summary.

    summary.pass_rate (or passRate) is used when present, else passed/total.
    """
    categories = []
    for stage_id, result in results.items():
        if not isinstance(result.report, dict):
            continue
        summary = result.report.get("summary")
        if not isinstance(summary, dict):
            continue
        pass_rate = summary.get("pass_rate", summary.get("passRate"))
        categories.append(CategoryScore(
            name=stage_id,
            validated=summary.get("passed", 0),
            total=summary.get("total", 0),
            pass_rate=float(pass_rate) if pass_rate is not None else None,
        ))
    return categories


class ReportStore:
    """
    Reads stage reports written to a directory.

    The latest report is the most recently modified file matching a glob.
    Reading is not synchronised with writers; run one pipeline at a time.
    """

    def __init__(self, base_dir: str | Path = "."):
        self.base_dir = Path(base_dir)

    def latest(self, pattern: str) -> Optional[dict]:
        """Load the newest report matching pattern, or None."""
        matches = [p for p in self.base_dir.glob(pattern) if p.is_file()]
        if not matches:
            return None

        latest = max(matches, key=lambda p: p.stat().st_mtime)
        decoded = parse_payload(latest.read_text())
        if isinstance(decoded, ParseError):
            logger.warning("Ignoring unreadable report %s: %s", latest, decoded.reason)
            return None
        return decoded.value


class CommandStageRunner:
    """Runs a stage's shell command, then loads the report it wrote."""

    TIMEOUT_BUFFER_SECONDS = 60

    def __init__(self, base_dir: str | Path = "."):
        self.base_dir = Path(base_dir)
        self.store = ReportStore(self.base_dir)

    def __call__(self, stage: PipelineStage) -> Optional[dict]:
        if stage.command:
            completed = subprocess.run(
                shlex.split(stage.command),
                cwd=self.base_dir,
                capture_output=True,
                text=True,
                timeout=stage.estimated_duration + self.TIMEOUT_BUFFER_SECONDS,
            )
            if completed.returncode != 0:
                detail = (completed.stderr or completed.stdout).strip().splitlines()
                raise StageError(
                    stage.id,
                    f"command exited with {completed.returncode}"
                    + (f": {detail[-1]}" if detail else "")
                )

        if not stage.report:
            return None
        return self.store.latest(stage.report)
