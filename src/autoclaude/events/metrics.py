"""Prometheus metrics for run observability.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- autoclaude_runs_total: Counter of finished runs by outcome
- autoclaude_runs_failed_total: Counter of failures by stage
- autoclaude_run_duration_seconds: Histogram of run duration
- autoclaude_runs_by_stage: Gauge of in-flight runs per stage

The MetricsEventEmitter updates these from run events.
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from autoclaude.events.emitter import EventEmitter
from autoclaude.events.models import EventType, RunEvent
from autoclaude.state.models import RunStage

logger = logging.getLogger(__name__)


# Assistant calls time out at 5 minutes each, and a run makes at most two
DEFAULT_DURATION_BUCKETS = (
    1.0,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    900.0,
)

# START is never entered and TERMINAL is never left, so neither is an
# in-flight stage
TRACKED_STAGES = tuple(
    stage.value
    for stage in RunStage
    if stage not in (RunStage.START, RunStage.TERMINAL)
)


class RunMetrics:
    """Container for all run Prometheus metrics.

    Metrics:
        runs_total: Counter of finished runs.
            Labels: repository, outcome

        runs_failed_total: Counter of failed steps.
            Labels: repository, stage (where failure occurred)

        run_duration_seconds: Histogram of run duration.
            Labels: repository

        runs_by_stage: Gauge of runs currently in each stage.
            Labels: stage

    Example:
        >>> metrics = RunMetrics(registry=CollectorRegistry())
        >>> metrics.record_run_finished("org/repo", "no_changes_needed")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize run metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.runs_total = Counter(
            "autoclaude_runs_total",
            "Total number of finished runs",
            labelnames=["repository", "outcome"],
            registry=self.registry,
        )

        self.runs_failed_total = Counter(
            "autoclaude_runs_failed_total",
            "Total number of run failures",
            labelnames=["repository", "stage"],
            registry=self.registry,
        )

        self.run_duration_seconds = Histogram(
            "autoclaude_run_duration_seconds",
            "Time spent processing work items in seconds",
            labelnames=["repository"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.runs_by_stage = Gauge(
            "autoclaude_runs_by_stage",
            "Current number of runs in each stage",
            labelnames=["stage"],
            registry=self.registry,
        )

        for stage in TRACKED_STAGES:
            self.runs_by_stage.labels(stage=stage).set(0)

    def record_run_finished(self, repository: str, outcome: str) -> None:
        self.runs_total.labels(repository=repository, outcome=outcome).inc()

    def record_run_failed(self, repository: str, stage: str) -> None:
        self.runs_failed_total.labels(repository=repository, stage=stage).inc()

    def record_run_duration(self, repository: str, duration_seconds: float) -> None:
        self.run_duration_seconds.labels(repository=repository).observe(
            duration_seconds
        )

    def enter_stage(self, stage: str) -> None:
        if stage in TRACKED_STAGES:
            self.runs_by_stage.labels(stage=stage).inc()

    def leave_stage(self, stage: str) -> None:
        if stage in TRACKED_STAGES:
            self.runs_by_stage.labels(stage=stage).dec()


_default_metrics: Optional[RunMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> RunMetrics:
    """Get the metrics for the default registry, or new ones for a custom one.

    Metrics can only be registered once per registry, so the default
    registry shares a single module-level instance.
    """
    global _default_metrics

    if registry is not None:
        return RunMetrics(registry=registry)

    if _default_metrics is None:
        _default_metrics = RunMetrics()

    return _default_metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus text output for the /metrics endpoint."""
    return generate_latest(registry or REGISTRY)


class MetricsEventEmitter(EventEmitter):
    """Event emitter that updates Prometheus metrics.

    - STATE_TRANSITION: Moves the run between stage gauges
    - ERROR: Increments runs_failed_total
    - TIMEOUT: Increments runs_failed_total
    - COMPLETION: Increments runs_total and records duration

    Attributes:
        metrics: The RunMetrics instance to update.
    """

    def __init__(
        self,
        metrics: Optional[RunMetrics] = None,
        registry: Optional[CollectorRegistry] = None,
    ):
        """Initialize the metrics event emitter.

        Args:
            metrics: Optional RunMetrics instance. If None, uses
                     get_metrics(registry).
            registry: Optional Prometheus registry. Only used if metrics
                      is None.
        """
        self._metrics = metrics if metrics is not None else get_metrics(registry)

    @property
    def metrics(self) -> RunMetrics:
        return self._metrics

    async def emit(self, event: RunEvent) -> None:
        try:
            if event.event_type == EventType.STATE_TRANSITION:
                self._handle_state_transition(event)
            elif event.event_type in (EventType.ERROR, EventType.TIMEOUT):
                self._handle_failure(event)
            elif event.event_type == EventType.COMPLETION:
                self._handle_completion(event)
        except Exception as e:
            logger.error(
                "Failed to update metrics for event %s: %s",
                event.event_type.value,
                str(e),
                extra={
                    "event_type": event.event_type.value,
                    "item_id": event.item_id,
                    "error": str(e),
                },
            )

    def _handle_state_transition(self, event: RunEvent) -> None:
        from_stage = event.details.get("from_stage")
        to_stage = event.details.get("to_stage")

        if from_stage:
            self._metrics.leave_stage(from_stage)

        if to_stage:
            self._metrics.enter_stage(to_stage)

    def _handle_failure(self, event: RunEvent) -> None:
        self._metrics.record_run_failed(
            repository=event.repository,
            stage=event.details.get("stage", "unknown"),
        )

    def _handle_completion(self, event: RunEvent) -> None:
        self._metrics.record_run_finished(
            repository=event.repository,
            outcome=event.details.get("outcome", "unknown"),
        )

        duration = event.details.get("duration_seconds")
        if duration is not None:
            self._metrics.record_run_duration(
                repository=event.repository,
                duration_seconds=float(duration),
            )
