"""Unit tests for run events, emitters and Prometheus metrics."""

import asyncio
import logging

from prometheus_client import CollectorRegistry

from autoclaude.events import (
    CompositeEventEmitter,
    EventEmitter,
    EventSinkType,
    EventType,
    LoggingEventEmitter,
    MetricsEventEmitter,
    NullEventEmitter,
    RunEvent,
    RunMetrics,
    create_event_emitter,
    generate_metrics_output,
)


def run_async(coro):
    return asyncio.run(coro)


def _event(event_type: EventType, **details) -> RunEvent:
    return RunEvent(
        event_type=event_type,
        item_id="acme/widgets#42",
        repository="acme/widgets",
        details=details,
    )


class FailingEmitter(EventEmitter):
    async def emit(self, event: RunEvent) -> None:
        raise RuntimeError("sink down")


class RecordingEmitter(EventEmitter):
    def __init__(self):
        self.events = []
        self.closed = False

    async def emit(self, event: RunEvent) -> None:
        self.events.append(event)

    async def close(self) -> None:
        self.closed = True


class TestRunEvent:
    def test_log_dict_flattens_details(self):
        event = _event(EventType.ERROR, error_message="git push failed", stage="publishing")

        log_dict = event.to_log_dict()

        assert log_dict["event_type"] == "error"
        assert log_dict["item_id"] == "acme/widgets#42"
        assert log_dict["repository"] == "acme/widgets"
        assert log_dict["error_message"] == "git push failed"
        assert log_dict["stage"] == "publishing"
        assert "timestamp" in log_dict


class TestLoggingEventEmitter:
    def test_error_events_logged_at_error_level(self, caplog):
        emitter = LoggingEventEmitter(logger_name="autoclaude.test.events")

        with caplog.at_level(logging.INFO, logger="autoclaude.test.events"):
            run_async(emitter.emit(_event(EventType.ERROR, error_message="boom")))

        record = caplog.records[-1]
        assert record.levelno == logging.ERROR
        assert record.error_message == "boom"
        assert "Run event: error for acme/widgets#42" in record.getMessage()

    def test_timeout_events_logged_as_warning(self, caplog):
        emitter = LoggingEventEmitter(logger_name="autoclaude.test.events")

        with caplog.at_level(logging.INFO, logger="autoclaude.test.events"):
            run_async(emitter.emit(_event(EventType.TIMEOUT, timeout_seconds=300)))

        assert caplog.records[-1].levelno == logging.WARNING


class TestCompositeEventEmitter:
    def test_failing_child_does_not_block_others(self):
        recorder = RecordingEmitter()
        composite = CompositeEventEmitter([FailingEmitter(), recorder])

        run_async(composite.emit(_event(EventType.COMPLETION, outcome="rejected")))

        assert len(recorder.events) == 1

    def test_close_closes_children(self):
        first, second = RecordingEmitter(), RecordingEmitter()
        composite = CompositeEventEmitter([first, second])

        run_async(composite.close())

        assert first.closed and second.closed

    def test_failing_child_is_logged(self, caplog):
        composite = CompositeEventEmitter([FailingEmitter()])

        with caplog.at_level(logging.ERROR, logger="autoclaude.events.emitter"):
            run_async(composite.emit(_event(EventType.ERROR, error_message="boom")))

        assert "FailingEmitter" in caplog.records[-1].getMessage()
        assert caplog.records[-1].item_id == "acme/widgets#42"


class TestCreateEventEmitter:
    def test_defaults_to_logging(self):
        assert isinstance(create_event_emitter(), LoggingEventEmitter)

    def test_single_sink_is_not_wrapped(self):
        emitter = create_event_emitter(
            [EventSinkType.METRICS], registry=CollectorRegistry()
        )

        assert isinstance(emitter, MetricsEventEmitter)

    def test_multiple_sinks_are_composed(self, caplog):
        registry = CollectorRegistry()
        emitter = create_event_emitter(
            [EventSinkType.LOGGING, EventSinkType.METRICS],
            logger_name="autoclaude.test.events",
            registry=registry,
        )

        with caplog.at_level(logging.INFO, logger="autoclaude.test.events"):
            run_async(emitter.emit(_event(EventType.COMPLETION, outcome="rejected")))

        assert isinstance(emitter, CompositeEventEmitter)
        assert "Run event: completion for acme/widgets#42" in caplog.text
        assert registry.get_sample_value(
            "autoclaude_runs_total",
            {"repository": "acme/widgets", "outcome": "rejected"},
        ) == 1.0

    def test_null_emitter_discards(self):
        run_async(NullEventEmitter().emit(_event(EventType.COMPLETION)))


class TestMetricsEventEmitter:
    def setup_method(self):
        self.registry = CollectorRegistry()
        self.metrics = RunMetrics(registry=self.registry)
        self.emitter = MetricsEventEmitter(metrics=self.metrics)

    def _value(self, name, labels):
        return self.registry.get_sample_value(name, labels)

    def test_completion_counts_outcome_and_duration(self):
        run_async(
            self.emitter.emit(
                _event(
                    EventType.COMPLETION,
                    outcome="fix_pull_request_created",
                    duration_seconds=12.5,
                )
            )
        )

        assert self._value(
            "autoclaude_runs_total",
            {"repository": "acme/widgets", "outcome": "fix_pull_request_created"},
        ) == 1.0
        assert self._value(
            "autoclaude_run_duration_seconds_sum", {"repository": "acme/widgets"}
        ) == 12.5

    def test_error_and_timeout_count_as_failures(self):
        run_async(self.emitter.emit(_event(EventType.ERROR, stage="publishing")))
        run_async(self.emitter.emit(_event(EventType.TIMEOUT, stage="fixing")))
        run_async(self.emitter.emit(_event(EventType.TIMEOUT)))

        labels = {"repository": "acme/widgets"}
        assert self._value("autoclaude_runs_failed_total", {**labels, "stage": "publishing"}) == 1.0
        assert self._value("autoclaude_runs_failed_total", {**labels, "stage": "fixing"}) == 1.0
        assert self._value("autoclaude_runs_failed_total", {**labels, "stage": "unknown"}) == 1.0

    def test_transitions_move_stage_gauge(self):
        run_async(
            self.emitter.emit(
                _event(EventType.STATE_TRANSITION, from_stage="start", to_stage="analyzing")
            )
        )

        assert self._value("autoclaude_runs_by_stage", {"stage": "analyzing"}) == 1.0

        run_async(
            self.emitter.emit(
                _event(EventType.STATE_TRANSITION, from_stage="analyzing", to_stage="rejected")
            )
        )

        assert self._value("autoclaude_runs_by_stage", {"stage": "analyzing"}) == 0.0
        assert self._value("autoclaude_runs_by_stage", {"stage": "rejected"}) == 1.0

    def test_start_and_terminal_are_not_tracked(self):
        run_async(
            self.emitter.emit(
                _event(EventType.STATE_TRANSITION, from_stage="finalizing", to_stage="terminal")
            )
        )

        assert self._value("autoclaude_runs_by_stage", {"stage": "terminal"}) is None

    def test_output_is_prometheus_text(self):
        run_async(self.emitter.emit(_event(EventType.COMPLETION, outcome="rejected")))

        output = generate_metrics_output(self.registry).decode()

        assert "autoclaude_runs_total" in output
        assert 'outcome="rejected"' in output
