"""Sinks for run events.

The orchestrator only knows the EventEmitter interface. main.py builds
the concrete sink with create_event_emitter(): run events go to the
application log, to Prometheus (see metrics.py), or to both.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, List, Optional

from prometheus_client import CollectorRegistry

from autoclaude.events.models import EventType, RunEvent

logger = logging.getLogger(__name__)

_LEVEL_BY_EVENT_TYPE = {
    EventType.STATE_TRANSITION: logging.INFO,
    EventType.COMPLETION: logging.INFO,
    EventType.ERROR: logging.ERROR,
    EventType.TIMEOUT: logging.WARNING,
}


class EventSinkType(str, Enum):
    """Where run events can be sent."""

    LOGGING = "logging"
    METRICS = "metrics"


class EventEmitter(ABC):
    """Receives run events from the orchestrator.

    A failing emit() must never fail the run; callers log and move on.
    """

    @abstractmethod
    async def emit(self, event: RunEvent) -> None:
        ...

    async def close(self) -> None:
        return None


class LoggingEventEmitter(EventEmitter):
    """Writes each run event as one log record.

    The record level follows the event type (errors at ERROR, timeouts at
    WARNING, everything else at INFO) and the event fields travel in
    ``extra`` for the structured formatter.
    """

    def __init__(self, logger_name: Optional[str] = None):
        self._logger = logging.getLogger(logger_name) if logger_name else logger

    async def emit(self, event: RunEvent) -> None:
        self._logger.log(
            _LEVEL_BY_EVENT_TYPE.get(event.event_type, logging.INFO),
            "Run event: %s for %s",
            event.event_type.value,
            event.item_id,
            extra=event.to_log_dict(),
        )


class CompositeEventEmitter(EventEmitter):
    """Fans one event out to several sinks.

    Each sink is called in turn; one that raises is logged and skipped
    so the remaining sinks still see the event.
    """

    def __init__(self, emitters: Iterable[EventEmitter] = ()):
        self._sinks = tuple(emitters)

    async def emit(self, event: RunEvent) -> None:
        for sink in self._sinks:
            try:
                await sink.emit(event)
            except Exception as e:
                logger.error(
                    "Event sink %s rejected %s: %s",
                    type(sink).__name__,
                    event.event_type.value,
                    e,
                    extra={"item_id": event.item_id, "error": str(e)},
                )

    async def close(self) -> None:
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception as e:
                logger.error("Could not close event sink %s: %s", type(sink).__name__, e)


class NullEventEmitter(EventEmitter):
    """Drops every event; the orchestrator default when none is given."""

    async def emit(self, event: RunEvent) -> None:
        return None


def create_event_emitter(
    sink_types: Optional[List[EventSinkType]] = None,
    logger_name: Optional[str] = None,
    registry: Optional[CollectorRegistry] = None,
) -> EventEmitter:
    """Build the emitter for the given sinks.

    No sinks means logging only. A single sink is returned as is; several
    are wrapped in a CompositeEventEmitter.

    Args:
        sink_types: Sinks to enable, in emit order.
        logger_name: Logger used by the logging sink.
        registry: Prometheus registry used by the metrics sink.
    """
    sinks: List[EventEmitter] = []

    for sink_type in sink_types or [EventSinkType.LOGGING]:
        if sink_type == EventSinkType.LOGGING:
            sinks.append(LoggingEventEmitter(logger_name=logger_name))
        elif sink_type == EventSinkType.METRICS:
            # metrics.py imports EventEmitter from this module
            from autoclaude.events.metrics import MetricsEventEmitter

            sinks.append(MetricsEventEmitter(registry=registry))
        else:
            logger.warning("Unknown event sink type %s, skipping", sink_type)

    if not sinks:
        return LoggingEventEmitter(logger_name=logger_name)
    if len(sinks) == 1:
        return sinks[0]
    return CompositeEventEmitter(sinks)
