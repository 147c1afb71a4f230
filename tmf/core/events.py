"""Progress and log events emitted during a run.

The core never renders anything; it hands these events to a sink supplied
by the front end (CLI progress bar, GUI, test collector).
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from tmf.core.models import RunSummary

logger = logging.getLogger(__name__)

# Log levels carried by LogMessage
INFO = "info"
WARNING = "warning"
ERROR = "error"
SUCCESS = "success"


@dataclass(frozen=True)
class ScanStarted:
    roots: List[str]


@dataclass(frozen=True)
class ScanSummary:
    media_count: int
    sidecar_count: int


@dataclass(frozen=True)
class LogMessage:
    level: str
    message: str


@dataclass(frozen=True)
class Progress:
    current: int
    total: int


@dataclass(frozen=True)
class RunFinished:
    summary: RunSummary


Event = Union[ScanStarted, ScanSummary, LogMessage, Progress, RunFinished]

# Any callable accepting one event
EventSink = Callable[[Event], None]


def null_sink(event: Event) -> None:
    """Sink that discards everything."""


class EventCollector:
    """Sink that keeps every event; handy for tests and scripting.

    Usage:
        events = EventCollector()
        FixOrchestrator(paths, event_sink=events).run()
        print(events.of_type(Progress)[-1])
    """

    def __init__(self):
        self.events: List[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, kind: type) -> List[Event]:
        return [e for e in self.events if isinstance(e, kind)]

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [
            e.message for e in self.of_type(LogMessage)
            if level is None or e.level == level
        ]


class Emitter:
    """Wraps a sink so a misbehaving front end cannot break the run."""

    def __init__(self, sink: Optional[EventSink] = None):
        self._sink = sink or null_sink

    def emit(self, event: Event) -> None:
        try:
            self._sink(event)
        except Exception as e:
            logger.warning(f"Event sink raised on {type(event).__name__}: {e}")

    def log(self, message: str, level: str = INFO) -> None:
        self.emit(LogMessage(level, message))

    def info(self, message: str) -> None:
        self.log(message, INFO)

    def warning(self, message: str) -> None:
        self.log(message, WARNING)

    def error(self, message: str) -> None:
        self.log(message, ERROR)

    def success(self, message: str) -> None:
        self.log(message, SUCCESS)
