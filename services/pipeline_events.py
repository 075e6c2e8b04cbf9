# services/pipeline_events.py
import logging
from typing import Any

logger = logging.getLogger(__name__)


class PipelineEventSink:
    """
    Observer interface for pipeline milestones.
    Components publish events here instead of formatting output themselves.
    The base sink drops everything.
    """

    def emit(self, event: str, **fields: Any) -> None:
        pass


class LoggingEventSink(PipelineEventSink):
    """Renders each event as one structured log line."""

    def __init__(self, name: str = "pipeline.events", level: int = logging.INFO):
        self._logger = logging.getLogger(name)
        self._level = level

    def emit(self, event: str, **fields: Any) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        rendered = " ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        self._logger.log(self._level, f"{event} {rendered}".rstrip())
