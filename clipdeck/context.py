"""Application context shared by the orchestration layer.

Replaces process-wide globals (current window, current log file) with an
explicit object handed to the components that emit progress.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from .config import Settings

logger = logging.getLogger("clipdeck")


class ProgressListener(Protocol):
    """Receives free-text progress lines and state transitions."""

    def on_progress(self, operation_id: str, text: str) -> None: ...

    def on_state(self, operation_id: str, state: str) -> None: ...


@dataclass
class AppContext:
    """Settings plus the listeners interested in operation progress."""
    settings: Settings = field(default_factory=Settings)
    listeners: list[ProgressListener] = field(default_factory=list)
    logger: logging.Logger = logger

    def subscribe(self, listener: ProgressListener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener: ProgressListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def emit_progress(self, operation_id: str, text: str) -> None:
        for listener in list(self.listeners):
            try:
                listener.on_progress(operation_id, text)
            except Exception:
                self.logger.exception("Progress listener %r failed", listener)

    def emit_state(self, operation_id: str, state: str) -> None:
        for listener in list(self.listeners):
            try:
                listener.on_state(operation_id, state)
            except Exception:
                self.logger.exception("State listener %r failed", listener)


class LoggingListener:
    """Listener that forwards everything to the ``clipdeck`` logger."""

    def __init__(self, level: int = logging.DEBUG, log: Optional[logging.Logger] = None):
        self.level = level
        self.log = log or logger

    def on_progress(self, operation_id: str, text: str) -> None:
        self.log.log(self.level, "[%s] %s", operation_id, text)

    def on_state(self, operation_id: str, state: str) -> None:
        self.log.info("[%s] -> %s", operation_id, state)
