"""Event emitter, listener protocol, and deploy event dataclass."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass
class DeployEvent:
    """A typed event emitted while a deploy or rollback runs."""

    event_type: str  # "deploy.started", "step.started", "step.completed", ...
    timestamp: datetime
    service: str
    data: dict[str, Any] = field(default_factory=dict)


class EventListener(Protocol):
    """Protocol for consuming deploy events."""

    async def on_event(self, event: DeployEvent) -> None: ...


class EventEmitter:
    """Dispatches events to listeners. A failing listener never breaks the workflow."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def add_listener(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    async def emit(self, event: DeployEvent) -> None:
        for listener in self._listeners:
            try:
                await listener.on_event(event)
            except Exception:
                logger.exception("Event listener error")
