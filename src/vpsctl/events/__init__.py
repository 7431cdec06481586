"""Deploy progress events."""

from __future__ import annotations

from vpsctl.events.console import ConsoleProgress
from vpsctl.events.emitter import DeployEvent, EventEmitter, EventListener

__all__ = [
    "ConsoleProgress",
    "DeployEvent",
    "EventEmitter",
    "EventListener",
]
