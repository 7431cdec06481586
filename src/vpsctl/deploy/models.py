"""Data models for deploy and rollback results."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vpsctl.config.models import DeployDescriptor
from vpsctl.registry.models import ServiceConfig


@dataclass
class StepResult:
    """Result of a single deploy step."""

    step_type: str
    service: str
    success: bool
    message: str | None = None
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    skipped: bool = False
    warnings: list[str] = field(default_factory=list)
    duration_ms: float | None = None


@dataclass
class DeployResult:
    """Result of a full deploy or rollback."""

    service: str
    action: str = "deploy"
    steps: list[StepResult] = field(default_factory=list)
    live: bool = True
    remediation: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(s.success or s.skipped for s in self.steps)

    @property
    def failed_step(self) -> StepResult | None:
        return next((s for s in self.steps if not s.success and not s.skipped), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "service": self.service,
            "action": self.action,
            "success": self.success,
            "live": self.live,
            "remediation": self.remediation,
            "steps": [
                {
                    "step_type": s.step_type,
                    "success": s.success,
                    "skipped": s.skipped,
                    "message": s.message,
                    "error": s.error,
                    "warnings": s.warnings,
                    "duration_ms": s.duration_ms,
                }
                for s in self.steps
            ],
        }


@dataclass
class DeployTarget:
    """Everything the steps need to know about the service being deployed."""

    service: ServiceConfig
    workdir: str
    descriptor: DeployDescriptor = field(default_factory=DeployDescriptor)
    health_check: str | None = None

    @property
    def name(self) -> str:
        return self.service.name

    @property
    def unit(self) -> str:
        return self.service.unit

    def path(self, *parts: str) -> str:
        return str(Path(self.workdir, *parts))


@dataclass
class ServiceSummary:
    """Read-only snapshot shown by ``vpsctl deploy NAME --status``."""

    name: str
    port: int
    live: bool
    unit_active: bool
    last_commit: str | None = None
