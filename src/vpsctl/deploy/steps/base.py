"""Base class for deploy steps."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any

from vpsctl.config.models import DeployConfig
from vpsctl.deploy.models import DeployTarget, StepResult
from vpsctl.host import Host
from vpsctl.proxy.caddy import CaddyGenerator
from vpsctl.registry.registry import ServiceRegistry


@dataclass
class StepDeps:
    """Collaborators shared by every step of one run."""

    registry: ServiceRegistry
    generator: CaddyGenerator
    host: Host
    settings: DeployConfig
    port_timeout: float = 1.0


class BaseStep(abc.ABC):
    """Abstract base for one stage of the deploy state machine."""

    step_type: str = "base"

    def __init__(self, target: DeployTarget, deps: StepDeps) -> None:
        self.target = target
        self.deps = deps
        self.host = deps.host

    @abc.abstractmethod
    async def execute(self, context: dict[str, Any]) -> StepResult:
        """Execute this step, returning a StepResult. May raise VpsctlError."""

    def ok(self, message: str | None = None, **data: Any) -> StepResult:
        return StepResult(
            step_type=self.step_type,
            service=self.target.name,
            success=True,
            message=message,
            data=data,
        )

    def fail(self, error: str, **data: Any) -> StepResult:
        return StepResult(
            step_type=self.step_type,
            service=self.target.name,
            success=False,
            error=error,
            data=data,
        )

    def skip(self, message: str) -> StepResult:
        return StepResult(
            step_type=self.step_type,
            service=self.target.name,
            success=True,
            skipped=True,
            message=message,
        )
