"""Maintenance mode on/off steps."""

from __future__ import annotations

from typing import Any

from vpsctl.deploy.models import StepResult
from vpsctl.deploy.steps.base import BaseStep
from vpsctl.proxy.maintenance import set_maintenance


class _MaintenanceStep(BaseStep):
    enabled: bool = True

    async def execute(self, context: dict[str, Any]) -> StepResult:
        generated = await set_maintenance(
            self.deps.registry,
            self.deps.generator,
            self.target.name,
            enabled=self.enabled,
        )
        result = self.ok("maintenance mode " + ("on" if self.enabled else "off"))
        if generated.reload_error:
            result.warnings.append(f"Proxy reload failed: {generated.reload_error}")
        return result


class MaintenanceOnStep(_MaintenanceStep):
    step_type = "maintenance_on"
    enabled = True


class MaintenanceOffStep(_MaintenanceStep):
    step_type = "maintenance_off"
    enabled = False
