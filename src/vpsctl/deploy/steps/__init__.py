"""Deploy step implementations."""

from __future__ import annotations

from vpsctl.deploy.steps.base import BaseStep, StepDeps
from vpsctl.deploy.steps.code import InstallStep, PullStep, ResetStep, RestartStep
from vpsctl.deploy.steps.database import DatabaseMigrationStep
from vpsctl.deploy.steps.health import HealthCheckStep
from vpsctl.deploy.steps.maintenance import MaintenanceOffStep, MaintenanceOnStep

DEPLOY_STEPS: list[type[BaseStep]] = [
    MaintenanceOnStep,
    DatabaseMigrationStep,
    PullStep,
    InstallStep,
    RestartStep,
    HealthCheckStep,
    MaintenanceOffStep,
]

ROLLBACK_STEPS: list[type[BaseStep]] = [
    MaintenanceOnStep,
    ResetStep,
    RestartStep,
    HealthCheckStep,
    MaintenanceOffStep,
]

__all__ = ["DEPLOY_STEPS", "ROLLBACK_STEPS", "BaseStep", "StepDeps"]
