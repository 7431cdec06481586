"""Deploy runner: the maintenance → pull → install → restart → health state machine."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from vpsctl.config.models import DeployDescriptor, ToolkitConfig
from vpsctl.deploy.models import DeployResult, DeployTarget, ServiceSummary, StepResult
from vpsctl.deploy.steps import DEPLOY_STEPS, ROLLBACK_STEPS, BaseStep, StepDeps
from vpsctl.deploy.steps.database import restore_database
from vpsctl.errors import DirectoryMissing, VpsctlError
from vpsctl.events.emitter import DeployEvent, EventEmitter
from vpsctl.host import Host
from vpsctl.proxy.caddy import CaddyGenerator
from vpsctl.proxy.maintenance import set_maintenance
from vpsctl.registry.registry import ServiceRegistry

logger = logging.getLogger(__name__)


class DeployRunner:
    """Runs deploy and rollback workflows for one service at a time.

    Steps run strictly in order and the first failure halts the run. Any
    failure after maintenance mode is switched on leaves it on; the result
    carries the commands an operator should run next.
    """

    def __init__(
        self,
        config: ToolkitConfig,
        registry: ServiceRegistry,
        generator: CaddyGenerator,
        host: Host,
        emitter: EventEmitter | None = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._host = host
        self._emitter = emitter
        self._deps = StepDeps(
            registry=registry,
            generator=generator,
            host=host,
            settings=config.deploy,
            port_timeout=config.status.port_timeout,
        )

    async def _emit(self, event_type: str, service: str, **data: Any) -> None:
        if self._emitter is not None:
            await self._emitter.emit(DeployEvent(
                event_type=event_type,
                timestamp=datetime.now(UTC),
                service=service,
                data=data,
            ))

    def workdir(self, name: str) -> str:
        return f"{self._config.host.services_root.rstrip('/')}/{name}"

    async def _load_descriptor(self, workdir: str) -> DeployDescriptor:
        path = f"{workdir}/{self._config.deploy.descriptor_name}"
        text = await self._host.read_text(path)
        if not text or not text.strip():
            return DeployDescriptor()
        try:
            return DeployDescriptor(**json.loads(text))
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            logger.warning("Ignoring invalid %s: %s", path, exc)
            return DeployDescriptor()

    async def prepare(self, name: str, health_check: str | None = None) -> DeployTarget:
        """Validate the service before anything is mutated.

        Raises ServiceNotFound when it is not registered and DirectoryMissing
        when its working tree is absent.
        """
        service = self._registry.get(name)
        workdir = self.workdir(name)
        if not await self._host.is_dir(workdir):
            raise DirectoryMissing(workdir)
        descriptor = await self._load_descriptor(workdir)
        return DeployTarget(
            service=service,
            workdir=workdir,
            descriptor=descriptor,
            health_check=health_check or descriptor.health_check,
        )

    async def _run_step(self, step: BaseStep, context: dict[str, Any]) -> StepResult:
        await self._emit("step.started", step.target.name, step=step.step_type)
        start = time.monotonic()
        try:
            result = await step.execute(context)
        except (VpsctlError, OSError) as exc:
            logger.error("Step %s failed: %s", step.step_type, exc)
            result = step.fail(str(exc))
        result.duration_ms = (time.monotonic() - start) * 1000
        await self._emit(
            "step.completed",
            step.target.name,
            step=result.step_type,
            success=result.success,
            skipped=result.skipped,
            message=result.message,
            error=result.error,
            warnings=list(result.warnings),
            duration_ms=result.duration_ms,
        )
        return result

    async def _run(
        self,
        action: str,
        target: DeployTarget,
        steps: list[type[BaseStep]],
    ) -> DeployResult:
        result = DeployResult(service=target.name, action=action)
        context: dict[str, Any] = {"step_results": result.steps}
        await self._emit("deploy.started", target.name, action=action)

        for step_cls in steps:
            step_result = await self._run_step(step_cls(target, self._deps), context)
            result.steps.append(step_result)
            if not step_result.success:
                await self._on_failure(target, step_result, context, result)
                break

        await self._emit(
            "deploy.completed",
            target.name,
            action=action,
            success=result.success,
            live=result.live,
        )
        return result

    def _persisted_live(self, name: str) -> bool:
        try:
            return self._registry.get(name).live
        except VpsctlError as exc:
            logger.error("Could not read state for %s: %s", name, exc)
            return False

    async def _on_failure(
        self,
        target: DeployTarget,
        failed: StepResult,
        context: dict[str, Any],
        result: DeployResult,
    ) -> None:
        name = target.name
        if failed.step_type == "database" and not context.get("database_validated"):
            # The live database is untouched until validation passes.
            await self._emit("deploy.message", name, message="Reverting maintenance mode")
            try:
                generated = await set_maintenance(
                    self._registry, self._deps.generator, name, enabled=False
                )
            except VpsctlError as exc:
                logger.error("Could not turn maintenance mode off for %s: %s", name, exc)
                failed.warnings.append(f"Could not turn maintenance mode off: {exc}")
            else:
                if generated.reload_error:
                    failed.warnings.append(f"Proxy reload failed: {generated.reload_error}")
                result.live = True
                result.remediation = [f"vpsctl deploy {name}"]
                return

        if failed.step_type == "health" and context.get("database_migrated"):
            db = target.descriptor.database
            assert db is not None
            try:
                await restore_database(self._host, db.path)
            except VpsctlError as exc:
                failed.warnings.append(f"Database restore failed: {exc}")
            else:
                failed.warnings.append(f"Database restored from {db.path}.bak.1")

        result.live = self._persisted_live(name)
        result.remediation = self._remediation(target, failed.step_type, result)

    def _remediation(self, target: DeployTarget, failed_step: str, result: DeployResult) -> list[str]:
        name = target.name
        if failed_step == "maintenance_on":
            if result.live:
                return [f"vpsctl deploy {name}"]
            return [f"vpsctl proxy maint {name}", f"vpsctl deploy {name}"]
        if result.live:
            # State is live; the Caddyfile may still hold the maintenance block.
            return ["vpsctl proxy", f"vpsctl status {name}"]
        if result.action == "rollback":
            return [
                f"vpsctl status {name}",
                f"sudo journalctl -u {target.unit} -n 50",
                f"vpsctl proxy maint {name}",
            ]
        return [
            f"vpsctl deploy {name}",
            f"vpsctl deploy {name} --rollback",
            f"vpsctl proxy maint {name}",
            f"sudo journalctl -u {target.unit} -n 50",
        ]

    async def deploy(self, name: str, health_check: str | None = None) -> DeployResult:
        target = await self.prepare(name, health_check)
        return await self._run("deploy", target, DEPLOY_STEPS)

    async def commits(self, name: str, count: int = 2) -> list[str]:
        """The last *count* commits of the service's working tree, newest first."""
        result = await self._host.run(
            ["git", "-C", self.workdir(name), "log", f"-{count}", "--format=%h %s"]
        )
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def rollback(self, name: str, health_check: str | None = None) -> DeployResult:
        target = await self.prepare(name, health_check)
        commits = await self.commits(name)
        if commits:
            await self._emit("deploy.message", name, message=f"Current: {commits[0]}")
        if len(commits) > 1:
            await self._emit("deploy.message", name, message=f"Rolling back to: {commits[1]}")
        return await self._run("rollback", target, ROLLBACK_STEPS)

    async def summary(self, name: str) -> ServiceSummary:
        service = self._registry.get(name)
        active = await self._host.run(["systemctl", "is-active", "--quiet", service.unit])
        commits = await self.commits(name, count=1)
        return ServiceSummary(
            name=name,
            port=service.port,
            live=service.live,
            unit_active=active.ok,
            last_commit=commits[0] if commits else None,
        )
