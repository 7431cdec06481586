"""Code steps: git pull/reset, dependency install, service restart."""

from __future__ import annotations

import logging
from typing import Any

from vpsctl.deploy.models import StepResult
from vpsctl.deploy.steps.base import BaseStep
from vpsctl.host import TIMEOUT_EXIT_CODE

logger = logging.getLogger(__name__)


class PullStep(BaseStep):
    step_type = "pull"

    async def execute(self, context: dict[str, Any]) -> StepResult:
        result = await self.host.run_as(
            self.target.service.owner,
            ["git", "-C", self.target.workdir, "pull"],
        )
        if not result.ok:
            return self.fail(f"git pull failed ({result.returncode}): {result.output}")
        return self.ok(result.stdout.strip().splitlines()[-1] if result.stdout.strip() else None)


class ResetStep(BaseStep):
    """Discard HEAD and reset the working tree to its parent commit."""

    step_type = "reset"

    async def execute(self, context: dict[str, Any]) -> StepResult:
        result = await self.host.run_as(
            self.target.service.owner,
            ["git", "-C", self.target.workdir, "reset", "--hard", "HEAD~1"],
        )
        if not result.ok:
            return self.fail(f"git reset failed ({result.returncode}): {result.output}")
        return self.ok(result.stdout.strip() or None)


class InstallStep(BaseStep):
    """Runs the install command from deploy.json, or one implied by a lockfile."""

    step_type = "install"

    async def resolve_command(self) -> tuple[str | None, str | None]:
        """Return (command, lockfile that implied it)."""
        if self.target.descriptor.install:
            return self.target.descriptor.install, None
        for rule in self.deps.settings.lockfiles:
            if await self.host.exists(self.target.path(rule.file)):
                return rule.command, rule.file
        return None, None

    async def execute(self, context: dict[str, Any]) -> StepResult:
        command, lockfile = await self.resolve_command()
        if command is None:
            return self.skip("no install command and no known lockfile")

        timeout = self.deps.settings.install_timeout
        argv = [
            "timeout",
            str(timeout),
            *self.host.as_user(self.target.service.owner, ["bash", "-c", command]),
        ]
        result = await self.host.run(argv, cwd=self.target.workdir)
        step = self.ok(command + (f" (auto-detected from {lockfile})" if lockfile else ""))
        if result.returncode == TIMEOUT_EXIT_CODE:
            # Exit 124 from timeout counts as a finished install.
            warning = f"Install command timed out after {timeout}s, assuming it finished"
            logger.warning("%s: %s", self.target.name, warning)
            step.warnings.append(warning)
        elif not result.ok:
            return self.fail(f"Install command failed ({result.returncode}): {result.output}")
        return step


class RestartStep(BaseStep):
    step_type = "restart"

    async def execute(self, context: dict[str, Any]) -> StepResult:
        result = await self.host.run_privileged(["systemctl", "restart", self.target.unit])
        if not result.ok:
            return self.fail(f"systemctl restart {self.target.unit} failed: {result.output}")
        return self.ok(f"restarted {self.target.unit}")
