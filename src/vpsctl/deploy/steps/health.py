"""Post-restart health polling."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from vpsctl.deploy.models import StepResult
from vpsctl.deploy.steps.base import BaseStep
from vpsctl.status.health import check_port

logger = logging.getLogger(__name__)


class HealthCheckStep(BaseStep):
    """Polls a custom command, or the TCP port, until it succeeds or attempts run out."""

    step_type = "health"

    async def _probe_once(self) -> bool:
        command = self.target.health_check
        if command:
            result = await self.host.run(
                ["sh", "-c", command],
                cwd=self.target.workdir,
                timeout=self.deps.settings.health_command_timeout,
            )
            return result.ok
        return await check_port(self.target.service.port, timeout=self.deps.port_timeout)

    async def execute(self, context: dict[str, Any]) -> StepResult:
        attempts = self.deps.settings.health_attempts
        interval = self.deps.settings.health_interval
        how = f"`{self.target.health_check}`" if self.target.health_check else f"port {self.target.service.port}"
        for attempt in range(1, attempts + 1):
            if await self._probe_once():
                return self.ok(f"healthy after {attempt} attempt(s) ({how})", attempts=attempt)
            logger.debug("%s not healthy yet (%d/%d)", self.target.name, attempt, attempts)
            if attempt < attempts:
                await asyncio.sleep(interval)
        return self.fail(
            f"Service failed to become healthy on {how} after {attempts} attempts",
            attempts=attempts,
        )
