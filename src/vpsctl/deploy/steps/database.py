"""Database migration step.

The live database is copied to a scratch path and migrated and validated
there. Only after validation passes are the backups rotated and the migrated
copy swapped into place, so a failed migration leaves the served file alone.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from vpsctl.config.models import DatabaseStep
from vpsctl.deploy.models import StepResult
from vpsctl.deploy.steps.base import BaseStep
from vpsctl.host import Host

logger = logging.getLogger(__name__)


def backup_path(db_path: str, slot: int) -> str:
    return f"{db_path}.bak.{slot}"


async def rotate_backups(host: Host, db_path: str, slots: int) -> None:
    """Shift numbered backups up one slot, then copy the current database into slot 1."""
    for slot in range(slots, 1, -1):
        older = backup_path(db_path, slot - 1)
        if await host.exists(older):
            await host.move(older, backup_path(db_path, slot))
    await host.copy(db_path, backup_path(db_path, 1))


async def restore_database(host: Host, db_path: str) -> None:
    """Put backup slot 1 back over the live database."""
    logger.warning("Restoring %s from %s", db_path, backup_path(db_path, 1))
    staged = f"{db_path}.restore"
    await host.copy(backup_path(db_path, 1), staged)
    await host.move(staged, db_path)


class DatabaseMigrationStep(BaseStep):
    step_type = "database"

    async def _run_local(self, command: str, scratch: str) -> tuple[bool, str]:
        env = {self.deps.settings.database_env: scratch}
        result = await self.host.run(["sh", "-c", command], cwd=self.target.workdir, env=env)
        return result.ok, result.output

    async def execute(self, context: dict[str, Any]) -> StepResult:
        db: DatabaseStep | None = self.target.descriptor.database
        if db is None:
            return self.skip("no database declared in deploy.json")

        scratch = self.host.scratch_path(f"{self.target.name}-{Path(db.path).name}")
        try:
            await self.host.fetch_file(db.path, scratch)

            ok, output = await self._run_local(db.migrate, scratch)
            if not ok:
                return self.fail(f"Migration failed: {output}")
            ok, output = await self._run_local(db.validate_cmd, scratch)
            if not ok:
                return self.fail(f"Validation failed: {output}")
            context["database_validated"] = True

            await rotate_backups(self.host, db.path, self.deps.settings.backup_slots)
            staged = f"{db.path}.new"
            await self.host.push_file(scratch, staged)
            chown = await self.host.run_privileged(["chown", f"--reference={db.path}", staged])
            if not chown.ok:
                logger.warning("Could not copy ownership of %s: %s", db.path, chown.output)
            await self.host.move(staged, db.path)
            context["database_migrated"] = True
        finally:
            if os.path.exists(scratch):
                os.unlink(scratch)
        return self.ok(f"migrated {db.path} (previous copy in {backup_path(db.path, 1)})")
