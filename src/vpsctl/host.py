"""Command execution boundary for everything that touches the serving host.

All process-manager, git, filesystem and transfer operations are expressed as
argv lists handed to a :class:`CommandRunner`. Tests substitute a runner that
returns scripted results.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import shutil
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from vpsctl.errors import CommandFailed

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
NOT_FOUND_EXIT_CODE = 127


@dataclass
class CommandResult:
    """Outcome of one external command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        return (self.stdout + self.stderr).strip()

    def check(self) -> CommandResult:
        if not self.ok:
            raise CommandFailed(self.argv, self.returncode, self.output)
        return self


class CommandRunner(Protocol):
    """Runs an external command and reports its exit status and output."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult: ...


class SubprocessRunner:
    """CommandRunner backed by asyncio subprocesses."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        args = list(argv)
        logger.debug("run: %s (cwd=%s)", shlex.join(args), cwd)
        full_env = {**os.environ, **env} if env else None
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                cwd=cwd,
                env=full_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            return CommandResult(argv=args, returncode=NOT_FOUND_EXIT_CODE, stderr=str(exc))
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning("Command timed out after %ss: %s", timeout, shlex.join(args))
            return CommandResult(argv=args, returncode=TIMEOUT_EXIT_CODE, timed_out=True)
        return CommandResult(
            argv=args,
            returncode=proc.returncode if proc.returncode is not None else 1,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )


class Host:
    """The serving host, reached through a CommandRunner.

    Privileged operations are prefixed with ``sudo`` when ``use_sudo`` is set.
    """

    def __init__(
        self,
        runner: CommandRunner,
        use_sudo: bool = True,
        scratch_dir: str | None = None,
        in_place: bool = True,
    ) -> None:
        self.runner = runner
        self.use_sudo = use_sudo
        self.scratch_dir = scratch_dir
        self.in_place = in_place

    def _sudo(self, argv: Sequence[str]) -> list[str]:
        return ["sudo", *argv] if self.use_sudo else list(argv)

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        return await self.runner.run(argv, cwd=cwd, env=env, timeout=timeout)

    async def run_privileged(self, argv: Sequence[str], *, cwd: str | None = None) -> CommandResult:
        return await self.run(self._sudo(argv), cwd=cwd)

    def as_user(self, user: str, argv: Sequence[str]) -> list[str]:
        """Build an argv that runs *argv* as the service's process owner."""
        if not self.use_sudo:
            return list(argv)
        return ["sudo", "-u", user, *argv]

    async def run_as(
        self,
        user: str,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
    ) -> CommandResult:
        return await self.run(self.as_user(user, argv), cwd=cwd)

    async def is_dir(self, path: str) -> bool:
        return (await self.run(["test", "-d", path])).ok

    async def exists(self, path: str) -> bool:
        return (await self.run(["test", "-e", path])).ok

    async def read_text(self, path: str) -> str | None:
        """Return the file's contents, or None when it cannot be read."""
        result = await self.run(["cat", path])
        return result.stdout if result.ok else None

    async def copy(self, src: str, dst: str) -> CommandResult:
        return (await self.run_privileged(["cp", src, dst])).check()

    async def move(self, src: str, dst: str) -> CommandResult:
        return (await self.run_privileged(["mv", src, dst])).check()

    async def fetch_file(self, remote: str, local: str) -> None:
        """Copy a file from the serving host into a local scratch location."""
        (await self.run_privileged(["cp", remote, local])).check()
        if self.use_sudo:
            (await self.run_privileged(["chown", str(os.getuid()), local])).check()

    async def push_file(self, local: str, remote: str) -> None:
        """Copy a local file onto the serving host."""
        (await self.run_privileged(["cp", local, remote])).check()

    def scratch_path(self, name: str) -> str:
        base = self.scratch_dir or tempfile.gettempdir()
        return str(Path(base) / f"vpsctl-{os.getpid()}-{name}")

    async def write_file(self, path: str, content: str, privileged: bool = False) -> None:
        """Replace the contents of *path* with *content*.

        The content is staged in a temp file first. With ``in_place`` set the
        staged bytes are copied over the existing file, so its inode survives
        and a bind mount of that file (a container's view of the Caddyfile)
        sees the new contents. Otherwise the copy lands at ``path.new`` and is
        moved over the destination; a mount point is always written in place.
        """
        dest = Path(path)
        in_place = self.in_place or os.path.ismount(dest)
        fd, tmp = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=self.scratch_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            if not privileged:
                if in_place:
                    shutil.copyfile(tmp, dest)
                else:
                    staged = dest.with_name(dest.name + ".new")
                    shutil.copyfile(tmp, staged)
                    os.replace(staged, dest)
            elif in_place:
                await self.copy(tmp, str(dest))
            else:
                staged_path = str(dest) + ".new"
                await self.copy(tmp, staged_path)
                await self.move(staged_path, str(dest))
        finally:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass
