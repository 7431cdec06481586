"""Service registry: loads, merges and persists services.json and services-state.json."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from vpsctl.config.models import RegistryConfig, ServiceState, ServiceStructure
from vpsctl.errors import (
    ConfigMissing,
    DuplicateName,
    PortConflict,
    ServiceNotFound,
    VpsctlError,
)
from vpsctl.host import Host
from vpsctl.registry.models import ServiceConfig, merge

logger = logging.getLogger(__name__)

Structure = dict[str, ServiceStructure]
State = dict[str, ServiceState]


def _dump(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2) + "\n"


def _read_json(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise VpsctlError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise VpsctlError(f"{path} must contain a JSON object")
    return data


class ServiceRegistry:
    """Registry of services backed by the structure and state documents."""

    def __init__(self, config: RegistryConfig, host: Host) -> None:
        self._config = config
        self._host = host
        self.structure_path = Path(config.structure_file)
        self.state_path = Path(config.state_file)

    def load_structure(self) -> Structure:
        if not self.structure_path.exists():
            raise ConfigMissing(f"{self.structure_path} not found")
        raw = _read_json(self.structure_path)
        try:
            return {name: ServiceStructure(**entry) for name, entry in raw.items()}
        except (TypeError, ValidationError) as exc:
            raise VpsctlError(f"Invalid service entry in {self.structure_path}: {exc}") from exc

    def load_state(self) -> State:
        if not self.state_path.exists():
            return {}
        raw = _read_json(self.state_path)
        try:
            return {name: ServiceState(**entry) for name, entry in raw.items()}
        except (TypeError, ValidationError) as exc:
            raise VpsctlError(f"Invalid state entry in {self.state_path}: {exc}") from exc

    def load(self) -> dict[str, ServiceConfig]:
        return merge(self.load_structure(), self.load_state())

    def get(self, name: str) -> ServiceConfig:
        services = self.load()
        if name not in services:
            raise ServiceNotFound(name)
        return services[name]

    async def save_state(self, state: State) -> None:
        content = _dump({name: entry.model_dump() for name, entry in state.items()})
        await self._host.write_file(
            str(self.state_path), content, privileged=self._config.state_privileged
        )
        logger.debug("Wrote %s", self.state_path)

    async def save_structure(self, structure: Structure) -> None:
        content = _dump({name: entry.to_json() for name, entry in structure.items()})
        await self._host.write_file(str(self.structure_path), content)
        logger.debug("Wrote %s", self.structure_path)

    def _with_new_service(
        self,
        name: str,
        port: int,
        strip_path: bool,
        description: str | None,
    ) -> Structure:
        structure = self.load_structure()
        if name in structure:
            raise DuplicateName(name)
        for other, entry in structure.items():
            if entry.port == port:
                raise PortConflict(port, other)
        try:
            structure[name] = ServiceStructure(port=port, strip_path=strip_path, description=description)
        except ValidationError as exc:
            raise VpsctlError(f"Invalid service '{name}': {exc}") from exc
        return structure

    def preview_add(
        self,
        name: str,
        port: int,
        strip_path: bool = True,
        description: str | None = None,
    ) -> dict[str, ServiceConfig]:
        """Merged view as it would be after :meth:`add`, without writing anything."""
        structure = self._with_new_service(name.lstrip("/"), port, strip_path, description)
        return merge(structure, self.load_state())

    async def add(
        self,
        name: str,
        port: int,
        strip_path: bool = True,
        description: str | None = None,
    ) -> ServiceStructure:
        name = name.lstrip("/")
        structure = self._with_new_service(name, port, strip_path, description)
        entry = structure[name]
        await self.save_structure(structure)
        logger.info("Added service %s on port %d", name, port)
        return entry

    async def remove(self, name: str) -> None:
        name = name.lstrip("/")
        structure = self.load_structure()
        if name not in structure:
            raise ServiceNotFound(name)
        del structure[name]
        await self.save_structure(structure)

        state = self.load_state()
        if name in state:
            del state[name]
            await self.save_state(state)
        logger.info("Removed service %s", name)

    async def set_live(self, name: str, live: bool) -> None:
        structure = self.load_structure()
        if name not in structure:
            raise ServiceNotFound(name)
        state = self.load_state()
        state[name] = ServiceState(live=live)
        await self.save_state(state)
        logger.info("Service %s is now %s", name, "live" if live else "in maintenance")

    def validate(self) -> list[str]:
        """Return human-readable problems with the registry documents."""
        problems: list[str] = []
        structure = self.load_structure()
        owners: dict[int, str] = {}
        for name, entry in sorted(structure.items()):
            if entry.port in owners:
                problems.append(
                    f"Port {entry.port} is used by both '{owners[entry.port]}' and '{name}'"
                )
            else:
                owners[entry.port] = name
        for name in sorted(self.load_state()):
            if name not in structure:
                problems.append(f"State entry '{name}' has no matching service")
        return problems

    async def structure_commit(self) -> str | None:
        """Last commit of the repository holding the structure file, or None if unknown."""
        result = await self._host.run([
            "git", "-C", str(self.structure_path.parent),
            "log", "-1", "--format=%h %s (%cr)",
        ])
        if not result.ok:
            return None
        return result.stdout.strip() or None

    async def structure_changes(self) -> list[str]:
        """Uncommitted changes to the structure file, as ``git status --porcelain`` lines."""
        result = await self._host.run([
            "git", "-C", str(self.structure_path.parent),
            "status", "--porcelain", "--", self.structure_path.name,
        ])
        if not result.ok:
            return []
        return [line for line in result.stdout.splitlines() if line.strip()]
