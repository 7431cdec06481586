"""Merged service view consumed by the generator, prober and deployer."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from vpsctl.config.models import ServiceState, ServiceStructure


@dataclass(frozen=True)
class ServiceConfig:
    """A structure entry with its live flag resolved from state."""

    name: str
    port: int
    live: bool = True
    strip_path: bool = True
    description: str | None = None
    health_check_path: str | None = None
    unit_aliases: tuple[str, ...] = field(default_factory=tuple)
    user: str | None = None

    @property
    def owner(self) -> str:
        """Account that owns the service's working tree and process."""
        return self.user or self.name

    @property
    def unit(self) -> str:
        """Systemd unit restarted on deploy: the first alias, else the service name."""
        return self.unit_aliases[0] if self.unit_aliases else self.name

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "port": self.port,
            "live": self.live,
            "stripPath": self.strip_path,
            "description": self.description,
            "healthCheckPath": self.health_check_path,
        }


def merge(
    structure: Mapping[str, ServiceStructure],
    state: Mapping[str, ServiceState],
) -> dict[str, ServiceConfig]:
    """Merge structure with state. Names missing from state are live; names only in state are ignored."""
    merged: dict[str, ServiceConfig] = {}
    for name, entry in structure.items():
        service_state = state.get(name)
        merged[name] = ServiceConfig(
            name=name,
            port=entry.port,
            live=service_state.live if service_state is not None else True,
            strip_path=entry.strip_path,
            description=entry.description,
            health_check_path=entry.health_check_path,
            unit_aliases=tuple(entry.unit_aliases),
            user=entry.user,
        )
    return merged
