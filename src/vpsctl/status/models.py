"""Data models for service health and status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

UnitState = Literal["active", "inactive", "failed", "unknown"]
HealthLabel = Literal["healthy", "maintenance", "issue"]


@dataclass(frozen=True)
class UnitResult:
    """Process-manager state and the unit name that produced it."""

    state: UnitState
    unit: str


@dataclass(frozen=True)
class HttpResult:
    """Result of a single HTTP probe."""

    ok: bool
    status_code: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class ServiceStatus:
    """Full status of a registered service, produced by one probe."""

    name: str
    port: int
    live: bool
    unit_state: UnitState
    unit: str
    port_open: bool
    http_ok: bool
    url: str
    http_status: int | None = None

    @property
    def health_label(self) -> HealthLabel:
        if not self.live:
            return "maintenance"
        if self.unit_state == "active" and self.port_open and self.http_ok:
            return "healthy"
        return "issue"

    @property
    def problems(self) -> list[str]:
        """Failing dimensions of a live service."""
        if not self.live:
            return []
        found: list[str] = []
        if self.unit_state != "active":
            found.append(f"systemd: {self.unit_state}")
        if not self.port_open:
            found.append("port closed")
        if not self.http_ok:
            found.append("http failed" + (f" ({self.http_status})" if self.http_status else ""))
        return found

    @property
    def suggested_commands(self) -> list[str]:
        if self.unit_state != "active":
            return [
                f"sudo systemctl status {self.unit}",
                f"sudo journalctl -u {self.unit} -n 50",
                f"sudo systemctl restart {self.unit}",
            ]
        if not self.port_open or not self.http_ok:
            return [
                f"curl -v {self.url}",
                f"curl -v http://localhost:{self.port}/",
                f"sudo journalctl -u {self.unit} -n 20",
            ]
        return []

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "port": self.port,
            "config": "live" if self.live else "maintenance",
            "systemd": self.unit_state,
            "unit": self.unit,
            "portOpen": self.port_open,
            "httpOk": self.http_ok,
            "httpStatus": self.http_status,
            "url": self.url,
            "health": self.health_label,
        }
