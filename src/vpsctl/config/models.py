"""Pydantic models for vpsctl configuration and the persisted registry documents."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, PositiveInt


class ServiceStructure(BaseModel):
    """Routing facts for one service, as stored in services.json (tracked in git)."""

    model_config = ConfigDict(populate_by_name=True)

    port: PositiveInt
    strip_path: bool = Field(default=True, alias="stripPath")
    description: str | None = None
    health_check_path: str | None = Field(default=None, alias="healthCheckPath")
    unit_aliases: list[str] = Field(default_factory=list, alias="unitAliases")
    user: str | None = None

    def to_json(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_defaults=True)


class ServiceState(BaseModel):
    """Operational state for one service, as stored in services-state.json (server-only)."""

    live: bool = True


class DatabaseStep(BaseModel):
    """Database migration declared by a service's deploy.json."""

    model_config = ConfigDict(populate_by_name=True)

    path: str
    migrate: str
    validate_cmd: str = Field(alias="validate")


class DeployDescriptor(BaseModel):
    """Per-service deploy.json living in the service's own repository."""

    model_config = ConfigDict(populate_by_name=True)

    database: DatabaseStep | None = None
    install: str | None = None
    health_check: str | None = Field(default=None, alias="healthCheck")


class RegistryConfig(BaseModel):
    """Where the two registry documents live."""

    structure_file: str = "/srv/infra/server/services.json"
    state_file: str = "/srv/infra/server/services-state.json"
    state_privileged: bool = True


class ProxyConfig(BaseModel):
    """Caddy generation and reload settings."""

    config_file: str = "/srv/caddy/config/Caddyfile"
    domain: str = "localhost"
    upstream_host: str = "127.0.0.1"
    reload_command: list[str] = Field(
        default_factory=lambda: ["systemctl", "reload", "caddy"]
    )
    reload_privileged: bool = True
    write_privileged: bool = True
    maintenance_message: str = "This service is being updated. Please try again in a minute."


class HostConfig(BaseModel):
    """How commands reach the serving host."""

    services_root: str = "/srv"
    use_sudo: bool = True
    scratch_dir: str | None = None
    in_place_writes: bool = True


class StatusConfig(BaseModel):
    """Status prober settings."""

    scheme: str = "https"
    unit_prefixes: list[str] = Field(default_factory=list)
    unit_suffixes: list[str] = Field(default_factory=list)
    port_timeout: float = 1.0
    http_timeout: float = 3.0


class LockfileRule(BaseModel):
    """A lockfile that implies an install command."""

    file: str
    command: str


def _default_lockfiles() -> list[LockfileRule]:
    return [
        LockfileRule(file="bun.lockb", command="bun install"),
        LockfileRule(file="pnpm-lock.yaml", command="pnpm install"),
        LockfileRule(file="yarn.lock", command="yarn install"),
        LockfileRule(file="package-lock.json", command="npm install"),
    ]


class DeployConfig(BaseModel):
    """Deployment workflow settings."""

    descriptor_name: str = "deploy.json"
    install_timeout: int = 30
    health_attempts: int = 10
    health_interval: float = 1.0
    health_command_timeout: float = 10.0
    lockfiles: list[LockfileRule] = Field(default_factory=_default_lockfiles)
    database_env: str = "DATABASE_PATH"
    backup_slots: int = 2


class ToolkitConfig(BaseModel):
    """Root configuration model for .vpsctl.yaml."""

    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    host: HostConfig = Field(default_factory=HostConfig)
    status: StatusConfig = Field(default_factory=StatusConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
