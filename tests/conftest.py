"""Shared fixtures for vpsctl tests."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
import yaml

from vpsctl.config.models import ToolkitConfig
from vpsctl.host import CommandResult, Host
from vpsctl.proxy.caddy import CaddyGenerator
from vpsctl.registry.registry import ServiceRegistry


class FakeRunner:
    """CommandRunner that records calls and returns scripted results.

    Rules match when their pattern is a substring of the space-joined argv.
    The most recently added matching rule wins. A rule with several results
    hands them out in order and then keeps repeating the last one.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self._rules: list[tuple[str, list[CommandResult]]] = []
        # Nothing exists unless a test says so; keeps lockfile detection quiet.
        self.on("test -e", returncode=1)

    def on(self, pattern: str, returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._rules.append((pattern, [CommandResult([], returncode, stdout, stderr)]))

    def on_sequence(self, pattern: str, returncodes: Sequence[int]) -> None:
        self._rules.append((pattern, [CommandResult([], rc) for rc in returncodes]))

    def commands(self) -> list[str]:
        return [" ".join(c) for c in self.calls]

    def ran(self, pattern: str) -> bool:
        return any(pattern in c for c in self.commands())

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        args = list(argv)
        self.calls.append(args)
        self.envs.append(env)
        joined = " ".join(args)
        for pattern, results in reversed(self._rules):
            if pattern in joined:
                scripted = results.pop(0) if len(results) > 1 else results[0]
                return CommandResult(args, scripted.returncode, scripted.stdout, scripted.stderr)
        return CommandResult(args, 0)


SAMPLE_STRUCTURE: dict[str, Any] = {
    "api": {"port": 3000},
    "docs": {"port": 3001, "stripPath": False, "description": "Documentation site"},
    "workers": {"port": 3002, "healthCheckPath": "health", "unitAliases": ["worker-api"]},
}


@pytest.fixture()
def structure_file(tmp_path: Path) -> Path:
    path = tmp_path / "services.json"
    path.write_text(json.dumps(SAMPLE_STRUCTURE, indent=2))
    return path


@pytest.fixture()
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "services-state.json"


@pytest.fixture()
def toolkit_config(tmp_path: Path, structure_file: Path, state_file: Path) -> ToolkitConfig:
    """Config that keeps every file inside tmp_path and never sleeps."""
    services_root = tmp_path / "srv"
    services_root.mkdir()
    return ToolkitConfig(
        registry={
            "structure_file": str(structure_file),
            "state_file": str(state_file),
            "state_privileged": False,
        },
        proxy={
            "config_file": str(tmp_path / "Caddyfile"),
            "domain": "app.example.com",
            "write_privileged": False,
        },
        host={"services_root": str(services_root), "scratch_dir": str(tmp_path)},
        deploy={"health_interval": 0},
    )


@pytest.fixture()
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def host(fake_runner: FakeRunner, toolkit_config: ToolkitConfig) -> Host:
    return Host(
        fake_runner,
        use_sudo=True,
        scratch_dir=toolkit_config.host.scratch_dir,
        in_place=toolkit_config.host.in_place_writes,
    )


@pytest.fixture()
def registry(toolkit_config: ToolkitConfig, host: Host) -> ServiceRegistry:
    return ServiceRegistry(toolkit_config.registry, host)


@pytest.fixture()
def generator(toolkit_config: ToolkitConfig, host: Host) -> CaddyGenerator:
    return CaddyGenerator(toolkit_config.proxy, host)


@pytest.fixture()
def config_file(tmp_path: Path, toolkit_config: ToolkitConfig) -> Path:
    """Write the toolkit config to a temp .vpsctl.yaml and return the path."""
    path = tmp_path / ".vpsctl.yaml"
    with path.open("w") as fh:
        yaml.dump(toolkit_config.model_dump(), fh)
    return path
