"""Tests for the service registry and the structure/state merge."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from vpsctl.config.models import ServiceState, ServiceStructure
from vpsctl.errors import (
    ConfigMissing,
    DuplicateName,
    PortConflict,
    ServiceNotFound,
    VpsctlError,
)
from vpsctl.registry.models import ServiceConfig, merge
from vpsctl.registry.registry import ServiceRegistry


# ─── Merge tests ───


class TestMerge:
    def test_missing_state_means_live(self):
        merged = merge({"api": ServiceStructure(port=3000)}, {})
        assert merged["api"].live is True
        assert merged["api"].port == 3000

    def test_state_overrides_live(self):
        merged = merge(
            {"api": ServiceStructure(port=3000), "docs": ServiceStructure(port=3001)},
            {"api": ServiceState(live=False)},
        )
        assert merged["api"].live is False
        assert merged["docs"].live is True

    def test_orphan_state_ignored(self):
        merged = merge({"api": ServiceStructure(port=3000)}, {"ghost": ServiceState(live=False)})
        assert set(merged) == {"api"}

    def test_inputs_not_mutated(self):
        structure = {"api": ServiceStructure(port=3000)}
        state = {"api": ServiceState(live=False)}
        merge(structure, state)
        assert structure["api"].port == 3000
        assert state["api"].live is False

    def test_owner_and_unit(self):
        plain = ServiceConfig(name="api", port=3000)
        assert plain.owner == "api"
        assert plain.unit == "api"

        aliased = ServiceConfig(name="workers", port=3002, unit_aliases=("worker-api",), user="deploy")
        assert aliased.owner == "deploy"
        assert aliased.unit == "worker-api"


# ─── Registry loading tests ───


class TestLoad:
    def test_load_merged(self, registry: ServiceRegistry):
        services = registry.load()
        assert sorted(services) == ["api", "docs", "workers"]
        assert services["docs"].strip_path is False
        assert services["workers"].health_check_path == "health"
        assert services["workers"].unit_aliases == ("worker-api",)

    def test_missing_structure(self, registry: ServiceRegistry, structure_file: Path):
        structure_file.unlink()
        with pytest.raises(ConfigMissing):
            registry.load()

    def test_missing_state_is_empty(self, registry: ServiceRegistry):
        assert registry.load_state() == {}

    def test_invalid_json(self, registry: ServiceRegistry, structure_file: Path):
        structure_file.write_text("{not json")
        with pytest.raises(VpsctlError, match="Invalid JSON"):
            registry.load_structure()

    def test_invalid_entry(self, registry: ServiceRegistry, structure_file: Path):
        structure_file.write_text(json.dumps({"api": {"port": "nope"}}))
        with pytest.raises(VpsctlError, match="Invalid service entry"):
            registry.load_structure()

    def test_get_unknown(self, registry: ServiceRegistry):
        with pytest.raises(ServiceNotFound, match="ghost"):
            registry.get("ghost")


# ─── Registry mutation tests ───


class TestMutations:
    @pytest.mark.asyncio
    async def test_set_live_writes_state(self, registry: ServiceRegistry, state_file: Path):
        await registry.set_live("api", False)
        assert json.loads(state_file.read_text()) == {"api": {"live": False}}
        assert registry.get("api").live is False

    @pytest.mark.asyncio
    async def test_set_live_does_not_touch_structure(
        self, registry: ServiceRegistry, structure_file: Path
    ):
        before = structure_file.read_text()
        await registry.set_live("api", False)
        assert structure_file.read_text() == before

    @pytest.mark.asyncio
    async def test_set_live_unknown(self, registry: ServiceRegistry, state_file: Path):
        with pytest.raises(ServiceNotFound):
            await registry.set_live("ghost", False)
        assert not state_file.exists()

    @pytest.mark.asyncio
    async def test_add(self, registry: ServiceRegistry, structure_file: Path):
        entry = await registry.add("/blog", 3005, strip_path=False, description="Blog")
        assert entry.port == 3005
        data = json.loads(structure_file.read_text())
        assert data["blog"] == {"port": 3005, "stripPath": False, "description": "Blog"}
        assert data["api"] == {"port": 3000}

    @pytest.mark.asyncio
    async def test_add_duplicate(self, registry: ServiceRegistry):
        with pytest.raises(DuplicateName):
            await registry.add("api", 3999)

    @pytest.mark.asyncio
    async def test_add_port_conflict(self, registry: ServiceRegistry):
        with pytest.raises(PortConflict) as exc_info:
            await registry.add("blog", 3001)
        assert exc_info.value.owner == "docs"

    @pytest.mark.asyncio
    async def test_add_invalid_port(self, registry: ServiceRegistry):
        with pytest.raises(VpsctlError):
            await registry.add("blog", -1)

    def test_preview_add_writes_nothing(self, registry: ServiceRegistry, structure_file: Path):
        before = structure_file.read_text()
        preview = registry.preview_add("blog", 3005)
        assert preview["blog"].live is True
        assert structure_file.read_text() == before

    @pytest.mark.asyncio
    async def test_remove_prunes_state(
        self, registry: ServiceRegistry, structure_file: Path, state_file: Path
    ):
        await registry.set_live("api", False)
        await registry.set_live("docs", False)
        await registry.remove("api")
        assert "api" not in json.loads(structure_file.read_text())
        assert json.loads(state_file.read_text()) == {"docs": {"live": False}}

    @pytest.mark.asyncio
    async def test_remove_unknown(self, registry: ServiceRegistry):
        with pytest.raises(ServiceNotFound):
            await registry.remove("ghost")


# ─── Validation tests ───


class TestValidate:
    def test_clean(self, registry: ServiceRegistry):
        assert registry.validate() == []

    def test_duplicate_port_and_orphan(
        self, registry: ServiceRegistry, structure_file: Path, state_file: Path
    ):
        structure_file.write_text(json.dumps({"api": {"port": 3000}, "blog": {"port": 3000}}))
        state_file.write_text(json.dumps({"ghost": {"live": False}}))
        problems = registry.validate()
        assert len(problems) == 2
        assert "Port 3000" in problems[0]
        assert "ghost" in problems[1]


# ─── Version control tests ───


class TestStructureRepo:
    @pytest.mark.asyncio
    async def test_commit(self, registry: ServiceRegistry, fake_runner, structure_file: Path):
        fake_runner.on("log -1", stdout="abc1234 Add blog (2 hours ago)\n")
        assert await registry.structure_commit() == "abc1234 Add blog (2 hours ago)"
        assert fake_runner.commands()[-1].startswith(f"git -C {structure_file.parent} log -1")

    @pytest.mark.asyncio
    async def test_commit_outside_repo(self, registry: ServiceRegistry, fake_runner):
        fake_runner.on("log -1", returncode=128, stderr="not a git repository")
        assert await registry.structure_commit() is None

    @pytest.mark.asyncio
    async def test_changes(self, registry: ServiceRegistry, fake_runner, structure_file: Path):
        fake_runner.on("status --porcelain", stdout=f" M {structure_file.name}\n")
        assert await registry.structure_changes() == [f" M {structure_file.name}"]
        assert fake_runner.commands()[-1].endswith(f"-- {structure_file.name}")

    @pytest.mark.asyncio
    async def test_no_changes(self, registry: ServiceRegistry, fake_runner):
        assert await registry.structure_changes() == []
