"""Tests for configuration models and the YAML loader."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from vpsctl.config.loader import _interpolate_env, find_config_file, load_config
from vpsctl.config.models import DeployDescriptor, ServiceStructure, ToolkitConfig


class TestServiceStructure:
    def test_defaults(self):
        s = ServiceStructure(port=3000)
        assert s.strip_path is True
        assert s.description is None
        assert s.health_check_path is None
        assert s.unit_aliases == []

    def test_camel_case_aliases(self):
        s = ServiceStructure(**{"port": 3000, "stripPath": False, "healthCheckPath": "/health"})
        assert s.strip_path is False
        assert s.health_check_path == "/health"

    def test_rejects_non_positive_port(self):
        with pytest.raises(ValueError):
            ServiceStructure(port=0)

    def test_to_json_omits_defaults(self):
        assert ServiceStructure(port=3000).to_json() == {"port": 3000}
        assert ServiceStructure(port=3000, strip_path=False).to_json() == {"port": 3000, "stripPath": False}


class TestDeployDescriptor:
    def test_full(self):
        d = DeployDescriptor(**{
            "database": {"path": "/srv/api/data.db", "migrate": "bun migrate", "validate": "bun check"},
            "install": "bun install --frozen-lockfile",
            "healthCheck": "curl -fs localhost:3000/health",
        })
        assert d.database is not None
        assert d.database.validate_cmd == "bun check"
        assert d.health_check == "curl -fs localhost:3000/health"

    def test_empty(self):
        d = DeployDescriptor()
        assert d.database is None
        assert d.install is None


class TestToolkitConfig:
    def test_defaults(self):
        cfg = ToolkitConfig()
        assert cfg.registry.structure_file.endswith("services.json")
        assert cfg.deploy.install_timeout == 30
        assert cfg.deploy.health_attempts == 10
        assert cfg.deploy.health_interval == 1.0
        assert cfg.status.port_timeout == 1.0
        assert cfg.host.in_place_writes is True
        assert cfg.status.http_timeout == 3.0
        assert [r.file for r in cfg.deploy.lockfiles] == [
            "bun.lockb",
            "pnpm-lock.yaml",
            "yarn.lock",
            "package-lock.json",
        ]


class TestInterpolation:
    def test_simple_var(self):
        with patch.dict(os.environ, {"VPSCTL_DOMAIN": "app.example.org"}):
            assert _interpolate_env("${VPSCTL_DOMAIN}") == "app.example.org"

    def test_default_value(self):
        env = {k: v for k, v in os.environ.items() if k != "MISSING_VAR"}
        with patch.dict(os.environ, env, clear=True):
            assert _interpolate_env("${MISSING_VAR:-fallback}") == "fallback"

    def test_unset_without_default_kept(self):
        env = {k: v for k, v in os.environ.items() if k != "MISSING_VAR"}
        with patch.dict(os.environ, env, clear=True):
            assert _interpolate_env("${MISSING_VAR}") == "${MISSING_VAR}"


class TestLoadConfig:
    def test_load_from_path(self, config_file: Path):
        cfg = load_config(config_file)
        assert cfg.proxy.domain == "app.example.com"

    def test_explicit_path_missing(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_defaults_when_nothing_found(self, tmp_path: Path):
        with patch("vpsctl.config.loader.find_config_file", return_value=None):
            cfg = load_config()
        assert cfg == ToolkitConfig()

    def test_invalid_config(self, tmp_path: Path):
        path = tmp_path / ".vpsctl.yaml"
        path.write_text(yaml.dump({"deploy": {"health_attempts": "many"}}))
        with pytest.raises(ValueError, match="Invalid configuration"):
            load_config(path)

    def test_env_interpolation(self, tmp_path: Path):
        path = tmp_path / ".vpsctl.yaml"
        path.write_text(yaml.dump({"proxy": {"domain": "${TEST_DOMAIN:-default.example.com}"}}))
        with patch.dict(os.environ, {"TEST_DOMAIN": "from-env.example.com"}):
            cfg = load_config(path)
        assert cfg.proxy.domain == "from-env.example.com"

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / ".vpsctl.yaml"
        path.write_text("")
        assert load_config(path) == ToolkitConfig()


class TestFindConfigFile:
    def test_walks_up(self, tmp_path: Path):
        (tmp_path / ".vpsctl.yaml").write_text("{}")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == tmp_path / ".vpsctl.yaml"

    def test_not_found(self, tmp_path: Path):
        with patch("vpsctl.config.loader.SYSTEM_CONFIG", tmp_path / "missing.yaml"):
            assert find_config_file(tmp_path) is None
