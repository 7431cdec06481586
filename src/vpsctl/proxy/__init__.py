"""Reverse-proxy configuration generation and maintenance mode."""

from vpsctl.proxy.caddy import CaddyGenerator, GenerateResult
from vpsctl.proxy.maintenance import set_maintenance, toggle_maintenance

__all__ = ["CaddyGenerator", "GenerateResult", "set_maintenance", "toggle_maintenance"]
