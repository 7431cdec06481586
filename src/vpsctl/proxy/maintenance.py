"""Maintenance-mode switching: update state, regenerate the Caddyfile, reload."""

from __future__ import annotations

import logging
from dataclasses import replace

from vpsctl.errors import ServiceNotFound
from vpsctl.proxy.caddy import CaddyGenerator, GenerateResult
from vpsctl.registry.registry import ServiceRegistry

logger = logging.getLogger(__name__)


async def set_maintenance(
    registry: ServiceRegistry,
    generator: CaddyGenerator,
    name: str,
    enabled: bool,
    dry_run: bool = False,
) -> GenerateResult:
    """Put *name* into (or take it out of) maintenance mode and regenerate the proxy config.

    In dry-run mode the state file is left alone and the config is rendered
    as it would look after the change.
    """
    services = registry.load()
    if name not in services:
        raise ServiceNotFound(name)
    if dry_run:
        preview = dict(services)
        preview[name] = replace(services[name], live=not enabled)
        return await generator.apply(preview, dry_run=True)

    logger.info("Maintenance mode %s for %s", "on" if enabled else "off", name)
    await registry.set_live(name, not enabled)
    return await generator.apply(registry.load())


async def toggle_maintenance(
    registry: ServiceRegistry,
    generator: CaddyGenerator,
    name: str,
    dry_run: bool = False,
) -> tuple[bool, GenerateResult]:
    """Flip the live flag of *name*. Returns the new live flag and the generation result."""
    current = registry.get(name)
    result = await set_maintenance(registry, generator, name, enabled=current.live, dry_run=dry_run)
    return not current.live, result
