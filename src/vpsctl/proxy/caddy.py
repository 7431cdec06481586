"""Caddyfile generation from the merged service registry."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from vpsctl.config.models import ProxyConfig
from vpsctl.errors import ReloadFailed
from vpsctl.host import Host
from vpsctl.registry.models import ServiceConfig

logger = logging.getLogger(__name__)

HEADER = (
    "# Generated by vpsctl from services.json and services-state.json.\n"
    "# Do not edit by hand; run `vpsctl proxy` instead.\n"
)


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


@dataclass
class GenerateResult:
    """Outcome of rendering (and possibly writing and reloading) the proxy config."""

    content: str
    written: bool = False
    reloaded: bool = False
    reload_error: str | None = None

    @property
    def success(self) -> bool:
        return self.reload_error is None


class CaddyGenerator:
    """Renders one routing block per service and reloads Caddy."""

    def __init__(self, config: ProxyConfig, host: Host) -> None:
        self._config = config
        self._host = host

    def render_service(self, service: ServiceConfig) -> list[str]:
        name = service.name
        lines = [f"\tredir /{name} /{name}/ 308"]
        if service.live:
            directive = "handle_path" if service.strip_path else "handle"
            lines.insert(0, f"\t# {name}: live port={service.port}")
            lines += [
                f"\t{directive} /{name}/* {{",
                f"\t\treverse_proxy {self._config.upstream_host}:{service.port}",
                "\t}",
            ]
        else:
            strip = "true" if service.strip_path else "false"
            lines.insert(0, f"\t# {name}: maintenance port={service.port} stripPath={strip}")
            lines += [
                f"\thandle /{name}/* {{",
                '\t\theader Content-Type "text/plain; charset=utf-8"',
                '\t\theader Retry-After "60"',
                f"\t\trespond {_quote(self._config.maintenance_message)} 503",
                "\t}",
            ]
        return lines

    def generate(self, services: Mapping[str, ServiceConfig]) -> str:
        """Render the full Caddyfile. Output depends only on *services*."""
        body: list[str] = []
        for name in sorted(services):
            if body:
                body.append("")
            body.extend(self.render_service(services[name]))
        lines = [HEADER, f"{self._config.domain} {{", *body, "}"]
        return "\n".join(lines) + "\n"

    async def reload(self) -> None:
        argv = self._config.reload_command
        if self._config.reload_privileged:
            result = await self._host.run_privileged(argv)
        else:
            result = await self._host.run(argv)
        if not result.ok:
            raise ReloadFailed(result.argv, result.returncode, result.output)

    async def apply(
        self,
        services: Mapping[str, ServiceConfig],
        dry_run: bool = False,
    ) -> GenerateResult:
        """Write the Caddyfile and reload the proxy. A reload failure is reported, not raised."""
        content = self.generate(services)
        result = GenerateResult(content=content)
        if dry_run:
            return result

        await self._host.write_file(
            self._config.config_file, content, privileged=self._config.write_privileged
        )
        result.written = True
        logger.info("Wrote %s (%d services)", self._config.config_file, len(services))

        try:
            await self.reload()
        except ReloadFailed as exc:
            logger.error("Proxy reload failed: %s", exc)
            result.reload_error = str(exc)
        else:
            result.reloaded = True
        return result
