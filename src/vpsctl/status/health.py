"""Async health probes: systemd unit, local TCP port and public HTTP endpoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

import httpx

from vpsctl.config.models import StatusConfig
from vpsctl.host import Host
from vpsctl.registry.models import ServiceConfig
from vpsctl.status.models import HttpResult, ServiceStatus, UnitResult
from vpsctl.status.units import resolve_unit, unit_candidates

logger = logging.getLogger(__name__)


def service_url(service: ServiceConfig, domain: str, scheme: str = "https") -> str:
    """Canonical public URL of a service, including its health check path if set."""
    url = f"{scheme}://{domain}/{service.name}/"
    if service.health_check_path:
        url += service.health_check_path.lstrip("/")
    return url


async def check_port(port: int, host: str = "localhost", timeout: float = 1.0) -> bool:
    """True if something accepts TCP connections on *port*."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, TimeoutError):
        return False
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        pass
    return True


async def check_http(url: str, timeout: float = 3.0) -> HttpResult:
    """GET *url* following redirects; 2xx and 3xx count as healthy."""
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            resp = await client.get(url)
            return HttpResult(ok=200 <= resp.status_code < 400, status_code=resp.status_code)
    except httpx.TimeoutException:
        return HttpResult(ok=False, error="Timeout")
    except httpx.HTTPError as exc:
        return HttpResult(ok=False, error=str(exc))


class StatusProber:
    """Probes services concurrently. Read-only; never raises for a failing check."""

    def __init__(self, settings: StatusConfig, host: Host, domain: str) -> None:
        self._settings = settings
        self._host = host
        self._domain = domain

    async def probe(self, service: ServiceConfig) -> ServiceStatus:
        url = service_url(service, self._domain, self._settings.scheme)
        unit_res, port_res, http_res = await asyncio.gather(
            resolve_unit(self._host, service, self._settings),
            check_port(service.port, timeout=self._settings.port_timeout),
            check_http(url, timeout=self._settings.http_timeout),
            return_exceptions=True,
        )
        if isinstance(unit_res, BaseException):
            logger.warning("Unit check for %s failed: %s", service.name, unit_res)
            unit_res = UnitResult(state="unknown", unit=unit_candidates(service, self._settings)[0])
        if isinstance(port_res, BaseException):
            logger.warning("Port check for %s failed: %s", service.name, port_res)
            port_res = False
        if isinstance(http_res, BaseException):
            logger.warning("HTTP check for %s failed: %s", service.name, http_res)
            http_res = HttpResult(ok=False, error=str(http_res))

        return ServiceStatus(
            name=service.name,
            port=service.port,
            live=service.live,
            unit_state=unit_res.state,
            unit=unit_res.unit,
            port_open=port_res,
            http_ok=http_res.ok,
            http_status=http_res.status_code,
            url=url,
        )

    async def probe_all(self, services: Mapping[str, ServiceConfig]) -> list[ServiceStatus]:
        """Probe every service concurrently, sorted by name."""
        names = sorted(services)
        results = await asyncio.gather(*(self.probe(services[name]) for name in names))
        return list(results)
