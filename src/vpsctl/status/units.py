"""Systemd unit resolution.

A service's unit is not always named after the service. Candidate names come
from an ordered list of rules; the first candidate systemd knows about wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from vpsctl.config.models import StatusConfig
from vpsctl.host import Host
from vpsctl.registry.models import ServiceConfig
from vpsctl.status.models import UnitResult, UnitState

logger = logging.getLogger(__name__)

CandidateRule = Callable[[ServiceConfig, StatusConfig], list[str]]

KNOWN_STATES: dict[str, UnitState] = {
    "active": "active",
    "inactive": "inactive",
    "failed": "failed",
}


def _aliases(service: ServiceConfig, settings: StatusConfig) -> list[str]:
    return list(service.unit_aliases)


def _exact(service: ServiceConfig, settings: StatusConfig) -> list[str]:
    return [service.name]


def _prefixed(service: ServiceConfig, settings: StatusConfig) -> list[str]:
    return [f"{prefix}{service.name}" for prefix in settings.unit_prefixes]


def _suffixed(service: ServiceConfig, settings: StatusConfig) -> list[str]:
    return [f"{service.name}{suffix}" for suffix in settings.unit_suffixes]


def _singular_suffixed(service: ServiceConfig, settings: StatusConfig) -> list[str]:
    if not service.name.endswith("s") or len(service.name) < 2:
        return []
    stem = service.name[:-1]
    return [f"{stem}{suffix}" for suffix in settings.unit_suffixes]


CANDIDATE_RULES: list[CandidateRule] = [
    _aliases,
    _exact,
    _prefixed,
    _suffixed,
    _singular_suffixed,
]


def unit_candidates(service: ServiceConfig, settings: StatusConfig) -> list[str]:
    """All candidate unit names for *service*, in rule order, without duplicates."""
    seen: dict[str, None] = {}
    for rule in CANDIDATE_RULES:
        for candidate in rule(service, settings):
            seen.setdefault(candidate, None)
    return list(seen)


async def _is_active(host: Host, unit: str) -> str:
    result = await host.run(["systemctl", "is-active", unit])
    return result.stdout.strip() or "unknown"


async def _is_loaded(host: Host, unit: str) -> bool:
    result = await host.run(["systemctl", "show", "-p", "LoadState", "--value", unit])
    return result.ok and result.stdout.strip() == "loaded"


async def _has_failed(host: Host, unit: str) -> bool:
    result = await host.run(["systemctl", "status", unit])
    return "failed" in result.stdout


async def resolve_unit(host: Host, service: ServiceConfig, settings: StatusConfig) -> UnitResult:
    """Find the unit backing *service* and report its state.

    The first candidate whose state is anything but inactive/unknown, or that
    systemd reports as loaded, is accepted. Failing that, each candidate's
    status output is checked for a failure before settling on inactive.
    """
    candidates = unit_candidates(service, settings)
    for unit in candidates:
        raw = await _is_active(host, unit)
        if raw not in ("inactive", "unknown"):
            return UnitResult(state=KNOWN_STATES.get(raw, "unknown"), unit=unit)
        if await _is_loaded(host, unit):
            return UnitResult(state="inactive", unit=unit)

    for unit in candidates:
        if await _has_failed(host, unit):
            return UnitResult(state="failed", unit=unit)

    logger.debug("No unit found for %s among %s", service.name, candidates)
    return UnitResult(state="inactive", unit=candidates[0])
