"""Service status probing."""

from vpsctl.status.health import StatusProber, check_http, check_port, service_url
from vpsctl.status.models import HttpResult, ServiceStatus, UnitResult
from vpsctl.status.units import resolve_unit, unit_candidates

__all__ = [
    "HttpResult",
    "ServiceStatus",
    "StatusProber",
    "UnitResult",
    "check_http",
    "check_port",
    "resolve_unit",
    "service_url",
    "unit_candidates",
]
