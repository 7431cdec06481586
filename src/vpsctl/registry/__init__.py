"""Service registry: structure + state documents and their merged view."""

from vpsctl.registry.models import ServiceConfig, merge
from vpsctl.registry.registry import ServiceRegistry

__all__ = ["ServiceConfig", "ServiceRegistry", "merge"]
