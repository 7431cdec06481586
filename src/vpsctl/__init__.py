"""vpsctl: reverse proxy, maintenance mode and deployments for a single VPS."""

__version__ = "0.1.0"
