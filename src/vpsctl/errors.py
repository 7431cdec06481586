"""Error taxonomy shared by every vpsctl component."""

from __future__ import annotations

from collections.abc import Sequence


class VpsctlError(Exception):
    """Base class for every error vpsctl reports to the operator."""


class ConfigMissing(VpsctlError):
    """The mandatory services.json structure file does not exist."""


class ServiceNotFound(VpsctlError):
    """The service name is not present in services.json."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Service '{name}' not found in services.json")
        self.name = name


class DuplicateName(VpsctlError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Service '{name}' already exists")
        self.name = name


class PortConflict(VpsctlError):
    def __init__(self, port: int, owner: str) -> None:
        super().__init__(f"Port {port} is already used by '{owner}'")
        self.port = port
        self.owner = owner


class DirectoryMissing(VpsctlError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Service directory not found: {path}")
        self.path = path


class CommandFailed(VpsctlError):
    """An external command exited non-zero where success was required."""

    def __init__(self, argv: Sequence[str], returncode: int, output: str = "") -> None:
        detail = f": {output.strip()}" if output.strip() else ""
        super().__init__(f"`{' '.join(argv)}` exited with {returncode}{detail}")
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output


class ReloadFailed(CommandFailed):
    """The proxy reload command failed after the config file was written."""
