"""
Base classes for domain plugins.

A plugin owns one domain: it contributes that domain's command definitions
and, optionally, a natural-language descriptor. Optional capabilities are
expressed as small ABCs (``Validatable``) and checked with ``isinstance``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.commands.natural_language import DomainDescriptor
from ..core.commands.types import CommandDefinition, CommandPrefix, Handler
from ..utils.error_handling import PluginUnavailableError
from ..utils.logging import get_logger


def split_flags(args: Sequence[str]) -> Tuple[List[str], Dict[str, str]]:
    """Separate positional args from ``--key=value`` / ``--flag`` options."""
    positionals: List[str] = []
    flags: Dict[str, str] = {}
    for arg in args:
        if arg.startswith("--") and len(arg) > 2:
            key, _, value = arg[2:].partition("=")
            flags[key] = value if value else "true"
        else:
            positionals.append(arg)
    return positionals, flags


class Validatable(ABC):
    """Capability: the plugin can check its own configuration."""

    @abstractmethod
    def validate(self) -> List[str]:
        """Return a list of problems; empty when the plugin is usable."""


class BasePlugin(ABC):
    """
    Abstract base class for domain plugins.

    Subclasses set ``id``, ``name``, ``domain`` and ``description`` and
    implement ``get_commands``.
    """

    id: str = ""
    name: str = ""
    domain: str = ""
    description: str = ""

    def __init__(self):
        self.logger = get_logger(f"ape.plugins.{self.id or self.__class__.__name__}")
        self._enabled = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    @abstractmethod
    def get_commands(self) -> List[CommandDefinition]:
        """Command definitions contributed by this plugin."""

    def get_descriptor(self) -> Optional[DomainDescriptor]:
        """Natural-language descriptor for the domain, if the plugin has one."""
        return None

    def define(
        self,
        command_id: str,
        description: str,
        handler: Handler,
        syntax: Optional[str] = None,
        examples: Sequence[str] = (),
        destructive: bool = False,
        name: Optional[str] = None,
    ) -> CommandDefinition:
        """Build a definition in this plugin's domain."""
        return CommandDefinition(
            id=command_id,
            name=name or command_id,
            domain=self.domain,
            prefix=CommandPrefix.AT,
            syntax=syntax or f"@{self.domain}:{command_id}",
            description=description,
            execute=handler,
            examples=list(examples),
            destructive=destructive,
            plugin_id=self.id,
        )


class ClientPlugin(BasePlugin, Validatable):
    """
    Plugin whose handlers delegate to a backend client.

    The client is optional at construction; handlers invoked without one
    raise ``PluginUnavailableError``, which the executor reports as a
    handler failure.
    """

    client_name = "client"

    def __init__(self, client=None):
        super().__init__()
        self.client = client

    def require_client(self):
        if self.client is None:
            raise PluginUnavailableError(
                f"{self.name} {self.client_name} is not configured",
                details={"plugin": self.id, "domain": self.domain},
            )
        return self.client

    def validate(self) -> List[str]:
        issues = []
        if not self.domain:
            issues.append("domain is empty")
        if not self.id:
            issues.append("id is empty")
        return issues
