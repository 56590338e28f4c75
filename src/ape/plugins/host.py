"""
Plugin host.

Owns plugin registration records and mirrors each enabled plugin's commands
into the command registry. The registry only knows domains; disabling or
removing a plugin unregisters its domain, after which commands of that
domain resolve as unknown.
"""

import dataclasses
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .base import BasePlugin, Validatable
from ..core.commands.natural_language import NaturalLanguageResolver
from ..core.commands.registry import CommandRegistry
from ..core.commands.types import CommandDefinition, SYSTEM_DOMAIN
from ..utils.error_handling import validate_input
from ..utils.logging import get_logger


class PluginOrigin(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class PluginEventKind(str, Enum):
    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    ENABLED = "enabled"
    DISABLED = "disabled"
    REFRESHED = "refreshed"


@dataclass(frozen=True)
class PluginEvent:
    kind: PluginEventKind
    plugin_id: str
    domain: str


@dataclass
class PluginRecord:
    """Registration record of one plugin."""
    plugin_id: str
    domain: str
    origin: PluginOrigin
    plugin: BasePlugin
    commands: Tuple[CommandDefinition, ...] = field(default_factory=tuple)

    @property
    def enabled(self) -> bool:
        return self.plugin.enabled


PluginListener = Callable[[PluginEvent], None]


class PluginHost:
    """Registers plugins and keeps the registry in sync with their state."""

    def __init__(self, registry: CommandRegistry, resolver: Optional[NaturalLanguageResolver] = None):
        self.registry = registry
        self.resolver = resolver
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._records: Dict[str, PluginRecord] = {}
        self._listeners: List[PluginListener] = []

    def register_plugin(self, plugin: BasePlugin, origin: PluginOrigin = PluginOrigin.INTERNAL) -> bool:
        """
        Register a plugin and, if it is enabled, its commands.

        Args:
            plugin: Plugin instance
            origin: Whether the plugin ships with the application

        Returns:
            False when the id is taken, the domain is owned by another plugin
            or by built-in commands, validation fails, or the plugin cannot
            produce its commands

        Raises:
            ValidationError: If ``plugin`` is not a BasePlugin
        """
        validate_input(plugin, "plugin", BasePlugin)
        if not plugin.id or not plugin.domain:
            self.logger.warning(f"Rejected plugin {plugin.__class__.__name__}: id and domain are required")
            return False

        if isinstance(plugin, Validatable):
            issues = plugin.validate()
            if issues:
                self.logger.warning(f"Plugin '{plugin.id}' failed validation: {'; '.join(issues)}")
                return False

        with self._lock:
            if plugin.id in self._records:
                self.logger.warning(f"Plugin '{plugin.id}' is already registered")
                return False

            owner = self._owner_of(plugin.domain)
            if owner is not None:
                self.logger.warning(
                    f"Domain '{plugin.domain}' is already owned by plugin '{owner.plugin_id}'"
                )
                return False

            if plugin.domain == SYSTEM_DOMAIN or self.registry.has_domain(plugin.domain):
                self.logger.warning(f"Domain '{plugin.domain}' is reserved by built-in commands")
                return False

            try:
                commands = self._collect_commands(plugin)
            except Exception as e:
                self.logger.error(f"Plugin '{plugin.id}' failed to provide commands: {e}", exc_info=True)
                return False

            record = PluginRecord(
                plugin_id=plugin.id,
                domain=plugin.domain,
                origin=PluginOrigin(origin),
                plugin=plugin,
                commands=commands,
            )
            self._records[plugin.id] = record

            if plugin.enabled:
                self._activate(record)

        self.logger.info(
            f"Registered {record.origin.value} plugin '{plugin.id}' for @{plugin.domain} "
            f"({len(commands)} command(s), {'enabled' if plugin.enabled else 'disabled'})"
        )
        self._emit(PluginEvent(PluginEventKind.REGISTERED, plugin.id, plugin.domain))
        return True

    def unregister_plugin(self, plugin_id: str) -> bool:
        with self._lock:
            record = self._records.pop(plugin_id, None)
            if record is None:
                return False
            self._deactivate(record)

        self.logger.info(f"Unregistered plugin '{plugin_id}'")
        self._emit(PluginEvent(PluginEventKind.UNREGISTERED, plugin_id, record.domain))
        return True

    def enable_plugin(self, plugin_id: str) -> bool:
        with self._lock:
            record = self._records.get(plugin_id)
            if record is None:
                return False
            if not record.plugin.enabled:
                record.plugin.set_enabled(True)
                self._activate(record)

        self._emit(PluginEvent(PluginEventKind.ENABLED, plugin_id, record.domain))
        return True

    def disable_plugin(self, plugin_id: str) -> bool:
        with self._lock:
            record = self._records.get(plugin_id)
            if record is None:
                return False
            if record.plugin.enabled:
                record.plugin.set_enabled(False)
                self._deactivate(record)

        self._emit(PluginEvent(PluginEventKind.DISABLED, plugin_id, record.domain))
        return True

    def refresh_plugin(self, plugin_id: str) -> bool:
        """Re-poll a plugin's commands and replace its domain's definitions."""
        with self._lock:
            record = self._records.get(plugin_id)
            if record is None:
                return False

            try:
                commands = self._collect_commands(record.plugin)
            except Exception as e:
                self.logger.error(f"Refreshing plugin '{plugin_id}' failed: {e}")
                return False

            previous = {definition.id for definition in record.commands}
            record.commands = commands

            if record.plugin.enabled:
                self.registry.register_many(commands)
                current = {definition.id for definition in commands}
                for stale in sorted(previous - current):
                    self.registry.unregister(record.domain, stale)

        self._emit(PluginEvent(PluginEventKind.REFRESHED, plugin_id, record.domain))
        return True

    def refresh_all(self) -> int:
        """Refresh every enabled plugin; returns how many succeeded."""
        return sum(1 for record in self.enabled_plugins() if self.refresh_plugin(record.plugin_id))

    def get_plugin(self, plugin_id: str) -> Optional[PluginRecord]:
        with self._lock:
            return self._records.get(plugin_id)

    def get_plugin_by_domain(self, domain: str) -> Optional[PluginRecord]:
        with self._lock:
            return self._owner_of(domain)

    def plugins(self) -> List[PluginRecord]:
        with self._lock:
            return list(self._records.values())

    def enabled_plugins(self) -> List[PluginRecord]:
        return [record for record in self.plugins() if record.enabled]

    def add_listener(self, listener: PluginListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: PluginListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _owner_of(self, domain: str) -> Optional[PluginRecord]:
        for record in self._records.values():
            if record.domain == domain:
                return record
        return None

    def _collect_commands(self, plugin: BasePlugin) -> Tuple[CommandDefinition, ...]:
        commands = []
        for definition in plugin.get_commands():
            if definition.domain != plugin.domain:
                self.logger.warning(
                    f"Plugin '{plugin.id}' returned command {definition.id} for foreign domain "
                    f"'{definition.domain}'; skipped"
                )
                continue
            if definition.plugin_id != plugin.id:
                definition = dataclasses.replace(definition, plugin_id=plugin.id)
            commands.append(definition)
        return tuple(commands)

    def _activate(self, record: PluginRecord) -> None:
        self.registry.register_many(record.commands)
        if self.resolver is not None:
            descriptor = record.plugin.get_descriptor()
            if descriptor is not None:
                self.resolver.register_descriptor(descriptor)

    def _deactivate(self, record: PluginRecord) -> None:
        self.registry.unregister_domain(record.domain)
        if self.resolver is not None:
            self.resolver.unregister_descriptor(record.domain)

    def _emit(self, event: PluginEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self.logger.error(f"Plugin listener failed on {event.kind.value} for '{event.plugin_id}': {e}")
