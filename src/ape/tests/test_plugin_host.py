"""
Test suite for plugin registration and lifecycle.
"""

from typing import List

import pytest

from ape.core.commands.executor import CommandExecutor
from ape.core.commands.natural_language import DomainDescriptor, NaturalLanguageResolver
from ape.core.commands.registry import CommandRegistry
from ape.core.commands.system import register_system_commands
from ape.core.commands.types import Command, CommandDefinition
from ape.plugins.base import BasePlugin, ClientPlugin, split_flags
from ape.plugins.host import PluginEventKind, PluginHost, PluginOrigin
from ape.utils.error_handling import ErrorKind, ValidationError
from ape.tests.fixtures.command_fixtures import make_definition


class NotesPlugin(BasePlugin):
    """Minimal plugin with a configurable command list."""

    id = "notes"
    name = "Notes"
    domain = "notes"
    description = "Personal notes"

    def __init__(self, actions=("list", "add")):
        super().__init__()
        self.actions = list(actions)

    def get_commands(self) -> List[CommandDefinition]:
        return [self.define(action, f"{action} notes", lambda args, a=action: f"{a} done") for action in self.actions]

    def get_descriptor(self):
        return DomainDescriptor(domain=self.domain, triggers={"list": ["노트 목록"]}, default_action="list")


class BrokenPlugin(BasePlugin):
    id = "broken"
    name = "Broken"
    domain = "broken"

    def get_commands(self):
        raise RuntimeError("cannot load commands")


class TicketsPlugin(ClientPlugin):
    id = "tickets"
    name = "Tickets"
    domain = "tickets"
    client_name = "ticket client"

    def get_commands(self):
        return [self.define("show", "Show a ticket", self._show)]

    def _show(self, args):
        return self.require_client().show(args[0])


class TestPluginRegistration:
    """Test registering and unregistering plugins."""

    def setup_method(self):
        """Set up test environment."""
        self.registry = CommandRegistry()
        self.resolver = NaturalLanguageResolver(self.registry)
        self.host = PluginHost(self.registry, self.resolver)

    def test_register_plugin(self):
        """Test that an enabled plugin's commands and descriptor are registered."""
        assert self.host.register_plugin(NotesPlugin())

        definition = self.registry.resolve("notes", "list")
        assert definition is not None
        assert definition.plugin_id == "notes"
        assert definition.syntax == "@notes:list"
        assert self.resolver.descriptor("notes") is not None

        record = self.host.get_plugin("notes")
        assert record.origin is PluginOrigin.INTERNAL
        assert record.enabled
        assert self.host.get_plugin_by_domain("notes") is record

    def test_duplicate_id_rejected(self):
        """Test that a plugin id can be registered once."""
        assert self.host.register_plugin(NotesPlugin())
        assert not self.host.register_plugin(NotesPlugin())

    def test_domain_collision_rejected(self):
        """Test that a second plugin cannot take an owned domain."""
        class OtherNotes(NotesPlugin):
            id = "other-notes"

        self.host.register_plugin(NotesPlugin())

        assert not self.host.register_plugin(OtherNotes(), PluginOrigin.EXTERNAL)
        assert self.host.get_plugin("other-notes") is None

    def test_system_domain_reserved(self):
        """Test that a plugin cannot take over the built-in / commands."""
        register_system_commands(self.registry, CommandExecutor(self.registry), self.host)

        class SystemNotes(NotesPlugin):
            id = "system-notes"
            domain = "system"

        assert not self.host.register_plugin(SystemNotes(actions=["help"]))
        assert self.host.get_plugin("system-notes") is None
        assert self.registry.resolve("system", "help").plugin_id is None

    def test_unowned_registry_domain_reserved(self):
        """Test that commands registered without a plugin keep their domain."""
        self.registry.register(make_definition("notes", "list"))

        assert not self.host.register_plugin(NotesPlugin())
        assert [d.id for d in self.registry.definitions("notes")] == ["list"]

    def test_missing_identity_rejected(self):
        """Test that id and domain are required."""
        class Anonymous(NotesPlugin):
            id = ""

        assert not self.host.register_plugin(Anonymous())

    def test_validation_failure_rejected(self):
        """Test that Validatable plugins must pass validation."""
        class Invalid(TicketsPlugin):
            def validate(self):
                return ["base URL is missing"]

        assert not self.host.register_plugin(Invalid())
        assert not self.registry.has_domain("tickets")

    def test_non_plugin_rejected(self):
        """Test that only BasePlugin instances can be registered."""
        with pytest.raises(ValidationError, match="plugin must be of type BasePlugin"):
            self.host.register_plugin(object())

    def test_get_commands_failure_rejected(self):
        """Test that a plugin that cannot list commands is not registered."""
        assert not self.host.register_plugin(BrokenPlugin())
        assert self.host.plugins() == []

    def test_foreign_domain_commands_skipped(self):
        """Test that commands for other domains are dropped."""
        class Sneaky(NotesPlugin):
            def get_commands(self):
                return super().get_commands() + [make_definition("git", "push")]

        self.host.register_plugin(Sneaky())

        assert self.registry.resolve("git", "push") is None
        assert self.registry.resolve("notes", "add") is not None

    def test_disabled_plugin_registers_without_commands(self):
        """Test registering a plugin that starts disabled."""
        plugin = NotesPlugin()
        plugin.set_enabled(False)

        assert self.host.register_plugin(plugin)
        assert not self.registry.has_domain("notes")
        assert self.host.enabled_plugins() == []

    def test_unregister_plugin(self):
        """Test that unregistering removes the domain and descriptor."""
        self.host.register_plugin(NotesPlugin())

        assert self.host.unregister_plugin("notes")
        assert not self.host.unregister_plugin("notes")
        assert not self.registry.has_domain("notes")
        assert self.resolver.descriptor("notes") is None


class TestPluginLifecycle:
    """Test enabling, disabling and refreshing plugins."""

    def setup_method(self):
        """Set up test environment."""
        self.registry = CommandRegistry()
        self.resolver = NaturalLanguageResolver(self.registry)
        self.host = PluginHost(self.registry, self.resolver)
        self.plugin = NotesPlugin()
        self.host.register_plugin(self.plugin)
        self.events = []
        self.host.add_listener(self.events.append)

    @pytest.mark.asyncio
    async def test_disabled_domain_is_unknown(self):
        """Test that commands of a disabled plugin resolve as unknown."""
        executor = CommandExecutor(self.registry)

        assert self.host.disable_plugin("notes")
        result = await executor.execute(Command.at("notes", "list"))

        assert result.error_kind is ErrorKind.UNKNOWN_COMMAND
        assert self.resolver.descriptor("notes") is None

    def test_enable_restores_commands(self):
        """Test re-enabling a plugin."""
        self.host.disable_plugin("notes")

        assert self.host.enable_plugin("notes")
        assert self.registry.resolve("notes", "list") is not None
        assert self.resolver.descriptor("notes") is not None
        assert [e.kind for e in self.events] == [PluginEventKind.DISABLED, PluginEventKind.ENABLED]

    def test_unknown_plugin_ids(self):
        """Test lifecycle calls for ids that are not registered."""
        assert not self.host.enable_plugin("nope")
        assert not self.host.disable_plugin("nope")
        assert not self.host.refresh_plugin("nope")

    def test_refresh_replaces_commands(self):
        """Test that refreshing adds new and removes stale commands."""
        self.plugin.actions = ["list", "search"]

        assert self.host.refresh_plugin("notes")
        assert self.registry.resolve("notes", "search") is not None
        assert self.registry.resolve("notes", "add") is None
        assert [d.id for d in self.registry.definitions("notes")] == ["list", "search"]
        assert self.events[-1].kind is PluginEventKind.REFRESHED

    def test_refresh_of_disabled_plugin_waits_for_enable(self):
        """Test that a disabled plugin's refreshed commands apply on enable."""
        self.host.disable_plugin("notes")
        self.plugin.actions = ["search"]

        self.host.refresh_plugin("notes")
        assert not self.registry.has_domain("notes")

        self.host.enable_plugin("notes")
        assert [d.id for d in self.registry.definitions("notes")] == ["search"]

    def test_refresh_all(self):
        """Test refreshing every enabled plugin."""
        assert self.host.refresh_all() == 1

    def test_failing_listener_is_contained(self):
        """Test that listener errors do not break lifecycle calls."""
        def broken(event):
            raise RuntimeError("listener failed")

        self.host.add_listener(broken)

        assert self.host.disable_plugin("notes")


class TestClientPlugin:
    """Test plugins backed by a client."""

    def setup_method(self):
        """Set up test environment."""
        self.registry = CommandRegistry()
        self.host = PluginHost(self.registry)
        self.executor = CommandExecutor(self.registry)

    @pytest.mark.asyncio
    async def test_missing_client_reports_handler_failure(self):
        """Test that a handler without a client fails with details."""
        self.host.register_plugin(TicketsPlugin())

        result = await self.executor.execute(Command.at("tickets", "show", "T-1"))

        assert result.error_kind is ErrorKind.HANDLER_FAILURE
        assert "Tickets ticket client is not configured" in result.content
        assert result.data["error"]["details"] == {"plugin": "tickets", "domain": "tickets"}

    def test_validate(self):
        """Test the built-in identity validation."""
        assert TicketsPlugin().validate() == []


class TestSplitFlags:
    """Test flag parsing shared by plugins."""

    def test_split_flags(self):
        """Test positionals, valued flags and boolean flags."""
        positionals, flags = split_flags(["a", "--depth=2", "--watch", "b", "-m", "--"])

        assert positionals == ["a", "b", "-m", "--"]
        assert flags == {"depth": "2", "watch": "true"}
