"""
Test suite for the command executor.

The executor never raises for handler or lookup failures; every outcome is
an ExecutionResult.
"""

import asyncio

import pytest

from ape.config.models import ExecutorConfig
from ape.core.commands.executor import CommandExecutor, normalize_result
from ape.core.commands.types import Command, ExecutionResult
from ape.utils.error_handling import ErrorKind, PluginUnavailableError
from ape.tests.fixtures.command_fixtures import make_definition


class TestNormalizeResult:
    """Test handler return value normalization."""

    def test_none(self):
        """Test that None becomes a generic success."""
        result = normalize_result(None)

        assert not result.error
        assert result.content == "Command executed"

    def test_string(self):
        """Test that a string becomes the content."""
        assert normalize_result("done") == ExecutionResult.success("done")

    def test_execution_result_passes_through(self):
        """Test that results are returned unchanged."""
        original = ExecutionResult.failure(ErrorKind.HANDLER_FAILURE, "nope")
        assert normalize_result(original) is original

    def test_content_mapping(self):
        """Test the result-shaped mapping."""
        result = normalize_result({
            "content": "partial",
            "data": {"n": 1},
            "error": True,
            "errorKind": "PluginUnavailable",
            "suggestions": ["/help"],
        })

        assert result.error
        assert result.error_kind is ErrorKind.PLUGIN_UNAVAILABLE
        assert result.data == {"n": 1}
        assert result.suggestions == ["/help"]

    def test_unknown_error_kind_defaults_to_handler_failure(self):
        """Test coercion of an unrecognized error kind."""
        result = normalize_result({"content": "x", "error": True, "error_kind": "Weird"})
        assert result.error_kind is ErrorKind.HANDLER_FAILURE

    def test_success_message_mapping(self):
        """Test the success/message mapping shape."""
        ok = normalize_result({"success": True, "message": "Saved", "data": [1]})
        failed = normalize_result({"success": False})

        assert ok.content == "Saved" and not ok.error and ok.data == [1]
        assert failed.error
        assert failed.error_kind is ErrorKind.HANDLER_FAILURE
        assert failed.content == "Command failed"

    def test_other_values_are_rendered(self):
        """Test that other objects are rendered and kept as data."""
        result = normalize_result({"files": ["a", "b"]})

        assert '"files"' in result.content
        assert result.data == {"files": ["a", "b"]}
        assert normalize_result(42).content == "42"


class TestCommandExecutor:
    """Test CommandExecutor.execute."""

    def setup_method(self):
        """Set up test environment."""
        from ape.core.commands.registry import CommandRegistry

        self.registry = CommandRegistry()
        self.executor = CommandExecutor(self.registry, ExecutorConfig(max_history=3))

    @pytest.mark.asyncio
    async def test_sync_handler_receives_args(self):
        """Test a synchronous handler and its argument list."""
        received = []

        def handler(args):
            received.append(args)
            return "ok"

        self.registry.register(make_definition("git", "add", handler))
        result = await self.executor.execute(Command.at("git", "add", "a.py", "b.py"))

        assert result.content == "ok"
        assert received == [["a.py", "b.py"]]

    @pytest.mark.asyncio
    async def test_async_handler(self):
        """Test that coroutine results are awaited."""
        async def handler(args):
            await asyncio.sleep(0)
            return {"content": "async ok"}

        self.registry.register(make_definition("git", "status", handler))
        result = await self.executor.execute(Command.at("git", "status"))

        assert result.content == "async ok"
        assert not result.error

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failure(self):
        """Test that a raising handler yields HANDLER_FAILURE."""
        def handler(args):
            raise ValueError("boom")

        self.registry.register(make_definition("git", "push", handler))
        result = await self.executor.execute(Command.at("git", "push"))

        assert result.error
        assert result.error_kind is ErrorKind.HANDLER_FAILURE
        assert result.content == "git:push failed: boom"
        assert result.data["error"]["cause"] == {"type": "ValueError", "message": "boom"}

    @pytest.mark.asyncio
    async def test_plugin_unavailable_details(self):
        """Test that plugin error details are carried into the result."""
        def handler(args):
            raise PluginUnavailableError("Jira client is not configured", details={"plugin": "jira"})

        self.registry.register(make_definition("jira", "issue", handler))
        result = await self.executor.execute(Command.at("jira", "issue", "APE-1"))

        assert result.error_kind is ErrorKind.HANDLER_FAILURE
        assert result.data["error"]["details"] == {"plugin": "jira"}
        assert result.data["error"]["cause"]["type"] == "PluginUnavailableError"

    @pytest.mark.asyncio
    async def test_unknown_action_in_known_domain(self):
        """Test suggestions for a misspelled action."""
        self.registry.register(make_definition("git", "status"))
        result = await self.executor.execute(Command.at("git", "stauts"))

        assert result.error_kind is ErrorKind.UNKNOWN_COMMAND
        assert "/help git" in result.content
        assert result.suggestions == ["@git:status"]
        assert result.data["help"] == "/help git"

    @pytest.mark.asyncio
    async def test_unknown_action_lists_domain_commands(self):
        """Test that dissimilar actions fall back to the domain's first commands."""
        self.registry.register_many([make_definition("git", "status"), make_definition("git", "diff")])
        result = await self.executor.execute(Command.at("git", "xyzzy"))

        assert result.suggestions == ["@git:status", "@git:diff"]

    @pytest.mark.asyncio
    async def test_unknown_domain(self):
        """Test an unregistered domain."""
        self.registry.register(make_definition("git", "status"))
        result = await self.executor.execute(Command.at("gti", "status"))

        assert result.error_kind is ErrorKind.UNKNOWN_COMMAND
        assert "no commands registered for 'gti'" in result.content
        assert result.suggestions == ["@git"]

    @pytest.mark.asyncio
    async def test_unknown_system_command(self):
        """Test that unknown / commands point at /help."""
        result = await self.executor.execute(Command.system("nope"))

        assert result.error_kind is ErrorKind.UNKNOWN_COMMAND
        assert result.data["help"] == "/help"

    @pytest.mark.asyncio
    async def test_execute_text(self):
        """Test parsing and executing raw text."""
        self.registry.register(make_definition("git", "status"))

        assert (await self.executor.execute_text("@git:status")).content == "status ran"

        result = await self.executor.execute_text("hello")
        assert result.error_kind is ErrorKind.UNKNOWN_COMMAND
        assert result.suggestions == ["/help"]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self):
        """Test that cancelling the caller is not converted into a result."""
        async def handler(args):
            raise asyncio.CancelledError()

        self.registry.register(make_definition("git", "fetch", handler))

        with pytest.raises(asyncio.CancelledError):
            await self.executor.execute(Command.at("git", "fetch"))


class TestExecutionTelemetry:
    """Test execution history and listeners."""

    def setup_method(self):
        """Set up test environment."""
        from ape.core.commands.registry import CommandRegistry

        self.registry = CommandRegistry()
        self.registry.register(make_definition("git", "status"))
        self.executor = CommandExecutor(self.registry, ExecutorConfig(max_history=3))

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        """Test that only the newest records are kept."""
        for _ in range(4):
            await self.executor.execute(Command.at("git", "status"))
        await self.executor.execute(Command.at("git", "missing"))

        history = self.executor.history()
        assert len(history) == 3
        assert history[-1].command == "@git:missing"
        assert not history[-1].success
        assert history[-1].error_kind is ErrorKind.UNKNOWN_COMMAND
        assert all(record.duration_ms >= 0 for record in history)

    @pytest.mark.asyncio
    async def test_clear_history(self):
        """Test clearing the history."""
        await self.executor.execute(Command.at("git", "status"))
        self.executor.clear_history()

        assert self.executor.history() == []

    @pytest.mark.asyncio
    async def test_listener_receives_record_and_result(self):
        """Test the telemetry listener."""
        seen = []
        self.executor.add_listener(lambda record, result: seen.append((record.command, result.content)))

        await self.executor.execute(Command.at("git", "status"))

        assert seen == [("@git:status", "status ran")]

    @pytest.mark.asyncio
    async def test_failing_listener_is_contained(self):
        """Test that a broken listener does not affect the result."""
        def broken(record, result):
            raise RuntimeError("telemetry down")

        self.executor.add_listener(broken)
        result = await self.executor.execute(Command.at("git", "status"))

        assert result.content == "status ran"

    @pytest.mark.asyncio
    async def test_remove_listener(self):
        """Test that removed listeners are not called."""
        seen = []
        listener = lambda record, result: seen.append(record)  # noqa: E731
        self.executor.add_listener(listener)
        self.executor.remove_listener(listener)

        await self.executor.execute(Command.at("git", "status"))

        assert seen == []
