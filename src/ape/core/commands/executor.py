"""
Command executor.

Resolves a ``Command`` through the registry, invokes its handler and
normalizes whatever the handler returns into an ``ExecutionResult``. The
executor is the error boundary of the pipeline: handler failures and unknown
commands come back as results with ``error=True``, never as exceptions.
"""

import inspect
import json
import time
from collections import deque
from collections.abc import Mapping
from typing import Any, Callable, Deque, List, Optional

from .parser import CommandParser
from .registry import CommandRegistry, qualified_name
from .types import Command, CommandPrefix, ExecutionRecord, ExecutionResult, SYSTEM_DOMAIN
from ...config.models import ExecutorConfig
from ...utils.error_handling import CommandError, ErrorKind
from ...utils.logging import get_logger


TelemetryListener = Callable[[ExecutionRecord, ExecutionResult], None]

DEFAULT_SUCCESS_MESSAGE = "Command executed"
DEFAULT_FAILURE_MESSAGE = "Command failed"


def _render(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def _coerce_error_kind(value: Any) -> ErrorKind:
    if isinstance(value, ErrorKind):
        return value
    for kind in ErrorKind:
        if value in (kind.value, kind.name):
            return kind
    return ErrorKind.HANDLER_FAILURE


def normalize_result(value: Any) -> ExecutionResult:
    """
    Convert a handler return value into an ExecutionResult.

    Args:
        value: ExecutionResult, None, str, mapping or any other object

    Returns:
        ExecutionResult; results already in that shape pass through unchanged
    """
    if isinstance(value, ExecutionResult):
        return value

    if value is None:
        return ExecutionResult.success(DEFAULT_SUCCESS_MESSAGE)

    if isinstance(value, str):
        return ExecutionResult.success(value)

    if isinstance(value, Mapping):
        if "content" in value:
            error = bool(value.get("error", False))
            return ExecutionResult(
                content=str(value["content"]),
                data=value.get("data"),
                error=error,
                error_kind=_coerce_error_kind(value.get("error_kind") or value.get("errorKind")) if error else None,
                suggestions=list(value.get("suggestions") or []),
            )

        if "success" in value or "message" in value:
            ok = bool(value.get("success", True))
            message = value.get("message") or (DEFAULT_SUCCESS_MESSAGE if ok else DEFAULT_FAILURE_MESSAGE)
            return ExecutionResult(
                content=str(message),
                data=value.get("data"),
                error=not ok,
                error_kind=None if ok else ErrorKind.HANDLER_FAILURE,
            )

    return ExecutionResult.success(_render(value), data=value)


class CommandExecutor:
    """Executes resolved commands against the registry."""

    def __init__(self, registry: CommandRegistry, config: Optional[ExecutorConfig] = None,
                 parser: Optional[CommandParser] = None):
        """
        Initialize the executor.

        Args:
            registry: Registry used to resolve commands
            config: Executor settings (history size, slow threshold)
            parser: Parser used by execute_text
        """
        self.registry = registry
        self.config = config or ExecutorConfig()
        self.parser = parser or CommandParser()
        self.logger = get_logger(__name__)
        self._history: Deque[ExecutionRecord] = deque(maxlen=self.config.max_history)
        self._listeners: List[TelemetryListener] = []

    async def execute(self, command: Command) -> ExecutionResult:
        """
        Execute a command.

        Never raises for handler or lookup failures; cancellation of the
        calling task still propagates.

        Args:
            command: Command to execute

        Returns:
            ExecutionResult describing the outcome
        """
        name = command.qualified_name
        started_at = time.time()
        start = time.perf_counter()

        try:
            result = await self._execute(command)
        except Exception as e:
            self.logger.error(f"Unexpected failure executing {name}: {e}", exc_info=True)
            result = self._handler_failure(command, e)

        duration_ms = (time.perf_counter() - start) * 1000
        record = ExecutionRecord(
            command=name,
            started_at=started_at,
            duration_ms=duration_ms,
            success=not result.error,
            error_kind=result.error_kind,
        )
        self._record(record, result)
        return result

    async def execute_text(self, text: str) -> ExecutionResult:
        """Parse and execute raw text; non-command text is reported as unknown."""
        command = self.parser.parse(text)
        if command is None:
            return ExecutionResult.failure(
                ErrorKind.UNKNOWN_COMMAND,
                f"Not a command: {text.strip()!r}. Commands start with '@domain:action' or '/action'.",
                suggestions=["/help"],
            )
        return await self.execute(command)

    async def _execute(self, command: Command) -> ExecutionResult:
        definition = self.registry.resolve(command.domain, command.action)
        if definition is None:
            return self._unknown_command(command)

        self.logger.debug(f"Executing {qualified_name(definition)} with {len(command.args)} arg(s)")

        try:
            value = definition.execute(list(command.args))
            if inspect.isawaitable(value):
                value = await value
            return normalize_result(value)
        except Exception as e:
            self.logger.warning(f"{command.domain}:{command.action} failed: {e}")
            return self._handler_failure(command, e)

    def _unknown_command(self, command: Command) -> ExecutionResult:
        attempted = CommandParser.format_command(command)
        help_command = "/help" if command.domain == SYSTEM_DOMAIN else f"/help {command.domain}"

        if not self.registry.has_domain(command.domain):
            content = f"Unknown command: {attempted} (no commands registered for '{command.domain}'). Run {help_command} for available commands."
            suggestions = self.registry.suggest_domains(command.domain)
        else:
            content = f"Unknown command: {attempted}. Run {help_command} to list the commands of '{command.domain}'."
            suggestions = self.registry.suggest_similar(command.domain, command.action)
            if not suggestions:
                suggestions = [qualified_name(d) for d in self.registry.definitions(command.domain)[:3]]

        error = CommandError(ErrorKind.UNKNOWN_COMMAND, content)
        return ExecutionResult.failure(
            ErrorKind.UNKNOWN_COMMAND,
            content,
            data={"error": error.to_dict(), "help": help_command},
            suggestions=suggestions,
        )

    def _handler_failure(self, command: Command, exc: Exception) -> ExecutionResult:
        label = command.action if command.prefix is CommandPrefix.SLASH else f"{command.domain}:{command.action}"
        error = CommandError.from_exception(ErrorKind.HANDLER_FAILURE, exc, prefix=f"{label} failed")
        return ExecutionResult.failure(
            ErrorKind.HANDLER_FAILURE,
            error.message,
            data={"error": error.to_dict()},
        )

    # Telemetry

    def add_listener(self, listener: TelemetryListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: TelemetryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def history(self) -> List[ExecutionRecord]:
        """Execution records, oldest first."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()

    def _record(self, record: ExecutionRecord, result: ExecutionResult) -> None:
        self._history.append(record)

        if record.success:
            self.logger.info(f"Executed {record.command} in {record.duration_ms:.1f}ms")
        else:
            self.logger.info(
                f"Executed {record.command} with {record.error_kind.value if record.error_kind else 'error'} "
                f"in {record.duration_ms:.1f}ms"
            )

        if record.duration_ms / 1000 > self.config.slow_execution_threshold_seconds:
            self.logger.warning(f"Slow command {record.command}: {record.duration_ms / 1000:.2f}s")

        for listener in list(self._listeners):
            try:
                listener(record, result)
            except Exception as e:
                self.logger.error(f"Telemetry listener failed for {record.command}: {e}")
