"""
Built-in ``/`` commands of the system domain.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .executor import CommandExecutor
from .registry import CommandRegistry
from .types import CommandDefinition, CommandPrefix, ExecutionResult, SYSTEM_DOMAIN
from ...utils.error_handling import ErrorKind
from ...utils.logging import get_logger

if TYPE_CHECKING:
    from ...plugins.host import PluginHost


DEBUG_HISTORY_SIZE = 10


class SystemCommands:
    """Handlers for /help, /debug and /domains."""

    def __init__(self, registry: CommandRegistry, executor: Optional[CommandExecutor] = None,
                 host: Optional["PluginHost"] = None):
        self.registry = registry
        self.executor = executor
        self.host = host
        self.logger = get_logger(__name__)

    def definitions(self) -> List[CommandDefinition]:
        return [
            self._define("help", "/help [domain]", "List available commands", self.help,
                         ["/help", "/help git"]),
            self._define("debug", "/debug", "Show registry statistics and recent executions", self.debug,
                         ["/debug"]),
            self._define("domains", "/domains", "List command domains and their plugins", self.domains,
                         ["/domains"]),
        ]

    @staticmethod
    def _define(command_id: str, syntax: str, description: str, handler, examples) -> CommandDefinition:
        return CommandDefinition(
            id=command_id,
            name=command_id,
            domain=SYSTEM_DOMAIN,
            prefix=CommandPrefix.SLASH,
            syntax=syntax,
            description=description,
            execute=handler,
            examples=list(examples),
        )

    def help(self, args: List[str]) -> ExecutionResult:
        if args:
            domain = args[0].lstrip("@").split(":", 1)[0].lower()
            if not self.registry.has_domain(domain):
                return ExecutionResult.failure(
                    ErrorKind.UNKNOWN_COMMAND,
                    f"Unknown domain '{domain}'. Run /domains to list registered domains.",
                    suggestions=self.registry.suggest_domains(domain),
                )
            usages = self.registry.domain_usages(domain)
            title = f"# @{domain} commands"
        else:
            usages = self.registry.all_usages()
            title = "# Available commands"

        lines = [title]
        current = None
        for usage in usages:
            if usage.domain != current:
                current = usage.domain
                lines.append("" if args else f"\n## {current}")
            lines.append(f"- `{usage.syntax}`: {usage.description}")

        data = [
            {
                "id": u.id,
                "domain": u.domain,
                "syntax": u.syntax,
                "description": u.description,
                "examples": list(u.examples),
            }
            for u in usages
        ]
        return ExecutionResult.success("\n".join(lines), data={"commands": data})

    def debug(self, args: List[str]) -> ExecutionResult:
        stats = self.registry.statistics()
        lines = [
            "# Debug",
            "",
            f"- domains: {stats['domains']}",
            f"- commands: {stats['commands']}",
        ]
        for domain, count in stats["per_domain"].items():
            lines.append(f"  - {domain}: {count}")

        history: List[Dict[str, Any]] = []
        if self.executor is not None:
            for record in self.executor.history()[-DEBUG_HISTORY_SIZE:]:
                history.append({
                    "command": record.command,
                    "duration_ms": round(record.duration_ms, 1),
                    "success": record.success,
                    "error_kind": record.error_kind.value if record.error_kind else None,
                })
            if history:
                lines.extend(["", "## Recent executions"])
                for entry in history:
                    status = "ok" if entry["success"] else entry["error_kind"]
                    lines.append(f"- {entry['command']} ({status}, {entry['duration_ms']}ms)")

        return ExecutionResult.success("\n".join(lines), data={"registry": stats, "history": history})

    def domains(self, args: List[str]) -> ExecutionResult:
        entries: Dict[str, Dict[str, Any]] = {}
        for domain in self.registry.domains():
            entries[domain] = {
                "domain": domain,
                "commands": len(self.registry.definitions(domain)),
                "plugin": None,
                "enabled": True,
            }

        if self.host is not None:
            for record in self.host.plugins():
                entry = entries.setdefault(record.domain, {"domain": record.domain, "commands": 0})
                entry["plugin"] = record.plugin_id
                entry["enabled"] = record.enabled

        lines = ["# Domains", ""]
        for domain in sorted(entries):
            entry = entries[domain]
            plugin = f", plugin {entry['plugin']}" if entry.get("plugin") else ""
            state = "" if entry["enabled"] else " [disabled]"
            lines.append(f"- @{domain}: {entry['commands']} command(s){plugin}{state}")

        return ExecutionResult.success("\n".join(lines), data={"domains": [entries[d] for d in sorted(entries)]})


def register_system_commands(registry: CommandRegistry, executor: Optional[CommandExecutor] = None,
                             host: Optional["PluginHost"] = None) -> SystemCommands:
    """Register the system domain; returns the handler object."""
    commands = SystemCommands(registry, executor, host)
    registry.register_many(commands.definitions())
    return commands
