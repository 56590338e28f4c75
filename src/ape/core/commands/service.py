"""
Command service: the entry point callers use to process user input.

Wires parser, natural-language resolver and executor together:

    raw text -> CommandParser -> Command -> CommandExecutor -> ExecutionResult
                     | bare "@domain free text"
                     +-> NaturalLanguageResolver -> CommandConversion -> Command

Input that is not a command yields None so the caller can route it to chat.
"""

import dataclasses
from typing import List, Optional, TYPE_CHECKING, Union

from .executor import CommandExecutor
from .natural_language import NaturalLanguageResolver
from .parser import CommandParser, free_text
from .registry import CommandRegistry
from .types import (
    Command,
    CommandConversion,
    CommandUsage,
    ExecutionResult,
    SuggestionContext,
)
from ...config.models import ResolverConfig
from ...utils.error_handling import ErrorKind
from ...utils.logging import get_logger

if TYPE_CHECKING:
    from ...plugins.host import PluginHost


class CommandService:
    """Processes user input end to end."""

    def __init__(
        self,
        registry: CommandRegistry,
        executor: CommandExecutor,
        resolver: NaturalLanguageResolver,
        parser: Optional[CommandParser] = None,
        settings: Optional[ResolverConfig] = None,
        host: Optional["PluginHost"] = None,
    ):
        self.registry = registry
        self.executor = executor
        self.resolver = resolver
        self.parser = parser or CommandParser()
        self.settings = settings or resolver.settings
        self.host = host
        self.logger = get_logger(__name__)

    async def process(self, text: str) -> Optional[ExecutionResult]:
        """
        Process raw user input.

        Args:
            text: Raw input line

        Returns:
            ExecutionResult, or None when the input is not a command
        """
        command = self.parser.parse(text)
        if command is None:
            return None

        if not command.is_bare_domain:
            return await self.executor.execute(command)

        if not self.registry.has_domain(command.domain):
            # Resolves as unknown and carries the domain suggestions
            return await self.executor.execute(command)

        request = free_text(command)
        if not request:
            return await self.executor.execute(Command.system("help", command.domain))

        conversion = await self.resolver.convert(command.domain, request)
        return await self._execute_conversion(command, conversion)

    async def _execute_conversion(self, command: Command, conversion: CommandConversion) -> ExecutionResult:
        domain = command.domain
        converted = conversion.to_command(domain, raw=command.raw)
        interpreted = CommandParser.format_command(converted)
        banner = f'Interpreted as "{interpreted}" (confidence {conversion.confidence:.0%})'
        data = {"conversion": conversion.to_dict(), "command": interpreted}

        self.logger.info(
            f"Converted @{domain} request to {interpreted} "
            f"({conversion.source.value}, confidence {conversion.confidence:.2f})"
        )

        if conversion.is_fallback:
            return ExecutionResult.failure(
                ErrorKind.CONVERSION_AMBIGUOUS,
                f"Could not interpret the request for @{domain}. {banner}.\n{conversion.explanation}",
                data=data,
                suggestions=self._conversion_suggestions(domain, conversion, interpreted),
            )

        definition = self.registry.resolve(domain, conversion.command)
        if definition is not None and definition.destructive \
                and conversion.confidence < self.settings.auto_execute_threshold:
            data["requires_confirmation"] = True
            return ExecutionResult.failure(
                ErrorKind.CONVERSION_AMBIGUOUS,
                f"{banner}. This command changes state; run it explicitly to confirm.\n{conversion.explanation}",
                data=data,
                suggestions=self._conversion_suggestions(domain, conversion, interpreted),
            )

        result = await self.executor.execute(converted)
        return dataclasses.replace(result, content=f"{banner}\n\n{result.content}")

    def _conversion_suggestions(self, domain: str, conversion: CommandConversion, interpreted: str) -> List[str]:
        suggestions = [interpreted]
        for alt in conversion.alternatives:
            text = CommandParser.format_command(Command.at(domain, alt.command, *alt.args))
            if text not in suggestions:
                suggestions.append(text)
        suggestions.append(f"/help {domain}")
        return suggestions

    async def convert(self, domain: str, text: str) -> CommandConversion:
        """Convert free text without executing it."""
        return await self.resolver.convert(domain.lstrip("@").lower(), text)

    def suggest(self, context: Union[SuggestionContext, dict, None], limit: int = 5) -> List[str]:
        return self.registry.suggest_commands(context, limit)

    def usages(self, domain: Optional[str] = None) -> List[CommandUsage]:
        if domain:
            return self.registry.domain_usages(domain.lstrip("@").lower())
        return self.registry.all_usages()
