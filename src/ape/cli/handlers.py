"""
CLI command handlers for APE.

This module contains the implementation of the CLI modes, separated from
the argument parsing logic.
"""

import asyncio
import json
import sys
from typing import Awaitable, Callable, List, Optional

from ..app import builtin_plugins, create_command_service
from ..config import load_config, ConfigurationError
from ..core.commands.parser import CommandParser
from ..core.commands.service import CommandService
from ..core.commands.types import ExecutionResult, SuggestionContext
from ..core.providers import create_model_provider
from ..utils import setup_logging, get_logger, log_config_info
from .commands import parse_args

ServiceHandler = Callable[[CommandService, object], Awaitable[int]]

PROMPT = "ape> "
EXIT_WORDS = ("exit", "quit", "/exit", "/quit")


def main(argv: Optional[List[str]] = None) -> int:
    """Console-script entry point."""
    try:
        return handle_cli_command(parse_args(argv))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        return 0


def handle_cli_command(args) -> int:
    """
    Handle CLI commands based on parsed arguments.

    Returns:
        int: Exit code (0 for success, non-zero for error)
    """
    try:
        # Load configuration (use built-in defaults if no config specified)
        config = load_config(args.config)
        setup_logging(config, verbose=args.verbose)
        log_config_info(config)

        if args.parse is not None:
            return _handle_parse(args)
        elif args.list_commands is not None:
            return _run_with_service(config, _handle_list_commands, args)
        elif args.run is not None:
            return _run_with_service(config, _handle_run, args)
        elif args.convert:
            return _run_with_service(config, _handle_convert, args)
        elif args.suggest:
            return _run_with_service(config, _handle_suggest, args)
        else:
            return _run_with_service(config, _handle_interactive, args)

    except ConfigurationError as e:
        print(f"❌ Configuration error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        return 1


def _run_with_service(config, handler: ServiceHandler, args) -> int:
    """Build the service, run one async handler and release the model."""

    async def runner() -> int:
        model = create_model_provider(config.llm)
        service = create_command_service(config, builtin_plugins(config, model), model)
        try:
            return await handler(service, args)
        finally:
            if model is not None:
                await model.aclose()

    return asyncio.run(runner())


def _print_result(result: ExecutionResult, as_json: bool) -> None:
    if as_json:
        print(result.to_json())
        return

    icon = "❌" if result.error else "✅"
    kind = f" [{result.error_kind.value}]" if result.error_kind else ""
    print(f"{icon}{kind} {result.content}")
    if result.suggestions:
        print("💡 Suggestions:")
        for suggestion in result.suggestions:
            print(f"  {suggestion}")


def _handle_parse(args) -> int:
    """Parse input and print the structured command."""
    command = CommandParser().parse(args.parse)
    if command is None:
        print(f"❌ Not a command: {args.parse!r}")
        return 1

    details = {
        "prefix": command.prefix.value,
        "domain": command.domain,
        "action": command.action,
        "args": list(command.args),
        "bare_domain": command.is_bare_domain,
        "canonical": CommandParser.format_command(command),
    }
    if args.json:
        print(json.dumps(details, ensure_ascii=False))
    else:
        print("🔍 Parsed command:")
        for key, value in details.items():
            print(f"  {key}: {value}")
    return 0


async def _handle_list_commands(service: CommandService, args) -> int:
    """List registered commands."""
    domain = args.list_commands or None
    usages = service.usages(domain)

    if domain and not usages:
        print(f"❌ No commands registered for '{domain}'")
        return 1

    if args.json:
        print(json.dumps([
            {"domain": u.domain, "id": u.id, "syntax": u.syntax, "description": u.description}
            for u in usages
        ], ensure_ascii=False))
        return 0

    print("🔧 Available Commands:")
    current = None
    for usage in usages:
        if usage.domain != current:
            current = usage.domain
            print(f"\n  {current}:")
        print(f"    {usage.syntax:<48} {usage.description}")
    return 0


async def _handle_run(service: CommandService, args) -> int:
    """Process one input and exit."""
    result = await service.process(args.run)
    if result is None:
        print("💬 Not a command. Use @domain:action, @domain <request> or /help.")
        return 1

    _print_result(result, args.json)
    return 1 if result.error else 0


async def _handle_convert(service: CommandService, args) -> int:
    """Convert a natural-language request without executing it."""
    domain, text = args.convert
    domain = domain.lstrip("@").lower()
    if not service.registry.has_domain(domain):
        print(f"❌ Unknown domain '{domain}'")
        return 1

    conversion = await service.convert(domain, text)
    if args.json:
        print(json.dumps(conversion.to_dict(), ensure_ascii=False))
        return 0

    command = CommandParser.format_command(conversion.to_command(domain))
    print(f"🧭 {command}")
    print(f"  confidence: {conversion.confidence:.0%} ({conversion.source.value})")
    print(f"  explanation: {conversion.explanation}")
    for alt in conversion.alternatives:
        print(f"  alternative: {alt.command} {' '.join(alt.args)} ({alt.confidence:.0%})".rstrip())
    return 0


async def _handle_suggest(service: CommandService, args) -> int:
    """Suggest commands for the given editor state."""
    context = SuggestionContext(
        active_file=args.file,
        current_branch=args.branch,
        recent_domains=list(args.recent_domain),
    )
    suggestions = service.suggest(context, args.limit)

    if args.json:
        print(json.dumps(suggestions, ensure_ascii=False))
        return 0

    if not suggestions:
        print("  No suggestions")
        return 0

    print("💡 Suggested commands:")
    for suggestion in suggestions:
        print(f"  {suggestion}")
    return 0


async def _handle_interactive(service: CommandService, args) -> int:
    """Read commands from stdin until EOF or exit."""
    logger = get_logger(__name__)
    loop = asyncio.get_running_loop()

    print("🐒 APE command prompt. Type /help for commands, 'exit' to quit.")
    while True:
        try:
            line = await loop.run_in_executor(None, input, PROMPT)
        except EOFError:
            break

        line = line.strip()
        if not line:
            continue
        if line.lower() in EXIT_WORDS:
            break

        result = await service.process(line)
        if result is None:
            logger.debug("Ignored non-command input in interactive mode")
            print("💬 Not a command. Use @domain:action, @domain <request> or /help.")
            continue
        _print_result(result, args.json)

    print("👋 Goodbye!")
    return 0
