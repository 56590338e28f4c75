"""
Command parser for the two command grammars.

    @domain:action [args...]    domain-qualified command
    @domain [free text]         bare domain, routed to natural-language resolution
    /action [args...]           system command

Parsing is total: any input either yields a well-formed ``Command`` or None.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, TYPE_CHECKING

from .types import Command, CommandPrefix, SYSTEM_DOMAIN
from ...utils.logging import get_logger

if TYPE_CHECKING:
    from .registry import CommandRegistry


QUOTES = ('"', "'")
DOMAIN_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.-]*$")
COMMAND_SHAPE = re.compile(r"^[@/][A-Za-z0-9_][\w.:-]*")


@dataclass
class ParseOutcome:
    """Parse result plus hints for input that almost was a command."""
    command: Optional[Command]
    suggestions: List[str] = field(default_factory=list)


def tokenize(text: str) -> List[str]:
    """
    Split text on whitespace, keeping quoted substrings together.

    Quotes are stripped and no escape sequences are processed; an explicit
    empty pair ("") yields an empty argument and an unterminated quote runs
    to the end of the input.
    """
    tokens: List[str] = []
    buf: List[str] = []
    quote: Optional[str] = None
    in_token = False

    for ch in text:
        if quote:
            if ch == quote:
                quote = None
            else:
                buf.append(ch)
        elif ch in QUOTES:
            quote = ch
            in_token = True
        elif ch.isspace():
            if in_token:
                tokens.append("".join(buf))
                buf = []
                in_token = False
        else:
            buf.append(ch)
            in_token = True

    if in_token:
        tokens.append("".join(buf))

    return tokens


def _split_head(body: str):
    """Split off the unquoted command head; returns (head, remainder)."""
    end = len(body)
    for i, ch in enumerate(body):
        if ch.isspace() or ch in QUOTES:
            end = i
            break
    return body[:end], body[end:]


def free_text(command: Command) -> str:
    """
    Text following the ``@domain`` head of a bare-domain command.

    Taken from the raw input when available so quoting survives for the
    argument extractors; falls back to the joined args.
    """
    raw = command.raw.strip()
    if raw.startswith(CommandPrefix.AT.value):
        _, remainder = _split_head(raw[1:])
        return remainder.strip()
    return command.text


class CommandParser:
    """Turns raw input into a ``Command`` when it matches a command grammar."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def parse(self, text: Optional[str]) -> Optional[Command]:
        """
        Parse raw input.

        Args:
            text: Raw user input

        Returns:
            Command, or None when the input is not a command
        """
        if not isinstance(text, str):
            return None

        stripped = text.strip()
        if len(stripped) < 2:
            return None

        lead, body = stripped[0], stripped[1:]
        if lead == CommandPrefix.AT.value:
            return self._parse_at(body, stripped)
        if lead == CommandPrefix.SLASH.value:
            return self._parse_slash(body, stripped)
        return None

    def _parse_at(self, body: str, raw: str) -> Optional[Command]:
        head, remainder = _split_head(body)

        if ":" in head:
            domain, action = head.split(":", 1)
        else:
            domain, action = head, ""

        domain = domain.lower()
        if not DOMAIN_PATTERN.match(domain):
            self.logger.debug(f"Rejected @-input with invalid domain: {raw!r}")
            return None

        return Command(CommandPrefix.AT, domain, action, tuple(tokenize(remainder)), raw=raw)

    def _parse_slash(self, body: str, raw: str) -> Optional[Command]:
        action, remainder = _split_head(body)
        if not action:
            return None

        return Command(CommandPrefix.SLASH, SYSTEM_DOMAIN, action, tuple(tokenize(remainder)), raw=raw)

    def is_command(self, text: Optional[str]) -> bool:
        """True when the input uses a command prefix at all."""
        if not isinstance(text, str):
            return False
        stripped = text.lstrip()
        return stripped.startswith((CommandPrefix.AT.value, CommandPrefix.SLASH.value))

    def looks_like_command(self, text: Optional[str]) -> bool:
        """True for ``@word`` / ``/word`` shaped input (used for autocomplete)."""
        return isinstance(text, str) and bool(COMMAND_SHAPE.match(text.strip()))

    def parse_with_suggestions(self, text: str, registry: "CommandRegistry") -> ParseOutcome:
        """Parse and, when the result cannot be resolved, collect near matches."""
        command = self.parse(text)

        if command is None:
            if not self.looks_like_command(text):
                return ParseOutcome(None)
            return ParseOutcome(None, registry.suggest_domains(text.strip()[1:].split(":", 1)[0]))

        if not registry.has_domain(command.domain):
            return ParseOutcome(command, registry.suggest_domains(command.domain))

        if command.is_bare_domain or registry.resolve(command.domain, command.action):
            return ParseOutcome(command)

        return ParseOutcome(command, registry.suggest_similar(command.domain, command.action))

    @staticmethod
    def format_command(command: Command) -> str:
        """Render a command in canonical text form."""
        parts = [command.qualified_name]
        for arg in command.args:
            if arg == "" or any(ch.isspace() for ch in arg) or any(q in arg for q in QUOTES):
                quote = "'" if '"' in arg else '"'
                parts.append(f"{quote}{arg}{quote}")
            else:
                parts.append(arg)
        return " ".join(parts)
