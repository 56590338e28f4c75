"""
Types for the command resolution pipeline.

Commands, definitions, conversions and results are plain dataclasses. A
``Command`` is an immutable value constructed fresh for each input and never
shared between requests.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ...utils.error_handling import ErrorKind


SYSTEM_DOMAIN = "system"


class CommandPrefix(str, Enum):
    """Command grammars."""
    AT = "@"       # @domain:action args
    SLASH = "/"    # /action args


@dataclass(frozen=True)
class Command:
    """A resolved, structured action ready for execution."""
    prefix: CommandPrefix
    domain: str
    action: str
    args: Tuple[str, ...] = ()
    raw: str = field(default="", compare=False)

    def __post_init__(self):
        if self.prefix is CommandPrefix.AT and not self.domain:
            raise ValueError("@-commands require a domain")
        if self.prefix is CommandPrefix.SLASH and self.domain != SYSTEM_DOMAIN:
            raise ValueError(f"/-commands belong to the '{SYSTEM_DOMAIN}' domain, got '{self.domain}'")
        if not isinstance(self.args, tuple):
            object.__setattr__(self, "args", tuple(self.args))

    @property
    def is_bare_domain(self) -> bool:
        """True for ``@domain free text``, which carries no action."""
        return self.prefix is CommandPrefix.AT and not self.action

    @property
    def text(self) -> str:
        """Arguments joined back into free text."""
        return " ".join(self.args)

    @property
    def qualified_name(self) -> str:
        if self.prefix is CommandPrefix.SLASH:
            return f"/{self.action}"
        if not self.action:
            return f"@{self.domain}"
        return f"@{self.domain}:{self.action}"

    @classmethod
    def system(cls, action: str, *args: str) -> "Command":
        return cls(CommandPrefix.SLASH, SYSTEM_DOMAIN, action, tuple(args))

    @classmethod
    def at(cls, domain: str, action: str, *args: str) -> "Command":
        return cls(CommandPrefix.AT, domain, action, tuple(args))


Handler = Callable[[List[str]], Union[Any, Awaitable[Any]]]


@dataclass
class CommandDefinition:
    """A registrable capability of a domain."""
    id: str
    name: str
    domain: str
    prefix: CommandPrefix
    syntax: str
    description: str
    execute: Handler
    examples: List[str] = field(default_factory=list)
    destructive: bool = False
    plugin_id: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.domain, self.id)

    def to_usage(self) -> "CommandUsage":
        return CommandUsage(
            id=self.id,
            domain=self.domain,
            syntax=self.syntax,
            description=self.description,
            examples=tuple(self.examples),
        )


@dataclass(frozen=True)
class CommandUsage:
    """Read-only projection of a definition for help and autocomplete."""
    id: str
    domain: str
    syntax: str
    description: str
    examples: Tuple[str, ...] = ()


@dataclass
class ExecutionResult:
    """Structured outcome of executing a command."""
    content: str
    data: Any = None
    error: bool = False
    error_kind: Optional[ErrorKind] = None
    suggestions: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, content: str, data: Any = None) -> "ExecutionResult":
        return cls(content=content, data=data)

    @classmethod
    def failure(cls, kind: ErrorKind, content: str, data: Any = None,
                suggestions: Optional[Sequence[str]] = None) -> "ExecutionResult":
        return cls(
            content=content,
            data=data,
            error=True,
            error_kind=kind,
            suggestions=list(suggestions or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "data": self.data,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "suggestions": list(self.suggestions),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str, ensure_ascii=False)


class ConversionSource(str, Enum):
    """Stage of the natural-language resolver that produced a conversion."""
    HEURISTIC = "heuristic"
    MODEL = "model"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ConversionAlternative:
    """A lower-ranked interpretation of the same free text."""
    command: str
    args: Tuple[str, ...] = ()
    confidence: float = 0.0


@dataclass
class CommandConversion:
    """Natural-language resolver output."""
    command: str
    args: List[str]
    confidence: float
    explanation: str
    alternatives: List[ConversionAlternative] = field(default_factory=list)
    source: ConversionSource = ConversionSource.HEURISTIC

    @property
    def is_fallback(self) -> bool:
        return self.source is ConversionSource.FALLBACK

    def to_command(self, domain: str, raw: str = "") -> Command:
        return Command(CommandPrefix.AT, domain, self.command, tuple(self.args), raw=raw)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "command": self.command,
            "args": list(self.args),
            "confidence": self.confidence,
            "explanation": self.explanation,
            "alternatives": [
                {"command": alt.command, "args": list(alt.args), "confidence": alt.confidence}
                for alt in self.alternatives
            ],
            "source": self.source.value,
        }


@dataclass
class ExecutionRecord:
    """Telemetry entry for one executor call."""
    command: str
    started_at: float
    duration_ms: float
    success: bool
    error_kind: Optional[ErrorKind] = None


class RegistryEventKind(str, Enum):
    REGISTERED = "registered"
    UNREGISTERED = "unregistered"
    DOMAIN_UNREGISTERED = "domain_unregistered"


@dataclass(frozen=True)
class RegistryEvent:
    """Change notification emitted by the command registry."""
    kind: RegistryEventKind
    domain: str
    command_ids: Tuple[str, ...] = ()


@dataclass
class SuggestionContext:
    """Editor state used to rank command suggestions."""
    active_file: Optional[str] = None
    current_branch: Optional[str] = None
    recent_domains: List[str] = field(default_factory=list)
    recent_commands: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "SuggestionContext":
        """Build from a loose dict such as the one sent by the editor host."""
        data = data or {}
        return cls(
            active_file=data.get("active_file") or data.get("activeFile"),
            current_branch=data.get("current_branch") or data.get("currentBranch"),
            recent_domains=list(data.get("recent_domains") or data.get("recentDomains") or []),
            recent_commands=list(data.get("recent_commands") or data.get("recentCommands") or []),
        )
