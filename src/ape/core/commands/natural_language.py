"""
Natural-language resolver.

Turns free text addressed to a domain ("@pocket docs 폴더의 파일 목록 보여줘")
into a ``CommandConversion`` in two stages:

1. Heuristic matching against the domain's trigger phrases. The score is the
   coverage ratio of the longest matched phrase; a score above the
   short-circuit threshold is accepted without consulting the model.
2. Model-assisted resolution. The model receives the domain's command
   catalog and returns JSON, which is validated against the catalog.

Each domain plugs in a ``DomainDescriptor`` (trigger table, argument
extractors, default action) so the resolver itself holds no domain rules.
Conversion never raises: every failure degrades to the heuristic guess or to
the domain's default action with a low, fixed confidence.
"""

import asyncio
import json
import re
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .registry import CommandRegistry
from .types import CommandConversion, ConversionAlternative, ConversionSource
from ..providers.base import ModelCapability
from ...config.models import ResolverConfig
from ...utils.logging import get_logger, log_performance


ArgExtractor = Callable[[str], List[str]]

QUOTED_PATTERN = re.compile(r'"([^"]+)"|\'([^\']+)\'')
FILE_PATH_PATTERN = re.compile(r'(?<![\w])((?:\.{1,2}/|/)?[\w\-./\\]*[\w\-]\.[A-Za-z0-9]{1,8})(?![\w])')
ISSUE_KEY_PATTERN = re.compile(r'\b([A-Z][A-Z0-9]+-\d+)\b')
NUMBER_PATTERN = re.compile(r'\d+')
FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
WHITESPACE = re.compile(r'\s+')

# Nouns that name the kind of target rather than the target itself
GENERIC_NOUNS = ("파일", "폴더", "디렉토리", "문서", "이슈", "브랜치", "file", "folder", "directory")


# Extractor helpers shared by domain descriptors

def normalize_text(text: str) -> str:
    return WHITESPACE.sub(" ", text or "").strip().lower()


def contains_phrase(text: str, phrase: str) -> bool:
    """
    Whether normalized ``phrase`` occurs in normalized ``text``.

    An ASCII letter or digit at either end of the phrase must not continue
    into a longer word, so "read" does not match "readme". Other phrases
    match anywhere in the text.
    """
    if not phrase:
        return False
    pattern = re.escape(phrase)
    if _is_word_char(phrase[0]):
        pattern = r"(?<![a-z0-9])" + pattern
    if _is_word_char(phrase[-1]):
        pattern += r"(?![a-z0-9])"
    return re.search(pattern, text) is not None


def _is_word_char(ch: str) -> bool:
    return ch.isascii() and ch.isalnum()


def extract_quoted(text: str) -> List[str]:
    """Every single- or double-quoted substring, quotes removed."""
    return [double or single for double, single in QUOTED_PATTERN.findall(text or "")]


def extract_file_paths(text: str) -> List[str]:
    """Tokens that look like file paths (``src/app.py``, ``./README.md``)."""
    paths = []
    for match in FILE_PATH_PATTERN.findall(text or ""):
        if match not in paths and not match.replace(".", "").isdigit():
            paths.append(match)
    return paths


def extract_issue_key(text: str) -> Optional[str]:
    """First issue key such as ``PROJ-123``."""
    match = ISSUE_KEY_PATTERN.search(text or "")
    return match.group(1) if match else None


def extract_number(text: str) -> Optional[int]:
    match = NUMBER_PATTERN.search(text or "")
    return int(match.group(0)) if match else None


def extract_keyword_target(text: str, keywords: Iterable[str]) -> Optional[str]:
    """
    Word the request is about, next to one of ``keywords``.

    Handles Korean object-first order ("README 파일 찾아줘") and English
    verb-first order ("search for README").
    """
    ordered = sorted({k for k in keywords if k}, key=len, reverse=True)
    if not ordered or not text:
        return None

    alternation = "|".join(re.escape(k) for k in ordered)
    nouns = "|".join(re.escape(n) for n in GENERIC_NOUNS)

    korean = re.search(
        rf"([\w./\-*]+?)(?:을|를|이|가|에서)?\s*(?:(?:{nouns})\s*(?:을|를|이|가)?\s*)?(?:{alternation})",
        text,
        re.IGNORECASE,
    )
    if korean and korean.group(1).lower() not in GENERIC_NOUNS:
        return korean.group(1)

    english = re.search(rf"(?:{alternation})\s+(?:for\s+)?([\w./\-*]+)", text, re.IGNORECASE)
    if english and english.group(1).lower() not in GENERIC_NOUNS:
        return english.group(1)

    return None


@dataclass
class DomainDescriptor:
    """
    Natural-language strategy for one domain.

    Attributes:
        domain: Domain the descriptor applies to
        triggers: Action id -> trigger phrases; declaration order breaks ties
        extractors: Action id -> function extracting args from the free text
        default_action: Action used when nothing can be interpreted
        guidance: Extra instructions appended to the model prompt
        quote_aware: Actions whose extractor handles quoted text itself
    """
    domain: str
    triggers: Dict[str, List[str]]
    extractors: Dict[str, ArgExtractor] = field(default_factory=dict)
    default_action: Optional[str] = None
    guidance: str = ""
    quote_aware: Set[str] = field(default_factory=set)

    def extract_args(self, action: str, text: str) -> List[str]:
        if action not in self.quote_aware:
            quoted = extract_quoted(text)
            if quoted:
                return quoted

        extractor = self.extractors.get(action)
        if extractor is None:
            return []
        return [str(arg) for arg in extractor(text) if arg is not None and str(arg) != ""]


@dataclass
class HeuristicMatch:
    action: str
    phrase: str
    score: float
    args: List[str] = field(default_factory=list)


def _coerce_args(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _coerce_confidence(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ModelAlternative(BaseModel):
    """One alternative interpretation as returned by the model."""
    model_config = ConfigDict(extra="ignore")

    command: str
    args: List[str] = []
    confidence: float = 0.0

    @field_validator("args", mode="before")
    @classmethod
    def coerce_args(cls, v):
        return _coerce_args(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        value = _coerce_confidence(v)
        return 0.0 if value is None else _clamp(value)


class ModelConversion(BaseModel):
    """JSON contract of the model response."""
    model_config = ConfigDict(extra="ignore")

    command: str
    args: List[str] = []
    confidence: Optional[float] = None
    explanation: str = ""
    alternatives: List[ModelAlternative] = []

    @field_validator("command")
    @classmethod
    def require_command(cls, v):
        if not v.strip():
            raise ValueError("command must not be empty")
        return v.strip()

    @field_validator("args", mode="before")
    @classmethod
    def coerce_args(cls, v):
        return _coerce_args(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        value = _coerce_confidence(v)
        return None if value is None else _clamp(value)

    @field_validator("explanation", mode="before")
    @classmethod
    def coerce_explanation(cls, v):
        return "" if v is None else str(v)

    @field_validator("alternatives", mode="before")
    @classmethod
    def drop_malformed_alternatives(cls, v):
        if not isinstance(v, list):
            return []
        return [item for item in v if isinstance(item, dict) and item.get("command")]


def extract_json(text: str) -> Optional[Any]:
    """
    First well-formed JSON object or array in ``text``.

    Fenced blocks are tried before the raw text, so prose or markdown around
    the JSON is tolerated.
    """
    if not text:
        return None

    decoder = json.JSONDecoder()
    candidates = [match.group(1) for match in FENCE_PATTERN.finditer(text)] + [text]

    for candidate in candidates:
        for index, ch in enumerate(candidate):
            if ch not in "{[":
                continue
            try:
                value, _ = decoder.raw_decode(candidate, index)
            except json.JSONDecodeError:
                continue
            if isinstance(value, (dict, list)):
                return value

    return None


CONVERSION_PROMPT = PromptTemplate.from_template(
    """You convert user requests for the "{domain}" command domain into exactly one command.

AVAILABLE COMMANDS:
{catalog}
{guidance}
USER REQUEST: {text}
{hint}
Respond with JSON only:
{{
    "command": "one command id from the list above",
    "args": ["argument strings in order"],
    "confidence": 0.0-1.0,
    "explanation": "brief reason for the choice",
    "alternatives": [{{"command": "command id", "args": [], "confidence": 0.0}}]
}}

JSON response:"""
)


class NaturalLanguageResolver:
    """Converts free text into a command of a given domain."""

    def __init__(self, registry: CommandRegistry, model: Optional[ModelCapability] = None,
                 settings: Optional[ResolverConfig] = None):
        """
        Initialize the resolver.

        Args:
            registry: Registry providing each domain's command catalog
            model: Optional model capability for stage 2
            settings: Thresholds and confidence policy
        """
        self.registry = registry
        self.model = model
        self.settings = settings or ResolverConfig()
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._descriptors: Dict[str, DomainDescriptor] = {}

    def register_descriptor(self, descriptor: DomainDescriptor) -> None:
        with self._lock:
            self._descriptors[descriptor.domain] = descriptor
        self.logger.debug(f"Registered natural-language descriptor for '{descriptor.domain}'")

    def unregister_descriptor(self, domain: str) -> bool:
        with self._lock:
            return self._descriptors.pop(domain, None) is not None

    def descriptor(self, domain: str) -> Optional[DomainDescriptor]:
        with self._lock:
            return self._descriptors.get(domain)

    # Stage 1

    def heuristic_match(self, domain: str, text: str) -> Optional[HeuristicMatch]:
        """
        Best trigger-phrase match for ``text``.

        Only actions currently registered for the domain are considered.

        Returns:
            HeuristicMatch with extracted args, or None when nothing matched
        """
        descriptor = self.descriptor(domain)
        normalized = normalize_text(text)
        if descriptor is None or not normalized:
            return None

        available = {definition.id for definition in self.registry.definitions(domain)}
        best: Optional[HeuristicMatch] = None

        for action, phrases in descriptor.triggers.items():
            if action not in available:
                continue
            for phrase in phrases:
                needle = normalize_text(phrase)
                if not contains_phrase(normalized, needle):
                    continue
                score = min(len(needle) / len(normalized), 1.0)
                if best is None or score > best.score:
                    best = HeuristicMatch(action=action, phrase=needle, score=score)

        if best is not None:
            best.args = descriptor.extract_args(best.action, text)

        return best

    # Conversion

    async def convert(self, domain: str, text: str) -> CommandConversion:
        """
        Convert free text into a command of ``domain``.

        Never raises and never returns None.
        """
        try:
            return await self._convert(domain, text)
        except Exception as e:
            self.logger.error(f"Conversion for '{domain}' failed unexpectedly: {e}", exc_info=True)
            action = self.default_action(domain)
            return CommandConversion(
                command=action,
                args=[],
                confidence=self.settings.error_confidence,
                explanation=f"Could not interpret the request ({e}); defaulting to '{action}'.",
                source=ConversionSource.FALLBACK,
            )

    async def _convert(self, domain: str, text: str) -> CommandConversion:
        heuristic = self.heuristic_match(domain, text)

        if heuristic and heuristic.score > self.settings.high_confidence_threshold:
            self.logger.debug(f"Heuristic short-circuit for '{domain}': {heuristic.action} ({heuristic.score:.2f})")
            return self._from_heuristic(heuristic)

        if self.model is None:
            reason = "no language model is configured"
        else:
            try:
                conversion = await self._query_model(domain, text, heuristic)
                if conversion is not None:
                    return conversion
                reason = "the model response contained no valid command"
            except asyncio.TimeoutError:
                reason = f"the model did not answer within {self.settings.model_timeout_seconds}s"
                self.logger.warning(f"Model query for '{domain}' timed out, using fallback")
            except Exception as e:
                reason = f"the model query failed ({e})"
                self.logger.warning(f"Model query for '{domain}' failed: {e}, using fallback")

        if heuristic is not None:
            return self._from_heuristic(heuristic, note=f"Model-assisted resolution skipped: {reason}.")

        action = self.default_action(domain)
        return CommandConversion(
            command=action,
            args=[],
            confidence=self.settings.fallback_confidence,
            explanation=f"No command matched the request and {reason}; defaulting to '{action}'.",
            source=ConversionSource.FALLBACK,
        )

    def _from_heuristic(self, match: HeuristicMatch, note: str = "") -> CommandConversion:
        explanation = f"Matched the phrase \"{match.phrase}\" to '{match.action}' (coverage {match.score:.0%})."
        if note:
            explanation = f"{explanation} {note}"
        return CommandConversion(
            command=match.action,
            args=list(match.args),
            confidence=round(match.score * self.settings.heuristic_dampening, 4),
            explanation=explanation,
            source=ConversionSource.HEURISTIC,
        )

    # Stage 2

    def build_prompt(self, domain: str, text: str, heuristic: Optional[HeuristicMatch] = None) -> str:
        catalog = "\n".join(
            f"- {definition.id}: {definition.description} ({definition.syntax})"
            for definition in self.registry.definitions(domain)
        ) or "- (no commands registered)"

        descriptor = self.descriptor(domain)
        guidance = f"\nGUIDANCE:\n{descriptor.guidance.strip()}\n" if descriptor and descriptor.guidance else ""

        hint = ""
        if heuristic is not None:
            args = " ".join(heuristic.args)
            hint = (
                f"\nKeyword matching suggests: {heuristic.action} {args}".rstrip()
                + f" (low confidence {heuristic.score:.2f}). Use it only if it fits the request.\n"
            )

        return CONVERSION_PROMPT.format(domain=domain, catalog=catalog, guidance=guidance, text=text.strip(), hint=hint)

    async def _query_model(self, domain: str, text: str,
                           heuristic: Optional[HeuristicMatch]) -> Optional[CommandConversion]:
        prompt = self.build_prompt(domain, text, heuristic)
        with log_performance(f"model query for @{domain}"):
            response = await asyncio.wait_for(self.model.query(prompt), timeout=self.settings.model_timeout_seconds)
        return self.parse_model_response(domain, response)

    def parse_model_response(self, domain: str, response: str) -> Optional[CommandConversion]:
        """
        Validate a raw model response against the domain catalog.

        Alternatives naming unknown commands are dropped; the rest are capped
        at the primary confidence and sorted highest first.

        Returns:
            CommandConversion, or None when the response is unusable
        """
        payload = extract_json(response)
        if isinstance(payload, list):
            payload = next((item for item in payload if isinstance(item, dict)), None)
        if not isinstance(payload, dict):
            self.logger.warning(f"No JSON object in model response for '{domain}'")
            return None

        try:
            parsed = ModelConversion.model_validate(payload)
        except ValidationError as e:
            self.logger.warning(f"Model response for '{domain}' failed validation: {e.error_count()} error(s)")
            return None

        definition = self.registry.resolve(domain, self._strip_qualifier(domain, parsed.command))
        if definition is None:
            self.logger.warning(f"Model chose unknown command '{parsed.command}' for '{domain}'")
            return None

        confidence = parsed.confidence if parsed.confidence is not None else self.settings.default_model_confidence

        alternatives: List[ConversionAlternative] = []
        for alt in parsed.alternatives:
            alt_definition = self.registry.resolve(domain, self._strip_qualifier(domain, alt.command))
            if alt_definition is None:
                continue
            if alt_definition.id == definition.id and alt.args == parsed.args:
                continue
            alternatives.append(ConversionAlternative(
                command=alt_definition.id,
                args=tuple(alt.args),
                confidence=min(alt.confidence, confidence),
            ))
        alternatives.sort(key=lambda alt: alt.confidence, reverse=True)

        return CommandConversion(
            command=definition.id,
            args=list(parsed.args),
            confidence=confidence,
            explanation=parsed.explanation.strip() or f"The model selected '{definition.id}'.",
            alternatives=alternatives[:self.settings.max_alternatives],
            source=ConversionSource.MODEL,
        )

    @staticmethod
    def _strip_qualifier(domain: str, command: str) -> str:
        """Accept ``ls``, ``@pocket:ls`` and ``pocket:ls`` alike."""
        command = command.strip().lstrip("@/")
        prefix = f"{domain}:"
        if command.startswith(prefix):
            command = command[len(prefix):]
        return command

    def default_action(self, domain: str) -> str:
        """Action used when nothing could be interpreted."""
        descriptor = self.descriptor(domain)
        if descriptor and descriptor.default_action and self.registry.resolve(domain, descriptor.default_action):
            return descriptor.default_action

        definitions = self.registry.definitions(domain)
        if definitions:
            return definitions[0].id

        if descriptor and descriptor.default_action:
            return descriptor.default_action
        return "help"
