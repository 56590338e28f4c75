"""
Command registry: the domain command table.

Definitions are grouped by domain and keyed by id within the domain. Plugin
and built-in domains are stored the same way. A single re-entrant lock guards
the table; change listeners are invoked after the lock has been released so a
listener may read the registry back.
"""

import difflib
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .types import (
    CommandDefinition,
    CommandPrefix,
    CommandUsage,
    RegistryEvent,
    RegistryEventKind,
    SuggestionContext,
)
from ...utils.logging import get_logger


RegistryListener = Callable[[RegistryEvent], None]

CODE_EXTENSIONS = {".js", ".jsx", ".ts", ".tsx", ".py", ".java", ".go", ".rs", ".c", ".cpp", ".h"}
DOC_EXTENSIONS = {".md", ".txt", ".rst"}
SIMILARITY_CUTOFF = 0.6


def qualified_name(definition: CommandDefinition) -> str:
    """``/id`` for system commands, ``@domain:id`` otherwise."""
    if definition.prefix is CommandPrefix.SLASH:
        return f"/{definition.id}"
    return f"@{definition.domain}:{definition.id}"


class CommandRegistry:
    """
    Thread-safe table of command definitions.

    Registration is an upsert keyed by ``(domain, id)``: re-registering a key
    replaces the definition in place, which keeps help output stable across
    plugin reloads.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self._lock = threading.RLock()
        self._domains: Dict[str, Dict[str, CommandDefinition]] = {}
        self._listeners: List[RegistryListener] = []

    # Registration

    def register(self, definition: CommandDefinition) -> None:
        """Insert or replace a definition."""
        with self._lock:
            table = self._domains.setdefault(definition.domain, {})
            replaced = definition.id in table
            table[definition.id] = definition

        action = "Replaced" if replaced else "Registered"
        self.logger.debug(f"{action} command {qualified_name(definition)}")
        self._emit(RegistryEvent(RegistryEventKind.REGISTERED, definition.domain, (definition.id,)))

    def register_many(self, definitions: Iterable[CommandDefinition]) -> int:
        """Register several definitions under one lock; emits one event per domain."""
        touched: Dict[str, List[str]] = {}
        with self._lock:
            for definition in definitions:
                self._domains.setdefault(definition.domain, {})[definition.id] = definition
                touched.setdefault(definition.domain, []).append(definition.id)

        for domain, ids in touched.items():
            self.logger.info(f"Registered {len(ids)} command(s) for domain '{domain}'")
            self._emit(RegistryEvent(RegistryEventKind.REGISTERED, domain, tuple(ids)))

        return sum(len(ids) for ids in touched.values())

    def unregister(self, domain: str, command_id: str) -> bool:
        with self._lock:
            table = self._domains.get(domain)
            if not table or command_id not in table:
                return False
            del table[command_id]
            if not table:
                del self._domains[domain]

        self.logger.debug(f"Unregistered command {domain}:{command_id}")
        self._emit(RegistryEvent(RegistryEventKind.UNREGISTERED, domain, (command_id,)))
        return True

    def unregister_domain(self, domain: str) -> int:
        """Remove every definition of a domain; returns how many were removed."""
        with self._lock:
            table = self._domains.pop(domain, None)

        if not table:
            return 0

        self.logger.info(f"Unregistered domain '{domain}' ({len(table)} command(s))")
        self._emit(RegistryEvent(RegistryEventKind.DOMAIN_UNREGISTERED, domain, tuple(table)))
        return len(table)

    # Lookup

    def resolve(self, domain: str, action: str) -> Optional[CommandDefinition]:
        """Find a definition by id, then by display name."""
        with self._lock:
            table = self._domains.get(domain)
            if not table:
                return None

            definition = table.get(action)
            if definition is not None:
                return definition

            for candidate in table.values():
                if candidate.name == action:
                    return candidate

        return None

    def has_domain(self, domain: str) -> bool:
        with self._lock:
            return bool(self._domains.get(domain))

    def domains(self) -> List[str]:
        with self._lock:
            return sorted(self._domains)

    def definitions(self, domain: str) -> List[CommandDefinition]:
        with self._lock:
            return list(self._domains.get(domain, {}).values())

    def all_usages(self) -> List[CommandUsage]:
        """Full catalog ordered by domain name, then registration order."""
        with self._lock:
            return [
                definition.to_usage()
                for domain in sorted(self._domains)
                for definition in self._domains[domain].values()
            ]

    def domain_usages(self, domain: str) -> List[CommandUsage]:
        return [definition.to_usage() for definition in self.definitions(domain)]

    def statistics(self) -> Dict[str, Union[int, Dict[str, int]]]:
        with self._lock:
            per_domain = {domain: len(table) for domain, table in sorted(self._domains.items())}
        return {
            "domains": len(per_domain),
            "commands": sum(per_domain.values()),
            "per_domain": per_domain,
        }

    # Suggestions

    def suggest_similar(self, domain: str, action: str, limit: int = 3) -> List[str]:
        """Qualified names of actions in ``domain`` that look like ``action``."""
        definitions = self.definitions(domain)
        if not definitions or not action:
            return []

        by_key: Dict[str, CommandDefinition] = {}
        for definition in definitions:
            by_key.setdefault(definition.id, definition)
            by_key.setdefault(definition.name, definition)

        matches = difflib.get_close_matches(action, list(by_key), n=limit * 2, cutoff=SIMILARITY_CUTOFF)

        suggestions: List[str] = []
        for match in matches:
            name = qualified_name(by_key[match])
            if name not in suggestions:
                suggestions.append(name)
        return suggestions[:limit]

    def suggest_domains(self, partial: str, limit: int = 3) -> List[str]:
        """``@domain`` strings for registered domains close to ``partial``."""
        partial = partial.lower()
        domains = self.domains()
        matches = [d for d in domains if partial and d.startswith(partial)]
        for close in difflib.get_close_matches(partial, domains, n=limit, cutoff=SIMILARITY_CUTOFF):
            if close not in matches:
                matches.append(close)
        return [f"@{domain}" for domain in matches[:limit]]

    def suggest_commands(self, context: Union[SuggestionContext, dict, None], limit: int = 5) -> List[str]:
        """
        Rank commands for the current editor state.

        Each rule adds weight to a command string; results are ordered by
        total weight, ties broken by the order in which rules produced them.
        Rule-produced commands are only offered when they resolve; recent
        commands are echoed verbatim.

        Args:
            context: SuggestionContext or a dict with the same keys
            limit: Maximum number of suggestions

        Returns:
            Fully-qualified command strings
        """
        if limit <= 0:
            return []
        if not isinstance(context, SuggestionContext):
            context = SuggestionContext.from_mapping(context)

        scores: Dict[str, float] = {}
        order: List[str] = []

        def add(text: str, weight: float, target: Optional[Tuple[str, str]] = None) -> None:
            if target is not None and self.resolve(*target) is None:
                return
            if text not in scores:
                order.append(text)
                scores[text] = 0.0
            scores[text] += weight

        if context.active_file:
            extension = Path(context.active_file).suffix.lower()
            if extension in CODE_EXTENSIONS:
                add("@git:status", 3.0, ("git", "status"))
                add("@git:diff", 2.5, ("git", "diff"))
                add("@git:commit", 2.0, ("git", "commit"))
            elif extension in DOC_EXTENSIONS:
                add("@pocket:search", 2.0, ("pocket", "search"))
                add("@pocket:summarize", 1.5, ("pocket", "summarize"))

        if context.current_branch:
            add(f"@git:push origin {context.current_branch}", 2.0, ("git", "push"))
            add("@git:pull", 1.5, ("git", "pull"))

        for rank, domain in enumerate(context.recent_domains):
            for definition in self.definitions(domain)[:2]:
                add(qualified_name(definition), max(1.0 - 0.1 * rank, 0.1))

        for recent in context.recent_commands[:3]:
            add(recent, 1.2)

        ranked = sorted(order, key=lambda text: (-scores[text], order.index(text)))
        return ranked[:limit]

    # Events

    def add_listener(self, listener: RegistryListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: RegistryListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _emit(self, event: RegistryEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                self.logger.error(f"Registry listener failed on {event.kind.value} for '{event.domain}': {e}")
