"""
Command resolution pipeline for APE.

This module contains the parser, registry, executor, natural-language
resolver and the service facade that wires them together.
"""

from .types import *
from .parser import CommandParser, ParseOutcome, free_text, tokenize
from .registry import CommandRegistry
from .executor import CommandExecutor, normalize_result
from .natural_language import DomainDescriptor, HeuristicMatch, NaturalLanguageResolver
from .service import CommandService
from .system import SystemCommands, register_system_commands

# Plugins import this package; importing them here would be circular.
# Use ape.app.create_command_service for full wiring.
