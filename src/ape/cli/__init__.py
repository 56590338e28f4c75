"""
CLI module for APE.

Argument parsing lives in ``commands``; the mode implementations live in
``handlers``.
"""

from .commands import create_parser, parse_args
from .handlers import handle_cli_command, main

__all__ = ["create_parser", "parse_args", "handle_cli_command", "main"]
