"""
Command-line argument parser for APE.

This module defines the CLI modes and options; the handlers live in
``handlers.py``.
"""

import argparse

from .. import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ape",
        description="APE - resolve @domain commands and natural-language requests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ape                                         # Interactive command prompt
  ape --list-commands                         # List every registered command
  ape --list-commands git                     # List the commands of one domain
  ape --parse '@pocket:grep "a b" docs/'      # Show how input is parsed
  ape --run '/help'                           # Process one input and exit
  ape --convert pocket "docs 폴더의 파일 목록 보여줘"
  ape --suggest --file src/app.py --branch main
        """
    )

    # Basic options
    parser.add_argument(
        "--version",
        action="version",
        version=f"APE {__version__}"
    )

    parser.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="Path to configuration file"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print results as JSON"
    )

    # Mode selection (mutually exclusive)
    mode_group = parser.add_mutually_exclusive_group()

    mode_group.add_argument(
        "--list-commands",
        nargs="?",
        const="",
        default=None,
        metavar="DOMAIN",
        help="List registered commands, optionally for one domain"
    )

    mode_group.add_argument(
        "--parse",
        type=str,
        metavar="TEXT",
        help="Parse input and print the structured command"
    )

    mode_group.add_argument(
        "--run",
        type=str,
        metavar="TEXT",
        help="Process one input (command or @domain request) and exit"
    )

    mode_group.add_argument(
        "--convert",
        nargs=2,
        metavar=("DOMAIN", "TEXT"),
        help="Convert a natural-language request without executing it"
    )

    mode_group.add_argument(
        "--suggest",
        action="store_true",
        help="Suggest commands for the given editor state"
    )

    # Suggestion context
    parser.add_argument(
        "--file",
        type=str,
        metavar="PATH",
        help="Active file, used by --suggest"
    )

    parser.add_argument(
        "--branch",
        type=str,
        metavar="NAME",
        help="Current branch, used by --suggest"
    )

    parser.add_argument(
        "--recent-domain",
        action="append",
        default=[],
        metavar="DOMAIN",
        help="Recently used domain, used by --suggest (repeatable)"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=5,
        metavar="N",
        help="Maximum number of suggestions"
    )

    return parser


def parse_args(args=None):
    """Parse command line arguments."""
    parser = create_parser()
    return parser.parse_args(args)
