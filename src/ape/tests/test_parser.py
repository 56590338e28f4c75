"""
Test suite for the command parser.

Covers both command grammars, the quote-aware tokenizer, canonical
formatting and near-miss suggestions.
"""

import pytest

from ape.core.commands.parser import CommandParser, free_text, tokenize
from ape.core.commands.types import Command, CommandPrefix, SYSTEM_DOMAIN
from ape.tests.fixtures.command_fixtures import make_definition


class TestTokenize:
    """Test the quote-aware tokenizer."""

    def test_whitespace_runs_collapse(self):
        """Test that runs of whitespace form one boundary."""
        assert tokenize("  a   b\t c  ") == ["a", "b", "c"]

    def test_double_and_single_quotes_group(self):
        """Test that quoted substrings become one argument without quotes."""
        assert tokenize('"a b" \'c d\' e') == ["a b", "c d", "e"]

    def test_explicit_empty_quotes(self):
        """Test that an explicit empty pair yields an empty argument."""
        assert tokenize('x "" y') == ["x", "", "y"]

    def test_unterminated_quote_runs_to_end(self):
        """Test that an unterminated quote consumes the rest of the input."""
        assert tokenize('grep "hello world') == ["grep", "hello world"]

    def test_no_escape_processing(self):
        """Test that backslashes are kept verbatim."""
        assert tokenize(r'a\b "c\d"') == [r"a\b", r"c\d"]

    def test_flags_kept_verbatim(self):
        """Test that --key=value arguments are not split."""
        assert tokenize("--depth=2 --watch") == ["--depth=2", "--watch"]

    def test_empty_input(self):
        """Test that empty input yields no tokens."""
        assert tokenize("") == []
        assert tokenize("   ") == []


class TestCommandParser:
    """Test CommandParser.parse."""

    def setup_method(self):
        """Set up test environment."""
        self.parser = CommandParser()

    def test_at_command_with_quoted_args(self):
        """Test domain, action and quote-grouped args of an @ command."""
        command = self.parser.parse('@pocket:grep "a b" c')

        assert command.prefix is CommandPrefix.AT
        assert command.domain == "pocket"
        assert command.action == "grep"
        assert command.args == ("a b", "c")

    def test_slash_command(self):
        """Test that / commands belong to the system domain."""
        command = self.parser.parse("/help")

        assert command.prefix is CommandPrefix.SLASH
        assert command.domain == SYSTEM_DOMAIN
        assert command.action == "help"
        assert command.args == ()

    def test_slash_command_with_args(self):
        """Test args of a / command."""
        command = self.parser.parse("/help git")
        assert command.args == ("git",)

    def test_commit_message_flag(self):
        """Test a flag followed by a quoted value."""
        command = self.parser.parse('@git:commit -m "msg"')
        assert command.args == ("-m", "msg")

    def test_bare_domain(self):
        """Test that @domain without a colon has an empty action."""
        command = self.parser.parse("@pocket docs 폴더의 파일 목록 보여줘")

        assert command.domain == "pocket"
        assert command.action == ""
        assert command.is_bare_domain
        assert command.args == ("docs", "폴더의", "파일", "목록", "보여줘")

    def test_bare_domain_without_text(self):
        """Test a lone @domain."""
        command = self.parser.parse("@git")
        assert command.is_bare_domain
        assert command.args == ()

    def test_domain_is_lowercased(self):
        """Test that domains are case-insensitive."""
        assert self.parser.parse("@Git:status").domain == "git"

    def test_action_keeps_case(self):
        """Test that actions are not lowercased."""
        assert self.parser.parse("@git:Status").action == "Status"

    def test_action_split_at_first_colon(self):
        """Test that only the first colon separates domain and action."""
        command = self.parser.parse("@swdp:build:status 12345")

        assert command.domain == "swdp"
        assert command.action == "build:status"
        assert command.args == ("12345",)

    def test_quote_cuts_command_head(self):
        """Test that a quote directly after the head starts the args."""
        command = self.parser.parse('@pocket:grep"TODO" src/')

        assert command.action == "grep"
        assert command.args == ("TODO", "src/")

    def test_colon_inside_quotes_is_not_a_separator(self):
        """Test that separator detection only looks at the unquoted head."""
        command = self.parser.parse('@pocket "a:b"')

        assert command.is_bare_domain
        assert command.args == ("a:b",)

    def test_surrounding_whitespace_is_trimmed(self):
        """Test leading and trailing whitespace."""
        command = self.parser.parse("   @git:status   ")
        assert command == Command.at("git", "status")
        assert command.raw == "@git:status"

    @pytest.mark.parametrize("text", [
        "", "   ", "@", "/", "hello world", "git:status",
        "@:status", "@bad!domain:status", "/ help", "@ pocket",
    ])
    def test_non_commands_return_none(self, text):
        """Test inputs that are not commands."""
        assert self.parser.parse(text) is None

    @pytest.mark.parametrize("value", [None, 42, ["@git:status"]])
    def test_non_string_input(self, value):
        """Test that parse never raises on non-string input."""
        assert self.parser.parse(value) is None

    def test_is_command(self):
        """Test prefix detection."""
        assert self.parser.is_command("@x")
        assert self.parser.is_command("  /help")
        assert not self.parser.is_command("hello")
        assert not self.parser.is_command(None)

    def test_looks_like_command(self):
        """Test command-shape detection used for autocomplete."""
        assert self.parser.looks_like_command("@git:st")
        assert self.parser.looks_like_command("/he")
        assert not self.parser.looks_like_command("@ git")
        assert not self.parser.looks_like_command("email@example.com")


class TestFreeText:
    """Test free-text extraction from bare-domain commands."""

    def setup_method(self):
        """Set up test environment."""
        self.parser = CommandParser()

    def test_quotes_survive(self):
        """Test that the raw text keeps its quoting."""
        command = self.parser.parse('@git "fix bug" 커밋해줘')
        assert free_text(command) == '"fix bug" 커밋해줘'

    def test_empty_for_lone_domain(self):
        """Test a bare domain without text."""
        assert free_text(self.parser.parse("@git")) == ""

    def test_falls_back_to_args(self):
        """Test commands built without raw text."""
        command = Command(CommandPrefix.AT, "git", "", ("a", "b"))
        assert free_text(command) == "a b"


class TestFormatCommand:
    """Test canonical command rendering."""

    def test_plain_args(self):
        """Test rendering without quoting."""
        assert CommandParser.format_command(Command.at("git", "log", "--count=5")) == "@git:log --count=5"

    def test_whitespace_args_are_quoted(self):
        """Test that args containing whitespace are re-quoted."""
        command = Command.at("pocket", "grep", "a b", "c")
        assert CommandParser.format_command(command) == '@pocket:grep "a b" c'

    def test_empty_and_quote_args(self):
        """Test empty args and args containing double quotes."""
        command = Command.at("jira", "comment", "", 'say "hi"')
        assert CommandParser.format_command(command) == '@jira:comment "" \'say "hi"\''

    def test_system_command(self):
        """Test rendering of / commands."""
        assert CommandParser.format_command(Command.system("help", "git")) == "/help git"

    def test_format_then_parse(self):
        """Test that the canonical form parses back to the same command."""
        parser = CommandParser()
        command = Command.at("pocket", "grep", "a b", "c")
        assert parser.parse(CommandParser.format_command(command)) == command


class TestParseWithSuggestions:
    """Test near-miss suggestions."""

    def setup_method(self):
        """Set up test environment."""
        self.parser = CommandParser()

    def test_resolvable_command_has_no_suggestions(self, registry):
        """Test a command that resolves."""
        registry.register(make_definition("git", "status"))
        outcome = self.parser.parse_with_suggestions("@git:status", registry)

        assert outcome.command == Command.at("git", "status")
        assert outcome.suggestions == []

    def test_misspelled_action(self, registry):
        """Test suggestions for a close action name."""
        registry.register(make_definition("git", "status"))
        outcome = self.parser.parse_with_suggestions("@git:stauts", registry)

        assert outcome.command is not None
        assert "@git:status" in outcome.suggestions

    def test_misspelled_domain(self, registry):
        """Test suggestions for a close domain name."""
        registry.register(make_definition("git", "status"))
        outcome = self.parser.parse_with_suggestions("@gti:status", registry)

        assert outcome.suggestions == ["@git"]

    def test_plain_text(self, registry):
        """Test that plain text yields neither command nor suggestions."""
        outcome = self.parser.parse_with_suggestions("hello", registry)

        assert outcome.command is None
        assert outcome.suggestions == []


class TestCommandInvariants:
    """Test Command construction invariants."""

    def test_at_requires_domain(self):
        """Test that @ commands need a domain."""
        with pytest.raises(ValueError):
            Command(CommandPrefix.AT, "", "status")

    def test_slash_requires_system_domain(self):
        """Test that / commands belong to the system domain."""
        with pytest.raises(ValueError):
            Command(CommandPrefix.SLASH, "git", "status")

    def test_args_become_tuple(self):
        """Test that list args are stored as a tuple."""
        command = Command(CommandPrefix.AT, "git", "add", ["a.py"])
        assert command.args == ("a.py",)

    def test_equality_ignores_raw(self):
        """Test that raw input does not affect equality."""
        assert Command.at("git", "status") == Command(CommandPrefix.AT, "git", "status", (), raw="@git:status ")

    def test_qualified_name(self):
        """Test qualified names of each command shape."""
        assert Command.at("git", "status").qualified_name == "@git:status"
        assert Command.system("help").qualified_name == "/help"
        assert Command(CommandPrefix.AT, "git", "").qualified_name == "@git"
