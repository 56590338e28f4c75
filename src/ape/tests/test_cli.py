"""
Test suite for the command-line interface.
"""

import json
from unittest.mock import patch

import pytest

from ape.cli import main, parse_args
from ape.config.models import ApeConfig
from ape.utils.error_handling import ConfigurationError


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults(self):
        """Test that no arguments selects the interactive prompt."""
        args = parse_args([])

        assert args.list_commands is None
        assert args.parse is None
        assert args.run is None
        assert args.convert is None
        assert not args.suggest
        assert args.limit == 5

    def test_list_commands_optional_domain(self):
        """Test --list-commands with and without a domain."""
        assert parse_args(["--list-commands"]).list_commands == ""
        assert parse_args(["--list-commands", "git"]).list_commands == "git"

    def test_suggest_context(self):
        """Test the suggestion context flags."""
        args = parse_args(["--suggest", "--file", "src/app.py", "--recent-domain", "git",
                           "--recent-domain", "jira", "--limit", "2"])

        assert args.file == "src/app.py"
        assert args.recent_domain == ["git", "jira"]
        assert args.limit == 2

    def test_modes_are_exclusive(self):
        """Test that only one mode can be selected."""
        with pytest.raises(SystemExit):
            parse_args(["--run", "/help", "--parse", "/help"])


class TestMain:
    """Test the CLI modes end to end with built-in plugins."""

    @pytest.fixture(autouse=True)
    def isolated_config(self, test_config):
        """Use the test configuration and leave global logging alone."""
        with patch("ape.cli.handlers.load_config", return_value=test_config), \
                patch("ape.cli.handlers.setup_logging"):
            yield

    def test_parse_json(self, capsys):
        """Test --parse with JSON output."""
        assert main(["--parse", '@pocket:grep "a b" docs/', "--json"]) == 0

        details = json.loads(capsys.readouterr().out)
        assert details == {
            "prefix": "@",
            "domain": "pocket",
            "action": "grep",
            "args": ["a b", "docs/"],
            "bare_domain": False,
            "canonical": '@pocket:grep "a b" docs/',
        }

    def test_parse_not_a_command(self, capsys):
        """Test --parse with plain text."""
        assert main(["--parse", "hello"]) == 1
        assert "Not a command" in capsys.readouterr().out

    def test_run_help(self, capsys):
        """Test --run with a system command."""
        assert main(["--run", "/help git"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("✅ # @git commands")

    def test_run_failure_exit_code(self, capsys):
        """Test that a failing command exits non-zero."""
        assert main(["--run", "@jira:issue APE-1", "--json"]) == 1

        result = json.loads(capsys.readouterr().out)
        assert result["error"] is True
        assert result["error_kind"] == "HandlerFailure"

    def test_list_commands(self, capsys):
        """Test listing one domain's commands as JSON."""
        assert main(["--list-commands", "git", "--json"]) == 0

        usages = json.loads(capsys.readouterr().out)
        assert usages[0] == {
            "domain": "git",
            "id": "status",
            "syntax": "@git:status",
            "description": "Show working tree status",
        }

    def test_list_unknown_domain(self, capsys):
        """Test listing a domain that is not registered."""
        assert main(["--list-commands", "nope"]) == 1

    def test_convert(self, capsys):
        """Test converting a request without executing it."""
        assert main(["--convert", "@pocket", "docs 폴더의 파일 목록 보여줘"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("🧭 @pocket:ls docs/\n  confidence: 22%")

    def test_suggest(self, capsys):
        """Test suggestions as JSON."""
        assert main(["--suggest", "--file", "src/app.py", "--limit", "2", "--json"]) == 0
        assert json.loads(capsys.readouterr().out) == ["@git:status", "@git:diff"]

    def test_configuration_error(self, capsys):
        """Test that configuration errors exit with status 1."""
        with patch("ape.cli.handlers.load_config", side_effect=ConfigurationError("bad config")):
            assert main(["--run", "/help"]) == 1

        assert "Configuration error: bad config" in capsys.readouterr().err

    def test_plugins_from_config(self, capsys):
        """Test that plugins.enabled limits the registered domains."""
        config = ApeConfig(plugins={"enabled": ["git"]})

        with patch("ape.cli.handlers.load_config", return_value=config):
            assert main(["--run", "/domains", "--json"]) == 0

        result = json.loads(capsys.readouterr().out)
        assert [entry["domain"] for entry in result["data"]["domains"]] == ["git", "system"]
