"""
Test suite for the configuration models.
"""

import pytest
from pydantic import ValidationError

from ape.config.models import (
    ApeConfig,
    AppConfig,
    ExecutorConfig,
    LLMConfig,
    LogLevel,
    PluginsConfig,
    Provider,
    ResolverConfig,
)


class TestDefaults:
    """Test built-in default values."""

    def test_resolver_policy_defaults(self):
        """Test the resolver thresholds the pipeline ships with."""
        resolver = ResolverConfig()

        assert resolver.high_confidence_threshold == 0.8
        assert resolver.heuristic_dampening == 0.8
        assert resolver.fallback_confidence == 0.3
        assert resolver.error_confidence == 0.5
        assert resolver.default_model_confidence == 0.7
        assert resolver.auto_execute_threshold == 0.6
        assert resolver.max_alternatives == 3

    def test_top_level_defaults(self):
        """Test that every section is populated."""
        config = ApeConfig()

        assert config.app.log_level is LogLevel.INFO
        assert config.llm.provider is Provider.NONE
        assert config.executor.max_history == 100
        assert config.plugins.disabled == []


class TestFieldValidation:
    """Test field validators and bounds."""

    def test_log_level_any_case(self):
        """Test that log levels are case-insensitive."""
        assert AppConfig(log_level="warning").log_level is LogLevel.WARNING

    def test_unknown_log_level(self):
        """Test that unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            AppConfig(log_level="loud")

    def test_log_file_expands_home(self):
        """Test that ~ in the log file path is expanded."""
        assert not AppConfig(log_file="~/ape.log").log_file.startswith("~")

    def test_base_url_trailing_slash(self):
        """Test that the base URL is normalized."""
        assert LLMConfig(base_url="http://models:11434/").base_url == "http://models:11434"

    @pytest.mark.parametrize("field,value", [
        ("high_confidence_threshold", 1.2),
        ("auto_execute_threshold", -0.1),
        ("model_timeout_seconds", 0),
        ("max_alternatives", 11),
    ])
    def test_resolver_bounds(self, field, value):
        """Test out-of-range resolver settings."""
        with pytest.raises(ValidationError):
            ResolverConfig(**{field: value})

    def test_executor_bounds(self):
        """Test that history must keep at least one record."""
        with pytest.raises(ValidationError):
            ExecutorConfig(max_history=0)

    def test_plugin_lists_from_string(self):
        """Test comma-separated plugin names."""
        plugins = PluginsConfig(enabled="pocket, git,", disabled="jira")

        assert plugins.enabled == ["pocket", "git"]
        assert plugins.disabled == ["jira"]


class TestConsistency:
    """Test cross-section validation."""

    def test_fallback_above_error_confidence(self):
        """Test that the no-match fallback cannot outrank the error fallback."""
        with pytest.raises(ValidationError, match="fallback_confidence"):
            ApeConfig(resolver=ResolverConfig(fallback_confidence=0.6, error_confidence=0.5))

    def test_equal_confidences_allowed(self):
        """Test the boundary case."""
        config = ApeConfig(resolver=ResolverConfig(fallback_confidence=0.5, error_confidence=0.5))
        assert config.resolver.fallback_confidence == 0.5

    def test_extra_sections_allowed(self):
        """Test that unknown top-level sections are kept."""
        config = ApeConfig(experimental={"flag": True})
        assert config.experimental == {"flag": True}
