"""
Shared pytest configuration for APE tests.

This file provides shared fixtures and configuration for all test modules.
"""

import pytest

# Import shared fixtures from the fixtures module
from .fixtures.command_fixtures import (
    registry, files_registry, files_descriptor, files_resolver, pocket_client, git_client
)

# Re-export fixtures so they're available to all test modules
__all__ = [
    "registry", "files_registry", "files_descriptor", "files_resolver", "pocket_client", "git_client"
]


@pytest.fixture
def test_config():
    """Provide a configuration with model resolution disabled."""
    from ..config.models import ApeConfig, AppConfig, LLMConfig

    return ApeConfig(
        app=AppConfig(debug=True, log_level="DEBUG"),
        llm=LLMConfig(provider="none"),
    )


# Test markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
