"""
Pydantic models for APE configuration validation.

Each section maps to one component of the command pipeline. Defaults are the
policy values the pipeline ships with; every one of them can be overridden
from YAML or from ``APE_<SECTION>__<FIELD>`` environment variables.
"""

from typing import List, Optional
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from enum import Enum


class LogLevel(str, Enum):
    """Supported log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Provider(str, Enum):
    """Supported model capability providers."""
    NONE = "none"
    OLLAMA = "ollama"
    LANGCHAIN = "langchain"


class AppConfig(BaseModel):
    """Application-level configuration settings."""

    name: str = Field(default="APE", description="Application display name")
    version: str = Field(default="0.1.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    verbose_logging: bool = Field(default=False, description="Enable verbose debug logging")

    log_file: Optional[str] = Field(default=None, description="JSON log file location (disabled when unset)")
    max_log_size_mb: int = Field(default=10, ge=1, le=1000, description="Maximum log file size")
    backup_count: int = Field(default=5, ge=1, le=100, description="Number of backup log files")

    @field_validator('log_level', mode='before')
    @classmethod
    def normalize_log_level(cls, v):
        """Accept log levels in any case."""
        return v.upper() if isinstance(v, str) else v

    @field_validator('log_file')
    @classmethod
    def expand_path(cls, v):
        """Expand user home directory in paths."""
        return str(Path(v).expanduser()) if v else v


DEFAULT_MODEL = "qwen3:8b"


class LLMConfig(BaseModel):
    """Model capability configuration used by the natural-language resolver."""

    provider: Provider = Field(default=Provider.NONE, description="Model provider")
    model: str = Field(default=DEFAULT_MODEL, description="Model name")
    base_url: str = Field(default="http://localhost:11434", description="API base URL")
    api_key: Optional[str] = Field(default=None, description="API key if required")

    timeout: float = Field(default=60.0, ge=1.0, le=600.0, description="Transport timeout in seconds")
    max_retries: int = Field(default=2, ge=0, le=10, description="Maximum retry attempts")
    retry_delay: float = Field(default=1.0, ge=0.0, le=10.0, description="Delay between retries")
    temperature: float = Field(default=0.1, ge=0.0, le=2.0, description="Response randomness")
    max_tokens: int = Field(default=512, ge=16, le=32768, description="Maximum tokens per response")

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')


class ResolverConfig(BaseModel):
    """Natural-language resolver policy."""

    high_confidence_threshold: float = Field(
        default=0.8, ge=0.0, le=1.0,
        description="Heuristic score above which the model stage is skipped"
    )
    heuristic_dampening: float = Field(
        default=0.8, ge=0.0, le=1.0,
        description="Multiplier applied to heuristic scores to obtain confidence"
    )
    fallback_confidence: float = Field(
        default=0.3, ge=0.0, le=1.0,
        description="Confidence of the default action when nothing matched"
    )
    error_confidence: float = Field(
        default=0.5, ge=0.0, le=1.0,
        description="Confidence of the default action after an internal error"
    )
    default_model_confidence: float = Field(
        default=0.7, ge=0.0, le=1.0,
        description="Confidence assumed when the model omits one"
    )
    model_timeout_seconds: float = Field(
        default=15.0, gt=0.0, le=600.0,
        description="Upper bound on a single model query"
    )
    auto_execute_threshold: float = Field(
        default=0.6, ge=0.0, le=1.0,
        description="Destructive conversions below this confidence require confirmation"
    )
    max_alternatives: int = Field(default=3, ge=0, le=10, description="Alternatives kept per conversion")


class ExecutorConfig(BaseModel):
    """Command executor settings."""

    max_history: int = Field(default=100, ge=1, le=10000, description="Execution records kept in memory")
    slow_execution_threshold_seconds: float = Field(
        default=5.0, ge=0.1, description="Executions slower than this are logged as warnings"
    )


class PluginsConfig(BaseModel):
    """Built-in plugin selection."""

    enabled: List[str] = Field(
        default=["pocket", "git", "jira", "swdp"],
        description="Built-in plugins registered at startup"
    )
    disabled: List[str] = Field(default=[], description="Plugins registered but left disabled")

    @field_validator('enabled', 'disabled', mode='before')
    @classmethod
    def split_comma_string(cls, v):
        """Allow a single comma-separated string (env overrides)."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(',') if item.strip()]
        return v


class ApeConfig(BaseModel):
    """Main configuration model."""

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    app: AppConfig = Field(default_factory=AppConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)

    @model_validator(mode='after')
    def validate_config_consistency(self):
        """Validate cross-section configuration consistency."""
        resolver = self.resolver
        if resolver.fallback_confidence > resolver.error_confidence:
            raise ValueError(
                "resolver.fallback_confidence must not exceed resolver.error_confidence"
            )
        return self
