"""autoevolve configuration management.

Configuration is loaded from multiple sources with the following priority
(highest to lowest):
1. Explicit overrides passed to ``get_settings``
2. Environment variables (with AUTOEVOLVE_ prefix)
3. Configuration file (autoevolve.config.yaml)
4. Default values

Example usage:
    from autoevolve.core.settings import get_settings

    settings = get_settings()
    print(settings.scheduler.max_concurrent_experiments)

Environment variable support:
    AUTOEVOLVE_SCHEDULER__MAX_CONCURRENT_EXPERIMENTS=5
    AUTOEVOLVE_ROLLOUT__HONOR_DEPLOYMENT_THRESHOLD=false
    AUTOEVOLVE_LOGGING__LEVEL=DEBUG
"""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = ["autoevolve.config.yaml", "autoevolve.config.yml"]
NESTED_SECTIONS = ["scheduler", "analysis", "rollout", "logging"]


def _find_config_file(start_dir: Path | None = None) -> Path | None:
    """Find configuration file by searching current directory and parents.

    Args:
        start_dir: Directory to start search from.
            Defaults to current working directory.

    Returns:
        Path to config file if found, None otherwise.
    """
    search_dir = start_dir or Path.cwd()

    for _ in range(10):
        for filename in CONFIG_FILE_NAMES:
            config_path = search_dir / filename
            if config_path.exists():
                return config_path

        parent = search_dir.parent
        if parent == search_dir:
            break
        search_dir = parent

    return None


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from a YAML file.

    Unreadable or malformed files are logged and treated as empty.
    """
    try:
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
            return config if isinstance(config, dict) else {}
    except yaml.YAMLError as e:
        logger.warning("Failed to parse config file %s: %s", config_path, e)
        return {}
    except OSError as e:
        logger.warning("Failed to read config file %s: %s", config_path, e)
        return {}


class SchedulerSettings(BaseSettings):
    """Experiment scheduling limits."""

    max_concurrent_experiments: int = Field(
        default=3,
        gt=0,
        description="Maximum number of unpaused experiments system-wide",
    )
    min_experiment_gap_hours: float = Field(
        default=24.0,
        ge=0.0,
        description="Minimum hours between experiment starts in one area",
    )

    @property
    def min_experiment_gap(self) -> timedelta:
        """Cooldown between experiments as a timedelta."""
        return timedelta(hours=self.min_experiment_gap_hours)


class AnalysisSettings(BaseSettings):
    """Statistical analysis parameters."""

    significance_level: float = Field(
        default=0.05,
        gt=0.0,
        lt=1.0,
        description="Significance level (alpha) for the t-test",
    )
    min_sample_size: int = Field(
        default=30,
        ge=2,
        description="Per-variant sample size below which a warning is emitted",
    )
    confidence_level: float = Field(
        default=0.95,
        gt=0.0,
        lt=1.0,
        description="Confidence level reported with the improvement interval",
    )


class RolloutSettings(BaseSettings):
    """Canary rollout behavior."""

    default_health_threshold: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Error rate at or above which a deployment is unhealthy",
    )
    honor_deployment_threshold: bool = Field(
        default=True,
        description="Use each deployment's rollback_threshold for health checks",
    )
    canary_steps: list[float] = Field(
        default_factory=lambda: [5.0, 25.0, 50.0, 100.0],
        description="Canary percentages walked through by automated progression",
    )

    @field_validator("canary_steps")
    @classmethod
    def validate_canary_steps(cls, v: list[float]) -> list[float]:
        """Steps must be within 0-100 and strictly increasing."""
        if not v:
            raise ValueError("canary_steps must not be empty")
        for step in v:
            if step < 0 or step > 100:
                raise ValueError(f"Invalid canary step: {step}. Must be 0-100")
        if any(b <= a for a, b in zip(v, v[1:])):
            raise ValueError("canary_steps must be strictly increasing")
        return v


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_output: bool = Field(
        default=False,
        description="Output logs in JSON format",
    )
    file: str | None = Field(
        default=None,
        description="Log file path (optional)",
    )

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


class EvolutionSettings(BaseSettings):
    """Main autoevolve configuration settings.

    Example:
        settings = EvolutionSettings(scheduler={"max_concurrent_experiments": 5})
        print(settings.rollout.canary_steps)
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOEVOLVE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    rollout: RolloutSettings = Field(default_factory=RolloutSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @model_validator(mode="before")
    @classmethod
    def load_from_config_file(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Merge values from autoevolve.config.yaml under explicit values."""
        if data.get("_skip_file_loading"):
            data.pop("_skip_file_loading", None)
            return data

        config_path = _find_config_file()
        if not config_path:
            return data

        file_config = _load_yaml_config(config_path)
        if not file_config:
            return data

        logger.debug("Loaded configuration from %s", config_path)
        return _merge_sections(file_config, data)

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to a plain nested dictionary."""
        return self.model_dump()


def _merge_sections(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge two settings dicts; nested sections are merged key by key."""
    merged = {**base, **overrides}
    for section in NESTED_SECTIONS:
        base_section = base.get(section)
        override_section = overrides.get(section)
        if isinstance(base_section, dict):
            merged[section] = {
                **base_section,
                **(override_section if isinstance(override_section, dict) else {}),
            }
    return merged


def get_settings(
    config_file: Path | None = None,
    **overrides: Any,
) -> EvolutionSettings:
    """Get an EvolutionSettings instance.

    Args:
        config_file: Optional explicit path to configuration file.
        **overrides: Explicit configuration overrides.

    Returns:
        Configured EvolutionSettings instance.
    """
    if config_file and config_file.exists():
        file_config = _load_yaml_config(config_file)
        merged = _merge_sections(file_config, overrides)
        return EvolutionSettings(_skip_file_loading=True, **merged)

    return EvolutionSettings(**overrides)


@lru_cache
def get_cached_settings() -> EvolutionSettings:
    """Get cached settings instance.

    The cache can be cleared with get_cached_settings.cache_clear().
    """
    return get_settings()


def generate_example_config(output_path: Path | None = None) -> str:
    """Generate an example configuration file.

    Args:
        output_path: Optional path to write example config file.

    Returns:
        Example configuration as YAML string.
    """
    example = """\
# autoevolve configuration
# Environment variables override these values with the AUTOEVOLVE_ prefix
# Example: AUTOEVOLVE_SCHEDULER__MAX_CONCURRENT_EXPERIMENTS=5

scheduler:
  max_concurrent_experiments: 3   # Unpaused experiments allowed at once
  min_experiment_gap_hours: 24    # Cooldown between starts in one area

analysis:
  significance_level: 0.05        # Alpha for Welch's t-test
  min_sample_size: 30             # Warn below this many samples per variant
  confidence_level: 0.95

rollout:
  default_health_threshold: 0.10  # Error rate that fails a health check
  honor_deployment_threshold: true
  canary_steps: [5, 25, 50, 100]

logging:
  level: INFO
  json_output: false
  # file: /var/log/autoevolve.log
"""

    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            f.write(example)
        logger.info("Generated example config at %s", output_path)

    return example
