"""
Configuration management for dep-loader.

Provides configurable settings for graph loading, CLI output and logging,
read from config files and environment variables.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from rich.console import Console

console = Console(stderr=True)

OUTPUT_FORMATS = ("console", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class GraphConfig:
    """Loader graph settings."""

    graph_file: str = "dep-loader.toml"
    classpath_separator: str = os.pathsep


@dataclass
class OutputConfig:
    """CLI output settings."""

    output_format: str = "console"
    quiet: bool = False


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class LoaderConfig:
    """Main configuration containing all subsections."""

    graph: GraphConfig = field(default_factory=GraphConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


_global_config: Optional[LoaderConfig] = None


def validate_config_values(config: LoaderConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if not config.graph.graph_file:
        errors.append("graph.graph_file must not be empty")
    if not config.graph.classpath_separator:
        errors.append("graph.classpath_separator must not be empty")

    if config.output.output_format not in OUTPUT_FORMATS:
        errors.append(
            f"output.output_format must be one of {', '.join(OUTPUT_FORMATS)}"
        )

    if config.logging.log_level.upper() not in LOG_LEVELS:
        errors.append(f"logging.log_level must be one of {', '.join(LOG_LEVELS)}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or TOML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() == ".toml":
                return toml.load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, toml.TomlDecodeError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".dep-loader.json",
        Path.cwd() / ".dep-loader.toml",
        Path.home() / ".config" / "dep-loader" / "config.json",
        Path.home() / ".config" / "dep-loader" / "config.toml",
        Path.home() / ".dep-loader.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: LoaderConfig) -> None:
    """Load environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    if graph_file := os.environ.get("DEP_LOADER_GRAPH"):
        config.graph.graph_file = graph_file
    if separator := os.environ.get("DEP_LOADER_CLASSPATH_SEPARATOR"):
        config.graph.classpath_separator = separator

    if output_format := os.environ.get("DEP_LOADER_OUTPUT_FORMAT"):
        config.output.output_format = output_format.lower()
    config.output.quiet = get_env_bool("DEP_LOADER_QUIET", config.output.quiet)

    if log_level := os.environ.get("DEP_LOADER_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    if not isinstance(section_data, dict):
        console.print(
            f"⚠️  Config section {section_name} must be a table, ignoring it",
            style="yellow",
        )
        return
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config() -> LoaderConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = LoaderConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section_name in ("graph", "output", "logging"):
                if section_name in file_config:
                    apply_config_section(
                        getattr(config, section_name),
                        file_config[section_name],
                        section_name,
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        defaults = LoaderConfig()
        if config.output.output_format not in OUTPUT_FORMATS:
            config.output.output_format = defaults.output.output_format
        if config.logging.log_level.upper() not in LOG_LEVELS:
            config.logging.log_level = defaults.logging.log_level
        if not config.graph.graph_file:
            config.graph.graph_file = defaults.graph.graph_file
        if not config.graph.classpath_separator:
            config.graph.classpath_separator = defaults.graph.classpath_separator

    _global_config = config
    return config


def get_config() -> LoaderConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate sample configuration."""
    return json.dumps(LoaderConfig().to_dict(), indent=2)
