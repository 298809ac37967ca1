"""Configuration service for managing application settings."""

import json
from pathlib import Path
from typing import Any

import structlog

from ..models import AppConfig

log = structlog.stdlib.get_logger()

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "rdb-metadata" / "config.json"
DEFAULT_DATA_DIR = Path.home() / ".local" / "share" / "rdb-metadata"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for loading, validating and saving AppConfig as JSON."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path = config_path or DEFAULT_CONFIG_PATH
        log.debug("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self) -> AppConfig:
        """Load configuration from file or return default configuration."""
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return self.get_default_config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data: dict[str, Any] = json.load(f)

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return self.get_default_config()

            log.info("Configuration loaded successfully")
            return config

        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            log.error("Failed to load configuration, using defaults", error=str(e))
            return self.get_default_config()

    def save_config(self, config: AppConfig) -> None:
        """Save configuration to file.

        Raises:
            ValueError: If the configuration does not validate
            OSError: If the file cannot be written
        """
        validation_result = self.validate_config(config)
        if not validation_result.is_valid:
            raise ValueError(f"Invalid configuration: {', '.join(validation_result.errors)}")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            with open(self.config_path, "w", encoding="utf-8") as f:
                json.dump(self._config_to_dict(config), f, indent=2, ensure_ascii=False)
            log.info("Configuration saved successfully")

        except OSError as e:
            log.error("Failed to save configuration", error=str(e))
            raise

    def validate_config(self, config: AppConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        for name in ("metadata_directory", "artwork_directory"):
            value = getattr(config, name)
            if not isinstance(value, Path):
                errors.append(f"{name} must be a Path object")
            elif not value.is_absolute():
                errors.append(f"{name} must be an absolute path")

        if not isinstance(config.rdb_name, str) or not config.rdb_name.strip():
            errors.append("rdb_name cannot be empty")
        elif "/" in config.rdb_name:
            errors.append("rdb_name must not contain '/'")

        if not isinstance(config.thumbnail_repo, str) or not config.thumbnail_repo.strip():
            errors.append("thumbnail_repo cannot be empty")

        for name in ("rdb_base_url", "thumbnail_base_url"):
            value = getattr(config, name)
            if not isinstance(value, str) or not value.startswith(("http://", "https://")):
                errors.append(f"{name} must be an http(s) URL")

        if not isinstance(config.http_timeout, (int, float)) or config.http_timeout <= 0:
            errors.append("http_timeout must be a positive number")
        elif config.http_timeout > 300:
            errors.append("http_timeout should not exceed 300 seconds")

        if not isinstance(config.max_retries, int) or config.max_retries < 0:
            errors.append("max_retries must be a non-negative integer")
        elif config.max_retries > 10:
            errors.append("max_retries should not exceed 10")

        if config.log_level not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        return ValidationResult(len(errors) == 0, errors)

    def get_default_config(self) -> AppConfig:
        """Get default configuration."""
        return AppConfig(
            metadata_directory=DEFAULT_DATA_DIR / "metadata",
            artwork_directory=DEFAULT_DATA_DIR / "artwork",
            rdb_name="Sega - Master System - Mark III",
            thumbnail_repo="Sega_-_Master_System_-_Mark_III",
        )

    def _config_to_dict(self, config: AppConfig) -> dict[str, Any]:
        """Convert AppConfig to dictionary for JSON serialization."""
        return {
            "metadata_directory": str(config.metadata_directory),
            "artwork_directory": str(config.artwork_directory),
            "rdb_name": config.rdb_name,
            "thumbnail_repo": config.thumbnail_repo,
            "rdb_base_url": config.rdb_base_url,
            "thumbnail_base_url": config.thumbnail_base_url,
            "http_timeout": config.http_timeout,
            "max_retries": config.max_retries,
            "log_level": config.log_level,
        }

    def _dict_to_config(self, data: dict[str, Any]) -> AppConfig:
        """Convert dictionary to AppConfig, filling optional settings with defaults."""
        defaults = self.get_default_config()

        timeout_raw = data.get("http_timeout", defaults.http_timeout)
        retries_raw = data.get("max_retries", defaults.max_retries)

        return AppConfig(
            metadata_directory=Path(str(data["metadata_directory"])).expanduser(),
            artwork_directory=Path(str(data["artwork_directory"])).expanduser(),
            rdb_name=str(data["rdb_name"]),
            thumbnail_repo=str(data["thumbnail_repo"]),
            rdb_base_url=str(data.get("rdb_base_url", defaults.rdb_base_url)).rstrip("/"),
            thumbnail_base_url=str(data.get("thumbnail_base_url", defaults.thumbnail_base_url)).rstrip("/"),
            http_timeout=float(timeout_raw) if isinstance(timeout_raw, (int, float)) else defaults.http_timeout,
            max_retries=int(retries_raw) if isinstance(retries_raw, int) else defaults.max_retries,
            log_level=str(data.get("log_level", defaults.log_level)).upper(),
        )
