"""Configuration service for managing application settings."""

import json
from pathlib import Path
from typing import Any

import structlog

from ..models import AppConfig, RepositoryConfig

log = structlog.stdlib.get_logger()

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, is_valid: bool, errors: list[str] | None = None) -> None:
        self.is_valid: bool = is_valid
        self.errors: list[str] = errors or []


class ConfigurationService:
    """Service for managing application configuration."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_path: Path = config_path or Path.home() / ".config" / "game-library" / "config.json"
        log.info("Configuration service initialized", config_path=str(self.config_path))

    def load_config(self) -> AppConfig:
        """Load configuration from file or return default configuration."""
        if not self.config_path.exists():
            log.info("Configuration file not found, using defaults")
            return self.get_default_config()

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data: dict[str, Any] = json.load(f)

            config = self._dict_to_config(data)
            validation_result = self.validate_config(config)

            if not validation_result.is_valid:
                log.warning("Invalid configuration loaded, using defaults", errors=validation_result.errors)
                return self.get_default_config()

            log.info("Configuration loaded successfully")
            return config

        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
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
            data = self._config_to_dict(config)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            log.info("Configuration saved successfully")

        except OSError as e:
            log.error("Failed to save configuration", error=str(e))
            raise

    def validate_config(self, config: AppConfig) -> ValidationResult:
        """Validate configuration settings."""
        errors = []

        for name in ("cache_directory", "install_directory", "temp_directory"):
            value = getattr(config, name)
            if not isinstance(value, Path):
                errors.append(f"{name} must be a Path object")
            elif not value.is_absolute():
                errors.append(f"{name} must be an absolute path")

        if not isinstance(config.metadata_max_age_days, int) or config.metadata_max_age_days < 1:
            errors.append("metadata_max_age_days must be a positive integer")
        elif config.metadata_max_age_days > 3650:
            errors.append("metadata_max_age_days should not exceed 3650")

        if not isinstance(config.scan_depth, int) or not 1 <= config.scan_depth <= 10:
            errors.append("scan_depth must be an integer between 1 and 10")

        if not isinstance(config.request_delay, (int, float)) or config.request_delay < 0:
            errors.append("request_delay must be a non-negative number")
        elif config.request_delay > 60:
            errors.append("request_delay should not exceed 60 seconds")

        if config.log_level not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}")

        if bool(config.igdb_client_id) != bool(config.igdb_client_secret):
            errors.append("igdb_client_id and igdb_client_secret must be set together")

        return ValidationResult(len(errors) == 0, errors)

    def get_default_config(self) -> AppConfig:
        """Get default configuration."""
        home = Path.home()
        return AppConfig(
            cache_directory=home / ".cache" / "game-library",
            install_directory=home / "Games",
            temp_directory=home / ".cache" / "game-library" / "downloads",
            repository=RepositoryConfig(),
        )

    def ensure_directories(self, config: AppConfig) -> None:
        """Create the cache, install and temp directories."""
        for path in (config.cache_directory, config.install_directory, config.temp_directory):
            path.mkdir(parents=True, exist_ok=True)

    def _config_to_dict(self, config: AppConfig) -> dict[str, Any]:
        """Convert AppConfig to dictionary for JSON serialization."""
        repository = config.repository
        return {
            "repository": {
                "server": repository.server,
                "share": repository.share,
                "username": repository.username,
                "password": repository.password,
                "base_dir": repository.base_dir,
            },
            "cache_directory": str(config.cache_directory),
            "install_directory": str(config.install_directory),
            "temp_directory": str(config.temp_directory),
            "igdb_client_id": config.igdb_client_id,
            "igdb_client_secret": config.igdb_client_secret,
            "metadata_max_age_days": config.metadata_max_age_days,
            "scan_depth": config.scan_depth,
            "request_delay": config.request_delay,
            "log_level": config.log_level,
        }

    def _dict_to_config(self, data: dict[str, Any]) -> AppConfig:
        """Convert dictionary to AppConfig, filling gaps with defaults."""
        defaults = self.get_default_config()
        repo_data = data.get("repository") or {}
        default_repo = defaults.repository

        repository = RepositoryConfig(
            server=str(repo_data.get("server", default_repo.server)),
            share=str(repo_data.get("share", default_repo.share)),
            username=str(repo_data.get("username", default_repo.username)),
            password=str(repo_data.get("password", default_repo.password)),
            base_dir=str(repo_data.get("base_dir", default_repo.base_dir)),
        )

        max_age_raw = data.get("metadata_max_age_days", defaults.metadata_max_age_days)
        scan_depth_raw = data.get("scan_depth", defaults.scan_depth)
        delay_raw = data.get("request_delay", defaults.request_delay)
        log_level_raw = data.get("log_level", defaults.log_level)

        return AppConfig(
            repository=repository,
            cache_directory=Path(str(data.get("cache_directory", defaults.cache_directory))).expanduser(),
            install_directory=Path(str(data.get("install_directory", defaults.install_directory))).expanduser(),
            temp_directory=Path(str(data.get("temp_directory", defaults.temp_directory))).expanduser(),
            igdb_client_id=str(data.get("igdb_client_id") or ""),
            igdb_client_secret=str(data.get("igdb_client_secret") or ""),
            metadata_max_age_days=int(max_age_raw) if isinstance(max_age_raw, (int, float)) else defaults.metadata_max_age_days,
            scan_depth=int(scan_depth_raw) if isinstance(scan_depth_raw, (int, float)) else defaults.scan_depth,
            request_delay=float(delay_raw) if isinstance(delay_raw, (int, float)) else defaults.request_delay,
            log_level=str(log_level_raw).upper() if isinstance(log_level_raw, str) else defaults.log_level,
        )
