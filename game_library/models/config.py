"""Configuration data models."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class RepositoryConfig:
    """Location of the game repository share."""
    server: str = ""
    share: str = "Games"
    username: str = ""
    password: str = ""
    base_dir: str = "Windows"


@dataclass(frozen=True)
class AppConfig:
    """Application configuration settings."""
    cache_directory: Path
    install_directory: Path
    temp_directory: Path
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    igdb_client_id: str = ""
    igdb_client_secret: str = ""
    metadata_max_age_days: int = 30
    scan_depth: int = 2
    request_delay: float = 0.25  # Seconds between game database requests
    log_level: str = "INFO"

    @property
    def has_igdb_credentials(self) -> bool:
        return bool(self.igdb_client_id and self.igdb_client_secret)
