"""Data models for the game library manager."""

from .config import AppConfig, RepositoryConfig
from .game import FileCategory, FileRecord, GameRecord, VersionRecord
from .metadata import CachedMetadata, Candidate, CompanyCredit, CoverRef
from .progress import (
    Completed,
    DownloadProgress,
    Failed,
    MetadataStatus,
    Progress,
    Started,
    Success,
)

__all__ = [
    "AppConfig",
    "CachedMetadata",
    "Candidate",
    "CompanyCredit",
    "Completed",
    "CoverRef",
    "DownloadProgress",
    "Failed",
    "FileCategory",
    "FileRecord",
    "GameRecord",
    "MetadataStatus",
    "Progress",
    "RepositoryConfig",
    "Started",
    "Success",
    "VersionRecord",
]
