"""Service layer: repository indexing, metadata cache and integrations."""

from .classifier import classify
from .config import ConfigurationService, ValidationResult
from .errors import (
    AppError,
    ConfigurationError,
    ErrorCategory,
    ErrorHandlingService,
    ErrorSeverity,
    FileSystemError,
    InstallError,
    MetadataError,
    NetworkError,
    ScanError,
    UserFriendlyError,
    ValidationError,
    get_error_service,
    handle_error,
)
from .filesystem import FileSystemService
from .http_client import HttpClientService
from .igdb_client import IgdbClient
from .installer import InstallerService
from .metadata_refresh import (
    CallbackStatusChannel,
    ChannelClosedError,
    EnrichmentSource,
    MetadataRefreshService,
    QueueStatusChannel,
    pick_best_match,
)
from .metadata_store import MetadataStore
from .repository import RepositoryScanner, RepositorySource, parse_info_text, scan
from .version_resolver import resolve_versions

__all__ = [
    "AppError",
    "CallbackStatusChannel",
    "ChannelClosedError",
    "ConfigurationError",
    "ConfigurationService",
    "EnrichmentSource",
    "ErrorCategory",
    "ErrorHandlingService",
    "ErrorSeverity",
    "FileSystemError",
    "FileSystemService",
    "HttpClientService",
    "IgdbClient",
    "InstallError",
    "InstallerService",
    "MetadataError",
    "MetadataRefreshService",
    "MetadataStore",
    "NetworkError",
    "QueueStatusChannel",
    "RepositoryScanner",
    "RepositorySource",
    "ScanError",
    "UserFriendlyError",
    "ValidationError",
    "ValidationResult",
    "classify",
    "get_error_service",
    "handle_error",
    "parse_info_text",
    "pick_best_match",
    "resolve_versions",
    "scan",
]
