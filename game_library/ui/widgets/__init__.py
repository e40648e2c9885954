"""Custom widgets for the TUI application."""

from .progress import MetadataProgressWidget

__all__ = [
    "MetadataProgressWidget",
]
