"""Game library manager: repository indexer and metadata cache."""

__version__ = "0.1.0"
