"""Dependency downloads and HTTP client configuration."""

from bindingtool.fetch.fetcher import DependencyFetcher
from bindingtool.fetch.http import Deadline, create_client
from bindingtool.fetch.outcome import FetchOutcome, FetchStatus

__all__ = [
    "Deadline",
    "DependencyFetcher",
    "FetchOutcome",
    "FetchStatus",
    "create_client",
]
