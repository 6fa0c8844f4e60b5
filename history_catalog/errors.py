"""Exception hierarchy for the ingestion pipeline.

Each error is contained at the smallest unit it concerns (row, task or file)
and never aborts an ingestion run on its own.
"""

from __future__ import annotations


class HistoryCatalogError(Exception):
    """Base class for all package errors."""


class RowValidationError(HistoryCatalogError):
    """A source row has a malformed ``date`` or ``url``."""

    def __init__(self, file_name: str, line: int, message: str) -> None:
        super().__init__(f"{file_name}:{line}: {message}")
        self.file_name = file_name
        self.line = line


class SourceFileReadError(HistoryCatalogError):
    """A source file could not be read."""


class EnrichmentFetchError(HistoryCatalogError):
    """The remote encyclopedia service failed for a single url."""


class PreviewGenerationError(HistoryCatalogError):
    """An image could not be downsized into a preview."""


class StoreError(HistoryCatalogError):
    """The persistent store rejected a read or write."""

__all__ = [
    "HistoryCatalogError",
    "RowValidationError",
    "SourceFileReadError",
    "EnrichmentFetchError",
    "PreviewGenerationError",
    "StoreError",
]
