"""Error taxonomy for the command menu core."""
from __future__ import annotations


class CommandMenuError(Exception):
    """Base class for errors raised by coursemenu."""


class CatalogError(CommandMenuError):
    """Raised when the entity catalog cannot be loaded or is inconsistent."""


class FetchError(CommandMenuError):
    """Raised when a reference document cannot be downloaded."""

    def __init__(self, url: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.url = str(url)
        self.status_code = status_code


class StorageError(CommandMenuError):
    """Raised when the document cache cannot be read or written."""
