"""
Error taxonomy shared by ingestion, generation and persistence.

Per-item failures (one chunk, one topic, one stream, one set) are caught at
the loop boundary and turned into an empty result or an accumulated message.
Only configuration mismatches and fully-empty bulk runs reach the user as
blocking errors.
"""

from typing import List, Optional


class AutoMCQError(Exception):
    """Base class for all pipeline errors."""


class ClassificationError(AutoMCQError):
    """AI cleaning call failed or returned output that could not be parsed."""


class NetworkError(AutoMCQError):
    """Fetching a URL (scrape, image, grounding source) failed."""


class RenderError(AutoMCQError):
    """A whole document could not be assembled."""


class PersistenceError(AutoMCQError):
    """Question store unavailable or write rejected."""


class ConfigMismatchError(AutoMCQError):
    """Requested section counts cannot be met by the available pool."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.details = details


class BulkGenerationError(AutoMCQError):
    """A bulk run produced no files at all."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ConfirmationRequiredError(AutoMCQError):
    """The operation would discard unsaved questions and was not confirmed."""


class NotFoundError(AutoMCQError):
    """Requested stream or data does not exist."""
