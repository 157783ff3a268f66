"""
Export Errors

Exception hierarchy shared by every stage of the order export pipeline.
Adapters wrap library exceptions into these types with ``raise ... from e``
so the orchestrator only has to know about one family.
"""

from typing import Optional


class ExportError(Exception):
    """Base class for all order export failures."""


class ConfigError(ExportError):
    """Configuration document is missing, unreadable or invalid."""


class DataAccessError(ExportError):
    """Orders database could not be reached or the XML could not be fully read."""


class StagingError(ExportError):
    """Local staging file could not be written or removed."""


class TransferError(ExportError):
    """Upload to the file-transfer server failed.

    Carries the remote path that was targeted and the underlying error text so
    a failure report can say exactly what the server answered.
    """

    def __init__(
        self,
        message: str,
        detail: Optional[str] = None,
        remote_path: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.detail = detail
        self.remote_path = remote_path
