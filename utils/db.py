"""
Database utilities for the orders store.

Runs the export procedure that returns all pending orders as one XML document
and marks them exported in the same call.
"""

import logging
from typing import Callable, Optional
from urllib.parse import quote_plus

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from utils.config import ExportSettings
from utils.errors import DataAccessError

logger = logging.getLogger(__name__)

# Passed as @ViewOnly: 0 means the procedure also marks the orders exported.
NOT_VIEW_ONLY = 0


def build_engine_url(connection_string: str) -> str:
    """
    Turn the configured connection string into a SQLAlchemy URL.

    Strings that already look like URLs (``dialect+driver://...``) are used as-is.
    Anything else is taken to be an ODBC connection string for SQL Server.
    """
    if "://" in connection_string:
        return connection_string
    return f"mssql+pyodbc:///?odbc_connect={quote_plus(connection_string)}"


def _chunk_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


class OrderRepository:
    """Reads the pending-orders XML document.

    SQL Server returns ``FOR XML`` output as a series of ~2,033 character rows,
    so a single scalar read truncates large documents. The result is consumed
    as a forward-only stream and every row is appended until the cursor is
    exhausted.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        command: Optional[str] = None,
        engine_factory: Callable[[str], Engine] = create_engine,
    ) -> None:
        """
        Args:
            engine: Engine to use; when None one is created per call from the
                settings and disposed afterwards
            command: SQL to execute; defaults to ``EXEC <procedure> @ViewOnly = :view_only``
            engine_factory: Callable building an engine from a URL
        """
        self.engine = engine
        self.command = command
        self.engine_factory = engine_factory

    def build_command(self, settings: ExportSettings) -> str:
        if self.command:
            return self.command
        return f"EXEC {settings.orders_database.procedure} @ViewOnly = :view_only"

    def retrieve(self, settings: ExportSettings) -> str:
        """
        Fetch all pending orders as one XML document and commit their consumption.

        Args:
            settings: Loaded export settings

        Returns:
            Complete XML document text (empty when no orders are pending)

        Raises:
            DataAccessError: If connecting, executing or reading fails
        """
        owns_engine = self.engine is None
        engine = self.engine

        try:
            if engine is None:
                url = build_engine_url(settings.orders_database.connection_string)
                engine = self.engine_factory(url)

            command = self.build_command(settings)
            logger.info("Retrieving pending orders: procedure=%s", settings.orders_database.procedure)

            # Commit happens only after the whole document has been read.
            with engine.begin() as conn:
                result = conn.execution_options(stream_results=True).execute(
                    text(command), {"view_only": NOT_VIEW_ONLY}
                )
                chunks = []
                try:
                    for row in result:
                        chunks.append(_chunk_text(row[0]))
                finally:
                    result.close()

        except SQLAlchemyError as e:
            raise DataAccessError(f"Order retrieval failed: {e}") from e
        except ImportError as e:
            raise DataAccessError(f"Database driver is not installed: {e}") from e
        except UnicodeDecodeError as e:
            raise DataAccessError(f"Order XML is not valid UTF-8: {e}") from e

        finally:
            if owns_engine and engine is not None:
                engine.dispose()

        # FOR XML over zero pending orders yields NULL or no rows: an empty batch
        document = "".join(chunks)

        logger.info("Retrieved pending orders: rows=%d, chars=%d", len(chunks), len(document))
        return document


def retrieve_orders(settings: ExportSettings) -> str:
    """Retrieve the pending-orders document using a per-call engine."""
    return OrderRepository().retrieve(settings)
