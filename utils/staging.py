"""
Staging Area - Transient Local Export Files

Owns the local copy of an export for the duration of one run. The file is
written just before upload and removed on every exit path by staged_export().
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from utils.errors import StagingError

logger = logging.getLogger(__name__)


def resolve_local_path(filename: str, staging_dir: Optional[str] = None) -> Path:
    """Join the staging directory (system temp dir by default) with filename. No I/O."""
    base = staging_dir or tempfile.gettempdir()
    return Path(base) / filename


def write_export(path: Path, content: str) -> None:
    """
    Write export content to path, creating or overwriting it.

    Raises:
        StagingError: If the file cannot be written
    """
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise StagingError(f"Failed to write staging file: {path} - {e}") from e

    logger.info("Staged export: path=%s, chars=%d", str(path), len(content))


def remove_export(path: Path) -> None:
    """
    Delete the staging file. An already-absent file is not an error.

    Raises:
        StagingError: If the file exists but cannot be deleted (locked, in use, permissions)
    """
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.debug("Staging file already absent: path=%s", str(path))
        return
    except OSError as e:
        raise StagingError(f"Failed to remove staging file: {path} - {e}") from e

    logger.info("Removed staging file: path=%s", str(path))


@contextmanager
def staged_export(
    filename: str,
    content: str,
    staging_dir: Optional[str] = None,
) -> Iterator[Path]:
    """
    Write an export to the staging area and remove it when the block exits.

    Removal runs on every exit path. If removal fails while another error is
    already propagating, the removal failure is logged and the original error
    wins; on a clean exit a removal failure raises StagingError.

    Usage:
        with staged_export(name, xml, staging_dir) as path:
            upload_file(path, name, settings.ftp)
    """
    path = resolve_local_path(filename, staging_dir)
    failed = True

    try:
        write_export(path, content)
        yield path
        failed = False
    finally:
        try:
            remove_export(path)
        except StagingError as e:
            if not failed:
                raise
            logger.error("Cleanup failed after earlier error: path=%s, error=%s", str(path), str(e))
