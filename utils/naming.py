"""
Export file naming.

Export files are named ``[TEST-]YYYYMMDD-HHMMSS.xml``. Resolution is one
second, so two runs inside the same second get the same name.
"""

from datetime import datetime
from typing import Any, Optional

TEST_PREFIX = "TEST-"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
EXPORT_SUFFIX = ".xml"

_OFF_VALUES = ("0", "")


def is_test_mode(value: Any) -> bool:
    """Test mode is on unless the value is absent, zero, "0" or empty."""
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() not in _OFF_VALUES
    if isinstance(value, (int, float)):
        return value != 0
    return True


def export_filename(test_mode: Any, now: Optional[datetime] = None) -> str:
    """
    Build the export filename for a run.

    Args:
        test_mode: Raw ``testmode`` value from the configuration document
        now: Clock reading to use (local wall-clock time if None)

    Returns:
        Filename such as ``20261018-091500.xml`` or ``TEST-20261018-091500.xml``
    """
    if now is None:
        now = datetime.now()

    prefix = TEST_PREFIX if is_test_mode(test_mode) else ""
    return f"{prefix}{now.strftime(TIMESTAMP_FORMAT)}{EXPORT_SUFFIX}"
