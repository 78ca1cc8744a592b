"""Recording filename convention.

Sensors write files named ``SENSOR_YYYYMMDD_HHMMSS.ext``.  The sensor id
is the text before the first underscore; the capture time comes from the
8-digit date token followed by the 6-digit time token.  Names that do not
follow the convention are tolerated and yield ``(None, None)``.
"""

from __future__ import annotations

import datetime
import re
from typing import Optional, Tuple

_SENSOR_RE = re.compile(r"^([^_]+)_")
# Greedy prefix: when the pair occurs more than once the last one wins.
_STAMP_RE = re.compile(r".*_([0-9]{8})_([0-9]{6})")

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def parse_recording_name(filename: str) -> Tuple[Optional[str], Optional[datetime.datetime]]:
    """Return ``(sensor_id, timestamp)`` for a recording filename.

    Both values are ``None`` unless the name carries a sensor prefix and a
    valid date/time token pair.
    """
    sensor_match = _SENSOR_RE.match(filename)
    stamp_match = _STAMP_RE.match(filename)
    if sensor_match is None or stamp_match is None:
        return None, None
    try:
        timestamp = datetime.datetime.strptime(
            stamp_match.group(1) + stamp_match.group(2), TIMESTAMP_FORMAT
        )
    except ValueError:
        return None, None
    return sensor_match.group(1), timestamp


def has_extension(filename: str, extensions) -> bool:
    """Case-sensitive suffix check against a set of extensions (``.wav`` style)."""
    return any(filename.endswith(ext) for ext in extensions)
