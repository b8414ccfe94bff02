# ingestarr/services/dates.py
# Effective capture date: embedded tags first, file modification time as fallback.
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .metadata import TagReader, read_tags

LOGGER = logging.getLogger("ingestarr.dates")

# Preference order: digitized, original, generic, then container-level.
DATE_KEYS = [
    "EXIF:CreateDate",          # DateTimeDigitized
    "EXIF:DateTimeOriginal",
    "EXIF:ModifyDate",          # IFD0 DateTime
    "QuickTime:CreateDate",
    "XMP:DateCreated",
    "QuickTime:CreationDate",
]

_dt_re = re.compile(
    r"^(?P<y>\d{4}):(?P<m>\d{2}):(?P<d>\d{2})[ T]"
    r"(?P<H>\d{2}):(?P<M>\d{2}):(?P<S>\d{2})"
    r"(?:\.(?P<sub>\d+))?(?P<tz>Z|[+\-]\d{2}:?\d{2})?$"
)


def parse_exif_dt(s: Any) -> Optional[datetime]:
    """Parse an exiftool date string. Naive unless the tag carried an offset."""
    if s is None:
        return None
    s = str(s).strip()

    # Common invalid/sentinel values → treat as missing
    if not s or s.startswith(("0000:00:00", "0001:01:01")):
        return None

    m = _dt_re.match(s)
    if m:
        try:
            dt = datetime.strptime(s[:19], "%Y:%m:%d %H:%M:%S")
        except ValueError:
            return None

        tz = m.group("tz")
        if tz == "Z":
            return dt.replace(tzinfo=timezone.utc)
        if tz:
            # normalize "+hhmm" → "+hh:mm"
            tz = tz if ":" in tz else (tz[:3] + ":" + tz[3:])
            try:
                return datetime.fromisoformat(dt.strftime("%Y-%m-%dT%H:%M:%S") + tz)
            except ValueError:
                return None
        return dt

    # ISO-like fallback some containers emit
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None


def date_from_tags(meta: Dict[str, Any]) -> Optional[datetime]:
    for k in DATE_KEYS:
        dt = parse_exif_dt(meta.get(k))
        if dt:
            return dt
    return None


def _assume(dt: datetime, assumed: str) -> datetime:
    """Attach the configured kind to a naive tag value. The clock value is kept."""
    if dt.tzinfo is not None:
        return dt
    if assumed == "utc":
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone()  # naive is read as local wall-clock time


def resolve_capture_date(p: Path, assumed: str = "local",
                         reader: TagReader = read_tags) -> datetime:
    """
    Decide the capture time:
      1) embedded tags (see DATE_KEYS)
      2) file modification time
    -> always timezone-aware, so `.astimezone()` gives the local view
    """
    try:
        dt = date_from_tags(reader(p))
    except Exception as e:
        # unsupported format, corrupt tags, missing tool: all fall back to mtime
        LOGGER.debug("Tag read failed for %s: %s", p, e)
        dt = None

    if dt is not None:
        return _assume(dt, assumed)

    return datetime.fromtimestamp(p.stat().st_mtime, tz=timezone.utc)


def local_view(dt: datetime) -> datetime:
    """Naive local wall-clock time for folder naming and the cutoff check."""
    return dt.astimezone().replace(tzinfo=None)
