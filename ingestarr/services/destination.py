# ingestarr/services/destination.py
# Where a file lands: {root}/{date folder}/{prefix}{name}[override ext]
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..core.config import PhotoSource, Settings

# .NET-style date tokens accepted in subfolder_pattern ("yyyy/MM"), longest first
_NET_TOKENS = {
    "yyyy": "%Y",
    "yy":   "%y",
    "MMMM": "%B",
    "MMM":  "%b",
    "MM":   "%m",
    "dd":   "%d",
    "HH":   "%H",
    "mm":   "%M",
    "ss":   "%S",
}
_net_re = re.compile("|".join(sorted(_NET_TOKENS, key=len, reverse=True)))


@dataclass(frozen=True)
class Destination:
    folder: Path
    filename: str
    path: Path


def to_strftime(pattern: str) -> str:
    """Accept either strftime ("%Y/%m") or .NET tokens ("yyyy/MM")."""
    if "%" in pattern:
        return pattern
    return _net_re.sub(lambda m: _NET_TOKENS[m.group(0)], pattern)


def format_folder(local_date: datetime, pattern: str) -> Path:
    rendered = local_date.strftime(to_strftime(pattern))
    # pattern separators become nested folders on every platform
    parts = [part for part in re.split(r"[\\/]", rendered) if part]
    return Path(*parts) if parts else Path()


def destination_filename(source_name: str, prefix: str,
                         extension_override: Optional[str] = None) -> str:
    name = f"{prefix}{source_name}"
    if extension_override:
        name = str(Path(name).with_suffix(extension_override))
    return name


def resolve_destination(local_date: datetime, source_name: str, source: PhotoSource,
                        settings: Settings, extension_override: Optional[str] = None) -> Destination:
    folder = settings.destination_path / format_folder(local_date, settings.subfolder_pattern)
    filename = destination_filename(source_name, source.prefix, extension_override)
    return Destination(folder=folder, filename=filename, path=folder / filename)
