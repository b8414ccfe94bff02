# ingestarr/services/metadata.py
# Read-only access to embedded tags (the external tag-reading collaborator).
# exiftool when it is on PATH, otherwise Pillow's EXIF reader for images.
# Keys follow exiftool's "-G" naming ("EXIF:CreateDate") whichever backend answered.
from __future__ import annotations

import json
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Dict

import pillow_heif
from PIL import ExifTags, Image

# Enables Pillow to open (and save) HEIC/HEIF
pillow_heif.register_heif_opener()

TagReader = Callable[[Path], Dict[str, Any]]

# Pillow tag id -> exiftool name (EXIF group)
_PILLOW_DATE_TAGS = {
    ExifTags.Base.DateTimeDigitized: "EXIF:CreateDate",
    ExifTags.Base.DateTimeOriginal: "EXIF:DateTimeOriginal",
    ExifTags.Base.DateTime: "EXIF:ModifyDate",
}


def _via_exiftool(exe: str, p: Path) -> Dict[str, Any]:
    """
    Return exiftool tags as a flat dict keyed "Group:Tag".
    We exclude known huge/binary blobs at the CLI level.
    """
    cmd = [
        exe,
        "-j", "-G",
        "-api", "largefilesupport=1",
        "--MakerNotes", "--PreviewImage", "--ThumbnailImage",
        str(p),
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False, timeout=20)
    if proc.returncode != 0:
        raise RuntimeError(proc.stderr.strip() or f"exiftool rc={proc.returncode}")
    data = json.loads(proc.stdout) or [{}]
    row = dict(data[0])
    row.pop("SourceFile", None)
    return {str(k): row[k] for k in row}


def _via_pillow(p: Path) -> Dict[str, Any]:
    """Image-only fallback: the three EXIF date tags, named as exiftool names them."""
    out: Dict[str, Any] = {}
    with Image.open(p) as im:
        exif = im.getexif()
        merged = dict(exif)
        merged.update(exif.get_ifd(ExifTags.IFD.Exif))
        for tag_id, name in _PILLOW_DATE_TAGS.items():
            val = merged.get(tag_id)
            if val:
                out[name] = str(val)
    return out


def read_tags(p: Path) -> Dict[str, Any]:
    """Default TagReader. Raises on any failure; callers decide whether that matters."""
    exe = shutil.which("exiftool")
    if exe:
        return _via_exiftool(exe, p)
    return _via_pillow(p)
