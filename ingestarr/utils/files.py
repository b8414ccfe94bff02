# ingestarr/utils/files.py
from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Iterator

JUNK_FILES = {".DS_Store", "Thumbs.db", "desktop.ini"}
JUNK_PREFIXES = ("._",)  # AppleDouble resource forks like ._IMG_1234.JPG
DIR_IGNORE = {".Spotlight-V100", ".fseventsd", ".Trashes", ".TemporaryItems"}
TEMP_SUFFIXES = {".tmp"}


def is_skippable(name: str) -> bool:
    """Junk/system files and in-progress .tmp files are never imported."""
    if name in JUNK_FILES or name.startswith(JUNK_PREFIXES):
        return True
    return Path(name).suffix.lower() in TEMP_SUFFIXES


def iter_source_files(root: Path) -> Iterator[Path]:
    """All importable files under `root`, recursively, in a stable order."""
    for dirpath, dirs, files in os.walk(root):
        # prune system dirs and AppleDouble dir entries
        dirs[:] = sorted(d for d in dirs if d not in DIR_IGNORE and not d.startswith("._"))
        for name in sorted(files):
            if is_skippable(name):
                continue
            yield Path(dirpath) / name


def copy_file(src: Path, dst: Path, bufsize: int = 1024 * 1024) -> None:
    """Byte-for-byte copy into a new file (never overwrites), then copy timestamps."""
    with src.open("rb") as inf, dst.open("xb") as outf:
        shutil.copyfileobj(inf, outf, bufsize)
    shutil.copystat(src, dst)


def ensure_folder_for(p: Path) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)


def remove_if_exists(p: Path) -> bool:
    try:
        p.unlink()
        return True
    except FileNotFoundError:
        return False
