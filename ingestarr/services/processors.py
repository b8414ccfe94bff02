# ingestarr/services/processors.py
# Type processors: one closed set of file kinds, chosen once per file by
# extension + config, dispatched through a single table.
#   IMAGE        Pillow rewrites Copyright / XPAuthor / XPComment
#   VIDEO        copy or ffmpeg transcode, then mutagen rewrites copyright/comment
#   RAW_ARCHIVE  7-Zip compresses the raw file into an archive
#   OPAQUE       byte-for-byte copy
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pillow_heif
from mutagen import MutagenError
from mutagen.mp4 import MP4
from PIL import ExifTags, Image, UnidentifiedImageError

from ..core.cancellation import CancellationToken
from ..core.config import PhotoSource, Settings
from ..core.errors import ProcessingError
from ..utils.files import copy_file
from .tools import run_tool

LOGGER = logging.getLogger("ingestarr.processors")

# HEIC/HEIF read and write through Pillow
pillow_heif.register_heif_opener()

# containers mutagen's MP4 writer understands
MP4_FAMILY = {".mp4", ".m4v", ".mov"}


class FileKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    RAW_ARCHIVE = "raw_archive"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class ProcessJob:
    source: Path
    destination: Path
    photo_source: PhotoSource
    capture_local: datetime
    settings: Settings
    token: Optional[CancellationToken] = None

    @property
    def copyright_short(self) -> str:
        src = self.photo_source
        return f"Copyright (c) {src.copyright_to}, {self.capture_local.year}. {src.license_short}"

    @property
    def copyright_full(self) -> str:
        src = self.photo_source
        return (f"Copyright (c) {src.copyright_to}, {self.capture_local.year}. "
                f"{src.license_full}. {src.copyright_url}")


def classify(p: Path, settings: Settings) -> FileKind:
    ext = p.suffix.lower()
    if ext in settings.formats.images:
        return FileKind.IMAGE
    if ext in settings.formats.videos:
        return FileKind.VIDEO
    if ext in settings.formats.raw and settings.archiving:
        return FileKind.RAW_ARCHIVE
    return FileKind.OPAQUE


def destination_extension(kind: FileKind, settings: Settings) -> Optional[str]:
    """Extension the processor will produce, when it differs from the source's."""
    if kind is FileKind.RAW_ARCHIVE:
        return settings.archive.extension
    if kind is FileKind.VIDEO and settings.transcoding:
        return settings.transcode.extension
    return None


# ---------- IMAGE ----------

def _ucs2(text: str) -> bytes:
    # XP* tags are UCS-2 little-endian, NUL terminated
    return (text + "\x00").encode("utf-16-le")


def process_image(job: ProcessJob) -> Path:
    try:
        with Image.open(job.source) as im:
            exif = im.getexif()
            exif[ExifTags.Base.Copyright] = job.copyright_short
            exif[ExifTags.Base.XPAuthor] = _ucs2(job.photo_source.copyright_to)
            exif[ExifTags.Base.XPComment] = _ucs2(job.copyright_full)

            save_kwargs = {"exif": exif.tobytes()}
            fmt = im.format
            if fmt in ("JPEG", "MPO"):
                # keep the camera's quantisation; MPO extras (depth maps) are dropped
                fmt = "JPEG"
                save_kwargs.update(quality="keep", subsampling="keep")
            icc = im.info.get("icc_profile")
            if icc:
                save_kwargs["icc_profile"] = icc
            im.save(job.destination, format=fmt, **save_kwargs)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ProcessingError(f"image rewrite failed for {job.source.name}: {e}") from e
    return job.destination


# ---------- VIDEO ----------

def transcode_argv(job: ProcessJob) -> List[str]:
    t = job.settings.transcode
    return [
        job.settings.tools.ffmpeg,
        "-hwaccel", t.hwaccel,
        "-i", str(job.source),
        "-y",
        "-c:a", t.audio_codec,
        "-b:a", t.audio_bitrate,
        "-c:v", t.video_codec,
        "-crf", t.quality_factor,
        "-preset", t.preset,
        "-g", t.keyframe_interval,
        str(job.destination),
    ]


def write_video_tags(p: Path, copyright_text: str, comment: str) -> None:
    if p.suffix.lower() not in MP4_FAMILY:
        LOGGER.debug("No tag writer for %s; copyright tags not written", p.suffix)
        return
    try:
        mp4 = MP4(p)
        if mp4.tags is None:
            mp4.add_tags()
        mp4.tags["cprt"] = [copyright_text]
        mp4.tags["\xa9cmt"] = [comment]
        mp4.save()
    except MutagenError as e:
        raise ProcessingError(f"video tag rewrite failed for {p.name}: {e}") from e


def process_video(job: ProcessJob) -> Path:
    s = job.settings
    if s.transcoding:
        run_tool(
            transcode_argv(job),
            failure_exit_code=s.tools.ffmpeg_failure_exit_code,
            token=job.token,
            niceness=s.tools.niceness,
            poll_interval=s.tools.poll_interval,
        )
    else:
        copy_file(job.source, job.destination)
    write_video_tags(job.destination, job.copyright_short, job.copyright_full)
    return job.destination


# ---------- RAW_ARCHIVE ----------

def archive_argv(job: ProcessJob) -> List[str]:
    s = job.settings
    return [
        s.tools.sevenzip,
        "a",
        f"-mx={s.archive.compression_level}",
        str(job.destination),
        str(job.source),
    ]


def process_raw_archive(job: ProcessJob) -> Path:
    s = job.settings
    run_tool(
        archive_argv(job),
        failure_exit_code=s.tools.sevenzip_failure_exit_code,
        token=job.token,
        niceness=s.tools.niceness,
        poll_interval=s.tools.poll_interval,
    )
    if not job.destination.is_file():
        raise ProcessingError(f"7-Zip reported success but {job.destination} was not created")
    return job.destination


# ---------- OPAQUE ----------

def process_opaque(job: ProcessJob) -> Path:
    copy_file(job.source, job.destination)
    return job.destination


PROCESSORS: Dict[FileKind, Callable[[ProcessJob], Path]] = {
    FileKind.IMAGE: process_image,
    FileKind.VIDEO: process_video,
    FileKind.RAW_ARCHIVE: process_raw_archive,
    FileKind.OPAQUE: process_opaque,
}


def process(kind: FileKind, job: ProcessJob) -> Path:
    """Produce the destination artifact for `job`. Raises ProcessingError on tool failure."""
    return PROCESSORS[kind](job)
