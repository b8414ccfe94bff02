# ingestarr/core/config.py
# Loads Ingestarr settings from a TOML file (defaults + overrides).
# - Reads --config, then INGESTARR_CONFIG, then ./ingestarr.toml
# - Normalizes extension lists (lowercase, ensure leading dot)
# - Produces immutable pydantic models; nothing downstream reads the file again

from __future__ import annotations

import os
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Dict, Iterable, Literal, Optional, Tuple

import tomli as tomllib  # py3.11+: tomllib in stdlib; using tomli for compatibility
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError


# -------------------- Defaults (used if TOML omits keys) --------------------
_DEFAULTS: Dict[str, Any] = {
    "destination": {
        "path": "",
        "subfolder_pattern": "%Y/%m",
        "ledger_filename": "ingestarr-ledger.json",
        "effective_from": datetime(1970, 1, 1),
        # files at or below this many bytes count as "not really there"
        "min_existing_length": 1024,
    },
    "formats": {
        "images": ["jpg", "jpeg", "heic", "heif"],
        "videos": ["mp4", "mov", "m4v"],
        "raw":    ["dng", "cr2", "cr3", "nef", "arw", "raf", "rw2", "orf", "srw"],
    },
    "tools": {
        "ffmpeg": "",
        "sevenzip": "",
        "niceness": 10,
        "ffmpeg_failure_exit_code": 1,
        "sevenzip_failure_exit_code": 2,
        "poll_interval": 0.5,
    },
    "transcode": {
        "enabled": False,
        "container": "mp4",
        "hwaccel": "auto",
        "audio_codec": "aac",
        "audio_bitrate": "128k",
        "video_codec": "libx265",
        "quality_factor": "26",
        "preset": "medium",
        "keyframe_interval": "250",
    },
    "archive": {
        "extension": "7z",
        "compression_level": 9,
    },
}

CONFIG_ENV = "INGESTARR_CONFIG"
CONFIG_NAME = "ingestarr.toml"


def _norm_ext_list(exts: Iterable[str]) -> frozenset:
    """
    Normalize extension strings: ensure leading dot and lowercase.
    Accepts 'jpg' or '.jpg' and returns '.jpg'.
    """
    out: set[str] = set()
    for e in exts:
        e = (e or "").strip().lower()
        if not e:
            continue
        if not e.startswith("."):
            e = "." + e
        out.add(e)
    return frozenset(out)


def _norm_ext(e: str) -> str:
    e = (e or "").strip().lower().lstrip(".")
    return "." + e if e else ""


# -------------------- Settings models --------------------
class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class PhotoSource(_Frozen):
    """One watched source folder and the naming/copyright values applied to its files."""
    path: Path
    prefix: str = ""
    timestamps: Literal["local", "utc"] = "local"
    copyright_to: str = ""
    license_full: str = ""
    license_short: str = ""
    copyright_url: str = ""

    @field_validator("path", mode="before")
    @classmethod
    def _expand(cls, v):
        return Path(os.path.expandvars(os.path.expanduser(str(v))))

    @field_validator("timestamps", mode="before")
    @classmethod
    def _lower(cls, v):
        return str(v).strip().lower()

    @property
    def label(self) -> str:
        return self.prefix or self.path.name


class FormatSettings(_Frozen):
    images: frozenset
    videos: frozenset
    raw: frozenset

    @field_validator("images", "videos", "raw", mode="before")
    @classmethod
    def _exts(cls, v):
        if isinstance(v, str):
            v = [v]
        return _norm_ext_list(v)


class ToolSettings(_Frozen):
    ffmpeg: Optional[str] = None
    sevenzip: Optional[str] = None
    niceness: int = 10
    ffmpeg_failure_exit_code: int = 1
    sevenzip_failure_exit_code: int = 2
    poll_interval: float = Field(default=0.5, gt=0)

    @field_validator("ffmpeg", "sevenzip", mode="before")
    @classmethod
    def _blank_is_unset(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return os.path.expanduser(v) if v else None


class TranscodeSettings(_Frozen):
    enabled: bool = False
    container: str = "mp4"
    hwaccel: str = "auto"
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    video_codec: str = "libx265"
    quality_factor: str = "26"
    preset: str = "medium"
    keyframe_interval: str = "250"

    @field_validator("audio_bitrate", "quality_factor", "keyframe_interval", mode="before")
    @classmethod
    def _as_text(cls, v):
        # TOML users write crf = 26 as often as crf = "26"
        return str(v)

    @property
    def extension(self) -> str:
        return _norm_ext(self.container)


class ArchiveSettings(_Frozen):
    extension: str = "7z"
    compression_level: int = Field(default=9, ge=0, le=9)

    @field_validator("extension", mode="after")
    @classmethod
    def _dot(cls, v):
        return _norm_ext(v)


class Settings(_Frozen):
    destination_path: Path
    subfolder_pattern: str = "%Y/%m"
    ledger_filename: str = "ingestarr-ledger.json"
    effective_from: datetime = datetime(1970, 1, 1)
    min_existing_length: int = Field(default=1024, ge=0)
    sources: Tuple[PhotoSource, ...] = ()
    formats: FormatSettings = Field(default_factory=lambda: FormatSettings(**_DEFAULTS["formats"]))
    tools: ToolSettings = ToolSettings()
    transcode: TranscodeSettings = TranscodeSettings()
    archive: ArchiveSettings = ArchiveSettings()

    @field_validator("destination_path", mode="before")
    @classmethod
    def _dest(cls, v):
        if not v or not str(v).strip():
            raise ValueError("destination.path must be set")
        return Path(os.path.expandvars(os.path.expanduser(str(v))))

    @field_validator("effective_from", mode="before")
    @classmethod
    def _cutoff(cls, v):
        # TOML gives datetime, date, or (quoted) str; the cutoff is a local wall-clock value
        if isinstance(v, datetime):
            return v.astimezone().replace(tzinfo=None) if v.tzinfo else v
        if isinstance(v, date):
            return datetime.combine(v, time.min)
        if isinstance(v, str):
            return datetime.fromisoformat(v.strip())
        return v

    @field_validator("ledger_filename", mode="after")
    @classmethod
    def _plain_name(cls, v):
        if not v or Path(v).name != v:
            raise ValueError("destination.ledger_filename must be a bare file name")
        return v

    @property
    def transcoding(self) -> bool:
        """True when videos are re-encoded rather than copied."""
        return bool(self.transcode.enabled and self.tools.ffmpeg)

    @property
    def archiving(self) -> bool:
        return bool(self.tools.sevenzip)


# -------------------- Read + merge TOML --------------------
def find_config_path(explicit: Optional[str] = None) -> Optional[Path]:
    """Find ingestarr.toml.
    Priority:
      1) explicit --config value
      2) INGESTARR_CONFIG
      3) ./ingestarr.toml (CWD)
    """
    if explicit:
        return Path(explicit).expanduser()
    cfg_env = os.getenv(CONFIG_ENV)
    if cfg_env:
        return Path(cfg_env).expanduser()
    p = Path.cwd() / CONFIG_NAME
    if p.exists():
        return p
    return None


def load_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"TOML parse error in {path}: {e}") from e


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    raw = cfg.get(name, {})
    if not isinstance(raw, dict):
        raise ConfigurationError(f"[{name}] must be a table")
    return {**_DEFAULTS[name], **raw}


def parse_settings(cfg: Dict[str, Any]) -> Settings:
    """Merge user config with defaults and validate into Settings."""
    dest = _section(cfg, "destination")
    sources = cfg.get("sources", [])
    if not isinstance(sources, list):
        raise ConfigurationError("sources must be an array of tables ([[sources]])")

    try:
        return Settings(
            destination_path=dest["path"],
            subfolder_pattern=dest["subfolder_pattern"],
            ledger_filename=dest["ledger_filename"],
            effective_from=dest["effective_from"],
            min_existing_length=dest["min_existing_length"],
            sources=tuple(PhotoSource(**s) for s in sources),
            formats=FormatSettings(**_section(cfg, "formats")),
            tools=ToolSettings(**_section(cfg, "tools")),
            transcode=TranscodeSettings(**_section(cfg, "transcode")),
            archive=ArchiveSettings(**_section(cfg, "archive")),
        )
    except (ValidationError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_settings(explicit: Optional[str] = None) -> Settings:
    path = find_config_path(explicit)
    if path is None:
        raise ConfigurationError(
            f"No config found. Pass --config, set {CONFIG_ENV}, or create ./{CONFIG_NAME}."
        )
    return parse_settings(load_toml(path))
