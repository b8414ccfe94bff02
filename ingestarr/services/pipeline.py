# ingestarr/services/pipeline.py
# Per-file import: date -> destination -> ledger -> decision -> process -> record.
# Any failure after the ledger is loaded rolls back this attempt:
#   - a record minted by this attempt is removed from the ledger
#   - output written by this attempt is deleted (a failed delete is logged)
# so the next run classifies the file exactly as this run did.
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..core.cancellation import CancellationToken
from ..core.config import PhotoSource, Settings
from ..core.errors import LedgerCorrupt
from ..core.logsetup import get_error_logger, get_logger
from ..repositories.ledger import MetadataLedger
from ..schemas.ledger import ImportRecord
from ..utils.files import ensure_folder_for, remove_if_exists
from .dates import local_view, resolve_capture_date
from .decision import decide, on_disk_length
from .destination import resolve_destination
from .metadata import TagReader, read_tags
from .processors import ProcessJob, classify, destination_extension, process


class FileStatus(str, Enum):
    PROCESSED = "processed"
    REPROCESSED = "reprocessed"
    SKIPPED = "skipped"
    TOO_OLD = "too_old"
    ERROR = "error"


@dataclass(frozen=True)
class FileOutcome:
    source: Path
    status: FileStatus
    message: str
    destination: Optional[Path] = None
    elapsed_ms: float = 0.0


def _now() -> datetime:
    return datetime.now().astimezone()


def ledger_key_for(folder: Path) -> str:
    return os.path.normcase(str(folder))


class _Attempt:
    """What this attempt changed, so it can be undone."""

    def __init__(self) -> None:
        self.ledger: Optional[MetadataLedger] = None
        self.record: Optional[ImportRecord] = None
        self.minted = False
        self.output: Optional[Path] = None

    def clear_destination(self, dest: Path) -> None:
        """Drop a stub left by an interrupted run; from here on `dest` is ours."""
        self.output = dest
        remove_if_exists(dest)

    def rollback(self, label: str) -> None:
        if self.minted and self.ledger is not None and self.record is not None:
            self.ledger.remove(self.record)
        if self.output is not None:
            try:
                remove_if_exists(self.output)
            except OSError:
                get_error_logger().error("Could not remove partial output '%s'", self.output,
                                         exc_info=True, extra={"source": label})


class ImportPipeline:
    """Runs one file at a time against the ledgers borrowed from the batch driver."""

    def __init__(self, settings: Settings, ledgers: Dict[str, MetadataLedger], *,
                 reader: TagReader = read_tags,
                 token: Optional[CancellationToken] = None,
                 clock: Callable[[], datetime] = _now) -> None:
        self.settings = settings
        self.ledgers = ledgers
        self.reader = reader
        self.token = token
        self.clock = clock

    def ledger_for(self, folder: Path) -> MetadataLedger:
        """Load a folder's ledger the first time a file maps into it."""
        key = ledger_key_for(folder)
        ledger = self.ledgers.get(key)
        if ledger is None:
            ledger = MetadataLedger.load_from_file(folder / self.settings.ledger_filename)
            self.ledgers[key] = ledger
        return ledger

    def import_file(self, path: Path, source: PhotoSource,
                    log: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None) -> FileOutcome:
        log = log or get_logger()
        settings = self.settings
        t0 = time.perf_counter()
        attempt = _Attempt()
        dest_path: Optional[Path] = None

        def done(status: FileStatus, message: str) -> FileOutcome:
            elapsed = (time.perf_counter() - t0) * 1000
            log.info("%s: %s (%.0fms).", path.name, message, elapsed)
            return FileOutcome(path, status, message, dest_path, elapsed)

        try:
            captured = resolve_capture_date(path, source.timestamps, self.reader)
            local = local_view(captured)
            if local < settings.effective_from:
                return done(FileStatus.TOO_OLD,
                            f"Older than {settings.effective_from:%Y-%m-%d}, not processing")

            kind = classify(path, settings)
            dest = resolve_destination(local, path.name, source, settings,
                                       destination_extension(kind, settings))
            dest_path = dest.path

            ledger = self.ledger_for(dest.folder)
            attempt.ledger = ledger

            length = on_disk_length(dest.path)
            record, existed = ledger.get_or_add_file(dest.filename, lambda: ImportRecord(
                destination_filename=dest.filename,
                source_filename=path.name,
                prefix=source.prefix,
                original_length=path.stat().st_size,
                processing_datestamp=self.clock(),
            ))
            attempt.record = record
            attempt.minted = not existed

            decision = decide(existed, record, length, settings.min_existing_length)
            if not decision.process:
                return done(FileStatus.SKIPPED, decision.reason)

            if decision.forced:
                log.info("%s: %s - attempting to reprocess.", path.name, decision.reason)

            ensure_folder_for(dest.path)
            attempt.clear_destination(dest.path)
            process(kind, ProcessJob(
                source=path,
                destination=dest.path,
                photo_source=source,
                capture_local=local,
                settings=settings,
                token=self.token,
            ))

            if decision.forced:
                record.original_length = path.stat().st_size
                record.processing_datestamp = self.clock()
                return done(FileStatus.REPROCESSED, "Reprocessed OK")
            return done(FileStatus.PROCESSED, "Processed OK")

        except LedgerCorrupt:
            raise
        except Exception as e:
            # Catch-all so one bad file doesn't kill the batch
            attempt.rollback(source.label)
            get_error_logger().error("Error processing '%s'", path, exc_info=True,
                                     extra={"source": source.label})
            return done(FileStatus.ERROR,
                        f"Error - {type(e).__name__}: {e}. See error log for stack trace")
