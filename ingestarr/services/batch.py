# ingestarr/services/batch.py
# One pass over every configured source:
#   - verify the destination root, lower our priority
#   - walk each source (sorted, junk pruned) and import file by file
#   - stop between files when cancelled
#   - flush every touched ledger at the end, cancelled or not
from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..core.cancellation import CancellationToken
from ..core.config import PhotoSource, Settings
from ..core.errors import ConfigurationError
from ..core.logsetup import get_logger, source_logger
from ..repositories.ledger import MetadataLedger
from ..utils.files import iter_source_files
from .metadata import TagReader, read_tags
from .pipeline import FileOutcome, FileStatus, ImportPipeline
from .tools import lower_process_priority


@dataclass
class SourceStats:
    label: str
    path: Path
    found: bool = True
    counts: Counter = field(default_factory=Counter)

    def add(self, outcome: FileOutcome) -> None:
        self.counts[outcome.status.value] += 1

    @property
    def scanned(self) -> int:
        return sum(self.counts.values())

    def line(self) -> str:
        parts = ", ".join(f"{s.value}={self.counts[s.value]}" for s in FileStatus)
        return f"scanned={self.scanned}, {parts}"


@dataclass
class BatchSummary:
    sources: List[SourceStats] = field(default_factory=list)
    cancelled: bool = False
    ledgers_saved: int = 0
    elapsed: float = 0.0

    @property
    def totals(self) -> Counter:
        total: Counter = Counter()
        for s in self.sources:
            total.update(s.counts)
        return total

    @property
    def errors(self) -> int:
        return self.totals[FileStatus.ERROR.value]


class BatchDriver:
    def __init__(self, settings: Settings, token: Optional[CancellationToken] = None, *,
                 reader: TagReader = read_tags, pipeline: Optional[ImportPipeline] = None) -> None:
        self.settings = settings
        self.token = token or CancellationToken()
        self.ledgers: Dict[str, MetadataLedger] = {}
        self.pipeline = pipeline or ImportPipeline(settings, self.ledgers, reader=reader, token=self.token)
        self.log = get_logger()

    def check_destination(self) -> None:
        root = self.settings.destination_path
        if not root.is_dir():
            raise ConfigurationError(f"Destination folder does not exist: {root}")

    def run(self) -> BatchSummary:
        self.check_destination()
        lower_process_priority(self.settings.tools.niceness)

        summary = BatchSummary()
        t0 = time.perf_counter()
        try:
            for source in self.settings.sources:
                if self.token.cancelled:
                    break
                summary.sources.append(self.run_source(source))
        finally:
            summary.ledgers_saved = self.flush()
            summary.cancelled = self.token.cancelled
            summary.elapsed = time.perf_counter() - t0

        self.log_summary(summary)
        return summary

    def run_source(self, source: PhotoSource) -> SourceStats:
        stats = SourceStats(label=source.label, path=source.path)
        ctx = source_logger(source.label)
        if not source.path.is_dir():
            stats.found = False
            ctx.warning("SKIP %s: path not found -> %s", source.label, source.path)
            return stats

        ctx.info("=== %s (%s) ===", source.label, source.path)
        t0 = time.perf_counter()
        for p in iter_source_files(source.path):
            if self.token.cancelled:
                ctx.info("Cancelled (%s); stopping before %s", self.token.reason, p.name)
                break
            stats.add(self.pipeline.import_file(p, source, ctx))
        ctx.info("Summary %s: %s (%.1fs)", source.label, stats.line(), time.perf_counter() - t0)
        return stats

    def flush(self) -> int:
        """Save every ledger loaded during this run. Returns how many were written."""
        saved = 0
        for ledger in self.ledgers.values():
            if ledger.save_to_file():
                saved += 1
                self.log.debug("Saved %s (%d records)", ledger.path_and_filename, len(ledger))
        return saved

    def log_summary(self, summary: BatchSummary) -> None:
        totals = summary.totals
        parts = ", ".join(f"{s.value}={totals[s.value]}" for s in FileStatus)
        self.log.info("TOTALS: scanned=%d, %s", sum(totals.values()), parts)
        if summary.cancelled:
            self.log.info("Run cancelled; ledgers saved: %d", summary.ledgers_saved)
        self.log.info("=== Import complete. Total time: %.1f seconds ===", summary.elapsed)
