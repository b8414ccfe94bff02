# ingestarr/repositories/ledger.py
# Per-destination-folder ledger of imported files.
# - One ordered dict keyed by case-folded destination name (no list+index to keep in sync)
# - Loaded once per run, mutated in memory, saved once at end-of-run
# - Save never leaves the canonical path empty of both old and new content for long:
#   write .tmp, displace old to .tmp2, move .tmp in, delete .tmp2

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from ..core.errors import LedgerCorrupt
from ..schemas.ledger import ImportRecord, ledger_key

LOGGER = logging.getLogger("ingestarr.ledger")

_RECORDS = TypeAdapter(List[ImportRecord])


def _tmp_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp")


def _displaced_path(path: Path) -> Path:
    return path.with_name(path.name + ".tmp2")


class MetadataLedger:
    """Import records for one destination folder, bound to one JSON file."""

    def __init__(self, path_and_filename: Path, records: Iterable[ImportRecord] = ()) -> None:
        self.path_and_filename = Path(path_and_filename)
        self._by_name: Dict[str, ImportRecord] = {}
        for r in records:
            if r.key in self._by_name:
                raise LedgerCorrupt(self.path_and_filename,
                                    f"duplicate entry for {r.destination_filename!r}")
            self._by_name[r.key] = r

    # ---------- queries ----------

    @property
    def records(self) -> List[ImportRecord]:
        """Records in display order (by source filename)."""
        return sorted(self._by_name.values(),
                      key=lambda r: (r.source_filename, r.destination_filename))

    def find(self, destination_name: str) -> Optional[ImportRecord]:
        return self._by_name.get(ledger_key(destination_name))

    def __contains__(self, destination_name: object) -> bool:
        return isinstance(destination_name, str) and ledger_key(destination_name) in self._by_name

    def __len__(self) -> int:
        return len(self._by_name)

    def __repr__(self) -> str:
        return f"MetadataLedger({str(self.path_and_filename)!r}, records={len(self)})"

    # ---------- mutation ----------

    def get_or_add_file(self, destination_name: str,
                        make_record: Callable[[], ImportRecord]) -> Tuple[ImportRecord, bool]:
        """
        Idempotent upsert. Returns (record, existed).
        The factory is only called when no record exists for the name.
        """
        key = ledger_key(destination_name)
        existing = self._by_name.get(key)
        if existing is not None:
            return existing, True

        record = make_record()
        if record.key != key:
            raise ValueError(
                f"record for {record.destination_filename!r} cannot be filed under {destination_name!r}"
            )
        self._by_name[key] = record
        return record, False

    def remove(self, record: ImportRecord) -> None:
        """Undo a just-created record."""
        if self._by_name.get(record.key) is record:
            del self._by_name[record.key]

    # ---------- persistence ----------

    @classmethod
    def load_from_file(cls, path: Path) -> "MetadataLedger":
        """
        Missing file -> empty ledger bound to `path`.
        Malformed file -> LedgerCorrupt (never silently drop provenance).
        Only the canonical path is read; leftovers of an interrupted save are
        reported and replaced by the next save.
        """
        path = Path(path)
        for leftover in (_tmp_path(path), _displaced_path(path)):
            if leftover.exists():
                LOGGER.warning("Ignoring leftover from an interrupted save: %s", leftover)
        if not path.exists():
            return cls(path)

        try:
            raw = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as e:
            raise LedgerCorrupt(path, f"not valid UTF-8 ({e})") from e

        try:
            records = _RECORDS.validate_json(raw)
        except ValidationError as e:
            raise LedgerCorrupt(path, str(e)) from e

        return cls(path, records)

    def save_to_file(self) -> bool:
        """Persist all records. Returns False when there was nothing to write."""
        path = self.path_and_filename
        if not self._by_name and not path.exists():
            return False

        content = json.dumps([r.to_json_dict() for r in self.records], indent=2, ensure_ascii=False)
        tmp = _tmp_path(path)
        displaced = _displaced_path(path)

        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8", newline="\n") as f:
            f.write(content)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())

        if path.exists():
            os.replace(path, displaced)
        os.replace(tmp, path)
        if displaced.exists():
            displaced.unlink()
        return True
