# ingestarr/services/decision.py
# Whether a candidate destination needs (re)processing.
#
# MIN_EXISTING_LENGTH is a heuristic: a destination file at or below it is
# treated as a partial write from an interrupted run, not as a real import.
# A legitimately tiny source file is subject to the same rule.
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..schemas.ledger import ImportRecord

MIN_EXISTING_LENGTH = 1024

SKIP_ALREADY_COPIED = "Already copied"
SKIP_MISSING_FROM_DISK = "Previously processed, but missing from disk"


class Action(str, Enum):
    PROCESS = "process"
    SKIP = "skip"


@dataclass(frozen=True)
class Decision:
    action: Action
    reason: str = ""
    forced: bool = False   # previous run left a stub; reprocess despite the ledger entry

    @property
    def process(self) -> bool:
        return self.action is Action.PROCESS

def on_disk_length(p: Path) -> int:
    """Length of the file at `p`, or 0 when nothing is there."""
    try:
        return p.stat().st_size if p.is_file() else 0
    except FileNotFoundError:
        return 0


def decide(existed_in_ledger: bool, record: ImportRecord, destination_length: int,
           threshold: int = MIN_EXISTING_LENGTH) -> Decision:
    """
    destination_length: bytes at the destination path, 0 if absent.
    Rules, in priority order:
      1) exists_on_disk: longer than the threshold
      2) exists_in_ledger: getOrAddFile found a record
      3) previous_processing_error: disk shows a stub or nothing, the ledger
         has the name, and the ledger says the source was longer than the threshold
      4) process on (3) or when neither disk nor ledger know the file
    """
    exists_on_disk = destination_length > threshold
    previous_processing_error = (
        not exists_on_disk
        and existed_in_ledger
        and record.original_length > threshold
    )

    if previous_processing_error:
        return Decision(Action.PROCESS, "Error during previous processing run", forced=True)
    if not exists_on_disk and not existed_in_ledger:
        return Decision(Action.PROCESS)
    if exists_on_disk:
        return Decision(Action.SKIP, SKIP_ALREADY_COPIED)
    return Decision(Action.SKIP, SKIP_MISSING_FROM_DISK)
