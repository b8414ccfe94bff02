# ingestarr/core/errors.py
# Error kinds. Only file-local errors (ProcessingError and plain OSError during a
# file) are caught and rolled back by the pipeline; the rest end the run.

from __future__ import annotations

from typing import Optional, Sequence


class IngestarrError(RuntimeError):
    """Base error type."""


class ConfigurationError(IngestarrError):
    """Config contract violation, or the destination root is missing."""


class LedgerCorrupt(IngestarrError):
    """A ledger file exists but cannot be parsed."""

    def __init__(self, path, detail: str) -> None:
        super().__init__(f"Ledger file is corrupt: {path}: {detail}")
        self.path = path
        self.detail = detail


class ProcessingError(IngestarrError):
    """A type processor failed for one file."""


class ExternalToolError(ProcessingError):
    """An external tool exited at or above its failure threshold."""

    def __init__(self, argv: Sequence[str], returncode: int,
                 stdout: Optional[str], stderr: Optional[str]) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        super().__init__(
            f"{_exe_name(self.argv[0])} exited {returncode}\n"
            f"--- stdout ---\n{self.stdout.strip()}\n"
            f"--- stderr ---\n{self.stderr.strip()}"
        )


class OperationCancelled(ProcessingError):
    """The cancellation token fired while a file was in flight."""


def _exe_name(exe: str) -> str:
    # "C:/tools/7z.exe" -> "7z.exe"; keeps messages short
    return exe.replace("\\", "/").rsplit("/", 1)[-1]
