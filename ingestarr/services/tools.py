# ingestarr/services/tools.py
# External tools (ffmpeg, 7-Zip): explicit argv, no shell, output captured,
# reduced priority, cancellable while running.
from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..core.cancellation import CancellationToken
from ..core.errors import ExternalToolError, OperationCancelled, ProcessingError

LOGGER = logging.getLogger("ingestarr.tools")


@dataclass(frozen=True)
class ToolResult:
    argv: List[str]
    returncode: int
    stdout: str
    stderr: str


def lower_process_priority(niceness: int) -> None:
    """Don't grab all the CPU: lower this process (and so its children)."""
    if niceness <= 0:
        return
    if hasattr(os, "nice"):
        os.nice(niceness)
    else:
        LOGGER.debug("Process priority unchanged: os.nice unavailable on this platform")


def _priority_kwargs(niceness: int) -> dict:
    if niceness <= 0:
        return {}
    if os.name == "posix":
        return {"preexec_fn": lambda: os.nice(niceness)}
    if os.name == "nt":
        return {"creationflags": subprocess.BELOW_NORMAL_PRIORITY_CLASS}
    return {}


def _stop(proc: subprocess.Popen) -> None:
    proc.terminate()
    try:
        proc.communicate(timeout=10)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.communicate()


def run_tool(argv: Sequence[str], *, failure_exit_code: int = 1,
             token: Optional[CancellationToken] = None, niceness: int = 0,
             poll_interval: float = 0.5) -> ToolResult:
    """
    Run one external tool to completion.
    Exit codes at or above `failure_exit_code` (or death by signal) raise
    ExternalToolError carrying stdout/stderr. A cancelled token terminates
    the child and raises OperationCancelled.
    """
    argv = [str(a) for a in argv]
    if token is not None:
        token.raise_if_cancelled()

    LOGGER.debug("exec: %s", argv)
    try:
        proc = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            **_priority_kwargs(niceness),
        )
    except OSError as e:
        raise ProcessingError(f"cannot start {argv[0]}: {e}") from e

    while True:
        try:
            stdout, stderr = proc.communicate(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            if token is not None and token.cancelled:
                _stop(proc)
                raise OperationCancelled(f"{argv[0]} terminated ({token.reason})")

    if proc.returncode < 0 or proc.returncode >= failure_exit_code:
        raise ExternalToolError(argv, proc.returncode, stdout, stderr)
    return ToolResult(argv=argv, returncode=proc.returncode, stdout=stdout or "", stderr=stderr or "")
