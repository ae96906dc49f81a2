"""Async external command runner.

Build, pull and publish actions are opaque shell commands (``make image
I=app HASH=...``, ``make upload T=lang L=python``).  This module is the
single place they are spawned, so tests can replace ``run_command``
wholesale.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class CommandError(RuntimeError):
    """Raised when an external command exits non-zero or cannot be spawned."""

    def __init__(self, command: str, returncode: int | None, stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Command failed ({returncode}): {command}{detail}")


@dataclass(frozen=True)
class CommandResult:
    command: str
    returncode: int
    stdout: str = ""
    stderr: str = ""


async def run_command(
    command: str,
    *,
    cwd: Path | None = None,
    capture: bool = False,
    check: bool = True,
    timeout: float | None = None,
) -> CommandResult:
    """Run *command* through the shell and wait for it.

    Parameters
    ----------
    command:
        Shell command line.
    cwd:
        Working directory; the current one if None.
    capture:
        Capture stdout/stderr instead of inheriting the terminal.
    check:
        Raise ``CommandError`` on a non-zero exit status.
    timeout:
        Seconds before the process is killed and ``CommandError`` raised.
    """
    logger.debug("$ %s", command)
    pipe = asyncio.subprocess.PIPE if capture else None
    try:
        process = await asyncio.create_subprocess_shell(
            command, cwd=cwd, stdout=pipe, stderr=pipe
        )
    except OSError as exc:
        raise CommandError(command, None, str(exc)) from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise CommandError(command, None, f"timed out after {timeout}s") from exc
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    result = CommandResult(
        command=command,
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=(stdout or b"").decode("utf-8", errors="replace"),
        stderr=(stderr or b"").decode("utf-8", errors="replace"),
    )
    if check and result.returncode != 0:
        raise CommandError(command, result.returncode, result.stderr)
    return result
