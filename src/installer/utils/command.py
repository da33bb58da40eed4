"""Async subprocess execution with timeouts and consistent logging."""

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from installer.errors import CommandError

logger = logging.getLogger("installer.command")


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


async def run_command(
    argv: Sequence[str],
    *,
    timeout: float,
    check: bool = True,
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[str] = None,
) -> CmdResult:
    """Run a command without a shell and capture its output.

    Args:
        argv: Program and arguments
        timeout: Seconds before the process is killed
        check: Raise CommandError on non-zero exit
        env: Extra environment variables (merged over os.environ)
        cwd: Working directory

    Returns:
        CmdResult with decoded stdout/stderr

    Raises:
        CommandError: If the program is missing, times out, or (with check) exits non-zero
    """
    argv_list = [str(a) for a in argv]
    printable = format_argv(argv_list)
    logger.debug(f"CMD {printable}")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv_list,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env={**os.environ, **(env or {})},
        )
    except OSError as e:
        raise CommandError(printable, f"could not start: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise CommandError(printable, f"timed out after {timeout}s") from e

    result = CmdResult(
        argv=argv_list,
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )

    if check and result.returncode != 0:
        raise CommandError(
            printable,
            f"exit code {result.returncode}, stderr: {result.stderr.strip()}",
            returncode=result.returncode,
            stderr=result.stderr,
        )

    return result
