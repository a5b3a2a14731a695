"""
Async subprocess execution shared by the git and docker CLI wrappers.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of one external command."""
    return_code: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.return_code == 0 and not self.timed_out

    def output_tail(self, lines: int = 20) -> str:
        """Last few lines of combined output, for error messages."""
        combined = "\n".join(part for part in (self.stdout, self.stderr) if part)
        return "\n".join(combined.splitlines()[-lines:])


async def run_command(
    cmd: List[str],
    timeout: Optional[float] = None,
    cwd: Optional[str] = None,
    env: Optional[Dict[str, str]] = None,
) -> CommandResult:
    """
    Run a command via subprocess.

    Args:
        cmd: Command arguments
        timeout: Timeout in seconds; the process is killed when it expires
        cwd: Working directory
        env: Full environment for the child process

    Returns:
        CommandResult; never raises for command failures
    """
    logger.debug(f"Running command: {' '.join(cmd)}")

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Command failed to start: {e}")
        return CommandResult(return_code=-1, stdout="", stderr=str(e))

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Command timed out after {timeout}s: {' '.join(cmd)}")
        await _kill(process)
        return CommandResult(
            return_code=-1,
            stdout="",
            stderr=f"Command timed out after {timeout} seconds",
            timed_out=True,
        )
    except asyncio.CancelledError:
        await _kill(process)
        raise

    return CommandResult(
        return_code=process.returncode,
        stdout=stdout.decode(errors="replace").strip() if stdout else "",
        stderr=stderr.decode(errors="replace").strip() if stderr else "",
    )


async def _kill(process: asyncio.subprocess.Process) -> None:
    """Kill and reap a child that may already have exited."""
    try:
        process.kill()
    except ProcessLookupError:
        logger.debug(f"Process {process.pid} already exited")
    await process.wait()
