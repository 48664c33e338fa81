"""
Command execution engine.
"""

import asyncio
import time
from typing import List, Optional

from loguru import logger

from devscope.core.detector import SystemInfo, get_which_command, normalize_path
from devscope.core.models import CommandOutcome

DEFAULT_TIMEOUT_MS = 5000


class CommandRunner:
    """Execute external commands without ever raising to the caller."""

    def __init__(
        self,
        system_info: SystemInfo,
        app_logger: logger,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.system_info = system_info
        self.logger = app_logger
        self.default_timeout_ms = default_timeout_ms

    @property
    def os_type(self) -> str:
        return self.system_info.os_type

    async def run(
        self,
        command_line: str,
        timeout_ms: Optional[int] = None,
    ) -> CommandOutcome:
        """
        Execute a shell command line.

        Args:
            command_line: Command line, interpreted by the platform shell
            timeout_ms: Hard timeout in milliseconds (default: runner default)

        Returns:
            CommandOutcome object. Failures of any kind (missing binary,
            non-zero exit, timeout, bad syntax) produce success=False.
        """
        timeout_ms = timeout_ms if timeout_ms is not None else self.default_timeout_ms
        start_time = time.monotonic()
        process = None

        self.logger.debug(f"Executing command: {command_line}")

        try:
            process = await asyncio.create_subprocess_shell(
                command_line,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=timeout_ms / 1000,
            )
            duration = time.monotonic() - start_time

            outcome = CommandOutcome(
                command=command_line,
                success=(process.returncode == 0),
                stdout=_decode(stdout),
                stderr=_decode(stderr),
                exit_code=process.returncode,
                duration=duration,
            )

            self.logger.debug(
                f"Command completed: {command_line} "
                f"(return code: {process.returncode}, duration: {duration:.2f}s)"
            )

            return outcome

        except asyncio.TimeoutError:
            await _terminate(process)
            duration = time.monotonic() - start_time
            self.logger.warning(f"Command timed out after {timeout_ms}ms: {command_line}")

            return CommandOutcome(
                command=command_line,
                success=False,
                stdout="",
                stderr=f"Command timed out after {timeout_ms} ms",
                exit_code=None,
                duration=duration,
            )

        except asyncio.CancelledError:
            await _terminate(process)
            raise

        except Exception as e:
            duration = time.monotonic() - start_time
            self.logger.warning(f"Command failed: {command_line} - {e}")

            return CommandOutcome(
                command=command_line,
                success=False,
                stdout="",
                stderr=str(e) or type(e).__name__,
                exit_code=None,
                duration=duration,
            )

    async def get_tool_path(self, command_name: str) -> Optional[str]:
        """Resolve the absolute path of a binary, or None."""
        paths = await self.get_all_tool_paths(command_name)
        return paths[0] if paths else None

    async def get_all_tool_paths(self, command_name: str) -> List[str]:
        """
        Resolve every location of a binary.

        `where` on Windows lists all matches, one per line.
        """
        result = await self.run(get_which_command(command_name, self.os_type))
        if not result.success or not result.stdout:
            return []
        return [
            normalize_path(line, self.os_type)
            for line in result.stdout.splitlines()
            if line.strip()
        ]


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


async def _terminate(process) -> None:
    """Kill a child that overran its budget and reap it."""
    if process is None or process.returncode is not None:
        return
    try:
        process.kill()
    except ProcessLookupError:
        return
    try:
        await asyncio.wait_for(process.wait(), timeout=1.0)
    except (asyncio.TimeoutError, ProcessLookupError):
        pass
