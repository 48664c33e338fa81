"""
Base probe class.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from loguru import logger

from devscope.core.models import CommandOutcome, ToolCategory, ToolRecord
from devscope.modules.install_method import classify_install_method
from devscope.modules.version import parse_version

NOT_FOUND_REASON = "Tool not found"


class BaseProbe(ABC):
    """
    Base class for all tool probes.

    A probe runs `<command> <version_flag>` for each candidate command in
    turn. The first command that succeeds yields a fully populated
    ToolRecord; if none does, a degraded record (is_installed=False) is
    returned instead. probe() never raises.
    """

    name: str = ""
    display_name: str = ""
    category: ToolCategory = ToolCategory.TOOL
    version_flag: str = "--version"

    def __init__(self, runner, os_type: str):
        self.runner = runner
        self.os_type = os_type

    @abstractmethod
    def commands(self) -> List[str]:
        """
        Candidate command invocations, in the order to try them.

        Returns:
            Non-empty list of commands (without the version flag)
        """
        pass

    def path_lookup_name(self, command: str) -> str:
        """Binary to resolve on PATH for a command that answered."""
        return command.split()[0]

    def parse_output(self, outcome: CommandOutcome) -> Optional[str]:
        """Extract the version; some tools (java -version) write to stderr."""
        return parse_version(outcome.stdout.strip() or outcome.stderr).version

    async def probe(self) -> ToolRecord:
        """Detect the tool."""
        try:
            for command in self.commands():
                outcome = await self.runner.run(f"{command} {self.version_flag}")
                if outcome.success:
                    return await self._installed(command, outcome)

            fallback = await self.fallback()
            if fallback is not None:
                return fallback

            return self.unavailable()
        except Exception as e:
            logger.warning(f"Probe for {self.name} failed: {e}")
            return self.unavailable(str(e) or NOT_FOUND_REASON)

    async def fallback(self) -> Optional[ToolRecord]:
        """Platform-specific last resort when no command answered."""
        return None

    def unavailable(self, error_reason: str = NOT_FOUND_REASON) -> ToolRecord:
        """Degraded record for a tool that could not be detected."""
        return ToolRecord(
            name=self.name,
            display_name=self.display_name,
            is_installed=False,
            category=self.category,
            error_reason=error_reason,
        )

    async def _installed(self, command: str, outcome: CommandOutcome) -> ToolRecord:
        version = self.parse_output(outcome)
        path = await self.runner.get_tool_path(self.path_lookup_name(command))

        return ToolRecord(
            name=self.name,
            display_name=self.display_name,
            version=version,
            path=path,
            is_installed=True,
            install_method=classify_install_method(path, self.os_type),
            category=self.category,
        )
