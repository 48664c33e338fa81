"""Shared fixtures: a scripted stand-in for CommandRunner."""
import asyncio
from typing import Callable, Dict, Optional, Union

import pytest

from devscope.core.detector import SystemInfo
from devscope.core.models import CommandOutcome

Response = Union[CommandOutcome, Callable[[str], CommandOutcome], Exception]


def ok(stdout: str = "", stderr: str = "") -> CommandOutcome:
    return CommandOutcome(command="", success=True, stdout=stdout, stderr=stderr, exit_code=0)


def fail(stderr: str = "command not found", exit_code: Optional[int] = 127, stdout: str = "") -> CommandOutcome:
    return CommandOutcome(
        command="", success=False, stdout=stdout, stderr=stderr, exit_code=exit_code
    )


class FakeRunner:
    """
    Answers command lines from a table. Unknown commands fail the way a
    missing binary does.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Response]] = None,
        paths: Optional[Dict[str, str]] = None,
        delays: Optional[Dict[str, float]] = None,
        os_type: str = "Linux",
    ):
        self.responses = dict(responses or {})
        self.paths = dict(paths or {})
        self.delays = dict(delays or {})
        self.os_type = os_type
        self.calls = []
        self.timeouts = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def run(self, command_line: str, timeout_ms: Optional[int] = None) -> CommandOutcome:
        self.calls.append(command_line)
        self.timeouts[command_line] = timeout_ms
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(command_line)
            if delay:
                await asyncio.sleep(delay)
            else:
                await asyncio.sleep(0)

            response = self.responses.get(command_line)
            if response is None:
                return fail().model_copy(update={"command": command_line})
            if isinstance(response, Exception):
                raise response
            if callable(response):
                response = response(command_line)
            return response.model_copy(update={"command": command_line})
        finally:
            self.in_flight -= 1

    async def get_tool_path(self, command_name: str) -> Optional[str]:
        return self.paths.get(command_name)

    def count(self, command_line: str) -> int:
        return self.calls.count(command_line)


@pytest.fixture
def system_info():
    return SystemInfo(
        os_type="Linux",
        platform="Linux-6.1.0-x86_64",
        python_version="3.11.0",
        hostname="testhost",
    )


@pytest.fixture
def fake_runner():
    return FakeRunner()
