"""
Package listing and removal for npm, pip and Composer.
"""

import json
import re
import time
from typing import Any, Dict, List, Optional

from loguru import logger

from devscope.core.detector import get_command_variants
from devscope.core.models import PackageManagerName, PackageRecord

PIP_COMMAND_TTL = 5 * 60  # seconds

# npm scopes, composer vendor/package, pip extras-free names
_PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9@][A-Za-z0-9@/._+-]*$")

_NPM_WINDOWS_TREE = re.compile(r"[+`\\]-- (.+)@(.+)")
_NPM_UNIX_TREE = re.compile(r"[├└]── (.+)@(.+)")
_NPM_GENERIC = re.compile(r"\s(.+)@(\d+\.\d+\.\d+(?:-[\w.]+)?)\s*$")
_COMPOSER_LINE = re.compile(r"^([\w.-]+/[\w.-]+)\s+(v?[\d.]+(?:-[\w.]+)?)\s*(.*)$")


def _npm_record(name: str, version: str) -> PackageRecord:
    return PackageRecord(
        name=name.strip(),
        version=version.strip() or "unknown",
        location="global",
        manager=PackageManagerName.NPM,
    )


def _parse_npm_tree(output: str, pattern: re.Pattern) -> List[PackageRecord]:
    packages = []
    for line in output.splitlines():
        match = pattern.search(line)
        if match:
            packages.append(_npm_record(match.group(1), match.group(2)))
    return packages


def parse_npm_output(output: str) -> List[PackageRecord]:
    """
    Parse `npm list -g --depth=0` output.

    JSON is preferred; when it is unavailable the tree text is parsed
    (Windows ASCII, then Unix box-drawing, then a generic name@x.y.z form).
    """
    if not output or not isinstance(output, str):
        return []

    try:
        data = json.loads(output)
    except ValueError:
        data = None

    if isinstance(data, dict):
        dependencies = data.get("dependencies") or {}
        return [
            _npm_record(name, (info or {}).get("version") or "unknown")
            for name, info in dependencies.items()
        ]

    for pattern in (_NPM_WINDOWS_TREE, _NPM_UNIX_TREE, _NPM_GENERIC):
        packages = _parse_npm_tree(output, pattern)
        if packages:
            return packages
    return []


def parse_pip_output(output: str) -> List[PackageRecord]:
    """Parse `pip list --format=json`, falling back to the column table."""
    if not output or not isinstance(output, str):
        return []

    try:
        data = json.loads(output)
    except ValueError:
        data = None

    if isinstance(data, list):
        return [
            PackageRecord(
                name=str(pkg["name"]),
                version=str(pkg.get("version", "unknown")),
                location="site-packages",
                manager=PackageManagerName.PIP,
            )
            for pkg in data
            if isinstance(pkg, dict) and pkg.get("name")
        ]

    lines = output.splitlines()
    start_index = 0
    for i, line in enumerate(lines):
        if "---" in line:
            start_index = i + 1
            break

    packages = []
    for line in lines[start_index:]:
        parts = line.split()
        if len(parts) >= 2:
            packages.append(
                PackageRecord(
                    name=parts[0],
                    version=parts[1],
                    location="site-packages",
                    manager=PackageManagerName.PIP,
                )
            )
    return packages


def _composer_record(pkg: Dict[str, Any]) -> PackageRecord:
    return PackageRecord(
        name=str(pkg["name"]),
        version=str(pkg.get("version", "unknown")),
        location="global",
        manager=PackageManagerName.COMPOSER,
        description=pkg.get("description") or None,
    )


def parse_composer_output(output: str) -> List[PackageRecord]:
    """Parse `composer global show` in JSON or plain text form."""
    if not output or not isinstance(output, str):
        return []

    try:
        data = json.loads(output)
    except ValueError:
        data = None

    if isinstance(data, list):
        return [_composer_record(p) for p in data if isinstance(p, dict) and p.get("name")]
    if isinstance(data, dict):
        installed = data.get("installed") or []
        return [_composer_record(p) for p in installed if isinstance(p, dict) and p.get("name")]

    packages = []
    for line in output.splitlines():
        match = _COMPOSER_LINE.match(line.strip())
        if match:
            packages.append(
                PackageRecord(
                    name=match.group(1),
                    version=match.group(2),
                    location="global",
                    manager=PackageManagerName.COMPOSER,
                    description=match.group(3) or None,
                )
            )
    return packages


def is_valid_package_name(name: str) -> bool:
    """Reject names that could smuggle shell syntax into a command line."""
    return bool(name) and _PACKAGE_NAME_PATTERN.match(name) is not None


class PackageLister:
    """List and uninstall globally installed packages."""

    def __init__(self, runner, os_type: str):
        self.runner = runner
        self.os_type = os_type
        self._pip_command: Optional[str] = None
        self._pip_command_at = 0.0

    async def list_packages(self, manager: PackageManagerName) -> List[PackageRecord]:
        manager = PackageManagerName(manager)
        if manager is PackageManagerName.NPM:
            return await self.list_npm()
        if manager is PackageManagerName.PIP:
            return await self.list_pip()
        return await self.list_composer()

    async def list_npm(self) -> List[PackageRecord]:
        result = await self.runner.run("npm list -g --depth=0 --json")
        # npm exits non-zero on peer-dependency warnings but still prints the tree
        if not result.success and not result.stdout:
            logger.debug(f"npm list failed: {result.stderr.strip()}")
            return []
        return parse_npm_output(result.stdout)

    async def list_pip(self) -> List[PackageRecord]:
        pip_command = await self.get_working_pip_command()
        if pip_command:
            result = await self.runner.run(f"{pip_command} list --format=json")
            if result.success and result.stdout:
                return parse_pip_output(result.stdout)

        # Cached command went stale; try every variant again
        self.invalidate_pip_command()
        for command in get_command_variants("pip", self.os_type):
            result = await self.runner.run(f"{command} list --format=json")
            if result.success and result.stdout:
                self._remember_pip_command(command)
                return parse_pip_output(result.stdout)

        return []

    async def list_composer(self) -> List[PackageRecord]:
        result = await self.runner.run("composer global show --format=json")
        if not result.success and not result.stdout:
            # Older Composer releases have no --format option
            text_result = await self.runner.run("composer global show")
            if text_result.success and text_result.stdout:
                return parse_composer_output(text_result.stdout)
            return []
        return parse_composer_output(result.stdout)

    async def get_working_pip_command(self) -> Optional[str]:
        """Return the first pip invocation that answers --version (cached)."""
        if self._pip_command and time.monotonic() - self._pip_command_at < PIP_COMMAND_TTL:
            return self._pip_command

        for command in get_command_variants("pip", self.os_type):
            result = await self.runner.run(f"{command} --version")
            if result.success:
                self._remember_pip_command(command)
                return command
        return None

    def invalidate_pip_command(self) -> None:
        self._pip_command = None
        self._pip_command_at = 0.0

    def _remember_pip_command(self, command: str) -> None:
        self._pip_command = command
        self._pip_command_at = time.monotonic()

    async def uninstall_package(self, name: str, manager: PackageManagerName) -> bool:
        """
        Uninstall a package with its manager's own command.

        Returns:
            True if the package manager reported success
        """
        if not is_valid_package_name(name):
            logger.warning(f"Refusing to uninstall invalid package name: {name!r}")
            return False

        try:
            manager = PackageManagerName(manager)
        except ValueError:
            return False

        if manager is PackageManagerName.NPM:
            command = f"npm uninstall -g {name}"
        elif manager is PackageManagerName.PIP:
            pip_command = await self.get_working_pip_command() or "pip"
            command = f"{pip_command} uninstall -y {name}"
        else:
            command = f"composer global remove {name}"

        result = await self.runner.run(command, timeout_ms=120_000)
        if result.success:
            logger.info(f"Uninstalled {manager.value} package {name}")
        else:
            logger.warning(f"Failed to uninstall {manager.value} package {name}: {result.stderr.strip()}")
        return result.success

    async def is_manager_available(self, manager: PackageManagerName) -> bool:
        manager = PackageManagerName(manager)
        if manager is PackageManagerName.PIP:
            return await self.get_working_pip_command() is not None
        result = await self.runner.run(f"{manager.value} --version")
        return result.success
