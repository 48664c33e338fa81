"""
Domain state for tools, packages, services and environment.

Each domain holds its data together with a loading flag and the last error.
A successful load replaces the data in a single assignment; a failed load
records the error and leaves the previous data in place.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Union

from loguru import logger

from devscope.core.config import AppConfig
from devscope.core.detector import SystemInfo
from devscope.core.executor import CommandRunner
from devscope.core.models import (
    EnvVarRecord,
    PackageManagerName,
    PackageRecord,
    PathEntryAnalysis,
    ServiceRecord,
    ToolRecord,
)
from devscope.modules.environment import EnvironmentScanner
from devscope.modules.packages import PackageLister
from devscope.modules.path_analyzer import analyze_path_entries
from devscope.modules.services import ProcessLister
from devscope.parallel.executor import (
    DetectionCache,
    DetectionOrchestrator,
    ParallelDetectionConfig,
)
from devscope.parallel.monitor import ServicePoller

ALL_MANAGERS = "all"


@dataclass
class ToolsState:
    tools: List[ToolRecord] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


@dataclass
class PackagesState:
    npm: List[PackageRecord] = field(default_factory=list)
    pip: List[PackageRecord] = field(default_factory=list)
    composer: List[PackageRecord] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None

    def for_manager(self, manager: PackageManagerName) -> List[PackageRecord]:
        return getattr(self, PackageManagerName(manager).value)

    def all_packages(self) -> List[PackageRecord]:
        return self.npm + self.pip + self.composer


@dataclass
class ServicesState:
    services: List[ServiceRecord] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


@dataclass
class EnvironmentState:
    variables: List[EnvVarRecord] = field(default_factory=list)
    path_entries: List[str] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


def _describe(error: Exception) -> str:
    return str(error) or error.__class__.__name__


class DomainStore:
    """
    Load and hold the four inventory domains.

    Domains are independent: a failure in one never touches the data or
    error of another. Two concurrent loads of the same domain are not
    deduplicated; whichever finishes last wins.
    """

    def __init__(
        self,
        detector: DetectionOrchestrator,
        packages: PackageLister,
        services: ProcessLister,
        environment: EnvironmentScanner,
        poll_interval_ms: int = 5000,
    ):
        self.detector = detector
        self.package_lister = packages
        self.process_lister = services
        self.scanner = environment
        self.poll_interval_ms = poll_interval_ms

        self.tools = ToolsState()
        self.packages = PackagesState()
        self.services = ServicesState()
        self.environment = EnvironmentState()

    @classmethod
    def from_config(cls, config: AppConfig, system_info: SystemInfo, app_logger) -> "DomainStore":
        """Wire a store with real command runners for this machine."""
        runner = CommandRunner(system_info, app_logger, config.command_timeout_ms)
        os_type = system_info.os_type
        detector = DetectionOrchestrator(
            runner,
            os_type,
            config=ParallelDetectionConfig(
                max_workers=config.max_workers,
                timeout=config.probe_timeout,
            ),
            cache=DetectionCache(ttl=config.cache_ttl),
        )
        return cls(
            detector=detector,
            packages=PackageLister(runner, os_type),
            services=ProcessLister(runner, os_type),
            environment=EnvironmentScanner(os_type),
            poll_interval_ms=config.poll_interval_ms,
        )

    # Loads

    async def load_tools(self) -> None:
        self.tools.loading = True
        self.tools.error = None
        try:
            self.tools.tools = await self.detector.detect_all()
        except Exception as e:
            logger.error(f"Tool detection failed: {e}")
            self.tools.error = _describe(e)
        finally:
            self.tools.loading = False

    async def load_packages(
        self, manager: Union[PackageManagerName, str] = ALL_MANAGERS
    ) -> None:
        """
        Reload one manager's packages, or all three concurrently.

        Args:
            manager: 'npm', 'pip', 'composer' or 'all'
        """
        if manager == ALL_MANAGERS:
            managers = list(PackageManagerName)
        else:
            managers = [PackageManagerName(manager)]

        self.packages.loading = True
        self.packages.error = None
        try:
            results = await asyncio.gather(
                *(self.package_lister.list_packages(m) for m in managers),
                return_exceptions=True,
            )
            errors = []
            for m, result in zip(managers, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    logger.error(f"Listing {m.value} packages failed: {result}")
                    errors.append(f"{m.value}: {_describe(result)}")
                else:
                    setattr(self.packages, m.value, result)
            if errors:
                self.packages.error = "; ".join(errors)
        finally:
            self.packages.loading = False

    async def load_services(self) -> None:
        self.services.loading = True
        self.services.error = None
        try:
            self.services.services = await self.process_lister.list_services()
        except Exception as e:
            logger.error(f"Service listing failed: {e}")
            self.services.error = _describe(e)
        finally:
            self.services.loading = False

    async def load_environment(self) -> None:
        self.environment.loading = True
        self.environment.error = None
        try:
            variables = self.scanner.get_environment_variables()
            path_entries = self.scanner.get_path_entries()
        except Exception as e:
            logger.error(f"Environment scan failed: {e}")
            self.environment.error = _describe(e)
        else:
            self.environment.variables = variables
            self.environment.path_entries = path_entries
        finally:
            self.environment.loading = False

    async def refresh_all(self) -> None:
        """Reload every domain concurrently; returns once all have settled."""
        await asyncio.gather(
            self.load_tools(),
            self.load_packages(),
            self.load_services(),
            self.load_environment(),
        )

    async def detect_one(self, name: str, version_flag: Optional[str] = None) -> ToolRecord:
        """
        Re-detect a single tool and replace its entry in the tools list.

        The record is appended when the tool was not part of the list yet.
        """
        record = await self.detector.detect_one(name, force_refresh=True, version_flag=version_flag)

        tools = list(self.tools.tools)
        for i, existing in enumerate(tools):
            if existing.name == record.name:
                tools[i] = record
                break
        else:
            tools.append(record)
        self.tools.tools = tools
        return record

    # Actions

    async def kill_service(self, pid: int) -> bool:
        try:
            killed = await self.process_lister.kill_service(pid)
        except Exception as e:
            logger.error(f"Killing process {pid} failed: {e}")
            return False

        if killed:
            self.services.services = [s for s in self.services.services if s.pid != pid]
        return killed

    async def uninstall_package(self, name: str, manager: Union[PackageManagerName, str]) -> bool:
        try:
            manager = PackageManagerName(manager)
        except ValueError:
            logger.warning(f"Unknown package manager: {manager}")
            return False

        try:
            removed = await self.package_lister.uninstall_package(name, manager)
        except Exception as e:
            logger.error(f"Uninstalling {name} failed: {e}")
            return False

        if removed:
            remaining = [p for p in self.packages.for_manager(manager) if p.name != name]
            setattr(self.packages, manager.value, remaining)
        return removed

    # Queries

    def is_tool_installed(self, name: str) -> bool:
        key = name.lower()
        return any(t.is_installed for t in self.tools.tools if t.name.lower() == key)

    def get_tool(self, name: str) -> Optional[ToolRecord]:
        key = name.lower()
        for tool in self.tools.tools:
            if tool.name.lower() == key:
                return tool
        return None

    def path_analysis(self) -> List[PathEntryAnalysis]:
        return analyze_path_entries(self.environment.path_entries)

    def clear_errors(self) -> None:
        self.tools.error = None
        self.packages.error = None
        self.services.error = None
        self.environment.error = None

    def errors(self) -> dict:
        """Current error per domain, omitting domains without one."""
        states = {
            "tools": self.tools,
            "packages": self.packages,
            "services": self.services,
            "environment": self.environment,
        }
        return {name: state.error for name, state in states.items() if state.error}

    def create_service_poller(self) -> ServicePoller:
        """
        Build a poller whose results replace the services list and whose
        failures set the services error.
        """
        poller = ServicePoller(
            self.process_lister.list_services,
            interval_ms=self.poll_interval_ms,
            on_error=self._on_poll_error,
        )
        poller.add_listener(self._on_poll_result)
        return poller

    def _on_poll_result(self, services: List[ServiceRecord]) -> None:
        self.services.services = services
        self.services.error = None

    def _on_poll_error(self, error: Exception) -> None:
        self.services.error = _describe(error)
