"""
Concurrent tool detection.
Runs every declared probe at once and reassembles results in declaration order.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from devscope.core.models import DetectionError, DetectionSummary, ToolRecord
from devscope.modules.base import BaseProbe
from devscope.modules.probes import DEFAULT_PROBES, ProbeSpec, resolve_probe_spec


@dataclass
class ParallelDetectionConfig:
    """Configuration for concurrent detection."""
    max_workers: int = 8
    timeout: float = 30  # seconds, per probe


@dataclass
class _CacheEntry:
    value: ToolRecord
    stored_at: float
    ttl: float


class DetectionCache:
    """
    TTL cache for single-tool detection results.
    """

    def __init__(self, ttl: float = 300.0):
        """
        Initialize the cache.

        Args:
            ttl: Time-to-live in seconds (default: 5 minutes)
        """
        self.default_ttl = ttl
        self._entries: Dict[str, _CacheEntry] = {}

    def get(self, tool_name: str) -> Optional[ToolRecord]:
        entry = self._entries.get(tool_name)
        if entry is None:
            return None
        if time.monotonic() - entry.stored_at > entry.ttl:
            del self._entries[tool_name]
            return None
        return entry.value

    def set(self, tool_name: str, value: ToolRecord, ttl: Optional[float] = None) -> None:
        self._entries[tool_name] = _CacheEntry(
            value=value,
            stored_at=time.monotonic(),
            ttl=self.default_ttl if ttl is None else ttl,
        )

    def invalidate(self, tool_name: str) -> None:
        self._entries.pop(tool_name, None)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def __contains__(self, tool_name: str) -> bool:
        return self.get(tool_name) is not None

    def __len__(self) -> int:
        return len(self._entries)


class DetectionOrchestrator:
    """
    Detect a fixed set of tools concurrently.
    """

    def __init__(
        self,
        runner,
        os_type: str,
        probes: Optional[Sequence[ProbeSpec]] = None,
        config: Optional[ParallelDetectionConfig] = None,
        cache: Optional[DetectionCache] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            runner: CommandRunner (or any object with the same coroutine API)
            os_type: Host OS ('Linux', 'Darwin', 'Windows')
            probes: Probe declarations, in result order
            config: Concurrency configuration
            cache: Cache used by detect_one
        """
        self.runner = runner
        self.os_type = os_type
        self.probes: List[ProbeSpec] = list(probes if probes is not None else DEFAULT_PROBES)
        self.config = config or ParallelDetectionConfig()
        self.cache = cache if cache is not None else DetectionCache()

    def build_probe(self, spec: ProbeSpec) -> BaseProbe:
        return spec.build(self.runner, self.os_type)

    async def detect_all(
        self,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> List[ToolRecord]:
        """
        Run every declared probe concurrently.

        Args:
            progress_callback: Optional callback for progress updates (completed, total)

        Returns:
            One ToolRecord per declared probe, in declaration order. Never raises;
            a probe that fails or overruns yields a degraded record.
        """
        total = len(self.probes)
        completed = 0
        semaphore = asyncio.Semaphore(self.config.max_workers)

        async def execute_with_semaphore(spec: ProbeSpec) -> ToolRecord:
            nonlocal completed
            async with semaphore:
                record = await self._run_probe(spec)
            completed += 1
            if progress_callback:
                try:
                    progress_callback(completed, total)
                except Exception as e:
                    logger.warning(f"Progress callback failed: {e}")
            return record

        # gather keeps submission order regardless of completion order
        results = await asyncio.gather(
            *(execute_with_semaphore(spec) for spec in self.probes)
        )

        for record in results:
            self.cache.set(record.name.lower(), record)

        logger.info(
            f"Detected {sum(1 for r in results if r.is_installed)}/{total} tools"
        )
        return list(results)

    async def detect_all_with_summary(
        self,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> Tuple[List[ToolRecord], DetectionSummary]:
        """Detect all tools and summarize successes and failures."""
        start_time = time.monotonic()
        tools = await self.detect_all(progress_callback)

        errors = [
            DetectionError(tool_name=t.name, error_reason=t.error_reason)
            for t in tools
            if not t.is_installed and t.error_reason
        ]
        summary = DetectionSummary(
            total_tools=len(tools),
            success_count=sum(1 for t in tools if t.is_installed),
            failure_count=sum(1 for t in tools if not t.is_installed),
            total_time=time.monotonic() - start_time,
            errors=errors,
        )
        return tools, summary

    async def detect_one(
        self,
        name: str,
        force_refresh: bool = False,
        version_flag: Optional[str] = None,
    ) -> ToolRecord:
        """
        Detect a single tool by name.

        Args:
            name: Tool identifier or arbitrary command name
            force_refresh: Bypass the cache
            version_flag: Version flag for commands outside the known set

        Returns:
            ToolRecord (degraded when the tool is missing)
        """
        spec = resolve_probe_spec(name, version_flag)
        cache_key = spec.name.lower()

        if not force_refresh and version_flag is None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached

        record = await self._run_probe(spec)
        self.cache.set(cache_key, record)
        return record

    def invalidate_cache(self, name: Optional[str] = None) -> None:
        if name is None:
            self.cache.invalidate_all()
        else:
            self.cache.invalidate(resolve_probe_spec(name).name.lower())

    async def _run_probe(self, spec: ProbeSpec) -> ToolRecord:
        """Run one probe, converting timeouts and crashes into degraded records."""
        probe = self.build_probe(spec)
        try:
            return await asyncio.wait_for(probe.probe(), timeout=self.config.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Probe for {spec.name} timed out after {self.config.timeout}s")
            return probe.unavailable("Detection timed out")
        except Exception as e:
            logger.error(f"Probe for {spec.name} crashed: {e}")
            return probe.unavailable(str(e) or "Detection failed")
