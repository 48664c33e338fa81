"""
Running service discovery (processes listening on TCP ports).
"""

import asyncio
import re
from typing import Dict, List, Optional, Tuple

from loguru import logger

from devscope.core.models import ServiceRecord

# Ports commonly used by development servers
COMMON_DEV_PORTS = [
    3000,  # React, Next.js, Express
    3001,  # React alternate
    4000,  # GraphQL, various
    4200,  # Angular
    5000,  # Flask, ASP.NET
    5173,  # Vite
    5174,  # Vite alternate
    8000,  # Django, PHP
    8080,  # Tomcat, various
    8081,  # Various
    8888,  # Jupyter
    9000,  # PHP-FPM, various
    9229,  # Node.js debugger
]

# Never offered for termination
PROTECTED_PIDS = {1, 4}

_PORT_SUFFIX = re.compile(r":(\d+)$")
_SS_PORT = re.compile(r"\S+:(\d+)\s+\S+:[\d*]+")
_SS_PROCESS = re.compile(r'\("([^"]+)",pid=(\d+)')


class ServiceListingError(RuntimeError):
    """No process-listing backend could be run on this machine."""


def parse_netstat_line(line: str) -> Optional[Tuple[int, int]]:
    """
    Parse a Windows `netstat -ano` line.

    Format: "  TCP    0.0.0.0:3000    0.0.0.0:0    LISTENING    12345"

    Returns:
        (port, pid), or None when the line is not a listening socket
    """
    if not line or "LISTENING" not in line:
        return None

    parts = line.split()
    if len(parts) < 5:
        return None

    port_match = _PORT_SUFFIX.search(parts[1])
    if not port_match:
        return None

    try:
        pid = int(parts[-1])
    except ValueError:
        return None

    return int(port_match.group(1)), pid


def parse_lsof_line(line: str) -> Optional[Tuple[int, int, str]]:
    """
    Parse an `lsof -nP -iTCP -sTCP:LISTEN` line.

    Format: "node  12345 user  23u  IPv4 0x1234  0t0  TCP *:3000 (LISTEN)"

    Returns:
        (port, pid, name), or None for headers and malformed lines
    """
    if not line or "LISTEN" not in line:
        return None

    parts = line.split()
    if len(parts) < 9:
        return None

    name = parts[0]
    try:
        pid = int(parts[1])
    except ValueError:
        return None

    for part in parts[2:]:
        port_match = _PORT_SUFFIX.search(part)
        if port_match:
            return int(port_match.group(1)), pid, name
    return None


def parse_ss_output(output: str) -> List[ServiceRecord]:
    """
    Parse `ss -tlnp` output (Linux).

    Format: 'LISTEN 0 128 0.0.0.0:3000 0.0.0.0:* users:(("node",pid=12345,fd=23))'
    """
    services = []
    seen_pids = set()

    for line in (output or "").splitlines():
        if "LISTEN" not in line:
            continue

        port_match = _SS_PORT.search(line)
        process_match = _SS_PROCESS.search(line)
        if not port_match or not process_match:
            continue

        name = process_match.group(1)
        pid = int(process_match.group(2))
        if pid in seen_pids:
            continue
        seen_pids.add(pid)

        services.append(
            ServiceRecord(pid=pid, name=name, port=int(port_match.group(1)), command=name)
        )

    return services


def parse_ps_stats(output: str) -> Optional[Tuple[Optional[float], Optional[float], str]]:
    """
    Parse `ps -p PID -o %cpu=,rss=,args=` output.

    Returns:
        (cpu percent, memory in MB, full command), or None if empty
    """
    text = (output or "").strip()
    if not text:
        return None

    parts = text.split(None, 2)
    if len(parts) < 3:
        return None

    try:
        cpu: Optional[float] = float(parts[0])
    except ValueError:
        cpu = None
    try:
        memory: Optional[float] = round(int(parts[1]) / 1024, 1)
    except ValueError:
        memory = None

    return cpu, memory, parts[2]


def parse_tasklist_csv(output: str) -> Optional[Tuple[str, Optional[float]]]:
    """
    Parse `tasklist /FI "PID eq N" /FO CSV /NH` output.

    Format: "node.exe","12345","Console","1","12,345 K"

    Returns:
        (image name, memory in MB), or None when no process matched
    """
    fields = re.findall(r'"([^"]*)"', output or "")
    if len(fields) < 2:
        return None

    memory = None
    if len(fields) >= 5:
        digits = re.sub(r"[^\d]", "", fields[4])
        if digits:
            memory = round(int(digits) / 1024, 1)
    return fields[0], memory


def filter_dev_services(services: List[ServiceRecord]) -> List[ServiceRecord]:
    """Keep only services on common development ports."""
    return [s for s in services if s.port is not None and s.port in COMMON_DEV_PORTS]


class ProcessLister:
    """Enumerate and terminate listening processes."""

    def __init__(self, runner, os_type: str):
        self.runner = runner
        self.os_type = os_type

    async def list_services(self) -> List[ServiceRecord]:
        """
        List processes that listen on a TCP port, one record per pid.

        Raises:
            ServiceListingError: if no listing command is usable
        """
        if self.os_type == "Windows":
            return await self._list_windows_services()
        return await self._list_unix_services()

    async def find_service_by_port(self, port: int) -> Optional[ServiceRecord]:
        for service in await self.list_services():
            if service.port == port:
                return service
        return None

    async def kill_service(self, pid: int) -> bool:
        """
        Forcefully terminate a process.

        Returns:
            True if the kill command succeeded
        """
        if pid <= 0 or pid in PROTECTED_PIDS:
            logger.warning(f"Refusing to kill protected pid {pid}")
            return False

        if self.os_type == "Windows":
            result = await self.runner.run(f"taskkill /PID {int(pid)} /F")
        else:
            result = await self.runner.run(f"kill -9 {int(pid)}")

        if result.success:
            logger.info(f"Killed process {pid}")
        else:
            logger.warning(f"Failed to kill process {pid}: {result.stderr.strip()}")
        return result.success

    async def _list_unix_services(self) -> List[ServiceRecord]:
        lsof = await self.runner.run("lsof -nP -iTCP -sTCP:LISTEN")

        if lsof.success or lsof.stdout:
            listeners = self._collect_lsof(lsof.stdout)
        elif not lsof.stderr.strip() and lsof.exit_code == 1:
            # lsof exits 1 with no output when nothing is listening
            return []
        else:
            ss = await self.runner.run("ss -tlnp")
            if not ss.success:
                raise ServiceListingError(
                    f"Unable to list services: {lsof.stderr.strip() or ss.stderr.strip()}"
                )
            listeners = {s.pid: s for s in parse_ss_output(ss.stdout)}

        enriched = await asyncio.gather(
            *(self._with_unix_stats(listener) for listener in listeners.values())
        )
        return list(enriched)

    def _collect_lsof(self, output: str) -> Dict[int, ServiceRecord]:
        listeners: Dict[int, ServiceRecord] = {}
        for line in output.splitlines():
            parsed = parse_lsof_line(line)
            if parsed is None:
                continue
            port, pid, name = parsed
            if pid in listeners:
                continue
            listeners[pid] = ServiceRecord(pid=pid, name=name, port=port, command=name)
        return listeners

    async def _with_unix_stats(self, service: ServiceRecord) -> ServiceRecord:
        result = await self.runner.run(f"ps -p {service.pid} -o %cpu=,rss=,args=")
        stats = parse_ps_stats(result.stdout) if result.success else None
        if stats is None:
            return service

        cpu, memory, command = stats
        return service.model_copy(update={"cpu": cpu, "memory": memory, "command": command})

    async def _list_windows_services(self) -> List[ServiceRecord]:
        netstat = await self.runner.run("netstat -ano -p TCP")
        if not netstat.success:
            raise ServiceListingError(f"Unable to list services: {netstat.stderr.strip()}")

        services = []
        seen_pids = set()

        for line in netstat.stdout.splitlines():
            parsed = parse_netstat_line(line)
            if parsed is None:
                continue
            port, pid = parsed
            # System Idle (0) and System (4)
            if pid in seen_pids or pid in (0, 4):
                continue
            seen_pids.add(pid)

            tasklist = await self.runner.run(f'tasklist /FI "PID eq {pid}" /FO CSV /NH')
            info = parse_tasklist_csv(tasklist.stdout) if tasklist.success else None
            if info is None:
                continue
            name, memory = info

            wmic = await self.runner.run(
                f"wmic process where ProcessId={pid} get CommandLine /format:list"
            )
            command_match = re.search(r"CommandLine=(.+)", wmic.stdout or "", re.IGNORECASE)
            command = command_match.group(1).strip() if command_match else name

            services.append(
                ServiceRecord(pid=pid, name=name, port=port, command=command, memory=memory)
            )

        return services
