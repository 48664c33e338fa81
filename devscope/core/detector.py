"""
System detection and platform-specific command selection.
"""

import platform
import socket
import sys
from typing import Dict, List

from pydantic import BaseModel, ConfigDict


class SystemInfo(BaseModel):
    """System information model."""

    model_config = ConfigDict(frozen=True)

    os_type: str  # 'Linux', 'Darwin', 'Windows'
    platform: str
    python_version: str
    hostname: str

    @property
    def is_windows(self) -> bool:
        return self.os_type == "Windows"


# Candidate invocations, tried in order until one answers its version flag
COMMAND_VARIANTS: Dict[str, Dict[str, List[str]]] = {
    "python": {
        "Windows": ["py", "python", "python3"],
        "Darwin": ["python3", "python"],
        "Linux": ["python3", "python"],
    },
    "pip": {
        "Windows": ["py -m pip", "pip3", "pip"],
        "Darwin": ["pip3", "pip"],
        "Linux": ["pip3", "pip"],
    },
}


class SystemDetector:
    """Detect system information."""

    def detect_system(self) -> SystemInfo:
        """Detect current system information."""
        return SystemInfo(
            os_type=platform.system(),
            platform=platform.platform(),
            python_version=sys.version.split()[0],
            hostname=socket.gethostname(),
        )


def get_command_variants(tool: str, os_type: str) -> List[str]:
    """Get the ordered command variants for a tool on the given OS."""
    variants = COMMAND_VARIANTS.get(tool)
    if variants is None:
        return [tool]
    return list(variants.get(os_type, variants["Linux"]))


def get_which_command(tool: str, os_type: str) -> str:
    """`where` on Windows, `which` everywhere else."""
    if os_type == "Windows":
        return f"where {tool}"
    return f"which {tool}"


def get_path_separator(os_type: str) -> str:
    return ";" if os_type == "Windows" else ":"


def normalize_path(path: str, os_type: str) -> str:
    """Trim a path and convert its separators to the platform convention."""
    if not path:
        return path
    trimmed = path.strip()
    if os_type == "Windows":
        return trimmed.replace("/", "\\")
    return trimmed.replace("\\", "/")
