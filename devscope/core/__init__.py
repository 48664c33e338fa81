"""
Core functionality components.
"""

from devscope.core.config import AppConfig
from devscope.core.detector import SystemDetector, SystemInfo
from devscope.core.executor import CommandRunner
from devscope.core.models import CommandOutcome

__all__ = [
    "AppConfig",
    "SystemDetector",
    "SystemInfo",
    "CommandRunner",
    "CommandOutcome",
]
