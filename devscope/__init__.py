"""
DevScope - Developer tool inventory
"""

from devscope.__version__ import __version__
from devscope.core.config import AppConfig
from devscope.core.detector import SystemDetector
from devscope.core.executor import CommandRunner
from devscope.storage.domain_store import DomainStore

__all__ = [
    "AppConfig",
    "SystemDetector",
    "CommandRunner",
    "DomainStore",
    "__version__",
]
