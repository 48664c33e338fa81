"""
Domain state and logging components.
"""

from devscope.storage.logger import setup_logging
from devscope.storage.domain_store import DomainStore

__all__ = [
    "setup_logging",
    "DomainStore",
]
