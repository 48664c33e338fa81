"""
Detection and inventory modules.
"""

from devscope.modules.base import BaseProbe
from devscope.modules.environment import EnvironmentScanner
from devscope.modules.install_method import classify_install_method
from devscope.modules.packages import PackageLister
from devscope.modules.path_analyzer import analyze_path_entries, count_duplicates
from devscope.modules.probes import DEFAULT_PROBES, ProbeSpec, ToolKind, resolve_probe_spec
from devscope.modules.services import ProcessLister, ServiceListingError
from devscope.modules.version import parse_version

__all__ = [
    "BaseProbe",
    "EnvironmentScanner",
    "classify_install_method",
    "PackageLister",
    "analyze_path_entries",
    "count_duplicates",
    "DEFAULT_PROBES",
    "ProbeSpec",
    "ToolKind",
    "resolve_probe_spec",
    "ProcessLister",
    "ServiceListingError",
    "parse_version",
]
