"""
Installation provenance from binary paths.
"""

from typing import Optional

from devscope.core.models import InstallMethod

HOMEBREW_MARKERS = ("homebrew", "/opt/homebrew", "/usr/local/cellar", "linuxbrew")
CHOCOLATEY_MARKERS = ("chocolatey", "choco")
SYSTEM_BIN_MARKERS = ("/usr/bin", "/usr/local/bin")
NPM_MARKERS = ("npm", "node_modules")
PIP_MARKERS = ("pip", "site-packages")


def classify_install_method(path: Optional[str], os_type: str) -> Optional[InstallMethod]:
    """
    Infer how a binary was installed from its absolute path.

    Marker groups are checked in precedence order; the first group with a
    matching substring wins. System bin directories only count as `apt`
    on Linux.

    Args:
        path: Absolute path of the binary, or None
        os_type: Host OS ('Linux', 'Darwin', 'Windows')

    Returns:
        InstallMethod, or None when path is None
    """
    if path is None:
        return None

    lower_path = str(path).lower().replace("\\", "/")

    if _contains_any(lower_path, HOMEBREW_MARKERS):
        return InstallMethod.HOMEBREW
    if _contains_any(lower_path, CHOCOLATEY_MARKERS):
        return InstallMethod.CHOCOLATEY
    if (os_type or "").lower() == "linux" and _contains_any(lower_path, SYSTEM_BIN_MARKERS):
        return InstallMethod.APT
    if _contains_any(lower_path, NPM_MARKERS):
        return InstallMethod.NPM
    if _contains_any(lower_path, PIP_MARKERS):
        return InstallMethod.PIP

    return InstallMethod.MANUAL


def _contains_any(text: str, markers) -> bool:
    return any(marker in text for marker in markers)
