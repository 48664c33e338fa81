"""
Tool probes (runtimes, package managers, arbitrary commands).
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Type

from loguru import logger

from devscope.core.detector import get_command_variants
from devscope.core.models import InstallMethod, ToolCategory, ToolRecord
from devscope.modules.base import BaseProbe

_COMMAND_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")
_FLAG_TOKEN_PATTERN = re.compile(r"^-{0,2}[A-Za-z0-9][A-Za-z0-9._=+-]*$")

INVALID_NAME_REASON = "Invalid tool name"
INVALID_FLAG_REASON = "Invalid version flag"


def is_valid_command_name(name: str) -> bool:
    """Accept a single bare command token, never shell syntax."""
    return bool(name) and _COMMAND_NAME_PATTERN.match(name) is not None


def is_valid_version_flag(flag: str) -> bool:
    """Accept one or more whitespace-separated flag tokens such as `version --client`."""
    tokens = flag.split() if flag else []
    return bool(tokens) and all(_FLAG_TOKEN_PATTERN.match(t) for t in tokens)


class NodeProbe(BaseProbe):
    name = "node"
    display_name = "Node.js"
    category = ToolCategory.RUNTIME

    def commands(self) -> List[str]:
        return ["node"]


class NpmProbe(BaseProbe):
    name = "npm"
    display_name = "npm"
    category = ToolCategory.PACKAGE_MANAGER

    def commands(self) -> List[str]:
        return ["npm"]


class PhpProbe(BaseProbe):
    name = "php"
    display_name = "PHP"
    category = ToolCategory.RUNTIME

    def commands(self) -> List[str]:
        return ["php"]


class ComposerProbe(BaseProbe):
    name = "composer"
    display_name = "Composer"
    category = ToolCategory.PACKAGE_MANAGER

    def commands(self) -> List[str]:
        return ["composer"]


# Well-known Python install roots on Windows
WINDOWS_PYTHON_ROOTS = [
    "%LOCALAPPDATA%\\Programs\\Python",
    "%PROGRAMFILES%\\Python",
    "%PROGRAMFILES(x86)%\\Python",
    "%APPDATA%\\Python",
]


class PythonProbe(BaseProbe):
    name = "python"
    display_name = "Python"
    category = ToolCategory.RUNTIME

    def commands(self) -> List[str]:
        return get_command_variants("python", self.os_type)

    async def fallback(self) -> Optional[ToolRecord]:
        """Look for python.exe under the usual install roots on Windows."""
        if self.os_type != "Windows":
            return None

        for root in WINDOWS_PYTHON_ROOTS:
            expanded = os.path.expandvars(root)
            if "%" in expanded:
                # Variable not set on this machine
                continue
            root_dir = Path(expanded)
            if not root_dir.is_dir():
                continue
            for child in sorted(root_dir.iterdir()):
                exe = child / "python.exe"
                if not exe.is_file():
                    continue
                outcome = await self.runner.run(f'"{exe}" {self.version_flag}')
                if outcome.success:
                    logger.debug(f"Found Python outside PATH: {exe}")
                    return ToolRecord(
                        name=self.name,
                        display_name=self.display_name,
                        version=self.parse_output(outcome),
                        path=str(exe),
                        is_installed=True,
                        install_method=InstallMethod.MANUAL,
                        category=self.category,
                    )
        return None


class PipProbe(BaseProbe):
    name = "pip"
    display_name = "pip"
    category = ToolCategory.PACKAGE_MANAGER

    def commands(self) -> List[str]:
        # `py -m pip` resolves to the `py` launcher's path
        return get_command_variants("pip", self.os_type)


class CustomProbe(BaseProbe):
    """Probe for an arbitrary named command."""

    def __init__(
        self,
        runner,
        os_type: str,
        name: str,
        display_name: Optional[str] = None,
        version_flag: str = "--version",
        category: ToolCategory = ToolCategory.TOOL,
    ):
        super().__init__(runner, os_type)
        self.name = name
        self.display_name = display_name or name
        self.version_flag = version_flag
        self.category = category

    def commands(self) -> List[str]:
        return [self.name]

    async def probe(self) -> ToolRecord:
        # name and flag end up on a shell command line
        if not is_valid_command_name(self.name):
            logger.warning(f"Refusing to probe invalid tool name: {self.name!r}")
            return self.unavailable(INVALID_NAME_REASON)
        if not is_valid_version_flag(self.version_flag):
            logger.warning(f"Refusing invalid version flag for {self.name}: {self.version_flag!r}")
            return self.unavailable(INVALID_FLAG_REASON)
        return await super().probe()


class ToolKind(str, Enum):
    NODE = "node"
    NPM = "npm"
    PYTHON = "python"
    PIP = "pip"
    PHP = "php"
    COMPOSER = "composer"
    CUSTOM = "custom"


PROBE_TYPES: Dict[ToolKind, Type[BaseProbe]] = {
    ToolKind.NODE: NodeProbe,
    ToolKind.NPM: NpmProbe,
    ToolKind.PYTHON: PythonProbe,
    ToolKind.PIP: PipProbe,
    ToolKind.PHP: PhpProbe,
    ToolKind.COMPOSER: ComposerProbe,
}

TOOL_ALIASES: Dict[str, ToolKind] = {
    "node": ToolKind.NODE,
    "nodejs": ToolKind.NODE,
    "node.js": ToolKind.NODE,
    "npm": ToolKind.NPM,
    "python": ToolKind.PYTHON,
    "python3": ToolKind.PYTHON,
    "pip": ToolKind.PIP,
    "pip3": ToolKind.PIP,
    "php": ToolKind.PHP,
    "composer": ToolKind.COMPOSER,
}


@dataclass(frozen=True)
class ProbeSpec:
    """Declaration of one probe in a detection pass."""

    name: str
    kind: ToolKind = ToolKind.CUSTOM
    display_name: Optional[str] = None
    version_flag: str = "--version"
    category: ToolCategory = ToolCategory.TOOL

    def build(self, runner, os_type: str) -> BaseProbe:
        """Instantiate the probe this spec describes."""
        if self.kind is ToolKind.CUSTOM:
            return CustomProbe(
                runner,
                os_type,
                self.name,
                display_name=self.display_name,
                version_flag=self.version_flag,
                category=self.category,
            )
        return PROBE_TYPES[self.kind](runner, os_type)


def _custom(name: str, display_name: str, version_flag: str = "--version",
            category: ToolCategory = ToolCategory.TOOL) -> ProbeSpec:
    return ProbeSpec(name, ToolKind.CUSTOM, display_name, version_flag, category)


_RUNTIME = ToolCategory.RUNTIME
_PACKAGE_MANAGER = ToolCategory.PACKAGE_MANAGER

DEFAULT_PROBES: List[ProbeSpec] = [
    # Runtimes
    ProbeSpec("node", ToolKind.NODE),
    ProbeSpec("python", ToolKind.PYTHON),
    ProbeSpec("php", ToolKind.PHP),
    _custom("java", "Java", "-version", _RUNTIME),
    _custom("go", "Go", "version", _RUNTIME),
    _custom("rustc", "Rust", "--version", _RUNTIME),
    _custom("ruby", "Ruby", "--version", _RUNTIME),
    _custom("dotnet", ".NET", "--version", _RUNTIME),
    _custom("deno", "Deno", "--version", _RUNTIME),
    _custom("bun", "Bun", "--version", _RUNTIME),
    _custom("perl", "Perl", "--version", _RUNTIME),
    _custom("lua", "Lua", "-v", _RUNTIME),
    # Package managers
    ProbeSpec("npm", ToolKind.NPM),
    ProbeSpec("pip", ToolKind.PIP),
    ProbeSpec("composer", ToolKind.COMPOSER),
    _custom("yarn", "Yarn", "--version", _PACKAGE_MANAGER),
    _custom("pnpm", "pnpm", "--version", _PACKAGE_MANAGER),
    _custom("cargo", "Cargo", "--version", _PACKAGE_MANAGER),
    _custom("gem", "RubyGems", "--version", _PACKAGE_MANAGER),
    # System package managers
    _custom("brew", "Homebrew", "--version", _PACKAGE_MANAGER),
    _custom("choco", "Chocolatey", "--version", _PACKAGE_MANAGER),
    _custom("scoop", "Scoop", "--version", _PACKAGE_MANAGER),
    _custom("winget", "winget", "--version", _PACKAGE_MANAGER),
    # Version control and dev tools
    _custom("git", "Git"),
    _custom("docker", "Docker"),
    _custom("kubectl", "Kubernetes CLI", "version --client"),
    _custom("terraform", "Terraform"),
    # Cloud tools
    _custom("aws", "AWS CLI"),
    _custom("az", "Azure CLI"),
    _custom("gcloud", "Google Cloud SDK"),
    _custom("helm", "Helm", "version"),
    _custom("ansible", "Ansible"),
    # Version managers
    _custom("nvm", "nvm"),
    _custom("pyenv", "pyenv"),
    _custom("rbenv", "rbenv"),
    _custom("sdk", "SDKMAN", "version"),
]

_DEFAULT_SPECS_BY_NAME: Dict[str, ProbeSpec] = {spec.name: spec for spec in DEFAULT_PROBES}


def resolve_probe_spec(name: str, version_flag: Optional[str] = None) -> ProbeSpec:
    """
    Map a user-supplied tool name to a probe spec.

    Known aliases resolve to their dedicated probe, names from the default
    probe set keep their declared flag and category, anything else becomes
    a custom probe.
    """
    key = name.strip().lower()
    kind = TOOL_ALIASES.get(key)
    if kind is not None:
        return ProbeSpec(kind.value, kind)

    spec = _DEFAULT_SPECS_BY_NAME.get(key)
    if spec is not None and version_flag is None:
        return spec
    if spec is not None:
        return ProbeSpec(spec.name, spec.kind, spec.display_name, version_flag, spec.category)

    return ProbeSpec(name.strip(), ToolKind.CUSTOM, version_flag=version_flag or "--version")
