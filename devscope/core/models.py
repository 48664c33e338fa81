"""
Record models shared by the detection engine and the domain store.

Every record is an immutable value: a refresh produces new records that
replace the old ones, nothing is edited in place.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class InstallMethod(str, Enum):
    """Inferred provenance of an installed binary."""

    MANUAL = "manual"
    HOMEBREW = "homebrew"
    CHOCOLATEY = "chocolatey"
    APT = "apt"
    NPM = "npm"
    PIP = "pip"


class ToolCategory(str, Enum):
    RUNTIME = "runtime"
    PACKAGE_MANAGER = "package-manager"
    TOOL = "tool"
    OTHER = "other"


class PackageManagerName(str, Enum):
    NPM = "npm"
    PIP = "pip"
    COMPOSER = "composer"


class EnvCategory(str, Enum):
    PATH = "path"
    JAVA = "java"
    PYTHON = "python"
    NODE = "node"
    OTHER = "other"


class CommandOutcome(BaseModel):
    """Result of one external command invocation."""

    model_config = ConfigDict(frozen=True)

    command: str
    success: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    duration: float = 0.0


class ToolRecord(BaseModel):
    """Detection result for a single tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    version: Optional[str] = None
    path: Optional[str] = None
    is_installed: bool = False
    install_method: Optional[InstallMethod] = None
    category: ToolCategory = ToolCategory.TOOL
    error_reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_uninstalled_is_empty(self) -> "ToolRecord":
        if not self.is_installed and (
            self.version is not None
            or self.path is not None
            or self.install_method is not None
        ):
            raise ValueError(
                "a tool that is not installed cannot carry version, path or install method"
            )
        return self


class PackageRecord(BaseModel):
    """A package reported by a package manager's list command."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    location: str
    manager: PackageManagerName
    description: Optional[str] = None


class ServiceRecord(BaseModel):
    """A running process listening on a port."""

    model_config = ConfigDict(frozen=True)

    pid: int
    name: str
    port: Optional[int] = None
    command: str
    cpu: Optional[float] = None
    memory: Optional[float] = None  # MB


class EnvVarRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    value: str
    category: EnvCategory
    is_system_variable: bool


class PathEntryAnalysis(BaseModel):
    """Duplicate analysis for one PATH entry."""

    model_config = ConfigDict(frozen=True)

    path: str
    index: int
    is_duplicate: bool
    duplicate_indices: List[int] = Field(default_factory=list)


class DetectionError(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    error_reason: str


class DetectionSummary(BaseModel):
    """Aggregate statistics for one full detection pass."""

    model_config = ConfigDict(frozen=True)

    total_tools: int
    success_count: int
    failure_count: int
    total_time: float  # seconds
    errors: List[DetectionError] = Field(default_factory=list)
