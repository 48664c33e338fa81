"""
Environment variable scanning and categorization.
"""

import os
import re
from typing import List, Mapping, Optional

from devscope.core.detector import get_path_separator, normalize_path
from devscope.core.models import EnvCategory, EnvVarRecord

# Checked in this order; the first keyword contained in the key wins
CATEGORY_KEYWORDS = [
    (EnvCategory.JAVA, ["java", "jdk", "jre", "maven", "gradle", "ant", "tomcat"]),
    (EnvCategory.PYTHON, ["python", "pip", "conda", "virtualenv", "virtual_env", "pyenv", "anaconda"]),
    (EnvCategory.NODE, ["node", "npm", "yarn", "pnpm", "nvm", "fnm"]),
]

SYSTEM_VARIABLES = {
    "path", "pathext", "comspec", "systemroot", "windir",
    "programfiles", "programfiles(x86)", "programdata",
    "appdata", "localappdata", "userprofile", "homedrive", "homepath",
    "temp", "tmp", "os", "processor_architecture", "number_of_processors",
    "computername", "username", "userdomain",
    "shell", "user", "home", "logname", "lang", "term", "display",
    "pwd", "oldpwd", "hostname", "editor", "visual",
}

SERVICE_RELATED_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^PATH$", r"^JAVA_HOME$", r"^JDK_HOME$", r"^JRE_HOME$",
        r"^PYTHON.*$", r"^PIP.*$", r"^NODE.*$", r"^NPM.*$", r"^NVM.*$",
        r"^GOPATH$", r"^GOROOT$", r"^CARGO_HOME$", r"^RUSTUP_HOME$",
        r"^RUBY.*$", r"^GEM.*$", r"^ANDROID.*$", r"^GRADLE.*$",
        r"^MAVEN.*$", r"^M2.*$", r"^ANT.*$", r"^DOCKER.*$", r"^COMPOSE.*$",
        r"^VIRTUAL_ENV$", r"^CONDA.*$", r"^PYENV.*$",
    )
]


def categorize_variable(key: str) -> EnvCategory:
    lower_key = key.lower()
    if lower_key == "path":
        return EnvCategory.PATH
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lower_key for keyword in keywords):
            return category
    return EnvCategory.OTHER


def is_system_variable(key: str, value: str, os_type: str) -> bool:
    """
    Heuristic: well-known OS variables, or values pointing into system
    directories.
    """
    if key.lower() in SYSTEM_VARIABLES:
        return True

    if os_type == "Windows":
        lower_value = value.lower()
        return "\\windows\\" in lower_value or "\\system32\\" in lower_value
    return any(marker in value for marker in ("/usr/", "/etc/", "/var/"))


class EnvironmentScanner:
    """Snapshot the process environment."""

    def __init__(self, os_type: str, environ: Optional[Mapping[str, str]] = None):
        """
        Args:
            os_type: Host OS ('Linux', 'Darwin', 'Windows')
            environ: Environment mapping to read (default: os.environ at call time)
        """
        self.os_type = os_type
        self._environ = environ

    @property
    def environ(self) -> Mapping[str, str]:
        return self._environ if self._environ is not None else os.environ

    def _record(self, key: str, value: str) -> EnvVarRecord:
        return EnvVarRecord(
            key=key,
            value=value,
            category=categorize_variable(key),
            is_system_variable=is_system_variable(key, value, self.os_type),
        )

    def get_environment_variables(self) -> List[EnvVarRecord]:
        """All variables, sorted by key."""
        env = dict(self.environ)
        return [self._record(key, env[key]) for key in sorted(env, key=str.lower)]

    def get_variable(self, key: str) -> Optional[EnvVarRecord]:
        value = self.environ.get(key)
        if value is None:
            return None
        return self._record(key, value)

    def get_path_entries(self) -> List[str]:
        """PATH split into directories, blanks dropped, order kept."""
        env = self.environ
        path_value = env.get("PATH") or env.get("Path") or ""
        separator = get_path_separator(self.os_type)
        return [
            normalize_path(entry, self.os_type)
            for entry in path_value.split(separator)
            if entry.strip()
        ]

    def filter_by_category(self, category: EnvCategory) -> List[EnvVarRecord]:
        category = EnvCategory(category)
        return [v for v in self.get_environment_variables() if v.category is category]

    def search_variables(self, query: str) -> List[EnvVarRecord]:
        """Case-insensitive match on key or value; blank query returns all."""
        variables = self.get_environment_variables()
        if not query or not query.strip():
            return variables
        needle = query.lower()
        return [
            v for v in variables
            if needle in v.key.lower() or needle in v.value.lower()
        ]

    def get_service_related_variables(self) -> List[EnvVarRecord]:
        return [
            v for v in self.get_environment_variables()
            if any(pattern.match(v.key) for pattern in SERVICE_RELATED_PATTERNS)
        ]

    def find_missing_path_entries(self) -> List[str]:
        """PATH entries that do not point at an existing directory."""
        return [entry for entry in self.get_path_entries() if not os.path.isdir(entry)]
