"""
Version extraction from free-form command output.
"""

import re
from dataclasses import dataclass
from typing import Optional

# v18.17.0, Python 3.11.4, 1.0.0-alpha.1; never starts inside another token
_PREFERRED_PATTERN = re.compile(
    r"(?<![\w.])v?(\d+\.\d+(?:\.\d+)?(?:-[0-9A-Za-z]+(?:\.[0-9A-Za-z]+)*)?)",
    re.IGNORECASE,
)
# go1.21.0 and other glued forms
_BARE_PATTERN = re.compile(r"(\d+\.\d+(?:\.\d+)?(?:-[0-9A-Za-z]+(?:\.[0-9A-Za-z]+)*)?)")


@dataclass(frozen=True)
class ParsedVersion:
    version: Optional[str]
    raw: str


def parse_version(output) -> ParsedVersion:
    """
    Parse a version token from command output.

    Handles formats such as:
        - v18.17.0 (Node.js style)
        - Python 3.11.4
        - PHP 8.2.0 (cli) ...
        - 9.8.1 (npm style)
        - go version go1.21.0 linux/amd64

    Args:
        output: Raw command output

    Returns:
        ParsedVersion with version=None when no dotted number is present
    """
    if not output or not isinstance(output, str):
        return ParsedVersion(version=None, raw="")

    trimmed = output.strip()

    match = _PREFERRED_PATTERN.search(trimmed)
    if match:
        return ParsedVersion(version=match.group(1), raw=trimmed)

    match = _BARE_PATTERN.search(trimmed)
    if match:
        return ParsedVersion(version=match.group(1), raw=trimmed)

    return ParsedVersion(version=None, raw=trimmed)
