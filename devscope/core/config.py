"""
Configuration management.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_file() -> dict[str, Any]:
    """
    Load optional config from ~/.devscope.yaml or ./.devscope.yaml.
    The first existing file wins. Unknown keys are ignored, and keys that
    fail conversion are omitted so callers fall back to their own defaults.
    """
    result: dict[str, Any] = {}
    candidates = [
        Path.home() / ".devscope.yaml",
        Path.cwd() / ".devscope.yaml",
    ]
    raw: dict[str, Any] = {}
    for path in candidates:
        if path.exists():
            import yaml

            try:
                with open(path, "r", encoding="utf-8") as f:
                    raw = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError):
                raw = {}
            break
    if not isinstance(raw, dict) or not raw:
        return result
    if "output_dir" in raw:
        result["output_dir"] = Path(raw["output_dir"]).expanduser().resolve()
    if "verbose" in raw:
        result["verbose"] = bool(raw["verbose"])
    for key in (
        "command_timeout_ms",
        "poll_interval_ms",
        "max_workers",
        "probe_timeout",
        "cache_ttl",
    ):
        if key in raw:
            try:
                result[key] = int(raw[key])
            except (TypeError, ValueError):
                pass
    return result


class AppConfig(BaseSettings):
    """
    Application configuration.

    Values can be overridden with DEVSCOPE_* environment variables,
    e.g. DEVSCOPE_POLL_INTERVAL_MS=2000.
    """

    model_config = SettingsConfigDict(env_prefix="DEVSCOPE_")

    output_dir: Path = Field(default=Path("output"))
    verbose: bool = False
    command_timeout_ms: int = Field(default=5000, gt=0)
    poll_interval_ms: int = Field(default=5000, gt=0)
    max_workers: int = Field(default=8, gt=0)
    probe_timeout: float = Field(default=30.0, gt=0)  # seconds, per probe
    cache_ttl: float = Field(default=300.0, ge=0)  # seconds

    @field_validator("output_dir", mode="before")
    @classmethod
    def validate_output_dir(cls, v):
        """Validate and convert output_dir to Path."""
        if v is None:
            return Path("output")
        if isinstance(v, str):
            return Path(v)
        if isinstance(v, Path):
            return v
        return Path("output")

    def model_post_init(self, __context):
        """Ensure output directory exists and is resolved to absolute path."""
        self.output_dir = self.output_dir.resolve()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_snapshot(self, kind: str, payload: Any) -> Path:
        """Write a timestamped JSON snapshot (e.g. a tool inventory)."""
        timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        snapshot_file = self.output_dir / f"{timestamp}_{kind}.json"

        document = {
            "kind": kind,
            "timestamp": datetime.now().isoformat(),
            "data": payload,
        }

        with open(snapshot_file, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2, default=str)

        return snapshot_file
