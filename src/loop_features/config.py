"""Configuration helpers for loading JSON config files."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List

from .exceptions import ConfigError

REPO_ROOT = Path(__file__).resolve().parents[2]
CONFIG_DIR = REPO_ROOT / "config"

DEFAULT_DATASET_PATH = "loop_features.csv"
DEFAULT_COUNTER_PATH = "code_id.txt"


def load_json_config(file_name: str) -> Dict[str, Any] | List[Dict[str, Any]]:
    """Load a JSON config file relative to the repository root."""

    file_path = Path(file_name)
    if not file_path.is_absolute() and not file_path.exists():
        file_path = CONFIG_DIR / file_name

    if not file_path.exists():
        raise FileNotFoundError(f"Config file '{file_name}' does not exist at {file_path}")

    with file_path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def auto_load_json_config(file_name: str,
                          tag: str = "default") -> Dict[str, Any]:
    """
    Using tag strategy to load multiple json config from a single file.
    Return a {} item from [{},{}] in json config
    """
    config_data = load_json_config(file_name)

    if isinstance(config_data, list):
        if not config_data:
            raise ValueError(f"Config file '{file_name}' is an empty list.")

        for config in config_data:
            if tag in config.get("tags", []):
                return config

        # Fallback to the first item if tag not found
        return config_data[0]

    return config_data


@dataclass
class ExtractorConfig:
    """Where the extractor keeps its side store and dataset, and how it writes them.

    Relative paths are resolved against the current working directory, so two
    invocations from the same directory share one counter and one dataset.
    """

    dataset_path: Path = Path(DEFAULT_DATASET_PATH)
    counter_path: Path = Path(DEFAULT_COUNTER_PATH)
    fsync: bool = False
    only_functions: List[str] = field(default_factory=list)
    verbose: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "ExtractorConfig":
        known = {f.name for f in fields(cls)}
        values: Dict[str, Any] = {}
        for key, value in raw.items():
            if key == "tags":
                continue
            if key not in known:
                raise ConfigError(f"Unknown extractor config key: '{key}'")
            values[key] = value

        for key in ("dataset_path", "counter_path"):
            if key in values:
                values[key] = Path(values[key])
        if "only_functions" in values:
            only = values["only_functions"]
            if isinstance(only, str) or not isinstance(only, list):
                raise ConfigError("'only_functions' must be a list of function names")
            values["only_functions"] = [str(name) for name in only]
        for key in ("fsync", "verbose"):
            if key in values and not isinstance(values[key], bool):
                raise ConfigError(f"'{key}' must be true or false")
        return cls(**values)


def load_extractor_config(file_name: str | None = None, tag: str = "default") -> ExtractorConfig:
    """Load an extractor profile; with no file name the built-in defaults are used."""

    if file_name is None:
        return ExtractorConfig()
    raw = auto_load_json_config(file_name, tag=tag)
    if not isinstance(raw, dict):
        raise ConfigError(f"Config profile in '{file_name}' must be a JSON object")
    return ExtractorConfig.from_dict(raw)
