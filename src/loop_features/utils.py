"""YAML dumping helpers for feature reports."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable

import yaml

from .models import FeatureRecord


class LiteralDumper(yaml.SafeDumper):
    """Custom YAML Dumper that uses block style for multiline strings."""
    def represent_scalar(self, tag, value, style=None):
        if isinstance(value, str) and "\n" in value and tag == 'tag:yaml.org,2002:str':
            style = '|'
        return super().represent_scalar(tag, value, style)


def records_to_payload(unit_name: str, records: Iterable[FeatureRecord]) -> Dict[str, Any]:
    loops = [record.as_dict() for record in records]
    return {
        "source_path": unit_name,
        "loops_count": len(loops),
        "loops_depth": max((loop["loop_depth"] for loop in loops), default=0),
        "loops": loops,
    }


def dump_yaml(payload: Dict[str, Any], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as yf:
        yaml.dump(payload, yf, Dumper=LiteralDumper, sort_keys=False, allow_unicode=True)
    return path
