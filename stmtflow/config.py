"""
YAML configuration for comparisons and dumps.

Example:
    digest:
      sort: false
      ignore_columns: [updated_at]
    text:
      verbose: true
      with_latency: false
    json:
      prefix: ""
      indent: "  "
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError
from .event import TextDumpOptions
from .history import JsonDumpOptions
from .resultset import DigestOptions

logger = logging.getLogger(__name__)

CONFIG_ENV = "STMTFLOW_CONFIG"


@dataclass(frozen=True)
class StmtflowConfig:
    """Options for comparing and dumping histories."""
    digest: DigestOptions = field(default_factory=DigestOptions)
    text: TextDumpOptions = field(default_factory=TextDumpOptions)
    json: JsonDumpOptions = field(default_factory=JsonDumpOptions)
    path: Optional[str] = None


def parse_config(yaml_content: str, path: Optional[str] = None) -> StmtflowConfig:
    """Parse configuration from YAML content."""
    try:
        data = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    return _parse_config_dict(data or {}, path)


def load_config(path: Optional[str] = None) -> StmtflowConfig:
    """
    Load configuration from a YAML file.

    Falls back to $STMTFLOW_CONFIG, and to defaults when neither is set.
    """
    path = path or os.getenv(CONFIG_ENV)
    if not path:
        return StmtflowConfig()
    with open(path, "r", encoding="utf-8") as f:
        config = parse_config(f.read(), path)
    logger.info("Loaded configuration from %s", path)
    return config


def _parse_config_dict(data: Dict[str, Any], path: Optional[str]) -> StmtflowConfig:
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping")
    unknown = set(data) - {"digest", "text", "json"}
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {sorted(unknown)}")

    digest = _section(data, "digest", {"sort", "ignore_columns"})
    text = _section(data, "text", {"verbose", "with_latency"})
    dump = _section(data, "json", {"prefix", "indent"})

    ignore_columns = digest.get("ignore_columns", [])
    if not isinstance(ignore_columns, list) or not all(isinstance(c, str) for c in ignore_columns):
        raise ConfigError("digest.ignore_columns must be a list of column names")

    return StmtflowConfig(
        digest=DigestOptions(
            sort=_bool(digest, "digest.sort", "sort"),
            ignore_columns=tuple(ignore_columns),
        ),
        text=TextDumpOptions(
            verbose=_bool(text, "text.verbose", "verbose"),
            with_latency=_bool(text, "text.with_latency", "with_latency"),
        ),
        json=JsonDumpOptions(
            prefix=_str(dump, "json.prefix", "prefix"),
            indent=_str(dump, "json.indent", "indent"),
        ),
        path=path,
    )


def _section(data: Dict[str, Any], name: str, keys: set) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section {name} must be a mapping")
    unknown = set(section) - keys
    if unknown:
        raise ConfigError(f"Unknown keys in {name}: {sorted(unknown)}")
    return section


def _bool(section: Dict[str, Any], name: str, key: str) -> bool:
    value = section.get(key, False)
    if not isinstance(value, bool):
        raise ConfigError(f"{name} must be true or false, got {value!r}")
    return value


def _str(section: Dict[str, Any], name: str, key: str) -> str:
    value = section.get(key, "")
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string, got {value!r}")
    return value
