"""Run configuration: dataclass defaults, YAML file, command-line overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Optional

import yaml

from pageindex.errors import ConfigError

DEFAULT_MODEL = "gpt-4o-2024-11-20"


@dataclass(frozen=True)
class PageIndexConfig:
    model: str = DEFAULT_MODEL
    toc_check_page_num: int = 20
    max_page_num_each_node: int = 10
    max_token_num_each_node: int = 20000
    max_tokens_per_chunk: int = 20000
    chunk_overlap_pages: int = 1
    repair_max_attempts: int = 3
    verify_sample_size: Optional[int] = None
    accept_accuracy: float = 0.6
    max_continuations: int = 5
    max_split_depth: int = 8
    llm_max_retries: int = 10
    llm_timeout_seconds: float = 180.0
    max_workers: Optional[int] = None
    if_add_node_id: bool = True
    if_add_node_summary: bool = False
    if_add_doc_description: bool = False
    if_add_node_text: bool = False
    log_dir: Optional[str] = None

    def worker_count(self) -> int:
        if self.max_workers:
            return self.max_workers
        return min((os.cpu_count() or 1) * 4, 32)


_FIELD_TYPES = {f.name: f.type for f in fields(PageIndexConfig)}


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("yes", "true", "1", "on"):
            return True
        if v in ("no", "false", "0", "off"):
            return False
    raise ConfigError(f"Expected yes/no, got {value!r}")


def _coerce(key: str, value):
    if value is None:
        return None
    type_name = str(_FIELD_TYPES[key])
    try:
        if "bool" in type_name:
            return parse_bool(value)
        if "int" in type_name:
            if isinstance(value, bool):
                raise ValueError("boolean is not an integer")
            return int(value)
        if "float" in type_name:
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{key}': {value!r} ({e})")
    return str(value)


def _apply(config: PageIndexConfig, options: dict) -> PageIndexConfig:
    updates = {}
    for key, value in options.items():
        if key not in _FIELD_TYPES:
            raise ConfigError(f"Unknown configuration key: '{key}'")
        if value is None:
            continue
        updates[key] = _coerce(key, value)
    return replace(config, **updates)


def load_config(path: str | None = None, overrides: dict | None = None) -> PageIndexConfig:
    """Build the run configuration.

    ``path`` points to a YAML mapping of option names to values. ``overrides``
    come from the command line; keys whose value is None are left alone so
    unset flags never clobber the file.
    """
    config = PageIndexConfig()
    if path:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigError(f"Config file {path} is not valid YAML: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        config = _apply(config, data)
    if overrides:
        config = _apply(config, overrides)
    if config.accept_accuracy < 0 or config.accept_accuracy > 1:
        raise ConfigError("accept_accuracy must be between 0 and 1")
    if config.verify_sample_size is not None and config.verify_sample_size < 1:
        raise ConfigError("verify_sample_size must be at least 1 or null")
    if config.repair_max_attempts < 0:
        raise ConfigError("repair_max_attempts must not be negative")
    if config.max_tokens_per_chunk <= 0:
        raise ConfigError("max_tokens_per_chunk must be positive")
    return config
