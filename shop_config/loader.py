"""
Configuration Loader (``shop_config.loader``).

Responsibility
--------------
Reads a payroll YAML file and parses it into a validated
``PayrollConfig``.  Runtime callers go through
``shop_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values  -> ``ValueError`` from ``PayrollConfig.__post_init__``.
* A top level that is not a mapping  -> ``ValueError``.

Audit relevance
---------------
``compute_checksum`` identifies the configuration a run was finalized
under; it is logged whenever a file is loaded.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from shop_kernel.logging_config import get_logger
from shop_modules.payroll.config import PayrollConfig

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_payroll_config(data: dict[str, Any]) -> PayrollConfig:
    """
    Build a ``PayrollConfig`` from parsed YAML.

    The settings may sit at the top level or under a ``payroll:`` key.
    """
    if not isinstance(data, dict):
        raise ValueError(f"Payroll config must be a mapping, got {type(data).__name__}")
    section = data.get("payroll", data)
    if not isinstance(section, dict):
        raise ValueError("'payroll' section must be a mapping")
    return PayrollConfig.from_dict(section)


def load_payroll_config(path: Path | str) -> PayrollConfig:
    path = Path(path)
    data = load_yaml_file(path)
    config = parse_payroll_config(data)
    logger.info(
        "payroll_config_loaded",
        extra={"path": str(path), "checksum": compute_checksum(data)},
    )
    return config
