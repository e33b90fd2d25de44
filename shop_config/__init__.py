"""
Shop configuration (``shop_config``).

``get_active_config()`` is the single runtime entry point.  It reads the
YAML file named by the ``SHOP_PAYROLL_CONFIG`` environment variable, or the
bundled ``payroll.yaml`` when the variable is unset.
"""

from __future__ import annotations

import os
from pathlib import Path

from shop_config.loader import (
    compute_checksum,
    load_payroll_config,
    load_yaml_file,
    parse_payroll_config,
)
from shop_modules.payroll.config import PayrollConfig

CONFIG_ENV_VAR = "SHOP_PAYROLL_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "payroll.yaml"


def get_active_config(path: Path | str | None = None) -> PayrollConfig:
    """
    Load the payroll configuration.

    Args:
        path: Explicit file.  Overrides the environment variable.
    """
    chosen = path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    return load_payroll_config(chosen)


__all__ = [
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "compute_checksum",
    "get_active_config",
    "load_payroll_config",
    "load_yaml_file",
    "parse_payroll_config",
]
