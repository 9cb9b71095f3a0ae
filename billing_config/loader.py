"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads invoicing settings from a YAML file into an ``InvoicingConfig``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError`` from ``InvoicingConfig``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.config import InvoicingConfig

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "invoicing.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def load_invoicing_config(path: Path | str | None = None) -> InvoicingConfig:
    """
    Build an ``InvoicingConfig`` from YAML.

    The file may hold the settings at the top level or under an
    ``invoicing:`` key.  Decimal-valued settings may be written as strings
    to avoid float parsing.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(config_path)
    section = data.get("invoicing", data)
    if not isinstance(section, dict):
        raise ValueError(f"{config_path}: 'invoicing' must be a mapping")

    config = InvoicingConfig.from_dict(dict(section))
    logger.info(
        "invoicing_config_loaded",
        extra={"path": str(config_path), "checksum": compute_checksum(section)},
    )
    return config


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
