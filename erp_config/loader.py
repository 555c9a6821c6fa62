"""
Configuration Loader (``erp_config.loader``).

Responsibility
--------------
Loads a YAML file and parses it into the frozen dataclasses of
``erp_config.schema``.  Runtime callers go through
``erp_config.load_engine_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import EngineConfig, InvoicingConfig, MoneyConfig, NumberingConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, key: str) -> Decimal:
    """Parse a Decimal from YAML, rejecting floats (write amounts as strings)."""
    if isinstance(value, float):
        raise ValueError(f"{key} must be written as a quoted string, got float {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{key} is not a decimal: {value!r}") from exc


def _section(data: dict[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{name}': {sorted(unknown)}")
    return section


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """Build an EngineConfig from a parsed YAML document."""
    unknown = set(data) - {"money", "invoicing", "numbering"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    money = _section(data, "money", {"decimal_places", "rounding"})
    invoicing = _section(
        data,
        "invoicing",
        {"payment_terms_days", "default_vat_rate_percent", "credit_rounding_tolerance"},
    )
    numbering = _section(
        data,
        "numbering",
        {"order_prefix", "invoice_prefix", "credit_note_prefix", "sequence_width"},
    )

    invoicing_kwargs: dict[str, Any] = {}
    if "payment_terms_days" in invoicing:
        invoicing_kwargs["payment_terms_days"] = int(invoicing["payment_terms_days"])
    for key in ("default_vat_rate_percent", "credit_rounding_tolerance"):
        if key in invoicing:
            invoicing_kwargs[key] = parse_decimal(invoicing[key], f"invoicing.{key}")

    return EngineConfig(
        money=MoneyConfig(**money),
        invoicing=InvoicingConfig(**invoicing_kwargs),
        numbering=NumberingConfig(**numbering),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of data."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
