"""
Configuration Loader (``revenue_config.loader``).

Responsibility
--------------
Loads billing policy YAML files and parses them into typed
``revenue_config.schema`` dataclass instances.  The single public entry
point for runtime config is ``revenue_config.get_active_config()``.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid date, rate or status  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from revenue_config.schema import BillingPolicy, ConfigScope, ConfigStatus, InvoiceLabels
from revenue_kernel.domain.models import SaleStatusFilter
from revenue_kernel.domain.values import to_decimal


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_scope(data: dict[str, Any]) -> ConfigScope:
    """Parse a ConfigScope from a dict."""
    return ConfigScope(
        company=str(data["company"]),
        currency=data["currency"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_sale_status_filter(data: dict[str, Any] | None) -> SaleStatusFilter:
    """
    Parse one sale-status profile.

    ``include`` omitted means every status; ``exclude`` is optional.
    """
    data = data or {}
    include = data.get("include")
    return SaleStatusFilter(
        include=frozenset(include) if include is not None else None,
        exclude=frozenset(data.get("exclude", ())),
    )


def parse_invoice_labels(data: dict[str, Any]) -> InvoiceLabels:
    """Parse invoice labels; keys not given keep their defaults."""
    known = InvoiceLabels.__dataclass_fields__
    unknown = sorted(set(data) - set(known) - {"default_vat_rate"})
    if unknown:
        raise ValueError(f"Unknown invoice setting(s): {', '.join(unknown)}")
    return InvoiceLabels(**{k: str(v) for k, v in data.items() if k in known})


def parse_policy(data: dict[str, Any]) -> BillingPolicy:
    """
    Parse a ``BillingPolicy`` from a root document.

    Raises:
        KeyError: if ``config_id``, ``version`` or ``scope`` is missing.
        ValueError: if a date, rate or status cannot be parsed.
    """
    invoice = data.get("invoice", {})
    profiles = {
        name: parse_sale_status_filter(profile)
        for name, profile in (data.get("sale_status_profiles") or {}).items()
    }
    return BillingPolicy(
        config_id=data["config_id"],
        version=int(data["version"]),
        status=ConfigStatus(data.get("status", ConfigStatus.DRAFT.value)),
        scope=parse_scope(data["scope"]),
        default_vat_rate=to_decimal(invoice.get("default_vat_rate", "20"), "default_vat_rate"),
        labels=parse_invoice_labels(invoice),
        sale_status_profiles=MappingProxyType(profiles),
        checksum=compute_checksum(data),
    )


def load_policy(path: Path) -> BillingPolicy:
    """Load and parse a policy root file."""
    return parse_policy(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
