"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Loads statutory configuration YAML files and parses them into typed
``payroll_config.schema`` dataclass instances.  Callers obtain runtime
configuration through ``payroll_config.get_active_config()``; the loader
functions are exposed for tests and tooling.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* Every parsed object is a frozen dataclass from ``schema.py``.
* Monetary values and rates are parsed through ``str`` into ``Decimal`` so
  a YAML float such as ``0.325`` never carries binary noise.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid values  -> ``ValueError`` from parsing or schema validation.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.lifecycle import ConfigStatus
from payroll_config.schema import (
    AdvancePolicy,
    ConfigScope,
    HealthContributionBand,
    IncomeTaxBand,
    PayrollPolicy,
    SocialSecurityTier,
    StatutoryConfig,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any) -> Decimal:
    """Parse a Decimal from a YAML scalar (int, float or string)."""
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot parse decimal from {value!r}") from None


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else parse_decimal(value)


def parse_scope(data: dict[str, Any]) -> ConfigScope:
    """Parse a ConfigScope from a dict."""
    return ConfigScope(
        jurisdiction=data["jurisdiction"],
        currency=data["currency"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_income_tax_band(data: dict[str, Any]) -> IncomeTaxBand:
    return IncomeTaxBand(
        min_amount=parse_decimal(data["min"]),
        max_amount=_optional_decimal(data.get("max")),
        rate=parse_decimal(data["rate"]),
        base_amount=parse_decimal(data.get("base_amount", 0)),
    )


def parse_social_security_tier(data: dict[str, Any]) -> SocialSecurityTier:
    return SocialSecurityTier(
        upper_limit=parse_decimal(data["upper_limit"]),
        rate=parse_decimal(data["rate"]),
    )


def parse_health_band(data: dict[str, Any]) -> HealthContributionBand:
    return HealthContributionBand(
        min_amount=parse_decimal(data["min"]),
        max_amount=_optional_decimal(data.get("max")),
        amount=parse_decimal(data["amount"]),
    )


def parse_advance_policy(data: dict[str, Any] | None) -> AdvancePolicy:
    """Parse an AdvancePolicy; absent keys fall back to schema defaults."""
    if not data:
        return AdvancePolicy()
    kwargs: dict[str, Any] = {}
    if "max_advance_rate" in data:
        kwargs["max_advance_rate"] = parse_decimal(data["max_advance_rate"])
    if "max_advance_amount" in data:
        kwargs["max_advance_amount"] = _optional_decimal(data["max_advance_amount"])
    for key in ("min_service_months", "default_repayment_months", "max_repayment_months"):
        if key in data:
            kwargs[key] = int(data[key])
    return AdvancePolicy(**kwargs)


def parse_payroll_policy(data: dict[str, Any] | None) -> PayrollPolicy:
    if not data:
        return PayrollPolicy()
    kwargs: dict[str, Any] = {}
    for key in ("default_overtime_multiplier", "excessive_hours_threshold"):
        if key in data:
            kwargs[key] = parse_decimal(data[key])
    return PayrollPolicy(**kwargs)


def parse_statutory_config(data: dict[str, Any]) -> StatutoryConfig:
    """
    Parse a complete ``StatutoryConfig`` from a dict.

    Preconditions:
        - ``data`` contains ``config_id``, ``version``, ``scope``,
          ``income_tax``, ``social_security`` and ``health_contribution``.
    Postconditions:
        - Returns a validated, frozen ``StatutoryConfig`` whose ``checksum``
          is the canonical hash of ``data``.
    """
    income_tax = data["income_tax"]
    return StatutoryConfig(
        config_id=data["config_id"],
        version=int(data["version"]),
        status=ConfigStatus(data.get("status", "draft")),
        scope=parse_scope(data["scope"]),
        income_tax_bands=tuple(parse_income_tax_band(b) for b in income_tax["bands"]),
        personal_relief=parse_decimal(income_tax.get("personal_relief", 0)),
        social_security_tiers=tuple(
            parse_social_security_tier(t) for t in data["social_security"]["tiers"]
        ),
        health_bands=tuple(
            parse_health_band(b) for b in data["health_contribution"]["bands"]
        ),
        advance_policy=parse_advance_policy(data.get("advance_policy")),
        payroll_policy=parse_payroll_policy(data.get("payroll_policy")),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> StatutoryConfig:
    """Load and parse one configuration set file."""
    return parse_statutory_config(load_yaml_file(path))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
