"""
payroll_config -- single public entrypoint for statutory configuration.

Responsibility:
    Provides the ONLY way to obtain statutory configuration at runtime
    through ``get_active_config()``.  Engines receive the returned
    ``StatutoryConfig`` value; they never read files, environment
    variables, or module-level tables themselves.

Architecture position:
    Configuration -- YAML-driven statutory tables.  This package sits above
    ``payroll_kernel`` and below ``payroll_engines`` consumers in
    ``payroll_modules``.  The kernel MUST NEVER import from
    ``payroll_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic identity: the same YAML document always yields the same
      checksum.
    - No caching: every call re-reads disk, so a regulatory change is a
      data change.

Failure modes:
    - ``FileNotFoundError`` -- no matching configuration set for the
      requested jurisdiction / date.
    - ``ValueError`` / ``KeyError`` -- schema or structural validation
      failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``PAYROLL_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and scope.  Payroll records can be tied back to the exact
    table version that produced them.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from payroll_config.lifecycle import ConfigStatus
from payroll_config.loader import load_config_file
from payroll_config.schema import (
    AdvancePolicy,
    ConfigScope,
    HealthContributionBand,
    IncomeTaxBand,
    PayrollPolicy,
    SocialSecurityTier,
    StatutoryConfig,
)

_logger = logging.getLogger("payroll_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "AdvancePolicy",
    "ConfigScope",
    "ConfigStatus",
    "HealthContributionBand",
    "IncomeTaxBand",
    "PayrollPolicy",
    "SocialSecurityTier",
    "StatutoryConfig",
    "get_active_config",
]


def get_active_config(
    jurisdiction: str,
    as_of_date: date,
    config_dir: Path | None = None,
) -> StatutoryConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``StatutoryConfig`` has passed schema validation.
        - A ``PAYROLL_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - This function does NOT cache configs across calls; callers hold
          the returned value for the duration of a payroll run.

    Args:
        jurisdiction: Jurisdiction code for scope matching (e.g. ``"KE"``).
        as_of_date: Date for effective date filtering.
        config_dir: Override path to configuration sets directory.
            Defaults to payroll_config/sets/.

    Raises:
        FileNotFoundError: If no matching configuration set is found.
        ValueError: If configuration validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    config = _find_matching_config(sets_dir, jurisdiction, as_of_date)

    _logger.info(
        "PAYROLL_CONFIG_TRACE",
        extra={
            "trace_type": "PAYROLL_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "scope_jurisdiction": config.scope.jurisdiction,
            "scope_currency": config.scope.currency,
            "status": config.status.value,
            "income_tax_band_count": len(config.income_tax_bands),
            "health_band_count": len(config.health_bands),
        },
    )
    return config


def _find_matching_config(
    sets_dir: Path, jurisdiction: str, as_of_date: date
) -> StatutoryConfig:
    """Find the configuration set for a jurisdiction and date.

    Scans every ``*.yaml`` file in *sets_dir*.  When several sets cover the
    date, PUBLISHED sets are preferred, then the highest version.

    Raises:
        FileNotFoundError: If ``sets_dir`` does not exist or no
            configuration set matches the given scope and date.
    """
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    candidates: list[StatutoryConfig] = []
    for path in sorted(sets_dir.glob("*.yaml")):
        config = load_config_file(path)
        if config.scope.jurisdiction == jurisdiction and config.scope.covers(as_of_date):
            candidates.append(config)

    if not candidates:
        raise FileNotFoundError(
            f"No configuration set found for jurisdiction='{jurisdiction}' "
            f"as_of_date={as_of_date} in {sets_dir}"
        )

    published = [c for c in candidates if c.status == ConfigStatus.PUBLISHED]
    return max(published or candidates, key=lambda c: c.version)
