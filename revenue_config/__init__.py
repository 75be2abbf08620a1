"""
revenue_config -- single public entrypoint for billing configuration.

Responsibility:
    Provides the ONLY way to obtain the billing policy at runtime through
    ``get_active_config()``.  Report layers never read policy YAML
    directly.

Architecture position:
    Configuration -- YAML-driven policy, validated on load.
    Sits above ``revenue_kernel`` and ``revenue_engines``; neither of
    them imports from here.  ``revenue_config.bridges`` turns a policy
    into engine inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation: a policy with validation errors is never returned.
    - Checksum pinning: when an APPROVED_FINGERPRINT file exists, the
      loaded checksum must match it.

Failure modes:
    - ``FileNotFoundError`` -- no policy set matches the company/date.
    - ``ValueError`` -- validation failures.
    - ``ConfigIntegrityError`` -- checksum mismatch against the pin file.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``REVENUE_CONFIG_TRACE`` log entry with the config id, version,
    status and checksum, tying report figures to the policy in force.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from revenue_config.integrity import ConfigIntegrityError, verify_fingerprint_pin
from revenue_config.loader import load_policy
from revenue_config.schema import BillingPolicy, ConfigScope, ConfigStatus, InvoiceLabels
from revenue_config.validator import validate_policy

__all__ = [
    "BillingPolicy",
    "ConfigIntegrityError",
    "ConfigScope",
    "ConfigStatus",
    "InvoiceLabels",
    "get_active_config",
]

_logger = logging.getLogger("revenue_kernel.config")

# Default policy sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
_ROOT_FILE = "root.yaml"


def get_active_config(
    company: str,
    as_of_date: date,
    config_dir: Path | None = None,
) -> BillingPolicy:
    """The ONLY public configuration entrypoint.

    Args:
        company: Company identifier matched against each set's scope
            ("*" in a set matches any company).
        as_of_date: Date that must fall within the set's effective range.
        config_dir: Override path to the policy sets directory.
            Defaults to revenue_config/sets/.

    Returns:
        The validated ``BillingPolicy``.

    Raises:
        FileNotFoundError: If no matching policy set is found.
        ValueError: If the policy fails validation.
        ConfigIntegrityError: If a pin file exists and does not match.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    policy, set_dir = _find_matching_policy(sets_dir, company, as_of_date)

    validation = validate_policy(policy)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning("config_validation_warning", extra={
            "config_set_id": policy.config_id,
            "warning": warning,
        })

    verify_fingerprint_pin(policy, set_dir)

    _logger.info(
        "REVENUE_CONFIG_TRACE",
        extra={
            "trace_type": "REVENUE_CONFIG_TRACE",
            "config_set_id": policy.config_id,
            "config_set_version": policy.version,
            "config_status": policy.status.value,
            "checksum": policy.checksum,
            "scope_company": policy.scope.company,
            "currency": policy.scope.currency,
            "profile_count": len(policy.sale_status_profiles),
        },
    )
    return policy


def _find_matching_policy(
    sets_dir: Path, company: str, as_of_date: date
) -> tuple[BillingPolicy, Path]:
    """Find the policy set covering *company* on *as_of_date*.

    Only APPROVED and PUBLISHED sets are eligible. Among several matches
    PUBLISHED sets win, then the highest version. DRAFT and SUPERSEDED
    sets are skipped even when nothing else matches.

    Raises:
        FileNotFoundError: If ``sets_dir`` does not exist or nothing matches.
    """
    if not sets_dir.is_dir():
        raise FileNotFoundError(f"Configuration sets directory not found: {sets_dir}")

    candidates: list[tuple[BillingPolicy, Path]] = []
    for subdir in sorted(sets_dir.iterdir()):
        root_file = subdir / _ROOT_FILE
        if not subdir.is_dir() or not root_file.exists():
            continue
        policy = load_policy(root_file)
        if policy.status.selectable and policy.scope.covers(company, as_of_date):
            candidates.append((policy, subdir))

    if not candidates:
        raise FileNotFoundError(
            f"No configuration set found for company='{company}' "
            f"as_of_date={as_of_date} in {sets_dir}"
        )

    return max(candidates, key=lambda pair: (pair[0].status.rank, pair[0].version))
