"""
Configuration Validator (``revenue_config.validator``).

Responsibility
--------------
Validates a ``BillingPolicy`` before it is handed to the engines.

Invariants enforced
-------------------
* VAT rate within 0..100.
* Every label used on invoices is non-empty.
* Sale-status profiles do not both include and exclude one status.
* The ``unbilled`` profile exists, since the balance view depends on it.

Failure modes
-------------
* Validation errors (``ConfigValidationResult.errors``) -> the policy
  MUST NOT be used.
* Validation warnings -> the policy is usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

from revenue_config.schema import BillingPolicy

REQUIRED_PROFILES = ("unbilled",)


@dataclass
class ConfigValidationResult:
    """
    Result of policy validation.

    ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_policy(policy: BillingPolicy) -> ConfigValidationResult:
    """Validate a parsed billing policy."""
    result = ConfigValidationResult()

    if not 0 <= policy.default_vat_rate <= 100:
        result.add_error(
            f"default_vat_rate must be between 0 and 100, got {policy.default_vat_rate}"
        )

    for f in fields(policy.labels):
        if not getattr(policy.labels, f.name).strip():
            result.add_error(f"invoice label '{f.name}' must not be empty")

    for name, profile in policy.sale_status_profiles.items():
        if profile.include is not None:
            overlap = profile.include & profile.exclude
            if overlap:
                result.add_error(
                    f"sale status profile '{name}' both includes and excludes: "
                    f"{', '.join(sorted(overlap))}"
                )
            if not profile.include - profile.exclude:
                result.add_warning(f"sale status profile '{name}' admits no status")

    for name in REQUIRED_PROFILES:
        if name not in policy.sale_status_profiles:
            result.add_error(f"missing required sale status profile '{name}'")

    if policy.scope.effective_to and policy.scope.effective_to < policy.scope.effective_from:
        result.add_error("scope.effective_to is before scope.effective_from")

    return result
