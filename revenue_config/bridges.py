"""
Bridges -- translate a BillingPolicy into engine inputs.

The engines never import ``revenue_config``; report layers call these
helpers to turn the active policy into ``InvoiceSettings`` and
``SaleStatusFilter`` values.
"""

from __future__ import annotations

from revenue_config.schema import BillingPolicy
from revenue_engines.invoicing import InvoiceSettings
from revenue_kernel.domain.models import SaleStatusFilter


def invoice_settings(policy: BillingPolicy) -> InvoiceSettings:
    """Build engine invoice settings from a policy."""
    labels = policy.labels
    return InvoiceSettings(
        default_vat_rate=policy.default_vat_rate,
        default_unit=labels.default_unit,
        service_title=labels.service_title,
        material_title=labels.material_title,
        material_description_suffix=labels.material_description_suffix,
        standing_fee_description=labels.standing_fee_description,
        no_branch_label=labels.no_branch_label,
        all_branches_label=labels.all_branches_label,
        service_category=labels.service_category,
        material_category=labels.material_category,
        warehouse_name=labels.warehouse_name,
    )


def sale_status_filter(policy: BillingPolicy, profile: str) -> SaleStatusFilter:
    """
    Look up a named sale-status profile.

    Raises:
        KeyError: if the policy has no such profile.
    """
    try:
        return policy.sale_status_profiles[profile]
    except KeyError:
        available = ", ".join(sorted(policy.sale_status_profiles)) or "none"
        raise KeyError(
            f"Unknown sale status profile '{profile}' (available: {available})"
        ) from None
