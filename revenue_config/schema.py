"""
BillingPolicy schema.

The human-authored, reviewable billing configuration: invoice labels and
defaults plus the named sale-status profiles each report uses. YAML
fragments are parsed into these types by the loader; bridges turn them
into engine inputs.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum, unique

from revenue_kernel.domain.models import SaleStatusFilter


@unique
class ConfigStatus(str, Enum):
    """
    Review state of a policy set.

    Only APPROVED and PUBLISHED sets are ever selected at runtime, with
    PUBLISHED ranked first. DRAFT sets are work in progress; SUPERSEDED
    sets stay on disk so past report runs can be explained.
    """

    DRAFT = "draft"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"

    @property
    def selectable(self) -> bool:
        return self in (ConfigStatus.APPROVED, ConfigStatus.PUBLISHED)

    @property
    def rank(self) -> int:
        """Preference among selectable sets; higher wins."""
        return 1 if self is ConfigStatus.PUBLISHED else 0


@dataclass(frozen=True)
class ConfigScope:
    """Scope of applicability for a policy set."""

    company: str  # "*" matches any company
    currency: str
    effective_from: date
    effective_to: date | None = None

    def covers(self, company: str, as_of_date: date) -> bool:
        company_matches = self.company in ("*", company)
        date_matches = self.effective_from <= as_of_date and (
            self.effective_to is None or self.effective_to >= as_of_date
        )
        return company_matches and date_matches


@dataclass(frozen=True)
class InvoiceLabels:
    """Line and header labels expected by the accounting-import tool."""

    default_unit: str = "Adet"
    service_title: str = "Zararlı Mücadelesi"
    material_title: str = "Malzeme"
    material_description_suffix: str = "MALZEME BEDELİ"
    standing_fee_description: str = "AYLIK SABİT ÜCRET"
    no_branch_label: str = "Genel"
    all_branches_label: str = "Tüm Şubeler"
    service_category: str = "HİZMET"
    material_category: str = "MALZEME"
    warehouse_name: str = "Ana Depo"


@dataclass(frozen=True)
class BillingPolicy:
    """
    A complete, versioned billing policy set.

    ``checksum`` is the SHA-256 of the canonical source data and changes
    with any edit.
    """

    config_id: str
    version: int
    status: ConfigStatus
    scope: ConfigScope
    default_vat_rate: Decimal
    labels: InvoiceLabels
    sale_status_profiles: Mapping[str, SaleStatusFilter] = field(default_factory=dict)
    checksum: str = ""
