"""
Approval pins for billing policy sets.

Approving a set writes its checksum to an APPROVED_FINGERPRINT file next
to ``root.yaml``. Every later load compares the freshly computed checksum
against that pin, so an edited approved set is refused instead of
quietly changing the VAT rate or the unbilled status profile behind
past reports. Sets without a pin are loaded unchecked.
"""

from __future__ import annotations

from pathlib import Path

from revenue_config.schema import BillingPolicy

PINFILE_NAME = "APPROVED_FINGERPRINT"


class ConfigIntegrityError(Exception):
    """An approved policy set was edited after its checksum was pinned."""

    code: str = "CONFIG_INTEGRITY_MISMATCH"

    def __init__(self, config_id: str, pinned: str, loaded: str, set_dir: Path):
        self.config_id = config_id
        self.pinned = pinned
        self.loaded = loaded
        self.set_dir = set_dir
        super().__init__(
            f"Policy set '{config_id}' in {set_dir} no longer matches its "
            f"approval pin ({pinned[:12]} pinned, {loaded[:12]} loaded)"
        )


def pin_path(set_dir: Path) -> Path:
    return set_dir / PINFILE_NAME


def write_pin(set_dir: Path, policy: BillingPolicy) -> Path:
    """Record *policy*'s checksum as the approved fingerprint of *set_dir*."""
    path = pin_path(set_dir)
    path.write_text(policy.checksum + "\n", encoding="utf-8")
    return path


def verify_fingerprint_pin(policy: BillingPolicy, set_dir: Path) -> None:
    """
    Raises:
        ConfigIntegrityError: If *set_dir* carries a pin other than the
            checksum of *policy*.
    """
    path = pin_path(set_dir)
    if not path.is_file():
        return
    pinned = path.read_text(encoding="utf-8").strip()
    if pinned != policy.checksum:
        raise ConfigIntegrityError(policy.config_id, pinned, policy.checksum, set_dir)
