"""
Ledger configuration schema.

Typed, frozen view of the YAML configuration: the account numbers the
pipelines post to, the item-class to asset-account table, the bill
approval policy and the three-way-match price tolerance.  The loader
parses YAML into these types; services receive them already validated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ledger_kernel.domain.inventory import ItemClass, QcStatus
from ledger_kernel.exceptions import UnknownItemClassError

# ---------------------------------------------------------------------------
# Account codes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountCodes:
    """Fixed GL accounts used by the document pipelines."""

    accounts_payable: str = "2100"
    accounts_receivable: str = "1200"
    sales_income: str = "4100"
    sales_discounts: str = "4200"
    sales_tax: str = "2200"
    cost_of_goods_sold: str = "5100"
    manufacturing_overhead: str = "5000"
    raw_materials: str = "1310"
    work_in_progress: str = "1330"
    finished_goods: str = "1340"
    bank: str = "1110"

    def __post_init__(self) -> None:
        for name, value in self.__dict__.items():
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"account code {name!r} must be a non-empty string")


# ---------------------------------------------------------------------------
# Item class -> asset account table
# ---------------------------------------------------------------------------


def _default_class_accounts() -> Mapping[str, str]:
    return MappingProxyType(
        {
            ItemClass.RAW_MATERIAL.value: "1310",
            ItemClass.WIP.value: "1330",
            ItemClass.FINISHED_GOODS.value: "1340",
            ItemClass.SERVICE.value: "5100",
        }
    )


@dataclass(frozen=True)
class ItemClassAccountTable:
    """
    Explicit item-class to default asset account mapping.

    Every key must be a known ItemClass and every value a non-empty code.
    Looking up a class that is not in the table raises
    UnknownItemClassError rather than falling back to anything.
    """

    accounts: Mapping[str, str] = field(default_factory=_default_class_accounts)

    def __post_init__(self) -> None:
        known = {c.value for c in ItemClass}
        for item_class, code in self.accounts.items():
            if item_class not in known:
                raise UnknownItemClassError(item_class, tuple(sorted(known)))
            if not isinstance(code, str) or not code.strip():
                raise ValueError(f"item class {item_class} has an empty account code")
        if not isinstance(self.accounts, MappingProxyType):
            object.__setattr__(self, "accounts", MappingProxyType(dict(self.accounts)))

    def account_for(self, item_class: str) -> str:
        try:
            return self.accounts[item_class]
        except KeyError:
            raise UnknownItemClassError(item_class, tuple(sorted(self.accounts))) from None

    def as_mapping(self) -> Mapping[str, str]:
        return self.accounts


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApprovalPolicy:
    """Bills above ``threshold`` from a non-elevated actor wait for approval."""

    enabled: bool = True
    threshold: int = 1_000_000_000

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError("approval threshold must not be negative")

    def requires_approval(self, bill_total: int, actor_elevated: bool) -> bool:
        return self.enabled and not actor_elevated and bill_total > self.threshold


@dataclass(frozen=True)
class MatchPolicy:
    """Three-way-match price tolerance in basis points of the PO unit cost."""

    price_tolerance_bps: int = 500

    def __post_init__(self) -> None:
        if self.price_tolerance_bps < 0:
            raise ValueError("price tolerance must not be negative")


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    """Complete ledger configuration."""

    config_id: str = "default"
    version: int = 1
    account_codes: AccountCodes = field(default_factory=AccountCodes)
    item_class_accounts: ItemClassAccountTable = field(default_factory=ItemClassAccountTable)
    approval: ApprovalPolicy = field(default_factory=ApprovalPolicy)
    match: MatchPolicy = field(default_factory=MatchPolicy)
    bill_layer_qc_status: str = QcStatus.NOT_REQUIRED.value
    checksum: str = ""

    def __post_init__(self) -> None:
        QcStatus(self.bill_layer_qc_status)
