"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads the ledger YAML file and parses it into the typed
``ledger_config.schema`` dataclasses.  With no path, the packaged
``defaults/ledger.yaml`` is used.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown top-level sections are rejected rather than ignored.
* ``compute_checksum`` is a deterministic SHA-256 over the parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys  -> ``ValueError``.
* Unknown item class  -> ``UnknownItemClassError``.

Audit relevance
---------------
The checksum lets an auditor confirm which configuration a run used.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    AccountCodes,
    ApprovalPolicy,
    ItemClassAccountTable,
    LedgerConfig,
    MatchPolicy,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"

_TOP_LEVEL_KEYS = frozenset(
    {"config_id", "version", "accounts", "item_class_accounts", "approval", "match", "purchasing"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def _build(cls, data: dict[str, Any] | None, section: str):
    data = data or {}
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ValueError(f"unknown keys in {section}: {sorted(unknown)}")
    return cls(**{k: (str(v) if cls is AccountCodes else v) for k, v in data.items()})


def parse_config(data: dict[str, Any]) -> LedgerConfig:
    """Parse a raw YAML dict into a LedgerConfig."""
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"unknown configuration sections: {sorted(unknown)}")

    class_accounts = data.get("item_class_accounts")
    purchasing = data.get("purchasing") or {}
    return LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        account_codes=_build(AccountCodes, data.get("accounts"), "accounts"),
        item_class_accounts=(
            ItemClassAccountTable({str(k): str(v) for k, v in class_accounts.items()})
            if class_accounts
            else ItemClassAccountTable()
        ),
        approval=_build(ApprovalPolicy, data.get("approval"), "approval"),
        match=_build(MatchPolicy, data.get("match"), "match"),
        bill_layer_qc_status=str(purchasing.get("bill_layer_qc_status", "NOT_REQUIRED")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the configuration content."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_config(path: Path | str | None = None) -> LedgerConfig:
    """Load and parse a configuration file (packaged default when None)."""
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(source))
    logger.info(
        "config_loaded",
        extra={
            "path": str(source),
            "config_id": config.config_id,
            "version": config.version,
            "checksum": config.checksum,
        },
    )
    return config
