"""
Ledger configuration.

``load_config()`` returns the packaged default; pass a path to load a
company-specific YAML file instead.
"""

from ledger_config.loader import compute_checksum, load_config, load_yaml_file, parse_config
from ledger_config.schema import (
    AccountCodes,
    ApprovalPolicy,
    ItemClassAccountTable,
    LedgerConfig,
    MatchPolicy,
)

__all__ = [
    "AccountCodes",
    "ApprovalPolicy",
    "ItemClassAccountTable",
    "LedgerConfig",
    "MatchPolicy",
    "compute_checksum",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
