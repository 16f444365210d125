"""
Sales Configuration Schema.
"""

from dataclasses import dataclass
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.sales.config")


@dataclass
class SalesConfig:
    """Configuration schema for the sales module."""

    deplete_service_items: bool = False
    record_transfers: bool = True

    def __post_init__(self):
        logger.info(
            "sales_config_initialized",
            extra={
                "deplete_service_items": self.deplete_service_items,
                "record_transfers": self.record_transfers,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()
