"""
Purchasing Configuration Schema.

Module-level switches for the purchasing pipeline.  Account numbers, the
approval threshold and the price tolerance live in ``LedgerConfig``.
"""

from dataclasses import dataclass
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.purchasing.config")


@dataclass
class PurchasingConfig:
    """
    Configuration schema for the purchasing module.

        config = PurchasingConfig(allow_over_receipt=True)
    """

    batch_prefix: str = "BILL"
    create_layers_for_service_items: bool = False
    allow_over_receipt: bool = False
    pay_only_fully_received: bool = True

    def __post_init__(self):
        logger.info(
            "purchasing_config_initialized",
            extra={
                "batch_prefix": self.batch_prefix,
                "create_layers_for_service_items": self.create_layers_for_service_items,
                "allow_over_receipt": self.allow_over_receipt,
                "pay_only_fully_received": self.pay_only_fully_received,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        logger.info("purchasing_config_loading_from_dict", extra={"keys": sorted(data.keys())})
        return cls(**data)
