"""
Manufacturing Configuration Schema.
"""

from dataclasses import dataclass
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.manufacturing.config")


@dataclass
class ManufacturingConfig:
    """
    Configuration schema for the manufacturing step engine.

    ``receiving_keyword`` marks a first step as a receiving stage when its
    routing description contains it (case-insensitive).
    """

    receiving_keyword: str = "receiv"
    record_transfers: bool = True

    def __post_init__(self):
        logger.info(
            "manufacturing_config_initialized",
            extra={
                "receiving_keyword": self.receiving_keyword,
                "record_transfers": self.record_transfers,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        return cls(**data)
