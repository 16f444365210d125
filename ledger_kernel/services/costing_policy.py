"""
CostingPolicyResolver -- per-item valuation method and asset account.

Responsibility:
    Answers two questions the pipelines ask about an item: which GL asset
    account carries its inventory value, and what one unit currently costs
    under the item's valuation method.

Architecture position:
    Kernel > Services.  Sits above the InventoryLayerStore.  The item-class
    to account table is injected (built and validated by ledger_config), so
    the kernel never hard-codes account numbers.

Invariants enforced:
    - An item's own ``asset_account_code`` wins over the class default.
    - An item class missing from the table fails loudly.
    - STANDARD -> standard_cost; WEIGHTED_AVG -> half-up rounded average over
      non-depleted layers (0 if none); FIFO -> unit cost of the oldest
      non-depleted layer (0 if none).

Failure modes:
    - ItemNotFoundError, UnknownItemClassError.
"""

from collections.abc import Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.inventory import (
    ValuationMethod,
    fifo_current_cost,
    weighted_average_cost,
)
from ledger_kernel.exceptions import ItemNotFoundError, UnknownItemClassError
from ledger_kernel.models.item import Item
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.inventory_layers import InventoryLayerStore


class CostingPolicyResolver(BaseService):
    """Resolves costing account and current unit cost for items."""

    def __init__(
        self,
        session: Session,
        class_accounts: Mapping[str, str],
        clock: Clock | None = None,
        layers: InventoryLayerStore | None = None,
    ):
        super().__init__(session, clock)
        self._class_accounts = dict(class_accounts)
        self._layers = layers or InventoryLayerStore(session, self.clock)

    def get_item(self, item_id: UUID) -> Item:
        item = self.session.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def resolve_costing_account(self, item: Item) -> str:
        if item.asset_account_code:
            return item.asset_account_code
        try:
            return self._class_accounts[item.item_class]
        except KeyError:
            raise UnknownItemClassError(
                item.item_class, tuple(sorted(self._class_accounts))
            ) from None

    def current_cost(self, item: Item) -> int:
        method = ValuationMethod(item.valuation_method)
        if method is ValuationMethod.STANDARD:
            return item.standard_cost
        snapshots = [layer.to_snapshot() for layer in self._layers.layers_for_item(item.id)]
        if method is ValuationMethod.WEIGHTED_AVG:
            return weighted_average_cost(snapshots)
        return fifo_current_cost(snapshots)

    def on_hand_value(self, item: Item) -> int:
        """Sum of remaining x unit cost over the item's non-depleted layers."""
        return sum(layer.value for layer in self._layers.layers_for_item(item.id))
