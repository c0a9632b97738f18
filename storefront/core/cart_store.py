# storefront/core/cart_store.py
from __future__ import annotations
import copy
import logging
from typing import Iterable, List, Optional

from storefront.config import settings
from storefront.database import StorageAdapter, dump_record, load_record
from storefront.models.cart import CartKey, CartLine, CartSnapshot

logger = logging.getLogger(__name__)


class CartStore:
    """
    The shopper's cart before an order is placed: an ordered list of
    CartLine, persisted as a whole under one storage key after every
    mutating call.

    Construct one per application and hand it to whoever needs it:

        store = CartStore(FileStorage())
        store.add_to_cart(CartLine(product_id="p1", unit_price=100.0))
        store.total_price()  # 100.0

    Lines are unique by (product_id, size_id), or by (product_id, variant_id,
    size_id) when key_includes_variant is set.
    """

    def __init__(self, storage: StorageAdapter, storage_key: Optional[str] = None,
                 key_includes_variant: Optional[bool] = None):
        self._storage = storage
        self.storage_key = storage_key or settings.CART_STORAGE_KEY
        if key_includes_variant is None:
            key_includes_variant = settings.CART_KEY_INCLUDES_VARIANT
        self.key_includes_variant = bool(key_includes_variant)
        self._items: List[CartLine] = []
        self.reload()

    # --- persistence ---

    def reload(self) -> None:
        """Replace the in-memory lines with whatever storage currently holds."""
        state = load_record(self._storage.get_item(self.storage_key))
        items: List[CartLine] = []
        for raw in (state or {}).get("items") or []:
            if not isinstance(raw, dict):
                continue
            try:
                items.append(CartLine.from_dict(raw))
            except ValueError:
                logger.warning("Skipping persisted cart line without a product id")
        self._items = items

    def use_storage_key(self, storage_key: str) -> None:
        """Point the cart at another storage record and load what it holds."""
        if storage_key == self.storage_key:
            return
        self.storage_key = storage_key
        self.reload()

    def _persist(self) -> None:
        state = {"items": [line.to_dict() for line in self._items]}
        self._storage.set_item(self.storage_key, dump_record(state))

    # --- lookups ---

    def _key(self, product_id: str, size_id: Optional[str], variant_id: Optional[str] = None) -> CartKey:
        lookup = CartLine(product_id=str(product_id), size_id=size_id, variant_id=variant_id)
        return lookup.key(self.key_includes_variant)

    def _find(self, key: CartKey) -> Optional[CartLine]:
        for line in self._items:
            if line.key(self.key_includes_variant) == key:
                return line
        return None

    @property
    def items(self) -> List[CartLine]:
        return [copy.deepcopy(line) for line in self._items]

    # --- mutations ---

    def _add(self, line: CartLine) -> None:
        existing = self._find(line.key(self.key_includes_variant))
        if existing is not None:
            # first-seen price and display fields win
            existing.quantity = int(existing.quantity) + int(line.quantity)
            return
        self._items.append(copy.deepcopy(line))

    def add_to_cart(self, line: CartLine) -> None:
        self._add(line)
        self._persist()

    def merge_cart(self, lines: Iterable[CartLine]) -> int:
        """
        Replay lines into the cart with add_to_cart semantics, persisting once.
        Returns how many lines were replayed.
        """
        count = 0
        for line in lines:
            self._add(line)
            count += 1
        self._persist()
        return count

    def remove_from_cart(self, product_id: str, size_id: Optional[str], variant_id: Optional[str] = None) -> None:
        key = self._key(product_id, size_id, variant_id)
        self._items = [line for line in self._items if line.key(self.key_includes_variant) != key]
        self._persist()

    def update_quantity(self, product_id: str, size_id: Optional[str], quantity: int,
                        variant_id: Optional[str] = None) -> None:
        # removal is its own action; quantities below one are ignored
        if int(quantity) < 1:
            return
        line = self._find(self._key(product_id, size_id, variant_id))
        if line is not None:
            line.quantity = int(quantity)
        self._persist()

    def clear_cart(self) -> None:
        self._items = []
        self._persist()

    # --- aggregates ---

    def total_items(self) -> int:
        return int(sum(line.quantity for line in self._items))

    def total_price(self) -> float:
        return float(sum(line.line_total() for line in self._items))

    def is_digital_only(self) -> bool:
        return all(line.product_type == "digital" for line in self._items)

    def get_cart_snapshot(self) -> CartSnapshot:
        return CartSnapshot.capture(self._items)

    def __len__(self) -> int:
        return len(self._items)
