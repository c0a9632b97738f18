# storefront/models/cart.py
from __future__ import annotations
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


CartKey = Tuple[Optional[str], ...]


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class CartLine:
    """
    One purchasable unit in the cart. Price and presentation fields are
    captured when the line is added and never re-fetched.

    Stored with the wire names the storefront frontend uses (id, price, name,
    image, sizeId, ...); from_dict also accepts the snake_case names.
    """
    product_id: str
    quantity: int = 1
    unit_price: float = 0.0
    variant_id: Optional[str] = None
    size_id: Optional[str] = None
    display_name: str = ""
    image_url: str = ""
    size_label: str = ""
    color: str = ""
    product_type: str = "physical"  # physical | digital

    def key(self, include_variant: bool = False) -> CartKey:
        if include_variant:
            return (self.product_id, self.variant_id, self.size_id)
        return (self.product_id, self.size_id)

    def line_total(self) -> float:
        return float(self.unit_price) * int(self.quantity)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CartLine":
        if d is None:
            raise ValueError("Cannot construct CartLine from None")
        product_id = str(d.get("id") or d.get("product_id") or d.get("productId") or "")
        if not product_id:
            raise ValueError("Cart line requires a product id")
        try:
            quantity = int(float(d.get("quantity") or d.get("qty") or 1))
        except (TypeError, ValueError):
            quantity = 1
        try:
            unit_price = float(d.get("price") or d.get("unit_price") or 0.0)
        except (TypeError, ValueError):
            unit_price = 0.0
        return cls(
            product_id=product_id,
            quantity=quantity,
            unit_price=unit_price,
            variant_id=_opt_str(d.get("variantId", d.get("variant_id"))),
            size_id=_opt_str(d.get("sizeId", d.get("size_id"))),
            display_name=str(d.get("name") or d.get("display_name") or ""),
            image_url=str(d.get("image") or d.get("image_url") or ""),
            size_label=str(d.get("sizeLabel") or d.get("size_label") or ""),
            color=str(d.get("color") or ""),
            product_type=str(d.get("productType") or d.get("product_type") or "physical"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.product_id,
            "name": self.display_name,
            "price": float(self.unit_price),
            "quantity": int(self.quantity),
            "image": self.image_url,
            "sizeId": self.size_id,
            "sizeLabel": self.size_label,
            "variantId": self.variant_id,
            "color": self.color,
            "productType": self.product_type,
        }

@dataclass(frozen=True)
class CartSnapshot:
    """
    Point-in-time copy of the cart and its totals. Lines are held as read-only
    wire records; `items` and `lines()` build new CartLine objects on every
    access, so nothing a caller does to them reaches the snapshot.
    """
    records: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)
    total_items: int = 0
    total_price: float = 0.0

    @classmethod
    def capture(cls, lines) -> "CartSnapshot":
        records = tuple(MappingProxyType(line.to_dict()) for line in lines)
        return cls(
            records=records,
            total_items=int(sum(r["quantity"] for r in records)),
            total_price=float(sum(r["price"] * r["quantity"] for r in records)),
        )

    @property
    def items(self) -> Tuple[CartLine, ...]:
        return tuple(CartLine.from_dict(dict(r)) for r in self.records)

    def lines(self) -> List[CartLine]:
        return list(self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [dict(r) for r in self.records],
            "totalItems": self.total_items,
            "totalPrice": self.total_price,
        }
