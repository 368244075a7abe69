from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..logging import get_logger
from .models import Item, Totals

_LOG = get_logger("basket")

_CENTS = Decimal("0.01")
_HUNDRED = Decimal("100")


# Quick-add catalog; ids are stable so clients can refer to them.
SAMPLE_ITEMS: Tuple[Item, ...] = (
    Item(id="1", name="Apple", price=Decimal("0.50")),
    Item(id="2", name="Banana", price=Decimal("0.30")),
    Item(id="3", name="Orange", price=Decimal("0.60")),
    Item(id="4", name="Milk", price=Decimal("2.99")),
    Item(id="5", name="Bread", price=Decimal("1.99")),
    Item(id="6", name="egg", price=Decimal("1.99")),
)


def find_catalog_item(item_id: str) -> Optional[Item]:
    for item in SAMPLE_ITEMS:
        if item.id == item_id:
            return item
    return None


def clamp_discount(value: Any) -> Decimal:
    """Coerce user input to a discount percentage within [0, 100]."""
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal("0")
    if not d.is_finite() or d < 0:
        return Decimal("0")
    if d > _HUNDRED:
        return _HUNDRED
    return d


def compute_totals(items: Iterable[Item], discount_percent: Decimal, tax_rate: Decimal) -> Totals:
    """Bill totals at full precision; the discount is trusted to be clamped."""
    subtotal = sum((it.price for it in items), Decimal("0"))
    discount_amount = subtotal * Decimal(discount_percent) / _HUNDRED
    tax_amount = (subtotal - discount_amount) * Decimal(tax_rate)
    total = subtotal - discount_amount + tax_amount
    return Totals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        total=total,
    )


def format_amount(value: Decimal) -> str:
    """Display rounding: half-up to cents, at any magnitude."""
    d = Decimal(value)
    with localcontext() as ctx:
        # quantize needs every integer digit plus the two cents digits
        ctx.prec = max(ctx.prec, d.adjusted() + 3)
        return str(d.quantize(_CENTS, rounding=ROUND_HALF_UP))


def totals_as_dict(totals: Totals) -> Dict[str, str]:
    return {
        "subtotal": format_amount(totals.subtotal),
        "discount_amount": format_amount(totals.discount_amount),
        "tax_amount": format_amount(totals.tax_amount),
        "total": format_amount(totals.total),
    }


class Basket:
    """Insertion-ordered list of items for the current session."""

    def __init__(self, items: Optional[Sequence[Item]] = None) -> None:
        self._items: List[Item] = list(items or [])

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items)

    def __getitem__(self, index: int) -> Item:
        return self._items[index]

    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items)

    def add(self, item: Item) -> Item:
        shown = format_amount(item.price)
        self._items.append(item)
        _LOG.info(f"Added '{item.name}' at {shown} (basket size {len(self._items)})")
        return item

    def remove(self, index: int) -> Item:
        """Remove by position; later items shift down by one."""
        if index < 0 or index >= len(self._items):
            raise IndexError(f"basket index out of range: {index}")
        item = self._items.pop(index)
        _LOG.info(f"Removed '{item.name}' from position {index}")
        return item

    def totals(self, discount_percent: Decimal, tax_rate: Decimal) -> Totals:
        return compute_totals(self._items, discount_percent, tax_rate)
