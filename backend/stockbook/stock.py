"""Transaction application engine.

Shared by both stores: validates line items, prices them and works out the
resulting stock. Transactions are either all-purchase or all-sale, so checking
sale quantities cumulatively against the stock at the start of the
transaction is the same as checking each line against the partially applied
state.
"""
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, NamedTuple, Sequence

from . import errors
from .schemas import Product, TxItem
from .tax import quantize_two, to_decimal

PURCHASE = 'purchase'
SALE = 'sale'


class Movement(NamedTuple):
    type: str
    items: Sequence[TxItem]


def multiplier(tx_type: str) -> int:
    return 1 if tx_type == PURCHASE else -1


def normalize_discount(value) -> Decimal:
    # kept to the two places the tx_items column holds
    return quantize_two(min(Decimal(100), max(Decimal(0), to_decimal(value))))


def discounted_unit_price(unit_price, discount_percent) -> Decimal:
    """Exact price after discount, never below zero. Not rounded."""
    discount = normalize_discount(discount_percent)
    price = to_decimal(unit_price) * (1 - discount / Decimal(100))
    return max(Decimal(0), price)


def _exact_line_total(qty, unit_price, discount_percent) -> Decimal:
    return qty * discounted_unit_price(unit_price, discount_percent)


def line_total(item: TxItem) -> Decimal:
    return quantize_two(_exact_line_total(item.qty, item.unit_price, item.discount_percent))


def transaction_amount(items: Iterable) -> Decimal:
    """Sum of exact line totals, rounded once at the end.

    Accepts anything with ``qty``, ``unit_price`` and ``discount_percent``,
    so stored lines give the same amount as the request that created them.
    """
    exact = sum(
        (_exact_line_total(it.qty, it.unit_price, it.discount_percent) for it in items),
        Decimal('0'),
    )
    return quantize_two(exact)


def validate_line(item: TxItem) -> None:
    if not item.product_id or item.qty is None or item.qty <= 0 \
            or item.unit_price is None or to_decimal(item.unit_price) < 0:
        raise errors.InvalidLineItem('Invalid line item')


def stock_deltas(tx) -> Dict[int, int]:
    """Net stock change per product id, in first-seen order."""
    mult = multiplier(tx.type)
    deltas: Dict[int, int] = OrderedDict()
    for item in tx.items:
        validate_line(item)
        deltas[item.product_id] = deltas.get(item.product_id, 0) + mult * item.qty
    return deltas


def check_stock(stock: Mapping[int, int], tx, allow_negative: bool = False) -> Dict[int, int]:
    """Validate ``tx`` against current ``stock`` levels and return the new levels.

    ``stock`` maps product id to the quantity on hand before the transaction.
    Raises UnknownProduct, InvalidLineItem or InsufficientStock; nothing is
    returned unless every line passes.
    """
    deltas = stock_deltas(tx)
    updated = {}
    for product_id, delta in deltas.items():
        if product_id not in stock:
            raise errors.UnknownProduct(product_id)
        current = int(stock[product_id] or 0)
        if delta < 0 and not allow_negative and current + delta < 0:
            raise errors.InsufficientStock(product_id, current, -delta)
        updated[product_id] = current + delta
    return updated


def apply_transaction(products: Sequence[Product], tx, allow_negative: bool = False) -> List[Product]:
    """Return a new product list with ``tx`` applied; ``products`` is left untouched."""
    levels = check_stock({p.id: p.stock for p in products}, tx, allow_negative)
    return [
        p.model_copy(update={'stock': levels[p.id]}) if p.id in levels else p.model_copy()
        for p in products
    ]
