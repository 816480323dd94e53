from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Union

from .tax import to_decimal

ProductLike = Union[Mapping, object]


def _field(product: ProductLike, name: str):
    if isinstance(product, Mapping):
        return product.get(name)
    return getattr(product, name, None)


def _int(value) -> int:
    try:
        return int(to_decimal(value))
    except Exception:
        return 0


def uid(rows: Iterable[ProductLike]) -> int:
    """Next id for the fallback store: max(id) + 1, starting at 1."""
    return max((_int(_field(r, 'id')) for r in rows), default=0) + 1


def compute_total_value(products: Iterable[ProductLike]) -> Decimal:
    total = Decimal('0')
    for p in products:
        total += to_decimal(_field(p, 'price')) * _int(_field(p, 'stock'))
    return total


def is_low_stock(product: ProductLike) -> bool:
    return _int(_field(product, 'stock')) <= _int(_field(product, 'reorder_level'))


def low_stock_products(products: Iterable[ProductLike]) -> List[ProductLike]:
    return [p for p in products if is_low_stock(p)]


def low_stock_count(products: Iterable[ProductLike]) -> int:
    return len(low_stock_products(products))


def inventory_summary(products: List[ProductLike]) -> Dict:
    low = low_stock_products(products)
    return {
        'product_count': len(products),
        'total_value': compute_total_value(products),
        'low_stock_count': len(low),
        'low_stock': low,
    }
