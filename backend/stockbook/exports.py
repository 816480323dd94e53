import csv
import io
from typing import Iterable, List

from . import errors
from .schemas import Product, parse
from .tax import quantize_two

CSV_COLUMNS = ['id', 'sku', 'name', 'category', 'price', 'stock', 'reorder_level']


def products_to_csv(products: Iterable[Product]) -> str:
    """Products as comma separated text with CRLF line endings."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator='\r\n')
    writer.writerow(CSV_COLUMNS)
    for p in products:
        writer.writerow([
            p.id,
            p.sku,
            p.name,
            p.category or '',
            f'{quantize_two(p.price):.2f}',
            p.stock,
            p.reorder_level,
        ])
    return buf.getvalue()


def parse_products_csv(text: str) -> List[Product]:
    reader = csv.DictReader(io.StringIO(text, newline=''))
    if reader.fieldnames != CSV_COLUMNS:
        raise errors.ValidationError('Unexpected CSV header: %s' % ','.join(reader.fieldnames or []))
    return [parse(Product, row) for row in reader]
