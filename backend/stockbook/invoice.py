"""Invoice payload assembly and HTML rendering.

``render_invoice_html`` is a pure function of its payload: no clock, no I/O,
identical markup for identical input. The decorative square in the lower
panel is a content-keyed pattern, not a scannable code.
"""
import os
import struct
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Mapping, NamedTuple, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape
from markupsafe import Markup

from .schemas import InvoiceCustomer, InvoiceLine, InvoicePayload, TransactionDetail
from .stock import discounted_unit_price, transaction_amount
from .tax import after_tax_total, quantize_two, round_whole, tax_amount, to_decimal

TEMPLATES_DIR = os.path.join(os.path.dirname(__file__), 'templates')
env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(['html', 'xml']),
)

CURRENCY_WORDS = 'Rupees Only'
PATTERN_PREFIX = 'BabyBox'
PATTERN_MODULES = 26
PATTERN_CELL = 5
INVOICE_PATTERN_CELL = 6
LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
MASK32 = 0xFFFFFFFF

ONES = ['', 'One', 'Two', 'Three', 'Four', 'Five', 'Six', 'Seven', 'Eight', 'Nine']
TEENS = ['Ten', 'Eleven', 'Twelve', 'Thirteen', 'Fourteen', 'Fifteen', 'Sixteen',
         'Seventeen', 'Eighteen', 'Nineteen']
TENS = ['', '', 'Twenty', 'Thirty', 'Forty', 'Fifty', 'Sixty', 'Seventy', 'Eighty', 'Ninety']


class Seller(NamedTuple):
    name: str = 'KD COLLECTION'
    address: str = 'D-33 Shyam Park extension Rajendra nagar Ghaziabad'
    jurisdiction: str = 'Uttar Pradesh'


def _below_thousand(n: int) -> str:
    parts = []
    if n >= 100:
        parts.append(f'{ONES[n // 100]} Hundred')
        n %= 100
    if n >= 20:
        parts.append(TENS[n // 10])
        if n % 10:
            parts.append(ONES[n % 10])
    elif n >= 10:
        parts.append(TEENS[n - 10])
    elif n > 0:
        parts.append(ONES[n])
    return ' '.join(parts)


def number_to_words(value: int) -> str:
    """Spell out a whole number using the Indian system (thousand, lakh, crore)."""
    n = int(value)
    if n == 0:
        return 'Zero'
    if n < 0:
        return 'Minus ' + number_to_words(-n)
    parts = []
    crore, n = divmod(n, 10_000_000)
    if crore:
        parts.append(f'{number_to_words(crore)} Crore')
    lakh, n = divmod(n, 100_000)
    if lakh:
        parts.append(f'{_below_thousand(lakh)} Lakh')
    thousand, n = divmod(n, 1000)
    if thousand:
        parts.append(f'{_below_thousand(thousand)} Thousand')
    if n:
        parts.append(_below_thousand(n))
    return ' '.join(parts)


def amount_in_words(total) -> str:
    return f'{number_to_words(round_whole(to_decimal(total)))} {CURRENCY_WORDS}'


def hash_string(data: str) -> int:
    """djb2 over UTF-16 code units, kept to unsigned 32 bits."""
    raw = data.encode('utf-16-le', 'surrogatepass')
    h = 5381
    for unit in struct.unpack(f'<{len(raw) // 2}H', raw):
        h = ((h << 5) + h + unit) & MASK32
    return h


def pattern_svg(data: str, modules: int = PATTERN_MODULES, cell: int = PATTERN_CELL) -> str:
    width = modules * cell
    pieces = []
    state = hash_string(data)
    for y in range(modules):
        for x in range(modules):
            if ((state >> ((x + y) % 32)) & 1) ^ ((x + y) % 2):
                pieces.append(f'<rect x="{x * cell}" y="{y * cell}" width="{cell}" height="{cell}" />')
            state = (state * LCG_MULTIPLIER + LCG_INCREMENT) & MASK32
    return (
        f'<svg width="{width}" height="{width}" viewBox="0 0 {width} {width}" '
        f'xmlns="http://www.w3.org/2000/svg"><rect width="100%" height="100%" fill="#fff"/>'
        f'<g fill="#0b1220">{"".join(pieces)}</g></svg>'
    )


def pattern_content(invoice_no: int, total, reference: Optional[str]) -> str:
    return f'{PATTERN_PREFIX}|Invoice:{invoice_no}|Total:{money(total)}|Ref:{reference or "N/A"}'


def share_percent(line_total, grand_total) -> Decimal:
    grand = to_decimal(grand_total)
    if not grand:
        return Decimal('0')
    return to_decimal(line_total) / grand * 100


def money(value) -> str:
    return f'{quantize_two(to_decimal(value)):.2f}'


def percent_one(value) -> str:
    return f'{to_decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP):.1f}'


env.filters['money'] = money
env.filters['pct1'] = percent_one


def build_invoice_payload(tx: TransactionDetail,
                          product_names: Mapping[int, str],
                          customer: InvoiceCustomer,
                          tax_percent=Decimal('0'),
                          date: Optional[datetime] = None,
                          descriptions: Optional[Mapping[int, str]] = None) -> InvoicePayload:
    """Assemble the invoice view of a just-created transaction."""
    descriptions = descriptions or {}
    priced = []
    for line in tx.items:
        taxable = quantize_two(line.qty * to_decimal(line.unit_price))
        # the stored discounted price is rounded; price from the exact one
        total = quantize_two(line.qty * discounted_unit_price(line.unit_price, line.discount_percent))
        priced.append((line, taxable, total))
    subtotal = quantize_two(sum((t for _, t, _ in priced), Decimal('0')))
    grand_total = transaction_amount(tx.items)

    lines: List[InvoiceLine] = []
    for line, taxable, total in priced:
        lines.append(InvoiceLine(
            name=product_names.get(line.product_id) or f'Product #{line.product_id}',
            description=descriptions.get(line.product_id),
            qty=line.qty,
            unit_price=quantize_two(to_decimal(line.unit_price)),
            discount_percent=to_decimal(line.discount_percent),
            taxable_value=taxable,
            total=total,
            share_percent=share_percent(total, grand_total),
        ))
    return InvoicePayload(
        invoice_no=tx.id,
        date=date or tx.created_at,
        reference=tx.reference,
        customer=customer,
        items=lines,
        subtotal=subtotal,
        discount=quantize_two(subtotal - grand_total),
        total=grand_total,
        tax_percent=to_decimal(tax_percent),
    )


def render_invoice_html(payload: InvoicePayload, seller: Optional[Seller] = None) -> str:
    seller = seller or Seller()
    total = payload.total
    shares = [
        share_percent(line.total, total) if total else Decimal('0')
        for line in payload.items
    ]
    pattern = pattern_svg(
        pattern_content(payload.invoice_no, total, payload.reference),
        PATTERN_MODULES,
        INVOICE_PATTERN_CELL,
    )
    tpl = env.get_template('invoice.html')
    return tpl.render(
        invoice=payload,
        customer=payload.customer,
        lines=list(zip(payload.items, shares)),
        seller=seller,
        invoice_date=payload.date.strftime('%d %b %Y'),
        invoice_time=payload.date.strftime('%I:%M %p').lower(),
        total_qty=sum(line.qty for line in payload.items),
        tax_percent=payload.tax_percent,
        tax_amount=tax_amount(total, payload.tax_percent),
        after_tax_total=after_tax_total(total, payload.tax_percent),
        words=amount_in_words(total),
        pattern=Markup(pattern),
    )
