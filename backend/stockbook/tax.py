from decimal import Decimal, ROUND_HALF_UP, getcontext

getcontext().prec = 28


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or value == '':
        return Decimal('0')
    # go through str so floats keep their printed value
    return Decimal(str(value))


def quantize_two(d: Decimal) -> Decimal:
    return d.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def round_whole(d: Decimal) -> int:
    return int(d.quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def tax_amount(total, tax_percent) -> Decimal:
    """Flat tax on the bill total, rounded to paise."""
    return quantize_two(to_decimal(total) * to_decimal(tax_percent) / Decimal(100))


def after_tax_total(total, tax_percent) -> Decimal:
    return quantize_two(to_decimal(total) + tax_amount(total, tax_percent))
