from decimal import Decimal

from backend.stockbook.tax import after_tax_total, quantize_two, round_whole, tax_amount, to_decimal


def test_flat_tax_on_total():
    assert tax_amount(Decimal('150.00'), Decimal('18')) == Decimal('27.00')
    assert after_tax_total(Decimal('150.00'), Decimal('18')) == Decimal('177.00')


def test_tax_rounds_half_up_to_paise():
    # 299.97 * 18% = 53.9946 -> 53.99
    assert tax_amount(Decimal('299.97'), 18) == Decimal('53.99')
    assert after_tax_total(Decimal('299.97'), 18) == Decimal('353.96')
    # 0.05 * 10% = 0.005 -> 0.01
    assert tax_amount(Decimal('0.05'), 10) == Decimal('0.01')


def test_zero_percent_tax():
    assert tax_amount(Decimal('99.99'), 0) == Decimal('0.00')
    assert after_tax_total(Decimal('99.99'), 0) == Decimal('99.99')


def test_helpers_coerce_and_round():
    assert to_decimal(12.5) == Decimal('12.5')
    assert to_decimal('10') == Decimal('10')
    assert to_decimal(None) == Decimal('0')
    assert quantize_two(Decimal('2.675')) == Decimal('2.68')
    assert round_whole(Decimal('149.50')) == 150
    assert round_whole(Decimal('149.49')) == 149
