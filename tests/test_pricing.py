import math

import pytest

from services.pricing import PriceQuote, TaxMode, quote, to_amount


@pytest.mark.parametrize("price, rate", [
    (100, 18), (250, 5), (999.99, 12), (0, 28), (49.5, 0),
    (1.25, 18), (1.3, 5), (2.25, 18), (0.05, 28), (19.99, 12),
])
def test_exclusive_adds_tax_on_top(price, rate):
    q = quote(price, None, rate, TaxMode.EXCLUSIVE)
    assert q.final_price == round(price * (1 + rate / 100), 2)
    assert q.price_before_tax == round(price, 2)
    assert math.isclose(q.price_before_tax + q.tax_amount, q.final_price, abs_tol=0.011)


def test_exclusive_final_price_rounds_the_taxed_amount_once():
    assert quote(1.25, None, 18).final_price == 1.47
    assert quote(1.3, None, 5).final_price == 1.37
    assert quote(2.25, None, 18).final_price == 2.65


@pytest.mark.parametrize("price, rate", [(118, 18), (499, 5), (10.01, 28), (0, 12)])
def test_inclusive_keeps_price(price, rate):
    q = quote(price, None, rate, TaxMode.INCLUSIVE)
    assert q.final_price == round(price, 2)
    assert math.isclose(q.price_before_tax + q.tax_amount, q.final_price, abs_tol=0.011)


def test_inclusive_split():
    q = quote(118, None, 18, "inclusive")
    assert q == PriceQuote(price_before_tax=100.0, tax_amount=18.0, final_price=118.0, mrp=118.0)


def test_discount_from_higher_mrp():
    q = quote(499, 799, 5, "inclusive")
    assert q.mrp == 799
    assert q.discount_percent == 38


def test_discount_rounds_half_up():
    assert quote(7, 8).discount_percent == 13


def test_no_discount_when_mrp_not_higher():
    assert quote(100, 100, 18).discount_percent == 0
    # mrp below the taxed price
    assert quote(100, 110, 18).discount_percent == 0


def test_mrp_defaults_to_base_price():
    assert quote(250, None).mrp == 250
    assert quote(250, 0).mrp == 250
    assert quote(250, -10).mrp == 250
    assert quote(250, "n/a").mrp == 250


def test_garbage_input_degrades_to_zero():
    q = quote("abc", None, None, "weird")
    assert q.final_price == 0
    assert q.tax_amount == 0
    assert q.discount_percent == 0


@pytest.mark.parametrize("value", [None, True, False, "x", float("nan"), float("inf"), -3, [], {}])
def test_to_amount_rejects_invalid(value):
    assert to_amount(value) == 0.0


def test_to_amount_accepts_numeric_strings():
    assert to_amount("12.5") == 12.5


def test_unknown_mode_is_exclusive():
    assert TaxMode.parse("VAT") is TaxMode.EXCLUSIVE
    assert TaxMode.parse(" Inclusive ") is TaxMode.INCLUSIVE
    assert quote(100, None, 10, None).final_price == 110.0


def test_rate_above_hundred_is_used_as_given():
    assert quote(100, None, 150).final_price == 250.0


def test_quote_is_deterministic():
    assert quote(333.33, 400, 12.5, "exclusive") == quote(333.33, 400, 12.5, "exclusive")
