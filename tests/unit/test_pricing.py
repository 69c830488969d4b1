import pytest

from cinebook.services import pricing


@pytest.mark.parametrize("unit_price,count", [(0, 0), (0, 5), (90000, 0), (90000, 3), (75000.5, 4), (120000, 10)])
def test_subtotal_is_price_times_count(unit_price, count):
    assert pricing.subtotal(unit_price, count) == unit_price * count


@pytest.mark.parametrize("subtotal,discount", [(0, 0), (270000, 0), (270000, 20000), (270000, 270000), (99.5, 0.5)])
def test_total_subtracts_discount_within_bounds(subtotal, discount):
    result = pricing.total(subtotal, discount)
    assert result == subtotal - discount
    assert result >= 0


def test_total_never_negative():
    assert pricing.total(50000, 80000) == 0


def test_negative_inputs_rejected():
    with pytest.raises(ValueError):
        pricing.subtotal(-1, 2)
    with pytest.raises(ValueError):
        pricing.subtotal(90000, -1)


def test_three_seats_with_coupon():
    subtotal = pricing.subtotal(90000, 3)
    assert subtotal == 270000
    assert pricing.total(subtotal, 20000) == 250000
