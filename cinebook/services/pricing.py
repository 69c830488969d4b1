"""Ticket pricing. Pure functions, no I/O."""


def subtotal(unit_price: float, seat_count: int) -> float:
    if unit_price < 0 or seat_count < 0:
        raise ValueError("unit_price and seat_count must be non-negative")
    return unit_price * seat_count


def total(subtotal_amount: float, discount: float) -> float:
    """Amount due after discount; never below zero."""
    return max(subtotal_amount - discount, 0)
