import math


def calculate_total_price(unit_price: float, quantity: int) -> float:
    """Unit price times guests (tour), nights (room) or seats (flight)."""
    return round(unit_price * quantity, 2)


def to_minor_units(amount: float) -> int:
    """Gateway amounts are integers in the smallest currency unit (pesewas)."""
    return int(round(amount * 100))


def from_minor_units(amount: int) -> float:
    return round(amount / 100, 2)


def days_between(start, end) -> int:
    return max(1, math.ceil((end - start).total_seconds() / 86400))


def minutes_between(start, end) -> int:
    return int((end - start).total_seconds() // 60)
