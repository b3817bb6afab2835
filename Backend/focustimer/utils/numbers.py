import math


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves away from zero on the positive side (2.5 -> 3, -2.5 -> -2).

    Python's round() uses banker's rounding, which would report 2 for 2.5.
    """
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor
