"""Integer arithmetic helpers shared by scoring and billing"""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (round() is banker's rounding)"""
    return int(math.floor(value + 0.5))


def ceil_div(numerator: int, denominator: int) -> int:
    """Integer ceiling division for non-negative operands"""
    return -(-numerator // denominator)
