"""
Statutory RRIF/LIF withdrawal factors and the RRIF glide path.
"""
from typing import Dict, Tuple
from .models import LifMode

RRIF_MIN_START_AGE = 71
MAX_FACTOR = 0.20

# Prescribed RRIF minimum fractions, ages 71 to 94
RRIF_MIN_FACTORS: Dict[int, float] = {
    71: 0.0528,
    72: 0.0540,
    73: 0.0553,
    74: 0.0567,
    75: 0.0582,
    76: 0.0598,
    77: 0.0617,
    78: 0.0636,
    79: 0.0658,
    80: 0.0682,
    81: 0.0708,
    82: 0.0738,
    83: 0.0771,
    84: 0.0808,
    85: 0.0851,
    86: 0.0899,
    87: 0.0955,
    88: 0.1021,
    89: 0.1099,
    90: 0.1192,
    91: 0.1306,
    92: 0.1449,
    93: 0.1634,
    94: 0.1879,
}


def rrif_min_factor(age: int) -> float:
    """Minimum fraction of the opening balance that must be withdrawn at `age`."""
    if age <= 0:
        return 0.0
    if age <= 70:
        return 1 / (90 - age)
    if age >= 95:
        return MAX_FACTOR
    return RRIF_MIN_FACTORS.get(age, 0.0)


def lif_min_max_factors(age: int) -> Tuple[float, float]:
    """LIF minimum is the RRIF minimum; maximum is twice that, capped at 20%."""
    min_factor = rrif_min_factor(age)
    return min_factor, min(MAX_FACTOR, 2 * min_factor)


def lif_max_factor(age: int, mode: LifMode) -> float:
    min_factor, max_factor = lif_min_max_factors(age)
    if mode == LifMode.MIN:
        return min_factor
    if mode == LifMode.MAX:
        return max_factor
    return (min_factor + max_factor) / 2


def rrif_glide_target(
    balance: float,
    age: int,
    deplete_by_age: int,
    front_load: float,
    annual_return: float,
) -> float:
    """
    This year's draw on a path that empties `balance` by `deplete_by_age`.

    Future draws are weighted geometrically: with ratio q = 1 + 4 * front_load,
    the draw k years from now has weight q ** (n - 1 - k). A front_load of 0
    gives level, annuity-like draws; 1 front-loads as far as allowed. The scale
    is set so the discounted draws add up to the balance.
    """
    balance = max(0.0, balance)
    if balance <= 0:
        return 0.0

    years_left = deplete_by_age - age + 1
    if years_left <= 1:
        return balance

    ratio = 1 + 4 * min(1.0, max(0.0, front_load))
    growth = 1 + max(0.0, annual_return)
    present_weight = sum(
        ratio ** (years_left - 1 - k) / growth ** k for k in range(years_left)
    )
    return min(balance, balance * ratio ** (years_left - 1) / present_weight)
