"""
Annualized return (XIRR) for dated, irregular cashflows.

Negative amounts are money paid in, positive amounts money received.
Newton-Raphson is not globally convergent: for pathological cashflow
patterns the solver may give up and return None.
"""
import logging
import math
from datetime import date
from typing import List, Optional, Sequence, Tuple

MAX_ITERATIONS = 50
STEP_TOLERANCE = 1e-10
DERIVATIVE_FLOOR = 1e-12
DEFAULT_GUESS = 0.1

Cashflow = Tuple[date, float]


def _year_fractions(cashflows: Sequence[Cashflow]) -> List[float]:
    start = cashflows[0][0]
    return [(d - start).days / 365.0 for d, _ in cashflows]


def _npv(rate: float, amounts: List[float], years: List[float]) -> float:
    return sum(a / (1.0 + rate) ** t for a, t in zip(amounts, years))


def _npv_derivative(rate: float, amounts: List[float], years: List[float]) -> float:
    return sum(-t * a / (1.0 + rate) ** (t + 1.0) for a, t in zip(amounts, years))


def xirr(cashflows: Sequence[Cashflow], guess: float = DEFAULT_GUESS) -> Optional[float]:
    """
    Solves Σ a_i / (1+r)^(d_i/365) = 0 for r, with d_i counted from the first cashflow.

    Returns None when the cashflows lack a sign change, the derivative
    flattens out, an iterate leaves the real domain, or no convergence
    happens within MAX_ITERATIONS.
    """
    if not cashflows:
        return None
    amounts = [float(a) for _, a in cashflows]
    if not any(a < 0 for a in amounts) or not any(a > 0 for a in amounts):
        return None

    years = _year_fractions(cashflows)
    rate = guess

    for _ in range(MAX_ITERATIONS):
        if rate <= -1.0:
            return None
        try:
            value = _npv(rate, amounts, years)
            derivative = _npv_derivative(rate, amounts, years)
        except (OverflowError, ZeroDivisionError):
            return None

        if not math.isfinite(value) or not math.isfinite(derivative):
            return None
        if abs(derivative) < DERIVATIVE_FLOOR:
            return None

        next_rate = rate - value / derivative
        if not math.isfinite(next_rate):
            return None
        if abs(next_rate - rate) < STEP_TOLERANCE:
            return next_rate
        rate = next_rate

    logging.debug(f"XIRR did not converge after {MAX_ITERATIONS} iterations (last rate {rate})")
    return None
