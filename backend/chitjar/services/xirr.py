"""Annualized internal rate of return over irregularly dated cash flows.

Sign convention: negative amounts are money paid in by the participant,
positive amounts are money received back.

The rate ``r`` solves ``sum(a_i * (1 + r) ** (-d_i / 365)) == 0`` where ``d_i``
is the day offset of each flow from the earliest flow. A chit fund series
(installments, a mid-series prize, then more installments) changes sign
twice, so the NPV can have two roots. The solver scans a fixed rate grid,
bisects every sign change, polishes the root closest to zero with
Newton-Raphson and reports it. Without any sign change it tries plain Newton
from a 10% guess. All stages are bounded, and any failure is reported as
``None``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence

from chitjar.services.cash_flow import CashFlowPoint


logger = logging.getLogger("chitjar.xirr")

DAYS_PER_YEAR = 365.0
DEFAULT_TOLERANCE = 1e-7
DEFAULT_MAX_ITERATIONS = 100
INITIAL_GUESS = 0.1
# Bisection lower bound; the NPV is undefined at r = -1.
RATE_FLOOR = -0.999999
BRACKET_CEILING = 1e6
BISECTION_MAX_ITERATIONS = 300
POLISH_WINDOW = 1e-4
# Dense over (-1, 1], where chit fund rates live, then doubling up to the ceiling.
SCAN_GRID = (
    [RATE_FLOOR]
    + [round(-0.99 + 0.01 * step, 2) for step in range(200)]
    + [float(2**power) for power in range(1, 20)]
    + [BRACKET_CEILING]
)


def _has_both_signs(amounts: Iterable[float]) -> bool:
    has_positive = False
    has_negative = False
    for amount in amounts:
        if amount > 0:
            has_positive = True
        elif amount < 0:
            has_negative = True
    return has_positive and has_negative


def validate_cash_flows_for_xirr(points: Sequence[CashFlowPoint]) -> bool:
    if not points:
        return False
    return _has_both_signs(float(point.amount) for point in points)


def _prepare(points: Sequence[CashFlowPoint]) -> list[tuple[float, float]]:
    ordered = sorted(points, key=lambda point: (point.date, point.amount))
    base = ordered[0].date
    return [((point.date - base).days / DAYS_PER_YEAR, float(point.amount)) for point in ordered]


def _npv(rate: float, flows: list[tuple[float, float]]) -> float:
    try:
        base = 1.0 + rate
        return math.fsum(amount * base ** (-years) for years, amount in flows)
    except (OverflowError, ZeroDivisionError):
        return math.nan


def _npv_derivative(rate: float, flows: list[tuple[float, float]]) -> float:
    try:
        base = 1.0 + rate
        return math.fsum(-years * amount * base ** (-years - 1.0) for years, amount in flows)
    except (OverflowError, ZeroDivisionError):
        return math.nan


def _newton(
    flows: list[tuple[float, float]],
    tolerance: float,
    max_iterations: int,
    start: float = INITIAL_GUESS,
) -> float | None:
    rate = start
    for _ in range(max_iterations):
        value = _npv(rate, flows)
        derivative = _npv_derivative(rate, flows)
        if not (math.isfinite(value) and math.isfinite(derivative)) or derivative == 0:
            return None
        next_rate = rate - value / derivative
        if not math.isfinite(next_rate) or next_rate <= -1.0:
            return None
        if abs(next_rate - rate) < tolerance:
            return next_rate
        rate = next_rate
    return None


def _bisect(
    flows: list[tuple[float, float]],
    low: float,
    high: float,
    low_value: float,
    tolerance: float,
) -> float | None:
    for _ in range(BISECTION_MAX_ITERATIONS):
        middle = (low + high) / 2.0
        middle_value = _npv(middle, flows)
        if not math.isfinite(middle_value):
            return None
        if middle_value == 0 or (high - low) / 2.0 < tolerance:
            return middle
        if low_value * middle_value < 0:
            high = middle
        else:
            low, low_value = middle, middle_value
    return None


def _bracketed_roots(flows: list[tuple[float, float]], tolerance: float) -> list[float]:
    """Bisect every sign change of the NPV across ``SCAN_GRID``."""
    roots: list[float] = []
    previous: tuple[float, float] | None = None
    for rate in SCAN_GRID:
        value = _npv(rate, flows)
        if not math.isfinite(value):
            previous = None
            continue
        if value == 0:
            roots.append(rate)
        elif previous is not None and previous[1] * value < 0:
            root = _bisect(flows, previous[0], rate, previous[1], tolerance)
            if root is not None:
                roots.append(root)
        previous = (rate, value)
    return roots


def _polish(flows: list[tuple[float, float]], root: float, tolerance: float, max_iterations: int) -> float:
    refined = _newton(flows, tolerance, max_iterations, start=root)
    if refined is not None and abs(refined - root) < POLISH_WINDOW:
        return refined
    return root


def solve_xirr(
    points: Sequence[CashFlowPoint],
    *,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> float | None:
    """Return the annualized rate as a decimal (0.1 == 10%), or ``None``.

    When the flows change direction more than once the NPV can have several
    roots; the one closest to zero is reported.
    """
    if not validate_cash_flows_for_xirr(points):
        return None

    flows = _prepare(points)
    roots = _bracketed_roots(flows, tolerance)
    if roots:
        rate = _polish(flows, min(roots, key=abs), tolerance, max_iterations)
    else:
        # Tangent roots never change sign, so only Newton can reach them.
        rate = _newton(flows, tolerance, max_iterations)
    if rate is None or not math.isfinite(rate):
        logger.debug("XIRR did not converge for %d cash flows", len(flows))
        return None
    return rate


def xirr_percentage(
    points: Sequence[CashFlowPoint],
    *,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> float | None:
    rate = solve_xirr(points, tolerance=tolerance, max_iterations=max_iterations)
    return rate * 100 if rate is not None else None
