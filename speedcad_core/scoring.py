"""Weight-accuracy scoring.

A submission scores 100 when the reported weight equals the reference weight
and loses points linearly with relative deviation, reaching 0 once the
deviation equals the tolerance percentage.
"""
from __future__ import annotations

import math

DEFAULT_TOLERANCE = 5.0


def calculate_score(
    submitted: float | None,
    reference: float | None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> float:
    """Score a submitted weight against the reference weight.

    Args:
        submitted: Participant's self-measured weight
        reference: Admin-set ground-truth weight
        tolerance: Deviation percentage at which the score reaches 0

    Returns:
        Score in [0, 100], rounded to 2 decimals with round() (half-even on
        the binary value).

    Examples:
        - calculate_score(100, 100) → 100.0
        - calculate_score(102, 100, 5) → 60.0
        - calculate_score(110, 100, 5) → 0.0
        - calculate_score(0, 100) → 0.0
    """
    # Degenerate inputs score zero instead of raising (covers reference == 0).
    if not submitted or not reference or not tolerance:
        return 0.0
    if not all(math.isfinite(v) for v in (submitted, reference, tolerance)):
        return 0.0
    if reference < 0 or tolerance < 0:
        return 0.0

    percent_deviation = abs(submitted - reference) / reference * 100
    raw = 100 - (percent_deviation / tolerance) * 100
    return round(max(0.0, min(100.0, raw)), 2)
