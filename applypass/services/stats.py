import math


def wilson_lower_bound(successes: int, trials: int, z: float = 1.96) -> float:
    """Lower bound of the Wilson score interval; 0 for an empty arm."""
    if trials == 0:
        return 0.0
    p = successes / trials
    denom = 1 + (z * z) / trials
    centre = p + (z * z) / (2 * trials)
    spread = z * math.sqrt((p * (1 - p) + (z * z) / (4 * trials)) / trials)
    return (centre - spread) / denom


def two_proportion_p_value(p1: float, n1: int, p2: float, n2: int) -> float:
    """Two-tailed p-value of a two-proportion z-test (no continuity correction)."""
    if n1 == 0 or n2 == 0:
        return 1.0
    pooled = (p1 * n1 + p2 * n2) / (n1 + n2)
    se = math.sqrt(pooled * (1 - pooled) * (1 / n1 + 1 / n2))
    if se == 0:
        return 1.0
    z = abs(p1 - p2) / se
    return math.erfc(z / math.sqrt(2))
