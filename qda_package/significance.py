"""Significance scoring for driver correlations.

Turns a correlation and sample size into a t-statistic and a 7-level
predictive strength. Strength is a two-stage gate:

1. Significance: |t| < 1.96 (95% confidence) is always 'Very Weak'.
2. Effect size: a weighted score of correlation (90%) and t-stat (10%).

Correlation dominates stage 2 because with thousands of users nearly every
t-stat clears 1.96, so the t-stat alone says little about practical impact.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple, Union

import scipy.stats as stats

NOT_AVAILABLE = 'N/A'
SIGNIFICANCE_T = 1.96

TippingPoint = Union[int, str]

# (minimum |r|, score), checked top-down
CORRELATION_SCORE_BREAKPOINTS: List[Tuple[float, int]] = [
    (0.50, 6),
    (0.30, 5),
    (0.20, 4),
    (0.10, 3),
    (0.05, 2),
    (0.02, 1),
]

# (minimum |t|, score), only reached once |t| >= 1.96
T_SCORE_BREAKPOINTS: List[Tuple[float, int]] = [
    (3.29, 6),  # p < 0.001
    (2.58, 5),  # p < 0.01
    (1.96, 4),  # p < 0.05
]

CORRELATION_WEIGHT = 0.9
T_STAT_WEIGHT = 0.1

# (minimum combined score, label), strongest first
STRENGTH_LEVELS: List[Tuple[float, str]] = [
    (5.5, 'Very Strong'),
    (4.5, 'Strong'),
    (3.5, 'Moderate - Strong'),
    (2.5, 'Moderate'),
    (1.5, 'Weak - Moderate'),
    (0.5, 'Weak'),
]
VERY_WEAK = 'Very Weak'
STRENGTH_ORDER: List[str] = [label for _, label in STRENGTH_LEVELS] + [VERY_WEAK]


@dataclass
class DriverRow:
    """One ranked predictor for an outcome."""
    variable: str
    correlation: float
    t_stat: float
    significant: bool
    p_value: float
    predictive_strength: str
    strength_class: str
    tipping_point: TippingPoint = NOT_AVAILABLE

    def to_dict(self) -> Dict[str, Union[str, float, bool, int]]:
        """camelCase payload for presentation and caching collaborators."""
        return {
            'variable': self.variable,
            'correlation': self.correlation,
            'tStat': self.t_stat,
            'significant': self.significant,
            'pValue': self.p_value,
            'predictiveStrength': self.predictive_strength,
            'strengthClass': self.strength_class,
            'tippingPoint': self.tipping_point,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> 'DriverRow':
        return cls(
            variable=payload['variable'],
            correlation=float(payload['correlation']),
            t_stat=float(payload['tStat']),
            significant=bool(payload['significant']),
            p_value=float(payload.get('pValue', 1.0)),
            predictive_strength=payload['predictiveStrength'],
            strength_class=payload.get('strengthClass', strength_class_name(payload['predictiveStrength'])),
            tipping_point=payload.get('tippingPoint', NOT_AVAILABLE),
        )


def strength_class_name(strength: str) -> str:
    """'Moderate - Strong' -> 'qda-strength-moderate-strong'."""
    slug = '-'.join(part for part in strength.lower().replace('-', ' ').split())
    return f'qda-strength-{slug}'


def calculate_t_stat(correlation: float, n: int) -> float:
    """
    t-statistic for a Pearson correlation over n observations.

    Guarded to 0 when |r| <= 0.001, n <= 2 or 1 - r² <= 0.001.
    """
    if abs(correlation) <= 0.001 or n <= 2:
        return 0.0
    denominator = 1 - correlation * correlation
    if denominator <= 0.001:
        return 0.0
    return float(correlation * math.sqrt((n - 2) / denominator))


def calculate_p_value(t_stat: float, n: int) -> float:
    """Two-sided p-value of a t-statistic with n - 2 degrees of freedom."""
    if n <= 2 or t_stat == 0:
        return 1.0
    p_value = 2 * stats.t.sf(abs(t_stat), df=n - 2)
    return float(min(1.0, max(0.0, p_value)))


def is_significant(t_stat: float, threshold: float = SIGNIFICANCE_T) -> bool:
    return abs(t_stat) >= threshold


def _score(value: float, breakpoints: List[Tuple[float, int]]) -> int:
    for minimum, score in breakpoints:
        if value >= minimum:
            return score
    return 0


def calculate_predictive_strength(
    correlation: float,
    t_stat: float,
    significance_t: float = SIGNIFICANCE_T
) -> Tuple[str, str]:
    """
    Predictive strength combining statistical significance and effect size.

    Args:
        correlation: Correlation coefficient (-1 to 1)
        t_stat: t-statistic for the correlation
        significance_t: Stage-1 gate on |t|

    Returns:
        Tuple of (strength label, presentation class name)

    Examples:
        >>> calculate_predictive_strength(0.6, 1.5)
        ('Very Weak', 'qda-strength-very-weak')
        >>> calculate_predictive_strength(0.6, 4.0)
        ('Very Strong', 'qda-strength-very-strong')
    """
    abs_t = abs(t_stat)
    if abs_t < significance_t:
        return VERY_WEAK, strength_class_name(VERY_WEAK)

    corr_score = _score(abs(correlation), CORRELATION_SCORE_BREAKPOINTS)
    t_score = _score(abs_t, T_SCORE_BREAKPOINTS)
    combined = corr_score * CORRELATION_WEIGHT + t_score * T_STAT_WEIGHT

    strength = VERY_WEAK
    for minimum, label in STRENGTH_LEVELS:
        if combined >= minimum:
            strength = label
            break
    return strength, strength_class_name(strength)


def score_driver(
    variable: str,
    correlation: float,
    n: int,
    tipping_point: TippingPoint = NOT_AVAILABLE,
    significance_t: float = SIGNIFICANCE_T
) -> DriverRow:
    """Build the DriverRow for one (outcome, predictor) correlation."""
    t_stat = calculate_t_stat(correlation, n)
    strength, class_name = calculate_predictive_strength(correlation, t_stat, significance_t)
    return DriverRow(
        variable=variable,
        correlation=float(correlation),
        t_stat=t_stat,
        significant=is_significant(t_stat, significance_t),
        p_value=calculate_p_value(t_stat, n),
        predictive_strength=strength,
        strength_class=class_name,
        tipping_point=tipping_point,
    )


def perform_regression(
    correlations: Mapping[str, float],
    n: int,
    tipping_points: Optional[Mapping[str, TippingPoint]] = None,
    significance_t: float = SIGNIFICANCE_T
) -> List[DriverRow]:
    """
    Rank the predictors of one outcome.

    Reuses the pre-computed correlations rather than recomputing them.

    Args:
        correlations: Mapping predictor -> correlation for a single outcome
        n: Sample size the correlations were computed over
        tipping_points: Optional mapping predictor -> tipping point
        significance_t: Stage-1 gate on |t|

    Returns:
        DriverRows sorted by descending |correlation|
    """
    tipping_points = tipping_points or {}
    rows = [
        score_driver(variable, correlation, n, tipping_points.get(variable, NOT_AVAILABLE), significance_t)
        for variable, correlation in correlations.items()
    ]
    return sorted(rows, key=lambda row: abs(row.correlation), reverse=True)
