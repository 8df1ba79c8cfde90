import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

CorrelationResults = Dict[str, Dict[str, float]]


@dataclass(frozen=True)
class ColumnSums:
    """Summary sums of one column, enough to combine into Pearson's r."""
    n: int
    total: float
    total_sq: float
    constant: bool


def column_sums(values: Sequence[float]) -> ColumnSums:
    """Σx, Σx² and a zero-variance flag for a single column."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return ColumnSums(n=0, total=0.0, total_sq=0.0, constant=True)
    return ColumnSums(
        n=int(arr.size),
        total=float(arr.sum()),
        total_sq=float(np.dot(arr, arr)),
        constant=bool(arr.max() == arr.min()),
    )


def pearson_from_sums(x: ColumnSums, y: ColumnSums, sum_xy: float) -> float:
    """
    Combine pre-computed summary sums into a Pearson correlation.

    Zero variance in either series yields exactly 0, never NaN.

    Args:
        x: Summary sums of the first series
        y: Summary sums of the second series (same length)
        sum_xy: Σxy over the paired observations

    Returns:
        Correlation in [-1, 1]
    """
    n = x.n
    if n == 0 or x.constant or y.constant:
        return 0.0
    numerator = n * sum_xy - x.total * y.total
    var_x = n * x.total_sq - x.total * x.total
    var_y = n * y.total_sq - y.total * y.total
    if var_x <= 0 or var_y <= 0:
        return 0.0
    denominator = math.sqrt(var_x * var_y)
    if denominator == 0 or not math.isfinite(denominator):
        return 0.0
    r = numerator / denominator
    if not math.isfinite(r):
        return 0.0
    return float(min(1.0, max(-1.0, r)))


def calculate_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation between two equal-length series.

    Examples:
        >>> calculate_correlation([1, 2, 3], [2, 4, 6])
        1.0
        >>> calculate_correlation([1, 1, 1], [2, 4, 6])
        0.0
    """
    x_arr = np.asarray(x, dtype=float)
    y_arr = np.asarray(y, dtype=float)
    if x_arr.shape != y_arr.shape:
        raise ValueError(f"Series lengths differ: {x_arr.size} vs {y_arr.size}")
    return pearson_from_sums(column_sums(x_arr), column_sums(y_arr), float(np.dot(x_arr, y_arr)))


def calculate_correlations(
    records: pd.DataFrame,
    predictors: Iterable[str],
    outcomes: Iterable[str]
) -> CorrelationResults:
    """
    Correlate every predictor against every outcome.

    Each column is extracted once and reduced to its summary sums once; Σxy is
    a single matrix-vector product per outcome, so the whole table costs
    O(V·N) rather than one pass per pair.

    Args:
        records: Normalized user records
        predictors: Predictor column names
        outcomes: Outcome column names

    Returns:
        Nested mapping outcome -> predictor -> correlation. A predictor equal
        to the outcome is never included.
    """
    predictors = list(predictors)
    outcomes = list(outcomes)
    n = len(records)

    matrix = records[predictors].to_numpy(dtype=float) if predictors else np.zeros((n, 0))
    if n:
        totals = matrix.sum(axis=0)
        totals_sq = np.einsum('ij,ij->j', matrix, matrix)
        constant = matrix.max(axis=0) == matrix.min(axis=0)
    else:
        totals = totals_sq = np.zeros(len(predictors))
        constant = np.ones(len(predictors), dtype=bool)
    predictor_sums: List[ColumnSums] = [
        ColumnSums(n=n, total=float(totals[i]), total_sq=float(totals_sq[i]), constant=bool(constant[i]))
        for i in range(len(predictors))
    ]

    correlations: CorrelationResults = {}
    for outcome in outcomes:
        y = records[outcome].to_numpy(dtype=float)
        y_sums = column_sums(y)
        sums_xy = matrix.T @ y if n else np.zeros(len(predictors))
        correlations[outcome] = {
            variable: pearson_from_sums(predictor_sums[i], y_sums, float(sums_xy[i]))
            for i, variable in enumerate(predictors)
            if variable != outcome
        }
        logger.debug(f"Computed {len(correlations[outcome])} correlations for {outcome}")

    return correlations
