"""Tipping point detection.

A tipping point is the predictor value where the conversion rate jumps the
most between adjacent value buckets. Buckets are floor(value); a bucket
needs at least `min_bucket_size` users to count, and the bucket after the
jump must convert above `min_conversion_rate`.

All (variable, outcome) combinations are bucketed together in one pass over
the records, then each combination is resolved from its pre-grouped counts.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .significance import NOT_AVAILABLE, TippingPoint

logger = logging.getLogger(__name__)

MIN_BUCKET_SIZE = 10
MIN_CONVERSION_RATE = 0.10

# Largest bucket magnitude; floats beyond it would overflow the int64 cast
BUCKET_LIMIT = float(2 ** 53)

GroupKey = Tuple[str, str]
TippingPoints = Dict[str, Dict[str, TippingPoint]]


def pre_group_for_tipping_points(
    records: pd.DataFrame,
    variables: Iterable[str],
    outcomes: Iterable[str]
) -> Dict[GroupKey, pd.DataFrame]:
    """
    Bucket every (variable, outcome) combination in a single pass.

    The records are reshaped to one long table of (variable, bucket) with a
    converted flag per outcome, then grouped once on (variable, bucket).

    Args:
        records: Normalized user records
        variables: Predictor column names
        outcomes: Outcome column names

    Returns:
        Mapping (variable, outcome) -> DataFrame with columns
        value, total, converted (one row per bucket, ascending value)
    """
    variables = list(variables)
    outcomes = list(outcomes)
    n, v = len(records), len(variables)
    if n == 0 or v == 0 or not outcomes:
        return {}

    floored = np.floor(records[variables].to_numpy(dtype=float))
    out_of_range = np.abs(floored) > BUCKET_LIMIT
    if out_of_range.any():
        clipped = [variables[j] for j in np.flatnonzero(out_of_range.any(axis=0))]
        logger.warning(f"Clipping {int(out_of_range.sum())} values beyond +/-{BUCKET_LIMIT:.0f} in {clipped}")
    buckets = np.clip(floored, -BUCKET_LIMIT, BUCKET_LIMIT).astype(np.int64)
    converted = (records[outcomes].to_numpy(dtype=float) > 0).astype(np.int64)

    long_df = pd.DataFrame({
        'variable': np.tile(np.array(variables, dtype=object), n),
        'value': buckets.ravel(),
    })
    for j, outcome in enumerate(outcomes):
        long_df[outcome] = np.repeat(converted[:, j], v)

    grouped = (long_df.groupby(['variable', 'value'], sort=True)
                      .agg(total=(outcomes[0], 'size'), **{o: (o, 'sum') for o in outcomes})
                      .reset_index())

    groups: Dict[GroupKey, pd.DataFrame] = {}
    for variable, var_df in grouped.groupby('variable', sort=False):
        for outcome in outcomes:
            groups[(variable, outcome)] = pd.DataFrame({
                'value': var_df['value'].to_numpy(),
                'total': var_df['total'].to_numpy(),
                'converted': var_df[outcome].to_numpy(),
            })
    return groups


def tipping_point_from_groups(
    groups: Optional[pd.DataFrame],
    min_bucket_size: int = MIN_BUCKET_SIZE,
    min_conversion_rate: float = MIN_CONVERSION_RATE
) -> TippingPoint:
    """
    Resolve a tipping point from pre-grouped bucket counts.

    Args:
        groups: DataFrame with value, total, converted columns (or None)
        min_bucket_size: Buckets with fewer users are ignored
        min_conversion_rate: The post-jump bucket must convert above this

    Returns:
        Bucket value with the largest positive rate increase, or 'N/A'
    """
    if groups is None or groups.empty:
        return NOT_AVAILABLE

    eligible = groups[groups['total'] >= min_bucket_size].sort_values('value')
    if len(eligible) < 2:
        return NOT_AVAILABLE

    values = eligible['value'].to_numpy()
    rates = (eligible['converted'] / eligible['total']).to_numpy(dtype=float)

    max_increase = 0.0
    tipping_point: TippingPoint = NOT_AVAILABLE
    for i in range(1, len(rates)):
        increase = rates[i] - rates[i - 1]
        if increase > max_increase and rates[i] > min_conversion_rate:
            max_increase = increase
            tipping_point = int(values[i])
    return tipping_point


def calculate_tipping_point(
    records: pd.DataFrame,
    variable: str,
    outcome: str,
    min_bucket_size: int = MIN_BUCKET_SIZE,
    min_conversion_rate: float = MIN_CONVERSION_RATE
) -> TippingPoint:
    """Tipping point for a single (variable, outcome) pair."""
    groups = pre_group_for_tipping_points(records, [variable], [outcome])
    return tipping_point_from_groups(groups.get((variable, outcome)), min_bucket_size, min_conversion_rate)


def calculate_all_tipping_points(
    records: pd.DataFrame,
    variables: Iterable[str],
    outcomes: Iterable[str],
    min_bucket_size: int = MIN_BUCKET_SIZE,
    min_conversion_rate: float = MIN_CONVERSION_RATE
) -> TippingPoints:
    """
    Tipping points for every outcome and every predictor other than itself.

    Args:
        records: Normalized user records
        variables: Predictor column names
        outcomes: Outcome column names
        min_bucket_size: Minimum users per bucket
        min_conversion_rate: Minimum post-jump conversion rate

    Returns:
        Nested mapping outcome -> variable -> int bucket value or 'N/A'
    """
    variables = list(variables)
    outcomes = list(outcomes)
    groups = pre_group_for_tipping_points(records, variables, outcomes)

    tipping_points: TippingPoints = {}
    for outcome in outcomes:
        tipping_points[outcome] = {
            variable: tipping_point_from_groups(groups.get((variable, outcome)), min_bucket_size, min_conversion_rate)
            for variable in variables
            if variable != outcome
        }
        found = sum(1 for tp in tipping_points[outcome].values() if tp != NOT_AVAILABLE)
        logger.debug(f"{outcome}: {found}/{len(tipping_points[outcome])} variables have a tipping point")
    return tipping_points
