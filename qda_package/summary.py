from typing import Any, Dict, Iterable, Optional

import pandas as pd

from .persona import PERSONA_ORDER, classify_personas, has_deposit_activity
from .yaml_processor import load_config, get_demographic_fields, get_thresholds


def _rate(count: int, total: int) -> float:
    return count / total if total > 0 else 0.0


def calculate_demographic_breakdown(records: pd.DataFrame, field: str) -> Dict[str, Any]:
    """
    Count users per category of a demographic field.

    Args:
        records: Normalized user records
        field: Categorical field name (e.g. 'income')

    Returns:
        Dictionary with 'counts' (category -> users) and 'totalResponses';
        empty values are not counted.
    """
    if field not in records.columns:
        return {'counts': {}, 'totalResponses': 0}
    values = records[field].astype(str).str.strip()
    values = values[values != '']
    counts = values.value_counts(sort=False)
    return {
        'counts': {str(k): int(v) for k, v in counts.items()},
        'totalResponses': int(len(values)),
    }


def calculate_persona_stats(personas: pd.Series) -> Dict[str, Dict[str, float]]:
    """Count and percentage (0-100) per persona, zero-filled for absent ones."""
    total = len(personas)
    counts = personas.value_counts()
    stats = {}
    for persona in PERSONA_ORDER:
        count = int(counts.get(persona.value, 0))
        stats[persona.value] = {
            'count': count,
            'percentage': _rate(count, total) * 100,
        }
    return stats


def calculate_summary_stats(
    records: pd.DataFrame,
    personas: Optional[pd.Series] = None,
    config: Optional[Dict[str, Any]] = None,
    demographic_fields: Optional[Iterable[str]] = None
) -> Dict[str, Any]:
    """
    Top-line conversion rates, demographic breakdowns and persona counts.

    Args:
        records: Normalized user records
        personas: Persona per record (classified here when omitted)
        config: Loaded configuration dictionary (packaged default if None)
        demographic_fields: Fields to break down (configured ones if None)

    Returns:
        Dictionary with totalUsers, the four conversion rates (fractions of
        totalUsers), demographics, personaStats and the low-deposit count
    """
    config = config or load_config()
    thresholds = get_thresholds(config)
    if personas is None:
        personas = classify_personas(records)
    if demographic_fields is None:
        demographic_fields = get_demographic_fields(config)

    total_users = len(records)

    def count(mask) -> int:
        return int(mask.sum())

    def column(name: str) -> pd.Series:
        if name in records.columns:
            return records[name]
        return pd.Series(0.0, index=records.index)

    users_with_linked_bank = count(column('hasLinkedBank') == 1)
    users_with_copies = count(column('totalCopies') > 0)
    users_with_deposits = count(has_deposit_activity(records))
    users_with_subscriptions = count(column('totalSubscriptions') > 0)

    return {
        'totalUsers': total_users,
        'linkBankConversion': _rate(users_with_linked_bank, total_users),
        'firstCopyConversion': _rate(users_with_copies, total_users),
        'depositConversion': _rate(users_with_deposits, total_users),
        'subscriptionConversion': _rate(users_with_subscriptions, total_users),
        'usersWithLowDeposits': count(column('totalDeposits') < thresholds['low_deposit_threshold']),
        'demographics': {
            field: calculate_demographic_breakdown(records, field)
            for field in demographic_fields
        },
        'personaStats': calculate_persona_stats(personas),
    }
