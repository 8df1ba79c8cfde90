"""Persona classification.

Every user gets exactly one persona from a strict priority cascade; the
first matching rule wins:

1. premium            any subscription, or subscribed within 7 days
2. core               any deposit activity, no subscription
3. activationTargets  no deposit activity, no copy, but viewed a PDP or creator profile
4. nonActivated       no deposit activity, no copy, no views at all
5. unclassified       everything else (e.g. copied without depositing)

Frequent 'unclassified' hits point at a gap in the rules, so the label is
reported like any other.

Deposit activity is a positive deposit amount or a positive deposit count, the
same test the summary uses for deposit conversion.
"""

from enum import Enum
from typing import Any, Dict, List, Mapping

import numpy as np
import pandas as pd


class Persona(Enum):
    PREMIUM = "premium"
    CORE = "core"
    ACTIVATION_TARGETS = "activationTargets"
    NON_ACTIVATED = "nonActivated"
    UNCLASSIFIED = "unclassified"


# Priority order, also the display order
PERSONA_ORDER: List[Persona] = [
    Persona.PREMIUM,
    Persona.CORE,
    Persona.ACTIVATION_TARGETS,
    Persona.NON_ACTIVATED,
    Persona.UNCLASSIFIED,
]

PERSONA_LABELS: Dict[Persona, str] = {
    Persona.PREMIUM: 'Premium',
    Persona.CORE: 'Core',
    Persona.ACTIVATION_TARGETS: 'Activation Targets',
    Persona.NON_ACTIVATED: 'Non-Activated',
    Persona.UNCLASSIFIED: 'Unclassified',
}

PDP_VIEW_FIELDS = ['regularPDPViews', 'premiumPDPViews']
CREATOR_VIEW_FIELDS = ['regularCreatorProfileViews', 'premiumCreatorProfileViews']


def _value(user: Mapping[str, Any], key: str) -> float:
    value = user.get(key, 0)
    return float(value) if value is not None else 0.0


def classify_persona(user: Mapping[str, Any]) -> Persona:
    """
    Classify a single normalized user record.

    Args:
        user: Mapping of canonical field names to values (a dict or a row
            of the normalized records). Missing fields count as 0.

    Returns:
        Exactly one Persona
    """
    subscriptions = _value(user, 'totalSubscriptions')
    deposited = _value(user, 'totalDeposits') > 0 or _value(user, 'totalDepositCount') > 0
    copies = _value(user, 'totalCopies')
    pdp_views = sum(_value(user, k) for k in PDP_VIEW_FIELDS)
    creator_views = sum(_value(user, k) for k in CREATOR_VIEW_FIELDS)

    if subscriptions > 0 or _value(user, 'subscribedWithin7Days') == 1:
        return Persona.PREMIUM

    if subscriptions == 0 and deposited:
        return Persona.CORE

    if not deposited and copies == 0 and (pdp_views >= 1 or creator_views >= 1):
        return Persona.ACTIVATION_TARGETS

    if not deposited and copies == 0 and pdp_views == 0 and creator_views == 0:
        return Persona.NON_ACTIVATED

    return Persona.UNCLASSIFIED


def _column(records: pd.DataFrame, key: str) -> np.ndarray:
    if key in records.columns:
        return records[key].to_numpy(dtype=float)
    return np.zeros(len(records))


def has_deposit_activity(records: pd.DataFrame) -> np.ndarray:
    """Boolean mask of users with a positive deposit amount or deposit count."""
    return (_column(records, 'totalDeposits') > 0) | (_column(records, 'totalDepositCount') > 0)


def classify_personas(records: pd.DataFrame) -> pd.Series:
    """
    Vectorised `classify_persona` over all records.

    Args:
        records: Normalized user records

    Returns:
        Series of persona values (e.g. 'premium'), aligned with records
    """
    subscriptions = _column(records, 'totalSubscriptions')
    deposited = has_deposit_activity(records)
    copies = _column(records, 'totalCopies')
    pdp_views = sum(_column(records, k) for k in PDP_VIEW_FIELDS)
    creator_views = sum(_column(records, k) for k in CREATOR_VIEW_FIELDS)
    no_funnel = ~deposited & (copies == 0)

    conditions = [
        (subscriptions > 0) | (_column(records, 'subscribedWithin7Days') == 1),
        (subscriptions == 0) & deposited,
        no_funnel & ((pdp_views >= 1) | (creator_views >= 1)),
        no_funnel & (pdp_views == 0) & (creator_views == 0),
    ]
    choices = [p.value for p in PERSONA_ORDER[:-1]]
    labels = np.select(conditions, choices, default=Persona.UNCLASSIFIED.value)
    return pd.Series(labels, index=records.index, name='persona', dtype=object)
