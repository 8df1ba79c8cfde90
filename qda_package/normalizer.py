"""Data normalization for quantitative driver analysis.

Raw behavioral exports arrive with inconsistent column names: legacy CSV
headers ("E. Total Copies"), display headers ("Total Copies") and database
columns ("totalCopies", "total_copies"). This module collapses them into one
canonical, columnar table of per-user records (one pandas row per user) that
every downstream analysis reads.

Typical usage:
    ```python
    from qda_package.normalizer import normalize_rows

    normalized = normalize_rows(rows)
    normalized.records            # canonical DataFrame
    normalized.variables.predictors  # catalogue + discovered columns
    ```

Normalization never raises on bad values: anything unparsable becomes 0 for
numeric fields and '' for categorical ones.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .yaml_processor import (
    load_config,
    get_outcomes,
    get_variable_catalogue,
    get_variable_info,
    get_demographic_fields,
    get_aliases,
    get_all_aliases,
    get_id_columns,
    get_bracket_map,
)

logger = logging.getLogger(__name__)

ID_FIELD = 'distinctId'
TRUE_STRINGS = ('true', '1')

RawRows = Union[pd.DataFrame, Sequence[Mapping[str, Any]]]


@dataclass(frozen=True)
class VariableSet:
    """Predictor catalogue plus the numeric columns discovered at run time."""
    outcomes: Tuple[str, ...]
    catalogue: Tuple[str, ...]
    extra: Tuple[str, ...] = ()

    @property
    def predictors(self) -> List[str]:
        """All predictors; an outcome is never its own (or any) predictor."""
        outcomes = set(self.outcomes)
        return [v for v in self.catalogue + self.extra if v not in outcomes]


@dataclass(frozen=True)
class NormalizedData:
    """Canonical user records and the variables available for analysis.

    `records` is treated as read-only by every analysis step.
    """
    records: pd.DataFrame
    variables: VariableSet
    demographics: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def new_variables(self) -> List[str]:
        return list(self.variables.extra)


# =============================================================================
# VALUE COERCION
# =============================================================================

def is_missing(value: Any) -> bool:
    """True for None, NaN and blank strings."""
    if isinstance(value, str):
        return value.strip() == ''
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def clean_numeric(value: Any) -> float:
    """Coerce a raw value to a finite float.

    Examples:
        >>> clean_numeric('12.5')
        12.5
        >>> clean_numeric('abc')
        0.0
        >>> clean_numeric(None)
        0.0
    """
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    if isinstance(value, (int, float, np.number)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def clean_boolean(value: Any) -> float:
    """1.0 for True, 1, '1' or 'true' (any case); 0.0 otherwise."""
    if isinstance(value, (bool, np.bool_)):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, np.number)):
        return 1.0 if value == 1 else 0.0
    if isinstance(value, str):
        return 1.0 if value.strip().lower() in TRUE_STRINGS else 0.0
    return 0.0


def clean_categorical(value: Any) -> str:
    """Stripped string, or '' for missing values."""
    if is_missing(value):
        return ''
    return str(value).strip()


def convert_bracket_to_enum(label: Any, bracket_map: Mapping[str, int]) -> int:
    """Map a bracket label (verbose or abbreviated) to its ordinal, 0 if unknown."""
    return int(bracket_map.get(clean_categorical(label), 0))


def convert_income_to_enum(income: Any, config: Optional[Dict[str, Any]] = None) -> int:
    """Ordinal 1-7 for an income bracket such as '$50,000-$74,999' or '50k–100k'."""
    config = config or load_config()
    return convert_bracket_to_enum(income, get_bracket_map(config, 'income'))


def convert_net_worth_to_enum(net_worth: Any, config: Optional[Dict[str, Any]] = None) -> int:
    """Ordinal 1-7 for a net worth bracket such as '$1,000,000+' or '1m+'."""
    config = config or load_config()
    return convert_bracket_to_enum(net_worth, get_bracket_map(config, 'net_worth'))


def to_camel_case(name: str) -> str:
    """Canonical field name for a raw column header.

    Examples:
        >>> to_camel_case('U. Total Watchlist Adds ($)')
        'totalWatchlistAdds'
        >>> to_camel_case('watchlist_adds')
        'watchlistAdds'
    """
    name = re.sub(r'^[A-Z]\.\s*', '', str(name).strip())
    name = re.sub(r'\s*\(\$?\)\s*', '', name)
    name = re.sub(r'[^a-zA-Z0-9]+(.)', lambda m: m.group(1).upper(), name)
    name = re.sub(r'[^a-zA-Z0-9]', '', name)
    return name[:1].lower() + name[1:]


# =============================================================================
# COLUMN LOOKUP
# =============================================================================

def _as_frame(rows: RawRows) -> Tuple[pd.DataFrame, List[str]]:
    """Raw rows as a DataFrame, plus the first row's keys in order."""
    if isinstance(rows, pd.DataFrame):
        return rows.reset_index(drop=True), [str(c) for c in rows.columns]
    rows = list(rows)
    if not rows:
        return pd.DataFrame(), []
    first_keys = [str(k) for k in rows[0].keys()]
    return pd.DataFrame.from_records(rows), first_keys


def coalesce_columns(raw: pd.DataFrame, aliases: Iterable[str]) -> pd.Series:
    """
    First present value among `aliases`, per row; None where no alias has one.

    Examples:
        >>> raw = pd.DataFrame({'Total Deposits': ['', '75'], 'C. Total Deposits': ['150', '20']})
        >>> coalesce_columns(raw, ['Total Deposits', 'C. Total Deposits']).tolist()
        ['150', '75']
    """
    result = pd.Series([None] * len(raw), index=raw.index, dtype=object)
    for alias in aliases:
        if alias not in raw.columns:
            continue
        missing = result.map(is_missing).astype(bool)
        if not missing.any():
            break
        result = result.where(~missing, raw[alias].astype(object))
    return result


def _is_numeric_column(values: pd.Series) -> bool:
    present = [v for v in values if not is_missing(v)]
    if not present:
        return False
    for value in present:
        if isinstance(value, (bool, np.bool_, int, float, np.number)):
            continue
        if isinstance(value, str):
            try:
                float(value.strip())
            except ValueError:
                return False
            continue
        return False
    return True


def detect_new_variables(
    raw: pd.DataFrame,
    first_row_keys: Sequence[str],
    config: Dict[str, Any],
    known_fields: Iterable[str]
) -> Dict[str, str]:
    """
    Find purely numeric columns that are not part of the catalogue.

    Only the first row's keys are scanned. A key qualifies when it is not an
    alias of a catalogued field, not an id column, its camelCase name is not
    already a field, and every non-empty value in the column is numeric.

    Args:
        raw: Raw rows as a DataFrame
        first_row_keys: Keys of the first raw row, in order
        config: Loaded configuration dictionary
        known_fields: Canonical names already produced by the fixed mapping

    Returns:
        Ordered mapping of new canonical name -> raw column name
    """
    skip_columns = set(get_all_aliases(config)) | set(get_id_columns(config))
    taken = set(known_fields) | {ID_FIELD}
    new_variables: Dict[str, str] = {}

    for column in first_row_keys:
        if column in skip_columns or column not in raw.columns:
            continue
        name = to_camel_case(column)
        if not name or name in taken or name in new_variables:
            continue
        if not _is_numeric_column(raw[column]):
            continue
        new_variables[name] = column

    if new_variables:
        logger.info(f"Detected {len(new_variables)} new variables: {list(new_variables)}")
    return new_variables


# =============================================================================
# NORMALIZATION
# =============================================================================

def normalize_rows(rows: RawRows, config: Optional[Dict[str, Any]] = None) -> NormalizedData:
    """
    Convert heterogeneous raw rows into canonical per-user records.

    Args:
        rows: Raw rows, either a list of mappings or a DataFrame (e.g. from
            `pd.read_csv`). Column names may be any configured alias.
        config: Loaded configuration dictionary (packaged default if None)

    Returns:
        NormalizedData with one record per input row. Every outcome and
        predictor column is a finite float64; demographic columns are strings.
    """
    config = config or load_config()
    raw, first_row_keys = _as_frame(rows)
    n_rows = len(raw)

    outcomes = get_outcomes(config)
    catalogue = get_variable_catalogue(config)
    demographics = get_demographic_fields(config)
    columns: Dict[str, pd.Series] = {}

    id_values = coalesce_columns(raw, get_id_columns(config)) if n_rows else pd.Series([], dtype=object)
    if n_rows and not id_values.map(is_missing).all():
        columns[ID_FIELD] = id_values.map(clean_categorical)

    for name in outcomes:
        columns[name] = coalesce_columns(raw, get_aliases(config, name)).map(clean_numeric)

    for name in demographics:
        columns[name] = coalesce_columns(raw, get_aliases(config, name)).map(clean_categorical)

    bracket_maps = {
        'income_bracket': get_bracket_map(config, 'income'),
        'net_worth_bracket': get_bracket_map(config, 'net_worth'),
    }
    for name in catalogue:
        info = get_variable_info(config, name)
        kind = info.get('kind', 'numeric')
        if kind in bracket_maps:
            source = columns.get(info.get('source', ''), pd.Series([''] * n_rows, index=raw.index, dtype=object))
            brackets = bracket_maps[kind]
            columns[name] = source.map(lambda v: float(convert_bracket_to_enum(v, brackets)))
        elif kind == 'boolean':
            columns[name] = coalesce_columns(raw, get_aliases(config, name)).map(clean_boolean)
        else:
            columns[name] = coalesce_columns(raw, get_aliases(config, name)).map(clean_numeric)

    new_variables = detect_new_variables(raw, first_row_keys, config, list(columns)) if n_rows else {}
    for name, column in new_variables.items():
        columns[name] = raw[column].map(clean_numeric)

    records = pd.DataFrame(columns, index=pd.RangeIndex(n_rows))
    numeric_fields = outcomes + catalogue + list(new_variables)
    for name in numeric_fields:
        if name not in records.columns:
            records[name] = 0.0
    records[numeric_fields] = records[numeric_fields].astype(float)
    for name in demographics:
        if name not in records.columns:
            records[name] = ''

    logger.info(f"Normalized {n_rows} rows into {len(records.columns)} fields")
    variables = VariableSet(
        outcomes=tuple(outcomes),
        catalogue=tuple(catalogue),
        extra=tuple(new_variables),
    )
    return NormalizedData(records=records, variables=variables, demographics=tuple(demographics))
