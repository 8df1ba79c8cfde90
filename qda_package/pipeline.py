"""Quantitative driver analysis pipeline.

Wires the analysis steps together:

    raw rows -> normalize -> correlations -> significance ranking
                          -> tipping points
                          -> personas -> summary stats

and packages everything into an `AnalysisResults` object for presentation
and caching collaborators.

Typical usage:
    ```python
    from qda_package import QuantitativeDriverAnalysis, JsonFileResultStore

    analysis = QuantitativeDriverAnalysis(store=JsonFileResultStore('.qda_cache'))
    results = analysis.run(rows)
    print(analysis.render_driver_summary(results, 'totalDeposits'))
    ```
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import pandas as pd
from jinja2 import Template, TemplateError

from .correlation_engine import CorrelationResults, calculate_correlations
from .normalizer import NormalizedData, RawRows, normalize_rows
from .persona import PERSONA_LABELS, PERSONA_ORDER, classify_personas
from .result_store import ResultStore
from .significance import DriverRow, perform_regression
from .summary import calculate_summary_stats
from .tipping_point import TippingPoints, calculate_all_tipping_points
from .yaml_processor import (
    load_config,
    get_outcomes,
    get_outcome_short_name,
    get_outcome_label,
    get_variable_label,
    get_thresholds,
    get_section_exclusions,
    get_template,
)

logger = logging.getLogger(__name__)

HASH_VERSION = 'v1'

# Config sections read by the analysis steps (thresholds are added with defaults)
ANALYSIS_CONFIG_SECTIONS = [
    'outcomes',
    'variables',
    'demographics',
    'id_columns',
    'income_brackets',
    'net_worth_brackets',
]

# Summary rate that measures conversion on each outcome
OUTCOME_CONVERSION_KEYS = {
    'totalCopies': 'firstCopyConversion',
    'totalDeposits': 'depositConversion',
    'totalSubscriptions': 'subscriptionConversion',
}


@dataclass
class AnalysisResults:
    """Complete analysis result handed to presentation."""
    summary_stats: Dict[str, Any]
    correlation_results: CorrelationResults
    regression_results: Dict[str, List[DriverRow]]  # short outcome name -> ranked drivers
    tipping_points: TippingPoints
    new_variables: List[str] = field(default_factory=list)
    data_hash: str = ''
    last_updated: str = ''
    from_cache: bool = False

    # In-memory only; never serialized
    records: Optional[pd.DataFrame] = None
    personas: Optional[pd.Series] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible payload with camelCase keys."""
        return {
            'summaryStats': self.summary_stats,
            'correlationResults': self.correlation_results,
            'regressionResults': {
                key: [row.to_dict() for row in rows]
                for key, rows in self.regression_results.items()
            },
            'tippingPoints': self.tipping_points,
            'newVariables': list(self.new_variables),
            'dataHash': self.data_hash,
            'lastUpdated': self.last_updated,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any], from_cache: bool = False) -> 'AnalysisResults':
        return cls(
            summary_stats=payload['summaryStats'],
            correlation_results=payload['correlationResults'],
            regression_results={
                key: [DriverRow.from_dict(row) for row in rows]
                for key, rows in payload['regressionResults'].items()
            },
            tipping_points=payload['tippingPoints'],
            new_variables=list(payload.get('newVariables', [])),
            data_hash=payload.get('dataHash', ''),
            last_updated=payload.get('lastUpdated', ''),
            from_cache=from_cache,
        )


def hash_records(records: pd.DataFrame) -> str:
    """
    Stable fingerprint of the normalized records.

    Used as the result-store key: identical input data yields the same hash,
    so previously computed results can be reused.
    """
    digest = hashlib.sha256()
    digest.update('\x1f'.join(str(c) for c in records.columns).encode('utf-8'))
    if len(records):
        digest.update(pd.util.hash_pandas_object(records, index=False).to_numpy().tobytes())
    return f"{HASH_VERSION}_{digest.hexdigest()[:32]}"


def hash_config(config: Dict[str, Any]) -> str:
    """Fingerprint of the configuration sections and thresholds the analysis reads."""
    relevant = {section: config.get(section) for section in ANALYSIS_CONFIG_SECTIONS}
    relevant['thresholds'] = get_thresholds(config)
    payload = json.dumps(relevant, sort_keys=True, default=str)
    return hashlib.sha256(payload.encode('utf-8')).hexdigest()[:16]


def store_key(data_hash: str, config: Dict[str, Any]) -> str:
    """
    Result-store key for one dataset analyzed under one configuration.

    Results computed with different thresholds or catalogues never share a key,
    even when the input data is identical.
    """
    return f"{data_hash}_{hash_config(config)}"


def analyze_normalized(normalized: NormalizedData, config: Optional[Dict[str, Any]] = None) -> AnalysisResults:
    """
    Run every analysis step over already-normalized records.

    Args:
        normalized: Output of `normalize_rows`
        config: Loaded configuration dictionary (packaged default if None)

    Returns:
        AnalysisResults including the records and personas
    """
    config = config or load_config()
    thresholds = get_thresholds(config)
    records = normalized.records
    outcomes = get_outcomes(config)
    predictors = normalized.variables.predictors
    n = len(records)

    logger.info(f"Analyzing {n} users across {len(predictors)} predictors and {len(outcomes)} outcomes")

    personas = classify_personas(records)
    summary_stats = calculate_summary_stats(records, personas, config, normalized.demographics)
    correlation_results = calculate_correlations(records, predictors, outcomes)
    tipping_points = calculate_all_tipping_points(
        records,
        predictors,
        outcomes,
        min_bucket_size=thresholds['min_bucket_size'],
        min_conversion_rate=thresholds['min_conversion_rate'],
    )

    regression_results = {}
    for outcome in outcomes:
        regression_results[get_outcome_short_name(config, outcome)] = perform_regression(
            correlation_results[outcome],
            n,
            tipping_points.get(outcome),
            significance_t=thresholds['significance_t'],
        )

    return AnalysisResults(
        summary_stats=summary_stats,
        correlation_results=correlation_results,
        regression_results=regression_results,
        tipping_points=tipping_points,
        new_variables=normalized.new_variables,
        data_hash=hash_records(records),
        last_updated=datetime.now().isoformat(timespec='seconds'),
        records=records,
        personas=personas,
    )


def perform_quantitative_analysis(rows: RawRows, config: Optional[Dict[str, Any]] = None) -> AnalysisResults:
    """
    Normalize raw rows and run the full driver analysis.

    Args:
        rows: Raw rows (list of mappings or DataFrame)
        config: Loaded configuration dictionary (packaged default if None)

    Returns:
        AnalysisResults
    """
    config = config or load_config()
    return analyze_normalized(normalize_rows(rows, config), config)


# =============================================================================
# PRESENTATION HELPERS
# =============================================================================

def get_section_drivers(
    results: AnalysisResults,
    outcome: str,
    config: Optional[Dict[str, Any]] = None,
    top_n: Optional[int] = None
) -> List[DriverRow]:
    """
    Ranked drivers for an outcome with its section exclusions removed.

    Args:
        results: Analysis results
        outcome: Outcome name (e.g. 'totalDeposits')
        config: Loaded configuration dictionary (packaged default if None)
        top_n: Keep only the first N drivers

    Returns:
        DriverRows sorted by descending |correlation|
    """
    config = config or load_config()
    excluded = set(get_section_exclusions(config, outcome))
    rows = results.regression_results.get(get_outcome_short_name(config, outcome), [])
    rows = [row for row in rows if row.variable not in excluded]
    return rows[:top_n] if top_n is not None else rows


def _render(template_text: str, context: Dict[str, Any]) -> str:
    try:
        template = Template(template_text, trim_blocks=True, lstrip_blocks=True)
        return template.render(**context).strip()
    except TemplateError as e:
        logger.warning(f"Error filling template: {e}")
        return f"Error filling template: {str(e)}"


def render_driver_summary(
    results: AnalysisResults,
    outcome: str,
    config: Optional[Dict[str, Any]] = None,
    top_n: Optional[int] = None
) -> str:
    """
    Plain-text summary of an outcome's top drivers.

    Args:
        results: Analysis results
        outcome: Outcome name (e.g. 'totalCopies')
        config: Loaded configuration dictionary (packaged default if None)
        top_n: Number of drivers to list (configured 'top_n' if None)

    Returns:
        Rendered text from the 'driver_summary' template
    """
    config = config or load_config()
    top_n = top_n if top_n is not None else get_thresholds(config)['top_n']
    drivers = []
    for row in get_section_drivers(results, outcome, config, top_n):
        item = row.to_dict()
        item['label'] = get_variable_label(config, row.variable)
        drivers.append(item)

    conversion = results.summary_stats.get(OUTCOME_CONVERSION_KEYS.get(outcome, ''), 0.0)
    context = {
        'outcome': outcome,
        'outcome_label': get_outcome_label(config, outcome),
        'total_users': results.summary_stats.get('totalUsers', 0),
        'conversion_pct': conversion * 100,
        'drivers': drivers,
    }
    return _render(get_template(config, 'driver_summary'), context)


def render_persona_summary(results: AnalysisResults, config: Optional[Dict[str, Any]] = None) -> str:
    """Plain-text persona breakdown from the 'persona_summary' template."""
    config = config or load_config()
    persona_stats = results.summary_stats.get('personaStats', {})
    personas = [
        {
            'key': persona.value,
            'label': PERSONA_LABELS[persona],
            'count': persona_stats.get(persona.value, {}).get('count', 0),
            'percentage': persona_stats.get(persona.value, {}).get('percentage', 0.0),
        }
        for persona in PERSONA_ORDER
    ]
    return _render(get_template(config, 'persona_summary'), {'personas': personas})


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class QuantitativeDriverAnalysis:
    """Runs the driver analysis, reusing stored results for unchanged data.

    Attributes:
        config (Dict[str, Any]): Loaded configuration dictionary
        store (Optional[ResultStore]): Injected result store; without one
            every run recomputes and nothing is persisted
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, store: Optional[ResultStore] = None) -> None:
        self.config = config or load_config()
        self.store = store
        self.logger = logging.getLogger(__name__)

    def run(self, rows: RawRows) -> AnalysisResults:
        """
        Normalize rows and return analysis results.

        When the store already holds results for the same normalized data and
        the same analysis configuration, they are returned (with
        `from_cache=True`) without recomputation.
        """
        normalized = normalize_rows(rows, self.config)
        data_hash = hash_records(normalized.records)
        key = store_key(data_hash, self.config)

        if self.store is not None:
            cached = self.store.load(key)
            if cached is not None:
                try:
                    results = AnalysisResults.from_dict(cached, from_cache=True)
                    self.logger.info(f"Data and config unchanged ({key}), using cached analysis results")
                    results.records = normalized.records
                    return results
                except (KeyError, TypeError, ValueError) as e:
                    self.logger.warning(f"Failed to use cached results, running full analysis: {e}")

        results = analyze_normalized(normalized, self.config)
        if self.store is not None:
            self.store.save(key, results.to_dict())
        return results

    def get_section_drivers(self, results: AnalysisResults, outcome: str, top_n: Optional[int] = None) -> List[DriverRow]:
        return get_section_drivers(results, outcome, self.config, top_n)

    def render_driver_summary(self, results: AnalysisResults, outcome: str, top_n: Optional[int] = None) -> str:
        return render_driver_summary(results, outcome, self.config, top_n)

    def render_persona_summary(self, results: AnalysisResults) -> str:
        return render_persona_summary(results, self.config)

    def render_report(self, results: AnalysisResults, top_n: Optional[int] = None) -> str:
        """Persona breakdown followed by every outcome's driver summary."""
        sections = [self.render_persona_summary(results)]
        sections.extend(
            self.render_driver_summary(results, outcome, top_n)
            for outcome in get_outcomes(self.config)
        )
        return '\n\n'.join(sections)
