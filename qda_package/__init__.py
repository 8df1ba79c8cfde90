"""
Quantitative Driver Analysis package.

This package turns per-user behavioral exports into conversion insights:
correlation and significance rankings of behavioral drivers, tipping points,
persona segmentation and top-line summary statistics.
"""

__version__ = "0.1.0"

# Import key functions from yaml_processor
from .yaml_processor import (
    load_config,
    get_outcomes,
    get_variable_catalogue,
    get_aliases,
    get_variable_label,
    get_thresholds,
    get_section_exclusions,
    get_template
)

# Import normalization
from .normalizer import (
    NormalizedData,
    VariableSet,
    normalize_rows,
    clean_numeric,
    convert_income_to_enum,
    convert_net_worth_to_enum
)

# Import analysis steps
from .correlation_engine import calculate_correlation, calculate_correlations
from .significance import (
    DriverRow,
    calculate_t_stat,
    calculate_predictive_strength,
    perform_regression
)
from .tipping_point import calculate_tipping_point, calculate_all_tipping_points
from .persona import Persona, classify_persona, classify_personas
from .summary import calculate_summary_stats, calculate_demographic_breakdown

# Import pipeline and stores
from .pipeline import (
    AnalysisResults,
    QuantitativeDriverAnalysis,
    perform_quantitative_analysis,
    get_section_drivers,
    render_driver_summary
)
from .result_store import ResultStore, InMemoryResultStore, JsonFileResultStore

# Define what should be available in "from qda_package import *"
__all__ = [
    # Configuration
    'load_config',
    'get_outcomes',
    'get_variable_catalogue',
    'get_aliases',
    'get_variable_label',
    'get_thresholds',
    'get_section_exclusions',
    'get_template',

    # Normalization
    'NormalizedData',
    'VariableSet',
    'normalize_rows',
    'clean_numeric',
    'convert_income_to_enum',
    'convert_net_worth_to_enum',

    # Analysis
    'calculate_correlation',
    'calculate_correlations',
    'DriverRow',
    'calculate_t_stat',
    'calculate_predictive_strength',
    'perform_regression',
    'calculate_tipping_point',
    'calculate_all_tipping_points',
    'Persona',
    'classify_persona',
    'classify_personas',
    'calculate_summary_stats',
    'calculate_demographic_breakdown',

    # Pipeline
    'AnalysisResults',
    'QuantitativeDriverAnalysis',
    'perform_quantitative_analysis',
    'get_section_drivers',
    'render_driver_summary',

    # Result stores
    'ResultStore',
    'InMemoryResultStore',
    'JsonFileResultStore'
]
