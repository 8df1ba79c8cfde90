import os
import re
import yaml
from typing import Dict, Any, List, Optional

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'configs', 'qda_config.yaml')

REQUIRED_SECTIONS = ['outcomes', 'variables', 'demographics', 'thresholds']

DEFAULT_THRESHOLDS = {
    'min_bucket_size': 10,
    'min_conversion_rate': 0.10,
    'significance_t': 1.96,
    'low_deposit_threshold': 1000,
    'top_n': 10,
}


def load_config(yaml_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and parse the YAML configuration file.

    Args:
        yaml_path: Path to the YAML configuration file. The packaged default
            configuration is used when omitted.

    Returns:
        Dictionary containing the parsed configuration
    """
    yaml_path = yaml_path or DEFAULT_CONFIG_PATH
    try:
        with open(yaml_path, 'r', encoding='utf-8') as file:
            config = yaml.safe_load(file)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing YAML configuration: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"Configuration must be a mapping: {yaml_path}")
    missing = [section for section in REQUIRED_SECTIONS if section not in config]
    if missing:
        raise ValueError(f"Configuration {yaml_path} is missing sections: {missing}")
    return config


def get_outcomes(config: Dict[str, Any]) -> List[str]:
    """
    Get all outcome variable names, in configuration order.

    Args:
        config: Loaded configuration dictionary

    Returns:
        List of outcome names (e.g. 'totalCopies')
    """
    return list(config.get('outcomes', {}).keys())


def get_outcome_info(config: Dict[str, Any], outcome: str) -> Dict[str, Any]:
    """
    Get information for a specific outcome from the configuration.

    Args:
        config: Loaded configuration dictionary
        outcome: Outcome variable name

    Returns:
        Dictionary containing outcome information

    Raises:
        ValueError: If the outcome is not configured
    """
    outcomes = config.get('outcomes', {})
    if outcome not in outcomes:
        raise ValueError(f"Unknown outcome '{outcome}'. Expected one of {list(outcomes)}")
    return outcomes[outcome] or {}


def get_outcome_short_name(config: Dict[str, Any], outcome: str) -> str:
    """Short key used in regression results ('totalCopies' -> 'copies')."""
    info = get_outcome_info(config, outcome)
    return info.get('short_name', outcome.replace('total', '', 1).lower())


def get_variable_catalogue(config: Dict[str, Any]) -> List[str]:
    """
    Get the fixed predictor catalogue.

    Args:
        config: Loaded configuration dictionary

    Returns:
        List of predictor names in configuration order. Outcomes are never
        part of the catalogue.
    """
    outcomes = set(get_outcomes(config))
    return [name for name in config.get('variables', {}) if name not in outcomes]


def get_variable_info(config: Dict[str, Any], variable: str) -> Dict[str, Any]:
    """Catalogue entry for a predictor, empty dict when unknown."""
    return config.get('variables', {}).get(variable) or {}


def get_demographic_fields(config: Dict[str, Any]) -> List[str]:
    """Categorical demographic field names."""
    return list(config.get('demographics', {}).keys())


def get_aliases(config: Dict[str, Any], field: str) -> List[str]:
    """
    Get the raw column aliases for an outcome, predictor or demographic field.

    The canonical field name is always appended as the last alias so that rows
    already keyed by canonical names normalize without extra configuration.

    Args:
        config: Loaded configuration dictionary
        field: Canonical field name

    Returns:
        List of raw column names to try, in order
    """
    for section in ('outcomes', 'variables', 'demographics'):
        entry = config.get(section, {}).get(field)
        if entry is not None:
            aliases = list(entry.get('aliases', []))
            if field not in aliases:
                aliases.append(field)
            return aliases
    return [field]


def get_all_aliases(config: Dict[str, Any]) -> List[str]:
    """Every raw column name that is consumed by a catalogued field."""
    aliases = []
    for section in ('outcomes', 'variables', 'demographics'):
        for field in config.get(section, {}):
            aliases.extend(get_aliases(config, field))
    return aliases


def get_id_columns(config: Dict[str, Any]) -> List[str]:
    """Raw columns holding user identifiers."""
    return list(config.get('id_columns', []))


def get_bracket_map(config: Dict[str, Any], kind: str) -> Dict[str, int]:
    """
    Get the ordinal map for income or net worth brackets.

    Args:
        config: Loaded configuration dictionary
        kind: Either 'income' or 'net_worth'

    Returns:
        Dictionary mapping bracket labels to ordinals 1-7
    """
    return dict(config.get(f'{kind}_brackets', {}))


def get_thresholds(config: Dict[str, Any]) -> Dict[str, Any]:
    """Analysis thresholds with defaults filled in."""
    thresholds = dict(DEFAULT_THRESHOLDS)
    thresholds.update(config.get('thresholds') or {})
    return thresholds


def get_section_exclusions(config: Dict[str, Any], outcome: str) -> List[str]:
    """
    Get the variables hidden from an outcome's driver ranking.

    Args:
        config: Loaded configuration dictionary
        outcome: Outcome variable name

    Returns:
        List of excluded variable names (the outcome itself is always included)
    """
    excluded = list(config.get('section_exclusions', {}).get(outcome) or [])
    if outcome not in excluded:
        excluded.append(outcome)
    return excluded


def get_variable_label(config: Dict[str, Any], variable: str) -> str:
    """
    Get the display label for a variable.

    Falls back to splitting the camelCase name into title-cased words, so
    dynamically discovered columns still read naturally.

    Args:
        config: Loaded configuration dictionary
        variable: Canonical variable name

    Returns:
        Display label
    """
    for section in ('outcomes', 'variables', 'demographics'):
        entry = config.get(section, {}).get(variable)
        if entry and entry.get('label'):
            if section == 'outcomes':
                # outcome labels describe the section, not the column
                break
            return entry['label']
    spaced = re.sub(r'([A-Z])', r' \1', variable).strip()
    return spaced[:1].upper() + spaced[1:]


def get_outcome_label(config: Dict[str, Any], outcome: str) -> str:
    """Section label for an outcome ('totalDeposits' -> 'Deposit Funds')."""
    return get_outcome_info(config, outcome).get('label', get_variable_label(config, outcome))


def get_template(config: Dict[str, Any], template_name: str) -> str:
    """
    Get a narrative template from the configuration.

    Args:
        config: Loaded configuration dictionary
        template_name: Name of the template (e.g. 'driver_summary')

    Returns:
        String containing the Jinja2 template text, or '' if not configured
    """
    return config.get('templates', {}).get(template_name, '')
