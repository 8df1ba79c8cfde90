#!/usr/bin/env python3
"""
Command-line interface for the QDA package.

Runs the driver analysis over a CSV or JSON export and prints a text report.
"""

import argparse
import json
import logging
import sys

import pandas as pd

from .pipeline import QuantitativeDriverAnalysis
from .result_store import JsonFileResultStore
from .yaml_processor import load_config

# Setup logging
logger = logging.getLogger(__name__)


def read_rows(path: str):
    """
    Read raw rows from a CSV or JSON file.

    JSON input may be a list of objects or an object with a 'rows' list.
    """
    if path.lower().endswith('.json'):
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
        if isinstance(payload, dict):
            payload = payload.get('rows', [])
        if not isinstance(payload, list):
            raise ValueError(f"Expected a list of rows in {path}")
        return payload
    return pd.read_csv(path, dtype=object)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Quantitative Driver Analysis (QDA) - behavioral conversion drivers"
    )
    parser.add_argument('--version', action='store_true',
                      help='Show version information')

    subparsers = parser.add_subparsers(dest='command')
    analyze = subparsers.add_parser('analyze', help='Analyze a user export')
    analyze.add_argument('input', help='CSV or JSON file with one row per user')
    analyze.add_argument('--config', default=None,
                         help='YAML configuration (packaged default if omitted)')
    analyze.add_argument('--output', default=None,
                         help='Write the results JSON to this path')
    analyze.add_argument('--cache-dir', default=None,
                         help='Reuse results for unchanged data from this directory')
    analyze.add_argument('--top', type=int, default=None,
                         help='Drivers to list per outcome')
    analyze.add_argument('-v', '--verbose', action='store_true',
                         help='Debug logging')
    return parser


def run_analyze(args) -> int:
    config = load_config(args.config)
    store = JsonFileResultStore(args.cache_dir) if args.cache_dir else None
    analysis = QuantitativeDriverAnalysis(config=config, store=store)

    rows = read_rows(args.input)
    results = analysis.run(rows)
    print(analysis.render_report(results, top_n=args.top))

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump(results.to_dict(), f, indent=2)
        logger.info(f"Wrote results to {args.output}")
    return 0


def main(argv=None):
    """
    CLI entry point.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if getattr(args, 'verbose', False) else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Handle arguments
    if args.version:
        from . import __version__
        print(f"QDA Package version: {__version__}")
        return 0
    if args.command == 'analyze':
        try:
            return run_analyze(args)
        except (FileNotFoundError, ValueError) as e:
            logger.error(str(e))
            return 1

    parser.print_help()
    return 0

if __name__ == "__main__":
    sys.exit(main())
