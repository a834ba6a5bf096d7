#!/usr/bin/env python3
"""
Unified CLI for the multi-region catalog sync

Usage:
    python run.py --region jp                   # Enrich one region
    python run.py --all                         # Enrich all enabled regions
    python run.py --region hk --force           # Re-check rows with known codes
    python run.py --merge                       # Merge region masters onto US
    python run.py --all --merge                 # Enrich everything, then merge
    python run.py --validate-config             # Check config/regions.yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from catalog_sync.regions import get_available_regions, get_region_adapter
from catalog_sync.shared.constants import PATHS, WORKERS
from catalog_sync.shared.errors import CatalogSyncError
from catalog_sync.shared.logging_config import setup_logging
from catalog_sync.shared.merge_engine import MergeEngine, MergeRunStats
from catalog_sync.shared.multi_region import MergeReport, MultiRegionMerger
from catalog_sync.shared.overrides import load_slug_replacements, load_strict_slugs
from catalog_sync.shared.region_config import (
    load_merge_config,
    load_region_config,
    read_config_file,
    validate_config,
)


def validate_workers(value: str) -> int:
    """Validate --workers value for argparse."""
    try:
        workers = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"workers must be an integer, got '{value}'")
    if workers < 1 or workers > WORKERS.MAX_FETCH_WORKERS:
        raise argparse.ArgumentTypeError(f"workers must be between 1 and {WORKERS.MAX_FETCH_WORKERS}")
    return workers


def setup_parser() -> argparse.ArgumentParser:
    """Setup command line argument parser"""
    parser = argparse.ArgumentParser(
        description='Multi-region catalog sync',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --region jp                 Enrich the JP master
  %(prog)s --all --workers 2           Enrich every enabled region with 2 workers
  %(prog)s --merge                     Write output/merged_enriched.json
  %(prog)s --validate-config           Check config/regions.yaml and exit
        """
    )

    region_group = parser.add_mutually_exclusive_group()
    region_group.add_argument(
        '--region', '-r',
        type=str,
        choices=get_available_regions(),
        help='Enrich a single region'
    )
    region_group.add_argument(
        '--all', '-a',
        action='store_true',
        help='Enrich all enabled regions'
    )

    parser.add_argument(
        '--force',
        action='store_true',
        help='Re-fetch active rows whose product code is not confirmed empty'
    )
    parser.add_argument(
        '--workers', '-w',
        type=validate_workers,
        default=None,
        help='Override the fetch worker count from config'
    )
    parser.add_argument(
        '--merge', '-m',
        action='store_true',
        help='Run the multi-region merge after any enrichment'
    )
    parser.add_argument(
        '--validate-config',
        action='store_true',
        help='Validate config/regions.yaml and exit'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=PATHS.CONFIG_FILE,
        help=f'Region config file (default: {PATHS.CONFIG_FILE})'
    )
    parser.add_argument(
        '--data-dir',
        type=str,
        default=PATHS.DATA_DIR,
        help=f'Directory with source and master files (default: {PATHS.DATA_DIR})'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default='logs/catalog_sync.log',
        help='Log file path (default: logs/catalog_sync.log)'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    return parser


def get_enabled_regions(config_path: str = PATHS.CONFIG_FILE) -> List[str]:
    """Registered regions not disabled in config (missing entries default to enabled)."""
    config = read_config_file(config_path) or {}
    regions_config = config.get('regions') or {}
    return [
        region for region in get_available_regions()
        if (regions_config.get(region) or {}).get('enabled', True)
    ]


def get_regions_to_run(args) -> List[str]:
    if args.region:
        return [args.region]
    if args.all:
        return get_enabled_regions(args.config)
    return []


def run_region(region: str, args) -> MergeRunStats:
    """Run the incremental merge and enrichment for one region."""
    config = load_region_config(region, args.config)
    if args.workers:
        config['workers'] = args.workers

    engine = MergeEngine(get_region_adapter(region), config=config, data_dir=args.data_dir)
    return engine.run(force=args.force)


def run_merge(args) -> MergeReport:
    """Merge all configured region masters onto the canonical master."""
    merge_config = load_merge_config(args.config)
    merger = MultiRegionMerger(
        get_region_adapter(merge_config['canonical']),
        [get_region_adapter(region) for region in merge_config['regions']],
        strict_slugs=load_strict_slugs(),
        replacements=load_slug_replacements(),
        append_regions=merge_config['append_regions'],
        title_fallback=merge_config['title_fallback'],
    )
    return merger.run(data_dir=args.data_dir)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = setup_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_file, verbose=args.verbose)

    config_errors = validate_config(args.config, known_regions=get_available_regions())
    if args.validate_config:
        if config_errors:
            print("Configuration errors found:")
            for error in config_errors:
                print(f"  - {error}")
            return 1
        print(f"Configuration OK: {args.config}")
        return 0

    # A missing file is allowed (built-in defaults); anything else is fatal
    fatal_errors = [e for e in config_errors if not e.startswith("Configuration file not found")]
    if fatal_errors:
        print("Configuration errors found:")
        for error in fatal_errors:
            print(f"  - {error}")
        return 1

    regions = get_regions_to_run(args)
    if not regions and not args.merge:
        print("Nothing to do. Use --region <code>, --all or --merge")
        print(f"Available regions: {', '.join(get_available_regions())}")
        return 1

    try:
        for region in regions:
            logging.info(f"[{region}] Starting enrichment run")
            stats = run_region(region, args)
            print(stats.summary())

        if args.merge:
            report = run_merge(args)
            print(report.summary())
    except CatalogSyncError as e:
        logging.error(str(e))
        print(f"Error: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
