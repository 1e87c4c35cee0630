#!/usr/bin/env python3
"""
VBR Backup Size Report

Stored backup size per workload (VM) for one or more backup repositories,
queried over the Veeam Backup & Replication REST API.

Usage:
    # Password is read from the environment only
    export VBR_PASSWORD="..."

    # Table per repository (GB, 2 decimals)
    python backup_size.py --server vbr01 --username admin -r "Default Backup Repository"

    # CSV per repository (<repository-name>.csv, raw bytes)
    python backup_size.py --server vbr01 --username admin -r Repo1,Repo2 --csv

    # Capture the server's data once, report from the capture later
    python backup_size.py --server vbr01 --username admin -r Repo1 --export-inventory inv.json
    python backup_size.py --input inv.json -r Repo1
"""
import argparse
import logging
import os
import sys
from typing import Dict, List, Optional

from rich.console import Console

from lib.aggregate import RepositoryIndex, aggregate_backup_sizes
from lib.config import generate_sample_config, get_password, load_config
from lib.constants import DEFAULT_API_VERSION, DEFAULT_VBR_PORT, REPOSITORY_KIND_PLAIN
from lib.inventory import InventoryFile, save_inventory
from lib.models import Repository, RestorePoint
from lib.report import print_size_table, write_size_csv
from lib.utils import AuthError, VbrApiError, setup_logging, split_csv_arg
from lib.vbr_client import VbrClient

logger = logging.getLogger(__name__)


# =============================================================================
# CLI plumbing (shared with sobr_backup_size.py)
# =============================================================================

def build_parser(description: str, epilog: str = "") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog
    )

    parser.add_argument('-r', '--repository', action='append', metavar='NAME[,NAME...]',
                        help='Repository to report on (repeatable or comma-separated, required)')
    parser.add_argument('--csv', action='store_true',
                        help='Write <repository-name>.csv (raw bytes) instead of printing a table')
    parser.add_argument('-o', '--output-dir', default=None,
                        help='Directory for CSV files (default: current directory)')

    # Connection
    parser.add_argument('--server', help='Backup server hostname (or VBR_SERVER env var)')
    parser.add_argument('--port', type=int, default=None,
                        help=f'REST API port (default: {DEFAULT_VBR_PORT})')
    parser.add_argument('--username', help='REST API user (or VBR_USERNAME env var)')
    parser.add_argument('--api-version', default=None,
                        help=f'x-api-version header (default: {DEFAULT_API_VERSION})')
    parser.add_argument('--no-verify-ssl', dest='verify_ssl', action='store_const', const=False,
                        default=None, help='Skip TLS certificate verification')

    # Offline data
    parser.add_argument('--input', help='Read repositories and restore points from an inventory JSON file')
    parser.add_argument('--export-inventory', metavar='FILE',
                        help='Also save the collected repositories and restore points to FILE')

    # General
    parser.add_argument('--config', help='YAML config file')
    parser.add_argument('--generate-config', action='store_true',
                        help='Print a sample config file and exit')
    parser.add_argument('--log-level', default=None, help='Logging level (default: INFO)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    return parser


def prepare_args(parser: argparse.ArgumentParser, argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse argv, configure logging and merge config file / env values."""
    args = parser.parse_args(argv)

    if args.generate_config:
        print(generate_sample_config())
        raise SystemExit(0)

    if args.verbose:
        args.log_level = 'DEBUG'
    setup_logging(args.log_level or 'INFO')

    load_config(args)
    if args.verbose:
        args.log_level = 'DEBUG'
    # Config file or env may have set the level
    setup_logging(args.log_level or 'INFO')

    args.repository = split_csv_arg(args.repository)
    if not args.repository:
        parser.error("--repository is required (or set vbr.repositories in the config file)")

    args.output_dir = args.output_dir or '.'
    args.port = args.port or DEFAULT_VBR_PORT
    args.api_version = args.api_version or DEFAULT_API_VERSION
    if args.verify_ssl is None:
        args.verify_ssl = True

    return args


def open_source(args: argparse.Namespace):
    """
    Query source for the report: an inventory file or a live server.

    Returns None (after printing why) when server credentials are missing.
    """
    if args.input:
        return InventoryFile(args.input)

    password = get_password()
    if not args.server or not args.username or not password:
        print("ERROR: Missing connection details. Please provide:", file=sys.stderr)
        print("  --server or VBR_SERVER environment variable", file=sys.stderr)
        print("  --username or VBR_USERNAME environment variable", file=sys.stderr)
        print("  VBR_PASSWORD environment variable (required, never a CLI argument)", file=sys.stderr)
        print("\nOr use --input with a previously exported inventory file.", file=sys.stderr)
        return None

    return VbrClient(
        args.server,
        args.username,
        password,
        port=args.port,
        api_version=args.api_version,
        verify_ssl=args.verify_ssl,
    )


def select_repositories(
    parser: argparse.ArgumentParser,
    index: RepositoryIndex,
    names: List[str],
    kind: str
) -> List[Repository]:
    """Validate requested names against the live repository list; exit 2 on unknown names."""
    valid = index.names(kind=kind)
    unknown = [name for name in names if name not in valid]
    if unknown:
        parser.error(
            f"unknown repository: {', '.join(unknown)} "
            f"(available: {', '.join(valid) if valid else 'none'})"
        )
    return [index.by_name(name, kind=kind) for name in names]


def emit_report(repository: Repository, result: Dict[str, int], args: argparse.Namespace,
                console: Optional[Console] = None) -> None:
    """Print the table or write the CSV for one repository."""
    if args.csv:
        filepath = write_size_csv(repository.name, result, args.output_dir)
        print(f"Wrote {filepath}")
    else:
        print_size_table(repository.name, result, console=console)


def collect(parser: argparse.ArgumentParser, args: argparse.Namespace, kind: str):
    """
    Fetch repositories and restore points from the configured source.

    Returns (index, targets, restore_points), or None when the source could
    not be opened or the server rejected the request.
    """
    source = open_source(args)
    if source is None:
        return None

    if args.output_dir != '.':
        os.makedirs(args.output_dir, exist_ok=True)

    try:
        with source:
            repositories = source.list_repositories()
            index = RepositoryIndex(repositories)
            targets = select_repositories(parser, index, args.repository, kind)
            restore_points: List[RestorePoint] = source.list_restore_points()
    except AuthError as e:
        print(f"ERROR: Authentication failed: {e}", file=sys.stderr)
        return None
    except VbrApiError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return None

    logger.info(f"Collected {len(restore_points)} restore points")

    if args.export_inventory:
        save_inventory(repositories, restore_points, args.export_inventory, server=args.server or "")

    return index, targets, restore_points


# =============================================================================
# Main Entry Point
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser(
        'VBR Backup Size Report - stored size per workload for backup repositories',
        epilog="""
Examples:
    export VBR_PASSWORD="..."
    python backup_size.py --server vbr01 --username admin -r "Default Backup Repository"
    python backup_size.py --server vbr01 --username admin -r Repo1,Repo2 --csv
    python backup_size.py --input inventory.json -r Repo1

Output:
    Table: Name, Size (GB) - binary GB, 2 decimals, largest first
    CSV:   <repository-name>.csv with columns Name, Value (raw bytes)
"""
    )
    args = prepare_args(parser, argv)

    collected = collect(parser, args, REPOSITORY_KIND_PLAIN)
    if collected is None:
        return 1
    index, targets, restore_points = collected

    for repository in targets:
        result = aggregate_backup_sizes(restore_points, repository, index.find)
        emit_report(repository, result, args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
