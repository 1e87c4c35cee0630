#!/usr/bin/env python3
"""
File Age Scanner

Lists files under a folder that have not been modified for a given number of
days, oldest first.

Usage:
    # Everything older than 30 days
    python file_age_scan.py --folder /srv/backups --age 30

    # Only .vbk files, top-level only, exported to CSV
    python file_age_scan.py --folder /srv/backups --age 90 --filter "*.vbk" --no-recurse --csv old_files.csv
"""
import argparse
import logging
import os
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table

from lib.constants import BYTES_PER_MB, SECONDS_PER_DAY
from lib.utils import setup_logging, write_csv

logger = logging.getLogger(__name__)


@dataclass
class FileAgeEntry:
    """One file older than the cutoff."""
    path: str
    modified: datetime  # UTC
    size_bytes: int
    age_days: float

    def to_dict(self) -> Dict:
        row = asdict(self)
        row['modified'] = self.modified.isoformat().replace('+00:00', 'Z')
        row['age_days'] = round(self.age_days, 1)
        return row


def scan_old_files(
    folder: str,
    age_days: float,
    pattern: str = "*",
    recursive: bool = True,
    now: Optional[datetime] = None
) -> List[FileAgeEntry]:
    """
    Files matching pattern whose modification time is before now - age_days.

    Args:
        folder: Root folder to scan
        age_days: Minimum age in days (0 lists every matching file)
        pattern: Glob filter applied to file names
        recursive: Descend into subfolders
        now: Reference time (default: current UTC time)

    Returns:
        Entries sorted oldest first, ties by path
    """
    root = Path(folder)
    if not root.is_dir():
        raise FileNotFoundError(f"Folder not found: {folder}")
    if age_days < 0:
        raise ValueError("age_days must be >= 0")

    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=age_days)

    candidates = root.rglob(pattern) if recursive else root.glob(pattern)

    entries: List[FileAgeEntry] = []
    for path in candidates:
        try:
            if not path.is_file():
                continue
            st = path.stat()
        except OSError as e:
            # Vanished or unreadable between listing and stat
            logger.debug(f"Skipping {path}: {e}")
            continue

        modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        if modified >= cutoff:
            continue
        entries.append(FileAgeEntry(
            path=str(path),
            modified=modified,
            size_bytes=st.st_size,
            age_days=(now - modified).total_seconds() / SECONDS_PER_DAY,
        ))

    entries.sort(key=lambda e: (e.modified, e.path))
    logger.info(f"Found {len(entries)} files older than {age_days} days in {folder}")
    return entries


def print_file_age_table(entries: List[FileAgeEntry], console: Optional[Console] = None) -> None:
    """Print the listing with a total line."""
    console = console or Console()
    if not entries:
        console.print("No files found.")
        return

    table = Table(title="Files by age")
    table.add_column("Modified (UTC)", style="cyan")
    table.add_column("Age (days)", justify="right")
    table.add_column("Size (MB)", justify="right", style="green")
    table.add_column("Path")

    for entry in entries:
        table.add_row(
            entry.modified.strftime('%Y-%m-%d %H:%M:%S'),
            f"{entry.age_days:,.1f}",
            f"{entry.size_bytes / BYTES_PER_MB:,.2f}",
            entry.path,
        )

    total_mb = sum(e.size_bytes for e in entries) / BYTES_PER_MB
    table.add_section()
    table.add_row("TOTAL", str(len(entries)), f"{total_mb:,.2f}", "")
    console.print(table)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description='File Age Scanner - list files not modified for N days',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--folder', required=True, help='Folder to scan')
    parser.add_argument('--age', type=float, required=True, help='Minimum age in days')
    parser.add_argument('--filter', default='*', help='File name glob filter (default: *)')
    parser.add_argument('--no-recurse', action='store_true', help='Do not scan subfolders')
    parser.add_argument('--csv', metavar='FILE', help='Write the listing to a CSV file')
    parser.add_argument('--log-level', default='INFO', help='Logging level')

    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if args.age < 0:
        parser.error("--age must be >= 0")
    if not os.path.isdir(args.folder):
        print(f"ERROR: Folder not found: {args.folder}", file=sys.stderr)
        return 1

    entries = scan_old_files(args.folder, args.age, pattern=args.filter, recursive=not args.no_recurse)

    if args.csv:
        write_csv(
            [e.to_dict() for e in entries],
            args.csv,
            fieldnames=['path', 'modified', 'size_bytes', 'age_days'],
        )
        print(f"Wrote {args.csv}")
    else:
        print_file_age_table(entries)

    return 0


if __name__ == '__main__':
    sys.exit(main())
