"""
Rendering of backup-size aggregation results.

Two outputs:

- the console table shows binary gigabytes rounded to 2 places
  (ROUND_HALF_UP, so 0.125 GB shows as 0.13)
- the CSV export carries the raw, unrounded byte count
"""
import os
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .constants import BYTES_PER_GB, CSV_EXTENSION, CSV_FIELDNAMES, GB_DISPLAY_PLACES
from .utils import write_csv

_GB_QUANTUM = Decimal(1).scaleb(-GB_DISPLAY_PLACES)


def sort_by_size(result: Dict[str, int]) -> List[Tuple[str, int]]:
    """Entries by total bytes descending; equal sizes ordered by workload name."""
    return sorted(result.items(), key=lambda item: (-item[1], item[0]))


def bytes_to_gb_rounded(bytes_value: int) -> Decimal:
    """Binary GB rounded half away from zero to GB_DISPLAY_PLACES."""
    if not bytes_value:
        return Decimal(0).quantize(_GB_QUANTUM)
    gb = Decimal(bytes_value) / Decimal(BYTES_PER_GB)
    return gb.quantize(_GB_QUANTUM, rounding=ROUND_HALF_UP)


def format_size_rows(result: Dict[str, int]) -> List[Tuple[str, str]]:
    """(workload name, size in GB as text) rows in display order."""
    return [(name, f"{bytes_to_gb_rounded(size)}") for name, size in sort_by_size(result)]


def csv_rows(result: Dict[str, int]) -> List[Dict]:
    """Name/Value rows with raw byte counts, in display order."""
    return [
        {CSV_FIELDNAMES[0]: name, CSV_FIELDNAMES[1]: size}
        for name, size in sort_by_size(result)
    ]


def csv_filename(repository_name: str) -> str:
    """<repository-name>.csv, with path separators in the name replaced by '_'."""
    safe_name = repository_name.replace("/", "_").replace(os.sep, "_")
    return f"{safe_name}{CSV_EXTENSION}"


def print_size_table(
    repository_name: str,
    result: Dict[str, int],
    console: Optional[Console] = None
) -> None:
    """Print the per-workload size table for one repository."""
    console = console or Console()
    if not result:
        console.print(f"Repository {repository_name}: no restore points found.")
        return

    table = Table(title=f"Repository: {repository_name}")
    table.add_column("Name", style="cyan", overflow="fold")
    table.add_column("Size (GB)", style="green", justify="right")

    for name, size_gb in format_size_rows(result):
        table.add_row(name, size_gb)
    console.print(table)


def write_size_csv(repository_name: str, result: Dict[str, int], output_dir: str = ".") -> str:
    """
    Export raw byte totals to <repository-name>.csv, overwriting any existing file.

    An empty result still produces a header-only file.
    """
    filepath = os.path.join(output_dir, csv_filename(repository_name))
    write_csv(csv_rows(result), filepath, fieldnames=CSV_FIELDNAMES)
    return filepath
