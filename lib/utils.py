"""
Utility functions for the VBR report scripts.

Logging Level Standards:
------------------------
- ERROR: Failures that stop a report
         "Authentication failed: {e}"
- WARNING: Retries, disabled TLS verification, loose config permissions
           "TLS certificate verification disabled for vbr01"
- INFO: Progress messages, counts
        "Found 12 repositories"
        "Repository Main: 42 workloads"
- DEBUG: Per-item details that don't affect the result
         "No repository for restore point {id}"
"""
import csv
import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, TypeVar

import requests
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .constants import BYTES_PER_GB, DEFAULT_RETRY_ATTEMPTS

if TYPE_CHECKING:
    from rich.progress import TaskID

logger = logging.getLogger(__name__)

# Type variable for generic function decorator
F = TypeVar('F', bound=Callable[..., Any])

# Network failures worth another attempt
TRANSIENT_ERRORS = (requests.ConnectionError, requests.Timeout)


def retry_with_backoff(
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    min_wait: float = 1,
    max_wait: float = 60,
    exceptions: tuple = TRANSIENT_ERRORS
) -> Callable[[F], F]:
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait: Minimum wait time between retries in seconds (default: 1)
        max_wait: Maximum wait time between retries in seconds (default: 60)
        exceptions: Tuple of exception types to retry on (default: connection errors and timeouts)

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(max_attempts=5)
        def call_api():
            ...
    """
    def decorator(func: F) -> F:
        return retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
            retry=retry_if_exception_type(exceptions),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )(func)
    return decorator


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """
    Progress tracker for restore point collection with rich display.

    Falls back to simple print statements if stdout is not a TTY
    (e.g., when piping output).

    Usage:
        with ProgressTracker("VBR", total_backups=len(backups)) as tracker:
            for backup in backups:
                tracker.start_backup(backup["name"])
                points = collect(backup)
                tracker.add_restore_points(len(points), sum(p.backup_size() for p in points))
                tracker.complete_backup()
    """

    def __init__(self, source: str, total_backups: int = 0, show_progress: bool = True):
        self.source = source
        self.total_backups = total_backups
        self.show_progress = show_progress and sys.stdout.isatty()

        # Counters
        self.completed_backups = 0
        self.total_restore_points = 0
        self.total_bytes = 0
        self.current_backup = ""

        self._console: Optional[Console] = None
        self._progress: Optional[Progress] = None
        self._main_task: Optional["TaskID"] = None
        self._use_rich = self.show_progress

    def __enter__(self):
        if self._use_rich:
            self._console = Console()
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeElapsedColumn(),
                console=self._console,
                transient=False,
            )
            self._main_task = self._progress.add_task(
                f"{self.source} Collection", total=self.total_backups or 1
            )
            self._progress.start()
        else:
            print(f"\n{'='*60}", file=sys.stderr)
            print(f"{self.source} Collection Starting", file=sys.stderr)
            print(f"{'='*60}", file=sys.stderr)
            if self.total_backups:
                print(f"Backups: {self.total_backups}", file=sys.stderr)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._use_rich:
            assert self._progress is not None
            assert self._console is not None
            self._progress.stop()
            self._print_summary_rich()
        else:
            self._print_summary_plain()
        return False

    def start_backup(self, backup_name: str):
        """Mark the start of processing a backup."""
        self.current_backup = backup_name
        if self._use_rich:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, description=f"{self.source} [{backup_name}]")

    def add_restore_points(self, count: int, size_bytes: int = 0):
        """Add discovered restore points to the running total."""
        self.total_restore_points += count
        self.total_bytes += size_bytes

    def complete_backup(self):
        """Mark a backup as complete."""
        self.completed_backups += 1
        if self._use_rich:
            assert self._progress is not None
            assert self._main_task is not None
            self._progress.update(self._main_task, advance=1)

    def _print_summary_rich(self):
        total_gb = self.total_bytes / BYTES_PER_GB

        table = Table(title=f"{self.source} Collection Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Backups", str(self.completed_backups))
        table.add_row("Restore Points", f"{self.total_restore_points:,}")
        table.add_row("Total Stored", f"{total_gb:,.2f} GB")

        assert self._console is not None
        self._console.print(Panel(table))

    def _print_summary_plain(self):
        total_gb = self.total_bytes / BYTES_PER_GB
        print(f"  Backups:        {self.completed_backups}", file=sys.stderr)
        print(f"  Restore Points: {self.total_restore_points:,}", file=sys.stderr)
        print(f"  Total Stored:   {total_gb:,.2f} GB\n", file=sys.stderr)


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')


def split_csv_arg(values: Optional[List[str]]) -> List[str]:
    """
    Flatten repeated and comma-separated CLI values.

    ["a,b", "c"] -> ["a", "b", "c"]. Order kept, duplicates removed.
    """
    result: List[str] = []
    for value in values or []:
        for item in value.split(','):
            item = item.strip()
            if item and item not in result:
                result.append(item)
    return result


# =============================================================================
# Errors
# =============================================================================

class AuthError(Exception):
    """Authentication/authorization failure against the backup server.

    Raised when the REST API answers 401/403 so the report stops instead
    of producing an empty result.
    """
    def __init__(self, message: str, server: str = "", original_error: Optional[Exception] = None):
        self.server = server
        self.original_error = original_error
        super().__init__(message)


class VbrApiError(Exception):
    """Non-auth error response from the backup server REST API."""
    def __init__(self, message: str, status_code: Optional[int] = None, path: str = ""):
        self.status_code = status_code
        self.path = path
        super().__init__(message)


# HTTP status codes that indicate auth/permission issues
AUTH_STATUS_CODES = {401, 403}


# =============================================================================
# Logging
# =============================================================================

_LOG_REDACT_PATTERNS = [
    # Bearer tokens in headers or dumped requests
    (re.compile(r'(Bearer\s+)[A-Za-z0-9\-._~+/]+=*', re.IGNORECASE), r'\1***'),
    # access_token / refresh_token / password key-value pairs (form or JSON)
    (re.compile(r'((?:access_token|refresh_token|password)["\']?\s*[:=]\s*["\']?)[^"\'&\s,}]+', re.IGNORECASE),
     r'\1***'),
]


def redact_log_message(message: str) -> str:
    """Mask credentials and tokens in a log message."""
    if not message:
        return message

    for pattern, replacement in _LOG_REDACT_PATTERNS:
        message = pattern.sub(replacement, message)

    return message


class RedactingFilter(logging.Filter):
    """Logging filter that masks credentials in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_log_message(str(record.msg))
        if isinstance(record.args, tuple):
            record.args = tuple(
                redact_log_message(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def setup_logging(level: str = "INFO", output_dir: Optional[str] = None) -> logging.Logger:
    """
    Setup logging configuration with console and optional file output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        output_dir: If provided, also write logs to a file in this directory

    Returns:
        Logger instance
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    # Console handler (stderr, keeps stdout clean for tables and JSON)
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RedactingFilter())
    root_logger.addHandler(console_handler)

    if output_dir:
        os.makedirs(output_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')
        log_file = os.path.join(output_dir, f"vbr_report_{timestamp}.log")

        file_handler = logging.FileHandler(log_file, mode='w')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        file_handler.addFilter(RedactingFilter())
        root_logger.addHandler(file_handler)

        root_logger.info(f"Logging to: {log_file}")

    return logging.getLogger(__name__)


# =============================================================================
# Output
# =============================================================================

def write_json(data: Any, filepath: str) -> None:
    """Write data to JSON file with secure permissions."""
    # Owner read/write only
    fd = os.open(filepath, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'w') as f:
        json.dump(data, f, indent=2, default=str)
    logger.info(f"Wrote {filepath}")


def write_csv(data: List[Dict], filepath: str, fieldnames: Optional[List[str]] = None) -> None:
    """Write data to CSV file, replacing any existing file."""
    if not fieldnames:
        if not data:
            return
        fieldnames = list(data[0].keys())

    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(data)
    logger.info(f"Wrote {filepath}")
