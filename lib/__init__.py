"""
VBR admin report scripts shared library.
"""
# Import constants module for easy access
from . import constants
from .aggregate import RepositoryIndex, aggregate_backup_sizes, aggregate_scale_out
from .constants import (
    # Byte conversion
    BYTES_PER_GB,
    BYTES_PER_MB,
    # Repository kinds
    REPOSITORY_KIND_PLAIN,
    REPOSITORY_KIND_SCALE_OUT,
)
from .inventory import InventoryFile, save_inventory
from .models import Repository, RestorePoint, Storage, StorageStat
from .report import (
    bytes_to_gb_rounded,
    csv_rows,
    format_size_rows,
    print_size_table,
    sort_by_size,
    write_size_csv,
)
from .utils import (
    AuthError,
    VbrApiError,
    get_timestamp,
    setup_logging,
    write_csv,
    write_json,
)
from .vbr_client import VbrClient

__all__ = [
    # Constants
    'constants',
    'BYTES_PER_GB',
    'BYTES_PER_MB',
    'REPOSITORY_KIND_PLAIN',
    'REPOSITORY_KIND_SCALE_OUT',
    # Models
    'Repository',
    'RestorePoint',
    'Storage',
    'StorageStat',
    # Aggregation
    'RepositoryIndex',
    'aggregate_backup_sizes',
    'aggregate_scale_out',
    # Rendering
    'sort_by_size',
    'bytes_to_gb_rounded',
    'format_size_rows',
    'csv_rows',
    'print_size_table',
    'write_size_csv',
    # Sources
    'VbrClient',
    'InventoryFile',
    'save_inventory',
    # Utils
    'AuthError',
    'VbrApiError',
    'get_timestamp',
    'setup_logging',
    'write_csv',
    'write_json',
]
