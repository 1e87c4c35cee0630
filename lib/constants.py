"""
Constants for the VBR admin report scripts.

This module defines all magic strings and numbers used across the codebase
to prevent typos, ensure consistency, and make maintenance easier.
"""

# =============================================================================
# Byte/Size Conversion Constants
# =============================================================================

BYTES_PER_MB = 1024 ** 2
BYTES_PER_GB = 1024 ** 3

# Decimal places shown in the size table (binary GB)
GB_DISPLAY_PLACES = 2

# =============================================================================
# Time Constants
# =============================================================================

SECONDS_PER_DAY = 86400

# =============================================================================
# Repository Kinds
# =============================================================================

REPOSITORY_KIND_PLAIN = "plain"
REPOSITORY_KIND_SCALE_OUT = "scale-out"

REPOSITORY_KINDS = (REPOSITORY_KIND_PLAIN, REPOSITORY_KIND_SCALE_OUT)

# =============================================================================
# VBR REST API Defaults
# =============================================================================

DEFAULT_VBR_PORT = 9419
DEFAULT_API_VERSION = "1.1-rev2"
DEFAULT_PAGE_SIZE = 500
DEFAULT_REQUEST_TIMEOUT = 60  # seconds
DEFAULT_RETRY_ATTEMPTS = 3

# Endpoints (relative to https://<server>:<port>)
VBR_TOKEN_PATH = "/api/oauth2/token"
VBR_LOGOUT_PATH = "/api/oauth2/logout"
VBR_REPOSITORIES_PATH = "/api/v1/backupInfrastructure/repositories"
VBR_SCALE_OUT_REPOSITORIES_PATH = "/api/v1/backupInfrastructure/scaleOutRepositories"
VBR_BACKUPS_PATH = "/api/v1/backups"
VBR_BACKUP_FILES_PATH = "/api/v1/backups/{backup_id}/backupFiles"
VBR_OBJECT_RESTORE_POINTS_PATH = "/api/v1/objectRestorePoints"

# =============================================================================
# Output
# =============================================================================

CSV_FIELDNAMES = ["Name", "Value"]
CSV_EXTENSION = ".csv"

# Inventory export format version (see lib/inventory.py)
INVENTORY_FORMAT_VERSION = 1

# =============================================================================
# Log Pattern Defaults
# =============================================================================

DEFAULT_LOG_PATTERNS = [
    r"\berror\b",
    r"\bwarn(ing)?\b",
    r"\bfail(ed|ure)?\b",
    r"\bexception\b",
    r"\btime(d)?[ -]?out\b",
]
