"""
Data models for the VBR report scripts.
"""
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .constants import REPOSITORY_KIND_PLAIN, REPOSITORY_KIND_SCALE_OUT


@dataclass(frozen=True)
class Repository:
    """
    A named backup storage target.

    Frozen so it can be used as a dict key; two repositories are equal only
    when id, name and kind all match.
    """
    id: str
    name: str
    kind: str = REPOSITORY_KIND_PLAIN  # "plain" or "scale-out"

    @property
    def is_scale_out(self) -> bool:
        return self.kind == REPOSITORY_KIND_SCALE_OUT

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class StorageStat:
    """Size measurement of one stored backup file (or chain part)."""
    backup_size: int = 0  # bytes on disk
    name: str = ""
    data_size: int = 0  # source data bytes, informational only

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class Storage:
    """Storage object exposed by a restore point."""
    stats: List[StorageStat] = field(default_factory=list)

    def total_backup_size(self) -> int:
        """Sum of backup_size across all stats. No stats sums to zero."""
        return sum(stat.backup_size or 0 for stat in self.stats or [])

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class RestorePoint:
    """
    One recoverable state of a workload.

    repository_id is resolved to a Repository through a lookup
    (see lib.aggregate.RepositoryIndex); it may be None when the owning
    repository is unknown.
    """
    id: str
    name: str  # workload name, kept byte-exact
    repository_id: Optional[str] = None
    storage: Optional[Storage] = None

    # Additional metadata (backup id, creation time, platform)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def backup_size(self) -> int:
        """Total stored bytes for this restore point."""
        if self.storage is None:
            return 0
        return self.storage.total_backup_size()

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)
