"""
Backup-size aggregation per repository and workload.

Restore points are attributed to a repository through a lookup callable.
A restore point whose repository cannot be resolved is left out of every
result: it is treated as not belonging to any repository, not as an error.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from .constants import REPOSITORY_KIND_SCALE_OUT
from .models import Repository, RestorePoint

logger = logging.getLogger(__name__)

RepositoryLookup = Callable[[RestorePoint], Optional[Repository]]


class RepositoryIndex:
    """
    Lookup from restore point to owning repository.

    Built once from the repository list returned by the query API.
    """

    def __init__(self, repositories: Iterable[Repository]):
        self._by_id: Dict[str, Repository] = {}
        for repo in repositories:
            self._by_id[repo.id] = repo

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def find(self, restore_point: RestorePoint) -> Optional[Repository]:
        """Resolve the repository a restore point belongs to, or None."""
        if not restore_point.repository_id:
            return None
        return self._by_id.get(restore_point.repository_id)

    def by_name(self, name: str, kind: Optional[str] = None) -> Optional[Repository]:
        """First repository with this name, optionally restricted to one kind."""
        for repo in self._by_id.values():
            if repo.name == name and (kind is None or repo.kind == kind):
                return repo
        return None

    def names(self, kind: Optional[str] = None) -> List[str]:
        """Repository names, optionally restricted to one kind, sorted."""
        return sorted(
            repo.name for repo in self._by_id.values()
            if kind is None or repo.kind == kind
        )

    def scale_out(self) -> List[Repository]:
        """All scale-out repositories, sorted by name."""
        return sorted(
            (repo for repo in self._by_id.values() if repo.kind == REPOSITORY_KIND_SCALE_OUT),
            key=lambda repo: repo.name
        )


def _resolve(find_repository: RepositoryLookup, restore_point: RestorePoint) -> Optional[Repository]:
    try:
        return find_repository(restore_point)
    except LookupError as e:
        logger.debug(f"No repository for restore point {restore_point.id}: {e}")
        return None


def aggregate_backup_sizes(
    restore_points: Iterable[RestorePoint],
    repository: Repository,
    find_repository: RepositoryLookup
) -> Dict[str, int]:
    """
    Total stored bytes per workload for one repository.

    Args:
        restore_points: Restore points from any number of repositories
        repository: Repository to report on
        find_repository: Resolves a restore point to its Repository. Returning
            None (or raising LookupError) drops the restore point.

    Returns:
        Mapping of workload name -> total bytes, in discovery order
    """
    totals: Dict[str, int] = {}
    dropped = 0

    for rp in restore_points:
        owner = _resolve(find_repository, rp)
        if owner is None:
            dropped += 1
            continue
        if owner != repository:
            continue

        # Same workload name sums into the existing entry
        totals[rp.name] = totals.get(rp.name, 0) + rp.backup_size()

    if dropped:
        logger.debug(f"Skipped {dropped} restore points with no resolvable repository")
    logger.info(f"Repository {repository.name}: {len(totals)} workloads")

    return totals


def aggregate_scale_out(
    restore_points: Iterable[RestorePoint],
    index: RepositoryIndex,
    names: Optional[Iterable[str]] = None
) -> Dict[Repository, Dict[str, int]]:
    """
    Run aggregate_backup_sizes once per scale-out repository.

    The restore points are first narrowed to those living on any scale-out
    repository, then grouped per individual scale-out repository.

    Args:
        restore_points: All restore points
        index: Repository lookup
        names: Only report these scale-out repositories (default: all)

    Returns:
        Mapping of scale-out Repository -> workload totals
    """
    scale_out_points = []
    for rp in restore_points:
        owner = index.find(rp)
        if owner is not None and owner.is_scale_out:
            scale_out_points.append(rp)
    logger.debug(f"{len(scale_out_points)} restore points on scale-out repositories")

    wanted = set(names) if names is not None else None
    results: Dict[Repository, Dict[str, int]] = {}
    for repo in index.scale_out():
        if wanted is not None and repo.name not in wanted:
            continue
        results[repo] = aggregate_backup_sizes(scale_out_points, repo, index.find)

    return results
