"""
Offline inventory of repositories and restore points.

An inventory file is a JSON snapshot of what the REST API returned, so the
size reports can be rerun (or tested) without a backup server:

{
  "version": 1,
  "collected_at": "2026-01-01T00:00:00Z",
  "server": "vbr01",
  "repositories": [{"id": "...", "name": "...", "kind": "plain"}],
  "restore_points": [
    {"id": "...", "name": "vm1", "repository_id": "...",
     "storage": {"stats": [{"backup_size": 1073741824}]}}
  ]
}
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import INVENTORY_FORMAT_VERSION, REPOSITORY_KIND_PLAIN, REPOSITORY_KINDS
from .models import Repository, RestorePoint, Storage, StorageStat
from .utils import get_timestamp, write_json

logger = logging.getLogger(__name__)


def _parse_repository(item: Dict[str, Any]) -> Repository:
    kind = item.get('kind') or REPOSITORY_KIND_PLAIN
    if kind not in REPOSITORY_KINDS:
        raise ValueError(f"Unknown repository kind {kind!r} for repository {item.get('name')!r}")
    return Repository(id=str(item['id']), name=item['name'], kind=kind)


def _parse_storage(item: Optional[Dict[str, Any]]) -> Optional[Storage]:
    if item is None:
        return None
    stats = [
        StorageStat(
            backup_size=int(stat.get('backup_size') or 0),
            name=stat.get('name') or '',
            data_size=int(stat.get('data_size') or 0),
        )
        for stat in item.get('stats') or []
    ]
    return Storage(stats=stats)


def _parse_restore_point(item: Dict[str, Any]) -> RestorePoint:
    repository_id = item.get('repository_id')
    return RestorePoint(
        id=str(item['id']),
        name=item['name'],
        repository_id=str(repository_id) if repository_id is not None else None,
        storage=_parse_storage(item.get('storage')),
        metadata=item.get('metadata') or {},
    )


class InventoryFile:
    """
    Query source backed by an inventory JSON file.

    Offers the same list_repositories / list_restore_points calls as
    lib.vbr_client.VbrClient.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        with open(self.path) as f:
            self._data = json.load(f)

        version = self._data.get('version', INVENTORY_FORMAT_VERSION)
        if version != INVENTORY_FORMAT_VERSION:
            raise ValueError(f"Unsupported inventory version {version} in {path}")
        logger.info(f"Loaded inventory {path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def list_repositories(self) -> List[Repository]:
        return [_parse_repository(item) for item in self._data.get('repositories') or []]

    def list_restore_points(self, show_progress: bool = True) -> List[RestorePoint]:
        return [_parse_restore_point(item) for item in self._data.get('restore_points') or []]


def build_inventory(
    repositories: List[Repository],
    restore_points: List[RestorePoint],
    server: str = ""
) -> Dict[str, Any]:
    """Inventory dict in the on-disk format."""
    return {
        'version': INVENTORY_FORMAT_VERSION,
        'collected_at': get_timestamp(),
        'server': server,
        'repositories': [r.to_dict() for r in repositories],
        'restore_points': [rp.to_dict() for rp in restore_points],
    }


def save_inventory(
    repositories: List[Repository],
    restore_points: List[RestorePoint],
    filepath: str,
    server: str = ""
) -> str:
    write_json(build_inventory(repositories, restore_points, server), filepath)
    return filepath
