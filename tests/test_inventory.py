"""
Tests for lib/inventory.py offline inventory files.

Covers:
- Loading repositories and restore points from JSON
- Missing / null storage handling
- Saving an inventory and loading it back
- Version and kind validation
"""
import json
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lib.constants import BYTES_PER_GB, REPOSITORY_KIND_SCALE_OUT
from lib.inventory import InventoryFile, build_inventory, save_inventory
from lib.models import Repository, RestorePoint, Storage, StorageStat


@pytest.fixture
def inventory_path(tmp_path):
    data = {
        "version": 1,
        "repositories": [
            {"id": "r1", "name": "Repo 1", "kind": "plain"},
            {"id": "s1", "name": "SOBR 1", "kind": "scale-out"},
            {"id": "r2", "name": "Repo 2"},
        ],
        "restore_points": [
            {"id": "rp1", "name": "vm1", "repository_id": "r1",
             "storage": {"stats": [{"backup_size": BYTES_PER_GB}, {"backup_size": 5}]}},
            {"id": "rp2", "name": "vm2", "repository_id": "s1", "storage": None},
            {"id": "rp3", "name": "vm3", "repository_id": None, "storage": {}},
            {"id": "rp4", "name": "vm4"},
        ],
    }
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps(data))
    return str(path)


class TestInventoryFile:
    """Tests for InventoryFile loading."""

    def test_repositories(self, inventory_path):
        repos = InventoryFile(inventory_path).list_repositories()
        assert repos[0] == Repository("r1", "Repo 1")
        assert repos[1].kind == REPOSITORY_KIND_SCALE_OUT
        assert repos[2].kind == "plain"

    def test_restore_points(self, inventory_path):
        points = InventoryFile(inventory_path).list_restore_points()
        assert [p.id for p in points] == ["rp1", "rp2", "rp3", "rp4"]
        assert points[0].backup_size() == BYTES_PER_GB + 5

    def test_null_and_missing_storage_sum_to_zero(self, inventory_path):
        points = InventoryFile(inventory_path).list_restore_points()
        assert points[1].storage is None
        assert points[1].backup_size() == 0
        assert points[2].backup_size() == 0
        assert points[3].repository_id is None

    def test_context_manager(self, inventory_path):
        with InventoryFile(inventory_path) as source:
            assert len(source.list_repositories()) == 3

    def test_unknown_version(self, tmp_path):
        path = tmp_path / "inv.json"
        path.write_text(json.dumps({"version": 99}))
        with pytest.raises(ValueError, match="Unsupported inventory version"):
            InventoryFile(str(path))

    def test_unknown_kind(self, tmp_path):
        path = tmp_path / "inv.json"
        path.write_text(json.dumps({"repositories": [{"id": "x", "name": "X", "kind": "tape"}]}))
        with pytest.raises(ValueError, match="Unknown repository kind"):
            InventoryFile(str(path)).list_repositories()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            InventoryFile(str(tmp_path / "nope.json"))


class TestSaveInventory:
    """Tests for build_inventory / save_inventory."""

    def test_build_inventory_shape(self):
        data = build_inventory([Repository("r1", "Repo 1")], [], server="vbr01")
        assert data["version"] == 1
        assert data["server"] == "vbr01"
        assert data["collected_at"].endswith("Z")
        assert data["repositories"] == [{"id": "r1", "name": "Repo 1", "kind": "plain"}]

    def test_saved_inventory_loads_back(self, tmp_path):
        repos = [Repository("r1", "Repo 1"), Repository("s1", "SOBR", REPOSITORY_KIND_SCALE_OUT)]
        points = [
            RestorePoint("rp1", "vm1", "r1", Storage([StorageStat(backup_size=42, name="vm1.vbk")]),
                         metadata={"backup_id": "bk1"}),
            RestorePoint("rp2", "vm2", None, None),
        ]
        path = save_inventory(repos, points, str(tmp_path / "inv.json"))

        source = InventoryFile(path)
        assert source.list_repositories() == repos
        loaded = source.list_restore_points()
        assert loaded[0].backup_size() == 42
        assert loaded[0].metadata == {"backup_id": "bk1"}
        assert loaded[1].storage is None
