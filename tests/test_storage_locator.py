"""Tests for storage root selection and NAS fallback."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from unittest.mock import patch
from visionhub.services.storage_locator import StorageLocator


class TestStorageLocator:
    def test_local_storage_creates_root(self, tmp_path):
        local = str(tmp_path / "recordings")
        locator = StorageLocator(local_path=local, nas_mount_point="/mnt/nas", storage_type="local")

        assert locator.initialize() is True
        assert locator.current_storage_root() == local
        assert os.path.isdir(local)
        assert not locator.is_network_storage

    def test_mounted_nas_is_used(self, tmp_path):
        nas = str(tmp_path / "nas")
        locator = StorageLocator(local_path=str(tmp_path / "local"), nas_mount_point=nas, storage_type="nas")

        with patch("visionhub.services.storage_locator.os.path.ismount", return_value=True):
            assert locator.initialize() is True

        assert locator.current_storage_root() == nas
        assert locator.is_network_storage

    def test_unmounted_nas_falls_back_to_local(self, tmp_path):
        local = str(tmp_path / "local")
        locator = StorageLocator(local_path=local, nas_mount_point=str(tmp_path / "nas"), storage_type="nas")

        with patch("visionhub.services.storage_locator.os.path.ismount", return_value=False):
            assert locator.initialize() is False

        assert locator.current_storage_root() == local
        assert os.path.isdir(local)
        assert not locator.is_network_storage

    def test_usage_reports_current_root(self, tmp_path):
        locator = StorageLocator(local_path=str(tmp_path), nas_mount_point="/mnt/nas", storage_type="local")
        locator.initialize()

        usage = locator.usage()

        assert usage["path"] == str(tmp_path)
        assert usage["total"] >= usage["free"] >= 0
