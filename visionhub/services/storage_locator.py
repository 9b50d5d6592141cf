# visionhub/services/storage_locator.py
"""
Storage locator — decides where recordings are written.

With STORAGE_TYPE=nas the network mount point is used, but only while it is
actually mounted; otherwise recordings fall back to the local path so capture
never writes into an empty mount directory. Mounting shares is handled by the
host, not by this service.
"""

import os
import shutil

from visionhub.config import settings
from visionhub.utils.logger import get_logger

logger = get_logger(__name__)


class StorageLocator:
    def __init__(self, local_path: str = settings.LOCAL_STORAGE_PATH,
                 nas_mount_point: str = settings.NAS_MOUNT_POINT,
                 storage_type: str = settings.STORAGE_TYPE):
        self.local_path = local_path
        self.nas_mount_point = nas_mount_point
        self.storage_type = storage_type
        self._current = local_path

    @property
    def is_network_storage(self) -> bool:
        return self._current == self.nas_mount_point

    def initialize(self) -> bool:
        """
        Select the storage root. Returns False when network storage was
        requested but is not available and the local path is used instead.
        """
        fell_back = False
        if self.storage_type == "nas":
            if os.path.ismount(self.nas_mount_point):
                self._current = self.nas_mount_point
                logger.info(f"💾 Storage initialized using NAS at {self.nas_mount_point}")
            else:
                self._current = self.local_path
                fell_back = True
                logger.warning(
                    f"⚠️  NAS not mounted at {self.nas_mount_point} — "
                    f"using local storage at {self.local_path}"
                )
        else:
            self._current = self.local_path
            logger.info(f"💾 Storage initialized using local path at {self.local_path}")

        try:
            os.makedirs(self._current, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create storage root {self._current}: {e}")
        return not fell_back

    def current_storage_root(self) -> str:
        return self._current

    def usage(self) -> dict:
        """Total/used/free bytes of the current root, for the health endpoint."""
        total, used, free = shutil.disk_usage(self._current)
        return {"path": self._current, "total": total, "used": used, "free": free}
