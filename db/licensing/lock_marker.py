"""
Filesystem lock marker for destructive (irreversible) Pro activation.

Once the marker exists with ``activated: true`` the instance is treated as
Pro regardless of any other evidence. If the marker is lost or corrupted,
Pro features are disabled again. The marker is local to this filesystem and
is not shared between replicas.

Locations (checked in this order):
1. /app/License/.pro_lock       (container image)
2. <cwd>/License/.pro_lock      (local run)
"""

import hashlib
import json
import logging
import os
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from db.licensing.timeutil import utcnow, isoformat_z

logger = logging.getLogger(__name__)

CONTAINER_LICENSE_DIR = Path('/app/License')
LOCK_FILE_NAME = '.pro_lock'


class LockMarkerStore:
    """Reads and writes the Pro activation lock marker."""

    def __init__(
        self,
        container_root: Path = CONTAINER_LICENSE_DIR,
        local_root: Optional[Path] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        """
        Args:
            container_root: Directory used when it exists (container deployments)
            local_root: Fallback directory; defaults to <cwd>/License at lookup time
            clock: Source of the current instant
        """
        self.container_root = Path(container_root)
        self.local_root = Path(local_root) if local_root is not None else None
        self.clock = clock
        self.read_count = 0

    def locate(self) -> Path:
        """Pick the marker path from which license directory exists."""
        if self.container_root.is_dir():
            return self.container_root / LOCK_FILE_NAME
        local_root = self.local_root if self.local_root is not None else Path.cwd() / 'License'
        return local_root / LOCK_FILE_NAME

    def create(self, activation_data: Optional[Dict[str, Any]] = None) -> bool:
        """
        Write the lock marker.

        Args:
            activation_data: Optional ``date``, ``organizationId`` and ``organizationName``

        Returns:
            True if the marker was written; False on any I/O error
        """
        activation_data = activation_data or {}
        lock_path = self.locate()
        now = self.clock()
        organization_id = activation_data.get('organizationId')

        lock_data = {
            'activated': True,
            'activatedAt': isoformat_z(now),
            'activationDate': activation_data.get('date') or isoformat_z(now),
            'organizationId': organization_id or None,
            'organizationName': activation_data.get('organizationName') or None,
            'checksum': hashlib.sha256(
                f"{organization_id or ''}{int(time.time() * 1000)}".encode('utf-8')
            ).hexdigest()
        }

        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            self._write_atomic(lock_path, json.dumps(lock_data, indent=2))
        except OSError as e:
            logger.error(f"[LockFile] Error creating lock file at {lock_path}: {e}")
            return False

        logger.info(f"[LockFile] ✅ Created lock file at: {lock_path}")
        return True

    def exists(self) -> bool:
        """True only if the marker is present, parses, and says ``activated``."""
        lock_data = self._read()
        if not isinstance(lock_data, dict):
            return False
        return bool(lock_data.get('activated'))

    def delete(self) -> bool:
        """
        Remove the marker (destructive - the organization must activate again).

        Returns:
            True if a file was removed
        """
        lock_path = self.locate()
        try:
            lock_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"[LockFile] Error deleting lock file {lock_path}: {e}")
            return False

        logger.warning(f"[LockFile] ⚠️  Lock file deleted: {lock_path}")
        return True

    def get_info(self) -> Optional[Dict[str, Any]]:
        """Get the parsed marker contents, or None if missing or unreadable."""
        lock_data = self._read()
        return lock_data if isinstance(lock_data, dict) else None

    def _read(self) -> Any:
        lock_path = self.locate()
        if not lock_path.exists():
            return None

        self.read_count += 1
        try:
            with open(lock_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"[LockFile] Error reading lock file {lock_path}: {e}")
            return None

    @staticmethod
    def _write_atomic(path: Path, content: str):
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f"{path.name}.", suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
