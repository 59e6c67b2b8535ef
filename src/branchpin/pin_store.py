"""
Persisted record of the revision each submodule is pinned to.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .git_manager import GitManager
from .models import GitRepositoryError, PinRecord


logger = logging.getLogger(__name__)


PIN_RECORD_DIR = "branchpin"
PIN_RECORD_FILE = "pins.json"


class PinStore:
    """Load and replace the pin record kept inside the parent's git directory."""

    def __init__(self, git_manager: GitManager) -> None:
        self.gm = git_manager

    @property
    def path(self) -> Path:
        return Path(self.gm.git_dir) / PIN_RECORD_DIR / PIN_RECORD_FILE

    def load(self) -> Optional[PinRecord]:
        """Return the current record, or None if nothing was pinned yet."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return PinRecord.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Unreadable pin record {self.path}: {e}")
            raise GitRepositoryError(f"Unreadable pin record {self.path}: {e}") from e

    def replace(self, record: PinRecord) -> None:
        """Replace the whole record. Pins of the previous record are never carried over."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        try:
            tmp_path.write_text(json.dumps(record.to_dict(), indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self.path)
            logger.info(f"Recorded {len(record.pins)} pins in {self.path}")
        except OSError as e:
            logger.error(f"Failed to write pin record {self.path}: {e}")
            raise GitRepositoryError(f"Failed to write pin record {self.path}: {e}") from e

    def clear(self) -> bool:
        """Delete the record; returns False when there was none."""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
