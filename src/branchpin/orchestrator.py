"""
Build orchestration: one entry point per top-level operation.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .branch_selector import select_branch
from .git_manager import GitManager
from .models import (
    BuildTarget,
    FallbackCandidate,
    PinRecord,
    PinSettings,
    ReleaseResult,
    RepoInfo,
    Version,
)
from .pin_store import PinStore
from .publisher import PublishCoordinator
from .release import Formatter, ReleaseRecorder, release_diff
from .synchronizer import SubmoduleSynchronizer
from .version import select_version


logger = logging.getLogger(__name__)


class BuildOrchestrator:
    """Runs branch resolution, pinning, release recording and publishing for one repository."""

    def __init__(self, root_path: Optional[Path] = None, settings: Optional[PinSettings] = None) -> None:
        """Initialize the orchestrator for the repository at `root_path` (default: cwd)."""
        self.root_path = (root_path or Path.cwd()).resolve()
        self.settings = settings or PinSettings()
        self.git_manager = GitManager(self.root_path)
        logger.debug(f"Initialized build orchestrator for {self.root_path}")

    def select_branch(self, target: BuildTarget) -> FallbackCandidate:
        return select_branch(self.git_manager, target)

    def select_version(self, target: BuildTarget) -> Version:
        return select_version(self.git_manager, target)

    def init_parent(self, target: BuildTarget) -> RepoInfo:
        return SubmoduleSynchronizer(self.git_manager, self.settings).bootstrap(target)

    def update_submodules(self, target: BuildTarget) -> PinRecord:
        return SubmoduleSynchronizer(self.git_manager, self.settings).synchronize(target)

    def commit_log(
        self,
        from_base: str,
        to_base: str,
        owner: str,
        branch: str,
        version: str,
        formatter: Formatter,
    ) -> ReleaseResult:
        recorder = ReleaseRecorder(self.git_manager, self.settings)
        return recorder.record(from_base, to_base, BuildTarget(owner, branch), version, formatter)

    def push_everything(self, owner: str, branch: str, version: str) -> None:
        PublishCoordinator(self.git_manager, self.settings).publish(owner, branch, version)

    def release_diff(self, from_version: str, to_version: str) -> str:
        return release_diff(self.git_manager, from_version, to_version)

    def current_pins(self) -> Optional[PinRecord]:
        return PinStore(self.git_manager).load()

    def clear_pins(self) -> bool:
        return PinStore(self.git_manager).clear()
