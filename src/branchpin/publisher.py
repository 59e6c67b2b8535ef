"""
Publishing of a recorded release to the target owner.
"""

from __future__ import annotations

import logging
from typing import Optional

from .fetcher import ResilientFetcher
from .git_manager import GitManager
from .models import PinSettings
from .submodule_mapper import SubmoduleMapper


logger = logging.getLogger(__name__)


MERGE_MESSAGE = "Merge: some changelogs may be duplicated in the next commit"


class PublishCoordinator:
    """Merges concurrent upstream history and pushes the parent and all version tags."""

    def __init__(
        self,
        git_manager: GitManager,
        settings: Optional[PinSettings] = None,
        fetcher: Optional[ResilientFetcher] = None,
    ) -> None:
        self.gm = git_manager
        self.settings = settings or PinSettings()
        self.fetcher = fetcher or ResilientFetcher(
            git_manager,
            attempts=self.settings.fetch_attempts,
            delay=self.settings.fetch_delay,
        )

    def publish(self, owner: str, branch: str, version: str) -> None:
        # Concurrent builds may have pushed in the meantime
        self.fetcher.fetch(owner)
        tracking = f"{owner}/{branch}"
        if self.gm.ref_exists(tracking):
            self.gm.merge_favoring_ours(tracking, MERGE_MESSAGE)

        tag = f"v{version}"
        for submodule in SubmoduleMapper(self.gm).discover().submodules:
            submodule.git_manager.push(owner, tag)
        self.gm.push(owner, f"HEAD:refs/heads/{branch}")
        logger.info(f"Published {tag} and {branch} to {owner}")
