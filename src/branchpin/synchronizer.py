"""
Remote setup and submodule pinning for a parent repository.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from .branch_selector import select_branch
from .fallback import fallback_remotes, last_fallback_ref
from .fetcher import ResilientFetcher
from .git_manager import GitManager
from .models import (
    BuildTarget,
    GitRepositoryError,
    PinRecord,
    PinSettings,
    PinnedRevision,
    RepoInfo,
)
from .pin_store import PinStore
from .submodule_mapper import SubmoduleMapper


logger = logging.getLogger(__name__)


FetcherFactory = Callable[[GitManager], ResilientFetcher]


class SubmoduleSynchronizer:
    """Sets up fallback remotes and pins every submodule to its resolved branch."""

    def __init__(
        self,
        git_manager: GitManager,
        settings: Optional[PinSettings] = None,
        fetcher_factory: Optional[FetcherFactory] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.gm = git_manager
        self.settings = settings or PinSettings()
        self._fetcher_factory = fetcher_factory or self._default_fetcher
        self.max_workers = max_workers
        self.pin_store = PinStore(git_manager)

    def _default_fetcher(self, git_manager: GitManager) -> ResilientFetcher:
        return ResilientFetcher(
            git_manager,
            attempts=self.settings.fetch_attempts,
            delay=self.settings.fetch_delay,
        )

    # --- Bootstrap phase ---
    def bootstrap(self, target: BuildTarget) -> RepoInfo:
        """Reset the repository and fetch every fallback remote, submodules included.

        Returns the discovered parent RepoInfo.
        """
        self.gm.ensure_top_level("init-parent")
        logger.info("Creating base repo and fetching remotes")

        self.gm.clean()
        try:
            self.gm.reset_hard()
        except GitRepositoryError as e:
            # A repository without commits has nothing to reset to
            logger.debug(f"Initial reset failed: {e}")

        self.setup_remotes(self.gm, self.gm.name, target)

        self.gm.checkout(last_fallback_ref(target.owner, target.branch, target.fallback))
        self.gm.clean()
        self._update_submodules_tolerantly()

        root_info = SubmoduleMapper(self.gm).discover()
        self._setup_submodule_remotes(root_info.submodules, target)
        return root_info

    def setup_remotes(self, git_manager: GitManager, repo_name: str, target: BuildTarget) -> List[str]:
        """Replace all remotes of a repository with the fallback remotes and fetch them.

        Returns the remotes that actually had something to fetch.
        """
        git_manager.remove_all_remotes()
        fetcher = self._fetcher_factory(git_manager)
        fetched: List[str] = []
        for remote in fallback_remotes(target.owner, target.branch, target.fallback):
            git_manager.add_remote(remote, self.settings.remote_url(remote, repo_name))
            if fetcher.fetch(remote, missing_ok=True):
                fetched.append(remote)
            else:
                logger.info(f"{repo_name}: nothing to fetch from {remote}")
        return fetched

    def _setup_submodule_remotes(self, submodules: List[RepoInfo], target: BuildTarget) -> None:
        """Run remote setup for every submodule concurrently and wait for all of them.

        Tasks are never cancelled; once all have finished the first failure,
        in registration order, is re-raised.
        """
        if not submodules:
            return

        futures: List[Tuple[RepoInfo, Future]] = []
        with ThreadPoolExecutor(max_workers=self.max_workers or len(submodules)) as pool:
            for submodule in submodules:
                futures.append(
                    (
                        submodule,
                        pool.submit(self.setup_remotes, submodule.git_manager, submodule.name, target),
                    )
                )

        first_error: Optional[BaseException] = None
        for submodule, future in futures:
            error = future.exception()
            if error is None:
                continue
            logger.error(f"Remote setup failed for submodule {submodule.name}: {error}")
            if first_error is None:
                first_error = error
        if first_error is not None:
            raise first_error

    # --- Synchronization phase ---
    def synchronize(self, target: BuildTarget) -> PinRecord:
        """Pin every submodule to the branch its fallback chain resolves to."""
        self.gm.ensure_top_level("update-submodules")
        logger.info(f"Overlaying {target.owner}/{target.branch} on top of {target.fallback}")

        self.gm.submodule_sync()
        self.gm.clean()
        self._update_submodules_tolerantly()

        root_info = SubmoduleMapper(self.gm).discover()
        record = PinRecord(owner=target.owner, branch=target.branch, fallback=target.fallback)

        logger.info("These are the branches I chose:")
        for submodule in root_info.submodules:
            pin = self.pin_submodule(submodule, target)
            record.pins[submodule.name] = pin
            remote = pin.ref.split("/", 1)[0]
            self.gm.set_gitmodules_url(submodule.name, self.settings.remote_url(remote, submodule.name))

        self.pin_store.replace(record)

        for submodule in root_info.submodules:
            submodule.git_manager.clean()
        return record

    def pin_submodule(self, submodule: RepoInfo, target: BuildTarget) -> PinnedRevision:
        """Move the pin tag of one submodule to its resolved branch and check it out."""
        gm = submodule.git_manager
        candidate = select_branch(gm, target, submodule.name)

        pin_tag = self.settings.pin_tag
        gm.delete_tag(pin_tag)
        gm.create_tag(pin_tag, candidate.ref)
        gm.reset_hard(pin_tag)

        commit = gm.rev_parse("HEAD")
        logger.info(f"{submodule.name:>15} {candidate.ref:<21} {gm.describe_oneline('HEAD')}")
        return PinnedRevision(name=submodule.name, ref=candidate.ref, commit=commit)

    def _update_submodules_tolerantly(self) -> None:
        try:
            self.gm.submodule_update()
        except GitRepositoryError as e:
            # Old branches may record submodule states that no longer check out cleanly
            logger.warning(f"Submodule update failed, continuing: {e}")
