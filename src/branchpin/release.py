"""
Changelog commits across a parent repository and its submodules.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import Callable, Dict, List, Optional, Tuple

from .git_manager import GitManager
from .models import (
    BuildTarget,
    GitRepositoryError,
    PartialHistoryWarning,
    PinError,
    PinSettings,
    ReleaseResult,
    RepoInfo,
    SubmoduleChangelog,
    VersionNotFoundError,
)
from .submodule_mapper import SubmoduleMapper


logger = logging.getLogger(__name__)


# (changelog text, owner, version) -> commit message
Formatter = Callable[[str, str, str], str]


def command_formatter(command: str) -> Formatter:
    """Wrap an external program invoked as ``<command> <owner> <version>``.

    The raw changelog is passed on stdin and the program's stdout becomes the
    commit message.
    """
    argv = shlex.split(command)
    if not argv:
        raise PinError("Changelog formatter command is empty")

    def _format(text: str, owner: str, version: str) -> str:
        try:
            completed = subprocess.run(
                argv + [owner, version],
                input=text,
                capture_output=True,
                text=True,
                check=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            stderr = getattr(e, "stderr", None) or ""
            raise PinError(f"Changelog formatter {command!r} failed: {e} {stderr}".strip()) from e
        return completed.stdout

    return _format


class ReleaseRecorder:
    """Records the changes between two pinned states as a single changelog commit."""

    def __init__(self, git_manager: GitManager, settings: Optional[PinSettings] = None) -> None:
        self.gm = git_manager
        self.settings = settings or PinSettings()

    def _tmp_tag(self, target: BuildTarget, which: str) -> str:
        return f"{self.settings.tmp_tag_prefix}-{target.owner}-{target.branch}-{which}"

    def record(
        self,
        from_base: str,
        to_base: str,
        target: BuildTarget,
        version: str,
        formatter: Formatter,
    ) -> ReleaseResult:
        """Create the changelog commit for `from_base`..`to_base` and make it HEAD.

        The new commit has exactly the tree of `to_base`. Its parents are
        `from_base` and, when a tracking ref `<owner>/<branch>` exists, that ref.
        Only submodules initialized in the `to` checkout get a changelog block
        and a version tag.
        """
        self._clean_all(self._discover())
        self.gm.commit_all(f"interim commit message for build {version}")

        to_tag = self._tmp_tag(target, "to")
        from_tag = self._tmp_tag(target, "from")
        self.gm.delete_tag(to_tag)
        self.gm.create_tag(to_tag, to_base)
        self.gm.delete_tag(from_tag)
        self.gm.create_tag(from_tag, from_base)

        result_warnings: List[PartialHistoryWarning] = []
        from_commits = self._reset_to_from(from_tag, result_warnings)
        submodules, to_commits = self._reset_to_to(to_tag)
        self._clean_all(submodules)

        changelogs = [
            self.capture_changelog(sm, from_commits.get(sm.name), to_commits[sm.name])
            for sm in submodules
        ]
        message = formatter("".join(cl.render() for cl in changelogs), target.owner, version)

        tree = self.gm.rev_parse(f"{to_tag}^{{tree}}")
        parents = [self.gm.rev_parse(f"{from_tag}^{{commit}}")]
        tracking = f"{target.owner}/{target.branch}"
        if self.gm.ref_exists(tracking):
            parents.append(self.gm.rev_parse(f"{tracking}^{{commit}}"))

        commit = self.gm.commit_tree(tree, parents, message)
        if not commit:
            raise GitRepositoryError("commit failed")
        self.gm.reset_hard(commit)
        self.gm.delete_tag(from_tag)
        self.gm.delete_tag(to_tag)
        logger.info(f"Recorded changelog commit {commit[:8]} for build {version}")

        for sm in submodules:
            sm.git_manager.create_tag(f"v{version}", "HEAD", message="version")

        return ReleaseResult(
            commit=commit, tree=tree, parents=parents, message=message, warnings=result_warnings
        )

    def _discover(self) -> List[RepoInfo]:
        """Submodules initialized in the current checkout, each with a fresh GitManager."""
        return SubmoduleMapper(self.gm).discover().submodules

    def _clean_all(self, submodules: List[RepoInfo]) -> None:
        self.gm.clean()
        for sm in submodules:
            sm.git_manager.clean()

    def _checkout_and_discover(self, tag: str) -> List[RepoInfo]:
        # The clean removes working trees of submodules the checkout does not register
        self.gm.checkout(tag)
        self.gm.clean()
        return self._discover()

    def _reset_to_from(
        self, from_tag: str, result_warnings: List[PartialHistoryWarning]
    ) -> Dict[str, str]:
        """Best-effort reset of every submodule to its pointer at `from_tag`."""
        commits: Dict[str, str] = {}
        for sm in self._checkout_and_discover(from_tag):
            pointer = self.gm.get_submodule_pointer_at(from_tag, sm.path)
            if pointer is None:
                logger.info(f"Submodule {sm.name} is not recorded at {from_tag}")
                continue
            try:
                sm.git_manager.reset_hard(pointer)
                commits[sm.name] = pointer
            except GitRepositoryError:
                # The parent points to a revision that no longer exists in the child
                text = f"REVISION {pointer} ON REPO {sm.name} DOES NOT EXIST. CHANGELOG WILL BE INACCURATE."
                logger.warning(text)
                result_warnings.append(PartialHistoryWarning(text))
        return commits

    def _reset_to_to(self, to_tag: str) -> Tuple[List[RepoInfo], Dict[str, str]]:
        """Reset every submodule recorded at `to_tag` to its pointer; any failure is fatal."""
        submodules: List[RepoInfo] = []
        commits: Dict[str, str] = {}
        for sm in self._checkout_and_discover(to_tag):
            pointer = self.gm.get_submodule_pointer_at(to_tag, sm.path)
            if pointer is None:
                logger.info(f"Submodule {sm.name} is not recorded at {to_tag}")
                continue
            sm.git_manager.reset_hard(pointer)
            submodules.append(sm)
            commits[sm.name] = pointer
        return submodules, commits

    def capture_changelog(
        self, submodule: RepoInfo, from_commit: Optional[str], to_commit: str
    ) -> SubmoduleChangelog:
        """Remote branches holding the submodule HEAD plus the log of from..to."""
        gm = submodule.git_manager
        branches = gm.remote_branches_containing("HEAD")

        base = gm.merge_base(from_commit, to_commit) if from_commit else None
        if base:
            log = gm.log_stat(f"{base}..{to_commit}")
            partial = False
        else:
            # Unknown or unrelated starting point: only the pinned commit itself
            log = gm.log_stat(to_commit, max_count=1)
            partial = True
        return SubmoduleChangelog(
            name=submodule.name,
            branches=branches,
            log=log,
            from_commit=from_commit,
            to_commit=to_commit,
            partial=partial,
        )


def release_diff(git_manager: GitManager, from_version: str, to_version: str) -> str:
    """Submodule-aware log between the 'Build <version>' commits of two releases."""
    from_hashes = git_manager.find_commits(f"Build {from_version}")
    to_hashes = git_manager.find_commits(f"Build {to_version}")
    if not from_hashes:
        raise VersionNotFoundError(f"Could not find commit for build {from_version}")
    if not to_hashes:
        raise VersionNotFoundError(f"Could not find commit for build {to_version}")
    return git_manager.submodule_log(f"{from_hashes[0]}..{to_hashes[0]}")
