"""
Git repository management and operations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union
from git import Repo, InvalidGitRepositoryError, NoSuchPathError
from git.exc import GitCommandError

from .models import GitRepositoryError


logger = logging.getLogger(__name__)


class GitManager:
    """Manages Git operations for repositories and submodules."""

    def __init__(self, repo_path: Optional[Path] = None) -> None:
        """Initialize Git manager with optional repository path."""
        self.repo_path = (repo_path or Path.cwd()).resolve()
        self._repo: Optional[Repo] = None

    # --- Path normalization helpers ---
    def _to_repo_relative_str(self, p: Union[str, Path]) -> str:
        """Return a POSIX-style path relative to repo root for any given path."""
        base = self.working_dir
        pp = Path(p)
        try:
            if pp.is_absolute():
                return pp.resolve().relative_to(base).as_posix()
            return pp.as_posix()
        except ValueError:
            s = pp.as_posix()
            logger.debug(f"Path '{s}' not under repo root '{base}'; passing as-is")
            return s

    @property
    def repo(self) -> Repo:
        """Get the Git repository instance."""
        if self._repo is None:
            self._repo = self._discover_repository()
        return self._repo

    @property
    def working_dir(self) -> Path:
        return Path(self.repo.working_dir).resolve()

    @property
    def name(self) -> str:
        """Repository name, taken from the working directory name."""
        return self.working_dir.name

    def _discover_repository(self) -> Repo:
        """Discover the Git repository from current or specified path."""
        search_path = self.repo_path

        logger.debug(f"Discovering repository in: {search_path}")
        # Walk up the directory tree to find a Git repository
        while search_path != search_path.parent:
            try:
                repo = Repo(search_path)
                logger.debug(f"Found Git repository at: {search_path}")
                return repo
            except (InvalidGitRepositoryError, NoSuchPathError):
                search_path = search_path.parent

        raise GitRepositoryError(
            f"No Git repository found at {self.repo_path} or any parent directory"
        )

    def ensure_top_level(self, operation: str) -> None:
        """Fail unless this manager was opened at the top level of its repository."""
        if self.repo_path != self.working_dir:
            raise GitRepositoryError(
                f"{operation}: {self.repo_path} must be the top level of a git repo"
            )

    # --- Refs ---
    def ref_exists(self, ref: str) -> bool:
        """Return True if `ref` resolves to a commit in this repository."""
        try:
            self.repo.git.rev_parse("--quiet", "--verify", f"{ref}^{{commit}}")
            return True
        except GitCommandError:
            return False

    def rev_parse(self, ref: str) -> str:
        """Return the full object name for a ref (supports ^{tree} style suffixes)."""
        try:
            return self.repo.git.rev_parse("--verify", ref).strip()
        except GitCommandError as e:
            logger.error(f"Error resolving {ref} in {self.working_dir}: {e}")
            raise GitRepositoryError(f"Could not resolve {ref}: {e}") from e

    def describe_oneline(self, ref: str = "HEAD") -> str:
        """Return '<short sha> <subject>' for a ref."""
        try:
            return self.repo.git.show("-s", "--oneline", ref).strip()
        except GitCommandError as e:
            raise GitRepositoryError(f"Could not show {ref}: {e}") from e

    def describe(self, ref: str, match: str) -> Optional[str]:
        """Nearest reachable tag matching `match` (``git describe --match``), or None."""
        try:
            return self.repo.git.describe("--match", match, ref).strip() or None
        except GitCommandError as e:
            logger.debug(f"No tag matching {match} reachable from {ref}: {e}")
            return None

    def merge_base(self, first: str, second: str) -> Optional[str]:
        try:
            return self.repo.git.merge_base(first, second).strip() or None
        except GitCommandError:
            return None

    # --- Remotes ---
    def list_remotes(self) -> List[str]:
        return [remote.name for remote in self.repo.remotes]

    def remove_all_remotes(self) -> None:
        """Remove every remote, which also drops their remote-tracking refs."""
        for name in self.list_remotes():
            try:
                self.repo.git.remote("rm", name)
                logger.debug(f"Removed remote {name} in {self.working_dir}")
            except GitCommandError as e:
                logger.error(f"Failed to remove remote {name}: {e}")
                raise GitRepositoryError(f"Failed to remove remote {name}: {e}") from e

    def add_remote(self, name: str, url: str) -> None:
        try:
            self.repo.git.remote("add", name, url)
            logger.debug(f"Added remote {name} -> {url} in {self.working_dir}")
        except GitCommandError as e:
            logger.error(f"Failed to add remote {name}: {e}")
            raise GitRepositoryError(f"Failed to add remote {name}: {e}") from e

    def fetch(self, remote: str, *refspecs: str) -> None:
        """Quiet fetch. The raised error keeps git's stderr for classification."""
        try:
            self.repo.git.fetch("-q", remote, *refspecs)
            logger.debug(f"Fetched {remote} {' '.join(refspecs)} in {self.working_dir}")
        except GitCommandError as e:
            logger.debug(f"Fetch of {remote} failed in {self.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to fetch {remote}: {e}") from e

    def push(self, remote: str, refspec: str) -> None:
        try:
            self.repo.git.push(remote, refspec)
            logger.info(f"Pushed {refspec} to {remote} from {self.working_dir}")
        except GitCommandError as e:
            logger.error(f"Failed to push {refspec} to {remote}: {e}")
            raise GitRepositoryError(f"Failed to push {refspec} to {remote}: {e}") from e

    # --- Working tree ---
    def clean(self) -> None:
        """Remove untracked and ignored files, including nested repositories."""
        try:
            self.repo.git.clean("-ffdxq")
        except GitCommandError as e:
            logger.error(f"Failed to clean {self.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to clean {self.working_dir}: {e}") from e

    def reset_hard(self, target: Optional[str] = None) -> None:
        args = ["-q", "--hard"]
        if target:
            args.append(target)
        try:
            self.repo.git.reset(*args)
        except GitCommandError as e:
            logger.debug(f"Hard reset to {target or 'HEAD'} failed in {self.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to reset to {target or 'HEAD'}: {e}") from e

    def checkout(self, commitish: str) -> None:
        """Checkout a commit-ish in the repository."""
        try:
            self.repo.git.checkout("-q", commitish)
            logger.debug(f"Checked out {commitish} in {self.working_dir}")
        except GitCommandError as e:
            logger.error(f"Failed to checkout {commitish} in {self.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to checkout {commitish}: {e}") from e

    def commit_all(self, message: str, allow_empty: bool = True) -> None:
        args = ["-q", "-a", "-m", message]
        if allow_empty:
            args.append("--allow-empty")
        try:
            self.repo.git.commit(*args)
        except GitCommandError as e:
            logger.error(f"Failed to commit in {self.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to commit: {e}") from e

    def commit_tree(self, tree: str, parents: List[str], message: str) -> str:
        """Create a commit object from an explicit tree and parents; returns its sha."""
        args: List[str] = [tree]
        for parent in parents:
            args.extend(["-p", parent])
        args.extend(["-m", message])
        try:
            return self.repo.git.commit_tree(*args).strip()
        except GitCommandError as e:
            logger.error(f"commit-tree failed in {self.working_dir}: {e}")
            raise GitRepositoryError(f"commit failed: {e}") from e

    def merge_favoring_ours(self, ref: str, message: str) -> None:
        try:
            self.repo.git.merge("--no-edit", "--ff", "-X", "ours", "-m", message, ref)
            logger.info(f"Merged {ref} into HEAD")
        except GitCommandError as e:
            logger.error(f"Failed to merge {ref}: {e}")
            raise GitRepositoryError(f"Failed to merge {ref}: {e}") from e

    # --- Tags ---
    def delete_tag(self, name: str) -> bool:
        """Delete a tag; returns False when it did not exist."""
        try:
            self.repo.git.tag("-d", name)
            return True
        except GitCommandError:
            return False

    def create_tag(self, name: str, target: str = "HEAD", message: Optional[str] = None) -> None:
        """Create a lightweight tag, or an annotated one when `message` is given."""
        args = ["-a", "-m", message, name, target] if message is not None else [name, target]
        try:
            self.repo.git.tag(*args)
            logger.debug(f"Tagged {target} as {name} in {self.working_dir}")
        except GitCommandError as e:
            logger.error(f"Failed to create tag {name}: {e}")
            raise GitRepositoryError(f"Failed to create tag {name}: {e}") from e

    # --- Submodules ---
    def list_submodules(self) -> List[Tuple[str, str]]:
        """Return (name, path) of submodules in the order .gitmodules registers them."""
        if not (self.working_dir / ".gitmodules").exists():
            return []
        try:
            output = self.repo.git.config(
                "-f", ".gitmodules", "--get-regexp", r"^submodule\..*\.path$"
            )
        except GitCommandError:
            # Exit status 1: no submodule entries
            return []
        entries: List[Tuple[str, str]] = []
        for line in output.splitlines():
            key, _, path = line.partition(" ")
            name = key[len("submodule."):-len(".path")]
            if name and path:
                entries.append((name, path.strip()))
        return entries

    def get_gitmodules_url(self, name: str) -> Optional[str]:
        try:
            return self.repo.git.config("-f", ".gitmodules", "--get", f"submodule.{name}.url").strip()
        except GitCommandError:
            return None

    def set_gitmodules_url(self, name: str, url: str) -> None:
        try:
            self.repo.git.config("-f", ".gitmodules", f"submodule.{name}.url", url)
        except GitCommandError as e:
            logger.error(f"Failed to set url of submodule {name}: {e}")
            raise GitRepositoryError(f"Failed to set url of submodule {name}: {e}") from e

    def submodule_sync(self) -> None:
        try:
            self.repo.git.submodule("-q", "sync")
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to sync submodules: {e}") from e

    def submodule_update(self) -> None:
        """Initialize and update submodules recursively to their recorded commits."""
        try:
            self.repo.git.submodule("-q", "update", "--init", "--recursive")
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to update submodules: {e}") from e

    def get_submodule_pointer_at(self, ref: str, submodule_path: Union[str, Path]) -> Optional[str]:
        """Return the gitlink commit SHA for a submodule path at a given ref, or None."""
        rel = self._to_repo_relative_str(submodule_path)
        try:
            output = self.repo.git.ls_tree(ref, "--", rel)
        except GitCommandError as e:
            logger.error(f"Error reading submodule pointer at {ref}:{submodule_path}: {e}")
            return None
        line = output.strip()
        if not line:
            return None
        # Expected format: "160000 commit <sha>\t<path>"
        parts = line.split()
        if len(parts) >= 3 and parts[0] == "160000" and parts[1] == "commit":
            return parts[2]
        return None

    # --- History ---
    def remote_branches_containing(self, commit_sha: str) -> List[str]:
        """Remote branches (e.g. 'acme/2.1/feature') that contain the commit.

        Symbolic refs like 'origin/HEAD -> origin/master' are left out.
        """
        try:
            output = self.repo.git.branch("-r", "--contains", commit_sha)
        except GitCommandError as e:
            logger.error(f"Error listing branches containing {commit_sha}: {e}")
            return []
        branches: List[str] = []
        for ln in output.splitlines():
            name = ln.replace("*", "").strip()
            if not name or "->" in name or name.endswith("/HEAD"):
                continue
            branches.append(name)
        return branches

    def log_stat(self, revision_range: str, max_count: Optional[int] = None) -> str:
        args = ["--stat"]
        if max_count is not None:
            args.append(f"--max-count={max_count}")
        args.append(revision_range)
        try:
            return self.repo.git.log(*args)
        except GitCommandError as e:
            logger.error(f"Error reading log {revision_range} in {self.working_dir}: {e}")
            raise GitRepositoryError(f"Failed to read log {revision_range}: {e}") from e

    def find_commits(self, grep: str) -> List[str]:
        """Short hashes of commits on any ref whose message matches `grep`."""
        try:
            output = self.repo.git.log("--format=%h", "--all", "--fixed-strings", "--grep", grep)
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to search history for {grep!r}: {e}") from e
        return [line.strip() for line in output.splitlines() if line.strip()]

    def submodule_log(self, revision_range: str) -> str:
        try:
            return self.repo.git.log("--submodule=log", revision_range)
        except GitCommandError as e:
            raise GitRepositoryError(f"Failed to read log {revision_range}: {e}") from e

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir).resolve()
