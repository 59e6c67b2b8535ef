"""
Submodule discovery for a parent repository.
"""

from __future__ import annotations

import logging

from .git_manager import GitManager
from .models import RepoInfo, SubmoduleError


logger = logging.getLogger(__name__)


class SubmoduleMapper:
    """Maps the submodules registered in a parent repository."""

    def __init__(self, root_git_manager: GitManager) -> None:
        """Initialize with the parent repository's GitManager.

        Notes:
            GitManager instances are owned by `RepoInfo` objects and are attached during
            discovery.
        """
        self.root_gm = root_git_manager

    def discover(self) -> RepoInfo:
        """Return the parent RepoInfo with its submodules in registration order.

        Submodules whose working tree is not initialized are skipped with a
        warning.
        """
        try:
            root_dir = self.root_gm.working_dir
            root_info = RepoInfo(path=root_dir, name=root_dir.name, git_manager=self.root_gm)

            for name, rel_path in self.root_gm.list_submodules():
                submodule_path = root_dir / rel_path
                if not (submodule_path / ".git").exists():
                    logger.warning(f"Submodule {name} at {submodule_path} is not initialized")
                    continue
                root_info.submodules.append(
                    RepoInfo(
                        path=submodule_path,
                        name=name,
                        is_submodule=True,
                        url=self.root_gm.get_gitmodules_url(name),
                        git_manager=GitManager(submodule_path),
                    )
                )
                logger.debug(f"Discovered submodule: {name} at {submodule_path}")

            logger.debug(f"Discovered {len(root_info.submodules)} submodules in {root_info.name}")
            return root_info
        except SubmoduleError:
            raise
        except Exception as e:
            logger.error(f"Error discovering submodules: {e}")
            raise SubmoduleError(f"Failed to discover submodules: {e}") from e

