"""
Branch selection against locally fetched remote-tracking refs.
"""

from __future__ import annotations

import logging
from typing import Optional

from .fallback import fallback_chain
from .git_manager import GitManager
from .models import BuildTarget, FallbackCandidate, ResolutionError


logger = logging.getLogger(__name__)


def select_branch(
    git_manager: GitManager, target: BuildTarget, repo_name: Optional[str] = None
) -> FallbackCandidate:
    """Return the first candidate of the fallback chain that exists in the repository.

    Remote-tracking refs must have been fetched beforehand; nothing is fetched here.
    """
    repo_name = repo_name or git_manager.name
    for candidate in fallback_chain(target.owner, target.branch, target.fallback):
        if git_manager.ref_exists(candidate.ref):
            logger.debug(f"{repo_name}: selected {candidate.ref}")
            return candidate
        logger.debug(f"{repo_name}: {candidate.ref} does not exist")

    raise ResolutionError(
        f"Could not find any branches to use for {target.owner}/{repo_name}/{target.branch} "
        f"with fallback {target.fallback}"
    )
