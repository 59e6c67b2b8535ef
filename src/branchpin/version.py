"""
Version extraction from branch names and bump tags.
"""

from __future__ import annotations

import logging
import re

from .branch_name import InvalidBranch, PlainBranch, VersionedBranch, parse_branch_ref
from .fallback import last_fallback_ref
from .git_manager import GitManager
from .models import BuildTarget, MalformedNameError, Version, VersionNotFoundError


logger = logging.getLogger(__name__)


BUMP_TAG_PATTERN = "bump-*"
_BUMP_TAG = re.compile(r"^bump-([0-9]+)\.([0-9]+)")


def version_from_bump_description(description: str) -> Version:
    """Parse the version out of a ``git describe`` result such as 'bump-2.0-rc1-3-gabc'."""
    match = _BUMP_TAG.match(description)
    if not match:
        raise VersionNotFoundError(f"Could not retrieve version from tag description {description}")
    return Version(match.group(1), match.group(2))


def extract_version(git_manager: GitManager, ref: str) -> Version:
    """Derive the version of a ``remote/branch`` ref.

    Versioned refs carry the number in their middle component. Plain refs
    take it from the nearest reachable ``bump-*`` tag.
    """
    parsed = parse_branch_ref(ref)
    if isinstance(parsed, VersionedBranch):
        logger.info(f"Retrieved version {parsed.version} from branch {ref}")
        return parsed.version
    if isinstance(parsed, PlainBranch):
        description = git_manager.describe(ref, BUMP_TAG_PATTERN)
        if description is None:
            raise VersionNotFoundError(f"Could not find a bump tag reachable from {ref}")
        version = version_from_bump_description(description)
        logger.info(f"Retrieved version {version} from tag description {description}")
        return version
    raw = parsed.raw if isinstance(parsed, InvalidBranch) else ref
    raise MalformedNameError(
        f"Illegally-formatted branch name: {raw} "
        "(expecting remote/branch or remote/<major>.<minor>/branch)"
    )


def select_version(git_manager: GitManager, target: BuildTarget) -> Version:
    """Version of a build, read from the last candidate of its fallback chain."""
    return extract_version(
        git_manager, last_fallback_ref(target.owner, target.branch, target.fallback)
    )
