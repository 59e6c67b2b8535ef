"""
Fallback chain computation for owner/branch resolution.
"""

from __future__ import annotations

from typing import List, Optional

from .models import FallbackCandidate, UsageError


MASTER = "master"


def fallback_chain(owner: str, branch: str, fallback: Optional[str] = None) -> List[FallbackCandidate]:
    """Return the (remote, branch) candidates to try, most preferred first.

    The order is: the owner's exact branch, the fallback owner's same branch
    (only when the fallback owner differs), then the fallback owner's master
    in the same directory (only when the branch is not already a master).
    """
    fallback = fallback or owner
    if not owner or not branch or not fallback:
        raise UsageError("fallback chain needs <owner> <branch> [fallback-owner]")

    chain = [FallbackCandidate(owner, branch)]
    if fallback != owner:
        chain.append(FallbackCandidate(fallback, branch))

    directory, _, base = branch.rpartition("/")
    if base != MASTER:
        prefix = f"{directory}/" if directory else ""
        chain.append(FallbackCandidate(fallback, f"{prefix}{MASTER}"))
    return chain


def fallback_remotes(owner: str, branch: str, fallback: Optional[str] = None) -> List[str]:
    """Distinct remotes of the chain, in first-occurrence order."""
    remotes: List[str] = []
    for candidate in fallback_chain(owner, branch, fallback):
        if candidate.remote not in remotes:
            remotes.append(candidate.remote)
    return remotes


def fallback_refs(owner: str, branch: str, fallback: Optional[str] = None) -> List[str]:
    return [candidate.ref for candidate in fallback_chain(owner, branch, fallback)]


def last_fallback_ref(owner: str, branch: str, fallback: Optional[str] = None) -> str:
    """The last candidate; used as the default checkout target."""
    return fallback_chain(owner, branch, fallback)[-1].ref
