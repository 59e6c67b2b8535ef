"""
Branch Pin - branch resolution and release recording for repositories with submodules.

This package resolves which branch of every repository in a parent + submodules
project to build, using a deterministic owner/fallback chain, pins each submodule
to its resolved revision, and records changelog commits between pinned states.
"""

__version__ = "0.1.0"

from .orchestrator import BuildOrchestrator
from .models import BuildTarget, FallbackCandidate, PinRecord, PinSettings, RepoInfo, Version
from .fallback import fallback_chain, fallback_refs, fallback_remotes, last_fallback_ref
from .git_manager import GitManager
from .fetcher import ResilientFetcher
from .synchronizer import SubmoduleSynchronizer
from .release import ReleaseRecorder
from .publisher import PublishCoordinator

__all__ = [
    "BuildOrchestrator",
    "BuildTarget",
    "FallbackCandidate",
    "PinRecord",
    "PinSettings",
    "RepoInfo",
    "Version",
    "fallback_chain",
    "fallback_refs",
    "fallback_remotes",
    "last_fallback_ref",
    "GitManager",
    "ResilientFetcher",
    "SubmoduleSynchronizer",
    "ReleaseRecorder",
    "PublishCoordinator",
]
