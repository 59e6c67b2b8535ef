"""
Data models for the branch pinning tool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    # For type checkers only; avoids runtime circular import
    from .git_manager import GitManager


DEFAULT_GIT_HOST = "git@github.com"
DEFAULT_URL_TEMPLATE = "{host}:{owner}/{repo}.git"
DEFAULT_FETCH_ATTEMPTS = 10
DEFAULT_FETCH_DELAY = 10.0
PIN_TAG = "BUILD_TARGET"
TMP_TAG_PREFIX = "branchpin-tmp-tag"


class PinError(Exception):
    """Base exception for branch pinning operations."""

    pass


class UsageError(PinError):
    """Raised for missing or empty arguments."""

    pass


class ResolutionError(PinError):
    """Raised when no candidate of a fallback chain exists."""

    pass


class MalformedNameError(PinError):
    """Raised for a branch ref that is neither versioned nor plain."""

    pass


class VersionNotFoundError(PinError):
    """Raised when no version can be derived for a branch."""

    pass


class TransientNetworkError(PinError):
    """Raised when a fetch kept failing with transient errors."""

    pass


class FetchPermissionError(PinError):
    """Raised when a remote refuses access. Never retried."""

    pass


class AbsentResourceError(PinError):
    """Raised when a repository or ref is missing and that is not acceptable."""

    pass


class GitRepositoryError(PinError):
    """Exception raised for Git repository related errors."""

    pass


class SubmoduleError(PinError):
    """Exception raised for submodule related errors."""

    pass


class PartialHistoryWarning(UserWarning):
    """A submodule commit referenced by an old pin no longer exists."""

    pass


@dataclass(frozen=True)
class BuildTarget:
    """Owner, branch and fallback owner of one build request."""

    owner: str
    branch: str
    fallback: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.owner or not self.branch:
            raise UsageError("owner and branch must be non-empty")
        if not self.fallback:
            # frozen dataclass: bypass __setattr__
            object.__setattr__(self, "fallback", self.owner)

    def __str__(self) -> str:
        return f"{self.owner}/{self.branch} (fallback {self.fallback})"


@dataclass(frozen=True)
class FallbackCandidate:
    """A (remote, branch) pair of a fallback chain."""

    remote: str
    branch: str

    @property
    def ref(self) -> str:
        """Remote-tracking ref name, e.g. 'acme/2.1/feature'."""
        return f"{self.remote}/{self.branch}"

    def __str__(self) -> str:
        return self.ref


@dataclass(frozen=True)
class Version:
    """A <major>.<minor> version token, digits kept as written."""

    major: str
    minor: str

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass
class PinSettings:
    """Runtime configuration threaded through every operation."""

    host: str = DEFAULT_GIT_HOST
    url_template: str = DEFAULT_URL_TEMPLATE
    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    fetch_delay: float = DEFAULT_FETCH_DELAY
    pin_tag: str = PIN_TAG
    tmp_tag_prefix: str = TMP_TAG_PREFIX

    def remote_url(self, owner: str, repo: str) -> str:
        return self.url_template.format(host=self.host, owner=owner, repo=repo)


@dataclass
class RepoInfo:
    """Information about a Git repository."""

    path: Path
    name: str
    is_submodule: bool = False
    url: Optional[str] = None
    submodules: List[RepoInfo] = field(default_factory=list)
    git_manager: Optional["GitManager"] = None

    def __post_init__(self) -> None:
        """Ensure path is absolute."""
        self.path = Path(self.path).resolve()


@dataclass(frozen=True)
class PinnedRevision:
    """The revision a submodule is pinned to."""

    name: str
    ref: str
    commit: str


@dataclass
class PinRecord:
    """Mapping from submodule name to its pinned revision for one build target."""

    owner: str
    branch: str
    fallback: str
    pins: Dict[str, PinnedRevision] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "owner": self.owner,
            "branch": self.branch,
            "fallback": self.fallback,
            "pins": {
                name: {"ref": pin.ref, "commit": pin.commit} for name, pin in self.pins.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> PinRecord:
        pins = {
            name: PinnedRevision(name=name, ref=entry["ref"], commit=entry["commit"])
            for name, entry in (data.get("pins") or {}).items()
        }
        return cls(
            owner=data["owner"],
            branch=data["branch"],
            fallback=data["fallback"],
            pins=pins,
        )


@dataclass
class SubmoduleChangelog:
    """Changelog input captured for one submodule."""

    name: str
    branches: List[str]
    log: str
    from_commit: Optional[str] = None
    to_commit: Optional[str] = None
    partial: bool = False

    def render(self) -> str:
        header = f"Entering '{self.name}' ({' '.join(self.branches)})"
        return f"{header}\n{self.log}\n" if self.log else f"{header}\n"


@dataclass
class ReleaseResult:
    """Outcome of recording a release changelog commit."""

    commit: str
    tree: str
    parents: List[str]
    message: str
    warnings: List[PartialHistoryWarning] = field(default_factory=list)
