"""
Grammar for remote-qualified branch names.

A ref is either versioned (``acme/2.1/feature``), plain (``acme/feature``)
or invalid. Consumers match on the returned type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from .models import Version


_VERSIONED = re.compile(r"^(?P<remote>[^/]+)/(?P<major>[0-9]+)\.(?P<minor>[0-9]+)/(?P<suffix>[^/]+)$")
_PLAIN = re.compile(r"^(?P<owner>[^/]+)/(?P<name>[^/]+)$")


@dataclass(frozen=True)
class VersionedBranch:
    remote: str
    major: str
    minor: str
    suffix: str

    @property
    def version(self) -> Version:
        return Version(self.major, self.minor)


@dataclass(frozen=True)
class PlainBranch:
    owner: str
    name: str


@dataclass(frozen=True)
class InvalidBranch:
    raw: str


BranchRef = Union[VersionedBranch, PlainBranch, InvalidBranch]


def parse_branch_ref(ref: str) -> BranchRef:
    """Parse a ``remote/branch`` string into one of the three variants."""
    match = _VERSIONED.match(ref)
    if match:
        return VersionedBranch(
            remote=match.group("remote"),
            major=match.group("major"),
            minor=match.group("minor"),
            suffix=match.group("suffix"),
        )
    match = _PLAIN.match(ref)
    if match:
        return PlainBranch(owner=match.group("owner"), name=match.group("name"))
    return InvalidBranch(raw=ref)
