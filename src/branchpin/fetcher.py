"""
Fetching from remotes with retries against transient failures.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable

from .git_manager import GitManager
from .models import (
    AbsentResourceError,
    DEFAULT_FETCH_ATTEMPTS,
    DEFAULT_FETCH_DELAY,
    FetchPermissionError,
    GitRepositoryError,
    TransientNetworkError,
)


logger = logging.getLogger(__name__)


ABSENT_MARKERS = (
    "Repository not found",
    "does not appear to be a git repository",
    "Couldn't find remote ref",
)
PERMISSION_MARKERS = ("Permission denied",)


class FetchFailure(Enum):
    """How a failed fetch should be handled."""

    ABSENT = "absent"
    PERMISSION = "permission"
    TRANSIENT = "transient"


def classify_fetch_failure(message: str) -> FetchFailure:
    """Classify a fetch error by the text git printed."""
    if any(marker in message for marker in ABSENT_MARKERS):
        return FetchFailure.ABSENT
    if any(marker in message for marker in PERMISSION_MARKERS):
        return FetchFailure.PERMISSION
    return FetchFailure.TRANSIENT


class ResilientFetcher:
    """Fetches a remote, retrying transient failures with a fixed delay."""

    def __init__(
        self,
        git_manager: GitManager,
        attempts: int = DEFAULT_FETCH_ATTEMPTS,
        delay: float = DEFAULT_FETCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gm = git_manager
        self.attempts = max(1, attempts)
        self.delay = delay
        self._sleep = sleep

    def fetch(self, remote: str, *refspecs: str, missing_ok: bool = False) -> bool:
        """Fetch `remote` (optionally limited to refspecs).

        Returns:
            True when the fetch succeeded, False when the repository or ref does
            not exist and `missing_ok` is set.

        Raises:
            AbsentResourceError: the target does not exist and `missing_ok` is not set.
            FetchPermissionError: the remote refused access; never retried.
            TransientNetworkError: every attempt failed with a transient error.
        """
        target = " ".join((remote,) + refspecs)
        for attempt in range(1, self.attempts + 1):
            try:
                self.gm.fetch(remote, *refspecs)
                return True
            except GitRepositoryError as e:
                message = str(e)

            failure = classify_fetch_failure(message)
            if failure is FetchFailure.ABSENT:
                if missing_ok:
                    logger.debug(f"Nothing to fetch for {target}: {message}")
                    return False
                raise AbsentResourceError(f"Repository or ref not found while fetching {target}")
            if failure is FetchFailure.PERMISSION:
                raise FetchPermissionError(
                    f"Permission denied while fetching {target}. Fix permissions."
                )

            logger.warning(f"Try {attempt}/{self.attempts} failed, could not contact remote [{message}]")
            if attempt < self.attempts:
                self._sleep(self.delay)

        raise TransientNetworkError(f"Timed out while fetching {target}")
