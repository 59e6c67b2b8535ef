"""
Tests for data models.
"""

import pytest
from pathlib import Path
from branchpin.models import (
    BuildTarget, FallbackCandidate, PinRecord, PinnedRevision, PinSettings, RepoInfo,
    SubmoduleChangelog, Version, PinError, UsageError, ResolutionError, GitRepositoryError,
    FetchPermissionError, TransientNetworkError, AbsentResourceError, PartialHistoryWarning,
)


class TestBuildTarget:
    """Test BuildTarget model."""

    def test_fallback_defaults_to_owner(self):
        target = BuildTarget("acme", "2.1/feature")
        assert target.fallback == "acme"

    def test_empty_fallback_defaults_to_owner(self):
        target = BuildTarget("acme", "feature", "")
        assert target.fallback == "acme"

    def test_explicit_fallback(self):
        target = BuildTarget("acme", "feature", "trunk")
        assert target.fallback == "trunk"

    @pytest.mark.parametrize("owner,branch", [("", "feature"), ("acme", ""), (None, "x")])
    def test_empty_arguments_rejected(self, owner, branch):
        with pytest.raises(UsageError):
            BuildTarget(owner, branch)

    def test_is_immutable(self):
        target = BuildTarget("acme", "feature")
        with pytest.raises(Exception):
            target.owner = "other"


class TestSimpleValues:
    """Test small value objects."""

    def test_candidate_ref(self):
        candidate = FallbackCandidate("trunk", "2.1/master")
        assert candidate.ref == "trunk/2.1/master"
        assert str(candidate) == "trunk/2.1/master"

    def test_version_str(self):
        assert str(Version("2", "10")) == "2.10"

    def test_remote_url_default(self):
        settings = PinSettings()
        assert settings.remote_url("acme", "lib") == "git@github.com:acme/lib.git"

    def test_remote_url_template(self):
        settings = PinSettings(host="/srv/git", url_template="{host}/{owner}/{repo}.git")
        assert settings.remote_url("trunk", "tools") == "/srv/git/trunk/tools.git"


class TestRepoInfo:
    """Test RepoInfo model."""

    def test_repo_info_creation(self):
        repo = RepoInfo(path=Path("/test/repo"), name="test-repo")

        assert repo.path == Path("/test/repo").resolve()
        assert repo.name == "test-repo"
        assert repo.is_submodule is False
        assert repo.submodules == []


class TestPinRecord:
    """Test PinRecord serialization."""

    def test_dict_round_trip(self):
        record = PinRecord(owner="acme", branch="2.1/feature", fallback="trunk")
        record.pins["lib"] = PinnedRevision("lib", "acme/2.1/feature", "a" * 40)

        restored = PinRecord.from_dict(record.to_dict())

        assert restored == record

    def test_from_dict_without_pins(self):
        record = PinRecord.from_dict({"owner": "a", "branch": "b", "fallback": "a"})
        assert record.pins == {}


class TestSubmoduleChangelog:
    """Test changelog rendering."""

    def test_render_header_and_log(self):
        changelog = SubmoduleChangelog(
            name="lib", branches=["acme/2.1/feature", "trunk/2.1/master"], log="commit abc"
        )
        assert changelog.render() == (
            "Entering 'lib' (acme/2.1/feature trunk/2.1/master)\ncommit abc\n"
        )

    def test_render_empty_log(self):
        changelog = SubmoduleChangelog(name="tools", branches=[], log="")
        assert changelog.render() == "Entering 'tools' ()\n"


class TestExceptions:
    """Test custom exceptions."""

    @pytest.mark.parametrize(
        "error_class",
        [UsageError, ResolutionError, GitRepositoryError, FetchPermissionError,
         TransientNetworkError, AbsentResourceError],
    )
    def test_fatal_errors_share_base(self, error_class):
        error = error_class("boom")
        assert isinstance(error, PinError)
        assert str(error) == "boom"

    def test_partial_history_is_a_warning(self):
        assert issubclass(PartialHistoryWarning, UserWarning)
        assert not issubclass(PartialHistoryWarning, PinError)
