"""
Tests for changelog commits, release diffs and the external formatter.
"""

import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from branchpin.models import (
    BuildTarget, GitRepositoryError, PartialHistoryWarning, PinError, RepoInfo, VersionNotFoundError,
)
from branchpin.release import ReleaseRecorder, command_formatter, release_diff


FROM_TAG = "branchpin-tmp-tag-acme-2.1/feature-from"
TO_TAG = "branchpin-tmp-tag-acme-2.1/feature-to"


def make_submodule(name):
    gm = Mock()
    gm.name = name
    gm.remote_branches_containing.return_value = [f"acme/2.1/{name}"]
    gm.merge_base.side_effect = lambda a, b: a
    gm.log_stat.side_effect = lambda rng, max_count=None: f"log {rng}"
    return RepoInfo(path=Path(f"/work/product/{name}"), name=name, is_submodule=True, git_manager=gm)


class TestReleaseRecorder:
    """Test recording a release commit."""

    def setup_method(self):
        self.gm = Mock()
        self.gm.name = "product"
        self.lib = make_submodule("lib")
        self.tools = make_submodule("tools")
        self.pointers = {
            (FROM_TAG, "lib"): "lib-old",
            (FROM_TAG, "tools"): "tools-old",
            (TO_TAG, "lib"): "lib-new",
            (TO_TAG, "tools"): "tools-new",
        }
        self.gm.get_submodule_pointer_at.side_effect = (
            lambda ref, path: self.pointers.get((ref, Path(path).name))
        )
        self.refs = {
            f"{TO_TAG}^{{tree}}": "tree-to",
            f"{FROM_TAG}^{{commit}}": "commit-from",
            "acme/2.1/feature^{commit}": "commit-tracking",
        }
        self.gm.rev_parse.side_effect = lambda ref: self.refs[ref]
        self.gm.ref_exists.return_value = True
        self.gm.commit_tree.return_value = "release-commit"
        self.target = BuildTarget("acme", "2.1/feature")
        self.formatter = Mock(side_effect=lambda text, owner, version: f"Build {version}\n\n{text}")

        # Submodules with a working tree after each parent checkout
        self.checked_out = None
        self.initialized = {
            None: [self.lib, self.tools],
            FROM_TAG: [self.lib, self.tools],
            TO_TAG: [self.lib, self.tools],
        }
        self.gm.checkout.side_effect = lambda ref: setattr(self, "checked_out", ref)

        patcher = patch("branchpin.release.SubmoduleMapper")
        self.mock_mapper = patcher.start()
        self.mock_mapper.return_value.discover.side_effect = lambda: RepoInfo(
            path=Path("/work/product"),
            name="product",
            submodules=list(self.initialized[self.checked_out]),
        )

    def teardown_method(self):
        patch.stopall()

    def _record(self):
        return ReleaseRecorder(self.gm).record("v2.0", "HEAD", self.target, "2.1", self.formatter)

    def test_commit_has_to_tree_and_both_parents(self):
        result = self._record()

        assert result.commit == "release-commit"
        assert result.tree == "tree-to"
        assert result.parents == ["commit-from", "commit-tracking"]
        self.gm.commit_tree.assert_called_once_with(
            "tree-to", ["commit-from", "commit-tracking"], result.message
        )
        self.gm.reset_hard.assert_called_with("release-commit")

    def test_without_tracking_ref_has_single_parent(self):
        self.gm.ref_exists.return_value = False

        result = self._record()

        assert result.parents == ["commit-from"]

    def test_changelog_sections_in_registration_order(self):
        result = self._record()

        text, owner, version = self.formatter.call_args.args
        assert (owner, version) == ("acme", "2.1")
        assert text == (
            "Entering 'lib' (acme/2.1/lib)\nlog lib-old..lib-new\n"
            "Entering 'tools' (acme/2.1/tools)\nlog tools-old..tools-new\n"
        )
        assert result.message.startswith("Build 2.1")

    def test_temporary_tags_are_created_and_removed(self):
        self._record()

        self.gm.create_tag.assert_any_call(TO_TAG, "HEAD")
        self.gm.create_tag.assert_any_call(FROM_TAG, "v2.0")
        deleted = [c.args[0] for c in self.gm.delete_tag.call_args_list]
        assert deleted[-2:] == [FROM_TAG, TO_TAG]

    def test_interim_commit_before_tagging(self):
        self._record()
        self.gm.commit_all.assert_called_once_with("interim commit message for build 2.1")

    def test_version_tag_in_every_submodule(self):
        self._record()
        for sm in (self.lib, self.tools):
            sm.git_manager.create_tag.assert_called_once_with("v2.1", "HEAD", message="version")

    def test_missing_from_revision_is_a_warning(self):
        self.lib.git_manager.reset_hard.side_effect = (
            lambda target=None: self._fail_on("lib-old", target)
        )

        result = self._record()

        assert len(result.warnings) == 1
        warning = result.warnings[0]
        assert isinstance(warning, PartialHistoryWarning)
        assert "REVISION lib-old ON REPO lib DOES NOT EXIST" in str(warning)
        self.lib.git_manager.log_stat.assert_called_with("lib-new", max_count=1)

    def test_submodules_are_rediscovered_after_each_checkout(self):
        self._record()
        assert self.mock_mapper.return_value.discover.call_count == 3

    def test_submodule_added_since_from(self):
        # At `from` the tools working tree does not exist
        self.initialized[FROM_TAG] = [self.lib]
        del self.pointers[(FROM_TAG, "tools")]

        result = self._record()

        assert result.warnings == []
        assert [c.args for c in self.tools.git_manager.reset_hard.call_args_list] == [("tools-new",)]
        self.tools.git_manager.log_stat.assert_called_with("tools-new", max_count=1)
        self.tools.git_manager.create_tag.assert_called_once_with("v2.1", "HEAD", message="version")

    def test_missing_to_revision_is_fatal(self):
        self.tools.git_manager.reset_hard.side_effect = (
            lambda target=None: self._fail_on("tools-new", target)
        )

        with pytest.raises(GitRepositoryError):
            self._record()
        self.gm.commit_tree.assert_not_called()

    def test_submodule_not_recorded_at_to_is_left_out(self):
        del self.pointers[(TO_TAG, "lib")]

        result = self._record()

        assert result.commit == "release-commit"
        text = self.formatter.call_args.args[0]
        assert text == "Entering 'tools' (acme/2.1/tools)\nlog tools-old..tools-new\n"
        self.lib.git_manager.create_tag.assert_not_called()

    def test_submodule_removed_at_to_is_left_out(self):
        self.initialized[TO_TAG] = [self.tools]

        self._record()

        assert "Entering 'lib'" not in self.formatter.call_args.args[0]
        self.lib.git_manager.create_tag.assert_not_called()
        self.tools.git_manager.create_tag.assert_called_once_with("v2.1", "HEAD", message="version")

    def test_empty_commit_result(self):
        self.gm.commit_tree.return_value = ""

        with pytest.raises(GitRepositoryError, match="commit failed"):
            self._record()

    @staticmethod
    def _fail_on(bad, target):
        if target == bad:
            raise GitRepositoryError(f"unknown revision {bad}")


class TestReleaseDiff:
    """Test the log between two release commits."""

    def setup_method(self):
        self.gm = Mock()
        self.commits = {"Build 2.0": ["aaa111", "aaa000"], "Build 2.1": ["bbb222"]}
        self.gm.find_commits.side_effect = lambda grep: self.commits.get(grep, [])
        self.gm.submodule_log.return_value = "diff"

    def test_uses_first_match_of_each_build(self):
        assert release_diff(self.gm, "2.0", "2.1") == "diff"
        self.gm.submodule_log.assert_called_once_with("aaa111..bbb222")

    @pytest.mark.parametrize("from_version,to_version", [("1.9", "2.1"), ("2.0", "3.0")])
    def test_unknown_build(self, from_version, to_version):
        with pytest.raises(VersionNotFoundError):
            release_diff(self.gm, from_version, to_version)
        self.gm.submodule_log.assert_not_called()


class TestCommandFormatter:
    """Test the external changelog formatter wrapper."""

    def test_passes_text_on_stdin_and_owner_version_as_args(self):
        script = "import sys; print(sys.argv[1], sys.argv[2], sys.stdin.read().upper(), end='')"
        formatter = command_formatter(f'"{sys.executable}" -c "{script}"')

        assert formatter("changes", "acme", "2.1") == "acme 2.1 CHANGES"

    def test_failing_command(self):
        formatter = command_formatter(f'"{sys.executable}" -c "import sys; sys.exit(3)"')
        with pytest.raises(PinError):
            formatter("changes", "acme", "2.1")

    def test_missing_program(self):
        formatter = command_formatter("definitely-not-a-real-formatter-program")
        with pytest.raises(PinError):
            formatter("changes", "acme", "2.1")

    def test_empty_command(self):
        with pytest.raises(PinError):
            command_formatter("   ")
