"""
Tests for submodule discovery.
"""

from unittest.mock import Mock

from branchpin.git_manager import GitManager
from branchpin.submodule_mapper import SubmoduleMapper


class TestSubmoduleMapper:
    """Test discovery in registration order."""

    def setup_method(self):
        self.root_gm = Mock()
        self.root_gm.list_submodules.return_value = [("lib", "lib"), ("tools", "tools"), ("docs", "ext/docs")]
        self.root_gm.get_gitmodules_url.side_effect = lambda name: f"/srv/git/trunk/{name}.git"

    def test_only_initialized_submodules_are_returned(self, tmp_path):
        self.root_gm.working_dir = tmp_path
        (tmp_path / "lib").mkdir()
        (tmp_path / "lib" / ".git").write_text("gitdir: ../.git/modules/lib\n")
        (tmp_path / "tools").mkdir()
        (tmp_path / "ext" / "docs").mkdir(parents=True)
        (tmp_path / "ext" / "docs" / ".git").write_text("gitdir: ../../.git/modules/docs\n")

        root_info = SubmoduleMapper(self.root_gm).discover()

        assert root_info.name == tmp_path.name
        assert [sm.name for sm in root_info.submodules] == ["lib", "docs"]
        for sm in root_info.submodules:
            assert sm.is_submodule
            assert isinstance(sm.git_manager, GitManager)
            assert sm.git_manager.repo_path == sm.path.resolve()
        assert root_info.submodules[1].url == "/srv/git/trunk/docs.git"

    def test_no_submodules(self, tmp_path):
        self.root_gm.working_dir = tmp_path
        self.root_gm.list_submodules.return_value = []

        assert SubmoduleMapper(self.root_gm).discover().submodules == []
