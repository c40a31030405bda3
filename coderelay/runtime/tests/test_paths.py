"""Tests for project directory resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from coderelay.runtime.util.paths import repo_name, resolve_channel_project, resolve_project_dir


class TestResolveProjectDir:
    def test_absolute_path_normalised(self):
        assert resolve_project_dir("/tmp/a/../b/./c") == "/tmp/b/c"

    def test_home_expansion(self):
        assert resolve_project_dir("~/src/app", home="/home/me") == "/home/me/src/app"

    def test_bare_tilde(self):
        assert resolve_project_dir("~", home="/home/me") == "/home/me"

    def test_relative_anchored_at_cwd(self):
        assert resolve_project_dir("proj", cwd="/work") == "/work/proj"
        assert resolve_project_dir("../x", cwd="/tmp/work") == "/tmp/x"

    def test_trailing_slash_dropped(self):
        assert resolve_project_dir("/tmp/proj/") == "/tmp/proj"

    def test_whitespace_trimmed(self):
        assert resolve_project_dir("  /tmp/proj  ") == "/tmp/proj"

    @pytest.mark.parametrize("raw", ["", "   ", None, 3])
    def test_invalid_input(self, raw):
        assert resolve_project_dir(raw) is None

    def test_filesystem_not_consulted(self):
        assert resolve_project_dir("/definitely/not/here") == "/definitely/not/here"


class TestResolveChannelProject:
    def test_existing_dir_under_workspace_root(self, tmp_path: Path):
        (tmp_path / "shop").mkdir()
        assert resolve_channel_project("shop", str(tmp_path)) == str(tmp_path / "shop")

    def test_missing_dir_falls_back_to_plain_resolution(self, tmp_path: Path):
        assert resolve_channel_project("/srv/shop", str(tmp_path)) == "/srv/shop"

    def test_without_workspace_root(self):
        assert resolve_channel_project("/srv/shop") == "/srv/shop"

    def test_empty_name(self):
        assert resolve_channel_project("  ", "/srv") is None


class TestRepoName:
    def test_basename(self):
        assert repo_name("/home/me/src/app") == "app"
        assert repo_name("/home/me/src/app/") == "app"

    def test_empty(self):
        assert repo_name("") == "unknown"
        assert repo_name("/") == "unknown"
