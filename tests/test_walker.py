"""Tests for the tree walker."""

import os

import pytest

from chunklens.walker import detect_language, should_exclude, walk


def _touch(path, content="x"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


def _paths(root, **kwargs):
    return sorted(record.relative_path for record in walk(root, **kwargs))


class TestWalk:
    def test_lists_files_with_relative_paths(self, tmp_path):
        _touch(tmp_path / "index.js")
        _touch(tmp_path / "src" / "app.py")
        records = {r.relative_path: r for r in walk(tmp_path)}
        assert set(records) == {"index.js", "src/app.py"}
        app = records["src/app.py"]
        assert app.language == "python"
        assert app.extension == ".py"
        assert app.size_bytes == 1
        assert os.path.isabs(app.path)

    def test_default_excludes_prune_directories(self, tmp_path):
        _touch(tmp_path / "index.js")
        _touch(tmp_path / "node_modules" / "lib" / "index.js")
        _touch(tmp_path / ".git" / "config")
        _touch(tmp_path / "dist" / "bundle.js")
        _touch(tmp_path / "vendor.min.js")
        assert _paths(tmp_path) == ["index.js"]

    def test_glob_against_relative_path(self, tmp_path):
        _touch(tmp_path / "src" / "gen" / "a.js")
        _touch(tmp_path / "src" / "b.js")
        assert _paths(tmp_path, exclude=["src/gen"]) == ["src/b.js"]

    def test_include_extensions(self, tmp_path):
        _touch(tmp_path / "a.js")
        _touch(tmp_path / "b.py")
        _touch(tmp_path / "notes.md")
        assert _paths(tmp_path, include_extensions=[".PY"]) == ["b.py"]

    def test_max_depth(self, tmp_path):
        _touch(tmp_path / "top.js")
        _touch(tmp_path / "a" / "mid.js")
        _touch(tmp_path / "a" / "b" / "deep.js")
        assert _paths(tmp_path, max_depth=1) == ["a/mid.js", "top.js"]

    def test_symlink_loop_terminates(self, tmp_path):
        _touch(tmp_path / "pkg" / "mod.py")
        try:
            os.symlink(tmp_path / "pkg", tmp_path / "pkg" / "again")
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported")
        assert _paths(tmp_path) == ["pkg/mod.py"]

    def test_not_a_directory(self, tmp_path):
        target = tmp_path / "file.js"
        _touch(target)
        with pytest.raises(ValueError, match="Not a directory"):
            list(walk(target))

    def test_walk_is_lazy(self, tmp_path):
        _touch(tmp_path / "a.js")
        iterator = walk(tmp_path)
        assert next(iterator).relative_path == "a.js"


class TestHelpers:
    def test_should_exclude(self):
        assert should_exclude("node_modules", "web/node_modules", ["node_modules"])
        assert should_exclude("app.min.js", "app.min.js", ["*.min.js"])
        assert not should_exclude("app.js", "app.js", ["*.min.js"])

    def test_detect_language(self):
        assert detect_language(".TSX") == "typescript"
        assert detect_language(".xyz") == "unknown"
