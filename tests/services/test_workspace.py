"""Tests for workspace snapshotting."""

import io
import zipfile

import pytest

from refactor_assistant.errors import WorkspaceEmptyError
from refactor_assistant.services.workspace import Workspace


def _names(archive: bytes) -> set[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return set(zf.namelist())


@pytest.fixture
def project(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("print('hi')\n")
    (tmp_path / "pom.xml").write_text("<project/>\n")
    (tmp_path / "README.md").write_text("# readme\n")
    (tmp_path / "node_modules" / "left-pad").mkdir(parents=True)
    (tmp_path / "node_modules" / "left-pad" / "index.js").write_text("x")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref: main")
    (tmp_path / ".env.local").write_text("SECRET=1")
    return tmp_path


class TestWorkspace:
    """Tests for Workspace."""

    def test_snapshot_excludes_default_patterns(self, project):
        """Vendored dirs, VCS metadata, markdown and dotenv files are skipped."""
        archive = Workspace(project).build_snapshot()
        assert _names(archive) == {"src/app.py", "pom.xml"}

    def test_snapshot_contents_round_trip(self, project):
        """Archived file bytes match the files on disk."""
        archive = Workspace(project).build_snapshot()
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            assert zf.read("src/app.py") == b"print('hi')\n"

    def test_custom_patterns_replace_defaults(self, project):
        """Explicit patterns are used instead of the defaults."""
        names = _names(Workspace(project, exclude_patterns=["*.xml", ".git"]).build_snapshot())
        assert "pom.xml" not in names
        assert "README.md" in names
        assert "node_modules/left-pad/index.js" in names

    def test_oversize_files_skipped(self, project):
        """Files over the size limit are left out."""
        (project / "big.bin.txt").write_text("x" * 100)
        names = _names(Workspace(project, max_file_size_bytes=50).build_snapshot())
        assert "big.bin.txt" not in names
        assert "src/app.py" in names

    def test_is_empty_when_only_excluded_files(self, tmp_path):
        """A directory holding only excluded files counts as empty."""
        (tmp_path / "notes.md").write_text("x")
        workspace = Workspace(tmp_path)
        assert workspace.is_empty() is True
        with pytest.raises(WorkspaceEmptyError):
            workspace.build_snapshot()

    def test_no_root(self):
        """No open workspace is empty and cannot be snapshotted."""
        workspace = Workspace(None)
        assert workspace.is_empty() is True
        with pytest.raises(WorkspaceEmptyError):
            workspace.build_snapshot()

    def test_missing_directory_is_empty(self, tmp_path):
        """A root that does not exist is empty."""
        assert Workspace(tmp_path / "missing").is_empty() is True

    def test_non_empty(self, project):
        """A project with eligible files is not empty."""
        assert Workspace(project).is_empty() is False
