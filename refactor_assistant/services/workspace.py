"""Workspace snapshot collaborator.

Packages the files under a workspace root into an in-memory zip archive
for upload. Methods are synchronous and touch the filesystem; async callers
should use ``await asyncio.to_thread(workspace.build_snapshot)``.
"""

import fnmatch
import io
import logging
import os
import zipfile
from pathlib import Path
from typing import Iterator, Protocol

from refactor_assistant.config import DEFAULT_EXCLUDE_PATTERNS
from refactor_assistant.errors import WorkspaceEmptyError, WorkspaceSnapshotError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024


class WorkspaceSource(Protocol):
    """What conversation states need from a workspace."""

    def is_empty(self) -> bool:
        ...

    def build_snapshot(self) -> bytes:
        ...


class Workspace:
    """Local directory snapshotted as a zip archive.

    A pattern excludes a file when it matches the file name, or any parent
    directory name, using shell-style wildcards.
    """

    def __init__(
        self,
        root: str | Path | None,
        exclude_patterns: list[str] | None = None,
        max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE_BYTES,
    ):
        """Initialize the workspace.

        Args:
            root: Workspace root directory. None means no workspace is open.
            exclude_patterns: Shell-style patterns to skip. Defaults to
                DEFAULT_EXCLUDE_PATTERNS.
            max_file_size_bytes: Files larger than this are skipped.
        """
        self.root = Path(root) if root is not None else None
        self.exclude_patterns = (
            list(exclude_patterns)
            if exclude_patterns is not None
            else list(DEFAULT_EXCLUDE_PATTERNS)
        )
        self.max_file_size_bytes = max_file_size_bytes

    def _is_excluded(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.exclude_patterns)

    def iter_files(self) -> Iterator[Path]:
        """Yield every file that belongs in the snapshot.

        Excluded directories are pruned without being descended into.
        """
        if self.root is None or not self.root.is_dir():
            return
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not self._is_excluded(d))
            for filename in sorted(filenames):
                if self._is_excluded(filename):
                    continue
                path = Path(dirpath) / filename
                try:
                    size = path.stat().st_size
                except OSError as e:
                    logger.debug("Skipping unreadable file %s: %s", path, e)
                    continue
                if size > self.max_file_size_bytes:
                    logger.debug("Skipping %s (%d bytes exceeds limit)", path, size)
                    continue
                yield path

    def is_empty(self) -> bool:
        """True when no workspace is open or it holds no eligible files."""
        return next(self.iter_files(), None) is None

    def build_snapshot(self) -> bytes:
        """Zip the workspace in memory.

        Returns:
            Bytes of a deflated zip archive with paths relative to the root.

        Raises:
            WorkspaceEmptyError: No workspace is open or nothing is eligible.
            WorkspaceSnapshotError: The archive could not be written.
        """
        if self.root is None:
            raise WorkspaceEmptyError(None)

        buffer = io.BytesIO()
        added = 0
        try:
            with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in self.iter_files():
                    try:
                        zf.write(path, arcname=path.relative_to(self.root).as_posix())
                        added += 1
                    except OSError as e:
                        logger.debug("Failed to read %s, skipping: %s", path, e)
        except (OSError, zipfile.BadZipFile) as e:
            raise WorkspaceSnapshotError(str(self.root), str(e)) from e

        if added == 0:
            raise WorkspaceEmptyError(str(self.root))
        logger.info("Built workspace snapshot of %d files from %s", added, self.root)
        return buffer.getvalue()
