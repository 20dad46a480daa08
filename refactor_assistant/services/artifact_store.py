"""Artifact storage backends for generated refactoring plans.

A store persists a downloaded plan and returns a locator the chat summary
links to. The filesystem store writes markdown files; the in-memory store
backs tests and deployments without an artifact directory.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from refactor_assistant.errors import ArtifactStoreError

logger = logging.getLogger(__name__)


def plan_filename(assessment_id: str) -> str:
    """Deterministic artifact filename for an assessment's plan."""
    return f"RA_PLAN_{assessment_id}.md"


class ArtifactStore(Protocol):
    """Storage contract used by conversation states."""

    def store_artifact(self, content: str, filename: str) -> str:
        """Persist an artifact and return a locator for it."""


class LocalArtifactStore:
    """Filesystem-backed artifact storage."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def store_artifact(self, content: str, filename: str) -> str:
        path = self.directory / Path(filename).name
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ArtifactStoreError(filename, str(exc)) from exc
        logger.info("Stored artifact %s", path)
        return path.resolve().as_uri()


class InMemoryArtifactStore:
    """Artifact storage kept in process memory."""

    def __init__(self) -> None:
        self._artifacts: dict[str, str] = {}

    def store_artifact(self, content: str, filename: str) -> str:
        locator = f"memory://{filename}"
        self._artifacts[locator] = content
        return locator

    def read(self, locator: str) -> str | None:
        """Return stored content for a locator, or None if unknown."""
        return self._artifacts.get(locator)

    def __len__(self) -> int:
        return len(self._artifacts)
