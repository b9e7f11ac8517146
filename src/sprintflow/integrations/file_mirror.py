"""Best-effort mirror of handoff documents onto the filesystem.

Each handoff is written to ``<root>/<project slug>/docs/<filename>`` so
that role workers operating on a checkout can read it next to the code.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from sprintflow.config import MirrorConfig
from sprintflow.logging import get_logger

logger = get_logger(__name__)


class HandoffMirror:
    """Writes handoff documents under a per-project docs folder."""

    def __init__(self, config: MirrorConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="HandoffMirror")

    def path_for(self, slug: str, filename: str) -> Path:
        """Return the mirror path of a handoff file."""
        return self.config.root / slug / "docs" / filename

    async def write(self, slug: str, filename: str, content: str) -> bool:
        """Write a handoff document, never raising.

        Args:
            slug: Project slug (folder name under the mirror root).
            filename: Handoff filename.
            content: Document text.

        Returns:
            True if the file was written, False if mirroring is disabled
            or the write failed.
        """
        if not self.config.enabled:
            return False

        path = self.path_for(slug, filename)
        try:
            await asyncio.to_thread(_write_text, path, content)
        except OSError as e:
            self.logger.warning(
                "handoff_mirror_failed",
                path=str(path),
                error=str(e),
            )
            return False

        self.logger.info("handoff_mirrored", path=str(path))
        return True


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
