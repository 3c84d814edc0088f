"""File-backed persistence for index snapshots."""

import logging
import os
from pathlib import Path

from ....core.domain.exceptions import SearchIndexError
from ....core.ports.document_index_port import DocumentIndexPort
from ....core.services.diagnostics import SearchDiagnostics

logger = logging.getLogger(__name__)


class IndexFileStore:
    """Loads and saves a document index snapshot on disk.

    Writes go to a temporary file that is then renamed over the target, so a
    crash mid-write never leaves a truncated snapshot behind.
    """

    def __init__(
        self,
        index: DocumentIndexPort,
        path: Path,
        diagnostics: SearchDiagnostics | None = None,
    ):
        self.index = index
        self.path = Path(path)
        self.diagnostics = diagnostics

    def load(self) -> bool:
        """Restore the index from the snapshot file.

        A missing, unreadable or corrupt file leaves the index empty.

        Returns:
            True if a snapshot was restored.
        """
        if not self.path.exists():
            logger.info(f"No index snapshot at {self.path}, starting with an empty index")
            self._report(error=None)
            return False

        try:
            data = self.path.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read index snapshot {self.path}: {e}")
            self.index.clear()
            self._report(error=str(e))
            return False

        if not self.index.restore_snapshot(data):
            restore_error = getattr(self.index, "last_restore_error", None)
            message = restore_error.message if restore_error else "Snapshot could not be restored"
            self._report(error=message)
            return False

        logger.info(f"Loaded {self.index.count()} documents from {self.path}")
        self._report(error=None)
        return True

    def save(self) -> Path:
        """Write the current index to the snapshot file atomically.

        Raises:
            SearchIndexError: If the file cannot be written.
        """
        data = self.index.save_snapshot()
        tmp_path = self.path.with_name(self.path.name + ".tmp")

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise SearchIndexError(
                f"Failed to write index snapshot to {self.path}",
                cause=e,
                context={"path": str(self.path)},
            ) from e

        logger.info(f"Saved {self.index.count()} documents to {self.path}")
        return self.path

    def _report(self, error: str | None) -> None:
        if self.diagnostics is None:
            return
        self.diagnostics.index_stats(
            document_count=self.index.count(), index_path=str(self.path), error=error
        )
