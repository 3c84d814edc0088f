"""Document Index Port Interface."""

from abc import ABC, abstractmethod

from ..domain import Document, SearchCandidate, SearchOptions


class DocumentIndexPort(ABC):
    """Abstract interface for the searchable document index."""

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Configured vector dimensionality."""
        ...

    @abstractmethod
    def insert(self, document: Document) -> str:
        """Insert one document and return its id."""
        ...

    @abstractmethod
    def insert_batch(self, documents: list[Document]) -> list[str]:
        """Insert documents with a single structural rebuild."""
        ...

    @abstractmethod
    def search(self, options: SearchOptions) -> list[SearchCandidate]:
        """Search the index."""
        ...

    @abstractmethod
    def save_snapshot(self) -> bytes:
        """Serialize the whole index."""
        ...

    @abstractmethod
    def restore_snapshot(self, data: bytes) -> bool:
        """Replace the index with a snapshot. Returns False on failure."""
        ...

    @abstractmethod
    def count(self) -> int:
        """Number of indexed documents."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every document."""
        ...
