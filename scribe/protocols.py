"""Protocol definitions for Scribe.

Interfaces used between the content store and the site renderer. Concrete
classes do not inherit from these; they are checked structurally, which
keeps test doubles small.
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .content import Heading


@runtime_checkable
class ContentRenderer(Protocol):
    """Turns a document body into HTML."""

    @abstractmethod
    def can_render(self, path: Path) -> bool:
        """Return True if this renderer handles the given file."""
        ...

    @abstractmethod
    def render(self, content: str) -> tuple[str, list[Heading]]:
        """Render content to HTML.

        Args:
            content: Body of the document, front-matter removed.

        Returns:
            Tuple of (rendered HTML, list of headings for TOC).
        """
        ...

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Return the source type identifier ('markdown' or 'html')."""
        ...


@runtime_checkable
class MetadataExtractor(Protocol):
    """Computes one slice of a document's metadata."""

    @abstractmethod
    def extract(self, content: str, path: Path, context: dict[str, Any]) -> dict[str, Any]:
        """Extract metadata from content.

        Args:
            content: Raw source content.
            path: Path to the source file.
            context: Metadata produced by the extractors that ran earlier.

        Returns:
            Dictionary of extracted metadata.
        """
        ...


@runtime_checkable
class ContentLoader(Protocol):
    """Discovers source files for one kind of document."""

    @abstractmethod
    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return source files in a stable, sorted order."""
        ...
