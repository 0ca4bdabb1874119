"""Error hierarchy for Scribe.

All Scribe errors inherit from ScribeError so callers can catch them in one
place. Content and layout problems are raised where they are detected and
wrapped into BuildError by the build orchestration, which adds the source
file for the diagnostic.
"""

from __future__ import annotations

from pathlib import Path


class ScribeError(Exception):
    """Base error for all Scribe operations."""


class ConfigError(ScribeError):
    """Invalid _config.yml or data file."""


class ContentError(ScribeError):
    """A post or page cannot be turned into a document.

    Attributes:
        source_path: File that caused the error, when known.
    """

    def __init__(self, message: str, source_path: Path | None = None):
        self.source_path = source_path
        super().__init__(message)


class FrontmatterError(ContentError):
    """Front-matter block is unterminated, invalid YAML or not a mapping."""


class LayoutError(ScribeError):
    """A document references a layout that the theme does not provide."""


class BuildError(ScribeError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")
