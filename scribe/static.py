"""Static file handling for Scribe.

Everything in the source tree that is not a post, a page, part of the theme
or excluded is copied to the output unchanged: stylesheets, images, a
``CNAME`` file for GitHub Pages and so on.

Key class:
- StaticFiles: Lists and copies static files.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable
from pathlib import Path

from .content import is_excluded
from .utils import is_internal_path


class StaticFiles:
    """Copies static files from the source tree to the output directory.

    Attributes:
        source_dir: Root of the blog source.
        output_dir: Build destination.
        exclude: ``exclude`` patterns from the configuration.
    """

    def __init__(self, source_dir: Path, output_dir: Path, exclude: Iterable[str] = ()):
        self.source_dir = source_dir
        self.output_dir = output_dir
        self.exclude = list(exclude)

    def iter_files(self, skip: Iterable[Path] = ()) -> list[Path]:
        """Return static files in sorted order.

        Args:
            skip: Source files already handled as pages.

        Returns:
            Sorted list of absolute paths.
        """
        skipped = {p.resolve() for p in skip}
        output = self.output_dir.resolve()
        files: list[Path] = []
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir():
                continue
            resolved = path.resolve()
            if resolved in skipped or output in resolved.parents:
                continue
            rel = path.relative_to(self.source_dir)
            if is_internal_path(rel) or is_excluded(rel, self.exclude):
                continue
            files.append(path)
        return files

    def copy(self, files: Iterable[Path]) -> list[Path]:
        """Copy static files into the output directory.

        Args:
            files: Source files, as listed by ``iter_files``.

        Returns:
            Output paths that were written.
        """
        written: list[Path] = []
        for path in files:
            dest = self.output_dir / path.relative_to(self.source_dir)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, dest)
            written.append(dest)
        return written
