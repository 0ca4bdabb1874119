"""Metadata extractors for Scribe.

Each extractor computes one slice of a document's metadata from its source
text and path and returns it as a partial mapping. The composite runs them
in order and merges the results, so later extractors can read what earlier
ones produced through the ``context`` argument.

Key classes:
- FrontmatterExtractor: Splits the YAML block from the Markdown body.
- TitleExtractor: Front-matter title, first heading, or filename.
- DateExtractor: Filename date, optionally refined by front-matter.
- DescriptionExtractor: Description and excerpt.
- TaxonomyExtractor: Tags and categories.
- CompositeMetadataExtractor: Runs the above in sequence.
"""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import FrontmatterError
from .protocols import MetadataExtractor
from .utils import (
    as_list,
    coerce_datetime,
    extract_date_from_name,
    first_paragraph,
    parse_post_filename,
    titleize,
)

_OPEN_RE = re.compile(r"\A\ufeff?---[ \t]*\r?\n")
_CLOSE_RE = re.compile(r"^(?:---|\.\.\.)[ \t]*\r?$", re.MULTILINE)


def extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from the body.

    A document without a leading ``---`` line has no front-matter. A
    document with one must close it with ``---`` (or ``...``) on its own
    line and the block must be a YAML mapping.

    Args:
        text: Raw file content.

    Returns:
        Tuple of (front-matter dict, remaining body).

    Raises:
        FrontmatterError: If the block is unterminated, is not valid YAML,
            or is not a mapping.
    """
    opening = _OPEN_RE.match(text)
    if not opening:
        return {}, text
    closing = _CLOSE_RE.search(text, opening.end())
    if not closing:
        raise FrontmatterError("Unterminated front-matter block (missing closing '---')")
    block = text[opening.end() : closing.start()]
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise FrontmatterError(f"Invalid YAML in front-matter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise FrontmatterError(
            f"Front-matter must be a mapping, got {type(data).__name__}"
        )
    body = text[closing.end() :]
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    return data, body


class FrontmatterExtractor:
    """Extracts YAML front-matter and the remaining body."""

    def extract(self, content: str, path: Path, context: dict[str, Any]) -> dict[str, Any]:
        try:
            frontmatter, body = extract_frontmatter(content)
        except FrontmatterError as exc:
            exc.source_path = path
            raise
        return {"frontmatter": frontmatter, "body": body}


class TitleExtractor:
    """Extracts the title.

    Order of preference: front-matter ``title``, the first level-1 heading
    of the body, then the titleized filename.
    """

    def extract(self, content: str, path: Path, context: dict[str, Any]) -> dict[str, Any]:
        frontmatter = context.get("frontmatter", {})
        if frontmatter.get("title"):
            return {"title": str(frontmatter["title"])}
        body = context.get("body", content)
        in_fence = False
        for line in body.splitlines():
            stripped = line.strip()
            if stripped.startswith("```"):
                in_fence = not in_fence
                continue
            if not in_fence and stripped.startswith("# "):
                return {"title": stripped[2:].strip()}
        return {"title": titleize(path.name)}


class DateExtractor:
    """Extracts the publication date.

    With ``strict`` (posts in ``_posts/``) the filename must carry a valid
    date and the slug comes from the filename. Otherwise the filename date
    is optional and the file modification time is the fallback. In both
    modes a front-matter ``date`` overrides the filename date.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def extract(self, content: str, path: Path, context: dict[str, Any]) -> dict[str, Any]:
        frontmatter = context.get("frontmatter", {})
        result: dict[str, Any] = {}
        if self.strict:
            date, slug = parse_post_filename(path.name)
            result["slug"] = slug
        else:
            date = extract_date_from_name(path.stem)
            if date is None:
                date = datetime.fromtimestamp(path.stat().st_mtime).replace(microsecond=0)

        if "date" in frontmatter:
            try:
                override = coerce_datetime(frontmatter["date"])
            except ValueError as exc:
                raise FrontmatterError(
                    f"Front-matter date {frontmatter['date']!r} is not a valid date",
                    source_path=path,
                ) from exc
            if override is not None:
                date = override
        result["date"] = date
        return result


class DescriptionExtractor:
    """Extracts description and excerpt from the body.

    The description honours a front-matter ``description`` and otherwise
    takes the first paragraph truncated to 160 characters; the excerpt is
    the full first paragraph.
    """

    def extract(self, content: str, path: Path, context: dict[str, Any]) -> dict[str, Any]:
        frontmatter = context.get("frontmatter", {})
        body = context.get("body", content)
        excerpt = str(frontmatter.get("excerpt") or first_paragraph(body, limit=10_000))
        description = str(frontmatter.get("description") or excerpt[:160])
        return {"description": description, "excerpt": excerpt}


class TaxonomyExtractor:
    """Extracts tags and categories from front-matter."""

    def extract(self, content: str, path: Path, context: dict[str, Any]) -> dict[str, Any]:
        frontmatter = context.get("frontmatter", {})
        tags = as_list(frontmatter.get("tags"))
        categories = as_list(frontmatter.get("categories") or frontmatter.get("category"))
        return {"tags": tags, "categories": categories}


class CompositeMetadataExtractor:
    """Combines multiple metadata extractors.

    Runs every extractor on the content and merges their results. Each
    extractor receives the merged result so far as ``context``.
    """

    def __init__(self, extractors: list[MetadataExtractor] | None = None):
        self._extractors: list[MetadataExtractor] = []
        for extractor in default_extractors(strict_dates=True) if extractors is None else extractors:
            self.add_extractor(extractor)

    def add_extractor(self, extractor: MetadataExtractor) -> None:
        """Append an extractor to the chain.

        Raises:
            TypeError: If ``extractor`` has no ``extract`` method.
        """
        if not isinstance(extractor, MetadataExtractor):
            raise TypeError(f"{type(extractor).__name__} is not a MetadataExtractor")
        self._extractors.append(extractor)

    def extract(self, content: str, path: Path) -> dict[str, Any]:
        """Extract all metadata from content.

        Args:
            content: Source content.
            path: Path to the source file.

        Returns:
            Dictionary with all extracted metadata.
        """
        result: dict[str, Any] = {}
        for extractor in self._extractors:
            result.update(extractor.extract(content, path, result))
        return result


def default_extractors(strict_dates: bool) -> list[MetadataExtractor]:
    """Return the standard extractor chain.

    Args:
        strict_dates: Require a YYYY-MM-DD filename prefix (posts).
    """
    return [
        FrontmatterExtractor(),
        TitleExtractor(),
        DateExtractor(strict=strict_dates),
        DescriptionExtractor(),
        TaxonomyExtractor(),
    ]


post_metadata_extractor = CompositeMetadataExtractor(default_extractors(strict_dates=True))
page_metadata_extractor = CompositeMetadataExtractor(default_extractors(strict_dates=False))
