"""Utility functions for Scribe.

String processing, filename parsing and filesystem helpers shared across
the content store and the site renderer.

Key functions:
    slugify: Convert text to a URL slug.
    titleize: Convert a filename to a human-readable title.
    parse_post_filename: Split a YYYY-MM-DD-slug.md name into date and slug.
    extract_date_from_name: Lenient date prefix lookup.
    first_paragraph: Plain-text first paragraph for descriptions.
    ensure_clean_dir: Ensure a directory exists and is empty.
"""

from __future__ import annotations

import re
import shutil
from datetime import date, datetime
from pathlib import Path

from .errors import ContentError

POST_FILENAME_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})-(.+)$")


def slugify(name: str) -> str:
    """Convert text to a lowercase, hyphen-separated slug.

    Args:
        name: Text to convert (a filename stem or a title).

    Returns:
        URL-friendly slug, or an empty string if nothing survives.
    """
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", name)
    return cleaned.strip("-").lower()


def titleize(filename: str) -> str:
    """Convert a filename to a human-readable title.

    Removes date prefixes (YYYY-MM-DD), replaces hyphens and underscores
    with spaces, and capitalizes each word.

    Args:
        filename: Filename with or without extension.

    Returns:
        Human-readable title string.

    Examples:
        >>> titleize("2024-01-15-hello-world.md")
        'Hello World'
    """
    base = Path(filename).stem
    match = POST_FILENAME_RE.match(base)
    if match:
        base = match.group(4)
    words = re.split(r"[\s\-_]+", base)
    return " ".join(word.capitalize() for word in words if word) or "Untitled"


def parse_post_filename(name: str) -> tuple[datetime, str]:
    """Parse a post filename of the form YYYY-MM-DD-slug.md.

    Args:
        name: Filename with or without extension.

    Returns:
        Tuple of (publication date at midnight, slug).

    Raises:
        ContentError: If the date prefix is missing or not a real date,
            or if the remainder produces an empty slug.
    """
    stem = Path(name).stem
    match = POST_FILENAME_RE.match(stem)
    if not match:
        raise ContentError(
            f"Post filename '{name}' must look like YYYY-MM-DD-slug.md"
        )
    year, month, day, rest = match.groups()
    try:
        published = datetime(int(year), int(month), int(day))
    except ValueError as exc:
        raise ContentError(
            f"Post filename '{name}' has an invalid date: {exc}"
        ) from exc
    slug = slugify(rest)
    if not slug:
        raise ContentError(f"Post filename '{name}' has an empty slug")
    return published, slug


def extract_date_from_name(name: str) -> datetime | None:
    """Extract a date from a filename with YYYY-MM-DD prefix.

    Unlike parse_post_filename this never raises.

    Args:
        name: Filename stem (without extension).

    Returns:
        datetime object if a valid date prefix is found, None otherwise.
    """
    match = POST_FILENAME_RE.match(name)
    if not match:
        return None
    try:
        return datetime(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def coerce_datetime(value: object) -> datetime | None:
    """Turn a front-matter date value into a naive datetime.

    PyYAML already yields date/datetime objects for well-formed values;
    strings are parsed with datetime.fromisoformat.

    Args:
        value: Value from front-matter.

    Returns:
        datetime, or None when the value is empty.

    Raises:
        ValueError: If a string value cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    parsed = datetime.fromisoformat(str(value).strip())
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def as_list(value: object) -> list[str]:
    """Normalize a tags/categories front-matter value to a list of strings.

    Strings are split on whitespace and commas.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [item for item in re.split(r"[\s,]+", value) if item]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value)]


def first_paragraph(text: str, limit: int = 160) -> str:
    """Extract and clean the first paragraph from text.

    Skips headings, images and fenced code, strips HTML tags, collapses
    whitespace and truncates to the specified limit.

    Args:
        text: Markdown text content.
        limit: Maximum character length of result.

    Returns:
        Cleaned first paragraph, truncated to limit characters.
    """
    paragraphs = [p.strip() for p in text.split("\n\n") if p.strip()]
    for para in paragraphs:
        if para.startswith(("#", "![", "```", "---", "<!--")):
            continue
        para = re.sub(r"<[^>]+>", "", para)
        para = re.sub(r"!?\[([^\]]*)\]\([^)]*\)", r"\1", para)
        collapsed = " ".join(para.split())
        if collapsed:
            return collapsed[:limit]
    return ""


def ensure_clean_dir(path: Path) -> None:
    """Ensure a directory exists and is empty.

    If the directory exists, removes all contents. Creates the
    directory if it doesn't exist.

    Args:
        path: Directory path to clean or create.
    """
    if path.exists():
        shutil.rmtree(str(path))
    path.mkdir(parents=True, exist_ok=True)


def is_internal_path(path: Path) -> bool:
    """Check if a path is internal (contains components starting with _ or .).

    Internal paths include layouts, includes, posts and drafts, which are
    processed separately from plain pages.

    Args:
        path: Relative path to check.

    Returns:
        True if any path component starts with an underscore or a dot.
    """
    return any(part.startswith(("_", ".")) for part in path.parts)


def is_markdown(path: Path) -> bool:
    """Check if a path is a Markdown file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .md or .markdown extension (case-insensitive).
    """
    return path.suffix.lower() in (".md", ".markdown")


def is_html(path: Path) -> bool:
    """Check if a path is an HTML file.

    Args:
        path: Path to check.

    Returns:
        True if the file has .html or .htm extension.
    """
    return path.suffix.lower() in (".html", ".htm")


def has_frontmatter(path: Path) -> bool:
    """Check whether a file starts with a front-matter delimiter line.

    Args:
        path: File to inspect.

    Returns:
        True if the first line of the file is ``---``.

    Raises:
        ContentError: If the file cannot be read.
    """
    try:
        with open(path, "rb") as f:
            first = f.readline()
    except OSError as exc:
        raise ContentError(f"Cannot read file: {exc.strerror or exc}", source_path=path) from exc
    return first.removeprefix(b"\xef\xbb\xbf").rstrip() == b"---"
