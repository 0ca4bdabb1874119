"""Content store for Scribe.

This module enumerates the blog's source files, splits front-matter from
the body, renders the body and builds immutable document records. It is the
only place that reads content files; everything downstream works on the
records it returns.

Key classes:
- Post: A dated blog post from ``_posts/`` (or ``_drafts/``).
- Page: A standalone page such as ``about.md``.
- PostLoader / PageLoader: File discovery (ContentLoader protocol).
- UrlDeriver: Permalink expansion and page URL derivation.
- DocumentBuilder: Builds Post and Page objects from files.
- ContentProcessor: Loads everything and enforces slug and URL uniqueness.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from .collections import PostCollection
from .errors import ContentError
from .extractors import (
    CompositeMetadataExtractor,
    page_metadata_extractor,
    post_metadata_extractor,
)
from .protocols import ContentLoader
from .renderers import RendererRegistry, default_renderer_registry
from .utils import extract_date_from_name, has_frontmatter, is_internal_path, slugify

POSTS_DIR = "_posts"
DRAFTS_DIR = "_drafts"

PERMALINK_STYLES = {
    "date": "/:categories/:year/:month/:day/:title.html",
    "pretty": "/:categories/:year/:month/:day/:title/",
    "ordinal": "/:categories/:year/:y_day/:title.html",
    "none": "/:categories/:title.html",
}

# Layout values that mean "render the body without a layout".
NO_LAYOUT = (None, False, "", "none", "null")


@dataclass
class Heading:
    """A heading collected while rendering, used for the table of contents.

    Attributes:
        id: Anchor ID for the heading (URL-friendly slug).
        text: Plain text of the heading.
        level: Heading level (1-6).
    """

    id: str
    text: str
    level: int


@dataclass
class Post:
    """A blog post.

    Attributes:
        title: Human-readable title.
        slug: URL-safe identifier from the filename, unique across posts.
        date: Publication date; sort key and permalink component.
        url: Site-relative URL derived from the permalink pattern.
        layout: Layout name, or an empty string for no layout.
        author: Author name (front-matter or site default).
        description: Short description for listings and meta tags.
        excerpt: First paragraph of the body as plain text.
        body: Markdown (or HTML) body with front-matter removed.
        content: Rendered HTML of the body.
        tags: Tag names from front-matter.
        categories: Category names from front-matter.
        draft: True for ``_drafts/`` files and ``published: false`` posts.
        path: Source file.
        source_type: "markdown" or "html".
        frontmatter: The full front-matter mapping.
        toc: Headings found in the body.
        previous: Next older post, set once posts are ordered.
        next: Next newer post, set once posts are ordered.
    """

    title: str
    slug: str
    date: datetime
    url: str
    layout: str
    author: str
    description: str
    excerpt: str
    body: str
    content: str
    tags: list[str]
    categories: list[str]
    draft: bool
    path: Path
    source_type: str
    frontmatter: dict[str, Any] = field(default_factory=dict)
    toc: list[Heading] = field(default_factory=list)
    previous: Post | None = field(default=None, repr=False, compare=False)
    next: Post | None = field(default=None, repr=False, compare=False)
    kind: str = "post"

    @property
    def id(self) -> str:
        """Stable identifier used by feeds: the URL without the trailing slash."""
        return self.url.rstrip("/") or "/"

    def __getitem__(self, key: str) -> Any:
        """Give templates access to custom front-matter keys as ``page['key']``."""
        return self.frontmatter[key]


@dataclass
class Page(Post):
    """A standalone page (about, 404, a custom index)."""

    kind: str = "page"


@dataclass
class SiteContent:
    """Everything the content store produced for one build.

    Attributes:
        posts: Posts newest first, linked through previous/next.
        pages: Standalone pages in source order.
    """

    posts: PostCollection
    pages: list[Page]

    @property
    def documents(self) -> list[Post]:
        return [*self.posts, *self.pages]


def is_excluded(rel: Path, patterns: list[str]) -> bool:
    """Check a source-relative path against the ``exclude`` patterns.

    A pattern matches the whole relative path, a leading directory of it,
    or any single component.
    """
    posix = rel.as_posix()
    for pattern in patterns:
        pattern = pattern.strip("/")
        if not pattern:
            continue
        if fnmatch.fnmatch(posix, pattern) or posix.startswith(f"{pattern}/"):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in rel.parts):
            return True
    return False


class PostLoader:
    """Lists post source files under ``_posts/`` and ``_drafts/``.

    Attributes:
        source_dir: Directory holding ``_posts/``.
        renderer_registry: Used to skip files no renderer understands.
    """

    def __init__(self, source_dir: Path, renderer_registry: RendererRegistry | None = None):
        self.source_dir = source_dir
        self.renderer_registry = renderer_registry or default_renderer_registry

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        """Return post files in sorted order.

        Args:
            include_drafts: Also list files under ``_drafts/``.

        Returns:
            Sorted list of paths.
        """
        folders = [POSTS_DIR, DRAFTS_DIR] if include_drafts else [POSTS_DIR]
        files: list[Path] = []
        for folder in folders:
            root = self.source_dir / folder
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if path.is_dir() or path.name.startswith("."):
                    continue
                if self.renderer_registry.get_renderer(path) is not None:
                    files.append(path)
        return files

    def is_draft_file(self, path: Path) -> bool:
        """Return True if the file lives in ``_drafts/``."""
        rel = path.relative_to(self.source_dir)
        return bool(rel.parts) and rel.parts[0] == DRAFTS_DIR


class PageLoader:
    """Lists standalone page files.

    A page is a Markdown or HTML file outside every underscore or dot
    directory that starts with a front-matter block. Files without
    front-matter are static files and are copied verbatim.

    Attributes:
        source_dir: Root of the blog source.
        exclude: ``exclude`` patterns from the configuration.
    """

    def __init__(
        self,
        source_dir: Path,
        exclude: list[str] | None = None,
        renderer_registry: RendererRegistry | None = None,
    ):
        self.source_dir = source_dir
        self.exclude = list(exclude or [])
        self.renderer_registry = renderer_registry or default_renderer_registry

    def iter_files(self, include_drafts: bool = False) -> list[Path]:
        files: list[Path] = []
        for path in sorted(self.source_dir.rglob("*")):
            if path.is_dir():
                continue
            rel = path.relative_to(self.source_dir)
            if is_internal_path(rel) or is_excluded(rel, self.exclude):
                continue
            if self.renderer_registry.get_renderer(path) is None:
                continue
            if has_frontmatter(path):
                files.append(path)
        return files


class UrlDeriver:
    """Derives site-relative URLs for posts and pages.

    Attributes:
        permalink: Permalink pattern or style name for posts.
    """

    def __init__(self, permalink: str = "/:year/:month/:day/:slug/"):
        self.permalink = permalink

    def post_url(self, post_date: datetime, slug: str, categories: list[str], permalink: str | None = None) -> str:
        """Expand a permalink pattern for a post.

        Args:
            post_date: Publication date.
            slug: Post slug.
            categories: Post categories (``:categories`` placeholder).
            permalink: Front-matter override of the configured pattern.

        Returns:
            URL path beginning with ``/``.
        """
        pattern = permalink or self.permalink
        pattern = PERMALINK_STYLES.get(pattern, pattern)
        replacements = {
            ":year": f"{post_date.year:04d}",
            ":short_year": f"{post_date.year % 100:02d}",
            ":month": f"{post_date.month:02d}",
            ":i_month": str(post_date.month),
            ":day": f"{post_date.day:02d}",
            ":i_day": str(post_date.day),
            ":y_day": f"{post_date.timetuple().tm_yday:03d}",
            ":hour": f"{post_date.hour:02d}",
            ":minute": f"{post_date.minute:02d}",
            ":second": f"{post_date.second:02d}",
            ":categories": "/".join(slugify(c) for c in categories if slugify(c)),
            ":title": slug,
            ":slug": slug,
        }
        url = pattern
        for token, value in replacements.items():
            url = url.replace(token, value)
        return _clean_url(url)

    def page_url(self, rel: Path, permalink: str | None = None) -> str:
        """Derive the URL of a standalone page from its path.

        ``index.md`` maps to its folder, ``404.*`` keeps a ``.html`` name so
        GitHub Pages can serve it, everything else gets a pretty URL.

        Args:
            rel: Path relative to the source directory.
            permalink: Front-matter override.

        Returns:
            URL path beginning with ``/``.
        """
        if permalink:
            return _clean_url(permalink)
        segments = [slugify(p) or p for p in rel.parent.parts if p]
        stem = rel.stem
        if stem == "404" and not segments:
            return "/404.html"
        if stem != "index":
            segments.append(slugify(stem) or stem)
        path = "/".join(segments)
        return f"/{path}/" if path else "/"


def _clean_url(url: str) -> str:
    """Collapse duplicate slashes and ensure a leading slash."""
    parts = [p for p in url.split("/") if p]
    cleaned = "/" + "/".join(parts)
    if url.endswith("/") and cleaned != "/":
        cleaned += "/"
    return cleaned


class DocumentBuilder:
    """Builds Post and Page objects from source files.

    Attributes:
        source_dir: Root of the blog source.
        config: Site configuration.
        renderer_registry: Registry of content renderers.
        url_deriver: Permalink expansion.
    """

    def __init__(
        self,
        source_dir: Path,
        config: dict[str, Any] | None = None,
        renderer_registry: RendererRegistry | None = None,
        post_extractor: CompositeMetadataExtractor | None = None,
        page_extractor: CompositeMetadataExtractor | None = None,
    ):
        self.source_dir = source_dir
        self.config = config or {}
        self.renderer_registry = renderer_registry or default_renderer_registry
        self.post_extractor = post_extractor or post_metadata_extractor
        self.page_extractor = page_extractor or page_metadata_extractor
        self.url_deriver = UrlDeriver(self.config.get("permalink") or "/:year/:month/:day/:slug/")
        defaults = self.config.get("defaults") or {}
        self.post_layout = defaults.get("post_layout", "post")
        self.page_layout = defaults.get("page_layout", "page")

    def build_post(self, path: Path, in_drafts: bool = False) -> Post:
        """Build a Post from a file in ``_posts/`` or ``_drafts/``.

        Args:
            path: Source file.
            in_drafts: The file lives in ``_drafts/``; its name may omit
                the date prefix.

        Returns:
            Post object.

        Raises:
            ContentError: If the filename or front-matter is invalid.
        """
        extractor = self.page_extractor if in_drafts else self.post_extractor
        metadata = self._extract(path, extractor)
        frontmatter = metadata["frontmatter"]
        slug = metadata.get("slug") or self._draft_slug(path)
        url = self.url_deriver.post_url(
            metadata["date"], slug, metadata["categories"], frontmatter.get("permalink")
        )
        draft = in_drafts or frontmatter.get("published") is False
        return Post(url=url, slug=slug, draft=draft, **self._common_fields(path, metadata, self.post_layout))

    def build_page(self, path: Path) -> Page:
        """Build a Page from a standalone source file.

        Args:
            path: Source file.

        Returns:
            Page object.
        """
        metadata = self._extract(path, self.page_extractor)
        frontmatter = metadata["frontmatter"]
        rel = path.relative_to(self.source_dir)
        url = self.url_deriver.page_url(rel, frontmatter.get("permalink"))
        slug = slugify(path.stem) or "index"
        draft = frontmatter.get("published") is False
        return Page(url=url, slug=slug, draft=draft, **self._common_fields(path, metadata, self.page_layout))

    def _extract(self, path: Path, extractor: CompositeMetadataExtractor) -> dict[str, Any]:
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ContentError(f"File is not valid UTF-8 (byte {exc.start})", source_path=path) from exc
        except OSError as exc:
            raise ContentError(f"Cannot read file: {exc.strerror or exc}", source_path=path) from exc
        try:
            metadata = extractor.extract(raw, path)
        except ContentError as exc:
            if exc.source_path is None:
                exc.source_path = path
            raise
        return metadata

    def _common_fields(self, path: Path, metadata: dict[str, Any], default_layout: str) -> dict[str, Any]:
        frontmatter = metadata["frontmatter"]
        body = metadata["body"]
        renderer = self.renderer_registry.get_renderer(path)
        content, toc = renderer.render(body)
        layout = frontmatter.get("layout", default_layout)
        author = frontmatter.get("author") or self.config.get("author") or ""
        return {
            "title": metadata["title"],
            "date": metadata["date"],
            "layout": "" if layout in NO_LAYOUT else str(layout),
            "author": str(author),
            "description": metadata["description"],
            "excerpt": metadata["excerpt"],
            "body": body,
            "content": content,
            "tags": metadata["tags"],
            "categories": metadata["categories"],
            "path": path,
            "source_type": renderer.source_type,
            "frontmatter": frontmatter,
            "toc": toc,
        }

    @staticmethod
    def _draft_slug(path: Path) -> str:
        stem = path.stem
        if extract_date_from_name(stem) is not None:
            stem = stem[11:]
        slug = slugify(stem)
        if not slug:
            raise ContentError(f"Draft filename '{path.name}' has an empty slug", source_path=path)
        return slug


class ContentProcessor:
    """Loads every post and page and validates the collection.

    Attributes:
        source_dir: Root of the blog source.
        config: Site configuration.
    """

    def __init__(
        self,
        source_dir: Path,
        config: dict[str, Any] | None = None,
        post_loader: PostLoader | None = None,
        page_loader: ContentLoader | None = None,
        builder: DocumentBuilder | None = None,
    ):
        self.source_dir = source_dir
        self.config = config or {}
        self._post_loader = post_loader or PostLoader(source_dir)
        self._page_loader = page_loader or PageLoader(source_dir, self.config.get("exclude"))
        self._builder = builder or DocumentBuilder(source_dir, self.config)

    def load(self, include_drafts: bool = False) -> SiteContent:
        """Load all content files.

        Args:
            include_drafts: Include ``_drafts/`` and ``published: false``
                documents.

        Returns:
            SiteContent with posts newest first.

        Raises:
            ContentError: On malformed files, duplicate slugs or duplicate
                URLs.
        """
        posts: list[Post] = []
        for path in self._post_loader.iter_files(include_drafts):
            post = self._builder.build_post(path, in_drafts=self._post_loader.is_draft_file(path))
            if post.draft and not include_drafts:
                continue
            posts.append(post)
        self._check_unique_slugs(posts)

        pages: list[Page] = []
        for path in self._page_loader.iter_files(include_drafts):
            page = self._builder.build_page(path)
            if page.draft and not include_drafts:
                continue
            pages.append(page)
        self._check_unique_urls([*posts, *pages])

        return SiteContent(posts=PostCollection(posts).sorted().linked(), pages=pages)

    @staticmethod
    def _check_unique_slugs(posts: list[Post]) -> None:
        seen: dict[str, Post] = {}
        for post in posts:
            other = seen.get(post.slug)
            if other is not None:
                raise ContentError(
                    f"Duplicate slug '{post.slug}' (also used by {other.path.name})",
                    source_path=post.path,
                )
            seen[post.slug] = post

    @staticmethod
    def _check_unique_urls(documents: list[Post]) -> None:
        seen: dict[str, Post] = {}
        for doc in documents:
            other = seen.get(doc.url)
            if other is not None:
                raise ContentError(
                    f"Output URL '{doc.url}' is also produced by {other.path.name}",
                    source_path=doc.path,
                )
            seen[doc.url] = doc
