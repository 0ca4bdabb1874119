"""Template rendering engine for Scribe.

This module uses Jinja2 to wrap rendered documents in the theme's layouts.
Layouts live in ``_layouts/`` and may extend each other; ``_includes/``
holds partials for ``{% include %}``.

Key class:
- TemplateEngine: Resolves layouts and renders documents and listing pages.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, Template, TemplateNotFound, select_autoescape
from markupsafe import Markup
from pygments.formatters import HtmlFormatter

from .collections import PostCollection, TagCollection
from .content import Heading, Post
from .errors import LayoutError
from .html_utils import escape_html, join_root_url, normalize_baseurl
from .utils import slugify

__all__ = ["TemplateEngine", "render_toc"]

LAYOUTS_DIR = "_layouts"
INCLUDES_DIR = "_includes"
LAYOUT_SUFFIXES = (".html", ".html.jinja", ".jinja", "")


def render_toc(page: Post) -> Markup:
    """Render a table of contents as nested HTML from page headings.

    Args:
        page: Document whose ``toc`` holds Heading objects.

    Returns:
        Markup-safe HTML string of the nested TOC, or empty Markup if no headings.
    """
    if not page.toc:
        return Markup("")
    return _render_toc_from_headings(page.toc)


def _render_toc_from_headings(headings: list[Heading]) -> Markup:
    html_parts: list[str] = []
    level_stack: list[int] = []

    for heading in headings:
        level = heading.level

        # Close nested lists when moving to a shallower level
        while level_stack and level_stack[-1] > level:
            level_stack.pop()
            html_parts.append("</li></ul>")

        if level_stack and level_stack[-1] == level:
            html_parts.append("</li>")
        elif not level_stack or level > level_stack[-1]:  # pragma: no branch
            html_parts.append("<ul>")
            level_stack.append(level)

        html_parts.append(
            f'<li><a href="#{escape_html(heading.id)}">{escape_html(heading.text)}</a>'
        )

    while level_stack:
        level_stack.pop()
        html_parts.append("</li></ul>")

    return Markup("".join(html_parts))


def xml_escape(value: object) -> Markup:
    """Escape a value for XML output; the result is marked safe."""
    return Markup(escape_html(str(value)))


def date_to_xmlschema(value: datetime) -> str:
    """Format a naive datetime as an RFC 3339 timestamp in UTC."""
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def date_to_string(value: datetime) -> str:
    """Format a date like ``14 Oct 2025``."""
    return f"{value.day:02d} {value.strftime('%b')} {value.year}"


def date_to_long_string(value: datetime) -> str:
    """Format a date like ``14 October 2025``."""
    return f"{value.day:02d} {value.strftime('%B')} {value.year}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Attributes:
        source_dir: Root of the blog source (holds ``_layouts/``).
        site: Site configuration plus data files, exposed as ``site``.
        env: Jinja2 environment.
        posts: Published posts, newest first.
        tags: Tag name to posts mapping.
    """

    def __init__(self, source_dir: Path, site: dict[str, Any]):
        """Initialize the template engine.

        Args:
            source_dir: Directory with ``_layouts/`` and ``_includes/``.
            site: Site configuration and data.
        """
        self.source_dir = source_dir
        self.site = site
        self.baseurl = normalize_baseurl(site.get("baseurl"))
        self.env = Environment(
            loader=FileSystemLoader(
                [
                    source_dir / LAYOUTS_DIR,
                    source_dir / INCLUDES_DIR,
                ]
            ),
            autoescape=select_autoescape(["html", "xml", "jinja"], default_for_string=True),
        )
        self.posts: PostCollection = PostCollection([])
        self.tags: TagCollection = TagCollection({})
        self._install_globals()

    def _install_globals(self) -> None:
        """Install global variables, functions and filters in the environment."""
        self.env.globals["site"] = self.site
        self.env.globals["posts"] = self.posts
        self.env.globals["tags"] = self.tags
        self.env.globals["url_for"] = self.url_for
        self.env.globals["render_toc"] = render_toc
        self.env.globals["pygments_css"] = self._pygments_css
        self.env.filters["date_to_xmlschema"] = date_to_xmlschema
        self.env.filters["date_to_string"] = date_to_string
        self.env.filters["date_to_long_string"] = date_to_long_string
        self.env.filters["xml_escape"] = xml_escape
        self.env.filters["slugify"] = slugify
        self.env.filters["tag_url"] = self._tag_url
        self.env.filters["relative_url"] = self.relative_url
        self.env.filters["absolute_url"] = self.absolute_url

    @staticmethod
    def _pygments_css(style: str = "default") -> Markup:
        """Return Pygments CSS rules for the ``.highlight`` class."""
        return Markup(HtmlFormatter(style=style).get_style_defs(".highlight"))

    def update_collections(self, posts: PostCollection, tags: TagCollection) -> None:
        """Expose the site's posts and tags to every template.

        Args:
            posts: Published posts, newest first.
            tags: Tag collection.
        """
        self.posts = posts
        self.tags = tags
        self.env.globals["posts"] = self.posts
        self.env.globals["tags"] = self.tags

    def url_for(self, path: str) -> str:
        """Normalize a site path to a root-relative URL.

        The baseurl is applied to the whole rendered document afterwards,
        so links built here stay baseurl-free.

        Args:
            path: Path such as ``about/`` or ``/assets/css/site.css``.

        Returns:
            Root-relative URL, or the input unchanged for external URLs.
        """
        if path.startswith(("http://", "https://", "//", "mailto:", "#")):
            return path
        return path if path.startswith("/") else f"/{path}"

    def relative_url(self, path: str) -> str:
        """Return ``path`` under the site baseurl."""
        url = self.url_for(path)
        if not url.startswith("/") or url.startswith("//"):
            return url
        return join_root_url(self.baseurl, url) if self.baseurl else url

    def absolute_url(self, path: str) -> str:
        """Return ``path`` as an absolute URL using ``site.url`` and the baseurl."""
        url = self.relative_url(path)
        if not url.startswith("/") or url.startswith("//"):
            return url
        return join_root_url(str(self.site.get("url") or ""), url)

    def _tag_url(self, tag: str) -> str:
        return f"/tags/{TagCollection.slug(tag)}/"

    def has_layout(self, name: str) -> bool:
        """Return True if ``_layouts/`` provides the named layout."""
        return self._find_layout(name) is not None

    def render_document(self, page: Post) -> str:
        """Render a post or page with its layout.

        Args:
            page: Document to render.

        Returns:
            Rendered HTML string.

        Raises:
            LayoutError: If the document's layout does not exist.
        """
        content = Markup(page.content)
        if not page.layout:
            return str(content)
        template = self._resolve_layout(page.layout)
        return template.render(page=page, content=content, paginator=None)

    def render_listing(self, layout: str, page: dict[str, Any], **context: Any) -> str:
        """Render a generated page (index, tag listing) with a layout.

        Args:
            layout: Layout name.
            page: Page-level variables such as title and url.
            **context: Extra variables such as ``paginator``.

        Returns:
            Rendered HTML string.
        """
        template = self._resolve_layout(layout)
        context.setdefault("paginator", None)
        return template.render(page=page, content=Markup(""), **context)

    def _find_layout(self, name: str) -> Template | None:
        for suffix in LAYOUT_SUFFIXES:
            try:
                return self.env.get_template(f"{name}{suffix}")
            except TemplateNotFound:
                continue
        return None

    def _resolve_layout(self, name: str) -> Template:
        template = self._find_layout(name)
        if template is None:
            raise LayoutError(f"Layout '{name}' not found in {LAYOUTS_DIR}/")
        return template
