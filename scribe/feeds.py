"""Feed generation for Scribe.

Generates ``feed.xml`` (Atom) and ``sitemap.xml`` from the built documents.
Both need an absolute site URL and are skipped when ``url`` is not
configured. Timestamps come from post dates only, so two builds of the
same source produce identical feeds.

Classes:
    FeedGenerator: Base class for feed generators.
    SitemapGenerator: Generates sitemap.xml.
    AtomFeedGenerator: Generates an Atom feed of recent posts.
    FeedRegistry: Registry for managing feed generators.

Functions:
    create_default_feed_registry: Create a registry with default generators.
    write_feeds: Write rendered feeds into the output directory.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .html_utils import escape_html, join_root_url, normalize_baseurl, prefix_html_urls

if TYPE_CHECKING:
    from .content import SiteContent

FEED_LIMIT = 20


def site_root(site: dict[str, Any]) -> str:
    """Return the absolute URL of the site root without a trailing slash.

    Args:
        site: Site configuration.

    Returns:
        ``url`` joined with ``baseurl``, or an empty string if ``url`` is unset.
    """
    base_url = str(site.get("url") or "").rstrip("/")
    if not base_url:
        return ""
    return f"{base_url}{normalize_baseurl(site.get('baseurl'))}"


def _timestamp(value) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class FeedGenerator(ABC):
    """Abstract base class for feed generators."""

    @property
    @abstractmethod
    def filename(self) -> str:
        """Output filename such as 'sitemap.xml'."""
        ...

    @abstractmethod
    def generate(self, content: SiteContent, site: dict[str, Any]) -> str | None:
        """Generate feed content.

        Args:
            content: Posts and pages of the build.
            site: Site configuration.

        Returns:
            Feed content, or None if the feed cannot be generated.
        """
        ...

class SitemapGenerator(FeedGenerator):
    """Generates sitemap.xml following the sitemaps.org protocol."""

    @property
    def filename(self) -> str:
        return "sitemap.xml"

    def generate(self, content: SiteContent, site: dict[str, Any]) -> str | None:
        root = site_root(site)
        if not root:
            return None
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
        ]
        for doc in content.documents:
            if doc.frontmatter.get("sitemap") is False or doc.url.endswith("404.html"):
                continue
            loc = escape_html(join_root_url(root, doc.url))
            lastmod = doc.date.strftime("%Y-%m-%d")
            lines.append(f"  <url><loc>{loc}</loc><lastmod>{lastmod}</lastmod></url>")
        lines.append("</urlset>")
        return "\n".join(lines) + "\n"


class AtomFeedGenerator(FeedGenerator):
    """Generates an Atom 1.0 feed of the most recent posts."""

    def __init__(self, limit: int = FEED_LIMIT):
        self.limit = limit

    @property
    def filename(self) -> str:
        return "feed.xml"

    def generate(self, content: SiteContent, site: dict[str, Any]) -> str | None:
        root = site_root(site)
        if not root:
            return None
        posts = content.posts.published().latest(self.limit)
        baseurl = normalize_baseurl(site.get("baseurl"))
        title = escape_html(str(site.get("title") or "Scribe"))
        updated = _timestamp(posts[0].date) if len(posts) else "1970-01-01T00:00:00Z"
        lines = [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"  <title>{title}</title>",
            f'  <link href="{escape_html(root)}/feed.xml" rel="self"/>',
            f'  <link href="{escape_html(root)}/"/>',
            f"  <id>{escape_html(root)}/</id>",
            f"  <updated>{updated}</updated>",
        ]
        if site.get("description"):
            lines.append(f"  <subtitle>{escape_html(str(site['description']))}</subtitle>")
        if site.get("author"):
            lines.append(f"  <author><name>{escape_html(str(site['author']))}</name></author>")
        for post in posts:
            link = escape_html(join_root_url(root, post.url))
            lines.extend(
                [
                    "  <entry>",
                    f"    <title>{escape_html(post.title)}</title>",
                    f'    <link href="{link}"/>',
                    f"    <id>{link}</id>",
                    f"    <published>{_timestamp(post.date)}</published>",
                    f"    <updated>{_timestamp(post.date)}</updated>",
                ]
            )
            if post.author:
                lines.append(f"    <author><name>{escape_html(post.author)}</name></author>")
            for tag in post.tags:
                lines.append(f'    <category term="{escape_html(tag)}"/>')
            if post.description:
                lines.append(f"    <summary>{escape_html(post.description)}</summary>")
            lines.append(f'    <content type="html">{escape_html(prefix_html_urls(post.content, baseurl))}</content>')
            lines.append("  </entry>")
        lines.append("</feed>")
        return "\n".join(lines) + "\n"


class FeedRegistry:
    """Registry for managing feed generators.

    Attributes:
        _generators: Registered feed generators, run in order.
    """

    def __init__(self) -> None:
        self._generators: list[FeedGenerator] = []

    def register(self, generator: FeedGenerator) -> None:
        self._generators.append(generator)

    def render_all(self, content: SiteContent, site: dict[str, Any]) -> dict[str, str]:
        """Generate all registered feeds without writing them.

        Returns:
            Mapping of output filename to feed text, skipped feeds omitted.
        """
        feeds: dict[str, str] = {}
        for generator in self._generators:
            text = generator.generate(content, site)
            if text is not None:
                feeds[generator.filename] = text
        return feeds


def write_feeds(output_dir: Path, feeds: dict[str, str]) -> list[str]:
    """Write rendered feeds into the output directory.

    Returns:
        Filenames that were written.
    """
    for filename, text in feeds.items():
        (output_dir / filename).write_text(text, encoding="utf-8")
    return list(feeds)


def create_default_feed_registry() -> FeedRegistry:
    """Create a registry with the sitemap and Atom feed generators."""
    registry = FeedRegistry()
    registry.register(SitemapGenerator())
    registry.register(AtomFeedGenerator())
    return registry
