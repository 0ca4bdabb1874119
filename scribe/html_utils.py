"""HTML utility functions for Scribe.

This module provides HTML string manipulation used after rendering:
escaping, URL joining, and prefixing root-relative links with the site's
baseurl so the output works when hosted below a fixed path (for example a
GitHub Pages project site at /blog).

Functions:
    escape_html: Escape special HTML characters in a string.
    join_root_url: Join a base URL with a path.
    normalize_baseurl: Canonicalize a configured baseurl.
    prefix_html_urls: Prefix root-relative URLs in HTML with a baseurl.
"""

from __future__ import annotations

import re

# URL attribute regex pattern for finding href, src, action attributes
_URL_ATTR_RE = re.compile(
    r'(?P<prefix>\b(?:href|src|action)=["\'])(?P<url>[^"\']+)(?P<suffix>["\'])'
)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML and XML.

    Examples:
        >>> escape_html('Tom & "Jerry"')
        'Tom &amp; &quot;Jerry&quot;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def join_root_url(root_url: str, path: str) -> str:
    """Safely join a root URL and a path, avoiding double slashes.

    Args:
        root_url: Base URL (e.g., https://example.com/blog).
        path: Path beginning with or without a leading slash.

    Returns:
        Combined URL with proper slash handling.

    Examples:
        >>> join_root_url('https://example.com/', 'about')
        'https://example.com/about'
    """
    if not root_url:
        return path
    base = root_url.rstrip("/")
    suffix = path if path.startswith("/") else f"/{path}"
    return f"{base}{suffix}"


def normalize_baseurl(baseurl: str | None) -> str:
    """Return baseurl with one leading slash and no trailing slash.

    Examples:
        >>> normalize_baseurl("blog/")
        '/blog'
        >>> normalize_baseurl("/")
        ''
    """
    value = (baseurl or "").strip().strip("/")
    return f"/{value}" if value else ""


def prefix_html_urls(html: str, baseurl: str) -> str:
    """Prefix root-relative URLs in HTML with the site baseurl.

    Processes href, src, and action attributes. Only URLs starting with a
    single slash are rewritten; external, protocol-relative, anchor, mailto
    and relative URLs are left unchanged, as are URLs already under the
    baseurl.

    Args:
        html: HTML content to process.
        baseurl: Normalized baseurl such as ``/blog``.

    Returns:
        HTML with root-relative URLs moved under the baseurl.

    Examples:
        >>> prefix_html_urls('<a href="/about/">About</a>', '/blog')
        '<a href="/blog/about/">About</a>'
    """
    if not baseurl:
        return html

    def repl(match: re.Match) -> str:
        url = match.group("url")
        if not url.startswith("/") or url.startswith("//"):
            return match.group(0)
        if url == baseurl or url.startswith(f"{baseurl}/"):
            return match.group(0)
        return f"{match.group('prefix')}{join_root_url(baseurl, url)}{match.group('suffix')}"

    return _URL_ATTR_RE.sub(repl, html)
