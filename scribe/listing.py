"""Generated listing pages for Scribe.

Listing pages are not backed by a source file: the index (optionally split
into numbered pages) and one page per tag. Each is described by a
ListingPage and rendered by the TemplateEngine with a theme layout.

Key classes:
- Paginator: The ``paginator`` object templates see on index pages.
- ListingPage: A generated page ready to render.

Functions:
    paginate_index: Split posts into index pages.
    tag_pages: One listing page per tag.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .collections import PostCollection, TagCollection

INDEX_LAYOUT = "index"
TAG_LAYOUT = "tag"


@dataclass
class Paginator:
    """One slice of the post list.

    Attributes:
        page: 1-based page number.
        per_page: Posts per page (0 means everything on one page).
        posts: Posts on this page, newest first.
        total_posts: Number of posts across all pages.
        total_pages: Number of index pages.
        previous_page_path: URL of the newer page, if any.
        next_page_path: URL of the older page, if any.
    """

    page: int
    per_page: int
    posts: PostCollection
    total_posts: int
    total_pages: int
    previous_page_path: str | None = None
    next_page_path: str | None = None

    @property
    def previous_page(self) -> int | None:
        return self.page - 1 if self.page > 1 else None

    @property
    def next_page(self) -> int | None:
        return self.page + 1 if self.page < self.total_pages else None


@dataclass
class ListingPage:
    """A generated page.

    Attributes:
        url: Site-relative output URL.
        title: Page title.
        layout: Layout used to render it.
        context: Extra template variables (``paginator``, ``tag``, ``tag_posts``).
    """

    url: str
    title: str
    layout: str
    context: dict[str, Any] = field(default_factory=dict)

    def page_vars(self) -> dict[str, Any]:
        """Variables exposed as ``page`` in the layout."""
        return {"title": self.title, "url": self.url, "layout": self.layout, "kind": "listing"}


def page_path(number: int, paginate_path: str) -> str:
    """Return the URL of index page ``number``.

    Page 1 is always the site root.

    Examples:
        >>> page_path(3, "/page:num/")
        '/page3/'
    """
    if number <= 1:
        return "/"
    path = paginate_path.replace(":num", str(number))
    path = "/" + path.strip("/")
    return path if "." in path.rsplit("/", 1)[-1] else f"{path}/"


def paginate_index(
    posts: PostCollection,
    per_page: int,
    paginate_path: str = "/page:num/",
    title: str = "",
) -> list[ListingPage]:
    """Split posts into index pages.

    Args:
        posts: Published posts, newest first.
        per_page: Posts per page; 0 or less puts everything on one page.
        paginate_path: URL pattern for page 2 onwards, with ``:num``.
        title: Title of the index page.

    Returns:
        Index pages in order; always at least one, even without posts.
    """
    total = len(posts)
    if per_page <= 0:
        chunks = [posts]
        size = total
    else:
        size = per_page
        chunks = [posts[i : i + per_page] for i in range(0, total, per_page)] or [posts]
    total_pages = len(chunks)

    pages: list[ListingPage] = []
    for index, chunk in enumerate(chunks, start=1):
        paginator = Paginator(
            page=index,
            per_page=size,
            posts=PostCollection(chunk),
            total_posts=total,
            total_pages=total_pages,
            previous_page_path=page_path(index - 1, paginate_path) if index > 1 else None,
            next_page_path=page_path(index + 1, paginate_path) if index < total_pages else None,
        )
        page_title = title if index == 1 else f"{title} (page {index} of {total_pages})".strip()
        pages.append(
            ListingPage(
                url=page_path(index, paginate_path),
                title=page_title,
                layout=INDEX_LAYOUT,
                context={"paginator": paginator},
            )
        )
    return pages


def tag_pages(tags: TagCollection) -> list[ListingPage]:
    """Build one listing page per tag at ``/tags/<tag-slug>/``.

    Args:
        tags: Tag collection of published posts.

    Returns:
        Listing pages ordered by tag name.
    """
    return [
        ListingPage(
            url=f"/tags/{TagCollection.slug(tag)}/",
            title=f"Posts tagged {tag}",
            layout=TAG_LAYOUT,
            context={"tag": tag, "tag_posts": tagged},
        )
        for tag, tagged in tags.items()
    ]
