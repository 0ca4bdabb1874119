from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from itertools import groupby
from typing import TYPE_CHECKING

from .utils import slugify

if TYPE_CHECKING:
    from .content import Post


class PostCollection(Sequence["Post"]):
    """Lightweight helper for working with lists of posts in templates and code."""

    def __init__(self, posts: Iterable[Post]):
        self._posts = list(posts)

    def __iter__(self) -> Iterator[Post]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PostCollection(self._posts[item])
        return self._posts[item]

    def with_tag(self, tag: str) -> PostCollection:
        """Posts carrying ``tag``, ignoring case and punctuation differences."""
        wanted = TagCollection.slug(tag)
        return PostCollection(p for p in self._posts if any(TagCollection.slug(t) == wanted for t in p.tags))

    def in_category(self, category: str) -> PostCollection:
        return PostCollection(p for p in self._posts if category in p.categories)

    def drafts(self) -> PostCollection:
        return PostCollection(p for p in self._posts if p.draft)

    def published(self) -> PostCollection:
        return PostCollection(p for p in self._posts if not p.draft)

    def sorted(self, reverse: bool = True) -> PostCollection:
        """Sort posts by date, then by slug.

        Args:
            reverse: If True (default), newest first.

        Returns:
            A new PostCollection with sorted posts.
        """
        return PostCollection(sorted(self._posts, key=lambda p: (p.date, p.slug), reverse=reverse))

    def latest(self, count: int = 5) -> PostCollection:
        return self.sorted()[:count]

    def linked(self) -> PostCollection:
        """Set previous/next on each post, assuming newest-first order.

        ``previous`` points to the next older post and ``next`` to the next
        newer one, so templates can render "older"/"newer" links.

        Returns:
            This collection.
        """
        for index, post in enumerate(self._posts):
            post.next = self._posts[index - 1] if index > 0 else None
            post.previous = self._posts[index + 1] if index + 1 < len(self._posts) else None
        return self

    def by_year(self) -> list[tuple[int, PostCollection]]:
        """Group newest-first posts into (year, posts) pairs for archives."""
        ordered = self.sorted()
        return [
            (year, PostCollection(group))
            for year, group in groupby(ordered, key=lambda p: p.date.year)
        ]

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"


class TagCollection(Mapping[str, PostCollection]):
    """Mapping of tag name to its posts (newest first) with convenience helpers."""

    def __init__(self, mapping: dict[str, Iterable[Post]]):
        self._mapping = {k: PostCollection(v).sorted() for k, v in sorted(mapping.items())}

    def __getitem__(self, key: str) -> PostCollection:
        return self._mapping[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._mapping)

    def __len__(self) -> int:
        return len(self._mapping)

    @staticmethod
    def slug(tag: str) -> str:
        """URL segment used for a tag's listing page."""
        return slugify(tag) or "tag"

    @classmethod
    def from_posts(cls, posts: Iterable[Post]) -> TagCollection:
        """Index posts by each of their tags.

        Tags that share a URL slug (``Python`` and ``python``) are one tag,
        named by the first spelling seen.
        """
        names: dict[str, str] = {}
        mapping: dict[str, list[Post]] = {}
        for post in posts:
            for tag in post.tags:
                name = names.setdefault(cls.slug(tag), tag)
                tagged = mapping.setdefault(name, [])
                if not any(p is post for p in tagged):
                    tagged.append(post)
        return cls(mapping)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"TagCollection({len(self._mapping)} tags)"
