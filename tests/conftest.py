from datetime import datetime
from pathlib import Path

import pytest

from scribe.content import Page, Post


def _make(cls, slug, date=None, **overrides):
    fields = {
        "title": slug.replace("-", " ").title(),
        "slug": slug,
        "date": date or datetime(2025, 1, 1),
        "url": f"/{slug}/",
        "layout": "post",
        "author": "",
        "description": "",
        "excerpt": "",
        "body": "",
        "content": f"<p>{slug}</p>",
        "tags": [],
        "categories": [],
        "draft": False,
        "path": Path(f"{slug}.md"),
        "source_type": "markdown",
    }
    fields.update(overrides)
    return cls(**fields)


@pytest.fixture
def make_post():
    def factory(slug, date=None, **overrides):
        return _make(Post, slug, date, **overrides)

    return factory


@pytest.fixture
def make_page():
    def factory(slug, **overrides):
        overrides.setdefault("layout", "page")
        return _make(Page, slug, **overrides)

    return factory
