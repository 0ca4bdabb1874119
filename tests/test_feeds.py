from datetime import datetime

from scribe.collections import PostCollection
from scribe.content import SiteContent
from scribe.feeds import (
    AtomFeedGenerator,
    FeedGenerator,
    FeedRegistry,
    SitemapGenerator,
    create_default_feed_registry,
    site_root,
    write_feeds,
)

SITE = {
    "title": "Notes & Code",
    "description": "A <technical> blog",
    "author": "Ada",
    "url": "https://ada.github.io/",
    "baseurl": "/blog",
}


def make_content(make_post, make_page):
    a = make_post("a", datetime(2025, 10, 14), url="/2025/10/14/a/", tags=["python"], description="First")
    b = make_post("b", datetime(2025, 10, 15, 8, 0), url="/2025/10/15/b/", title="B & <C>", author="Guest")
    draft = make_post("d", datetime(2025, 10, 16), url="/2025/10/16/d/", draft=True)
    about = make_page("about", date=datetime(2025, 1, 2), url="/about/")
    missing = make_page("404", url="/404.html")
    hidden = make_page("hidden", url="/hidden/", frontmatter={"sitemap": False})
    posts = PostCollection([draft, b, a])
    return SiteContent(posts=posts, pages=[about, missing, hidden])


def test_site_root():
    assert site_root(SITE) == "https://ada.github.io/blog"
    assert site_root({"url": "https://x.io", "baseurl": ""}) == "https://x.io"
    assert site_root({"baseurl": "/blog"}) == ""


def test_sitemap(make_post, make_page):
    xml = SitemapGenerator().generate(make_content(make_post, make_page), SITE)
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<urlset')
    assert "<url><loc>https://ada.github.io/blog/2025/10/15/b/</loc><lastmod>2025-10-15</lastmod></url>" in xml
    assert "<loc>https://ada.github.io/blog/about/</loc><lastmod>2025-01-02</lastmod>" in xml
    assert "404.html" not in xml
    assert "/hidden/" not in xml


def test_atom_feed(make_post, make_page):
    xml = AtomFeedGenerator().generate(make_content(make_post, make_page), SITE)
    assert "<title>Notes &amp; Code</title>" in xml
    assert '<link href="https://ada.github.io/blog/feed.xml" rel="self"/>' in xml
    assert "<updated>2025-10-15T08:00:00Z</updated>" in xml
    assert "<subtitle>A &lt;technical&gt; blog</subtitle>" in xml
    assert "<author><name>Ada</name></author>" in xml
    assert "<title>B &amp; &lt;C&gt;</title>" in xml
    assert "<author><name>Guest</name></author>" in xml
    assert '<category term="python"/>' in xml
    assert "<summary>First</summary>" in xml
    assert '<content type="html">&lt;p&gt;a&lt;/p&gt;</content>' in xml
    assert "2025/10/16/d" not in xml
    assert xml.index("2025/10/15/b/") < xml.index("2025/10/14/a/")


def test_atom_feed_limit_and_empty(make_post):
    posts = PostCollection(make_post(f"p{i}", datetime(2025, 1, i + 1)) for i in range(5))
    xml = AtomFeedGenerator(limit=2).generate(SiteContent(posts=posts, pages=[]), SITE)
    assert xml.count("<entry>") == 2
    assert "p4" in xml and "p2" not in xml

    empty = AtomFeedGenerator().generate(SiteContent(posts=PostCollection([]), pages=[]), SITE)
    assert "<updated>1970-01-01T00:00:00Z</updated>" in empty
    assert "<entry>" not in empty


def test_registry_renders_feeds_only_with_url(tmp_path, make_post, make_page):
    content = make_content(make_post, make_page)
    registry = create_default_feed_registry()

    assert registry.render_all(content, {"title": "No URL"}) == {}

    feeds = registry.render_all(content, SITE)
    assert list(feeds) == ["sitemap.xml", "feed.xml"]
    assert write_feeds(tmp_path, feeds) == ["sitemap.xml", "feed.xml"]
    assert (tmp_path / "feed.xml").read_text(encoding="utf-8") == feeds["feed.xml"]
    assert registry.render_all(content, SITE) == feeds


def test_custom_generator(tmp_path, make_post):
    class RobotsGenerator(FeedGenerator):
        @property
        def filename(self):
            return "robots.txt"

        def generate(self, content, site):
            return f"Sitemap: {site_root(site)}/sitemap.xml\n"

    registry = FeedRegistry()
    registry.register(RobotsGenerator())
    content = SiteContent(posts=PostCollection([]), pages=[])
    assert registry.render_all(content, SITE) == {
        "robots.txt": "Sitemap: https://ada.github.io/blog/sitemap.xml\n"
    }


def test_atom_content_links_follow_baseurl(make_post):
    post = make_post(
        "pic",
        datetime(2025, 10, 14),
        url="/2025/10/14/pic/",
        content='<p><img src="/img/cat.png"> <a href="/about/">me</a> <a href="https://x.org/">x</a></p>',
    )
    xml = AtomFeedGenerator().generate(SiteContent(posts=PostCollection([post]), pages=[]), SITE)
    assert "src=&quot;/blog/img/cat.png&quot;" in xml
    assert "href=&quot;/blog/about/&quot;" in xml
    assert "href=&quot;https://x.org/&quot;" in xml
