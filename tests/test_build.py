from datetime import datetime
from pathlib import Path

import pytest

from scribe.build import (
    DEFAULT_CONFIG,
    build_site,
    load_config,
    load_data,
    output_rel_path,
)
from scribe.errors import BuildError, ConfigError, LayoutError


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def create_blog(root: Path, config: str = "title: Test Blog\n") -> Path:
    write(root / "_config.yml", config)
    write(
        root / "_layouts" / "default.html",
        '<html><body><a href="/">{{ site.title }}</a>{% block main %}{{ content }}{% endblock %}</body></html>',
    )
    write(
        root / "_layouts" / "post.html",
        '{% extends "default.html" %}{% block main %}<article><h1>{{ page.title }}</h1>{{ content }}'
        '{% if page.previous %}<a class="older" href="{{ page.previous.url }}">older</a>{% endif %}'
        "</article>{% endblock %}",
    )
    write(root / "_layouts" / "page.html", '{% extends "default.html" %}')
    write(
        root / "_layouts" / "index.html",
        '{% extends "default.html" %}{% block main %}<ul>{% for post in paginator.posts %}'
        '<li><a href="{{ post.url }}">{{ post.title }}</a></li>{% endfor %}</ul>'
        '{% if paginator.next_page_path %}<a href="{{ paginator.next_page_path }}">next</a>{% endif %}'
        "{% endblock %}",
    )
    write(root / "_posts" / "2025-10-14-a.md", "---\ntitle: Post A\ntags: [python]\n---\nAlpha.\n")
    write(root / "_posts" / "2025-10-15-b.md", "---\ntitle: Post B\n---\nBeta with [a link](/about/).\n")
    write(root / "about.md", "---\ntitle: About\n---\nAbout me.\n")
    write(root / "assets" / "site.css", "body { color: black; }\n")
    write(root / "CNAME", "blog.example.com\n")
    return root


def snapshot(directory: Path) -> dict[str, bytes]:
    return {
        path.relative_to(directory).as_posix(): path.read_bytes()
        for path in sorted(directory.rglob("*"))
        if path.is_file()
    }


def test_build_example_blog(tmp_path):
    blog = create_blog(tmp_path)
    result = build_site(blog)
    out = blog / "_site"

    assert result.output_dir == out
    assert [p.slug for p in result.posts] == ["b", "a"]
    assert [p.url for p in result.pages] == ["/about/"]
    assert result.page_count == 4

    a_html = (out / "2025" / "10" / "14" / "a" / "index.html").read_text(encoding="utf-8")
    b_html = (out / "2025" / "10" / "15" / "b" / "index.html").read_text(encoding="utf-8")
    assert "<h1>Post A</h1>" in a_html
    assert "<p>Alpha.</p>" in a_html
    assert 'class="older" href="/2025/10/14/a/"' in b_html

    index = (out / "index.html").read_text(encoding="utf-8")
    assert index.index("Post B") < index.index("Post A")
    assert (out / "about" / "index.html").exists()
    assert (out / "assets" / "site.css").read_text(encoding="utf-8") == "body { color: black; }\n"
    assert (out / "CNAME").exists()
    assert (out / ".nojekyll").exists()
    assert not (out / "_config.yml").exists()
    assert not (out / "_posts").exists()
    assert not (out / "about.md").exists()
    assert not (out / "feed.xml").exists()


def test_rebuild_is_byte_identical(tmp_path):
    blog = create_blog(tmp_path, "title: Test Blog\nurl: https://me.github.io\n")
    build_site(blog)
    first = snapshot(blog / "_site")
    build_site(blog)
    assert snapshot(blog / "_site") == first
    assert "feed.xml" in first
    assert "sitemap.xml" in first


def test_stale_output_is_removed(tmp_path):
    blog = create_blog(tmp_path)
    build_site(blog)
    (blog / "_posts" / "2025-10-14-a.md").unlink()
    build_site(blog)
    assert not (blog / "_site" / "2025" / "10" / "14").exists()


def test_malformed_front_matter_fails_build(tmp_path):
    blog = create_blog(tmp_path)
    broken = write(blog / "_posts" / "2025-10-16-broken.md", "---\ntitle: Broken\nNo closing line\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(blog)
    assert excinfo.value.source_path == broken
    assert "Unterminated front-matter" in excinfo.value.message


def test_duplicate_slug_fails_build(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "_posts" / "2025-10-20-a.md", "Again\n")
    with pytest.raises(BuildError, match="Duplicate slug 'a'"):
        build_site(blog)


def test_missing_layout_fails_build(tmp_path):
    blog = create_blog(tmp_path)
    fancy = write(blog / "_posts" / "2025-10-16-fancy.md", "---\nlayout: fancy\n---\nBody\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(blog)
    assert excinfo.value.source_path == fancy
    assert excinfo.value.message == "Layout 'fancy' not found in _layouts/"
    assert isinstance(excinfo.value.original_error, LayoutError)


def test_template_syntax_error_reports_line(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "_layouts" / "page.html", "line one\n{% if %}\n")
    with pytest.raises(BuildError, match="Template syntax error in page.html on line 2"):
        build_site(blog)


def test_baseurl_prefixes_links(tmp_path):
    blog = create_blog(tmp_path, "title: Test Blog\nbaseurl: /blog\nurl: https://me.github.io\n")
    build_site(blog)
    out = blog / "_site"

    index = (out / "index.html").read_text(encoding="utf-8")
    assert 'href="/blog/"' in index
    assert 'href="/blog/2025/10/15/b/"' in index
    b_html = (out / "2025" / "10" / "15" / "b" / "index.html").read_text(encoding="utf-8")
    assert 'href="/blog/about/"' in b_html
    sitemap = (out / "sitemap.xml").read_text(encoding="utf-8")
    assert "<loc>https://me.github.io/blog/2025/10/15/b/</loc>" in sitemap


def test_pagination_and_tag_pages(tmp_path):
    blog = create_blog(tmp_path, "title: Test Blog\npaginate: 1\n")
    write(blog / "_layouts" / "tag.html", "{{ tag }}:{% for post in tag_posts %}{{ post.slug }}{% endfor %}")
    result = build_site(blog)
    out = blog / "_site"

    assert [l.url for l in result.listings] == ["/", "/page2/", "/tags/python/"]
    assert 'href="/page2/"' in (out / "index.html").read_text(encoding="utf-8")
    assert "Post A" in (out / "page2" / "index.html").read_text(encoding="utf-8")
    assert (out / "tags" / "python" / "index.html").read_text(encoding="utf-8") == "python:a"


def test_custom_index_page_replaces_listing(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "index.html", "---\nlayout: none\n---\n<p>{{ 'handwritten' }}</p>\n")
    result = build_site(blog)
    assert all(l.url != "/" for l in result.listings)
    assert (blog / "_site" / "index.html").read_text(encoding="utf-8") == "<p>{{ 'handwritten' }}</p>\n"


def test_listing_url_collision_fails(tmp_path):
    blog = create_blog(tmp_path, "title: Test Blog\npaginate: 1\n")
    write(blog / "page2.md", "---\ntitle: Squatter\n---\nMine\n")
    with pytest.raises(BuildError, match="Output URL '/page2/'"):
        build_site(blog)


def test_drafts_are_built_on_request(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "_drafts" / "2025-10-20-wip.md", "---\ntitle: WIP\n---\nSoon.\n")
    build_site(blog)
    assert not (blog / "_site" / "2025" / "10" / "20").exists()

    result = build_site(blog, include_drafts=True)
    assert result.posts[0].slug == "wip"
    assert (blog / "_site" / "2025" / "10" / "20" / "wip" / "index.html").exists()


def test_source_and_destination_overrides(tmp_path):
    create_blog(tmp_path / "site")
    (tmp_path / "site" / "_config.yml").unlink()
    write(tmp_path / "_config.yml", "title: Outer\nsource: site\ndestination: public\n")

    result = build_site(tmp_path)
    assert result.output_dir == tmp_path / "public"
    assert (tmp_path / "public" / "2025" / "10" / "14" / "a" / "index.html").exists()

    result = build_site(tmp_path, destination="site/public")
    assert result.output_dir == tmp_path / "site" / "public"
    build_site(tmp_path, destination="site/public")
    assert not (tmp_path / "site" / "public" / "public").exists()


def test_destination_must_not_contain_source(tmp_path):
    blog = create_blog(tmp_path / "blog")
    with pytest.raises(BuildError, match="must not contain the source"):
        build_site(blog, destination=".")
    with pytest.raises(BuildError, match="Source directory does not exist"):
        build_site(blog, source="missing")


def test_invalid_config_fails_build(tmp_path):
    blog = create_blog(tmp_path, "title: [unclosed\n")
    with pytest.raises(BuildError) as excinfo:
        build_site(blog)
    assert excinfo.value.source_path == blog / "_config.yml"
    assert isinstance(excinfo.value.original_error, ConfigError)


def test_load_config_merges_defaults(tmp_path):
    assert load_config(tmp_path) == DEFAULT_CONFIG
    write(tmp_path / "_config.yml", "title: Mine\ndefaults:\n  post_layout: article\nsocial: {github: me}\n")
    config = load_config(tmp_path)
    assert config["title"] == "Mine"
    assert config["defaults"] == {"post_layout": "article", "page_layout": "page"}
    assert config["social"] == {"github": "me"}
    assert DEFAULT_CONFIG["defaults"]["post_layout"] == "post"

    write(tmp_path / "_config.yml", "- just\n- a list\n")
    with pytest.raises(ConfigError, match="must contain a mapping"):
        load_config(tmp_path)


def test_load_data_and_site_data_in_templates(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "_data" / "links.yml", "- name: GitHub\n  url: https://github.com\n")
    write(blog / "_data" / "author.yaml", "name: Ada\n")
    assert load_data(blog) == {
        "author": {"name": "Ada"},
        "links": [{"name": "GitHub", "url": "https://github.com"}],
    }

    write(blog / "_layouts" / "page.html", "{{ site.data.author.name }}|{{ site.posts | length }}")
    build_site(blog)
    assert (blog / "_site" / "about" / "index.html").read_text(encoding="utf-8") == "Ada|2"

    write(blog / "_data" / "bad.yml", "key: [oops\n")
    with pytest.raises(BuildError, match="Invalid YAML in bad.yml"):
        build_site(blog)


def test_output_rel_path():
    assert output_rel_path("/") == "index.html"
    assert output_rel_path("/2025/10/14/a/") == "2025/10/14/a/index.html"
    assert output_rel_path("/404.html") == "404.html"
    assert output_rel_path("/notes") == "notes/index.html"


def test_front_matter_permalink_and_dates(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "_posts" / "2025-10-16-custom.md", "---\npermalink: /custom/\ndate: 2025-12-01\n---\nBody\n")
    result = build_site(blog)
    custom = result.posts[0]
    assert custom.url == "/custom/"
    assert custom.date == datetime(2025, 12, 1)
    assert (blog / "_site" / "custom" / "index.html").exists()


def test_static_file_cannot_overwrite_generated_output(tmp_path):
    blog = create_blog(tmp_path, "title: Test Blog\nurl: https://me.github.io\n")
    verification = write(blog / "index.html", "<p>google-site-verification</p>\n")
    with pytest.raises(BuildError, match="would overwrite the output of listing") as excinfo:
        build_site(blog)
    assert excinfo.value.source_path.resolve() == verification.resolve()
    assert not (blog / "_site").exists()

    verification.unlink()
    write(blog / "about" / "index.html", "<p>old about</p>\n")
    with pytest.raises(BuildError, match="document 'about.md'"):
        build_site(blog)

    (blog / "about" / "index.html").unlink()
    write(blog / "feed.xml", "<rss/>\n")
    with pytest.raises(BuildError, match="feed 'feed.xml'"):
        build_site(blog)


def test_feed_document_replaces_generated_feed(tmp_path):
    blog = create_blog(tmp_path, "title: Test Blog\nurl: https://me.github.io\n")
    write(blog / "feed.html", "---\nlayout: none\npermalink: /feed.xml\nsitemap: false\n---\n<rss>mine</rss>\n")
    result = build_site(blog)
    assert result.feeds == ["sitemap.xml"]
    assert (blog / "_site" / "feed.xml").read_text(encoding="utf-8") == "<rss>mine</rss>\n"


def test_failed_build_keeps_previous_output(tmp_path):
    blog = create_blog(tmp_path)
    build_site(blog)
    before = snapshot(blog / "_site")

    write(blog / "_posts" / "2025-10-16-fancy.md", "---\nlayout: fancy\n---\nBody\n")
    with pytest.raises(BuildError, match="Layout 'fancy' not found"):
        build_site(blog)
    assert snapshot(blog / "_site") == before

    write(blog / "_layouts" / "fancy.html", "{% if %}")
    with pytest.raises(BuildError, match="Template syntax error"):
        build_site(blog)
    assert snapshot(blog / "_site") == before


def test_tags_differing_in_case_share_one_page(tmp_path):
    blog = create_blog(tmp_path)
    write(blog / "_posts" / "2025-10-16-c.md", "---\ntitle: Post C\ntags: [Python]\n---\nGamma.\n")
    write(blog / "_layouts" / "tag.html", "{{ tag }}:{% for post in tag_posts %}{{ post.slug }}{% endfor %}")
    result = build_site(blog)

    assert [l.url for l in result.listings] == ["/", "/tags/python/"]
    assert (blog / "_site" / "tags" / "python" / "index.html").read_text(encoding="utf-8") == "Python:ca"
