"""Site building functionality for Scribe.

This module turns a blog source tree into the static HTML tree. It loads
the configuration and data files, asks the content store for posts and
pages, renders them and the generated listing pages through the theme,
copies static files and writes feeds.

A build is all-or-nothing: the first content, layout or template problem
raises BuildError naming the offending file.

Key functions:
- build_site: Build the entire site.
- load_config: Load ``_config.yml`` over the defaults.
- load_data: Load YAML files from ``_data/``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jinja2 import TemplateSyntaxError

from .collections import PostCollection, TagCollection
from .content import ContentProcessor, Page, SiteContent
from .errors import BuildError, ConfigError, ContentError, LayoutError
from .feeds import create_default_feed_registry, write_feeds
from .html_utils import normalize_baseurl, prefix_html_urls
from .listing import ListingPage, paginate_index, tag_pages
from .static import StaticFiles
from .templates import LAYOUTS_DIR, TemplateEngine
from .utils import ensure_clean_dir

CONFIG_FILENAME = "_config.yml"
DATA_DIR = "_data"

DEFAULT_EXCLUDE = [
    "node_modules",
    "vendor",
    "venv",
    "__pycache__",
    "Gemfile",
    "Gemfile.lock",
    "README.md",
    "LICENSE",
    "pyproject.toml",
    "requirements*.txt",
]

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "My Blog",
    "description": "",
    "author": "",
    "url": "",
    "baseurl": "",
    "source": ".",
    "destination": "_site",
    "port": 4000,
    "host": "127.0.0.1",
    "ws_port": None,
    "permalink": "/:year/:month/:day/:slug/",
    "paginate": 10,
    "paginate_path": "/page:num/",
    "defaults": {"post_layout": "post", "page_layout": "page"},
    "exclude": [],
}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        posts: Posts that were rendered, newest first.
        pages: Standalone pages that were rendered.
        listings: Generated index and tag pages.
        output_dir: Directory where the site was built.
        site: Site configuration and data used for rendering.
        feeds: Feed filenames that were written.
    """

    posts: PostCollection
    pages: list[Page]
    listings: list[ListingPage]
    output_dir: Path
    site: dict[str, Any]
    feeds: list[str] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.posts) + len(self.pages) + len(self.listings)


def load_config(project_root: Path) -> dict[str, Any]:
    """Load site configuration from _config.yml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Dictionary containing configuration values, with defaults applied.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    config_path = project_root / CONFIG_FILENAME
    config = {key: (dict(value) if isinstance(value, dict) else value) for key, value in DEFAULT_CONFIG.items()}
    if not config_path.exists():
        return config
    with open(config_path, encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {CONFIG_FILENAME}: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping")
    defaults = loaded.pop("defaults", None)
    if isinstance(defaults, dict):
        config["defaults"].update(defaults)
    config.update(loaded)
    return config


def load_data(source_dir: Path) -> dict[str, Any]:
    """Load site data from YAML files in the _data directory.

    Each ``name.yml``/``name.yaml`` file becomes ``site.data.name``.

    Args:
        source_dir: Root of the blog source.

    Returns:
        Dictionary of data keyed by file stem.
    """
    data_dir = source_dir / DATA_DIR
    data: dict[str, Any] = {}
    if not data_dir.is_dir():
        return data
    for path in sorted([*data_dir.glob("*.yml"), *data_dir.glob("*.yaml")]):
        with open(path, encoding="utf-8") as f:
            try:
                data[path.stem] = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigError(f"Invalid YAML in {path.name}: {exc}") from exc
    return data


def build_site(
    project_root: Path,
    include_drafts: bool = False,
    source: str | None = None,
    destination: str | None = None,
    clean_output: bool = True,
    output_dir_override: Path | None = None,
) -> BuildResult:
    """Build the entire static site.

    Args:
        project_root: Root directory of the project (holds _config.yml).
        include_drafts: Include ``_drafts/`` and unpublished documents.
        source: Override of the configured source directory.
        destination: Override of the configured destination directory.
        clean_output: Whether to wipe the output directory before building.
        output_dir_override: Write here instead of the destination (the
            preview server builds into a staging directory).

    Returns:
        BuildResult describing what was written.

    Raises:
        BuildError: On any configuration, content, layout or template error.
    """
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        raise BuildError(project_root / CONFIG_FILENAME, str(exc), exc) from exc
    if source is not None:
        config["source"] = source
    if destination is not None:
        config["destination"] = destination

    source_dir = (project_root / config["source"]).resolve()
    if not source_dir.is_dir():
        raise BuildError(source_dir, "Source directory does not exist")
    output_dir = output_dir_override or (project_root / config["destination"])
    resolved_output = output_dir.resolve()
    if resolved_output == source_dir or resolved_output in source_dir.parents:
        raise BuildError(output_dir, "Destination must not contain the source directory")
    config["exclude"] = _exclude_patterns(
        config, source_dir, [output_dir, project_root / config["destination"]]
    )

    site = dict(config)
    try:
        site["data"] = load_data(source_dir)
    except ConfigError as exc:
        raise BuildError(source_dir / DATA_DIR, str(exc), exc) from exc

    try:
        content = ContentProcessor(source_dir, config).load(include_drafts=include_drafts)
    except ContentError as exc:
        raise BuildError(exc.source_path or source_dir, str(exc), exc) from exc

    tags = TagCollection.from_posts(content.posts)
    site["posts"] = content.posts
    site["pages"] = content.pages
    site["tags"] = tags
    engine = TemplateEngine(source_dir, site)
    engine.update_collections(content.posts, tags)

    listings = _listing_pages(engine, content, tags, config)
    _check_listing_urls(content, listings, source_dir)

    # Nothing is written until every page has rendered.
    baseurl = normalize_baseurl(config.get("baseurl"))
    rendered: dict[str, str] = {}
    claimed: dict[str, str] = {}
    for doc in content.documents:
        try:
            html = engine.render_document(doc)
        except TemplateSyntaxError as exc:
            raise BuildError(
                doc.path,
                f"Template syntax error in {exc.name or 'layout'} on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(doc.path, _format_error_message(exc), exc) from exc
        rel = output_rel_path(doc.url)
        rendered[rel] = prefix_html_urls(html, baseurl)
        claimed[rel] = f"document '{doc.path.name}'"

    layouts_dir = source_dir / LAYOUTS_DIR
    for listing in listings:
        try:
            html = engine.render_listing(listing.layout, listing.page_vars(), **listing.context)
        except TemplateSyntaxError as exc:
            raise BuildError(
                layouts_dir / f"{listing.layout}.html",
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                exc,
            ) from exc
        except Exception as exc:
            raise BuildError(layouts_dir, _format_error_message(exc), exc) from exc
        rel = output_rel_path(listing.url)
        rendered[rel] = prefix_html_urls(html, baseurl)
        claimed[rel] = f"listing '{listing.title}'"

    # A document at a feed's path replaces the generated feed.
    feeds = {
        filename: text
        for filename, text in create_default_feed_registry().render_all(content, site).items()
        if filename not in claimed
    }
    for filename in feeds:
        claimed[filename] = f"feed '{filename}'"

    static = StaticFiles(source_dir, output_dir, config["exclude"])
    static_files = static.iter_files(skip=[p.path for p in content.pages])
    _check_static_paths(static_files, source_dir, claimed)

    if clean_output:
        ensure_clean_dir(output_dir)
    else:
        output_dir.mkdir(parents=True, exist_ok=True)
    for rel, html in rendered.items():
        _write_file(output_dir / rel, html)
    static.copy(static_files)
    write_feeds(output_dir, feeds)
    # GitHub Pages must serve the tree as-is instead of running Jekyll on it.
    (output_dir / ".nojekyll").write_text("", encoding="utf-8")

    return BuildResult(
        posts=content.posts,
        pages=content.pages,
        listings=listings,
        output_dir=output_dir,
        site=site,
        feeds=list(feeds),
    )


def _exclude_patterns(config: dict[str, Any], source_dir: Path, output_dirs: list[Path]) -> list[str]:
    """Combine default and configured exclude patterns with the output directories."""
    patterns = [*DEFAULT_EXCLUDE, *(config.get("exclude") or [])]
    for output_dir in output_dirs:
        try:
            patterns.append(output_dir.resolve().relative_to(source_dir).as_posix())
        except ValueError:
            pass
    return patterns


def _listing_pages(
    engine: TemplateEngine,
    content: SiteContent,
    tags: TagCollection,
    config: dict[str, Any],
) -> list[ListingPage]:
    """Decide which index and tag pages to generate.

    The index is skipped when a page already claims ``/``. Tag pages are
    only produced when the theme has a ``tag`` layout.
    """
    listings: list[ListingPage] = []
    if not any(page.url == "/" for page in content.pages):
        listings.extend(
            paginate_index(
                content.posts,
                int(config.get("paginate") or 0),
                str(config.get("paginate_path") or "/page:num/"),
                title=str(config.get("title") or ""),
            )
        )
    if engine.has_layout("tag"):
        listings.extend(tag_pages(tags))
    return listings


def _check_listing_urls(content: SiteContent, listings: list[ListingPage], source_dir: Path) -> None:
    """Fail when a generated page would overwrite a document or another listing."""
    claimed = {doc.url: doc.path for doc in content.documents}
    for listing in listings:
        if listing.url in claimed:
            raise BuildError(
                claimed[listing.url],
                f"Output URL '{listing.url}' is also generated for '{listing.title}'",
            )
        claimed[listing.url] = source_dir / LAYOUTS_DIR / f"{listing.layout}.html"


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if isinstance(exc, LayoutError):
        return error_msg
    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TemplateNotFound":
        return f"Template not found: {error_msg}"

    return f"{error_type}: {error_msg}"


def _check_static_paths(static_files: list[Path], source_dir: Path, claimed: dict[str, str]) -> None:
    """Fail when a static file would overwrite a generated output file."""
    for path in static_files:
        rel = path.relative_to(source_dir).as_posix()
        if rel in claimed:
            raise BuildError(path, f"Static file '{rel}' would overwrite the output of {claimed[rel]}")


def output_rel_path(url: str) -> str:
    """Output path of a site URL relative to the destination, in posix form.

    ``/a/b/`` becomes ``a/b/index.html``; a URL whose last segment has an
    extension (``/404.html``) is written as that file.
    """
    rel = url.strip("/")
    last = rel.rsplit("/", 1)[-1]
    if rel and "." in last and not url.endswith("/"):
        return rel
    return f"{rel}/index.html" if rel else "index.html"


def _write_file(target: Path, text: str) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        f.write(text)
