"""Command-line interface for Scribe.

This module defines the CLI commands using the Click framework.

Commands:
- new: Scaffold a new blog.
- build: Build the site into the destination directory.
- serve: Build, serve locally and rebuild on changes.
- post: Create a new dated post.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from datetime import datetime
from pathlib import Path

import click
import questionary
import yaml

from . import __version__
from .build import load_config
from .content import POSTS_DIR
from .errors import ConfigError
from .utils import extract_date_from_name, slugify

# Starter blog copied by `scribe new`
_SCAFFOLD_DIR = Path(__file__).parent / "scaffold"


@click.group()
@click.version_option(version=__version__, prog_name="scribe")
def cli():
    """Scribe static blog generator."""


@cli.command()
@click.argument("name")
def new(name: str):
    """Scaffold a new blog."""
    target = Path(name).resolve()
    if target.exists() and any(target.iterdir()):
        raise click.ClickException(
            f"Refusing to initialize into non-empty directory: {target}"
        )
    _scaffold(target)
    click.echo(f"New blog created at {target}")


@cli.command()
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished posts")
@click.option("--source", "-s", default=None, help="Source directory (overrides _config.yml)")
@click.option("--destination", "-d", default=None, help="Output directory (overrides _config.yml)")
def build(drafts: bool, source: str | None, destination: str | None):
    """Build the site into the destination directory."""
    project_root = Path.cwd()
    from .build import build_site
    from .errors import BuildError

    try:
        result = build_site(
            project_root,
            include_drafts=drafts,
            source=source,
            destination=destination,
        )
    except BuildError as exc:
        _report_build_error(project_root, exc)
        raise SystemExit(1) from None
    click.echo(
        click.style("Built ", fg="green")
        + f"{len(result.posts)} posts, {len(result.pages)} pages and "
        f"{len(result.listings)} listing pages into {result.output_dir}"
    )


@cli.command()
@click.option("--drafts", is_flag=True, help="Include drafts and unpublished posts")
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port to run the preview server (overrides _config.yml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides _config.yml ws_port)",
)
def serve(drafts: bool, port: int | None, ws_port: int | None):
    """Build the site and serve it locally with live reload."""
    project_root = Path.cwd()
    from .errors import BuildError
    from .server import DevServer

    try:
        server = DevServer(project_root, http_port=port, ws_port=ws_port)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    try:
        server.start(include_drafts=drafts)
    except BuildError as exc:
        _report_build_error(project_root, exc)
        raise SystemExit(1) from None


@cli.command()
@click.argument("title", required=False)
@click.option(
    "--date",
    "date_str",
    default=None,
    help="Publication date as YYYY-MM-DD (defaults to today)",
)
def post(title: str | None, date_str: str | None):
    """Create a new post in _posts/."""
    project_root = Path.cwd()
    try:
        config = load_config(project_root)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    if not title:
        title = questionary.text(
            "Post title:",
            validate=lambda x: len(x.strip()) > 0 or "Title cannot be empty",
            style=_questionary_style(),
        ).ask()
        if title is None:
            raise click.Abort()
    title = title.strip()

    slug = slugify(title)
    if not slug:
        raise click.ClickException(f"Cannot derive a slug from title '{title}'")

    if date_str:
        published = extract_date_from_name(f"{date_str}-x")
        if published is None:
            raise click.ClickException(f"Invalid date '{date_str}', expected YYYY-MM-DD")
    else:
        published = datetime.now()

    posts_dir = project_root / config.get("source", ".") / POSTS_DIR
    existing = _get_existing_slugs(posts_dir)
    if slug in existing:
        raise click.ClickException(
            f"A post with slug '{slug}' already exists: {existing[slug]}"
        )

    filename = f"{published.strftime('%Y-%m-%d')}-{slug}.md"
    target_path = posts_dir / filename
    posts_dir.mkdir(parents=True, exist_ok=True)
    frontmatter = {"title": title, "layout": "post", "tags": []}
    header = yaml.safe_dump(frontmatter, allow_unicode=True, sort_keys=False)
    target_path.write_text(f"---\n{header}---\n\n", encoding="utf-8")

    click.echo(f"Created {target_path.relative_to(project_root)}")


def _get_existing_slugs(posts_dir: Path) -> dict[str, str]:
    """Map the slug of every dated post file to its filename."""
    slugs: dict[str, str] = {}
    if not posts_dir.exists():
        return slugs
    for path in sorted(posts_dir.rglob("*.md")):
        stem = path.stem
        if extract_date_from_name(stem) is None:
            continue
        slugs[slugify(stem[11:])] = path.name
    return slugs


def _report_build_error(project_root: Path, exc) -> None:
    """Print a build failure as a File/Error block on stderr."""
    try:
        shown = exc.source_path.resolve().relative_to(project_root.resolve())
    except ValueError:
        shown = exc.source_path
    click.echo(click.style("Build failed:", fg="red", bold=True), err=True)
    click.echo(click.style(f"  File: {shown}", fg="yellow"), err=True)
    click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)


def _questionary_style():
    """Return consistent questionary style."""
    return questionary.Style(
        [
            ("qmark", "fg:cyan bold"),
            ("question", "bold"),
            ("answer", "fg:cyan"),
        ]
    )


def main():
    """Entry point for the CLI application."""
    cli()


def _scaffold(root: Path) -> None:
    """Copy the starter blog into ``root`` and date its sample post today.

    Args:
        root: Root directory for the new blog.
    """
    today = datetime.now().strftime("%Y-%m-%d")
    for src_path in sorted(_SCAFFOLD_DIR.rglob("*")):
        if src_path.is_dir() or src_path.name == "__init__.py" or "__pycache__" in src_path.parts:
            continue
        rel_path = src_path.relative_to(_SCAFFOLD_DIR)
        if rel_path.parts[0] == POSTS_DIR:
            rel_path = rel_path.with_name(rel_path.name.replace("YYYY-MM-DD", today))
        dest_path = root / rel_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src_path, dest_path)

    config_path = root / "_config.yml"
    text = config_path.read_text(encoding="utf-8")
    config_path.write_text(text.replace("__TITLE__", root.name), encoding="utf-8")

    _try_git_init(root)


def _try_git_init(root: Path) -> None:
    """Initialize a git repository if git is available."""
    if os.environ.get("SCRIBE_SKIP_GIT_INIT") == "1":
        return
    git_bin = shutil.which("git")
    if not git_bin:
        return
    try:
        subprocess.run(
            [git_bin, "init"],
            cwd=root,
            check=True,
            capture_output=True,
        )
    except (OSError, subprocess.CalledProcessError):
        click.echo("git init failed; run it manually if you want version control.", err=True)
