import subprocess
from datetime import datetime

import yaml
from click.testing import CliRunner

from scribe import __version__
from scribe.build import BuildResult
from scribe.cli import cli

NO_GIT = {"SCRIBE_SKIP_GIT_INIT": "1"}


def test_cli_new_scaffolds_blog(tmp_path):
    runner = CliRunner()
    target = tmp_path / "myblog"
    result = runner.invoke(cli, ["new", str(target)], env=NO_GIT)
    assert result.exit_code == 0
    assert "New blog created" in result.output

    today = datetime.now().strftime("%Y-%m-%d")
    assert (target / "_posts" / f"{today}-welcome-to-scribe.md").exists()
    assert (target / "_layouts" / "post.html").exists()
    assert (target / "_layouts" / "index.html").exists()
    assert (target / "_includes" / "head.html").exists()
    assert (target / "assets" / "css" / "site.css").exists()
    assert (target / ".gitignore").exists()
    config = yaml.safe_load((target / "_config.yml").read_text(encoding="utf-8"))
    assert config["title"] == "myblog"

    # fails on non-empty directory
    result = runner.invoke(cli, ["new", str(target)], env=NO_GIT)
    assert result.exit_code != 0
    assert "non-empty directory" in result.output


def test_cli_build_scaffolded_blog(tmp_path, monkeypatch):
    runner = CliRunner()
    project = tmp_path / "myblog"
    runner.invoke(cli, ["new", str(project)], env=NO_GIT)
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Built 1 posts, 2 pages and 2 listing pages" in result.output

    site = project / "_site"
    assert (site / "index.html").exists()
    assert (site / "about" / "index.html").exists()
    assert (site / "404.html").exists()
    assert (site / "tags" / "meta" / "index.html").exists()
    assert (site / "assets" / "css" / "site.css").exists()
    assert (site / ".nojekyll").exists()
    assert not (site / ".gitignore").exists()
    index = (site / "index.html").read_text(encoding="utf-8")
    assert "Welcome to Scribe" in index
    assert "feed.xml" not in index
    assert not (site / "feed.xml").exists()

    config = project / "_config.yml"
    config.write_text(config.read_text(encoding="utf-8").replace('\nurl: ""', '\nurl: "https://me.github.io"'), encoding="utf-8")
    assert runner.invoke(cli, ["build"], catch_exceptions=False).exit_code == 0
    assert 'href="/feed.xml"' in (site / "index.html").read_text(encoding="utf-8")
    assert (site / "feed.xml").exists()


def test_cli_build_reports_errors(tmp_path, monkeypatch):
    runner = CliRunner()
    project = tmp_path / "myblog"
    runner.invoke(cli, ["new", str(project)], env=NO_GIT)
    (project / "_posts" / "2025-10-14-broken.md").write_text("---\ntitle: Broken\n", encoding="utf-8")
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 1
    assert "Build failed:" in result.output
    assert "File: _posts/2025-10-14-broken.md" in result.output
    assert "Error: Unterminated front-matter block" in result.output


def test_cli_build_reports_undecodable_post(tmp_path, monkeypatch):
    runner = CliRunner()
    project = tmp_path / "myblog"
    runner.invoke(cli, ["new", str(project)], env=NO_GIT)
    (project / "_posts" / "2025-10-14-binary.md").write_bytes(b"---\ntitle: Binary\n---\n\xff\xfe\n")
    monkeypatch.chdir(project)

    result = runner.invoke(cli, ["build"])
    assert result.exit_code == 1
    assert isinstance(result.exception, SystemExit)
    assert "File: _posts/2025-10-14-binary.md" in result.output
    assert "Error: File is not valid UTF-8" in result.output


def test_cli_build_passes_options(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)
    called = {}

    def fake_build_site(root, include_drafts=False, source=None, destination=None):
        called.update(root=root, drafts=include_drafts, source=source, destination=destination)
        out = root / destination
        return BuildResult(posts=[], pages=[], listings=[], output_dir=out, site={})

    monkeypatch.setattr("scribe.build.build_site", fake_build_site)
    result = runner.invoke(
        cli, ["build", "--drafts", "-s", "blog", "-d", "public"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"root": tmp_path, "drafts": True, "source": "blog", "destination": "public"}
    assert "Built 0 posts, 0 pages and 0 listing pages" in result.output


def test_cli_serve(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)
    called = {}

    class DummyServer:
        def __init__(self, root, http_port=None, ws_port=None):
            called["port"] = http_port
            called["ws_port"] = ws_port

        def start(self, include_drafts=False):
            called["drafts"] = include_drafts

    monkeypatch.setattr("scribe.server.DevServer", DummyServer)
    result = runner.invoke(
        cli, ["serve", "--drafts", "--port", "5050", "--ws-port", "5051"], catch_exceptions=False
    )
    assert result.exit_code == 0
    assert called == {"port": 5050, "ws_port": 5051, "drafts": True}


def test_cli_serve_reports_bad_config(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)
    (tmp_path / "_config.yml").write_text("- just\n- a list\n", encoding="utf-8")

    result = runner.invoke(cli, ["serve"])
    assert result.exit_code == 1
    assert "must contain a mapping" in result.output


def test_cli_post_creates_file(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["post", "Hello, World!", "--date", "2025-10-14"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "Created _posts/2025-10-14-hello-world.md" in result.output

    text = (tmp_path / "_posts" / "2025-10-14-hello-world.md").read_text(encoding="utf-8")
    assert text.startswith("---\n")
    header = yaml.safe_load(text.split("---\n")[1])
    assert header == {"title": "Hello, World!", "layout": "post", "tags": []}

    duplicate = runner.invoke(cli, ["post", "hello world", "--date", "2025-11-01"])
    assert duplicate.exit_code != 0
    assert "already exists: 2025-10-14-hello-world.md" in duplicate.output


def test_cli_post_validates_input(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)

    result = runner.invoke(cli, ["post", "Title", "--date", "2025-02-30"])
    assert result.exit_code != 0
    assert "Invalid date '2025-02-30'" in result.output

    result = runner.invoke(cli, ["post", "???"])
    assert result.exit_code != 0
    assert "Cannot derive a slug" in result.output


def test_cli_post_prompts_for_title(tmp_path, monkeypatch):
    runner = CliRunner()
    monkeypatch.chdir(tmp_path)
    answers = iter(["Prompted Post", None])

    def mock_text(*args, **kwargs):
        class MockQuestion:
            def ask(self):
                return next(answers)

        return MockQuestion()

    monkeypatch.setattr("scribe.cli.questionary.text", mock_text)
    result = runner.invoke(cli, ["post"], catch_exceptions=False)
    assert result.exit_code == 0
    today = datetime.now().strftime("%Y-%m-%d")
    assert (tmp_path / "_posts" / f"{today}-prompted-post.md").exists()

    # Ctrl-C at the prompt aborts
    result = runner.invoke(cli, ["post"])
    assert result.exit_code == 1
    assert "Aborted" in result.output


def test_cli_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_module_main_entrypoint():
    from scribe.__main__ import main

    assert callable(main)


def test_main_invokes_cli(monkeypatch):
    import scribe.cli as cli_mod

    called = {}

    def fake_cli():
        called["ran"] = True

    monkeypatch.setattr(cli_mod, "cli", fake_cli)
    cli_mod.main()
    assert called["ran"]


def test_try_git_init(monkeypatch, tmp_path):
    from scribe.cli import _try_git_init

    called = {}
    monkeypatch.delenv("SCRIBE_SKIP_GIT_INIT", raising=False)
    monkeypatch.setattr("scribe.cli.shutil.which", lambda cmd: "/usr/bin/git")

    def fake_run(cmd, cwd=None, check=None, capture_output=None):
        called["cmd"] = cmd
        called["cwd"] = cwd
        return subprocess.CompletedProcess(cmd, 0)

    monkeypatch.setattr("scribe.cli.subprocess.run", fake_run)
    _try_git_init(tmp_path)
    assert called["cmd"] == ["/usr/bin/git", "init"]
    assert called["cwd"] == tmp_path


def test_try_git_init_skips_and_survives_failure(monkeypatch, tmp_path, capsys):
    from scribe.cli import _try_git_init

    monkeypatch.setenv("SCRIBE_SKIP_GIT_INIT", "1")
    monkeypatch.setattr("scribe.cli.shutil.which", lambda cmd: _unexpected_git_lookup())
    _try_git_init(tmp_path)

    monkeypatch.delenv("SCRIBE_SKIP_GIT_INIT")
    monkeypatch.setattr("scribe.cli.shutil.which", lambda cmd: None)
    _try_git_init(tmp_path)

    monkeypatch.setattr("scribe.cli.shutil.which", lambda cmd: "/usr/bin/git")

    def fake_run(cmd, cwd=None, check=None, capture_output=None):
        raise subprocess.CalledProcessError(128, cmd)

    monkeypatch.setattr("scribe.cli.subprocess.run", fake_run)
    _try_git_init(tmp_path)
    assert "git init failed" in capsys.readouterr().err


def _unexpected_git_lookup():
    raise AssertionError("git lookup should be skipped")


def test_get_existing_slugs(tmp_path):
    from scribe.cli import _get_existing_slugs

    posts = tmp_path / "_posts"
    posts.mkdir()
    (posts / "2024-01-01-first-post.md").write_text("x", encoding="utf-8")
    (posts / "undated.md").write_text("x", encoding="utf-8")
    assert _get_existing_slugs(posts) == {"first-post": "2024-01-01-first-post.md"}
    assert _get_existing_slugs(tmp_path / "missing") == {}
