"""Local preview server for Scribe.

Serves the built site on a fixed localhost port, under the configured
baseurl so links behave as they will on GitHub Pages:
- Injects a live reload script into HTML responses.
- Rejects directory listings and missing paths with a 404 (serving 404.html when present).
- Watches the source tree and triggers rebuilds plus client reloads.

Key classes:
- DevServer: Main class for running the preview server.
- _ReloadHandler: HTTP request handler that injects reload script and enforces 404s.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import asyncio
import functools
import json
import os
import shutil
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .build import CONFIG_FILENAME, build_site, load_config
from .errors import BuildError
from .html_utils import normalize_baseurl


class _ReloadHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that injects live reload script into HTML pages.

    Attributes:
        reload_script: JavaScript that reloads the page on a WebSocket message.
        baseurl: Path prefix the site is mounted under.
    """

    reload_script_template = """
    <script>
    (() => {{
      const ws = new WebSocket('ws://' + location.hostname + ':{ws_port}');
      ws.onmessage = (event) => {{
        const data = JSON.parse(event.data || '{{}}');
        if (data.type === 'reload') location.reload();
      }};
    }})();
    </script>
    """
    reload_script = reload_script_template.format(ws_port=4001)
    baseurl = ""

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):  # pragma: no cover - quiet console
        pass

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _inject(self, content: str) -> str:
        if "</body>" in content:
            return content.replace("</body>", f"{self.reload_script}</body>")
        return content + self.reload_script

    def _send_html(self, status: int, content: str) -> None:
        encoded = self._inject(content).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)

    def _serve_404(self):
        """Serve 404.html (when present) with the reload script and a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            self._send_html(404, error_page.read_text(encoding="utf-8"))
            return None
        self.send_error(404, "File not found")
        return None

    def _strip_baseurl(self) -> str | None:
        """Return the request path relative to the baseurl, or None if outside it."""
        if not self.baseurl:
            return self.path
        if self.path == self.baseurl or self.path.startswith(f"{self.baseurl}/") or self.path.startswith(f"{self.baseurl}?"):
            return self.path[len(self.baseurl) :] or "/"
        return None

    def send_head(self):
        if self.baseurl and self.path in ("/", ""):
            self.send_response(302)
            self.send_header("Location", f"{self.baseurl}/")
            self.end_headers()
            return None
        request_path = self._strip_baseurl()
        if request_path is None:
            return self._serve_404()
        self.path = request_path

        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            index_path = path_obj / "index.html"
            if not index_path.exists():
                return self._serve_404()
            path_obj = index_path
        elif not path_obj.exists():
            return self._serve_404()

        if path_obj.suffix == ".html":
            self._send_html(200, path_obj.read_text(encoding="utf-8"))
            return None
        return super().send_head()


class DevServer:
    """Preview server with live reload.

    Attributes:
        project_root: Root directory of the project.
        config: Site configuration.
        output_dir: Directory where the built site is served from.
        host: Interface the HTTP server binds to.
        http_port: Port for the HTTP server.
        ws_port: Port for WebSocket connections.
    """

    def __init__(self, project_root: Path, http_port: int | None = None, ws_port: int | None = None):
        """Initialize the preview server.

        Args:
            project_root: Root directory of the project.
            http_port: Optional override for the HTTP port.
            ws_port: Optional override for the live reload port.
        """
        self.project_root = project_root
        self.config = load_config(project_root)
        self.source_dir = project_root / self.config.get("source", ".")
        self.output_dir = project_root / self.config.get("destination", "_site")
        self._staging_dir = self.output_dir.with_name(self.output_dir.name + ".staging")
        self.host = str(self.config.get("host") or "127.0.0.1")
        base_http = int(http_port or self.config.get("port") or 4000)
        if ws_port is not None:
            resolved_ws = ws_port
        elif http_port is None and self.config.get("ws_port"):
            resolved_ws = int(self.config["ws_port"])
        else:
            resolved_ws = base_http + 1
        self.ws_port = resolved_ws
        self.http_port = base_http
        self.baseurl = normalize_baseurl(self.config.get("baseurl"))
        self._reload_script = _ReloadHandler.reload_script_template.format(ws_port=self.ws_port)
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._rebuilding = False
        self._last_rebuild_at = 0.0
        self._last_signature: tuple | None = None
        self._debounce_seconds = 0.05
        self._post_build_delay = 0.05

    def start(self, include_drafts: bool = False) -> None:  # pragma: no cover - integration path
        self._build(include_drafts)
        self._last_signature = self._compute_signature()
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher(include_drafts)
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def _build(self, include_drafts: bool) -> None:
        staging = self._prepare_staging_dir()
        build_site(
            self.project_root,
            include_drafts=include_drafts,
            clean_output=True,
            output_dir_override=staging,
        )
        self._activate_staging(staging)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler_cls = type(
            "_ReloadHandlerWithPort",
            (_ReloadHandler,),
            {"reload_script": self._reload_script, "baseurl": self.baseurl},
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer((self.host, self.http_port), handler)
        print(f"Serving {self.output_dir} at http://{self.host}:{self.http_port}{self.baseurl}/")
        httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            print(f"WebSocket server failed to start (port {self.ws_port}): {exc}")
            return

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def _broadcast_reload(self):
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str):
        stale = set()
        for ws in self._ws_clients:
            try:
                await ws.send(message)
            except websockets.ConnectionClosed:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def _start_watcher(self, include_drafts: bool) -> None:
        handler = _ChangeHandler(self, include_drafts)
        observer = Observer()
        observer.schedule(handler, str(self.source_dir), recursive=True)
        if self.source_dir.resolve() != self.project_root.resolve():
            observer.schedule(handler, str(self.project_root), recursive=False)
        observer.start()
        self._observer = observer

    def rebuild(self, include_drafts: bool) -> None:
        now = time.time()
        if self._rebuilding or (now - self._last_rebuild_at) < self._debounce_seconds:
            return
        signature = self._compute_signature()
        if signature is not None and signature == self._last_signature:
            return
        self._rebuilding = True
        try:
            print("Change detected; rebuilding...")
            try:
                self._build(include_drafts)
            except BuildError as exc:
                # Keep serving the last good build until the source is fixed.
                print(f"Build failed: {exc}")
                self._last_signature = signature
                return
            self._last_signature = signature
            if self._post_build_delay:
                time.sleep(self._post_build_delay)
            self._broadcast_reload()
        finally:
            self._rebuilding = False
            self._last_rebuild_at = time.time()

    def _is_ignored(self, path: Path) -> bool:
        resolved = path.resolve()
        for ignored in (self.output_dir, self._staging_dir):
            ignored = ignored.resolve()
            if resolved == ignored or ignored in resolved.parents:
                return True
        try:
            rel = resolved.relative_to(self.project_root.resolve())
        except ValueError:
            return False
        return any(part.startswith(".") or part == "node_modules" for part in rel.parts)

    def _compute_signature(self) -> tuple | None:
        entries: list[tuple] = []
        config_path = self.project_root / CONFIG_FILENAME
        candidates = [config_path] if config_path.exists() else []
        if self.source_dir.exists():
            candidates.extend(sorted(self.source_dir.rglob("*")))
        for path in candidates:
            if path.is_dir() or self._is_ignored(path):
                continue
            try:
                stat = path.stat()
            except OSError:
                continue
            rel = path.relative_to(self.project_root)
            entries.append((rel.as_posix(), stat.st_mtime_ns, stat.st_size))
        return tuple(entries) if entries else None

    def _prepare_staging_dir(self) -> Path:
        staging = self._staging_dir
        if staging.exists():
            shutil.rmtree(staging)
        staging.mkdir(parents=True, exist_ok=True)
        return staging

    def _activate_staging(self, staging: Path) -> None:
        target = self.output_dir
        if target.exists():
            shutil.rmtree(target)
        os.replace(staging, target)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer, include_drafts: bool):
        super().__init__()
        self.server = server
        self.include_drafts = include_drafts

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        if self.server._is_ignored(path):
            return
        self.server.rebuild(self.include_drafts)
