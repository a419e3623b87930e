"""Live development server for Lattice.

Every request is answered from the files on disk: static files first, then
content assets (with optional image transforms), then pages rendered by
rebuilding the site graph. Browsers are reloaded over a websocket whenever
a watched file changes; there is no background rebuild.

Key classes:
- Response: Status, headers and body produced for one request.
- LiveRequestHandler: Maps a request path to a Response.
- DevServer: HTTP server, websocket reload channel and file watcher.
"""

from __future__ import annotations

import asyncio
import json
import logging
import mimetypes
import threading
import time
import traceback
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import websockets
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .asset_resolver import AssetPathResolver
from .build import SiteBuilder
from .config import BuildConfig
from .errors import RenderError
from .html_utils import escape_html, inject_before_body_end
from .images import ImagePresetResolver, PillowImageTransformer
from .utils import is_ignored

logger = logging.getLogger(__name__)

RELOAD_SCRIPT_TEMPLATE = """
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

NOT_FOUND_BODY = "<h1>404 Not Found</h1>"


@dataclass
class Response:
    """A response ready to be written to the client."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def html(cls, status: int, text: str) -> Response:
        return cls(status, {"Content-Type": "text/html; charset=utf-8"}, text.encode("utf-8"))


def _has_extension(path: str) -> bool:
    return "." in path.rstrip("/").rpartition("/")[2]


class LiveRequestHandler:
    """Maps live request paths to responses.

    Attributes:
        builder: Render orchestrator shared with the batch build.
        config: Build configuration.
        reload_script: Snippet injected into every HTML response.
        debug: Whether 500 responses include the error and traceback.
    """

    def __init__(
        self,
        builder: SiteBuilder,
        reload_script: str = "",
        debug: bool = True,
        image_presets: ImagePresetResolver | None = None,
        image_transformer: PillowImageTransformer | None = None,
    ):
        self.builder = builder
        self.config: BuildConfig = builder.config
        self.reload_script = reload_script
        self.debug = debug
        self.static_resolver = AssetPathResolver([self.config.static_dir])
        self.content_resolver = AssetPathResolver(
            [self.config.content_dir], exclude=self._is_hidden_content
        )
        self.image_presets = image_presets or ImagePresetResolver(self.config.image_presets)
        self.image_transformer = image_transformer or PillowImageTransformer(
            self.config.cache_dir
        )

    def _is_hidden_content(self, path: Path) -> bool:
        """Documents and ignored files under the content root are never served."""
        if self.config.is_content_file(path):
            return True
        relative = path.relative_to(self.config.content_dir.resolve())
        return is_ignored(relative, self.config.ignore)

    def handle(self, path: str, query: str = "") -> Response:
        """Produce the response for ``GET path?query``.

        Rendering and construction errors become a 500 response; every
        other outcome is 200, 301 or 404.
        """
        try:
            return self._dispatch(path, query)
        except Exception as exc:
            logger.exception("Error while serving %s", path)
            return self._error_response(exc)

    def _dispatch(self, path: str, query: str) -> Response:
        local = self.builder.strip_base_path(path)

        static = self.static_resolver.resolve(local)
        if static is not None:
            return self._file_response(static)

        asset = self.content_resolver.resolve(local)
        if asset is not None:
            if query:
                params = self.image_presets.resolve(parse_qs(query))
                transformed = self.image_transformer.transform(asset, params) if params else None
                if transformed is not None:
                    return self._file_response(transformed)
            return self._file_response(asset)

        if not path.endswith("/") and not _has_extension(path):
            _, route = self.builder.match_request(f"{path}/")
            if route is None:
                return self._not_found()
            location = f"{path}/?{query}" if query else f"{path}/"
            return Response(301, {"Location": location})

        graph, route = self.builder.match_request(path)
        if route is None:
            return self._not_found()
        html = self.builder.render_route(graph, route)
        return Response.html(200, inject_before_body_end(html, self.reload_script))

    def _file_response(self, path: Path) -> Response:
        content_type, _ = mimetypes.guess_type(path.name)
        return Response(
            200,
            {"Content-Type": content_type or "application/octet-stream"},
            path.read_bytes(),
        )

    def _not_found(self) -> Response:
        return Response.html(404, inject_before_body_end(NOT_FOUND_BODY, self.reload_script))

    def _error_response(self, exc: Exception) -> Response:
        if not self.debug:
            return Response.html(500, "<h1>500 Internal Server Error</h1>")
        original = exc.original_error if isinstance(exc, RenderError) else None
        trace = "".join(traceback.format_exception(original or exc))
        body = (
            "<h1>500 Internal Server Error</h1>"
            f"<p><strong>{escape_html(type(exc).__name__)}</strong>: {escape_html(str(exc))}</p>"
            f"<pre>{escape_html(trace)}</pre>"
        )
        return Response.html(500, inject_before_body_end(body, self.reload_script))


class _LiveHTTPHandler(BaseHTTPRequestHandler):
    """HTTP adapter writing LiveRequestHandler responses."""

    live: LiveRequestHandler

    def do_GET(self):
        self._respond(send_body=True)

    def do_HEAD(self):
        self._respond(send_body=False)

    def _respond(self, send_body: bool) -> None:
        parts = urlsplit(self.path)
        response = self.live.handle(parts.path or "/", parts.query)
        self.send_response(response.status)
        for name, value in response.headers.items():
            self.send_header(name, value)
        self.send_header("Content-Length", str(len(response.body)))
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        self.end_headers()
        if send_body:
            self.wfile.write(response.body)

    def log_message(self, format, *args):  # noqa: A002 - signature from base class
        logger.info("%s - %s", self.address_string(), format % args)


class DevServer:
    """Development server with live reload.

    Attributes:
        config: Build configuration.
        host: Interface to bind.
        http_port: Port for the HTTP server.
        ws_port: Port for the reload websocket.
    """

    def __init__(
        self,
        config: BuildConfig,
        host: str = "127.0.0.1",
        http_port: int | None = None,
        ws_port: int | None = None,
        builder: SiteBuilder | None = None,
    ):
        self.config = config
        self.host = host
        self.http_port = int(http_port or config.port)
        if ws_port is not None:
            self.ws_port = ws_port
        elif http_port is None and config.ws_port is not None:
            self.ws_port = config.ws_port
        else:
            self.ws_port = self.http_port + 1
        self.reload_script = RELOAD_SCRIPT_TEMPLATE.format(ws_port=self.ws_port)
        self.live = LiveRequestHandler(builder or SiteBuilder(config), self.reload_script)
        self._httpd: ThreadingHTTPServer | None = None
        self._observer: Observer | None = None
        self._ws_clients: set = set()
        self._loop = asyncio.new_event_loop()
        self._last_reload_at = 0.0
        self._debounce_seconds = 0.1

    def start(self) -> None:  # pragma: no cover - integration path
        threading.Thread(target=self._start_http, daemon=True).start()
        threading.Thread(target=self._start_ws, daemon=True).start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        if self._observer:
            self._observer.stop()
            self._observer.join()
        if self._httpd is not None:
            self._httpd.shutdown()
        self._loop.call_soon_threadsafe(self._loop.stop)

    def make_handler_class(self) -> type[_LiveHTTPHandler]:
        return type("_BoundLiveHTTPHandler", (_LiveHTTPHandler,), {"live": self.live})

    def _start_http(self) -> None:  # pragma: no cover - integration path
        self._httpd = ThreadingHTTPServer((self.host, self.http_port), self.make_handler_class())
        logger.info("Serving %s at http://%s:%d", self.config.project_root, self.host, self.http_port)
        self._httpd.serve_forever()

    def _start_ws(self) -> None:  # pragma: no cover - integration path
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.ws_port, exc)

    async def _run_ws_server(self) -> None:  # pragma: no cover - integration path
        async with websockets.serve(self._ws_handler, self.host, self.ws_port):
            await asyncio.Future()

    async def _ws_handler(self, websocket):
        self._ws_clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self._ws_clients.discard(websocket)

    def notify_change(self) -> None:
        """Ask connected browsers to reload, debounced."""
        now = time.time()
        if now - self._last_reload_at < self._debounce_seconds:
            return
        self._last_reload_at = now
        self._broadcast_reload()

    def _broadcast_reload(self) -> None:
        message = json.dumps({"type": "reload"})
        asyncio.run_coroutine_threadsafe(self._async_broadcast(message), self._loop)

    async def _async_broadcast(self, message: str) -> None:
        stale = set()
        for ws in list(self._ws_clients):
            try:
                await ws.send(message)
            except Exception:
                stale.add(ws)
        for ws in stale:
            self._ws_clients.discard(ws)

    def watched_paths(self) -> list[Path]:
        candidates = [
            self.config.content_dir,
            self.config.template_dir,
            self.config.static_dir,
        ]
        return [path for path in candidates if path.exists()]

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for path in self.watched_paths():
            observer.schedule(handler, str(path), recursive=True)
        observer.schedule(handler, str(self.config.project_root), recursive=False)
        observer.start()
        self._observer = observer


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory:
            return
        path = Path(event.src_path)
        for ignored in (self.server.config.output_dir, self.server.config.cache_dir):
            if path.is_relative_to(ignored):
                return
        self.server.notify_change()
