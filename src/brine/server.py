"""
Development server for built output, with live reload over Server-Sent
Events.
"""
from __future__ import annotations

import argparse
import hashlib
import http.server
import json
import mimetypes
import os
import pathlib
import re
import threading
import typing
if typing.TYPE_CHECKING:
    from socketserver import _AfInetAddress
    from .core import ReloadEvent


INDEX_FILE = 'index.html'
# Default used by nginx
DEFAULT_MIME_TYPE = 'application/octet-stream'
LIVERELOAD_PATH = '/__livereload'
STYLE_SUFFIXES = {'.css'}

LIVERELOAD_SCRIPT = f'''<script>
(function () {{
  var source = new EventSource('{LIVERELOAD_PATH}');
  source.addEventListener('reload', function () {{ window.location.reload(); }});
  source.addEventListener('refresh', function () {{
    document.querySelectorAll('link[rel="stylesheet"]').forEach(function (link) {{
      var url = new URL(link.href);
      url.searchParams.set('livereload', Date.now());
      link.href = url.href;
    }});
  }});
}})();
</script>
'''
_BODY_CLOSE = re.compile(rb'</body\s*>', re.IGNORECASE)


def inject_livereload(html: bytes) -> bytes:
    """
    Insert the live reload client before the last closing body tag, or at the
    end of documents without one.
    """
    script = LIVERELOAD_SCRIPT.encode('utf-8')
    matches = list(_BODY_CLOSE.finditer(html))
    if not matches:
        return html + script
    pos = matches[-1].start()
    return html[:pos] + script + html[pos:]


class LiveReloadHub:
    """
    The set of connected live reload clients. Clients whose connection fails
    during a push are dropped.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._clients: dict[typing.BinaryIO, threading.Event] = {}

    @property
    def client_count(self):
        with self._lock:
            return len(self._clients)

    def connect(self, wfile: typing.BinaryIO) -> threading.Event:
        """
        Register a client stream. The returned Event is set when the client is
        dropped or the hub closes.
        """
        closed = threading.Event()
        with self._lock:
            self._clients[wfile] = closed
        return closed

    def push(self, kind: str, payload: dict[str, typing.Any]) -> int:
        """
        Send an event to every client, returning how many received it.
        """
        message = f'event: {kind}\ndata: {json.dumps(payload)}\n\n'.encode('utf-8')
        delivered = 0
        with self._lock:
            for wfile, closed in list(self._clients.items()):
                try:
                    wfile.write(message)
                    wfile.flush()
                except (OSError, ValueError):
                    del self._clients[wfile]
                    closed.set()
                else:
                    delivered += 1
        return delivered

    def notify(self, event: ReloadEvent) -> int:
        """
        Push a stylesheet refresh if the event only touched stylesheets, and a
        full page reload otherwise. An event with no paths reloads.
        """
        paths = event.affected_paths
        kind = 'refresh' if paths and all(p.suffix in STYLE_SUFFIXES for p in paths) else 'reload'
        return self.push(kind, {
            'pipeline': event.pipeline_name,
            'paths': [p.as_posix() for p in paths],
            'timestamp': event.timestamp,
        })

    def close(self):
        with self._lock:
            for closed in self._clients.values():
                closed.set()
            self._clients.clear()


class ThreadedHTTPServer(http.server.ThreadingHTTPServer):
    """
    A simple HTTP server that handles each request in a separate thread and
    serves a fixed directory.
    """
    def __init__(self,
                 server_address: _AfInetAddress,
                 directory: str | pathlib.Path = '.',
                 hub: LiveReloadHub | None = None,
                 bind_and_activate: bool = True) -> None:
        super().__init__(server_address, Handler, bind_and_activate)
        self.directory = str(directory)
        self.hub = hub or LiveReloadHub()

    def finish_request(self, request, client_address) -> None:
        self.RequestHandlerClass(request, client_address, self, directory=self.directory)


class Handler(http.server.SimpleHTTPRequestHandler):
    server: ThreadedHTTPServer

    def get_etag(self, file_path):
        """
        Generate an etag for a file based on its path and modification time.
        """
        mtime = os.path.getmtime(file_path)
        file_size = os.path.getsize(file_path)
        file_info = f"{file_size}-{mtime}"
        return hashlib.md5(file_info.encode('utf-8')).hexdigest()

    def do_GET(self):
        if self.path.split('?', 1)[0] == LIVERELOAD_PATH:
            return self.stream_events()
        try:
            file_path = pathlib.Path(self.translate_path(self.path))
            if file_path.is_dir():
                file_path /= INDEX_FILE

            # self.translate_path() should discard any suspicious path
            # components, but double-check that we haven't escaped the
            # directory.
            if not file_path.is_relative_to(self.directory):
                return self.send_error(403, 'Forbidden')

            etag = self.get_etag(file_path)
            if 'If-None-Match' in self.headers and self.headers['If-None-Match'] == etag:
                self.send_response(304)
                self.end_headers()
                return

            mime_type, _enc = mimetypes.guess_type(file_path)
            if mime_type == 'text/html':
                self.send_html(file_path, etag)
            else:
                self.send_file(file_path, mime_type or DEFAULT_MIME_TYPE, etag)
        except FileNotFoundError:
            self.send_error(404, f'File Not Found: {self.path}')

    def send_html(self, file_path: pathlib.Path, etag: str):
        body = inject_livereload(file_path.read_bytes())
        self.send_response(200)
        self.send_header('Content-type', 'text/html')
        self.send_header('Content-Length', str(len(body)))
        self.send_header('ETag', etag)
        self.end_headers()
        self.wfile.write(body)

    def send_file(self, file_path: pathlib.Path, mime_type: str, etag: str):
        with open(file_path, 'rb') as file:
            self.send_response(200)
            self.send_header('Content-type', mime_type)
            self.send_header('ETag', etag)
            self.end_headers()
            # Serve the file in chunks to avoid reading the entire file into
            # memory
            chunk_size = 8192
            while chunk := file.read(chunk_size):
                self.wfile.write(chunk)

    def stream_events(self):
        """
        Hold the connection open as a Server-Sent Events stream until the hub
        drops it.
        """
        self.send_response(200)
        self.send_header('Content-type', 'text/event-stream')
        self.send_header('Cache-Control', 'no-cache')
        self.end_headers()
        self.wfile.write(b'retry: 1000\n\n')
        self.wfile.flush()
        self.server.hub.connect(self.wfile).wait()


class ServerHandle:
    """
    A running development server.
    """
    def __init__(self, httpd: ThreadedHTTPServer):
        self.httpd = httpd
        self.thread = threading.Thread(target=httpd.serve_forever, name='brine-server', daemon=True)

    @property
    def hub(self):
        return self.httpd.hub

    @property
    def port(self) -> int:
        return self.httpd.server_address[1]

    @property
    def url(self):
        return f'http://{self.httpd.server_address[0]}:{self.port}/'

    def notify(self, event: ReloadEvent):
        return self.hub.notify(event)

    def close(self):
        self.hub.close()
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join()


def serve(directory: str | pathlib.Path, port: int, host: str = 'localhost') -> ServerHandle:
    """
    Start serving @directory in a background thread. Use port 0 to pick a
    free port.
    """
    handle = ServerHandle(ThreadedHTTPServer((host, port), directory))
    handle.thread.start()
    print(f'Serving at http://{host}:{handle.port}')
    return handle


def main(arguments: list[str] | None = None):
    parser = argparse.ArgumentParser(description='Serve a directory with live reload support.')
    parser.add_argument('-p', '--port',
                        help='port to serve from',
                        type=int,
                        default=8080)
    parser.add_argument('-d', '--directory',
                        help='directory to serve',
                        type=pathlib.Path,
                        default='.')
    args = parser.parse_args(arguments)
    handle = serve(args.directory, args.port)
    try:
        handle.thread.join()
    except KeyboardInterrupt:
        pass
    finally:
        handle.close()


if __name__ == '__main__':
    main()
