"""HTTP server adapter for the registry API.

Provides a small JSON API using Python's built-in http.server module.
The server runs in a worker thread and handles each connection on its own
thread; each request schedules the matching command coroutine on the
application's event loop and waits for it.

Every CLI command is available as POST /api/<command> with the command's
arguments as a JSON object body. Domain errors map to status codes:

- validation_error: 400
- not_found: 404
- conflict, invalid_state_transition: 409

Supports optional API key authentication via the Authorization header
(Bearer token) or X-API-Key.
"""

import asyncio
import hmac
import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from landtitle.adapters.cli.commands import COMMANDS, CLICommandHandler

logger = logging.getLogger(__name__)

MAX_BODY_SIZE = 1024 * 1024
REQUEST_TIMEOUT_SECONDS = 30

ERROR_STATUS_CODES = {
    "validation_error": 400,
    "not_found": 404,
    "conflict": 409,
    "invalid_state_transition": 409,
}


def make_api_handler(
    commands: CLICommandHandler,
    event_loop: asyncio.AbstractEventLoop,
    api_key: str | None,
    require_auth: bool,
) -> type[BaseHTTPRequestHandler]:
    """Factory to create an APIRequestHandler class bound to its dependencies.

    Args:
        commands: Command handler that executes API calls.
        event_loop: Event loop the command coroutines run on.
        api_key: Optional API key for authentication.
        require_auth: Whether authentication is required.

    Returns:
        An APIRequestHandler class configured with the provided dependencies.
    """

    class APIRequestHandler(BaseHTTPRequestHandler):
        """Routes JSON requests to registry commands."""

        def _check_auth(self) -> bool:
            if not require_auth:
                return True
            if not api_key:
                return False

            auth_header = self.headers.get("Authorization", "")
            if auth_header.startswith("Bearer "):
                return hmac.compare_digest(auth_header[7:], api_key)

            api_key_header = self.headers.get("X-API-Key", "")
            if api_key_header:
                return hmac.compare_digest(api_key_header, api_key)

            return False

        def do_GET(self) -> None:
            """Health check. Always public."""
            if self.path == "/health":
                self._send_json(200, {"status": "healthy"})
            else:
                self._send_json(404, {"status": "error", "message": "Not found"})

        def do_POST(self) -> None:
            if self.path == "/health":
                self._send_json(200, {"status": "healthy"})
                return

            if not self._check_auth():
                self._send_json(
                    401,
                    {
                        "status": "error",
                        "message": "Unauthorized: invalid or missing API key",
                    },
                )
                return

            command = self.path.removeprefix("/api/").strip("/")
            if not self.path.startswith("/api/") or command not in COMMANDS:
                self._send_json(404, {"status": "error", "message": "Not found"})
                return

            try:
                content_length = int(self.headers.get("Content-Length", 0))
            except ValueError:
                content_length = -1
            if content_length < 0:
                self._send_json(
                    400, {"status": "error", "message": "Invalid Content-Length header"}
                )
                return
            if content_length > MAX_BODY_SIZE:
                self._send_json(
                    413, {"status": "error", "message": "Request body too large"}
                )
                return

            body = self.rfile.read(content_length) if content_length > 0 else b""
            try:
                args = json.loads(body) if body else {}
            except json.JSONDecodeError:
                self._send_json(400, {"status": "error", "message": "Invalid JSON body"})
                return
            if not isinstance(args, dict):
                self._send_json(
                    400, {"status": "error", "message": "Body must be a JSON object"}
                )
                return

            future = asyncio.run_coroutine_threadsafe(
                commands.execute(command, args), event_loop
            )
            try:
                result = future.result(timeout=REQUEST_TIMEOUT_SECONDS)
            except ValueError as e:
                self._send_json(400, {"status": "error", "message": str(e)})
                return
            except Exception as e:
                logger.error(f"Error handling API request {command}: {e}", exc_info=True)
                self._send_json(
                    500, {"status": "error", "message": "Internal server error"}
                )
                return

            status_code = 200
            if result.get("status") == "error":
                status_code = ERROR_STATUS_CODES.get(result.get("error"), 400)
            self._send_json(status_code, result)

        def _send_json(self, status_code: int, data: dict[str, Any]) -> None:
            payload = json.dumps(data, default=str).encode()
            self.send_response(status_code)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(payload)))
            self.end_headers()
            self.wfile.write(payload)

        def log_message(self, format: str, *args: Any) -> None:
            logger.debug(f"HTTP {self.client_address[0]}: {format % args}")

    return APIRequestHandler


class RegistryHTTPServer:
    """HTTP server exposing registry commands as JSON endpoints."""

    def __init__(
        self,
        commands: CLICommandHandler,
        host: str = "127.0.0.1",
        port: int = 8080,
        api_key: str | None = None,
        require_auth: bool = False,
    ):
        """Initialize the HTTP server.

        Args:
            commands: Command handler to execute API calls.
            host: Host to listen on.
            port: Port to listen on (0 picks a free port).
            api_key: Optional API key for authentication.
            require_auth: Whether to require authentication.

        Raises:
            ValueError: If require_auth is set without an api_key.
        """
        if require_auth and not api_key:
            raise ValueError("require_auth is enabled but no api_key was provided")

        self.commands = commands
        self.host = host
        self.port = port
        self.api_key = api_key
        self.require_auth = require_auth
        self.server: ThreadingHTTPServer | None = None
        self._server_task: asyncio.Task[None] | None = None

    @property
    def bound_port(self) -> int | None:
        """The port actually bound, once started."""
        return self.server.server_address[1] if self.server else None

    async def start(self) -> None:
        """Start serving in a background thread."""
        handler_class = make_api_handler(
            commands=self.commands,
            event_loop=asyncio.get_running_loop(),
            api_key=self.api_key,
            require_auth=self.require_auth,
        )
        self.server = ThreadingHTTPServer((self.host, self.port), handler_class)
        self._server_task = asyncio.create_task(self._run_server())

        auth = " (with API key authentication)" if self.require_auth else ""
        logger.info(f"Registry HTTP server listening on {self.host}:{self.bound_port}{auth}")

    async def _run_server(self) -> None:
        if not self.server:
            return
        try:
            await asyncio.to_thread(self.server.serve_forever)
        except Exception as e:
            logger.error(f"Registry HTTP server error: {e}", exc_info=True)

    async def wait(self) -> None:
        """Block until the server stops."""
        if self._server_task:
            await self._server_task

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self.server:
            await asyncio.to_thread(self.server.shutdown)
            self.server.server_close()
        if self._server_task:
            self._server_task.cancel()
            try:
                await self._server_task
            except asyncio.CancelledError:
                pass
        logger.info("Registry HTTP server stopped")
