"""
=============================================================================
BRIDGE HTTP SERVER
=============================================================================

Ties the engine together: socket server, worker pool, parser, middleware
and router.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   HTTPServer    │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │    Router    │        │
    │    └──────┬───────┘    └──────┬───────┘    └──────────────┘        │
    │           ▼                   ▼                                     │
    │    ┌──────────────┐    ┌──────────────┐                            │
    │    │  Connection  │    │   Handlers   │                            │
    │    └──────────────┘    └──────────────┘                            │
    │                                                                      │
    │           ┌─────────────────────────────────────────┐               │
    │           │  CORS → Logging → Errors → Router       │               │
    │           └─────────────────────────────────────────┘               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts the TCP connection
    2. The connection is queued on the ThreadPool (full queue → 503)
    3. A worker reads ONE request (Content-Length framing)
    4. RequestParser builds an HTTPRequest (malformed → error envelope)
    5. Middleware pipeline + router produce an HTTPResponse
    6. "Connection: close" is set, the response is sent
    7. The connection is closed

Responses that never pass through the middleware (parse errors, read
timeouts, overload) still get the CORS headers, so the plugin can
always read the error.

=============================================================================
"""

import logging
import threading
from typing import Optional, Callable

from .config import BridgeConfig
from .core import SocketServer, Connection, ThreadPool, RequestTooLarge
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, Router,
    error_response, internal_error,
)
from .middleware import MiddlewarePipeline, Middleware, cors_headers


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    Loopback HTTP/1.1 server, one request per connection.

    Usage:
        router = Router()
        router.add_route("/api/health", health, "GET", name="health")

        server = HTTPServer(config, router=router)
        server.use(CORSMiddleware())
        server.run()                      # blocks until SIGINT/SIGTERM

    For tests and embedding, start() runs the server on a background
    thread and returns once the socket is listening:

        server.start()
        host, port = server.address
        ...
        server.stop()
    """

    def __init__(self, config: Optional[BridgeConfig] = None, router: Optional[Router] = None):
        """
        Args:
            config: Server configuration. Validated immediately.
            router: Router to dispatch to. A new one if omitted.
        """
        self.config = config or BridgeConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            max_queue=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._router = router or Router()
        self._middleware = MiddlewarePipeline()

        # middleware.wrap(router.handle), built at startup
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._shutdown_hooks: list[Callable[[], None]] = []

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """
        Add middleware. The first one added is the outermost layer.

        Returns:
            Self for method chaining.
        """
        self._middleware.add(middleware)
        return self

    def on_shutdown(self, hook: Callable[[], None]) -> "HTTPServer":
        """Register a callable run after the worker pool has stopped."""
        self._shutdown_hooks.append(hook)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> tuple:
        """The bound (host, port); useful when the config asked for port 0."""
        return self._socket_server.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, banner: bool = True):
        """
        Start the server and block until it is stopped (Ctrl+C / SIGTERM).

        Raises:
            OSError: If the port is already in use.
        """
        self._prepare()
        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def start(self, timeout: float = 5.0) -> "HTTPServer":
        """
        Run the server on a background thread.

        Returns once the socket is listening.

        Raises:
            RuntimeError: If the server did not come up within timeout
                          (e.g. the port is taken).
        """
        self._thread = threading.Thread(
            target=self.run,
            kwargs={"banner": False},
            name="HTTPServer",
            daemon=True,
        )
        self._thread.start()

        if not self._socket_server.wait_until_ready(timeout):
            raise RuntimeError(
                f"Server failed to start on {self.config.host}:{self.config.port}"
            )
        return self

    def stop(self, timeout: Optional[float] = 10.0):
        """Stop accepting connections and wait for the serving thread."""
        self._socket_server.shutdown()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
            self._thread = None

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _prepare(self):
        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)
        self._thread_pool.start()
        self._running = True
        logger.info(f"Starting media bridge on {self.config.host}:{self.config.port}")

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"║  {self.config.server_name} running")
        print(f"║  http://{host}:{port}")
        print(f"║  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("║  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()
        print("Endpoints:")
        for route in self._router.routes():
            print(f"  {route.method or '*':<7} {route.path:<32} {route.name or ''}")
        print(f"  {'OPTIONS':<7} * (CORS preflight)")
        print()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("mediabridge").setLevel(level)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=30.0)

        for hook in self._shutdown_hooks:
            try:
                hook()
            except Exception as e:
                logger.exception(f"Shutdown hook failed: {e}")

        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Queue a connection on the worker pool; answer 503 if it is full."""
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            block=False,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Worker queue full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """Read, dispatch and answer exactly one request (worker thread)."""
        with conn:
            try:
                raw_request = conn.read_request()
            except TimeoutError:
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                return
            except RequestTooLarge as e:
                self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE, str(e))
                return

            if raw_request is None:
                return

            try:
                request = self._parser.parse(raw_request, conn.address)
            except HTTPParseError as e:
                logger.debug(f"[{conn.id}] Rejected malformed request: {e.message}")
                self._send_error(conn, e.status_code, e.message)
                return

            try:
                response = self._handler(request)
            except Exception as e:
                logger.exception(f"[{conn.id}] Handler error: {e}")
                response = internal_error()
                response.headers.update(cors_headers())

            response.headers["Connection"] = "close"
            conn.send_response(response.to_bytes(self.config.server_name))

    def _send_error(self, conn: Connection, status: int, message: str):
        """
        Send an error envelope for failures outside the middleware
        (parse errors, timeouts, overload). CORS headers are added here
        because the CORS middleware never saw the request.
        """
        response = error_response(message, status)
        response.headers.update(cors_headers())
        response.headers["Connection"] = "close"
        conn.send_response(response.to_bytes(self.config.server_name))
