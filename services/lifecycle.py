"""
Server Lifecycle Manager.

Owns the listening socket of the billing service and coordinates:
- binding (including ephemeral ports) and URL resolution
- liveness/readiness status shared with the probe routes
- the accept loop and the termination signal watcher
- graceful, idempotent shutdown with a bounded drain
"""

import asyncio
import ipaddress
import logging
import signal
import socket
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from aiohttp import web
from yarl import URL

from services.status import ServerStatus, StatusGuard

# Deadline for in-flight requests to finish once shutdown starts
DRAIN_TIMEOUT = 35.0

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class LifecycleError(Exception):
    """Base class for server lifecycle failures."""


class ListenError(LifecycleError):
    """The server could not bind its listening socket."""


class ServeError(LifecycleError):
    """The accept loop stopped for a reason other than shutdown."""


class DrainTimeoutError(LifecycleError):
    """In-flight connections were still open when the drain deadline expired."""


class LifecycleManager:
    """
    Runs an aiohttp application on a socket it owns.

    serve() blocks until the run completes. Two background tasks may report
    the outcome: the accept loop and the signal watcher. Whichever reports
    first decides what serve() returns or raises.
    """

    def __init__(
        self,
        app: web.Application,
        host: str = '0.0.0.0',
        port: int = 8204,
        status: Optional[StatusGuard] = None,
        logger: Optional[logging.Logger] = None,
        drain_timeout: float = DRAIN_TIMEOUT,
        signals: Iterable[signal.Signals] = TERMINATION_SIGNALS
    ):
        """
        Initialize the lifecycle manager.

        Args:
            app: Application whose requests are served
            host: Address to bind; an unspecified address listens everywhere
            port: Port to bind; 0 lets the operating system pick one
            status: Status guard shared with the probe routes
            logger: Logger for lifecycle events
            drain_timeout: Seconds in-flight requests get during shutdown
            signals: Process signals that trigger a graceful shutdown
        """
        self.app = app
        self.host = host
        self.port = port
        self.status = status or StatusGuard()
        self.logger = logger or logging.getLogger(__name__)
        self.drain_timeout = drain_timeout
        self.signals = tuple(signals)

        self._runner: Optional[web.AppRunner] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._done: Optional[asyncio.Future] = None
        self._started: Optional[asyncio.Event] = None
        self._signalled: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task] = []
        self._shutdown_task: Optional[asyncio.Task] = None
        self._closing = False
        self._released = False

    async def serve(self) -> None:
        """
        Bind the socket and serve requests until shutdown.

        Raises:
            ListenError: If the socket cannot be bound
            ServeError: If the accept loop fails
            DrainTimeoutError: If shutdown could not drain in time
        """
        if self._done is not None:
            raise RuntimeError("server has already been started")
        if self._shutdown_task is not None:
            raise RuntimeError("server has already been shut down")

        loop = asyncio.get_running_loop()
        self._done = loop.create_future()
        self._started = asyncio.Event()

        try:
            sock = self._listen()
            self._runner = web.AppRunner(
                self.app,
                handle_signals=False,
                shutdown_timeout=self.drain_timeout
            )
            try:
                await self._runner.setup()
                self._server = await loop.create_server(self._runner.server, sock=sock)
            except OSError as e:
                sock.close()
                raise ListenError(f"could not serve on {self.host}:{self.port}: {e}") from e
            except BaseException:
                sock.close()
                raise
        finally:
            self._started.set()

        self._signalled = asyncio.Event()
        try:
            if self._closing:
                # Shutdown was requested while the socket was being bound
                self._complete(await self._shutdown_outcome())
            else:
                # Signals are handled before the server reports ready
                self._install_signal_handlers(loop)
                self.status.bind(
                    self._resolve_url(sock.getsockname()), datetime.now(timezone.utc)
                )
                self.set_status(True, True)

                self._tasks = [
                    asyncio.create_task(self._serve_forever(), name='billing-serve'),
                    asyncio.create_task(self._watch_signals(), name='billing-signals'),
                ]

                self.logger.info(f"Billing service started at {self.url}")
            error = await self._done
        finally:
            await self._teardown(loop)

        if error is not None:
            raise error

    def run(self) -> None:
        """Blocking wrapper around serve() for synchronous callers."""
        asyncio.run(self.serve())

    async def shutdown(self) -> None:
        """
        Shut the server down gracefully.

        Safe to call more than once and from several tasks at the same
        time: every caller waits for the same shutdown sequence.

        Raises:
            DrainTimeoutError: If connections had to be force closed
        """
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.ensure_future(self._shutdown())
        await asyncio.shield(self._shutdown_task)

    def set_status(self, healthy: bool, ready: bool) -> None:
        """Set the liveness and readiness flags reported by the probes."""
        self.status.set(healthy, ready)
        self.logger.debug(f"Server status set: healthy={healthy} ready={ready}")

    def get_status(self) -> ServerStatus:
        """Snapshot of the current server status."""
        return self.status.get()

    @property
    def url(self) -> str:
        """Endpoint the server is reachable at; only valid once bound."""
        current = self.status.get().url
        if current is None:
            raise RuntimeError("server socket is not bound")
        return str(current)

    def _listen(self) -> socket.socket:
        """Open the listening socket on the configured address."""
        family = socket.AF_INET6 if ':' in self.host else socket.AF_INET
        try:
            sock = socket.create_server((self.host, self.port), family=family)
        except OSError as e:
            raise ListenError(
                f"could not listen on bind addr {self.host}:{self.port}: {e}"
            ) from e
        sock.setblocking(False)
        return sock

    def _resolve_url(self, sockname) -> URL:
        """
        Compute the externally reported URL from the bound address.

        "Listen everywhere" addresses are reported as loopback.
        """
        host, port = sockname[0], sockname[1]
        try:
            address = ipaddress.ip_address(host or '0.0.0.0')
        except ValueError:
            return URL.build(scheme='http', host=host, port=port)

        if address.is_unspecified:
            host = '::1' if address.version == 6 else '127.0.0.1'
        return URL.build(scheme='http', host=host, port=port)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self.signals:
            loop.add_signal_handler(sig, self._on_signal, sig)

    def _remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in self.signals:
            loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        self.logger.info(f"Received signal {sig.name}, initiating shutdown...")
        self._signalled.set()

    async def _serve_forever(self) -> None:
        """Accept loop task; reports either its failure or the shutdown outcome."""
        try:
            await self._server.serve_forever()
        except asyncio.CancelledError:
            # Closing the server cancels serve_forever from the inside
            if not self._closing:
                raise
        except Exception as e:
            # A server closed before its accept loop started raises here
            if not self._closing:
                error = ServeError(f"billing service stopped serving: {e}")
                error.__cause__ = e
                self._complete(error)
                return

        self._complete(await self._shutdown_outcome())

    async def _watch_signals(self) -> None:
        """Signal watcher task; shuts the server down on the first signal."""
        await self._signalled.wait()
        self._complete(await self._shutdown_outcome())

    async def _shutdown_outcome(self) -> Optional[LifecycleError]:
        try:
            await self.shutdown()
        except LifecycleError as e:
            return e
        except Exception as e:
            error = LifecycleError(f"shutdown failed: {e}")
            error.__cause__ = e
            return error
        return None

    def _complete(self, error: Optional[LifecycleError]) -> None:
        """Resolve the run outcome; only the first resolution counts."""
        if self._done is None or self._done.done():
            if error is not None:
                self.logger.debug(f"Discarding lifecycle result after completion: {error}")
            return
        self._done.set_result(error)

    async def _shutdown(self) -> None:
        self.logger.info("Gracefully shutting down billing service")
        self._closing = True
        self.set_status(False, False)

        if self._started is not None:
            # serve() may still be binding the socket
            await self._started.wait()
        if self._server is None:
            return

        # Stop accepting new connections
        self._server.close()

        error = None
        try:
            await self._drain()
        except DrainTimeoutError as e:
            error = e
            self.logger.warning(str(e))

        await self._release()
        self.logger.debug("Billing service has shut down")

        if error is not None:
            raise error

    async def _drain(self) -> None:
        """Let in-flight requests finish, force closing them at the deadline."""
        handler = self._runner.server
        if handler is None:
            return

        try:
            await asyncio.wait_for(handler.shutdown(None), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            remaining = list(handler.connections)
            for conn in remaining:
                conn.force_close()
            raise DrainTimeoutError(
                f"drain deadline of {self.drain_timeout}s expired, "
                f"force closed {len(remaining)} connection(s)"
            ) from None

    async def _release(self) -> None:
        """Close the listening socket and clean up the runner, once."""
        if self._released:
            return
        self._released = True

        if self._server is not None:
            self._server.close()
        if self._runner is not None:
            await self._runner.cleanup()

    async def _teardown(self, loop: asyncio.AbstractEventLoop) -> None:
        """Stop background tasks and release the socket after the run completes."""
        self._remove_signal_handlers(loop)

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        if self._shutdown_task is None:
            # Accept loop failed or serve() was cancelled before any shutdown
            self.set_status(False, False)
            self._closing = True
        await self._release()

        for handler in self.logger.handlers:
            handler.flush()
