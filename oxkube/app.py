"""Application bootstrap for OxKube.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → auth token → CMDB client → meta-model
              → synchronizer → webhook (uvicorn)

The process must not accept events before the KUBE meta-model exists, so a
failed model bootstrap is fatal.  On SIGINT/SIGTERM the webhook server is
asked to exit and given a bounded grace period to drain in-flight requests
before it is cancelled.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from oxkube.config import load_config
from oxkube.models.config import OxKubeConfig
from oxkube.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog
    import uvicorn

    from oxkube.cmdb.client import CMDBClient
    from oxkube.sync.synchronizer import GraphSynchronizer

_SHUTDOWN_GRACE_SECONDS = 5


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class OxKubeApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or has
    already stopped.
    """

    def __init__(self, config: OxKubeConfig | None = None) -> None:
        self.config: OxKubeConfig | None = config

        self._token: str = ""
        self._cmdb: CMDBClient | None = None
        self._synchronizer: GraphSynchronizer | None = None
        self._rest_server: uvicorn.Server | None = None
        self._rest_task: asyncio.Task[None] | None = None

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            try:
                self.config = load_config()
            except ValueError as exc:
                raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level, process_id=self.config.id)
        self._log = get_logger("app")
        self._log.info("oxkube starting", version=_oxkube_version())

        # --- 3. Authentication token ------------------------------------
        await self._acquire_token()

        # --- 4. CMDB client ---------------------------------------------
        self._start_cmdb_client()

        # --- 5. KUBE meta-model -----------------------------------------
        await self._ensure_model()

        # --- 6. Synchronizer --------------------------------------------
        self._start_synchronizer()

        # --- 7. Webhook -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info(
            "oxkube started",
            port=self.config.consumers.webhook.port,
            path=self.config.consumers.webhook.path,
        )

    async def _acquire_token(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            from oxkube.cmdb.auth import acquire_token

            self._token = await acquire_token(self.config.onix)
            self._log.info("cmdb authentication configured", auth_mode=self.config.onix.auth_mode)
        except Exception as exc:
            raise _ComponentError("auth", exc) from exc

    def _start_cmdb_client(self) -> None:
        assert self._log is not None
        assert self.config is not None
        from oxkube.cmdb.client import CMDBClient

        self._cmdb = CMDBClient(
            self.config.onix.url,
            token=self._token,
            timeout=self.config.onix.timeout_seconds,
        )
        self._log.info("cmdb client started", url=self.config.onix.url)

    async def _ensure_model(self) -> None:
        assert self._log is not None
        assert self._cmdb is not None
        try:
            from oxkube.sync.model import ensure_model

            await ensure_model(self._cmdb)
        except Exception as exc:
            raise _ComponentError("model", exc) from exc

    def _start_synchronizer(self) -> None:
        assert self._log is not None
        assert self._cmdb is not None
        from oxkube.sync.synchronizer import GraphSynchronizer

        self._synchronizer = GraphSynchronizer(self._cmdb)
        self._log.info("synchronizer started")

    async def _start_rest(self) -> None:
        """Start the uvicorn server hosting the webhook."""
        assert self._log is not None
        assert self.config is not None
        assert self._synchronizer is not None
        self._log.debug("starting webhook")
        try:
            import uvicorn

            from oxkube.api import create_app

            fastapi_app = create_app(synchronizer=self._synchronizer, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.consumers.webhook.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            self._rest_task = asyncio.create_task(server.serve(), name="webhook-server")
            self._rest_server = server
            self._log.info("webhook started", port=self.config.consumers.webhook.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("oxkube shutting down")
        self._running = False

        await self._stop_rest()

        if self._cmdb is not None:
            try:
                await self._cmdb.aclose()
            except Exception as exc:
                log.error("component stop raised an error", component="cmdb", error=str(exc))
            self._cmdb = None
        self._synchronizer = None

        log.info("oxkube stopped")

    async def _stop_rest(self) -> None:
        """Ask uvicorn to exit, then cancel it once the grace period elapses."""
        task = self._rest_task
        if task is None:
            return
        log = self._log or get_logger("app")
        if self._rest_server is not None:
            self._rest_server.should_exit = True
        try:
            await asyncio.wait_for(task, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("webhook drain timed out", timeout=_SHUTDOWN_GRACE_SECONDS)
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            log.error("component stop raised an error", component="rest", error=str(exc))
        self._rest_task = None
        self._rest_server = None


def _oxkube_version() -> str:
    from oxkube import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = OxKubeApp()
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_requested.set)

    try:
        await app.start()
        await stop_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
