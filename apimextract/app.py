"""Application bootstrap for apimextract.

Wires all components in dependency order and runs one extraction.
Startup order: config -> logging -> resource graph -> management client
              -> lister -> inclusion filter -> writer

The run either completes with a full export tree or exits non-zero with a
diagnostic naming the failing resource.  SIGINT/SIGTERM cancel the run.
"""

from __future__ import annotations

import asyncio
import signal
import time
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING, Any

import httpx

from apimextract.client.http import ManagementClient
from apimextract.client.listing import ResourceLister
from apimextract.config import load_config
from apimextract.errors import ExtractionFailedError, ExtractorError
from apimextract.extractor.pipeline import ExtractionContext, run_extraction
from apimextract.filter.inclusion import InclusionFilter
from apimextract.graph.resource_graph import ResourceGraph, default_graph
from apimextract.models.config import ExtractorConfig
from apimextract.observability.logging import get_logger, setup_logging
from apimextract.observability.metrics import write_metrics_file
from apimextract.writer.filesystem import ResourceWriter

if TYPE_CHECKING:
    import structlog

EXIT_FAILURE = 1
EXIT_CANCELLED = 130


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class ExtractorApp:
    """Application root.  Owns every component of one extraction run.

    ``stop()`` is safe to call on an app that was never started.
    """

    def __init__(
        self,
        config: ExtractorConfig | None = None,
        graph: ResourceGraph | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **overrides: Any,
    ) -> None:
        self.config = config
        self._overrides = overrides
        self._graph = graph
        self._transport = transport
        self._client: ManagementClient | None = None
        self._lister: ResourceLister | None = None
        self.run_id: str | None = None
        self._context: ExtractionContext | None = None
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Build every component.  Raises _ComponentError on failure."""
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            try:
                self.config = load_config(**self._overrides)
            except ExtractorError as exc:
                raise _ComponentError("config", exc) from exc
        config = self.config

        # --- 2. Logging -------------------------------------------------
        self.run_id = setup_logging(config.log.level, service=config.service.service_url)
        self._log = get_logger("app")
        self._log.info("apimextract starting", version=_apimextract_version())

        # --- 3. Resource graph -------------------------------------------
        try:
            graph = self._graph or default_graph()
        except ExtractorError as exc:
            raise _ComponentError("graph", exc) from exc

        # --- 4. Management client and lister ------------------------------
        self._client = ManagementClient(config.service, config.http, transport=self._transport)
        self._lister = lister = ResourceLister(self._client)

        # --- 5. Inclusion filter ----------------------------------------
        inclusion = InclusionFilter.from_path(config.configuration_path, graph)
        try:
            await inclusion.load()
        except ExtractorError as exc:
            raise _ComponentError("configuration", exc) from exc

        # --- 6. Writer --------------------------------------------------
        writer = ResourceWriter(config.output_dir)

        self._context = ExtractionContext(graph=graph, lister=lister, inclusion=inclusion, writer=writer)

    # ------------------------------------------------------------------
    # Run / shutdown
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run the extraction.  Raises ExtractionFailedError on the first failure."""
        assert self._context is not None
        assert self._log is not None
        started = time.monotonic()
        self._log.info("Running extractor...", output_dir=str(self._context.writer.output_dir))
        await run_extraction(self._context)
        self._log.info("Extractor completed successfully.", duration_seconds=round(time.monotonic() - started, 2))

    async def stop(self) -> None:
        """Cancel in-flight tier support checks, close the client and write the metrics file."""
        if self._lister is not None:
            self._lister.cancel_pending()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self.config is not None and self.config.metrics_file is not None:
            write_metrics_file(self.config.metrics_file)


def _apimextract_version() -> str:
    try:
        return version("apimextract")
    except PackageNotFoundError:
        return "unknown"


async def main(**overrides: Any) -> None:
    """Create the app, run one extraction, map the outcome to an exit code."""
    app = ExtractorApp(**overrides)
    log = get_logger("app")
    loop = asyncio.get_running_loop()

    try:
        await app.start()
        run_task = asyncio.create_task(app.run(), name="extraction")
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, run_task.cancel)
        await run_task
    except _ComponentError as exc:
        log.critical("fatal startup error", component=exc.component, error=str(exc.cause))
        raise SystemExit(EXIT_FAILURE) from exc
    except ExtractionFailedError as exc:
        log.critical(
            "extraction failed",
            kind=exc.kind.key,
            name=str(exc.name) if exc.name is not None else None,
            ancestors=str(exc.ancestors),
            resource=exc.location,
            error=str(exc.cause),
            exc_info=exc,
        )
        raise SystemExit(EXIT_FAILURE) from exc
    except asyncio.CancelledError:
        log.warning("extraction cancelled, output tree is incomplete")
        raise SystemExit(EXIT_CANCELLED) from None
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        await app.stop()
