from __future__ import annotations

import asyncio
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from clientdash_web.adapters.download_sinks import DirectoryDownloadSink, MemoryDownloadSink
from clientdash_web.adapters.playwright_rasterizer import PlaywrightRasterizer, browser_page
from clientdash_web.adapters.reportlab_builder import ReportLabDocumentBuilder
from clientdash_web.config.ini_config import BrowserSettings
from clientdash_web.domain.errors import ExportError, ExportInProgressError
from clientdash_web.domain.models import Client, ExportOptions, ExportRequest, ExportResult
from clientdash_web.services.pdf_export import PdfExporter

logger = logging.getLogger(__name__)


def safe_file_base_name(name: str, fallback: str = "client") -> str:
    s = re.sub(r"[^\w\-]+", "_", (name or "").strip(), flags=re.UNICODE).strip("_")
    return s[:80] or fallback


def client_export_request(client: Client, region_id: str) -> ExportRequest:
    return ExportRequest(
        region_id=region_id,
        file_base_name=safe_file_base_name(client.name),
        title=f"{client.name} - Client Report",
    )


@dataclass
class ExportService:
    """
    Use case: render a client's detail page in a headless browser and export
    its report region to PDF.

    One export runs at a time per process: a second request while one is in
    flight fails fast with ExportInProgressError instead of racing on the
    shared page.
    """
    public_base_url: str
    region_id: str
    options: ExportOptions
    browser: BrowserSettings
    downloads: Optional[DirectoryDownloadSink] = None
    clock: Callable[[], datetime] = datetime.now
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def page_url(self, client: Client) -> str:
        return f"{self.public_base_url}/clients/{client.id}?print=1"

    def export_client_report(self, client: Client) -> ExportResult:
        if not self._lock.acquire(blocking=False):
            raise ExportInProgressError("Another export is already running.")
        try:
            request = client_export_request(client, self.region_id)
            url = self.page_url(client)
            started = datetime.now()
            try:
                result = asyncio.run(self._export(url, request))
            except ExportError:
                raise
            except Exception as e:
                logger.exception("Rendering %s for export failed", url)
                raise ExportError(f"Could not render client page: {e}") from e
            logger.info(
                "Client %s exported to %s in %.1fs",
                client.id,
                result.filename,
                (datetime.now() - started).total_seconds(),
            )
        finally:
            self._lock.release()

        if self.downloads is not None:
            self.downloads.deliver(result.filename, result.content)
        return result

    async def _export(self, url: str, request: ExportRequest) -> ExportResult:
        sink = MemoryDownloadSink()
        async with browser_page(url, self.browser, self.options.scale) as page:
            exporter = PdfExporter(
                rasterizer=PlaywrightRasterizer(page, jpeg_quality=self.options.jpeg_quality),
                builder_factory=ReportLabDocumentBuilder,
                sink=sink,
                options=self.options,
                clock=self.clock,
            )
            return await exporter.export(request.region_id, request.file_base_name, request.title)
