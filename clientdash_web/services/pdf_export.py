from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional

from clientdash_web.domain.errors import (
    CaptureError,
    EmptyRegionError,
    ExportCancelledError,
    ExportError,
    RegionNotFoundError,
    SerializationError,
)
from clientdash_web.domain.models import ExportOptions, ExportResult, PageLayout, RasterFrame
from clientdash_web.ports import DomRasterizer, DownloadSink, PdfDocumentBuilder
from clientdash_web.services.page_layout import (
    capture_window,
    export_filename,
    footer_text,
    layout_page,
    page_count,
)

logger = logging.getLogger(__name__)

FOOTER_GRAY = (128, 128, 128)
BLACK = (0, 0, 0)


def capture_style(original: str, options: ExportOptions, last_page: bool) -> str:
    """Inline style applied to the region while one page is captured."""
    parts = [original.strip().rstrip(";")] if original.strip() else []
    parts.append(f"padding: {options.capture_padding_px}px")
    parts.append(f"background-color: {options.background_color}")
    if last_page:
        # keeps the trailing item from being cut at the capture boundary
        parts.append(f"padding-bottom: {options.last_page_padding_px}px")
    return "; ".join(parts) + ";"


@dataclass
class PdfExporter:
    """
    Turns a rendered region of arbitrary height into a paginated A4 PDF.

    Pages are captured strictly in order: every capture moves the shared scroll
    position and restyles the region, and both are put back before returning,
    on success or failure. Callers must not run two exports against the same
    surface at once.
    """
    rasterizer: DomRasterizer
    builder_factory: Callable[[], PdfDocumentBuilder]
    sink: DownloadSink
    options: ExportOptions = field(default_factory=ExportOptions)
    clock: Callable[[], datetime] = datetime.now
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def export(
        self,
        region_id: str,
        file_base_name: str,
        title: str,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> ExportResult:
        if not await self.rasterizer.region_exists(region_id):
            raise RegionNotFoundError(region_id)

        total_height = await self.rasterizer.region_height(region_id)
        num_pages = page_count(total_height, self.options.capture_window_px)
        if num_pages == 0:
            raise EmptyRegionError(region_id)

        generated_on = self.clock().date()
        logger.info("Exporting region %r: %.0fpx over %d page(s)", region_id, total_height, num_pages)

        original_scroll = await self.rasterizer.scroll_position()
        try:
            try:
                doc = self.builder_factory()
                doc.set_font("helvetica")
            except Exception as e:
                raise SerializationError(f"Failed to start PDF document: {e}") from e

            for i in range(num_pages):
                if cancel is not None and cancel.is_set():
                    raise ExportCancelledError(pages_done=i)

                frame = await self._capture_page(region_id, i, num_pages, total_height)
                layout = layout_page(i, total_height, frame.width, frame.height, self.options)
                try:
                    self._assemble_page(doc, i, num_pages, frame, layout, title, generated_on.isoformat())
                except Exception as e:
                    raise SerializationError(f"Failed to assemble page {i + 1}: {e}") from e
        finally:
            await self.rasterizer.scroll_to(original_scroll)

        try:
            content = doc.serialize()
        except Exception as e:
            logger.exception("Serializing PDF for region %r failed", region_id)
            raise SerializationError(f"Failed to serialize PDF: {e}") from e

        filename = export_filename(file_base_name, generated_on)
        self.sink.deliver(filename, content)
        logger.info("Exported %s (%d bytes)", filename, len(content))

        return ExportResult(filename=filename, content=content, page_count=num_pages)

    async def _capture_page(self, region_id: str, index: int, num_pages: int, total_height: float) -> RasterFrame:
        y_offset, height = capture_window(index, total_height, self.options.capture_window_px)

        await self.rasterizer.scroll_to(y_offset)
        await self.sleep(self.options.settle_delay_seconds)

        original_style = await self.rasterizer.inline_style(region_id)
        await self.rasterizer.set_inline_style(
            region_id, capture_style(original_style, self.options, last_page=index == num_pages - 1)
        )
        try:
            return await self.rasterizer.capture(
                region_id,
                y_offset,
                height,
                self.options.scale,
                self.options.background_color,
            )
        except ExportError:
            raise
        except Exception as e:
            logger.exception("Capture of page %d of region %r failed", index + 1, region_id)
            raise CaptureError(index, str(e)) from e
        finally:
            await self.rasterizer.set_inline_style(region_id, original_style)

    def _assemble_page(
        self,
        doc: PdfDocumentBuilder,
        index: int,
        num_pages: int,
        frame: RasterFrame,
        layout: PageLayout,
        title: str,
        generated_on: str,
    ) -> None:
        if index > 0:
            doc.add_page()
        else:
            self._draw_title_block(doc, title, generated_on)
        doc.add_image(
            frame.data,
            "JPEG",
            layout.x_mm,
            layout.y_mm,
            layout.width_mm,
            layout.height_mm,
            compression="FAST",
        )
        self._draw_footer(doc, index, num_pages)

    def _draw_title_block(self, doc: PdfDocumentBuilder, title: str, generated_on: str) -> None:
        m = self.options.margins
        doc.set_font_size(18)
        doc.draw_text(title, m.left, m.top)
        doc.set_font_size(11)
        doc.draw_text(f"Generated on: {generated_on}", m.left, m.top + 10)
        doc.set_line_width(0.5)
        doc.draw_line(m.left, m.top + 15, self.options.page_width_mm - m.right, m.top + 15)

    def _draw_footer(self, doc: PdfDocumentBuilder, index: int, num_pages: int) -> None:
        doc.set_font_size(10)
        doc.set_text_color(*FOOTER_GRAY)
        doc.draw_text(
            footer_text(index, num_pages),
            self.options.page_width_mm / 2,
            self.options.page_height_mm - self.options.margins.bottom / 3,
            align="center",
        )
        doc.set_text_color(*BLACK)
