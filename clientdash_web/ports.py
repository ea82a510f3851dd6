"""
Interfaces the services depend on. Adapters live in clientdash_web.adapters;
tests provide their own doubles.
"""
from __future__ import annotations

from typing import List, Optional, Protocol

from clientdash_web.domain.analysis import ExternalAnalysis
from clientdash_web.domain.models import Client, ClientDraft, RasterFrame


class DomRasterizer(Protocol):
    """A live rendering surface holding the region to export."""

    async def region_exists(self, region_id: str) -> bool: ...

    async def scroll_position(self) -> float: ...

    async def scroll_to(self, y: float) -> None: ...

    async def region_height(self, region_id: str) -> float:
        """max(bounding height, scroll height) in CSS pixels."""
        ...

    async def inline_style(self, region_id: str) -> str: ...

    async def set_inline_style(self, region_id: str, css: str) -> None: ...

    async def capture(
        self,
        region_id: str,
        y_offset: float,
        height: float,
        scale: float,
        background_color: str,
    ) -> RasterFrame: ...


class PdfDocumentBuilder(Protocol):
    """Stateful A4 document builder. Millimetres, origin at the top-left corner."""

    def add_page(self) -> None: ...

    def set_font(self, name: str, size: Optional[float] = None) -> None: ...

    def set_font_size(self, size: float) -> None: ...

    def set_text_color(self, r: int, g: int, b: int) -> None: ...

    def set_line_width(self, width: float) -> None: ...

    def draw_text(self, text: str, x: float, y: float, align: str = "left") -> None: ...

    def draw_line(self, x1: float, y1: float, x2: float, y2: float) -> None: ...

    def add_image(
        self,
        data: bytes,
        fmt: str,
        x: float,
        y: float,
        width: float,
        height: float,
        compression: str = "FAST",
    ) -> None: ...

    def serialize(self) -> bytes: ...


class DownloadSink(Protocol):
    def deliver(self, filename: str, content: bytes) -> None: ...


class ClientRepository(Protocol):
    def list_clients(self) -> List[Client]: ...

    def get_client(self, client_id: str) -> Optional[Client]: ...

    def create_client(self, draft: ClientDraft) -> Client: ...

    def update_client(self, client_id: str, changes: dict) -> Optional[Client]: ...

    def delete_client(self, client_id: str) -> bool: ...

    def list_analyses(self, client_id: str) -> List[ExternalAnalysis]: ...
