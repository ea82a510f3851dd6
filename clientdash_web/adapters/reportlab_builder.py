from __future__ import annotations

from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

# Short family names accepted by set_font, mapped to the standard PDF fonts.
FONT_NAMES = {
    "helvetica": "Helvetica",
    "times": "Times-Roman",
    "courier": "Courier",
}

IMAGE_FORMATS = {"JPEG", "PNG"}


class ReportLabDocumentBuilder:
    """
    PdfDocumentBuilder over a ReportLab canvas.

    Callers work in millimetres from the top-left corner of an A4 page;
    ReportLab works in points from the bottom-left, so every coordinate is
    flipped here. ReportLab resets the graphics state on each page break, so
    font, colour and line width are tracked and re-applied in add_page().
    """

    def __init__(self, compress: bool = True):
        self._buffer = BytesIO()
        self._page_w, self._page_h = A4
        self._canvas = canvas.Canvas(self._buffer, pagesize=A4, pageCompression=1 if compress else 0)
        self._font = "Helvetica"
        self._font_size = 16.0
        self._text_rgb = (0, 0, 0)
        self._line_width = 0.2
        self._serialized: Optional[bytes] = None
        self._apply_state()

    def _apply_state(self) -> None:
        self._canvas.setFont(self._font, self._font_size)
        r, g, b = self._text_rgb
        self._canvas.setFillColorRGB(r / 255, g / 255, b / 255)
        self._canvas.setLineWidth(self._line_width * mm)

    def _y(self, y_mm: float) -> float:
        return self._page_h - y_mm * mm

    def add_page(self) -> None:
        self._canvas.showPage()
        self._apply_state()

    def set_font(self, name: str, size: Optional[float] = None) -> None:
        self._font = FONT_NAMES.get(name.lower(), name)
        if size is not None:
            self._font_size = size
        self._canvas.setFont(self._font, self._font_size)

    def set_font_size(self, size: float) -> None:
        self._font_size = size
        self._canvas.setFont(self._font, self._font_size)

    def set_text_color(self, r: int, g: int, b: int) -> None:
        self._text_rgb = (r, g, b)
        self._canvas.setFillColorRGB(r / 255, g / 255, b / 255)

    def set_line_width(self, width: float) -> None:
        self._line_width = width
        self._canvas.setLineWidth(width * mm)

    def draw_text(self, text: str, x: float, y: float, align: str = "left") -> None:
        if align == "center":
            self._canvas.drawCentredString(x * mm, self._y(y), text)
        elif align == "right":
            self._canvas.drawRightString(x * mm, self._y(y), text)
        elif align == "left":
            self._canvas.drawString(x * mm, self._y(y), text)
        else:
            raise ValueError(f"Unsupported text alignment: {align!r}")

    def draw_line(self, x1: float, y1: float, x2: float, y2: float) -> None:
        self._canvas.line(x1 * mm, self._y(y1), x2 * mm, self._y(y2))

    def add_image(
        self,
        data: bytes,
        fmt: str,
        x: float,
        y: float,
        width: float,
        height: float,
        compression: str = "FAST",
    ) -> None:
        # JPEG data is embedded as-is, so the compression hint has nothing to tune.
        if fmt.upper() not in IMAGE_FORMATS:
            raise ValueError(f"Unsupported image format: {fmt!r}")
        img = ImageReader(BytesIO(data))
        self._canvas.drawImage(
            img,
            x * mm,
            self._y(y + height),
            width=width * mm,
            height=height * mm,
        )

    def serialize(self) -> bytes:
        if self._serialized is None:
            self._canvas.save()
            self._serialized = self._buffer.getvalue()
        return self._serialized
