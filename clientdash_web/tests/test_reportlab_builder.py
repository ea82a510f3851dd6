from __future__ import annotations

from io import BytesIO

import pytest
from PIL import Image

from clientdash_web.adapters.reportlab_builder import ReportLabDocumentBuilder


def _jpeg(width: int = 300, height: int = 200, color=(30, 60, 90)) -> bytes:
    out = BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="JPEG", quality=95)
    return out.getvalue()


def test_two_page_document_is_a_pdf():
    doc = ReportLabDocumentBuilder(compress=False)
    doc.set_font("helvetica")
    doc.set_font_size(18)
    doc.draw_text("Acme Corp - Client Report", 20, 20)
    doc.set_line_width(0.5)
    doc.draw_line(20, 35, 190, 35)
    doc.add_image(_jpeg(), "JPEG", 20, 45, 170, 113.3)
    doc.set_text_color(128, 128, 128)
    doc.draw_text("Page 1 of 2", 105, 287, align="center")

    doc.add_page()
    doc.add_image(_jpeg(), "JPEG", 20, 20, 170, 113.3)
    doc.draw_text("Page 2 of 2", 105, 287, align="center")

    data = doc.serialize()

    assert data.startswith(b"%PDF-")
    assert b"%%EOF" in data[-32:]
    assert b"/Count 2" in data
    assert b"(Page 1 of 2) Tj" in data
    assert b"(Page 2 of 2) Tj" in data
    assert b"/DCTDecode" in data


def test_serialize_is_idempotent():
    doc = ReportLabDocumentBuilder()
    doc.draw_text("x", 10, 10)

    first = doc.serialize()
    assert doc.serialize() is first


def test_compression_shrinks_text_heavy_pages():
    def build(compress: bool) -> bytes:
        doc = ReportLabDocumentBuilder(compress=compress)
        for i in range(200):
            doc.draw_text(f"Line {i} of repeated filler text", 20, 20 + i)
        return doc.serialize()

    assert len(build(True)) < len(build(False))


def test_unknown_alignment_and_format_are_rejected():
    doc = ReportLabDocumentBuilder()

    with pytest.raises(ValueError):
        doc.draw_text("x", 10, 10, align="justify")
    with pytest.raises(ValueError):
        doc.add_image(b"GIF89a", "GIF", 0, 0, 10, 10)
