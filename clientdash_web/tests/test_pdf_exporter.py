from __future__ import annotations

import asyncio
from datetime import datetime
from typing import List, Optional

import pytest

from clientdash_web.domain.errors import (
    CaptureError,
    EmptyRegionError,
    ExportCancelledError,
    RegionNotFoundError,
    SerializationError,
)
from clientdash_web.domain.models import ExportOptions, RasterFrame
from clientdash_web.services.pdf_export import PdfExporter

ORIGINAL_STYLE = "color: red; margin: 4px;"


# -----------------------------
# Test doubles
# -----------------------------
class FakeRasterizer:
    def __init__(
        self,
        height: float = 3000,
        scroll: float = 0.0,
        exists: bool = True,
        fail_on_page: Optional[int] = None,
        css_width: int = 1000,
    ):
        self.height = height
        self.scroll = scroll
        self.exists = exists
        self.fail_on_page = fail_on_page
        self.css_width = css_width
        self.style = ORIGINAL_STYLE
        self.scrolls: List[float] = []
        self.captures: List[tuple] = []
        self.styles_during_capture: List[str] = []

    async def region_exists(self, region_id):
        return self.exists

    async def scroll_position(self):
        return self.scroll

    async def scroll_to(self, y):
        self.scroll = y
        self.scrolls.append(y)

    async def region_height(self, region_id):
        return self.height

    async def inline_style(self, region_id):
        return self.style

    async def set_inline_style(self, region_id, css):
        self.style = css

    async def capture(self, region_id, y_offset, height, scale, background_color):
        index = len(self.captures)
        self.captures.append((y_offset, height, scale, background_color))
        self.styles_during_capture.append(self.style)
        if self.fail_on_page == index:
            raise RuntimeError("tainted canvas")
        return RasterFrame(
            data=b"jpeg-%d" % index,
            width=int(self.css_width * scale),
            height=int(height * scale),
        )


class RecordingBuilder:
    def __init__(self, fail_serialize: bool = False):
        self.pages: List[list] = [[]]
        self.fail_serialize = fail_serialize

    def _op(self, *op):
        self.pages[-1].append(op)

    def add_page(self):
        self.pages.append([])

    def set_font(self, name, size=None):
        self._op("font", name, size)

    def set_font_size(self, size):
        self._op("font_size", size)

    def set_text_color(self, r, g, b):
        self._op("color", (r, g, b))

    def set_line_width(self, width):
        self._op("line_width", width)

    def draw_text(self, text, x, y, align="left"):
        self._op("text", text, x, y, align)

    def draw_line(self, x1, y1, x2, y2):
        self._op("line", x1, y1, x2, y2)

    def add_image(self, data, fmt, x, y, width, height, compression="FAST"):
        self._op("image", data, fmt, x, y, width, height)

    def serialize(self):
        if self.fail_serialize:
            raise MemoryError("out of memory")
        return b"%PDF-fake"

    def texts(self, page: int) -> List[str]:
        return [op[1] for op in self.pages[page] if op[0] == "text"]

    def images(self, page: int) -> List[tuple]:
        return [op for op in self.pages[page] if op[0] == "image"]


class FailingTextBuilder(RecordingBuilder):
    def __init__(self, failing_text: str):
        super().__init__()
        self.failing_text = failing_text

    def draw_text(self, text, x, y, align="left"):
        if text == self.failing_text:
            raise UnicodeEncodeError("latin-1", text, 0, 1, "ordinal not in range(256)")
        super().draw_text(text, x, y, align)


class FakeSink:
    def __init__(self):
        self.deliveries: List[tuple] = []

    def deliver(self, filename, content):
        self.deliveries.append((filename, content))


async def no_sleep(seconds):
    return None


# -----------------------------
# Helpers
# -----------------------------
FIXED_NOW = datetime(2024, 3, 15, 9, 30, 0)


def make_exporter(rasterizer, builder=None, sink=None, sleep=no_sleep, options=None):
    builder = builder or RecordingBuilder()
    sink = sink or FakeSink()
    exporter = PdfExporter(
        rasterizer=rasterizer,
        builder_factory=lambda: builder,
        sink=sink,
        options=options or ExportOptions(),
        clock=lambda: FIXED_NOW,
        sleep=sleep,
    )
    return exporter, builder, sink


def run_export(exporter, **kwargs):
    return asyncio.run(exporter.export("report-region", "report", "Quarterly Review", **kwargs))


# -----------------------------
# Pagination
# -----------------------------
@pytest.mark.parametrize(
    "height, pages",
    [(1, 1), (1200, 1), (1201, 2), (2400, 2), (2401, 3), (3000, 3)],
)
def test_page_count_matches_ceil_of_height_over_window(height, pages):
    rasterizer = FakeRasterizer(height=height)
    exporter, builder, _ = make_exporter(rasterizer)

    result = run_export(exporter)

    assert result.page_count == pages
    assert len(rasterizer.captures) == pages
    assert len(builder.pages) == pages


def test_capture_windows_walk_the_region_in_order():
    rasterizer = FakeRasterizer(height=2401)
    exporter, _, _ = make_exporter(rasterizer)

    run_export(exporter)

    assert rasterizer.captures == [
        (0, 1200, 1.5, "#ffffff"),
        (1200, 1200, 1.5, "#ffffff"),
        (2400, 1, 1.5, "#ffffff"),
    ]


def test_each_page_scrolls_then_settles_before_capture():
    waits = []

    async def record_sleep(seconds):
        waits.append(seconds)

    rasterizer = FakeRasterizer(height=3000)
    exporter, _, _ = make_exporter(rasterizer, sleep=record_sleep)

    run_export(exporter)

    assert waits == [0.5, 0.5, 0.5]
    # page offsets, then the restore to the original position
    assert rasterizer.scrolls == [0, 1200, 2400, 0]


def test_tunables_are_honoured():
    options = ExportOptions(capture_window_px=500, settle_delay_seconds=0.1, scale=2.0)
    waits = []

    async def record_sleep(seconds):
        waits.append(seconds)

    rasterizer = FakeRasterizer(height=1100)
    exporter, _, _ = make_exporter(rasterizer, sleep=record_sleep, options=options)

    result = run_export(exporter)

    assert result.page_count == 3
    assert waits == [0.1, 0.1, 0.1]
    assert [c[2] for c in rasterizer.captures] == [2.0, 2.0, 2.0]


# -----------------------------
# Page content
# -----------------------------
def test_title_block_only_on_first_page():
    exporter, builder, _ = make_exporter(FakeRasterizer(height=3000))

    run_export(exporter)

    assert builder.texts(0)[:2] == ["Quarterly Review", "Generated on: 2024-03-15"]
    assert ("line", 20.0, 35.0, 190.0, 35.0) in builder.pages[0]
    for page in (1, 2):
        assert "Quarterly Review" not in builder.texts(page)
        assert not [op for op in builder.pages[page] if op[0] == "line"]


def test_footer_on_every_page():
    exporter, builder, _ = make_exporter(FakeRasterizer(height=3000))

    run_export(exporter)

    footers = [
        [op for op in builder.pages[i] if op[0] == "text" and op[1].startswith("Page ")]
        for i in range(3)
    ]
    assert [f[0][1] for f in footers] == ["Page 1 of 3", "Page 2 of 3", "Page 3 of 3"]
    _, text, x, y, align = footers[2][0]
    assert (text, x, y, align) == ("Page 3 of 3", 105.0, 287.0, "center")


def test_footer_is_gray_and_color_is_reset():
    exporter, builder, _ = make_exporter(FakeRasterizer(height=1000))

    run_export(exporter)

    ops = builder.pages[0]
    footer_at = next(i for i, op in enumerate(ops) if op[0] == "text" and op[1] == "Page 1 of 1")
    assert ops[footer_at - 1] == ("color", (128, 128, 128))
    assert ops[footer_at + 1] == ("color", (0, 0, 0))


def test_image_placement_first_and_later_pages():
    # 1000 css px wide, full windows: 170mm * 1200/1000 = 204mm tall, under both limits
    exporter, builder, _ = make_exporter(FakeRasterizer(height=2400, css_width=1000))

    run_export(exporter)

    (_, data0, fmt0, x0, y0, w0, h0), = builder.images(0)
    (_, data1, fmt1, x1, y1, w1, h1), = builder.images(1)
    assert (data0, fmt0, x0, y0, w0) == (b"jpeg-0", "JPEG", 20.0, 45.0, 170.0)
    assert (data1, fmt1, x1, y1, w1) == (b"jpeg-1", "JPEG", 20.0, 20.0, 170.0)
    assert h0 == pytest.approx(204.0)
    assert h1 == pytest.approx(204.0)


def test_tall_frames_are_clamped_to_available_height():
    # 500 css px wide: unclamped height would be 170 * 1200/500 = 408mm
    exporter, builder, _ = make_exporter(FakeRasterizer(height=2400, css_width=500))

    run_export(exporter)

    assert builder.images(0)[0][6] == pytest.approx(222.0)
    assert builder.images(1)[0][6] == pytest.approx(247.0)


# -----------------------------
# Style handling
# -----------------------------
def test_region_is_restyled_during_capture_and_restored_after():
    rasterizer = FakeRasterizer(height=2401)
    exporter, _, _ = make_exporter(rasterizer)

    run_export(exporter)

    first, middle, last = rasterizer.styles_during_capture
    for css in (first, middle, last):
        assert css.startswith("color: red; margin: 4px;")
        assert "padding: 20px" in css
        assert "background-color: #ffffff" in css
    assert "padding-bottom" not in first
    assert "padding-bottom" not in middle
    assert "padding-bottom: 50px" in last
    assert rasterizer.style == ORIGINAL_STYLE


# -----------------------------
# Delivery
# -----------------------------
def test_filename_uses_base_name_and_clock_date():
    exporter, _, sink = make_exporter(FakeRasterizer(height=500))

    result = run_export(exporter)

    assert result.filename == "report_2024-03-15.pdf"
    assert sink.deliveries == [("report_2024-03-15.pdf", b"%PDF-fake")]
    assert result.content == b"%PDF-fake"
    assert result.media_type == "application/pdf"


@pytest.mark.parametrize("start_scroll", [0.0, 8750.0])
def test_scroll_restored_after_success(start_scroll):
    rasterizer = FakeRasterizer(height=3000, scroll=start_scroll)
    exporter, _, _ = make_exporter(rasterizer)

    run_export(exporter)

    assert rasterizer.scroll == start_scroll


# -----------------------------
# Failures
# -----------------------------
def test_missing_region_fails_without_side_effects():
    rasterizer = FakeRasterizer(exists=False)
    exporter, _, sink = make_exporter(rasterizer)

    with pytest.raises(RegionNotFoundError):
        run_export(exporter)

    assert rasterizer.scrolls == []
    assert rasterizer.captures == []
    assert sink.deliveries == []


def test_zero_height_region_is_rejected():
    rasterizer = FakeRasterizer(height=0)
    exporter, _, sink = make_exporter(rasterizer)

    with pytest.raises(EmptyRegionError):
        run_export(exporter)

    assert rasterizer.scrolls == []
    assert sink.deliveries == []


@pytest.mark.parametrize("start_scroll", [0.0, 8750.0])
@pytest.mark.parametrize("fail_on_page", [1, 2])
def test_capture_failure_discards_everything(start_scroll, fail_on_page):
    rasterizer = FakeRasterizer(height=3000, scroll=start_scroll, fail_on_page=fail_on_page)
    exporter, _, sink = make_exporter(rasterizer)

    with pytest.raises(CaptureError) as excinfo:
        run_export(exporter)

    assert excinfo.value.page_index == fail_on_page
    assert len(rasterizer.captures) == fail_on_page + 1
    assert "tainted canvas" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)
    assert sink.deliveries == []
    assert rasterizer.scroll == start_scroll
    assert rasterizer.style == ORIGINAL_STYLE


def test_serialization_failure_is_reported_and_nothing_delivered():
    rasterizer = FakeRasterizer(height=3000, scroll=300.0)
    exporter, _, sink = make_exporter(rasterizer, builder=RecordingBuilder(fail_serialize=True))

    with pytest.raises(SerializationError):
        run_export(exporter)

    assert sink.deliveries == []
    assert rasterizer.scroll == 300.0
    assert rasterizer.style == ORIGINAL_STYLE


def test_cancellation_between_pages():
    cancel = asyncio.Event()

    async def cancel_after_first_page(seconds):
        # settle of page 2 happens after page 1 is fully placed
        if len(rasterizer.captures) == 1:
            cancel.set()

    rasterizer = FakeRasterizer(height=3000, scroll=42.0)
    exporter, _, sink = make_exporter(rasterizer, sleep=cancel_after_first_page)

    with pytest.raises(ExportCancelledError) as excinfo:
        run_export(exporter, cancel=cancel)

    # page 2 had already started when the flag was raised; page 3 never does
    assert excinfo.value.pages_done == 2
    assert len(rasterizer.captures) == 2
    assert sink.deliveries == []
    assert rasterizer.scroll == 42.0


@pytest.mark.parametrize("failing_text", ["Quarterly Review", "Generated on: 2024-03-15", "Page 2 of 3"])
def test_drawing_failure_is_a_serialization_error(failing_text):
    rasterizer = FakeRasterizer(height=3000, scroll=77.0)
    exporter, _, sink = make_exporter(rasterizer, builder=FailingTextBuilder(failing_text))

    with pytest.raises(SerializationError) as excinfo:
        run_export(exporter)

    assert isinstance(excinfo.value.__cause__, UnicodeEncodeError)
    assert sink.deliveries == []
    assert rasterizer.scroll == 77.0
    assert rasterizer.style == ORIGINAL_STYLE


def test_builder_that_cannot_start_is_a_serialization_error():
    rasterizer = FakeRasterizer(height=3000, scroll=12.0)

    def broken_factory():
        raise OSError("font cache unavailable")

    exporter = PdfExporter(
        rasterizer=rasterizer,
        builder_factory=broken_factory,
        sink=FakeSink(),
        clock=lambda: FIXED_NOW,
        sleep=no_sleep,
    )

    with pytest.raises(SerializationError):
        run_export(exporter)

    assert rasterizer.captures == []
    assert rasterizer.scroll == 12.0
