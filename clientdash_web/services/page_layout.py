from __future__ import annotations

import math
from datetime import date

from clientdash_web.domain.models import ExportOptions, PageLayout


def page_count(total_height_px: float, capture_window_px: int) -> int:
    if capture_window_px <= 0:
        raise ValueError("capture_window_px must be positive.")
    if total_height_px <= 0:
        return 0
    return math.ceil(total_height_px / capture_window_px)


def capture_window(index: int, total_height_px: float, capture_window_px: int) -> tuple[float, float]:
    """(y offset, height) of the slice captured for page `index`."""
    y_offset = index * capture_window_px
    return y_offset, min(capture_window_px, total_height_px - y_offset)


def available_height_mm(index: int, options: ExportOptions) -> float:
    # Page 1 gives up the header band for the title block.
    if index == 0:
        return options.content_height_mm - options.header_height_mm
    return options.content_height_mm


def layout_page(
    index: int,
    total_height_px: float,
    frame_width_px: int,
    frame_height_px: int,
    options: ExportOptions,
) -> PageLayout:
    y_offset, capture_height = capture_window(index, total_height_px, options.capture_window_px)

    width = options.content_width_mm
    height = frame_height_px * (width / frame_width_px)
    available = available_height_mm(index, options)
    if height > available:
        height = available

    y = options.margins.top + (options.header_height_mm if index == 0 else 0)

    return PageLayout(
        index=index,
        y_offset_px=y_offset,
        capture_height_px=capture_height,
        x_mm=options.margins.left,
        y_mm=y,
        width_mm=width,
        height_mm=height,
        available_height_mm=available,
    )


def export_filename(file_base_name: str, on: date) -> str:
    return f"{file_base_name}_{on.isoformat()}.pdf"


def footer_text(index: int, num_pages: int) -> str:
    return f"Page {index + 1} of {num_pages}"
