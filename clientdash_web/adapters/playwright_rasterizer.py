from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from io import BytesIO
from typing import AsyncIterator

from PIL import Image
from playwright.async_api import Page, async_playwright

from clientdash_web.config.ini_config import BrowserSettings
from clientdash_web.domain.models import RasterFrame

logger = logging.getLogger(__name__)

_REGION_EXISTS_JS = "id => document.getElementById(id) !== null"

_REGION_HEIGHT_JS = """
id => {
  const el = document.getElementById(id);
  if (!el) return null;
  return Math.max(el.getBoundingClientRect().height, el.scrollHeight);
}
"""

_REGION_BOX_JS = """
id => {
  const el = document.getElementById(id);
  if (!el || !el.isConnected) return null;
  const r = el.getBoundingClientRect();
  return {x: r.left + window.scrollX, y: r.top + window.scrollY, width: r.width};
}
"""

_GET_STYLE_JS = "id => { const el = document.getElementById(id); return el ? el.style.cssText : null; }"

_SET_STYLE_JS = """
([id, css]) => {
  const el = document.getElementById(id);
  if (el) el.style.cssText = css;
}
"""


def encode_frame(
    png: bytes,
    css_width: float,
    css_height: float,
    scale: float,
    background_color: str,
    quality: int,
) -> RasterFrame:
    """
    Flatten a screenshot onto an opaque background, bring it to exactly
    `scale` times its CSS size, and JPEG-encode it.
    """
    target = (max(1, round(css_width * scale)), max(1, round(css_height * scale)))

    with Image.open(BytesIO(png)) as img:
        img.load()
        if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            flat = Image.new("RGB", rgba.size, background_color)
            flat.paste(rgba, mask=rgba.getchannel("A"))
        else:
            flat = img.convert("RGB")

    if flat.size != target:
        flat = flat.resize(target, Image.Resampling.LANCZOS)

    out = BytesIO()
    flat.save(out, format="JPEG", quality=quality, optimize=True)
    return RasterFrame(data=out.getvalue(), width=flat.width, height=flat.height)


class PlaywrightRasterizer:
    """
    DomRasterizer over a live Playwright page.

    The browser takes the screenshot itself, so cross-origin images in the
    region are captured like any other pixels.
    """

    def __init__(self, page: Page, jpeg_quality: int = 95):
        self._page = page
        self._jpeg_quality = jpeg_quality

    async def region_exists(self, region_id: str) -> bool:
        return bool(await self._page.evaluate(_REGION_EXISTS_JS, region_id))

    async def scroll_position(self) -> float:
        return float(await self._page.evaluate("() => window.scrollY"))

    async def scroll_to(self, y: float) -> None:
        await self._page.evaluate("y => window.scrollTo(0, y)", y)

    async def region_height(self, region_id: str) -> float:
        height = await self._page.evaluate(_REGION_HEIGHT_JS, region_id)
        if height is None:
            raise LookupError(f"Region {region_id!r} is not in the document.")
        return float(height)

    async def inline_style(self, region_id: str) -> str:
        return (await self._page.evaluate(_GET_STYLE_JS, region_id)) or ""

    async def set_inline_style(self, region_id: str, css: str) -> None:
        await self._page.evaluate(_SET_STYLE_JS, [region_id, css])

    async def capture(
        self,
        region_id: str,
        y_offset: float,
        height: float,
        scale: float,
        background_color: str,
    ) -> RasterFrame:
        box = await self._page.evaluate(_REGION_BOX_JS, region_id)
        if box is None:
            raise LookupError(f"Region {region_id!r} is detached from the document.")

        clip = {
            "x": box["x"],
            "y": box["y"] + y_offset,
            "width": box["width"],
            "height": height,
        }
        logger.debug("Capturing %r clip=%r", region_id, clip)

        png = await self._page.screenshot(
            clip=clip,
            full_page=True,
            type="png",
            scale="device",
            animations="disabled",
        )
        return encode_frame(png, box["width"], height, scale, background_color, self._jpeg_quality)


@asynccontextmanager
async def browser_page(url: str, settings: BrowserSettings, scale: float) -> AsyncIterator[Page]:
    """Headless Chromium page opened on `url`, rendered at `scale` device pixels per CSS pixel."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=settings.headless)
        try:
            context = await browser.new_context(
                viewport={"width": settings.viewport_width, "height": settings.viewport_height},
                device_scale_factor=scale,
            )
            page = await context.new_page()
            page.set_default_timeout(settings.navigation_timeout_ms)

            response = await page.goto(url, wait_until="networkidle")
            if response is not None and not response.ok:
                raise RuntimeError(f"Loading {url} returned HTTP {response.status}")

            yield page
        finally:
            await browser.close()
