########## ini_config.py

import os
from configparser import ConfigParser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from clientdash_web.domain.models import ExportOptions, Margins

INI_DEFAULT_NAME = "ClientDashboard.ini"


@dataclass(frozen=True)
class BrowserSettings:
    headless: bool = True
    viewport_width: int = 1280
    viewport_height: int = 1200
    navigation_timeout_ms: int = 30000


@dataclass(frozen=True)
class AppSettings:
    flask_host: str
    flask_port: int
    flask_debug: bool
    # Where the headless browser reaches this app to render pages for export
    public_base_url: str

    log_level: str

    user_settings_path: Path
    downloads_dir: Optional[Path]

    export: ExportOptions
    export_region_id: str
    browser: BrowserSettings


class IniConfig:
    """
    Adapter around ConfigParser and filesystem resolution.
    Keeps INI handling out of your app/service code.
    """

    def __init__(self, ini_path: Path):
        self._ini_path = ini_path
        self._cfg = ConfigParser()
        read_ok = self._cfg.read(str(ini_path), encoding="utf-8-sig")
        if not read_ok:
            raise FileNotFoundError(f"INI file not found or unreadable: {ini_path}")

    @property
    def ini_path(self) -> Path:
        return self._ini_path

    @staticmethod
    def from_env_or_default() -> "IniConfig":
        ini_raw = (os.getenv("APP_INI") or "").strip()
        # If APP_INI is not set, default to repo-root-relative ini location
        ini_path = Path(ini_raw) if ini_raw else (Path(__file__).resolve().parents[2] / INI_DEFAULT_NAME)
        return IniConfig(ini_path)

    def _str(self, section: str, key: str, default: str) -> str:
        return (self._cfg.get(section, key, fallback=default) or "").strip() or default

    def _cfg_path(self, section: str, key: str, default: str = "") -> Optional[Path]:
        """
        Reads a filesystem path from INI and resolves it.
        Relative paths are taken relative to the INI file's folder.
        Tries [paths] and [path] interchangeably for convenience.
        """
        sections_to_try = [section]
        if section == "paths":
            sections_to_try.append("path")
        if section == "path":
            sections_to_try.append("paths")

        raw = ""
        for sec in sections_to_try:
            if not self._cfg.has_section(sec):
                continue
            raw = (self._cfg.get(sec, key, fallback="") or "").strip()
            if raw:
                break

        raw = raw or default
        if not raw:
            return None

        p = Path(os.path.expandvars(os.path.expanduser(raw)))
        if not p.is_absolute():
            p = self._ini_path.resolve().parent / p
        return p.resolve()

    def load_export_options(self) -> ExportOptions:
        d = ExportOptions()
        dm = d.margins
        sec = "export"

        margins = Margins(
            top=self._cfg.getfloat(sec, "margin_top_mm", fallback=dm.top),
            right=self._cfg.getfloat(sec, "margin_right_mm", fallback=dm.right),
            bottom=self._cfg.getfloat(sec, "margin_bottom_mm", fallback=dm.bottom),
            left=self._cfg.getfloat(sec, "margin_left_mm", fallback=dm.left),
        )

        options = ExportOptions(
            capture_window_px=self._cfg.getint(sec, "capture_window_px", fallback=d.capture_window_px),
            settle_delay_seconds=self._cfg.getfloat(sec, "settle_delay_seconds", fallback=d.settle_delay_seconds),
            scale=self._cfg.getfloat(sec, "scale", fallback=d.scale),
            jpeg_quality=self._cfg.getint(sec, "jpeg_quality", fallback=d.jpeg_quality),
            margins=margins,
            header_height_mm=self._cfg.getfloat(sec, "header_height_mm", fallback=d.header_height_mm),
            background_color=self._str(sec, "background_color", d.background_color),
        )

        # Validate
        if options.capture_window_px <= 0:
            raise ValueError("export.capture_window_px must be positive")
        if options.settle_delay_seconds < 0:
            raise ValueError("export.settle_delay_seconds must not be negative")
        if options.scale <= 0:
            raise ValueError("export.scale must be positive")
        if not 1 <= options.jpeg_quality <= 100:
            raise ValueError("export.jpeg_quality must be between 1 and 100")
        if options.content_width_mm <= 0 or options.content_height_mm - options.header_height_mm <= 0:
            raise ValueError("export margins leave no room for content")

        return options

    def load_settings(self) -> AppSettings:
        # Flask
        flask_host = self._str("flask", "host", "127.0.0.1")
        flask_port = self._cfg.getint("flask", "port", fallback=5000)
        flask_debug = self._cfg.getboolean("flask", "debug", fallback=True)
        public_base_url = self._str("flask", "public_base_url", f"http://{flask_host}:{flask_port}").rstrip("/")

        log_level = self._str("logging", "level", "INFO").upper()

        # Paths
        user_settings_path = self._cfg_path("paths", "user_settings", default="user_settings.ini")
        downloads_dir = self._cfg_path("paths", "downloads")

        # Browser used for rendering exports
        browser = BrowserSettings(
            headless=self._cfg.getboolean("browser", "headless", fallback=True),
            viewport_width=self._cfg.getint("browser", "viewport_width", fallback=1280),
            viewport_height=self._cfg.getint("browser", "viewport_height", fallback=1200),
            navigation_timeout_ms=self._cfg.getint("browser", "navigation_timeout_ms", fallback=30000),
        )

        if downloads_dir is not None:
            downloads_dir.mkdir(parents=True, exist_ok=True)

        return AppSettings(
            flask_host=flask_host,
            flask_port=flask_port,
            flask_debug=flask_debug,
            public_base_url=public_base_url,
            log_level=log_level,
            user_settings_path=user_settings_path,
            downloads_dir=downloads_dir,
            export=self.load_export_options(),
            export_region_id=self._str("export", "region_id", "client-report"),
            browser=browser,
        )
