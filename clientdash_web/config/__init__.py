from .ini_config import AppSettings, BrowserSettings, IniConfig

__all__ = [
    "AppSettings",
    "BrowserSettings",
    "IniConfig",
]
