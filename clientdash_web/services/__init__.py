from .client_service import ClientService
from .pdf_export import PdfExporter
from .user_settings import UserSettings, UserSettingsStore

__all__ = [
    "ClientService",
    "PdfExporter",
    "UserSettings",
    "UserSettingsStore",
]
