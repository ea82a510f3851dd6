from __future__ import annotations

from typing import Optional


class ExportError(RuntimeError):
    """Base class for failures of a PDF export."""


class RegionNotFoundError(ExportError, LookupError):
    def __init__(self, region_id: str):
        super().__init__(f"Region not found: {region_id!r}")
        self.region_id = region_id


class EmptyRegionError(ExportError):
    def __init__(self, region_id: str):
        super().__init__(f"Region {region_id!r} has no renderable height.")
        self.region_id = region_id


class CaptureError(ExportError):
    def __init__(self, page_index: int, reason: str = ""):
        msg = f"Failed to capture page {page_index + 1}"
        super().__init__(f"{msg}: {reason}" if reason else msg)
        self.page_index = page_index


class SerializationError(ExportError):
    pass


class ExportCancelledError(ExportError):
    def __init__(self, pages_done: int):
        super().__init__(f"Export cancelled after {pages_done} page(s).")
        self.pages_done = pages_done


class ExportInProgressError(ExportError):
    pass


class ClientNotFoundError(LookupError):
    def __init__(self, client_id: str):
        super().__init__(f"Client not found: {client_id}")
        self.client_id = client_id


class ClientValidationError(ValueError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MalformedAnalysisError(ValueError):
    def __init__(self, analysis_id: str, detail: str):
        super().__init__(f"Stored analysis {analysis_id} is malformed: {detail}")
        self.analysis_id = analysis_id


class SettingsValidationError(ValueError):
    pass
