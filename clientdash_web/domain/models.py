######## models.py
########

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

CLIENT_STATUSES = ("Active", "At Risk", "Inactive")


@dataclass(frozen=True)
class Client:
    id: str
    name: str
    status: str                 # "Active" | "At Risk" | "Inactive"
    industry: Optional[str] = None
    revenue: Optional[float] = None
    growth: Optional[float] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    start_date: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class ClientDraft:
    """Client fields as submitted by a form (no id / timestamps yet)."""
    name: str
    status: str = "Active"
    industry: Optional[str] = None
    revenue: Optional[float] = None
    growth: Optional[float] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    start_date: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class DashboardStats:
    total_clients: int
    active_clients: int
    at_risk_clients: int
    total_revenue: float


# -----------------------------
# PDF export
# -----------------------------
@dataclass(frozen=True)
class Margins:
    top: float = 20.0
    right: float = 20.0
    bottom: float = 30.0
    left: float = 20.0


@dataclass(frozen=True)
class ExportOptions:
    """
    Tunables for one export. Defaults reproduce the dashboard's historical output.
    All lengths on the page are millimetres; capture lengths are CSS pixels.
    """
    capture_window_px: int = 1200
    settle_delay_seconds: float = 0.5
    scale: float = 1.5
    jpeg_quality: int = 95
    page_width_mm: float = 210.0
    page_height_mm: float = 297.0
    margins: Margins = field(default_factory=Margins)
    header_height_mm: float = 25.0
    background_color: str = "#ffffff"
    capture_padding_px: int = 20
    last_page_padding_px: int = 50

    @property
    def content_width_mm(self) -> float:
        return self.page_width_mm - self.margins.left - self.margins.right

    @property
    def content_height_mm(self) -> float:
        return self.page_height_mm - self.margins.top - self.margins.bottom


@dataclass(frozen=True)
class ExportRequest:
    region_id: str
    file_base_name: str
    title: str


@dataclass(frozen=True)
class PageLayout:
    index: int
    y_offset_px: float
    capture_height_px: float
    x_mm: float
    y_mm: float
    width_mm: float
    height_mm: float
    available_height_mm: float


@dataclass(frozen=True)
class RasterFrame:
    data: bytes                 # JPEG
    width: int                  # pixels, after oversampling
    height: int


@dataclass(frozen=True)
class ExportResult:
    filename: str
    content: bytes
    page_count: int
    media_type: str = "application/pdf"
