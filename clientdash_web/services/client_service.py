from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date
from typing import List, Mapping, Optional

from clientdash_web.domain.analysis import ExternalAnalysis
from clientdash_web.domain.errors import ClientNotFoundError, ClientValidationError
from clientdash_web.domain.models import CLIENT_STATUSES, Client, ClientDraft, DashboardStats
from clientdash_web.ports import ClientRepository

logger = logging.getLogger(__name__)


def _opt_text(raw: Optional[str]) -> Optional[str]:
    raw = (raw or "").strip()
    return raw or None


def _opt_number(form: Mapping[str, str], key: str) -> Optional[float]:
    raw = (form.get(key) or "").strip().replace(",", "")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ClientValidationError(f"{key.capitalize()} must be a number.", field=key) from e


def parse_client_form(form: Mapping[str, str]) -> ClientDraft:
    """Turn raw form fields into a ClientDraft. Blank fields become None."""
    name = (form.get("name") or "").strip()
    if not name:
        raise ClientValidationError("Name is required.", field="name")

    status = (form.get("status") or "Active").strip()
    if status not in CLIENT_STATUSES:
        raise ClientValidationError(f"Unknown status: {status}", field="status")

    start_date = _opt_text(form.get("start_date"))
    if start_date:
        try:
            date.fromisoformat(start_date)
        except ValueError as e:
            raise ClientValidationError("Start date must be YYYY-MM-DD.", field="start_date") from e

    return ClientDraft(
        name=name,
        status=status,
        industry=_opt_text(form.get("industry")),
        revenue=_opt_number(form, "revenue"),
        growth=_opt_number(form, "growth"),
        contact_name=_opt_text(form.get("contact_name")),
        contact_email=_opt_text(form.get("contact_email")),
        contact_phone=_opt_text(form.get("contact_phone")),
        address=_opt_text(form.get("address")),
        start_date=start_date,
        notes=_opt_text(form.get("notes")),
    )


@dataclass
class ClientService:
    """
    Service layer for client records.
    Keeps controllers/routes thin.
    """
    repo: ClientRepository

    def list_clients(self) -> List[Client]:
        return sorted(self.repo.list_clients(), key=lambda c: c.name.lower())

    def get_client(self, client_id: str) -> Client:
        client = self.repo.get_client(client_id)
        if client is None:
            raise ClientNotFoundError(client_id)
        return client

    def create_client(self, draft: ClientDraft) -> Client:
        client = self.repo.create_client(draft)
        logger.info("Created client %s (%s)", client.id, client.name)
        return client

    def update_client(self, client_id: str, draft: ClientDraft) -> Client:
        client = self.repo.update_client(client_id, asdict(draft))
        if client is None:
            raise ClientNotFoundError(client_id)
        logger.info("Updated client %s", client_id)
        return client

    def delete_client(self, client_id: str) -> None:
        if not self.repo.delete_client(client_id):
            raise ClientNotFoundError(client_id)
        logger.info("Deleted client %s", client_id)

    def client_analyses(self, client_id: str) -> List[ExternalAnalysis]:
        return sorted(self.repo.list_analyses(client_id), key=lambda a: a.created_at, reverse=True)

    def dashboard_stats(self) -> DashboardStats:
        clients = self.repo.list_clients()
        return DashboardStats(
            total_clients=len(clients),
            active_clients=sum(1 for c in clients if c.status == "Active"),
            at_risk_clients=sum(1 for c in clients if c.status == "At Risk"),
            total_revenue=sum(c.revenue or 0.0 for c in clients),
        )
