from __future__ import annotations

import uuid
from configparser import ConfigParser
from datetime import date, datetime
from typing import List, Optional

import pyodbc

from clientdash_web.domain.analysis import ExternalAnalysis, parse_external_analysis
from clientdash_web.domain.models import Client, ClientDraft

CLIENT_COLUMNS = (
    "id",
    "name",
    "industry",
    "status",
    "revenue",
    "growth",
    "contact_name",
    "contact_email",
    "contact_phone",
    "address",
    "start_date",
    "notes",
    "created_at",
    "updated_at",
)

# Columns a caller may write; id and timestamps are owned by the repository.
WRITABLE_COLUMNS = CLIENT_COLUMNS[1:12]


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _opt_text(value) -> Optional[str]:
    return _text(value) or None


def _opt_float(value) -> Optional[float]:
    return float(value) if value is not None else None


class SqlServerClientRepository:
    def __init__(
        self,
        ini_path: str,
        clients_table: str = "dbo.Clients",
        analyses_table: str = "dbo.ExternalAnalyses",
    ):
        self.ini_path = ini_path
        self.clients_table = clients_table
        self.analyses_table = analyses_table

        cfg = ConfigParser()
        ok = cfg.read(self.ini_path, encoding="utf-8-sig")
        if not ok:
            raise FileNotFoundError(f"INI not found or unreadable: {self.ini_path}")

        if "sqlserver" not in cfg:
            raise KeyError("Missing [sqlserver] section in INI")

        s = cfg["sqlserver"]
        self._driver = (s.get("driver", "ODBC Driver 17 for SQL Server") or "").strip()
        self._server = (s.get("server", "localhost") or "").strip()
        self._database = (s.get("database", "") or "").strip()
        self._username = (s.get("username", "") or "").strip()
        self._password = (s.get("password", "") or "").strip()

        trust_raw = (s.get("trust_cert", "yes") or "").strip().lower()
        self._trust_cert = trust_raw in ("yes", "true", "1")

        if not self._database:
            raise ValueError("sqlserver.database is empty in INI")

    def _connect(self):
        parts = [
            f"DRIVER={{{self._driver}}}",
            f"SERVER={self._server}",
            f"DATABASE={self._database}",
        ]

        if self._username:
            parts.append(f"UID={self._username}")
            parts.append(f"PWD={self._password}")
        else:
            parts.append("Trusted_Connection=yes")

        if self._trust_cert:
            parts.append("TrustServerCertificate=yes")

        conn_str = ";".join(parts) + ";"
        return pyodbc.connect(conn_str)

    @staticmethod
    def _get(r, name: str, default=None):
        return getattr(r, name, default)

    def _row_to_client(self, r) -> Client:
        return Client(
            id=_text(self._get(r, "id")),
            name=_text(self._get(r, "name")),
            status=_text(self._get(r, "status")) or "Active",
            industry=_opt_text(self._get(r, "industry")),
            revenue=_opt_float(self._get(r, "revenue")),
            growth=_opt_float(self._get(r, "growth")),
            contact_name=_opt_text(self._get(r, "contact_name")),
            contact_email=_opt_text(self._get(r, "contact_email")),
            contact_phone=_opt_text(self._get(r, "contact_phone")),
            address=_opt_text(self._get(r, "address")),
            start_date=_opt_text(self._get(r, "start_date")),
            notes=_opt_text(self._get(r, "notes")),
            created_at=_text(self._get(r, "created_at")),
            updated_at=_text(self._get(r, "updated_at")),
        )

    def _select_clients(self) -> str:
        return f"SELECT {', '.join(CLIENT_COLUMNS)} FROM {self.clients_table}"

    def list_clients(self) -> List[Client]:
        q = self._select_clients() + " ORDER BY name"
        with self._connect() as conn:
            cur = conn.cursor()
            rows = cur.execute(q).fetchall()
        return [self._row_to_client(r) for r in rows]

    def get_client(self, client_id: str) -> Optional[Client]:
        q = self._select_clients() + " WHERE id = ?"
        with self._connect() as conn:
            cur = conn.cursor()
            r = cur.execute(q, client_id).fetchone()
        return self._row_to_client(r) if r else None

    def create_client(self, draft: ClientDraft) -> Client:
        client_id = str(uuid.uuid4())
        values = [getattr(draft, c) for c in WRITABLE_COLUMNS]
        q = f"""
        INSERT INTO {self.clients_table} (id, {', '.join(WRITABLE_COLUMNS)}, created_at, updated_at)
        VALUES (?, {', '.join('?' for _ in WRITABLE_COLUMNS)}, SYSUTCDATETIME(), SYSUTCDATETIME())
        """
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(q, client_id, *values)
            conn.commit()

        created = self.get_client(client_id)
        if created is None:
            raise RuntimeError(f"Client {client_id} vanished after insert")
        return created

    def update_client(self, client_id: str, changes: dict) -> Optional[Client]:
        cols = [c for c in WRITABLE_COLUMNS if c in changes]
        if not cols:
            return self.get_client(client_id)

        assignments = ", ".join(f"{c} = ?" for c in cols)
        q = f"UPDATE {self.clients_table} SET {assignments}, updated_at = SYSUTCDATETIME() WHERE id = ?"
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(q, *[changes[c] for c in cols], client_id)
            updated = cur.rowcount
            conn.commit()

        if not updated:
            return None
        return self.get_client(client_id)

    def delete_client(self, client_id: str) -> bool:
        with self._connect() as conn:
            cur = conn.cursor()
            cur.execute(f"DELETE FROM {self.analyses_table} WHERE client_id = ?", client_id)
            cur.execute(f"DELETE FROM {self.clients_table} WHERE id = ?", client_id)
            deleted = cur.rowcount
            conn.commit()
        return deleted > 0

    def list_analyses(self, client_id: str) -> List[ExternalAnalysis]:
        q = f"""
        SELECT id, client_id, search_term, created_at, data
        FROM {self.analyses_table}
        WHERE client_id = ?
        ORDER BY created_at DESC
        """
        with self._connect() as conn:
            cur = conn.cursor()
            rows = cur.execute(q, client_id).fetchall()

        return [
            parse_external_analysis(
                analysis_id=_text(self._get(r, "id")),
                client_id=_text(self._get(r, "client_id")),
                search_term=_text(self._get(r, "search_term")),
                created_at=_text(self._get(r, "created_at")),
                payload=self._get(r, "data") or "",
            )
            for r in rows
        ]
