"""
Connection schemas: per-service credentials held by the connection store.
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

ServiceName = Literal["attio", "airtable"]

ATTIO = "attio"
AIRTABLE = "airtable"
SERVICES: tuple[str, ...] = (ATTIO, AIRTABLE)


class Credentials(BaseModel):
    """Bearer token plus the service-specific identifiers."""
    token: str = Field(..., min_length=1, description="Bearer token")
    object_id: str | None = Field(None, description="Attio object to probe on connect")
    base_id: str | None = Field(None, description="Airtable base identifier")


class Connection(BaseModel):
    """Stored connection. Read-only to the sync engine."""
    connected: bool = True
    credentials: Credentials
    connected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def token(self) -> str:
        return self.credentials.token

    @property
    def base_id(self) -> str | None:
        return self.credentials.base_id


class ConnectionStatus(BaseModel):
    """Public view of a connection (no secrets)."""
    service: str
    connected: bool
    connected_at: datetime | None = None
    base_id: str | None = None
    object_id: str | None = None


class ConnectionListResponse(BaseModel):
    connections: list[ConnectionStatus]
