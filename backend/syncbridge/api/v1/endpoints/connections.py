"""
Connection endpoints: test and store credentials, list status, disconnect.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from syncbridge.schemas.common import MessageResponse
from syncbridge.schemas.connection import (
    SERVICES,
    ConnectionListResponse,
    ConnectionStatus,
    Credentials,
)
from syncbridge.services.connection_store import ConnectionStore, get_connection_store
from syncbridge.services.connections import connect
from syncbridge.services.gateway import GatewayError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connections", tags=["connections"])


def _require_known(service: str) -> None:
    if service not in SERVICES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown service: {service}",
        )


def _status(service: str, store: ConnectionStore) -> ConnectionStatus:
    conn = store.get_connection(service)
    if conn is None:
        return ConnectionStatus(service=service, connected=False)
    return ConnectionStatus(
        service=service,
        connected=conn.connected,
        connected_at=conn.connected_at,
        base_id=conn.credentials.base_id,
        object_id=conn.credentials.object_id,
    )


@router.get(
    "",
    response_model=ConnectionListResponse,
    summary="List connections",
    description="Connection status for every supported service. Tokens are never returned.",
)
def list_connections(store: ConnectionStore = Depends(get_connection_store)) -> ConnectionListResponse:
    return ConnectionListResponse(connections=[_status(s, store) for s in SERVICES])


@router.post(
    "/{service}",
    response_model=ConnectionStatus,
    summary="Connect a service",
    description="Test the credentials against the remote API and store them only if the test succeeds.",
)
def connect_service(
    service: str,
    body: Credentials,
    store: ConnectionStore = Depends(get_connection_store),
) -> ConnectionStatus:
    """POST /api/v1/connections/{service}"""
    _require_known(service)
    try:
        connect(service, body, store)
    except GatewayError as e:
        logger.warning("Connection test failed for %s: %s", service, e.message)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to connect to {service}: {e.message}",
        )
    return _status(service, store)


@router.delete(
    "/{service}",
    response_model=MessageResponse,
    summary="Disconnect a service",
)
def disconnect_service(
    service: str,
    store: ConnectionStore = Depends(get_connection_store),
) -> MessageResponse:
    _require_known(service)
    store.disconnect(service)
    logger.info("Disconnected %s", service)
    return MessageResponse(message=f"Disconnected {service}")
