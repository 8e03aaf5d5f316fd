"""Best-effort push of notifications to live channel connections.

Delivery is at-most-once: a recipient without a live connection simply misses
the push and picks the row up from ``GET /notifications`` on (re)connect.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any, Optional, Protocol
from uuid import UUID, uuid4

from starlette.concurrency import run_in_threadpool

from ..auth import TokenClaims, read_token_claims
from ..domain_errors import DomainError
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

NOTIFICATION_NEW_EVENT = "notification:new"
CONNECTED_EVENT = "connected"
CLIENT_READ_EVENT = "notification:read"
CLIENT_READ_ALL_EVENT = "notifications:read_all"

AUTH_FAILED_CLOSE_CODE = 4401
NO_TOKEN_REASON = "Authentication error: No token provided"
INVALID_TOKEN_REASON = "Authentication error: Invalid token"
HANDSHAKE_TIMEOUT_REASON = "Authentication error: Handshake timeout"

PUSH_FAILED_CLOSE_CODE = 1011
PUSH_FAILED_REASON = "Push failed"


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    OPEN = "open"
    CLOSED = "closed"


class ChannelTransport(Protocol):
    """Bidirectional push transport (a WebSocket in production)."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000, reason: str = "") -> None: ...


class ChannelConnection:
    """One transport connection moving Connecting -> Authenticated -> Open -> Closed."""

    def __init__(self, transport: ChannelTransport):
        self.id = uuid4().hex
        self.transport = transport
        self.state = ConnectionState.CONNECTING
        self.user_id: Optional[UUID] = None
        self.company_id: Optional[UUID] = None
        self.role: Optional[str] = None

    def authenticate(self, claims: TokenClaims) -> None:
        if self.state is not ConnectionState.CONNECTING:
            raise RuntimeError(f"Cannot authenticate connection in state {self.state.value}")
        self.user_id = claims.user_id
        self.company_id = claims.company_id
        self.role = claims.role
        self.state = ConnectionState.AUTHENTICATED

    def open(self) -> None:
        if self.state is not ConnectionState.AUTHENTICATED:
            raise RuntimeError(f"Cannot open connection in state {self.state.value}")
        self.state = ConnectionState.OPEN

    @property
    def scopes(self) -> list[str]:
        return [f"user:{self.user_id}", f"company:{self.company_id}"]

    async def send(self, event: str, data: Any) -> None:
        await self.transport.send_json({"event": event, "data": data})


class DeliveryLayer:
    """Owns the connection lifecycle and routes pushes through the registry."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        verify_token: Callable[[Optional[str]], TokenClaims] = read_token_claims,
    ):
        self.registry = registry
        self._verify_token = verify_token

    async def reject(self, transport: ChannelTransport, reason: str) -> None:
        await transport.close(code=AUTH_FAILED_CLOSE_CODE, reason=reason)

    async def connect(self, transport: ChannelTransport, token: Optional[str]) -> Optional[ChannelConnection]:
        """Verify the handshake token and register the connection.

        Returns None when authentication fails; the transport is closed with a
        reason and the connection never reaches Open.
        """
        connection = ChannelConnection(transport)
        if not token:
            logger.info("Channel handshake without token (connection %s)", connection.id)
            connection.state = ConnectionState.CLOSED
            await self.reject(transport, NO_TOKEN_REASON)
            return None
        try:
            claims = await run_in_threadpool(self._verify_token, token)
        except DomainError as exc:
            logger.info("Channel authentication failed (connection %s): %s", connection.id, exc.code)
            connection.state = ConnectionState.CLOSED
            await self.reject(transport, INVALID_TOKEN_REASON)
            return None

        connection.authenticate(claims)
        self.registry.add(connection)
        connection.open()
        logger.info("User connected: %s (connection %s)", connection.user_id, connection.id)

        try:
            await connection.send(
                CONNECTED_EVENT,
                {
                    "userId": str(connection.user_id),
                    "companyId": str(connection.company_id),
                    "scopes": connection.scopes,
                },
            )
        except Exception:
            logger.warning("Connection %s dropped before acknowledgement", connection.id, exc_info=True)
            self.disconnect(connection)
            return None
        return connection

    def disconnect(self, connection: ChannelConnection) -> None:
        if connection.state is ConnectionState.CLOSED:
            return
        self.registry.remove(connection)
        connection.state = ConnectionState.CLOSED
        logger.info("User disconnected: %s (connection %s)", connection.user_id, connection.id)

    async def _send_all(self, connections: list[ChannelConnection], event: str, data: Any) -> int:
        if not connections:
            return 0
        results = await asyncio.gather(
            *(connection.send(event, data) for connection in connections),
            return_exceptions=True,
        )
        delivered = 0
        for connection, result in zip(connections, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Push of %s to connection %s failed; dropping it: %r",
                    event,
                    connection.id,
                    result,
                )
                self.disconnect(connection)
                await self._close_quietly(connection)
            else:
                delivered += 1
        return delivered

    async def _close_quietly(self, connection: ChannelConnection) -> None:
        """Close a dropped transport so a half-open client reconnects and refetches."""
        try:
            await connection.transport.close(code=PUSH_FAILED_CLOSE_CODE, reason=PUSH_FAILED_REASON)
        except Exception as exc:
            logger.debug("Closing dropped connection %s failed: %r", connection.id, exc)

    async def push_to_user(self, user_id: UUID, event: str, data: Any) -> int:
        """Send to every live connection of the user; a silent no-op when offline."""
        return await self._send_all(self.registry.for_user(user_id), event, data)

    async def emit_to_company(self, company_id: UUID, event: str, data: Any) -> int:
        return await self._send_all(self.registry.for_company(company_id), event, data)

    async def push_notification(self, user_id: UUID, notification: dict[str, Any]) -> int:
        return await self.push_to_user(user_id, NOTIFICATION_NEW_EVENT, {"notification": notification})

    def handle_client_frame(self, connection: ChannelConnection, raw: Optional[str]) -> Optional[str]:
        """Observe an inbound frame; read-state changes still go through the HTTP API.

        ``raw`` is None for a frame that carried no text (binary).
        """
        if raw is None:
            logger.warning("Non-text frame from connection %s ignored", connection.id)
            return None
        try:
            frame = json.loads(raw)
        except ValueError:
            logger.warning("Malformed frame from connection %s ignored", connection.id)
            return None
        if not isinstance(frame, dict):
            logger.warning("Non-object frame from connection %s ignored", connection.id)
            return None

        event = frame.get("event")
        if event == CLIENT_READ_EVENT:
            logger.info("Notification %s marked as read by user %s", frame.get("data"), connection.user_id)
        elif event == CLIENT_READ_ALL_EVENT:
            logger.info("All notifications marked as read by user %s", connection.user_id)
        else:
            logger.debug("Unknown channel event %r from connection %s", event, connection.id)
        return event if isinstance(event, str) else None
