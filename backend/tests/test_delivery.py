from __future__ import annotations

from uuid import uuid4

import pytest

from taskflow.auth import TokenClaims
from taskflow.domain_errors import DomainError
from taskflow.realtime.delivery import (
    AUTH_FAILED_CLOSE_CODE,
    CONNECTED_EVENT,
    INVALID_TOKEN_REASON,
    NO_TOKEN_REASON,
    NOTIFICATION_NEW_EVENT,
    PUSH_FAILED_CLOSE_CODE,
    PUSH_FAILED_REASON,
    ChannelConnection,
    ConnectionState,
    DeliveryLayer,
)
from taskflow.realtime.registry import ConnectionRegistry


class _Transport:
    def __init__(self, *, fail_after: int | None = None) -> None:
        self.sent: list[dict] = []
        self.closed: tuple[int, str] | None = None
        self._fail_after = fail_after

    async def send_json(self, data) -> None:
        if self._fail_after is not None and len(self.sent) >= self._fail_after:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = (code, reason)


class _Tokens:
    """Token verifier keyed by opaque strings."""

    def __init__(self) -> None:
        self._claims: dict[str, TokenClaims] = {}

    def issue(self, *, user_id=None, company_id=None, role: str = "member") -> tuple[str, TokenClaims]:
        claims = TokenClaims(user_id=user_id or uuid4(), company_id=company_id or uuid4(), role=role)
        token = uuid4().hex
        self._claims[token] = claims
        return token, claims

    def __call__(self, token):
        if token not in self._claims:
            raise DomainError(code="AUTH_INVALID_TOKEN", http_status=401, message="bad token")
        return self._claims[token]


@pytest.fixture
def tokens():
    return _Tokens()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def delivery(registry, tokens):
    return DeliveryLayer(registry, verify_token=tokens)


async def test_missing_token_closes_without_registering(delivery, registry) -> None:
    transport = _Transport()

    assert await delivery.connect(transport, None) is None

    assert transport.closed == (AUTH_FAILED_CLOSE_CODE, NO_TOKEN_REASON)
    assert transport.sent == []
    assert len(registry) == 0


async def test_invalid_token_closes_without_registering(delivery, registry) -> None:
    transport = _Transport()

    assert await delivery.connect(transport, "forged") is None

    assert transport.closed == (AUTH_FAILED_CLOSE_CODE, INVALID_TOKEN_REASON)
    assert len(registry) == 0


async def test_valid_token_opens_connection_and_acknowledges(delivery, registry, tokens) -> None:
    token, claims = tokens.issue()
    transport = _Transport()

    connection = await delivery.connect(transport, token)

    assert connection.state is ConnectionState.OPEN
    assert registry.is_online(claims.user_id)
    assert transport.sent == [
        {
            "event": CONNECTED_EVENT,
            "data": {
                "userId": str(claims.user_id),
                "companyId": str(claims.company_id),
                "scopes": [f"user:{claims.user_id}", f"company:{claims.company_id}"],
            },
        }
    ]


async def test_push_reaches_every_device_of_the_user(delivery, tokens) -> None:
    token, claims = tokens.issue()
    phone, laptop = _Transport(), _Transport()
    await delivery.connect(phone, token)
    await delivery.connect(laptop, token)

    delivered = await delivery.push_notification(claims.user_id, {"id": "n1"})

    assert delivered == 2
    for transport in (phone, laptop):
        assert transport.sent[-1] == {"event": NOTIFICATION_NEW_EVENT, "data": {"notification": {"id": "n1"}}}


async def test_disconnect_keeps_other_devices(delivery, registry, tokens) -> None:
    token, claims = tokens.issue()
    phone, laptop = _Transport(), _Transport()
    phone_connection = await delivery.connect(phone, token)
    await delivery.connect(laptop, token)

    delivery.disconnect(phone_connection)

    assert phone_connection.state is ConnectionState.CLOSED
    assert registry.is_online(claims.user_id)
    assert await delivery.push_to_user(claims.user_id, NOTIFICATION_NEW_EVENT, {}) == 1
    assert len(phone.sent) == 1


async def test_push_to_offline_user_is_silent(delivery) -> None:
    assert await delivery.push_notification(uuid4(), {"id": "n1"}) == 0


async def test_failed_send_drops_only_dead_connection(delivery, registry, tokens) -> None:
    token, claims = tokens.issue()
    dead, alive = _Transport(fail_after=1), _Transport()
    await delivery.connect(dead, token)
    await delivery.connect(alive, token)

    delivered = await delivery.push_notification(claims.user_id, {"id": "n1"})

    assert delivered == 1
    assert len(registry.for_user(claims.user_id)) == 1
    assert alive.sent[-1]["event"] == NOTIFICATION_NEW_EVENT
    assert dead.closed == (PUSH_FAILED_CLOSE_CODE, PUSH_FAILED_REASON)
    assert alive.closed is None


async def test_emit_to_company_is_tenant_scoped(delivery, tokens) -> None:
    company_id = uuid4()
    first_token, _ = tokens.issue(company_id=company_id)
    second_token, _ = tokens.issue(company_id=company_id)
    foreign_token, _ = tokens.issue()
    first, second, foreign = _Transport(), _Transport(), _Transport()
    for transport, token in ((first, first_token), (second, second_token), (foreign, foreign_token)):
        await delivery.connect(transport, token)

    assert await delivery.emit_to_company(company_id, "company:event", {"ok": True}) == 2
    assert len(foreign.sent) == 1


async def test_client_frames_are_observed_not_acted_on(delivery, tokens) -> None:
    token, _ = tokens.issue()
    transport = _Transport()
    connection = await delivery.connect(transport, token)

    assert delivery.handle_client_frame(connection, '{"event": "notification:read", "data": "n1"}') == "notification:read"
    assert delivery.handle_client_frame(connection, '{"event": "notifications:read_all"}') == "notifications:read_all"
    assert delivery.handle_client_frame(connection, "not json") is None
    assert delivery.handle_client_frame(connection, "[1, 2]") is None
    assert delivery.handle_client_frame(connection, None) is None
    assert connection.state is ConnectionState.OPEN
    assert transport.closed is None


def test_registry_remove_unknown_connection_is_false(registry) -> None:
    assert registry.remove(ChannelConnection(_Transport())) is False
