"""Process-local registry of live, authenticated channel connections.

The registry starts empty, is filled only by connect events and emptied by
disconnects; nothing in it is persisted or survives a restart.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from .delivery import ChannelConnection


class ConnectionRegistry:
    """Routes by user id and by company id; several connections per user are allowed."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_user: dict[UUID, set["ChannelConnection"]] = defaultdict(set)
        self._by_company: dict[UUID, set["ChannelConnection"]] = defaultdict(set)

    def add(self, connection: "ChannelConnection") -> None:
        with self._lock:
            self._by_user[connection.user_id].add(connection)
            self._by_company[connection.company_id].add(connection)

    def remove(self, connection: "ChannelConnection") -> bool:
        """Drop one connection; other devices of the same user stay registered."""
        with self._lock:
            user_connections = self._by_user.get(connection.user_id)
            if not user_connections or connection not in user_connections:
                return False
            user_connections.discard(connection)
            if not user_connections:
                del self._by_user[connection.user_id]
            company_connections = self._by_company.get(connection.company_id)
            if company_connections is not None:
                company_connections.discard(connection)
                if not company_connections:
                    del self._by_company[connection.company_id]
            return True

    def for_user(self, user_id: UUID) -> list["ChannelConnection"]:
        with self._lock:
            return list(self._by_user.get(user_id, ()))

    def for_company(self, company_id: UUID) -> list["ChannelConnection"]:
        with self._lock:
            return list(self._by_company.get(company_id, ()))

    def is_online(self, user_id: UUID) -> bool:
        with self._lock:
            return bool(self._by_user.get(user_id))

    def __len__(self) -> int:
        with self._lock:
            return sum(len(connections) for connections in self._by_user.values())
