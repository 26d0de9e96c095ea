"""Best-effort session notifications delivered to node daemons.

Node daemons subscribe to a channel keyed by their node id and add a peer
when a ``session:start`` event arrives. Delivery is fire-and-forget: the
session already exists by the time anything is published.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Protocol

import redis

from x4pn_meter.core.settings import settings

logger = logging.getLogger(__name__)

SESSION_START_EVENT = "session:start"

__all__ = [
    "InMemorySessionNotifier",
    "RedisSessionNotifier",
    "SESSION_START_EVENT",
    "SessionNotifier",
    "SessionStartEvent",
    "get_session_notifier",
    "node_channel",
]


@dataclass(frozen=True)
class SessionStartEvent:
    """Payload published when a session starts on a node."""

    session_id: int
    user_address: str
    node_id: str

    def to_message(self) -> str:
        return json.dumps({"event": SESSION_START_EVENT, **asdict(self)}, sort_keys=True)


class SessionNotifier(Protocol):
    """Publish side of the node notification channel."""

    def publish_session_start(self, event: SessionStartEvent) -> None: ...


def node_channel(node_id: str) -> str:
    """Return the pub/sub channel name for `node_id`."""
    return f"{settings.notification_channel_prefix}:{node_id}"


class RedisSessionNotifier:
    """Publish session events over Redis pub/sub."""

    def __init__(self, client: Any | None = None) -> None:
        self._redis = client or redis.Redis.from_url(
            settings.redis_url,
            socket_timeout=settings.notification_timeout_seconds,
            socket_connect_timeout=settings.notification_timeout_seconds,
        )

    def publish_session_start(self, event: SessionStartEvent) -> None:
        receivers = self._redis.publish(node_channel(event.node_id), event.to_message())
        if not receivers:
            logger.info("No daemon listening for node %s (session %s)", event.node_id, event.session_id)


class InMemorySessionNotifier:
    """Process-local channel used for development and tests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._events: dict[str, list[SessionStartEvent]] = defaultdict(list)

    def publish_session_start(self, event: SessionStartEvent) -> None:
        with self._lock:
            self._events[node_channel(event.node_id)].append(event)

    def events_for(self, node_id: str) -> list[SessionStartEvent]:
        """Return the events published for `node_id`, oldest first."""
        with self._lock:
            return list(self._events.get(node_channel(node_id), []))

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


_NOTIFIER: SessionNotifier | None = None
_NOTIFIER_LOCK = Lock()


def get_session_notifier() -> SessionNotifier:
    """Return the shared notifier selected by ``NOTIFICATION_BACKEND``."""
    global _NOTIFIER
    with _NOTIFIER_LOCK:
        if _NOTIFIER is None:
            backend = settings.notification_backend.lower()
            if backend == "redis":
                _NOTIFIER = RedisSessionNotifier()
            elif backend == "memory":
                _NOTIFIER = InMemorySessionNotifier()
            else:
                raise ValueError(f"Unknown notification backend: {settings.notification_backend}")
        return _NOTIFIER
