"""Message bus port and an in-memory implementation."""

import threading
from typing import Any, Dict, List, Protocol, runtime_checkable

from table_sync.logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class MessageBus(Protocol):
    """
    Transport for outbound envelopes. Implementations wrap the real broker
    client; when envelope["confirm_select"] is true they wait for the broker
    acknowledgement before returning.
    """

    def publish(self, message: Dict[str, Any]) -> None:
        ...


class InMemoryMessageBus:
    """Keeps published envelopes in a list. For tests and local runs."""

    def __init__(self) -> None:
        self._messages: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def publish(self, message: Dict[str, Any]) -> None:
        with self._lock:
            self._messages.append(message)
        logger.debug(f"Message stored [routing_key={message.get('routing_key')}]")

    @property
    def messages(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
