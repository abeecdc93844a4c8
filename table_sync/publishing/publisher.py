"""Single-record publishing."""

import time
from typing import Any, Dict, List, Optional

from table_sync.config import Settings
from table_sync.constants import DESTROY_EVENT, UPDATE_EVENT
from table_sync.logging_config import get_logger
from table_sync.protocol import Envelope, EventData
from table_sync.publishing.bus import MessageBus
from table_sync.storage.base import StorageAdapter
from table_sync.types import PublishState, Row, SyncModel

logger = get_logger(__name__)


def build_message(
    model: SyncModel,
    attributes: List[Row],
    settings: Settings,
    state: PublishState = PublishState.UPDATED,
    routing_key: Optional[str] = None
) -> Dict[str, Any]:
    """
    Build the bus envelope for a list of rows of one model.

    Args:
        model: Published model
        attributes: Row attributes to send
        settings: Supplies routing key, headers and exchange
        state: created / updated / destroyed
        routing_key: Explicit routing key, wins over settings.routing_key_callable

    Returns:
        Envelope as a plain dict
    """
    routing = routing_key or settings.routing_key_callable(model.name, attributes)
    envelope = Envelope(
        routing_key=routing,
        headers=settings.headers_callable(model.name, attributes),
        exchange_name=settings.exchange_name,
        data=EventData(
            event=DESTROY_EVENT if state == PublishState.DESTROYED else UPDATE_EVENT,
            model=model.published_name,
            attributes=attributes,
            version=time.time(),
            metadata={"created": True} if state == PublishState.CREATED else {},
        ),
    )
    return envelope.to_message()


class Publisher:
    """
    Publishes the current state of one record.

    The record is looked up again by primary key at publish time, so the
    message carries what is stored, not what the caller saw.
    """

    def __init__(
        self,
        model: SyncModel,
        original_attributes: Row,
        adapter: StorageAdapter,
        bus: MessageBus,
        settings: Optional[Settings] = None,
        state: PublishState = PublishState.UPDATED,
        push_original_attributes: bool = False,
        routing_key: Optional[str] = None
    ):
        self.model = model
        self.original_attributes = original_attributes
        self.adapter = adapter
        self.bus = bus
        self.settings = settings or Settings()
        self.state = PublishState(state)
        self.push_original_attributes = push_original_attributes
        self.routing_key = routing_key

    @property
    def primary_key(self) -> Row:
        return self.model.primary_key_of(self.original_attributes)

    def attributes_for_message(self) -> Optional[Row]:
        """Attributes to publish, or None when the record no longer exists."""
        if self.state == PublishState.DESTROYED:
            return self.model.attributes_for_destroy(self.original_attributes)

        row = self.adapter.find(self.model.table, self.primary_key)
        if row is None:
            return None
        if self.push_original_attributes:
            return dict(self.original_attributes)
        return self.model.sync_attributes(row)

    def publish_now(self) -> Optional[Dict[str, Any]]:
        """
        Send one message for the record.

        Returns:
            The published envelope, or None if the record was not found
        """
        attributes = self.attributes_for_message()
        if attributes is None:
            logger.info(f"Record not found, nothing published [model={self.model.name}, pk={self.primary_key}]")
            return None

        message = build_message(self.model, [attributes], self.settings, self.state, self.routing_key)
        self.bus.publish(message)
        logger.info(
            f"Published record [model={self.model.name}, routing_key={message['routing_key']}, "
            f"event={message['data']['event']}]"
        )
        return message
