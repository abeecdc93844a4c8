"""Wire message definitions for change events and bus envelopes."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from table_sync.constants import ENVELOPE_EVENT
from table_sync.exceptions import InvalidEventError
from table_sync.types import EventKind, Row

Version = Union[int, float]


class EventData(BaseModel):
    """The data section of a table_sync message."""
    event: EventKind
    model: str
    attributes: List[Dict[str, Any]]
    version: Version
    metadata: Dict[str, Any] = {}

    @field_validator("attributes", mode="before")
    @classmethod
    def _wrap_single_row(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return [value]
        return value


class InboundMessage(BaseModel):
    """A message as delivered by the bus; fields besides data are source context."""
    model_config = ConfigDict(extra="allow")

    data: EventData


class Envelope(BaseModel):
    """A single outbound message for the bus."""
    routing_key: str
    event: str = ENVELOPE_EVENT
    confirm_select: bool = True
    realtime: bool = True
    headers: Optional[Dict[str, Any]] = None
    exchange_name: Optional[str] = None
    data: EventData

    def to_message(self) -> Dict[str, Any]:
        """Plain dict for the bus; exchange_name only appears when configured."""
        exclude = {"exchange_name"} if self.exchange_name is None else set()
        return self.model_dump(mode="json", exclude=exclude)


@dataclass(frozen=True)
class ChangeEvent:
    """
    One inbound change notification, immutable once received.
    """
    event_kind: EventKind
    model_name: str
    rows: Tuple[Row, ...]
    version: Version
    source_context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_message(cls, message: Union[Mapping[str, Any], str, bytes]) -> 'ChangeEvent':
        """
        Parse and validate a raw bus message.

        Args:
            message: Decoded mapping or raw JSON text/bytes

        Returns:
            ChangeEvent instance

        Raises:
            InvalidEventError: If the message does not match the wire format
        """
        try:
            if isinstance(message, (str, bytes)):
                inbound = InboundMessage.model_validate_json(message)
            else:
                inbound = InboundMessage.model_validate(message)
        except ValidationError as e:
            raise InvalidEventError(f"Malformed table_sync message: {e}") from e

        data = inbound.data
        return cls(
            event_kind=data.event,
            model_name=data.model,
            rows=tuple(dict(row) for row in data.attributes),
            version=data.version,
            source_context=MappingProxyType(dict(inbound.model_extra or {})),
            metadata=MappingProxyType(dict(data.metadata)),
        )
