"""Shared data type definitions (event kinds, row outcomes, publish tasks)."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from table_sync.constants import (
    AFTER_EVENT,
    BEFORE_EVENT,
    DEFAULT_PRIMARY_KEYS,
    DESTROY_EVENT,
    UPDATE_EVENT,
)

Row = Dict[str, Any]
GroupedRows = Dict[str, List[Row]]
HookCallback = Callable[[GroupedRows], None]


class EventKind(str, Enum):
    UPDATE = UPDATE_EVENT
    DESTROY = DESTROY_EVENT


class HookPoint(str, Enum):
    BEFORE_EVENT = BEFORE_EVENT
    AFTER_EVENT = AFTER_EVENT


class GuardDecision(str, Enum):
    APPLY = "apply"
    APPLY_AS_CREATE = "apply_as_create"
    SKIP_STALE = "skip_stale"


class RowAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DESTROYED = "destroyed"
    SKIPPED_STALE = "skipped_stale"
    SKIPPED_ABSENT = "skipped_absent"

    @property
    def changed(self) -> bool:
        return self in (RowAction.CREATED, RowAction.UPDATED, RowAction.DESTROYED)


class PublishState(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DESTROYED = "destroyed"


@dataclass
class RowOutcome:
    """
    What happened to one row during a single handling pass.
    """
    table: str
    key: Row
    action: RowAction
    row: Optional[Row] = None


@dataclass(frozen=True)
class PublishTask:
    """
    A batch of serialized rows handed to the job dispatcher.
    """
    model_name: str
    rows: List[Row]
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncModel:
    """
    Publishing-side description of a model.

    attributes_for_sync, when set, replaces the stored row as the published
    attributes. sync_model_name overrides the model name written into the
    envelope; routing still uses name.
    """
    name: str
    table: str
    primary_keys: Tuple[str, ...] = DEFAULT_PRIMARY_KEYS
    attributes_for_sync: Optional[Callable[[Row], Row]] = None
    sync_model_name: Optional[str] = None
    destroy_attributes: Optional[Callable[[Row], Row]] = None

    @property
    def published_name(self) -> str:
        return self.sync_model_name or self.name

    def primary_key_of(self, attributes: Row) -> Row:
        return {key: attributes.get(key) for key in self.primary_keys}

    def sync_attributes(self, row: Row) -> Row:
        if self.attributes_for_sync is not None:
            return self.attributes_for_sync(row)
        return dict(row)

    def attributes_for_destroy(self, attributes: Row) -> Row:
        if self.destroy_attributes is not None:
            return self.destroy_attributes(attributes)
        return self.primary_key_of(attributes)
