"""
In-transaction hooks for the receiving pipeline.

Callbacks are bound to an execution point and run once per event, inside the
storage transaction, with the changed rows grouped by model name. A callback
that raises aborts the event: the transaction rolls back and the error reaches
the caller.
"""

from typing import Dict, List, Union

from table_sync.exceptions import InvalidHookContext
from table_sync.logging_config import get_logger
from table_sync.types import GroupedRows, HookCallback, HookPoint

logger = get_logger(__name__)


def resolve_hook_point(point: Union[str, HookPoint]) -> HookPoint:
    """
    Validate an execution point name.

    Args:
        point: "before_event", "after_event" or a HookPoint

    Returns:
        The matching HookPoint

    Raises:
        InvalidHookContext: For any other value
    """
    try:
        return HookPoint(point)
    except ValueError:
        raise InvalidHookContext() from None


class TransactionalHookRegistry:
    """Callbacks per execution point, kept in registration order."""

    def __init__(self) -> None:
        self._hooks: Dict[HookPoint, List[HookCallback]] = {point: [] for point in HookPoint}

    def register(self, point: Union[str, HookPoint], callback: HookCallback) -> HookCallback:
        hook_point = resolve_hook_point(point)
        if not callable(callback):
            raise TypeError(f"Hook callback must be callable, got {type(callback).__name__}")
        self._hooks[hook_point].append(callback)
        logger.debug(f"Registered hook [point={hook_point.value}, callback={getattr(callback, '__name__', callback)}]")
        return callback

    def callbacks(self, point: Union[str, HookPoint]) -> List[HookCallback]:
        return list(self._hooks[resolve_hook_point(point)])

    def run(self, point: Union[str, HookPoint], grouped_rows: GroupedRows) -> None:
        for callback in self._hooks[resolve_hook_point(point)]:
            callback(grouped_rows)

    def __len__(self) -> int:
        return sum(len(callbacks) for callbacks in self._hooks.values())
