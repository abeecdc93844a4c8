"""Conflict resolution between an incoming change and the stored row."""

from typing import Any, Optional

from table_sync.types import GuardDecision, Row


class VersionGuard:
    """
    Last-writer-wins on a totally ordered version column.

    An incoming change applies when no row is stored, or when its version is
    strictly greater than the stored one. Ties keep the stored state, so a
    redelivered event is absorbed without error.
    """

    @staticmethod
    def is_newer(stored_version: Any, incoming_version: Any) -> bool:
        if stored_version is None:
            return True
        return incoming_version > stored_version

    @staticmethod
    def decide(stored_row: Optional[Row], incoming_version: Any, version_key: str) -> GuardDecision:
        """
        Decide what to do with one row.

        Args:
            stored_row: Current stored row, None if absent
            incoming_version: Version carried by the event
            version_key: Column holding the stored version

        Returns:
            APPLY_AS_CREATE when absent, APPLY when newer, SKIP_STALE otherwise
        """
        if stored_row is None:
            return GuardDecision.APPLY_AS_CREATE

        if VersionGuard.is_newer(stored_row.get(version_key), incoming_version):
            return GuardDecision.APPLY

        return GuardDecision.SKIP_STALE
