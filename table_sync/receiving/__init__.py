"""
Receiving pipeline.

Maps inbound rows to storage columns, locks and version-checks them, applies
them in one transaction and runs in-transaction hooks.
"""

from table_sync.receiving.handler import HandlingState, ReceivingHandler
from table_sync.receiving.hooks import TransactionalHookRegistry
from table_sync.receiving.mapper import AttributeMapper, MappedRow
from table_sync.receiving.target_spec import TargetSpec, build_target_spec
from table_sync.receiving.version_guard import VersionGuard

__all__ = [
    "AttributeMapper",
    "HandlingState",
    "MappedRow",
    "ReceivingHandler",
    "TargetSpec",
    "TransactionalHookRegistry",
    "VersionGuard",
    "build_target_spec",
]
