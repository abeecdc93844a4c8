"""
Receiving handler: applies inbound change events to local storage.

One event is handled inside one storage transaction:

    Received -> Mapped -> Locked -> Resolved -> Applied -> HooksRun -> Committed

with Aborted reachable from every step. before_event hooks run between
Resolved and Applied, after_event hooks after Applied; both inside the
transaction. Any failure rolls back every row of the event and is re-raised.
Stale and duplicate deliveries are skipped by version comparison, which makes
redelivery safe; the handler never retries.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from table_sync.exceptions import MissingKeyError
from table_sync.logging_config import get_logger
from table_sync.protocol import ChangeEvent
from table_sync.receiving.mapper import AttributeMapper, MappedRow
from table_sync.receiving.target_spec import TargetSpec, build_target_spec
from table_sync.receiving.version_guard import VersionGuard
from table_sync.storage.base import StorageAdapter, key_identity
from table_sync.types import EventKind, GroupedRows, GuardDecision, HookPoint, Row, RowAction, RowOutcome

logger = get_logger(__name__)


class HandlingState(str, Enum):
    RECEIVED = "received"
    MAPPED = "mapped"
    LOCKED = "locked"
    RESOLVED = "resolved"
    APPLIED = "applied"
    HOOKS_RUN = "hooks_run"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class _RowPlan:
    mapped: MappedRow
    action: RowAction
    stored: Optional[Row] = None


@dataclass
class _TargetWork:
    spec: TargetSpec
    rows: List[MappedRow]
    plans: List[_RowPlan] = field(default_factory=list)
    outcomes: List[RowOutcome] = field(default_factory=list)


class HandlingPass:
    """State of one attempt at handling one event."""

    def __init__(self, event: ChangeEvent):
        self.event = event
        self.state = HandlingState.RECEIVED
        self.outcomes: List[RowOutcome] = []

    def advance(self, state: HandlingState) -> None:
        logger.debug(
            f"Event {self.state.value} -> {state.value} "
            f"[model={self.event.model_name}, version={self.event.version}]"
        )
        self.state = state


class ReceivingHandler:
    """
    Applies change events for the models registered with receive().

    The storage adapter is injected; registration reads table metadata from
    it so that bad configuration fails at receive() time.
    """

    def __init__(self, adapter: StorageAdapter):
        self.adapter = adapter
        self._targets: Dict[str, List[TargetSpec]] = {}

    def receive(self, model_name: str, to_table: str, **options: Any) -> TargetSpec:
        """
        Register a destination table for a model.

        Args:
            model_name: Model name carried by inbound events
            to_table: Destination table
            **options: target_keys, mapping_overrides, only, default_values,
                skip, version_key, inside_transaction (see build_target_spec)

        Returns:
            The registered TargetSpec; hooks can still be added via inside_transaction()

        Raises:
            ConfigurationError: If the options are invalid
        """
        spec = build_target_spec(
            model_name,
            to_table,
            columns=self.adapter.columns(to_table),
            primary_keys=self.adapter.primary_keys(to_table),
            **options
        )
        self._targets.setdefault(model_name, []).append(spec)
        logger.info(
            f"Registered receiving target [model={model_name}, table={to_table}, "
            f"target_keys={list(spec.target_keys)}, hooks={len(spec.hooks)}]"
        )
        return spec

    def targets_for(self, model_name: str) -> List[TargetSpec]:
        return list(self._targets.get(model_name, []))

    def call(self, event: Union[ChangeEvent, Mapping[str, Any], str, bytes]) -> List[RowOutcome]:
        """
        Handle one inbound event.

        Args:
            event: ChangeEvent or raw message

        Returns:
            One RowOutcome per incoming row and target

        Raises:
            InvalidEventError, MissingKeyError, LockTimeoutError, StorageError,
            or whatever a hook raised. Nothing is persisted in that case.
        """
        if not isinstance(event, ChangeEvent):
            event = ChangeEvent.from_message(event)

        targets = [spec for spec in self.targets_for(event.model_name) if not spec.should_skip(event)]
        if not targets:
            logger.warning(f"No receiving target for event, ignoring [model={event.model_name}]")
            return []

        handling = HandlingPass(event)
        try:
            work = [self._map(event, spec) for spec in targets]
            handling.advance(HandlingState.MAPPED)

            with self.adapter.transaction():
                self._lock(work)
                handling.advance(HandlingState.LOCKED)

                for target in work:
                    self._resolve(event, target)
                handling.advance(HandlingState.RESOLVED)

                for target in work:
                    target.spec.hooks.run(HookPoint.BEFORE_EVENT, self._planned_rows(event, target))

                for target in work:
                    self._apply(event, target)
                handling.advance(HandlingState.APPLIED)

                for target in work:
                    target.spec.hooks.run(HookPoint.AFTER_EVENT, self._changed_rows(target))
                handling.advance(HandlingState.HOOKS_RUN)

            handling.outcomes = [outcome for target in work for outcome in target.outcomes]
            handling.advance(HandlingState.COMMITTED)
        except Exception as e:
            failed_in = handling.state
            handling.advance(HandlingState.ABORTED)
            logger.error(
                f"Event aborted, nothing persisted [model={event.model_name}, version={event.version}, "
                f"state={failed_in.value}, error={type(e).__name__}: {e}]",
                exc_info=True
            )
            raise

        logger.info(
            f"Event committed [model={event.model_name}, event={event.event_kind.value}, "
            f"version={event.version}, {_summarize(handling.outcomes)}]"
        )
        return handling.outcomes

    def _map(self, event: ChangeEvent, spec: TargetSpec) -> _TargetWork:
        rows = AttributeMapper.map_rows(event.rows, spec)
        for index, mapped in enumerate(rows):
            if mapped.missing_keys:
                raise MissingKeyError(
                    f"Row {index} of model '{event.model_name}' lacks target keys "
                    f"{list(mapped.missing_keys)} [table={spec.to_table}]"
                )
        return _TargetWork(spec=spec, rows=rows)

    def _lock(self, work: List[_TargetWork]) -> None:
        keys: Dict[str, Tuple[str, Row]] = {}
        for target in work:
            for mapped in target.rows:
                identity = key_identity(target.spec.to_table, mapped.key)
                keys.setdefault(identity, (target.spec.to_table, mapped.key))

        for identity in sorted(keys):
            table, key = keys[identity]
            self.adapter.lock(table, key)

    def _resolve(self, event: ChangeEvent, target: _TargetWork) -> None:
        spec = target.spec
        seen = set()
        for mapped in target.rows:
            identity = key_identity(spec.to_table, mapped.key)
            if identity in seen:
                target.plans.append(_RowPlan(mapped, RowAction.SKIPPED_STALE))
                continue
            seen.add(identity)

            stored = self.adapter.find(spec.to_table, mapped.key)
            decision = VersionGuard.decide(stored, event.version, spec.version_key)

            if event.event_kind == EventKind.DESTROY:
                if stored is None:
                    action = RowAction.SKIPPED_ABSENT
                elif decision == GuardDecision.SKIP_STALE:
                    action = RowAction.SKIPPED_STALE
                else:
                    action = RowAction.DESTROYED
            elif decision == GuardDecision.APPLY_AS_CREATE:
                action = RowAction.CREATED
            elif decision == GuardDecision.APPLY:
                action = RowAction.UPDATED
            else:
                action = RowAction.SKIPPED_STALE

            logger.debug(f"Resolved row [table={spec.to_table}, key={mapped.key}, action={action.value}]")
            target.plans.append(_RowPlan(mapped, action, stored))

    def _planned_rows(self, event: ChangeEvent, target: _TargetWork) -> GroupedRows:
        rows = []
        for plan in target.plans:
            if plan.action == RowAction.DESTROYED:
                rows.append(dict(plan.stored))
            elif plan.action.changed:
                rows.append({**plan.mapped.columns, target.spec.version_key: event.version})
        return {target.spec.model_name: rows}

    def _apply(self, event: ChangeEvent, target: _TargetWork) -> None:
        spec = target.spec
        for plan in target.plans:
            key = plan.mapped.key
            if plan.action == RowAction.CREATED:
                result = self.adapter.create(
                    spec.to_table, {**plan.mapped.columns, spec.version_key: event.version}
                )
            elif plan.action == RowAction.UPDATED:
                result = self.adapter.update(
                    spec.to_table, key, {**plan.mapped.attributes, spec.version_key: event.version}
                )
            elif plan.action == RowAction.DESTROYED:
                result = self.adapter.delete(spec.to_table, key)
            else:
                result = plan.stored
            target.outcomes.append(RowOutcome(table=spec.to_table, key=key, action=plan.action, row=result))

    def _changed_rows(self, target: _TargetWork) -> GroupedRows:
        return {
            target.spec.model_name: [
                outcome.row for outcome in target.outcomes
                if outcome.action.changed and outcome.row is not None
            ]
        }


def _summarize(outcomes: List[RowOutcome]) -> str:
    counts: Dict[str, int] = {}
    for outcome in outcomes:
        counts[outcome.action.value] = counts.get(outcome.action.value, 0) + 1
    return ", ".join(f"{action}={count}" for action, count in sorted(counts.items())) or "rows=0"
