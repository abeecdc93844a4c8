"""Batch publishing through the job dispatcher."""

from typing import Any, Callable, Dict, Iterable, List, Optional

from table_sync.config import Settings
from table_sync.exceptions import ConfigurationError
from table_sync.logging_config import get_logger
from table_sync.publishing.bus import MessageBus
from table_sync.publishing.dispatcher import JobDispatcher, PerformCallable
from table_sync.publishing.publisher import Publisher, build_message
from table_sync.publishing.serialization import filter_safe_for_serialization
from table_sync.storage.base import StorageAdapter
from table_sync.types import PublishState, PublishTask, Row, SyncModel

logger = get_logger(__name__)


class BatchPublisher:
    """
    Publishes many records of one model as a single message.

    publish() hands the filtered rows to the job dispatcher and returns;
    publish_now() is the job body that talks to storage and the bus.
    """

    def __init__(
        self,
        model: SyncModel,
        original_attributes: Iterable[Row],
        dispatcher: Optional[JobDispatcher] = None,
        adapter: Optional[StorageAdapter] = None,
        bus: Optional[MessageBus] = None,
        settings: Optional[Settings] = None,
        state: PublishState = PublishState.UPDATED,
        push_original_attributes: bool = False,
        routing_key: Optional[str] = None
    ):
        self.model = model
        self.original_attributes = list(original_attributes)
        self.dispatcher = dispatcher
        self.adapter = adapter
        self.bus = bus
        self.settings = settings or Settings()
        self.state = PublishState(state)
        self.push_original_attributes = push_original_attributes
        self.routing_key = routing_key

    @property
    def job_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "confirm": True,
            "push_original_attributes": self.push_original_attributes,
            "state": self.state.value,
        }
        if self.routing_key is not None:
            options["routing_key"] = self.routing_key
        return options

    def build_task(self) -> PublishTask:
        rows = [filter_safe_for_serialization(row) for row in self.original_attributes]
        return PublishTask(model_name=self.model.name, rows=rows, options=self.job_options)

    def publish(self) -> PublishTask:
        """
        Submit the batch to the job dispatcher.

        Returns:
            The submitted task
        """
        if self.dispatcher is None:
            raise ConfigurationError("BatchPublisher.publish() requires a job dispatcher")

        task = self.build_task()
        self.dispatcher.submit(task.model_name, task.rows, task.options)
        logger.info(f"Batch publish job submitted [model={task.model_name}, rows={len(task.rows)}]")
        return task

    def publish_now(self) -> Optional[Dict[str, Any]]:
        """
        Re-fetch every record and send one message with all that still exist.

        Returns:
            The published envelope, or None when no record was found
        """
        if self.adapter is None or self.bus is None:
            raise ConfigurationError("BatchPublisher.publish_now() requires a storage adapter and a bus")

        attributes: List[Row] = []
        for original in self.original_attributes:
            found = Publisher(
                self.model,
                original,
                self.adapter,
                self.bus,
                settings=self.settings,
                state=self.state,
                push_original_attributes=self.push_original_attributes,
            ).attributes_for_message()
            if found is not None:
                attributes.append(found)

        if not attributes:
            logger.info(f"No records found, nothing published [model={self.model.name}]")
            return None

        message = build_message(self.model, attributes, self.settings, self.state, self.routing_key)
        self.bus.publish(message)
        logger.info(
            f"Published batch [model={self.model.name}, rows={len(attributes)}, "
            f"routing_key={message['routing_key']}]"
        )
        return message


def make_batch_job(
    models: Iterable[SyncModel],
    adapter_factory: Callable[[], StorageAdapter],
    bus: MessageBus,
    settings: Optional[Settings] = None
) -> PerformCallable:
    """
    Build the job body run by a dispatcher for submitted batches.

    Args:
        models: Publishable models, looked up by name
        adapter_factory: Creates a storage adapter for the worker thread
        bus: Destination bus
        settings: Routing and header settings

    Returns:
        perform(model_name, rows, options)
    """
    registry = {model.name: model for model in models}

    def perform(model_name: str, rows: List[Row], options: Dict[str, Any]) -> None:
        model = registry.get(model_name)
        if model is None:
            raise ConfigurationError(f"Unknown model for batch publish: '{model_name}'")

        adapter = adapter_factory()
        try:
            BatchPublisher(
                model,
                rows,
                adapter=adapter,
                bus=bus,
                settings=settings,
                state=PublishState(options.get("state", PublishState.UPDATED.value)),
                push_original_attributes=bool(options.get("push_original_attributes", False)),
                routing_key=options.get("routing_key"),
            ).publish_now()
        finally:
            adapter.close()

    return perform
