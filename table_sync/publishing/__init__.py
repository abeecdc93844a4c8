"""Publishing pipeline: single-record and batch change events."""

from table_sync.publishing.batch_publisher import BatchPublisher, make_batch_job
from table_sync.publishing.bus import InMemoryMessageBus, MessageBus
from table_sync.publishing.dispatcher import InMemoryJobDispatcher, JobDispatcher, ThreadedJobDispatcher
from table_sync.publishing.publisher import Publisher, build_message
from table_sync.publishing.serialization import filter_safe_for_serialization

__all__ = [
    "BatchPublisher",
    "InMemoryJobDispatcher",
    "InMemoryMessageBus",
    "JobDispatcher",
    "MessageBus",
    "Publisher",
    "ThreadedJobDispatcher",
    "build_message",
    "filter_safe_for_serialization",
    "make_batch_job",
]
