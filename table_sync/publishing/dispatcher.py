"""Job dispatcher port: asynchronous, out-of-transaction batch publishing."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from table_sync.constants import DEFAULT_BATCH_WORKERS
from table_sync.logging_config import get_logger
from table_sync.types import PublishTask, Row

logger = get_logger(__name__)

PerformCallable = Callable[[str, List[Row], Dict[str, Any]], None]


@runtime_checkable
class JobDispatcher(Protocol):
    """Accepts a batch publish job; delivery and retries are the dispatcher's business."""

    def submit(self, model_name: str, rows: List[Row], options: Dict[str, Any]) -> Any:
        ...


class InMemoryJobDispatcher:
    """Records submitted tasks without running them."""

    def __init__(self) -> None:
        self._tasks: List[PublishTask] = []
        self._lock = threading.Lock()

    def submit(self, model_name: str, rows: List[Row], options: Dict[str, Any]) -> PublishTask:
        task = PublishTask(model_name=model_name, rows=rows, options=dict(options))
        with self._lock:
            self._tasks.append(task)
        return task

    @property
    def tasks(self) -> List[PublishTask]:
        with self._lock:
            return list(self._tasks)

    @property
    def last_task(self) -> Optional[PublishTask]:
        with self._lock:
            return self._tasks[-1] if self._tasks else None


class ThreadedJobDispatcher:
    """
    Runs jobs on a thread pool.

    perform(model_name, rows, options) is the job body, usually built with
    make_batch_job(). Failures are logged and kept on the returned future.
    """

    def __init__(self, perform: PerformCallable, max_workers: int = DEFAULT_BATCH_WORKERS):
        self.perform = perform
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="table_sync_job")

    def submit(self, model_name: str, rows: List[Row], options: Dict[str, Any]) -> Future:
        task = PublishTask(model_name=model_name, rows=rows, options=dict(options))
        logger.debug(f"Job submitted [model={model_name}, rows={len(rows)}]")
        return self._executor.submit(self._run, task)

    def _run(self, task: PublishTask) -> None:
        try:
            self.perform(task.model_name, task.rows, task.options)
        except Exception as e:
            logger.error(
                f"Batch publish job failed [model={task.model_name}, rows={len(task.rows)}]: {e}",
                exc_info=True
            )
            raise

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
