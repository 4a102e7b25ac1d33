"""Background task dispatch with single-flight per issue.

Each started task runs on its own daemon thread, calls the task runner
and, whatever happens, puts exactly one TaskResult on the shared results
queue. The processing map (issue id -> task kind) is the only state
touched from more than one thread and is guarded by a lock that is never
held across a blocking call.

Entries are added by start() and removed only by take_result(), so an
issue stays "processing" until the event loop has actually consumed its
result.
"""

import logging
import queue
import threading
from typing import Callable, Dict, Optional, Protocol, Tuple

from .models import TaskResult

logger = logging.getLogger(__name__)


class TaskRunner(Protocol):
    """Anything that can execute one prompt synchronously."""

    def run(self, prompt: str, model: Optional[str] = None,
            session: Optional[str] = None) -> Tuple[bool, str, str]:
        """Return (success, text, session_id)."""
        ...


class TaskOrchestrator:
    """Starts background tasks and hands their results to the event loop."""

    def __init__(
        self,
        runner: TaskRunner,
        on_result_ready: Optional[Callable[[], None]] = None,
    ):
        """Initialize the orchestrator.

        Args:
            runner: Task runner invoked on the worker thread.
            on_result_ready: Optional hook called from the worker thread
                after a result is queued (used to wake the event loop).
                Must be thread-safe and non-blocking.
        """
        self._runner = runner
        self._on_result_ready = on_result_ready
        self._processing: Dict[str, str] = {}
        self._lock = threading.Lock()
        self._results: "queue.Queue[TaskResult]" = queue.Queue()

    def set_result_hook(self, hook: Optional[Callable[[], None]]) -> None:
        self._on_result_ready = hook

    def is_processing(self, issue_id: str) -> bool:
        with self._lock:
            return issue_id in self._processing

    def task_kind(self, issue_id: str) -> Optional[str]:
        with self._lock:
            return self._processing.get(issue_id)

    def snapshot(self) -> Dict[str, str]:
        """Copy of the processing map for rendering."""
        with self._lock:
            return dict(self._processing)

    def start(
        self,
        issue_id: str,
        kind: str,
        prompt: str,
        model: Optional[str] = None,
        session: Optional[str] = None,
    ) -> bool:
        """Start a background task unless one is already in flight.

        Returns:
            True if a worker was launched, False if the issue is busy.
        """
        with self._lock:
            if issue_id in self._processing:
                logger.info(f"Rejected {kind} for {issue_id}: "
                            f"{self._processing[issue_id]} already running")
                return False
            self._processing[issue_id] = kind

        worker = threading.Thread(
            target=self._run_task,
            args=(issue_id, kind, prompt, model, session),
            name=f"task-{kind}-{issue_id}",
            daemon=True,
        )
        logger.info(f"Starting {kind} for {issue_id} (model={model or 'default'}, "
                    f"resume={'yes' if session else 'no'})")
        worker.start()
        return True

    def _run_task(
        self,
        issue_id: str,
        kind: str,
        prompt: str,
        model: Optional[str],
        session: Optional[str],
    ) -> None:
        try:
            success, text, session_id = self._runner.run(prompt, model=model, session=session)
            result = TaskResult(issue_id, kind, success, text, session_id or "")
        except Exception as e:
            logger.exception(f"Task {kind} for {issue_id} raised")
            result = TaskResult(issue_id, kind, False, str(e), "")

        logger.info(f"Finished {kind} for {issue_id}: "
                    f"{'ok' if result.success else 'failed'}")
        self._results.put(result)
        if self._on_result_ready:
            self._on_result_ready()

    def take_result(self, block: bool = False,
                    timeout: Optional[float] = None) -> Optional[TaskResult]:
        """Dequeue one result and release its issue from the processing map.

        Each queued result can be taken exactly once, so each start()
        produces exactly one removal.

        Returns:
            The next result, or None if none is available.
        """
        try:
            result = self._results.get(block=block, timeout=timeout)
        except queue.Empty:
            return None

        with self._lock:
            self._processing.pop(result.issue_id, None)
        return result

    @property
    def pending_results(self) -> int:
        return self._results.qsize()
