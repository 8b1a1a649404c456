import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Tuple

from .config import EngineConfig
from .constants import DEFAULT_DEBOUNCE_SEC, DEFAULT_RUNNER_MAX_WORKERS
from .engine import compute_scenario
from .result import ScenarioResult
from .topology import GraphModel

logger = logging.getLogger(__name__)


# Shared thread pool for all scenario evaluations
class RunnerExecutorManager:
    _executor: Optional[ThreadPoolExecutor] = None
    _lock = threading.Lock()

    @classmethod
    def get_executor(cls) -> ThreadPoolExecutor:
        if cls._executor is None:
            with cls._lock:
                if cls._executor is None:
                    cls._executor = ThreadPoolExecutor(
                        max_workers=DEFAULT_RUNNER_MAX_WORKERS, thread_name_prefix="Capacity-Engine-Worker"
                    )
        return cls._executor


class ScenarioRunner:
    """
    Debounced, off-thread host for compute_scenario.

    Graphs submitted within `debounce_s` of each other are coalesced: only the
    latest snapshot is evaluated and the futures of superseded submissions are
    cancelled. An evaluation that already started is never interrupted.
    """

    def __init__(
        self,
        debounce_s: float = DEFAULT_DEBOUNCE_SEC,
        config: Optional[EngineConfig] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.debounce_s = debounce_s
        self.config = config
        # A caller-supplied pool belongs to this runner; the shared pool outlives it.
        self._owns_executor = executor is not None
        self.executor = executor or RunnerExecutorManager.get_executor()
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[Tuple[GraphModel, Future]] = None
        self._closed = False

    def submit(self, graph: GraphModel) -> "Future[ScenarioResult]":
        """
        Schedules an evaluation of `graph` and immediately returns its Future.
        """
        future: Future = Future()
        with self._lock:
            if self._closed:
                raise RuntimeError("ScenarioRunner is closed")
            if self._pending is not None:
                self._pending[1].cancel()
            if self._timer is not None:
                self._timer.cancel()
            self._pending = (graph, future)
            self._timer = threading.Timer(self.debounce_s, self._fire)
            self._timer.daemon = True
            self._timer.start()
        return future

    def flush(self) -> None:
        """Start the pending evaluation now instead of waiting for the debounce window."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
        self._fire()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._pending is not None:
                self._pending[1].cancel()
                self._pending = None
        if self._owns_executor:
            self.executor.shutdown(wait=False)

    def _fire(self) -> None:
        with self._lock:
            pending = self._pending
            self._pending = None
            self._timer = None
        if pending is None:
            return

        graph, future = pending
        if not future.set_running_or_notify_cancel():
            return
        try:
            self.executor.submit(self._run, graph, future)
        except RuntimeError as exc:
            # Executor already shut down
            future.set_exception(exc)

    def _run(self, graph: GraphModel, future: Future) -> None:
        try:
            result = compute_scenario(graph, self.config)
        except Exception as exc:
            logger.exception("scenario_failed")
            future.set_exception(exc)
        else:
            future.set_result(result)
