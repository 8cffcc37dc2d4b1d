"""Run simulation batches in the background, keeping only the newest result."""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from errors import SimulationCancelled
from simulation import SimulationRequest, SimulationResult, run_simulation

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Each `submit` cancels the batch still in flight and starts a new one on a
    background thread. A finished batch is published only if nothing newer has
    been published already, so `latest` never goes back in time and is never
    half-written. Cancelled batches resolve their future to None.
    """

    def __init__(self, runner: Callable = run_simulation, max_workers: int = 2,
                 on_result: Optional[Callable[[SimulationResult], None]] = None):
        self._runner = runner
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="simulation")
        self._lock = threading.Lock()
        self._generation = 0
        self._published_generation = 0
        self._cancel_event: Optional[threading.Event] = None
        self._latest: Optional[SimulationResult] = None
        self._latest_request: Optional[SimulationRequest] = None
        self._on_result = on_result

    @property
    def latest(self) -> Optional[SimulationResult]:
        with self._lock:
            return self._latest

    @property
    def latest_request(self) -> Optional[SimulationRequest]:
        with self._lock:
            return self._latest_request

    def submit(self, request: SimulationRequest) -> Future:
        # bad input fails here, in the caller, instead of inside the worker
        request.validate()
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()
                logger.info("Superseding in-flight batch %d", self._generation)
            self._generation += 1
            generation = self._generation
            cancel_event = threading.Event()
            self._cancel_event = cancel_event
        return self._pool.submit(self._run, generation, request, cancel_event)

    def cancel(self) -> None:
        with self._lock:
            if self._cancel_event is not None:
                self._cancel_event.set()

    def _run(self, generation, request, cancel_event):
        try:
            result = self._runner(request, cancel_event=cancel_event)
        except SimulationCancelled:
            logger.info("Batch %d cancelled", generation)
            return None
        with self._lock:
            if cancel_event.is_set() or generation < self._published_generation:
                logger.info("Discarding stale batch %d", generation)
                return None
            self._published_generation = generation
            self._latest = result
            self._latest_request = request
            if self._cancel_event is cancel_event:
                self._cancel_event = None
        if self._on_result is not None:
            self._on_result(result)
        return result

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._pool.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
