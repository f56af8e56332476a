"""Fixed-cadence fan-out of device sampling passes."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from threading import Event, Lock, Thread
from typing import Optional, Sequence, Set

from app.schemas import SampleReport
from services.sampler import DeviceSampler

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


def default_worker_count(device_count: int) -> int:
    return max(4, device_count * 2)


class PollScheduler:
    """Submits one sampling task per device every ``interval`` seconds.

    A tick never waits for the previous tick's tasks, so slow devices can
    have overlapping passes in flight.
    """

    def __init__(
        self,
        sampler: DeviceSampler,
        devices: Sequence[str],
        interval: float = DEFAULT_POLL_INTERVAL,
        workers: Optional[int] = None,
    ) -> None:
        self.sampler = sampler
        self.devices = tuple(devices)
        self.interval = interval
        self.executor = ThreadPoolExecutor(
            max_workers=workers or default_worker_count(len(self.devices)),
            thread_name_prefix="sampler",
        )
        self._stop = Event()
        self._thread: Optional[Thread] = None
        self._futures: Set[Future[SampleReport]] = set()
        self._futures_lock = Lock()
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="poll-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            "Polling started",
            extra={"devices": len(self.devices)},
        )

    def stop(self, wait: bool = False) -> None:
        """Stop ticking. In-flight passes are abandoned unless ``wait`` is set."""
        self._stop.set()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout=self.interval + 1)
        self._thread = None
        self.executor.shutdown(wait=wait, cancel_futures=True)

    def run_tick(self) -> list[Future[SampleReport]]:
        """Submit one sampling task per device without waiting for them."""
        self.ticks += 1
        futures: list[Future[SampleReport]] = []
        for device in self.devices:
            try:
                future = self.executor.submit(self.sampler.sample, device)
            except RuntimeError:
                # executor already shut down
                break
            with self._futures_lock:
                self._futures.add(future)
            future.add_done_callback(lambda f, dev=device: self._task_done(dev, f))
            futures.append(future)
        return futures

    def in_flight(self) -> int:
        with self._futures_lock:
            return len(self._futures)

    def _run(self) -> None:
        while not self._stop.is_set():
            self.run_tick()
            if self._stop.wait(self.interval):
                break

    def _task_done(self, device: str, future: Future[SampleReport]) -> None:
        with self._futures_lock:
            self._futures.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Sampling task crashed",
                exc_info=exc,
                extra={"device": device, "reason": str(exc)},
            )
