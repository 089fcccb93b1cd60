"""Background Dispatcher - delivers alerts to external channels off the request path."""

import atexit
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Optional

from shareguard.alerts.channels.base import AlertChannel
from shareguard.alerts.context import AlertContext
from shareguard.common.constants import AlertConstants
from shareguard.common.exceptions import ExternalDeliveryFailure
from shareguard.data.schemas import AlertRecord

logger = logging.getLogger(__name__)


@dataclass
class DeliveryJob:
    """One alert to send through one channel."""
    channel: AlertChannel
    alert: AlertRecord
    context: AlertContext


class BackgroundDispatcher:
    """Bounded queue drained by a daemon thread.

    A slow or failing channel never blocks a login. When the queue is full
    the job is dropped with a warning; delivery failures are logged and
    dropped. Nothing is retried.
    """

    DEFAULT_QUEUE_SIZE = 1000
    DEFAULT_FLUSH_TIMEOUT = AlertConstants.FLUSH_TIMEOUT_SECONDS

    def __init__(
        self,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
        flush_timeout: float = DEFAULT_FLUSH_TIMEOUT,
    ):
        """Initialize and start the dispatcher.

        Args:
            max_queue_size: Maximum number of pending jobs
            flush_timeout: Time allowed for draining on shutdown
        """
        self.max_queue_size = max_queue_size
        self.flush_timeout = flush_timeout

        self._queue: queue.Queue[Optional[DeliveryJob]] = queue.Queue(maxsize=max_queue_size)
        self._shutdown_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

        self._delivered = 0
        self._failed = 0
        self._dropped = 0
        self._stats_lock = threading.Lock()

        self._start_worker()
        atexit.register(self.shutdown)

    def _start_worker(self) -> None:
        self._worker = threading.Thread(
            target=self._worker_loop,
            name="AlertDispatcher",
            daemon=True,
        )
        self._worker.start()
        logger.info("Background alert dispatcher started")

    def _worker_loop(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                job = self._queue.get(timeout=AlertConstants.QUEUE_GET_TIMEOUT)
            except queue.Empty:
                continue

            if job is None:
                self._queue.task_done()
                break

            try:
                self._deliver(job)
            finally:
                self._queue.task_done()

        self._drain_queue()
        logger.info("Background alert dispatcher stopped")

    def _deliver(self, job: DeliveryJob) -> None:
        try:
            job.channel.send(job.alert, job.context)
            with self._stats_lock:
                self._delivered += 1
        except ExternalDeliveryFailure as e:
            with self._stats_lock:
                self._failed += 1
            logger.error(
                f"Alert delivery failed: {e.message}",
                extra={"channel": job.channel.name, "alert_id": job.alert.alert_id},
            )
        except Exception as e:
            with self._stats_lock:
                self._failed += 1
            logger.error(
                f"Unexpected error delivering alert: {e}",
                extra={"channel": job.channel.name, "alert_id": job.alert.alert_id},
            )

    def _drain_queue(self) -> None:
        drained = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                break
            if job is not None:
                self._deliver(job)
                drained += 1
            self._queue.task_done()
        if drained > 0:
            logger.info(f"Delivered {drained} queued alerts during shutdown")

    def submit(self, channel: AlertChannel, alert: AlertRecord, context: AlertContext) -> bool:
        """Queue an alert for delivery.

        Returns:
            True if queued, False if dropped
        """
        if self._shutdown_event.is_set():
            logger.warning("Dispatcher stopped, alert not delivered", extra={"channel": channel.name})
            with self._stats_lock:
                self._dropped += 1
            return False

        try:
            self._queue.put_nowait(DeliveryJob(channel=channel, alert=alert, context=context))
            return True
        except queue.Full:
            with self._stats_lock:
                self._dropped += 1
            logger.warning("Alert queue full, delivery dropped", extra={"channel": channel.name})
            return False

    def flush(self) -> None:
        """Block until every queued job has been processed."""
        self._queue.join()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop the worker after delivering what is queued."""
        if self._shutdown_event.is_set():
            return

        timeout = timeout if timeout is not None else self.flush_timeout
        self._shutdown_event.set()
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            pass

        if self._worker and self._worker.is_alive():
            self._worker.join(timeout=timeout)
            if self._worker.is_alive():
                logger.warning("Alert dispatcher did not stop cleanly")

        logger.info(
            f"Alert dispatcher shutdown complete. "
            f"Delivered: {self._delivered}, Failed: {self._failed}, Dropped: {self._dropped}"
        )

    def get_stats(self) -> dict:
        with self._stats_lock:
            return {
                "delivered": self._delivered,
                "failed": self._failed,
                "dropped": self._dropped,
                "queue_size": self._queue.qsize(),
                "max_queue_size": self.max_queue_size,
            }

    @property
    def is_running(self) -> bool:
        return not self._shutdown_event.is_set()
