"""
EventPublisher -- best-effort, in-process fan-out of alert events.

Responsibility:
    Accepts (topic, payload) hand-offs from the orchestrator and delivers
    them to topic subscribers on a background worker thread.

Architecture position:
    Kernel > Services.  Decoupled from persistence: the orchestrator only
    publishes after both transactions have committed and the item lock is
    released, so a slow or failing subscriber can never hold up or undo a
    stock change.

Delivery semantics:
    - ``publish`` never blocks and never raises.  A full queue or a stopped
      publisher logs ``publish_dropped`` and returns False.
    - Each subscriber is called once per message, in subscription order.
      A subscriber exception is logged as ``publish_delivery_failed`` and
      delivery continues with the next subscriber.
    - No retry, no persistence.  Messages still queued when the process
      exits are lost.
"""

import queue
import threading
import time
from collections import defaultdict
from typing import Any, Callable

from inventory_kernel.logging_config import get_logger

logger = get_logger("services.event_publisher")

LOW_STOCK_ALERT_TOPIC = "low_stock_alert"

Subscriber = Callable[[dict[str, Any]], None]

_STOP = object()


class EventPublisher:
    """Bounded queue drained by one daemon thread.

    Contract:
        - ``start()`` / ``stop()`` manage the worker; both are idempotent.
        - ``flush(timeout)`` waits until every accepted message has been
          delivered (tests, shutdown).

    Non-goals:
        - NOT a message broker: no acknowledgement, replay or ordering
          across topics.
    """

    def __init__(self, queue_size: int = 1000, poll_interval: float = 0.1):
        self._queue: queue.Queue = queue.Queue(maxsize=queue_size)
        self._poll_interval = poll_interval
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()
        self._accepting = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``topic``.  Returns an unsubscribe callable."""
        with self._lock:
            self._subscribers[topic].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(topic, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, topic: str, payload: dict[str, Any]) -> bool:
        """Hand off a message.  Returns False if it was dropped."""
        with self._lock:
            if not self._accepting:
                reason = "stopped"
            else:
                try:
                    self._queue.put_nowait((topic, payload))
                    reason = None
                except queue.Full:
                    reason = "queue_full"

        if reason is not None:
            logger.warning(
                "publish_dropped",
                extra={"topic": topic, "reason": reason},
            )
            return False

        logger.debug("publish_enqueued", extra={"topic": topic})
        return True

    def start(self) -> None:
        """Start the delivery worker."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                self._accepting = True
                return
            self._stop_event.clear()
            self._accepting = True
            self._thread = threading.Thread(
                target=self._run_loop,
                name="inventory-event-publisher",
                daemon=True,
            )
            self._thread.start()
        logger.info("publisher_started", extra={"queue_size": self._queue.maxsize})

    def stop(self, timeout: float = 5.0) -> None:
        """Stop accepting messages, deliver what is queued, then join.

        Args:
            timeout: Max seconds to wait for the worker to finish.
        """
        with self._lock:
            self._accepting = False
            thread = self._thread
            if thread is None or not thread.is_alive():
                return
            try:
                self._queue.put_nowait(_STOP)
            except queue.Full:
                # No room for the marker: the worker exits once it drains.
                self._stop_event.set()
        thread.join(timeout=timeout)
        logger.info("publisher_stopped", extra={"pending": self._queue.qsize()})

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until all accepted messages are delivered.

        Returns:
            True if the queue drained within ``timeout``.
        """
        deadline = time.monotonic() + timeout
        with self._queue.all_tasks_done:
            while self._queue.unfinished_tasks:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._queue.all_tasks_done.wait(remaining)
        return True

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Drain the queue.  Exits on the stop marker, or when stopped and empty.

        Nothing is accepted after the marker, so reaching it means every
        earlier message has been delivered.
        """
        while True:
            try:
                message = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                if self._stop_event.is_set():
                    return
                continue

            try:
                if message is _STOP:
                    return
                topic, payload = message
                self._deliver(topic, payload)
            finally:
                self._queue.task_done()

    def _deliver(self, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(topic, ()))

        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                logger.error(
                    "publish_delivery_failed",
                    extra={"topic": topic, "subscriber": getattr(callback, "__name__", repr(callback))},
                    exc_info=True,
                )
