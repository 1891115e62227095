"""
Oralable Biometric Collector
Single-consumer worker thread feeding paired samples to the processor
"""

import logging
import queue
import threading
from typing import Callable, Optional, Union

from oralable_system.protocol.parser import RawSample
from oralable_system.results import BiometricResult

from .config import BiometricConfiguration, CollectorConfig
from .processor import BiometricProcessor

logger = logging.getLogger(__name__)


ResultCallback = Callable[[BiometricResult], None]

# Queued in place of a sample; the worker resets the processor when it gets here
_RESET = object()


class BiometricCollector:
    """
    Oralable collector - owns the processor and the only thread that calls it

    Producers (BLE notification handlers) submit RawSamples from any thread;
    a bounded queue decouples them from processing. When the queue is full
    the newest sample is dropped and counted rather than blocking the
    producer.
    """

    def __init__(
        self,
        processor: Optional[BiometricProcessor] = None,
        config: Optional[CollectorConfig] = None,
        on_result: Optional[ResultCallback] = None,
    ):
        """
        Initialise the biometric collector.

        Args:
            processor: BiometricProcessor to drive. Defaults to one built from
                       BiometricConfiguration.oralable().
            config:    CollectorConfig instance. Defaults to CollectorConfig().
            on_result: Optional callback invoked on the worker thread with
                       every result.

        Returns:
            None.
        """
        self.processor = processor if processor else BiometricProcessor(BiometricConfiguration.oralable())
        self.config = config if config else CollectorConfig()
        self.on_result = on_result

        self._queue: 'queue.Queue[Union[RawSample, object]]' = queue.Queue(maxsize=self.config.queue_size)

        # State management
        self.is_running = False
        self.worker_thread = None
        self.stop_event = threading.Event()

        self._result_lock = threading.Lock()
        self._latest_result: Optional[BiometricResult] = None

        # Sample tracking
        self._stats_lock = threading.Lock()
        self.samples_submitted = 0
        self.samples_processed = 0
        self.samples_dropped = 0
        self.samples_discarded = 0

        logger.info(f"Biometric Collector initialized (queue size {self.config.queue_size})")

    @property
    def latest_result(self) -> Optional[BiometricResult]:
        with self._result_lock:
            return self._latest_result

    def start(self):
        """
        Start the processing thread.

        Returns:
            None.
        """
        if self.is_running:
            logger.warning("Biometric collector already running")
            return

        # A worker left over from a timed-out stop must exit first
        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=self.config.stop_timeout)
            if self.worker_thread.is_alive():
                logger.warning("✗ Previous processing thread still running - not starting")
                return

        self.is_running = True
        self.stop_event.clear()

        self.worker_thread = threading.Thread(
            target=self._processing_loop,
            name="Oralable-Processing-Thread",
            daemon=True
        )
        self.worker_thread.start()

        logger.info("✓ Biometric collector started")

    def stop(self):
        """
        Signal the worker to stop once the queued samples are drained.

        Returns:
            None.
        """
        if not self.is_running:
            logger.warning("Biometric collector not running")
            return

        logger.info("Stopping biometric collector...")
        self.stop_event.set()

        if self.worker_thread and self.worker_thread.is_alive():
            self.worker_thread.join(timeout=self.config.stop_timeout)
            if self.worker_thread.is_alive():
                logger.warning("✗ Biometric processing thread did not stop in time")

        self.is_running = False
        logger.info(
            f"✓ Biometric collector stopped ({self.samples_processed} processed, "
            f"{self.samples_dropped} dropped)"
        )

    def submit(self, sample: RawSample) -> bool:
        """
        Queue one paired sample for processing.

        Args:
            sample: Decoded RawSample

        Returns:
            True if queued, False if dropped because the queue was full.
        """
        try:
            self._queue.put_nowait(sample)
        except queue.Full:
            with self._stats_lock:
                self.samples_dropped += 1
                dropped = self.samples_dropped
            if dropped % self.config.drop_log_interval == 1:
                logger.warning(f"Processing queue full - {dropped} samples dropped so far")
            return False

        with self._stats_lock:
            self.samples_submitted += 1
        return True

    def reset(self):
        """
        Discard queued samples and reset the processor on the worker thread.

        The reset is queued behind any sample the worker is already handling,
        so nothing from before the call reaches the fresh processor state.
        If the collector is stopped, the reset runs when it next starts.

        Returns:
            None.
        """
        discarded = 0
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            self._queue.task_done()
            if item is not _RESET:
                discarded += 1

        self._queue.put(_RESET)

        with self._stats_lock:
            self.samples_discarded += discarded
        logger.info(f"Biometric collector reset queued ({discarded} pending samples discarded)")

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every queued sample has been processed.

        Args:
            timeout: Seconds to wait, None for no limit

        Returns:
            True if the queue drained within the timeout.
        """
        with self._queue.all_tasks_done:
            return self._queue.all_tasks_done.wait_for(lambda: not self._queue.unfinished_tasks, timeout)

    def _processing_loop(self):
        """
        Worker loop - runs in a background thread.

        Exits once a stop has been requested and the queue is empty.

        Returns:
            None.
        """
        logger.info("Biometric processing loop started")

        while not (self.stop_event.is_set() and self._queue.empty()):
            try:
                sample = self._queue.get(timeout=self.config.poll_timeout)
            except queue.Empty:
                continue

            try:
                if sample is _RESET:
                    self.processor.reset()
                    with self._result_lock:
                        self._latest_result = None
                    continue

                result = self.processor.process(
                    sample.ir, sample.red, sample.green,
                    sample.accel_x, sample.accel_y, sample.accel_z,
                )
                with self._result_lock:
                    self._latest_result = result
                with self._stats_lock:
                    self.samples_processed += 1

                if self.on_result is not None:
                    self.on_result(result)

            except Exception as e:
                logger.error(f"Error in processing loop: {e}", exc_info=True)
            finally:
                self._queue.task_done()

        logger.info("Biometric processing loop stopped")

    def get_status(self) -> dict:
        """
        Return the current collector state.

        Returns:
            Dict with running state, queue depth and sample counters.
        """
        with self._stats_lock:
            counters = {
                'samples_submitted': self.samples_submitted,
                'samples_processed': self.samples_processed,
                'samples_dropped': self.samples_dropped,
                'samples_discarded': self.samples_discarded,
            }
        return {
            'sensor_type': 'Oralable',
            'is_running': self.is_running,
            'queue_depth': self._queue.qsize(),
            **counters,
            'processor': self.processor.get_status(),
        }

    def __repr__(self):
        """String representation showing running state."""
        status = "running" if self.is_running else "stopped"
        return f"<BiometricCollector(status={status})>"
