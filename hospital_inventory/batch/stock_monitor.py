# hospital_inventory/batch/stock_monitor.py
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Union
import enum
import logging
import threading

from hospital_inventory.config import config
from hospital_inventory.exceptions import MonitorError, ValidationError
from hospital_inventory.logging_setup import logger as log_manager
from hospital_inventory.services.reconciliation import ReconciliationSweep

logger = logging.getLogger(__name__)

CycleReporter = Callable[[Dict], None]
ThresholdListener = Callable[[int], None]


class MonitorState(enum.Enum):
    NOT_STARTED = 'NOT_STARTED'
    RUNNING = 'RUNNING'
    STOPPED = 'STOPPED'
    SHUTDOWN = 'SHUTDOWN'


def _to_interval(value: Union[timedelta, int, float]) -> timedelta:
    """Accept a timedelta or a number of seconds; must be strictly positive."""
    if isinstance(value, bool):
        raise ValidationError(f"scan interval must be a duration, got {value!r}")
    if isinstance(value, (int, float)):
        value = timedelta(seconds=value)
    if not isinstance(value, timedelta):
        raise ValidationError(f"scan interval must be a duration, got {value!r}")
    if value <= timedelta(0):
        raise ValidationError(f"scan interval must be positive, got {value}")
    return value


class StockMonitor:
    """Runs the reconciliation sweeps periodically in a background thread.

    Lifecycle:
        NOT_STARTED -> RUNNING (start) -> STOPPED (stop) -> RUNNING (start) ...
        any state -> SHUTDOWN (shutdown, terminal)

    The worker thread is created by the first ``start()``, idles while
    stopped and is retired by ``shutdown()``. Stopping never interrupts a
    cycle in progress. Every cycle, scheduled or not, is reported to the
    cycle log and to the optional ``cycle_reporter``.
    """

    def __init__(
        self,
        sweep: ReconciliationSweep,
        low_stock_threshold: Optional[int] = None,
        scan_interval: Optional[Union[timedelta, int, float]] = None,
        cycle_reporter: Optional[CycleReporter] = None,
        shutdown_timeout: Optional[float] = None,
        threshold_listener: Optional[ThresholdListener] = None
    ):
        """Initialize the monitor.

        Args:
            sweep: Sweep run on every cycle
            low_stock_threshold: Default threshold passed to the sweep; defaults to configuration
            scan_interval: Time between cycle starts (timedelta or seconds); defaults to configuration
            cycle_reporter: Optional callable receiving every cycle result dictionary
            shutdown_timeout: Seconds shutdown() waits for the worker; defaults to configuration
            threshold_listener: Optional callable receiving every threshold this monitor adopts,
                the initial one included, so request-path stock checks use the same default
        """
        monitor_config = config.monitor_config

        if low_stock_threshold is None:
            low_stock_threshold = monitor_config['low_stock_threshold']
        if scan_interval is None:
            scan_interval = timedelta(minutes=monitor_config['scan_interval_minutes'])
        if shutdown_timeout is None:
            shutdown_timeout = monitor_config['shutdown_timeout_seconds']

        self.sweep = sweep
        self.cycle_reporter = cycle_reporter
        self.shutdown_timeout = shutdown_timeout
        self.threshold_listener = threshold_listener

        self._condition = threading.Condition()
        self._state = MonitorState.NOT_STARTED
        self._running = False
        self._retired = False
        # Bumped on every start/stop so a sleeping worker notices the change
        self._generation = 0
        self._thread: Optional[threading.Thread] = None
        self._cycle_count = 0
        self._last_result: Optional[Dict] = None

        self._scan_interval = _to_interval(scan_interval)
        self.set_low_stock_threshold(low_stock_threshold)

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == MonitorState.RUNNING

    @property
    def low_stock_threshold(self) -> int:
        return self._low_stock_threshold

    @property
    def scan_interval(self) -> timedelta:
        return self._scan_interval

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def last_result(self) -> Optional[Dict]:
        return self._last_result

    def start(self):
        """Start periodic scanning; the first cycle runs immediately.

        Calling start() while running does nothing.

        Raises:
            MonitorError if the monitor has been shut down
        """
        with self._condition:
            if self._state == MonitorState.SHUTDOWN:
                raise MonitorError("Stock monitor has been shut down")
            if self._running:
                return

            self._running = True
            self._generation += 1
            self._state = MonitorState.RUNNING

            if self._thread is None:
                self._thread = threading.Thread(
                    target=self._run_loop,
                    name="stock-monitor",
                    daemon=True
                )
                self._thread.start()

            self._condition.notify_all()

        logger.info(f"Stock monitor started (interval={self._scan_interval}, threshold={self._low_stock_threshold})")

    def stop(self):
        """Cancel future cycles; a cycle already running completes."""
        with self._condition:
            if not self._running:
                return

            self._running = False
            self._generation += 1
            self._state = MonitorState.STOPPED
            self._condition.notify_all()

        logger.info("Stock monitor stopped")

    def shutdown(self, timeout: Optional[float] = None):
        """Stop the monitor and retire its worker thread for good.

        Args:
            timeout: Seconds to wait for an in-flight cycle; defaults to shutdown_timeout
        """
        with self._condition:
            if self._state == MonitorState.SHUTDOWN:
                return

            self.stop()
            self._retired = True
            self._state = MonitorState.SHUTDOWN
            self._condition.notify_all()
            thread = self._thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.shutdown_timeout if timeout is None else timeout)
            if thread.is_alive():
                logger.warning("Stock monitor worker still finishing a cycle after shutdown timeout")

        logger.info("Stock monitor shut down")

    def set_scan_interval(self, interval: Union[timedelta, int, float]):
        """Change the cadence; a running monitor restarts with it.

        Args:
            interval: timedelta or number of seconds, strictly positive

        Raises:
            ValidationError if the interval is not positive
        """
        interval = _to_interval(interval)

        with self._condition:
            self._scan_interval = interval
            if self._running:
                self.stop()
                self.start()

    def set_low_stock_threshold(self, threshold: int):
        """Change the default threshold used from the next cycle on.

        The threshold_listener, if any, is told about the new value.

        Raises:
            ValidationError if the threshold is negative
        """
        if isinstance(threshold, bool) or not isinstance(threshold, int):
            raise ValidationError(f"threshold must be an integer, got {threshold!r}")
        if threshold < 0:
            raise ValidationError(f"threshold must be >= 0, got {threshold}")

        with self._condition:
            self._low_stock_threshold = threshold
            if self.threshold_listener is not None:
                self.threshold_listener(threshold)

    def run_scan_once(self) -> Dict:
        """Run one cycle synchronously, independent of the schedule.

        Errors that end the cycle are reported and then raised.

        Returns:
            Cycle result dictionary
        """
        return self._run_cycle(propagate=True)

    def _run_loop(self):
        """Worker loop: wait to be running, run a cycle, sleep until the next one."""
        while True:
            with self._condition:
                self._condition.wait_for(lambda: self._running or self._retired)
                if self._retired:
                    break
                generation = self._generation
                interval = self._scan_interval.total_seconds()

            self._run_cycle(propagate=False)

            with self._condition:
                self._condition.wait_for(
                    lambda: self._retired or self._generation != generation,
                    timeout=interval
                )

        logger.debug("Stock monitor worker exited")

    def _run_cycle(self, propagate: bool) -> Dict:
        """Run both sweeps once and report the outcome."""
        with self._condition:
            threshold = self._low_stock_threshold
        cycle_log = log_manager.start_cycle_log('stock_monitor_scan', {'threshold': threshold})

        results = {
            'start_time': cycle_log['start_time'],
            'end_time': None,
            'duration': None,
            'threshold': threshold,
            'processes': {},
            'alerts_opened': 0,
            'alerts_resolved': 0,
            'failed': 0,
            'success': False,
            'error': None
        }
        error = None

        try:
            sweep_results = self.sweep.run(threshold)
            results['processes'] = {
                'ensure_low_stock_alerts': sweep_results['low_stock'],
                'resolve_recovered_alerts': sweep_results['recovered']
            }
            results['alerts_opened'] = sweep_results['low_stock']['processed']
            results['alerts_resolved'] = sweep_results['recovered']['processed']
            results['failed'] = sweep_results['failed']
            results['success'] = sweep_results['failed'] == 0
        except Exception as e:
            error = e
            results['error'] = str(e)
            logger.error(f"Stock monitor cycle failed: {str(e)}", exc_info=True)

        results['end_time'] = datetime.now()
        results['duration'] = results['end_time'] - results['start_time']

        with self._condition:
            self._cycle_count += 1
            self._last_result = results
        self._report(cycle_log, results)

        if error is not None and propagate:
            raise error

        return results

    def _report(self, cycle_log: Dict, results: Dict):
        log_manager.end_cycle_log(
            cycle_log,
            success=results['success'],
            outcome={
                'alerts_opened': results['alerts_opened'],
                'alerts_resolved': results['alerts_resolved'],
                'failed': results['failed'],
                'error': results['error']
            }
        )

        if self.cycle_reporter is None:
            return

        try:
            self.cycle_reporter(results)
        except Exception as e:
            logger.error(f"Stock monitor cycle reporter failed: {str(e)}", exc_info=True)
