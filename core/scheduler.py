import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional

from core.monitor import CycleReport, StreamMonitor
from core.reports import ReportService
from shared.logging.logger import get_logger

log = get_logger("core.scheduler")

REPORT_CHECK_INTERVAL = 24 * 60 * 60  # seconds


class Scheduler:
    """
    Drives the stream monitor and the monthly report check.

    - poll loop: one cycle at start, then every poll interval measured from
      the start of the previous run
    - report loop: one check at start, then once a day

    Cycles never overlap. A run that comes due while the previous one is
    still in flight is skipped and logged.
    """

    def __init__(
        self,
        *,
        monitor: StreamMonitor,
        reports: Optional[ReportService] = None,
        poll_interval: Callable[[], float],
        report_interval: float = REPORT_CHECK_INTERVAL,
        today: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._monitor = monitor
        self._reports = reports
        self._poll_interval = poll_interval
        self._report_interval = report_interval
        self._today = today

        self._cycle_lock = asyncio.Lock()
        self._tasks: List[asyncio.Task] = []
        self._cycles_run = 0
        self._cycles_skipped = 0

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    @property
    def cycles_skipped(self) -> int:
        return self._cycles_skipped

    # ------------------------------------------------------------

    async def run_cycle(self, manual: bool = False) -> Optional[CycleReport]:
        """
        Run one poll cycle unless another is in progress.

        Returns None when the run was skipped.
        """
        return await self._exclusive(
            f"poll cycle (manual={manual})",
            lambda: self._monitor.run_cycle(manual=manual),
        )

    async def check_user(self, owning_user_id: str) -> Optional[CycleReport]:
        """Manual check of one user's channels, serialized with poll cycles."""
        return await self._exclusive(
            f"user check for {owning_user_id}",
            lambda: self._monitor.check_user_streams(owning_user_id),
        )

    async def _exclusive(
        self,
        label: str,
        run: Callable[[], Awaitable[CycleReport]],
    ) -> Optional[CycleReport]:
        if self._cycle_lock.locked():
            self._cycles_skipped += 1
            log.warning(f"[scheduler] Poll cycle still running; skipping {label}")
            return None

        async with self._cycle_lock:
            try:
                report = await run()
            except Exception as e:
                log.error(f"[scheduler] {label} failed: {e}")
                return None
            self._cycles_run += 1
            return report

    async def _poll_loop(self):
        try:
            while True:
                started = time.monotonic()
                await self.run_cycle()

                interval = max(1.0, float(self._poll_interval()))
                elapsed = time.monotonic() - started
                await asyncio.sleep(max(0.0, interval - elapsed))
        except asyncio.CancelledError:
            log.debug("[scheduler] poll loop cancelled")
            raise

    async def _report_loop(self):
        try:
            while True:
                try:
                    await self._reports.check_and_generate(self._today())
                except Exception as e:
                    log.error(f"[scheduler] Monthly report check failed: {e}")
                await asyncio.sleep(self._report_interval)
        except asyncio.CancelledError:
            log.debug("[scheduler] report loop cancelled")
            raise

    # ------------------------------------------------------------

    def start(self):
        if self.running:
            log.warning("[scheduler] Already started; ignoring")
            return

        self._tasks = [asyncio.create_task(self._poll_loop(), name="poll-loop")]
        if self._reports is not None:
            self._tasks.append(asyncio.create_task(self._report_loop(), name="report-loop"))

        log.info(
            f"[scheduler] Started; stream checks every "
            f"{float(self._poll_interval()) / 60:g} minute(s)"
        )

    async def shutdown(self):
        log.info("Scheduler shutdown initiated")

        for task in self._tasks:
            if not task.done():
                task.cancel()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        self._tasks.clear()
        log.info(
            f"Scheduler shutdown complete ({self._cycles_run} cycle(s) run, "
            f"{self._cycles_skipped} skipped)"
        )
