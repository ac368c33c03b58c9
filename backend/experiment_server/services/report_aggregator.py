"""
Report Aggregator
=================

This is the heart of the experiment server.

WHAT IT DOES:
------------
1. Counts accepted submissions per beacon
2. Checks the clock every half second
3. During a configured report hour, emails one report with the counts
4. Clears the counts and starts a new window

HOW THE LOOP WORKS:
------------------
Everything goes through ONE queue, consumed by ONE task:

    [POST /results/...] --record_submission()--+
                                               +--> [queue] --> run() --> counters
    [APScheduler, every 0.5s] ----tick()-------+                      +--> on_tick() --> EmailService

Only run() touches the counters, last_sent_at and the dedupe key, so no
locks are needed. Producers just drop a message in the queue and return.

While a report is being emailed, run() waits for the send to finish and
queued submissions pile up in the queue. They are counted in the next
window once the send is done.

DEDUPE:
------
The tick fires many times per hour. A report goes out only when the
"day-hour" key differs from the last one used, so each allowed hour gets
exactly one report. The key lives in memory: restarting the server inside
a report hour sends that hour's report again.

FAILED SENDS:
------------
A failed send is logged and dropped. The window still advances and the
counts are still cleared, so that window's numbers are lost.
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Callable, Iterable, NamedTuple, Optional, Protocol, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

# Configure logging for the report loop
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] %(message)s',
    datefmt='%H:%M:%S',
    handlers=[logging.StreamHandler(sys.stderr)]
)
logger = logging.getLogger(__name__)
# The tick job runs twice a second, keep APScheduler's per-run lines out of the log
logging.getLogger("apscheduler").setLevel(logging.WARNING)

from experiment_server.models import (
    NEVER_SENT,
    ReportDocument,
    ReportStatusResponse,
    ReportWindow,
    SubmissionEvent,
)
from experiment_server.services.report_builder import (
    INITIAL_DEDUPE_KEY,
    compile_report,
    dedupe_key,
)


class ReportTransport(Protocol):
    """Anything that can deliver a report (EmailService in production)."""

    def send_report(self, report: ReportDocument) -> bool:
        ...


class _Tick(NamedTuple):
    now: datetime


def _local_now() -> datetime:
    return datetime.now().astimezone()


class ReportAggregator:
    """
    Counts submissions and sends the hourly report.

    Construct once at startup and hand the same instance to the intake
    router and the scheduler.
    """

    TICK_JOB_ID = "report_tick"

    def __init__(
        self,
        transport: ReportTransport,
        report_hours: Iterable[int],
        tick_interval: float = 0.5,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Set up the aggregator.

        Args:
            transport: Delivers compiled reports
            report_hours: Hours of the day (0-23) when a report may be sent
            tick_interval: Seconds between clock checks. Default is 0.5.
            clock: Returns the current time (local, timezone-aware)
        """
        self.transport = transport
        self.report_hours = frozenset(report_hours)
        self.tick_interval = tick_interval
        self._clock = clock or _local_now

        # State owned by run()
        self._counters: dict[str, int] = {}
        self._last_sent_at: datetime = NEVER_SENT
        self._last_dedupe_key: str = INITIAL_DEDUPE_KEY

        # Unbounded so request handlers never wait on us
        self._queue: asyncio.Queue[Union[SubmissionEvent, _Tick]] = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._consumer: Optional[asyncio.Task] = None
        self.scheduler: Optional[AsyncIOScheduler] = None

    # =========================================================================
    # STATE (read-only views)
    # =========================================================================

    @property
    def counters(self) -> dict[str, int]:
        """Copy of the counts for the current window."""
        return dict(self._counters)

    @property
    def last_sent_at(self) -> datetime:
        return self._last_sent_at

    @property
    def last_dedupe_key(self) -> str:
        return self._last_dedupe_key

    def status(self) -> ReportStatusResponse:
        """Snapshot for the status endpoint."""
        counters = self.counters
        return ReportStatusResponse(
            counters=counters,
            pending_total=sum(counters.values()),
            queued=self._queue.qsize(),
            last_sent_at=None if self._last_sent_at == NEVER_SENT else self._last_sent_at,
            last_dedupe_key=None if self._last_dedupe_key == INITIAL_DEDUPE_KEY else self._last_dedupe_key,
            report_hours=sorted(self.report_hours),
        )

    # =========================================================================
    # PRODUCERS
    # =========================================================================

    def record_submission(self, source_id: str) -> None:
        """
        Count one accepted submission for `source_id`.

        Never blocks and never fails from the caller's point of view.
        Safe to call from other threads once start() has run.
        """
        self._post(SubmissionEvent(source_id=source_id))

    def tick(self, now: Optional[datetime] = None) -> None:
        """Ask the loop to check whether a report is due."""
        self._post(_Tick(now if now is not None else self._clock()))

    def _post(self, message: Union[SubmissionEvent, _Tick]) -> None:
        loop = self._loop
        if loop is None or self._on_loop_thread():
            self._queue.put_nowait(message)
            return
        try:
            loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError:
            # Loop already closed (server shutting down)
            logger.warning(f"Report loop is closed, dropping {message!r}")

    def _on_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    async def _scheduled_tick(self):
        """APScheduler job: runs on the event loop every tick_interval."""
        self.tick()

    # =========================================================================
    # THE LOOP
    # =========================================================================

    async def run(self):
        """Consume submissions and ticks until cancelled."""
        while True:
            message = await self._queue.get()
            try:
                if isinstance(message, SubmissionEvent):
                    self._count(message.source_id)
                else:
                    await self.on_tick(message.now)
            except Exception as e:
                logger.error(f"Error handling {message!r} in report loop: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    def _count(self, source_id: str):
        self._counters[source_id] = self._counters.get(source_id, 0) + 1

    async def on_tick(self, now: datetime) -> Optional[ReportDocument]:
        """
        Send the report if one is due at `now`.

        Returns:
            The compiled report, or None when nothing was due
        """
        # We only care about hours that are requested
        if now.hour not in self.report_hours:
            return None

        # Make sure we don't send the same report twice
        key = dedupe_key(now)
        if key == self._last_dedupe_key:
            return None

        window = ReportWindow(start=self._last_sent_at, end=now)
        report = compile_report(self._counters, window)

        # New window starts now, whatever happens to the send
        self._last_sent_at = now
        self._counters = {}
        self._last_dedupe_key = key

        logger.info(
            f"Sending report for {window.start.isoformat()} -> {window.end.isoformat()} "
            f"({len(report.rows)} sources, {report.total} submissions)"
        )
        try:
            delivered = await asyncio.to_thread(self.transport.send_report, report)
        except Exception as e:
            logger.error(f"Failed to send report: {type(e).__name__}: {e}", exc_info=True)
        else:
            if not delivered:
                logger.error(f"Failed to send report for window ending {window.end.isoformat()}")

        return report

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self, with_clock: bool = True):
        """
        Start the loop on the running event loop.

        Args:
            with_clock: Also schedule the periodic tick. Tests that drive
                tick() by hand pass False.
        """
        self._loop = asyncio.get_running_loop()
        self._consumer = self._loop.create_task(self.run(), name="report-aggregator")

        if with_clock:
            self.scheduler = AsyncIOScheduler(event_loop=self._loop)
            self.scheduler.add_job(
                self._scheduled_tick,
                trigger=IntervalTrigger(seconds=self.tick_interval),
                id=self.TICK_JOB_ID,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
            self.scheduler.start()

        logger.info(
            f"Report loop started (hours: {sorted(self.report_hours)}, "
            f"tick: {self.tick_interval if with_clock else 'manual'})"
        )

    async def join(self):
        """Wait until every queued submission and tick has been handled."""
        await self._queue.join()

    async def shutdown(self):
        """Stop the scheduler and the loop. Queued messages are dropped."""
        if self.scheduler is not None and self.scheduler.running:
            try:
                self.scheduler.shutdown(wait=False)
            except Exception as e:
                logger.error(f"Error shutting down scheduler: {e}", exc_info=True)

        if self._consumer is not None:
            self._consumer.cancel()
            try:
                await self._consumer
            except asyncio.CancelledError:
                pass
            self._consumer = None

        dropped = self._queue.qsize()
        if dropped:
            logger.warning(f"Report loop stopped with {dropped} unprocessed messages")
