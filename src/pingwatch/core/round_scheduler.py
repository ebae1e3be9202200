import enum
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pingwatch.abstractions.result_sink import ResultSink
from pingwatch.contracts.outcome import Outcome
from pingwatch.core.cancellation import CancellationToken
from pingwatch.core.metrics_manager import MetricsManager
from pingwatch.core.round_executor import RoundExecutor

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    ROUND_IN_FLIGHT = "round_in_flight"
    AWAITING_CADENCE_FLOOR = "awaiting_cadence_floor"
    STOPPED = "stopped"


class RoundScheduler:
    """
    Control loop that runs one round per cadence period until shutdown is requested.

    Each round probes every endpoint, stores every outcome, and then waits out the rest
    of the cadence floor so consecutive rounds start at least ``cadence_seconds`` apart.
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        executor: RoundExecutor,
        sink: ResultSink,
        cadence_seconds: float = 1.0,
        metrics: Optional[MetricsManager] = None,
    ):
        """
        Initialize the RoundScheduler.

        Args:
            endpoints (Sequence[str]): Ordered endpoints probed every round.
            executor (RoundExecutor): Fans probes out and back in.
            sink (ResultSink): Connected sink receiving every outcome.
            cadence_seconds (float): Cadence floor, the minimum duration of a round.
            metrics (Optional[MetricsManager]): Receives round and insert-failure metrics.
        """
        if cadence_seconds <= 0:
            raise ValueError(f"cadence_seconds must be positive, got {cadence_seconds}")
        self.endpoints = tuple(endpoints)
        self.executor = executor
        self.sink = sink
        self.cadence_seconds = cadence_seconds
        self.metrics = metrics
        self.state = SchedulerState.IDLE
        self.rounds_completed = 0
        logger.info(
            f"RoundScheduler initialized with {len(self.endpoints)} endpoints, "
            f"cadence_seconds={self.cadence_seconds}"
        )

    async def run(self, shutdown: CancellationToken):
        """
        Run rounds back to back until ``shutdown`` fires.

        The token is only checked between rounds; a round that has started always
        finishes, including storing its outcomes.
        """
        logger.info("Everything is ready, running pings...")
        while not shutdown.cancelled:
            await self.run_round(shutdown)
        self.state = SchedulerState.STOPPED
        logger.info(
            f"Scheduler stopped after {self.rounds_completed} rounds ({shutdown.reason})"
        )

    async def run_round(self, shutdown: CancellationToken) -> List[Outcome]:
        """
        Run a single round bounded by the cadence floor.

        Returns:
            List[Outcome]: The outcomes of the round, in endpoint order.
        """
        start = time.monotonic()
        with shutdown.with_timeout(self.cadence_seconds) as round_signal:
            self.state = SchedulerState.ROUND_IN_FLIGHT
            round_started_at = datetime.now(timezone.utc)
            outcomes = await self.executor.run(self.endpoints, round_signal, round_started_at)
            await self._persist(outcomes)
            logger.info("Finished round and wrote to database")

            self.state = SchedulerState.AWAITING_CADENCE_FLOOR
            await round_signal.wait()

        self.rounds_completed += 1
        if self.metrics:
            self.metrics.observe_round(time.monotonic() - start)
        return outcomes

    async def _persist(self, outcomes: Sequence[Outcome]):
        for outcome in outcomes:
            try:
                await self.sink.record(outcome)
            except Exception as e:
                logger.error(f"Failed to insert result for {outcome.endpoint}: {e}")
                if self.metrics:
                    self.metrics.record_insert_failure()
