import logging
import time
from datetime import datetime, timedelta
from typing import Optional

import httpx

from pingwatch.contracts.outcome import Outcome
from pingwatch.core.cancellation import CancellationToken, OperationCancelled
from pingwatch.core.metrics_manager import MetricsManager

logger = logging.getLogger(__name__)


class HttpProbe:
    """
    Checks reachability of one endpoint with a single GET request and measures how long it took.
    """

    def __init__(self, client: httpx.AsyncClient, metrics: Optional[MetricsManager] = None):
        """
        Initialize the HttpProbe.

        Args:
            client (httpx.AsyncClient): Shared client used for every request.
            metrics (Optional[MetricsManager]): Receives one observation per check.
        """
        self.client = client
        self.metrics = metrics

    async def _request(self, endpoint: str) -> httpx.Response:
        # get() reads the full body and closes the response before returning
        return await self.client.get(endpoint)

    async def check(
        self, endpoint: str, signal: CancellationToken, round_started_at: datetime
    ) -> Outcome:
        """
        Probe ``endpoint`` once, abandoning the request if ``signal`` fires first.

        Args:
            endpoint (str): URL to request.
            signal (CancellationToken): Round deadline / shutdown signal.
            round_started_at (datetime): Timestamp of the round this check belongs to.

        Returns:
            Outcome: A successful outcome with the measured duration, or a failed one.
        """
        start = time.perf_counter()
        try:
            response = await signal.guard(self._request(endpoint))
        except OperationCancelled as e:
            logger.warning(f"Probe cancelled for {endpoint}: {e.reason}")
            outcome = Outcome.failure(endpoint, round_started_at)
        except Exception as e:
            logger.warning(f"Probe error for {endpoint}: {e!r}")
            outcome = Outcome.failure(endpoint, round_started_at)
        else:
            duration = timedelta(seconds=time.perf_counter() - start)
            logger.debug(
                f"Probe success for {endpoint}: status={response.status_code}, "
                f"duration={duration.total_seconds():.4f}s"
            )
            outcome = Outcome.success(endpoint, duration, round_started_at)

        if self.metrics:
            self.metrics.observe_probe(endpoint, outcome.duration)
        return outcome
