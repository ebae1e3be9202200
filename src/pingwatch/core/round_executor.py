import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from pingwatch.contracts.outcome import Outcome
from pingwatch.core.cancellation import CancellationToken
from pingwatch.core.probe import HttpProbe

logger = logging.getLogger(__name__)


class RoundExecutor:
    """
    Runs one probe per endpoint concurrently and collects the outcomes in endpoint order.
    """

    def __init__(self, probe: HttpProbe):
        self.probe = probe

    async def _run_worker(
        self, endpoint: str, signal: CancellationToken, round_started_at: datetime
    ) -> Outcome:
        # A worker must always yield an outcome so its siblings and the barrier are unaffected
        try:
            return await self.probe.check(endpoint, signal, round_started_at)
        except Exception as e:
            logger.error(f"Probe worker for {endpoint} crashed: {e!r}")
            return Outcome.failure(endpoint, round_started_at)

    async def run(
        self,
        endpoints: Sequence[str],
        signal: CancellationToken,
        round_started_at: Optional[datetime] = None,
    ) -> List[Outcome]:
        """
        Probe every endpoint once and wait for all of them.

        Args:
            endpoints (Sequence[str]): Endpoints to probe.
            signal (CancellationToken): Shared round signal handed to every probe.
            round_started_at (Optional[datetime]): Timestamp stamped on every outcome;
                defaults to the current UTC time.

        Returns:
            List[Outcome]: ``outcomes[i]`` belongs to ``endpoints[i]``.
        """
        if round_started_at is None:
            round_started_at = datetime.now(timezone.utc)
        if not endpoints:
            return []

        outcomes = await asyncio.gather(
            *(self._run_worker(endpoint, signal, round_started_at) for endpoint in endpoints)
        )
        logger.debug(
            f"Round {round_started_at.isoformat()} probed {len(outcomes)} endpoints, "
            f"{sum(o.had_error for o in outcomes)} failed"
        )
        return list(outcomes)
