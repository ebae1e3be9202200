import asyncio
import logging
from typing import List

from pingwatch.abstractions.result_sink import ResultSink
from pingwatch.contracts.outcome import Outcome

logger = logging.getLogger(__name__)


class InMemoryResultSink(ResultSink):
    """
    Sink keeping result rows in process memory, for dry runs and tests.
    """

    def __init__(self):
        self._rows: List[dict] = []
        self._lock = asyncio.Lock()
        self.connected = False

    async def connect(self):
        self.connected = True
        logger.info("InMemoryResultSink ready; results are not persisted")

    async def record(self, outcome: Outcome):
        async with self._lock:
            self._rows.append(outcome.to_record())
        logger.debug(f"Recorded result in memory: {outcome!r}")

    async def list_records(self) -> List[dict]:
        async with self._lock:
            return list(self._rows)

    async def close(self):
        self.connected = False
