import logging
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from pingwatch.abstractions.result_sink import BootstrapError, InsertError, ResultSink
from pingwatch.config.config import Config
from pingwatch.contracts.outcome import Outcome

logger = logging.getLogger(__name__)


class RedisResultSink(ResultSink):
    """
    Sink appending one entry per outcome to a Redis stream.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        stream_key: Optional[str] = None,
        db: int = 0,
    ):
        """
        Initialize the RedisResultSink.

        Args:
            redis_url (str): Redis connection URL.
            stream_key (Optional[str]): Stream receiving the results, defaults to
                Config.REDIS_STREAM_KEY.
            db (int): Redis database number to use.
        """
        self.redis_url = redis_url
        self.stream_key = stream_key or Config.REDIS_STREAM_KEY
        self.db = db
        self._redis: Optional[Redis] = None
        logger.info(
            f"RedisResultSink initialized with stream_key={self.stream_key}, db={self.db}"
        )

    @staticmethod
    def _encode(outcome: Outcome) -> dict:
        # Stream fields are flat strings; an empty duration marks a failed probe
        return {
            "time": outcome.round_started_at.isoformat(),
            "duration": "" if outcome.duration is None else f"{outcome.duration.total_seconds():.6f}",
            "url": outcome.endpoint,
            "had_error": "1" if outcome.had_error else "0",
        }

    async def connect(self):
        try:
            self._redis = Redis.from_url(self.redis_url, db=self.db, decode_responses=True)
            await self._redis.ping()
        except (RedisError, OSError, ValueError) as e:
            raise BootstrapError(f"failed to connect to redis: {e}") from e
        logger.info(f"Connected to redis, appending results to {self.stream_key}")

    async def record(self, outcome: Outcome):
        if self._redis is None:
            raise InsertError("sink is not connected")
        try:
            await self._redis.xadd(self.stream_key, self._encode(outcome))
        except RedisError as e:
            raise InsertError(f"failed to append result for {outcome.endpoint}: {e}") from e

    async def close(self):
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")
