"""
Sink factory for creating result sink instances.
"""
import logging
from typing import Optional

from pingwatch.abstractions.result_sink import ResultSink
from pingwatch.config.config import Config
from pingwatch.core.memory_result_sink import InMemoryResultSink

logger = logging.getLogger(__name__)

SUPPORTED_SINK_TYPES = ("postgres", "redis", "memory")


class SinkFactory:
    """
    Factory class for creating result sink instances.
    """

    @staticmethod
    def create_sink(sink_type: Optional[str], connection_string: str, **kwargs) -> ResultSink:
        """
        Create a result sink based on configuration.

        Args:
            sink_type (Optional[str]): One of "postgres", "redis" or "memory".
                If None, uses Config.SINK_TYPE.
            connection_string (str): Connection descriptor for the selected sink.
            **kwargs: Additional keyword arguments for specific sink implementations.

        Returns:
            ResultSink: An unconnected sink; call ``connect()`` before use.

        Raises:
            ValueError: If an unsupported sink type is specified.
        """
        sink_type = (sink_type or Config.SINK_TYPE).lower()
        logger.info(f"Creating {sink_type} result sink")

        if sink_type == "postgres":
            from pingwatch.core.postgres_result_sink import PostgresResultSink

            return PostgresResultSink(
                dsn=connection_string,
                migrations_dir=kwargs.get("migrations_dir", Config.MIGRATIONS_DIR),
            )

        if sink_type == "redis":
            from pingwatch.core.redis_result_sink import RedisResultSink

            return RedisResultSink(
                redis_url=connection_string,
                stream_key=kwargs.get("stream_key", Config.REDIS_STREAM_KEY),
                db=kwargs.get("db", 0),
            )

        if sink_type == "memory":
            return InMemoryResultSink()

        raise ValueError(
            f"Unsupported sink type: {sink_type}. "
            f"Supported types: {list(SUPPORTED_SINK_TYPES)}"
        )
