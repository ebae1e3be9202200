import asyncio
import json
import os
import signal
import tempfile
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from pingwatch import main as main_mod
from pingwatch.abstractions.result_sink import BootstrapError
from pingwatch.core.cancellation import CancellationToken
from pingwatch.core.memory_result_sink import InMemoryResultSink

RealAsyncClient = httpx.AsyncClient


def mock_client(**kwargs):
    return RealAsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(204)))


class TestMain(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.tmp.name, "config.json")
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "connection_string": "postgres://u:pw@localhost/pings",
                    "urls": ["http://a.invalid/", "http://b.invalid/"],
                    "cadence_seconds": 0.05,
                },
                f,
            )

    def tearDown(self):
        self.tmp.cleanup()

    def test_parse_args(self):
        self.assertEqual(main_mod.parse_args(["--config", "x.toml"]).config, "x.toml")

    @patch("pingwatch.main.httpx.AsyncClient", side_effect=mock_client)
    @patch("pingwatch.main.SinkFactory.create_sink")
    async def test_run_records_rounds_until_shutdown(self, mock_create_sink, _client):
        sink = InMemoryResultSink()
        mock_create_sink.return_value = sink
        shutdown = CancellationToken()
        asyncio.get_running_loop().call_later(0.12, shutdown.cancel, "interrupt")

        await asyncio.wait_for(main_mod.run(self.config_path, shutdown), timeout=5.0)

        records = await sink.list_records()
        self.assertGreaterEqual(len(records), 2)
        self.assertEqual(len(records) % 2, 0)
        self.assertEqual(records[0]["url"], "http://a.invalid/")
        self.assertFalse(records[0]["had_error"])
        self.assertFalse(sink.connected)

    @patch("pingwatch.main.SinkFactory.create_sink")
    async def test_bootstrap_failure_prevents_scheduling(self, mock_create_sink):
        sink = MagicMock()
        sink.connect = AsyncMock(side_effect=BootstrapError("cannot migrate"))
        sink.record = AsyncMock()
        mock_create_sink.return_value = sink
        with self.assertRaises(BootstrapError):
            await main_mod.run(self.config_path, CancellationToken())
        sink.record.assert_not_awaited()

    async def test_interrupt_cancels_shutdown_token(self):
        shutdown = CancellationToken()
        loop = asyncio.get_running_loop()
        main_mod.install_signal_handlers(shutdown)
        try:
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(shutdown.wait(), timeout=1.0)
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
        self.assertEqual(shutdown.reason, "received SIGTERM")

    @patch("pingwatch.main.SinkFactory.create_sink")
    async def test_interrupt_during_bootstrap_stops_before_first_round(self, mock_create_sink):
        async def interrupted_connect():
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.sleep(0.05)

        sink = MagicMock()
        sink.connect = AsyncMock(side_effect=interrupted_connect)
        sink.record = AsyncMock()
        sink.close = AsyncMock()
        mock_create_sink.return_value = sink
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(main_mod.run(self.config_path), timeout=5.0)
        finally:
            loop.remove_signal_handler(signal.SIGINT)
            loop.remove_signal_handler(signal.SIGTERM)
        sink.record.assert_not_awaited()
        sink.close.assert_awaited_once()


class TestMainEntryPoint(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.config_path = os.path.join(self.tmp.name, "config.json")
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "connection_string": "postgres://u:pw@localhost/pings",
                    "urls": ["http://a.invalid/"],
                },
                f,
            )

    def tearDown(self):
        self.tmp.cleanup()

    @patch("pingwatch.main.setup_logging")
    @patch("pingwatch.main.SinkFactory.create_sink")
    def test_non_positive_cadence_exits_before_bootstrap(self, mock_create_sink, _setup_logging):
        with patch.object(main_mod.Config, "CADENCE_SECONDS", 0.0):
            code = main_mod.main(["--config", self.config_path])
        self.assertEqual(code, 1)
        mock_create_sink.assert_not_called()

    @patch("pingwatch.main.setup_logging")
    @patch("pingwatch.main.SinkFactory.create_sink")
    @patch("pingwatch.main.MetricsManager")
    def test_busy_metrics_port_exits_before_bootstrap(
        self, mock_metrics_cls, mock_create_sink, _setup_logging
    ):
        mock_metrics_cls.return_value.start_server.side_effect = OSError(
            98, "Address already in use"
        )
        with patch.object(main_mod.Config, "METRICS_PORT", 9100):
            code = main_mod.main(["--config", self.config_path])
        self.assertEqual(code, 1)
        mock_metrics_cls.return_value.start_server.assert_called_once_with(9100)
        mock_create_sink.assert_not_called()

    @patch("pingwatch.main.setup_logging")
    def test_redis_sink_with_postgres_dsn_exits_with_failure(self, _setup_logging):
        with patch.object(main_mod.Config, "SINK_TYPE", "redis"):
            code = main_mod.main(["--config", self.config_path])
        self.assertEqual(code, 1)

    @patch("pingwatch.main.setup_logging")
    def test_missing_config_exits_with_failure(self, _setup_logging):
        code = main_mod.main(["--config", "/nonexistent/pingwatch.json"])
        self.assertEqual(code, 1)

    @patch("pingwatch.main.setup_logging")
    @patch("pingwatch.main.run", new_callable=MagicMock)
    def test_clean_exit(self, mock_run, _setup_logging):
        async def finished(config_path):
            return None

        mock_run.side_effect = finished
        self.assertEqual(main_mod.main(["--config", "c.json"]), 0)
        mock_run.assert_called_once_with("c.json")


if __name__ == "__main__":
    unittest.main()
