import unittest
from datetime import timedelta
from unittest.mock import patch

from prometheus_client import CollectorRegistry

from pingwatch.core.metrics_manager import MetricsManager


class TestMetricsManager(unittest.TestCase):
    def test_managers_do_not_share_registries(self):
        first = MetricsManager()
        second = MetricsManager()
        first.observe_round(0.5)
        self.assertEqual(first.get_value("pingwatch_rounds_total"), 1.0)
        self.assertEqual(second.get_value("pingwatch_rounds_total"), 0.0)

    def test_explicit_registry(self):
        registry = CollectorRegistry()
        mm = MetricsManager(registry=registry)
        mm.record_insert_failure()
        self.assertEqual(registry.get_sample_value("pingwatch_insert_failures_total"), 1.0)

    def test_observe_probe_success_and_failure(self):
        mm = MetricsManager()
        mm.observe_probe("http://a", timedelta(milliseconds=40))
        mm.observe_probe("http://a", None)
        mm.observe_probe("http://a", None)
        self.assertEqual(
            mm.get_value("pingwatch_probe_duration_seconds_count", {"endpoint": "http://a"}), 1.0
        )
        self.assertAlmostEqual(
            mm.get_value("pingwatch_probe_duration_seconds_sum", {"endpoint": "http://a"}), 0.04
        )
        self.assertEqual(
            mm.get_value("pingwatch_probe_failures_total", {"endpoint": "http://a"}), 2.0
        )

    def test_round_duration_observed(self):
        mm = MetricsManager()
        mm.observe_round(1.2)
        self.assertAlmostEqual(mm.get_value("pingwatch_round_duration_seconds_sum"), 1.2)

    @patch("pingwatch.core.metrics_manager.start_http_server")
    def test_start_server(self, mock_start):
        mm = MetricsManager()
        mm.start_server(9100)
        mock_start.assert_called_once_with(9100, registry=mm.registry)


if __name__ == "__main__":
    unittest.main()
