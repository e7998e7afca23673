import tempfile
import unittest

from txnlens.core.storage import LocalStore
from txnlens.services.monitoring import MonitoringService


class TestMonitoringService(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.monitoring = MonitoringService(LocalStore(self.tmp.name),
                                            latency_window=3, accuracy_window=2,
                                            clock=lambda: 42.0)

    async def test_latency_window_keeps_newest(self):
        for ms in (10, 20, 30, 40):
            await self.monitoring.log_latency("classify", ms)
        events = await self.monitoring.latency_events()
        self.assertEqual([e["ms"] for e in events], [20.0, 30.0, 40.0])
        self.assertEqual(events[0]["ts"], 42.0)

    async def test_latency_summary(self):
        await self.monitoring.log_latency("classify", 10)
        await self.monitoring.log_latency("classify", 30)
        await self.monitoring.log_latency("train", 500)

        summary = await self.monitoring.latency_summary()
        self.assertEqual(summary["classify"]["count"], 2)
        self.assertEqual(summary["classify"]["mean_ms"], 20.0)
        self.assertEqual(summary["train"]["p95_ms"], 500.0)

    async def test_accuracy(self):
        self.assertEqual((await self.monitoring.accuracy_rate())["total"], 0)

        await self.monitoring.log_accuracy("ml_1", "cat_food", "cat_food")
        await self.monitoring.log_accuracy("ml_2", "cat_food", "cat_fun")
        await self.monitoring.log_accuracy("ml_3", None, "cat_fun")

        rate = await self.monitoring.accuracy_rate()
        self.assertEqual(rate["total"], 2)
        self.assertEqual(rate["correct"], 0)
        self.assertEqual(rate["accuracy"], 0.0)


if __name__ == '__main__':
    unittest.main()
