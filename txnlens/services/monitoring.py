"""
Monitoring Service

Rolling windows of classification latency and prediction accuracy events,
persisted through the local store. Write-only from the pipeline's point of
view; summaries are served to the monitoring endpoints.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from txnlens.core.storage import LocalStore

logger = logging.getLogger(__name__)

LATENCY_KEY = "chatbot_metrics_v1_latency"
ACCURACY_KEY = "chatbot_metrics_v1_accuracy"


class MonitoringService:
    def __init__(
        self,
        store: LocalStore,
        latency_window: int = 200,
        accuracy_window: int = 500,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.latency_window = latency_window
        self.accuracy_window = accuracy_window
        self.clock = clock
        self._lock = asyncio.Lock()

    async def _append(self, key: str, entry: Dict[str, Any], window: int) -> None:
        async with self._lock:
            try:
                events = await self.store.get_item(key)
                if not isinstance(events, list):
                    events = []
                events.append(entry)
                await self.store.set_item(key, events[-window:])
            except OSError as e:
                logger.warning("Failed to record metric %s: %s", key, e)

    async def log_latency(self, name: str, ms: float) -> None:
        await self._append(
            LATENCY_KEY,
            {"name": name, "ms": float(ms), "ts": self.clock()},
            self.latency_window,
        )
        logger.info("[latency] %s = %.1fms", name, ms)

    async def log_accuracy(self, sample_id: str, predicted: Optional[str], chosen: str) -> None:
        await self._append(
            ACCURACY_KEY,
            {"sample_id": sample_id, "predicted": predicted, "chosen": chosen, "ts": self.clock()},
            self.accuracy_window,
        )
        logger.info("[accuracy] sample=%s pred=%s chosen=%s", sample_id, predicted, chosen)

    async def latency_events(self) -> List[Dict[str, Any]]:
        events = await self.store.get_item(LATENCY_KEY)
        return events if isinstance(events, list) else []

    async def accuracy_events(self) -> List[Dict[str, Any]]:
        events = await self.store.get_item(ACCURACY_KEY)
        return events if isinstance(events, list) else []

    async def latency_summary(self) -> Dict[str, Dict[str, float]]:
        """Per operation name: count, mean and p95 latency in ms"""
        events = await self.latency_events()
        if not events:
            return {}
        df = pd.DataFrame(events)
        grouped = df.groupby("name")["ms"]
        summary = pd.DataFrame({
            "count": grouped.count(),
            "mean_ms": grouped.mean(),
            "p95_ms": grouped.quantile(0.95),
        })
        return {
            name: {
                "count": int(row["count"]),
                "mean_ms": round(float(row["mean_ms"]), 2),
                "p95_ms": round(float(row["p95_ms"]), 2),
            }
            for name, row in summary.iterrows()
        }

    async def accuracy_rate(self) -> Dict[str, Any]:
        """Share of accuracy events where the prediction matched the user's choice"""
        events = await self.accuracy_events()
        if not events:
            return {"total": 0, "correct": 0, "accuracy": None}
        df = pd.DataFrame(events)
        correct = int((df["predicted"] == df["chosen"]).sum())
        return {
            "total": len(df),
            "correct": correct,
            "accuracy": round(correct / len(df), 4),
        }
