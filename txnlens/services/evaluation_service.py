"""
Evaluation Service

Offline quality report of the pipeline's proposals against the categories
users actually chose.
"""

import asyncio
from typing import Any, Dict, Optional

import pandas as pd
from sklearn.metrics import accuracy_score, classification_report, f1_score

from txnlens.repositories.training_log_repository import TrainingLogRepository

NO_PREDICTION = "none"


class EvaluationService:
    def __init__(self, training_log: TrainingLogRepository):
        self.training_log = training_log

    async def evaluate(self, user_id: Optional[str] = None) -> Dict[str, Any]:
        rows = await asyncio.to_thread(self.training_log.list_corrected_samples, user_id)
        pairs = await asyncio.to_thread(self.training_log.confusion_pairs, user_id)

        if not rows:
            return {
                "total_corrected": 0,
                "accuracy": None,
                "macro_f1": None,
                "disagreement_rate": None,
                "per_category": {},
                "confusion_pairs": pairs,
            }

        df = pd.DataFrame(rows)
        if "predicted_category_id" not in df.columns:
            df["predicted_category_id"] = None
        y_true = df["chosen_category_id"].astype(str)
        y_pred = df["predicted_category_id"].fillna(NO_PREDICTION).astype(str)

        accuracy = float(accuracy_score(y_true, y_pred))
        report = classification_report(y_true, y_pred, output_dict=True, zero_division=0)
        per_category = {
            label: {
                "precision": round(float(m["precision"]), 4),
                "recall": round(float(m["recall"]), 4),
                "f1": round(float(m["f1-score"]), 4),
                "support": int(m["support"]),
            }
            for label, m in report.items()
            if label not in ("accuracy", "macro avg", "weighted avg")
        }

        return {
            "total_corrected": len(df),
            "accuracy": round(accuracy, 4),
            "macro_f1": round(float(f1_score(y_true, y_pred, average="macro", zero_division=0)), 4),
            "disagreement_rate": round(1 - accuracy, 4),
            "per_category": per_category,
            "confusion_pairs": pairs,
        }
