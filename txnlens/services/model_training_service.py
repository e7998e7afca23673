"""
Model Training Service

Warm-up / retraining of the sequence classifier from the training log.
Runs as a background task; a new model is trained detached from the live one
and swapped in only when training completes, so cancellation or failure
leaves the live model untouched.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

from txnlens.core.exceptions import TrainingCancelledError
from txnlens.ml.seed_corpus import generate_seed_samples, seed_category_directory
from txnlens.ml.sequence_classifier import SequenceClassifier, TrainingSample
from txnlens.ml.tokenizer import Vocabulary
from txnlens.repositories.category_repository import CategoryRepository
from txnlens.repositories.training_log_repository import TrainingLogRepository

logger = logging.getLogger(__name__)


class ModelTrainingService:
    def __init__(
        self,
        classifier: SequenceClassifier,
        training_log: TrainingLogRepository,
        category_repository: CategoryRepository,
        min_training_samples: int = 20,
        epochs: Optional[int] = None,
    ):
        self.classifier = classifier
        self.training_log = training_log
        self.category_repository = category_repository
        self.min_training_samples = min_training_samples
        self.epochs = epochs

        self.progress = 0.0
        self.last_error: Optional[str] = None
        self.last_result: Optional[Dict[str, Any]] = None
        self._task: Optional[asyncio.Task] = None
        # polled from the training worker thread
        self._cancel = threading.Event()

    @property
    def is_training(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> Dict[str, Any]:
        return {
            "is_training": self.is_training,
            "progress": round(self.progress, 4),
            "is_ready": self.classifier.is_ready,
            "last_error": self.last_error,
            "last_result": self.last_result,
        }

    def start_training(self, user_id: Optional[str] = None) -> bool:
        """Start a background training run; False if one is already running"""
        if self.is_training:
            return False
        self._cancel.clear()
        self.progress = 0.0
        self._task = asyncio.create_task(self.run_training(user_id))
        return True

    def cancel_training(self) -> bool:
        if not self.is_training:
            return False
        self._cancel.set()
        logger.info("Training cancellation requested")
        return True

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _on_progress(self, fraction: float) -> None:
        self.progress = fraction

    async def _collect(self, user_id: Optional[str]) -> Tuple[List[Tuple[str, str]], bool]:
        rows = await asyncio.to_thread(self.training_log.list_corrected_samples, user_id)
        pairs = [(r["text"], str(r["chosen_category_id"])) for r in rows if r.get("text")]
        used_seed = False
        if len(pairs) < self.min_training_samples:
            logger.info(
                "Only %d corrected samples (need %d), adding seed corpus",
                len(pairs), self.min_training_samples,
            )
            self.classifier.category_index.refresh(seed_category_directory())
            pairs.extend((s["text"], s["category_id"]) for s in generate_seed_samples())
            used_seed = True
        return pairs, used_seed

    async def run_training(self, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Collect samples and train; returns the training summary or None"""
        self.last_error = None
        try:
            pairs, used_seed = await self._collect(user_id)

            categories = await asyncio.to_thread(self.category_repository.list_categories)
            self.classifier.category_index.refresh(categories)
            samples = [
                TrainingSample(text=text, label_index=self.classifier.category_index.register(cid))
                for text, cid in pairs
            ]
            vocabulary = Vocabulary.build(text for text, _ in pairs)

            result = await self.classifier.train_from_samples(
                samples,
                vocabulary=vocabulary,
                epochs=self.epochs,
                should_stop=self._cancel.is_set,
                on_progress=self._on_progress,
            )
            result["used_seed_corpus"] = used_seed
            self.last_result = result
            self.progress = 1.0
            return result
        except TrainingCancelledError:
            logger.info("Training cancelled")
            self.last_error = "Training cancelled"
            self.progress = 0.0
            return None
        except Exception as e:
            logger.error("Training failed: %s", e)
            self.last_error = str(e)
            self.progress = 0.0
            return None
