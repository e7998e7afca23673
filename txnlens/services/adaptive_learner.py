"""
Adaptive Learner

Collects accepted corrections and fine-tunes the classifier on them in small
debounced batches, off the request path.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from txnlens.core.exceptions import UnknownCategoryError
from txnlens.core.scheduler import Debouncer
from txnlens.ml.sequence_classifier import SequenceClassifier

logger = logging.getLogger(__name__)

DEBOUNCE_KEY = "adaptive_learner"


@dataclass
class Correction:
    text: str
    category_id: str
    sample_id: Optional[str] = None


class AdaptiveLearner:
    def __init__(
        self,
        classifier: SequenceClassifier,
        debouncer: Debouncer,
        debounce_seconds: float = 3.0,
        batch_size: int = 5,
    ):
        self.classifier = classifier
        self.debouncer = debouncer
        self.debounce_seconds = debounce_seconds
        self.batch_size = batch_size
        self.queue: Deque[Correction] = deque()

    @property
    def pending(self) -> int:
        return len(self.queue)

    def enqueue(self, correction: Correction) -> None:
        """
        Queue a correction and arm the flush timer.

        A timer that is already pending is left alone, so a steady stream of
        corrections cannot postpone the flush indefinitely. Must be called
        from the event loop.
        """
        self.queue.append(correction)
        if not self.debouncer.is_pending(DEBOUNCE_KEY):
            self.debouncer.debounce(DEBOUNCE_KEY, self.debounce_seconds, self.flush)

    async def flush(self) -> List[Correction]:
        """
        Fine-tune on up to ``batch_size`` queued corrections, oldest first.

        Does not re-arm itself; leftovers wait for the next enqueue. Returns
        the corrections that were applied.
        """
        batch = []
        while self.queue and len(batch) < self.batch_size:
            batch.append(self.queue.popleft())

        applied = []
        for c in batch:
            try:
                await self.classifier.learn_from_correction(c.text, c.category_id)
                applied.append(c)
            except UnknownCategoryError as e:
                logger.warning("Skipping correction %s: %s", c.sample_id, e)
            except Exception as e:
                logger.error("Learning from correction %s failed: %s", c.sample_id, e)

        if batch:
            logger.info("Adaptive learner applied %d/%d corrections (%d queued)",
                        len(applied), len(batch), len(self.queue))
        return applied
