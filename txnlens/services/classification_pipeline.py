"""
Classification Pipeline

Resolves a free-text note into a transaction proposal:

1. prediction cache
2. on-device sequence classifier (when ready and confident enough)
3. remote LLM fallback (when a provider is configured)
4. deterministic amount/direction extractor

The extractor always contributes amount, direction, note and date. A tier
that fails is logged and the next tier is tried. Every resolved result is
cached and written to the training log so the user can confirm or correct
it later.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

from txnlens.core.exceptions import NotFoundException, UnknownCategoryError
from txnlens.ml.amount_extractor import AmountExtractor, ExtractionResult
from txnlens.ml.sequence_classifier import SequenceClassifier
from txnlens.models.prediction_model import CachedPrediction, SubTransaction
from txnlens.repositories.category_repository import CategoryRepository
from txnlens.repositories.training_log_repository import TrainingLogRepository
from txnlens.services.adaptive_learner import AdaptiveLearner, Correction
from txnlens.services.llm_fallback import RemoteFallbackClient
from txnlens.services.monitoring import MonitoringService
from txnlens.services.prediction_cache import PredictionCache

logger = logging.getLogger(__name__)

PLACEHOLDER_MESSAGE = "Vui lòng cho biết số tiền cụ thể nhé!"


def format_vnd(amount: Optional[float]) -> str:
    if amount is None:
        return ""
    return f"{int(amount):,}".replace(",", ".") + "đ"


def suggestion_message(category_name: str, confidence: float, amount: Optional[float]) -> str:
    message = f"Đề xuất danh mục: {category_name} (độ tin cậy {confidence * 100:.0f}%)"
    if amount is not None:
        message += f" - {format_vnd(amount)}"
    return message


class ClassificationPipeline:
    def __init__(
        self,
        cache: PredictionCache,
        classifier: SequenceClassifier,
        llm: RemoteFallbackClient,
        extractor: AmountExtractor,
        training_log: TrainingLogRepository,
        category_repository: CategoryRepository,
        learner: AdaptiveLearner,
        monitoring: MonitoringService,
        min_confidence: float = 0.6,
        classifier_enabled: bool = True,
    ):
        self.cache = cache
        self.classifier = classifier
        self.llm = llm
        self.extractor = extractor
        self.training_log = training_log
        self.category_repository = category_repository
        self.learner = learner
        self.monitoring = monitoring
        self.min_confidence = min_confidence
        self.classifier_enabled = classifier_enabled

    # -------------------------------------------------------------------------
    # Classification
    # -------------------------------------------------------------------------

    async def classify(self, text: str, user_id: str) -> CachedPrediction:
        started = time.perf_counter()
        try:
            return await self._resolve(text, user_id)
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            await self.monitoring.log_latency("classify", elapsed_ms)

    async def _resolve(self, text: str, user_id: str) -> CachedPrediction:
        cached = await self._from_cache(user_id, text)
        if cached is not None:
            hit = cached.model_copy(update={"source": "cache"})
            sample_id = await self._log_prediction(user_id, text, hit)
            return hit.model_copy(update={"sample_id": sample_id})

        extraction = self.extractor.extract(text)

        result = await self._from_model(text, extraction)
        if result is None:
            result = await self._from_llm(text, extraction)
        if result is None and extraction.amount is not None:
            result = self._from_extractor(extraction)
        if result is None:
            return self._placeholder(extraction)

        sample_id = await self._log_prediction(user_id, text, result)
        try:
            await self.cache.store_prediction(user_id, text, result)
        except Exception as e:
            logger.error("Prediction cache write failed: %s", e)
        return result.model_copy(update={"sample_id": sample_id})

    async def _from_cache(self, user_id: str, text: str) -> Optional[CachedPrediction]:
        try:
            return await self.cache.lookup(user_id, text)
        except Exception as e:
            logger.error("Prediction cache lookup failed: %s", e)
            return None

    async def _from_model(self, text: str, extraction: ExtractionResult) -> Optional[CachedPrediction]:
        if not self.classifier_enabled or not self.classifier.is_ready:
            return None
        try:
            pred = await self.classifier.predict(text)
        except Exception as e:
            logger.error("Classifier prediction failed: %s", e)
            return None
        if pred is None or pred.confidence < self.min_confidence:
            return None
        return self._build(
            extraction,
            category_id=pred.category_id,
            category_name=pred.category_name,
            confidence=pred.confidence,
            source="model",
        )

    async def _from_llm(self, text: str, extraction: ExtractionResult) -> Optional[CachedPrediction]:
        if not self.llm.enabled:
            return None
        try:
            categories = await self._category_choices()
            res = await self.llm.classify(text, categories)
        except Exception as e:
            logger.error("LLM fallback failed: %s", e)
            return None
        if res is None:
            return None

        transactions = [
            SubTransaction(
                amount=t.get("amount"),
                note=t.get("note"),
                category_id=t.get("category_id"),
                io=t.get("io") or res.io or extraction.io,
            )
            for t in res.transactions
        ]
        return self._build(
            extraction,
            category_id=res.category_id,
            category_name=res.category_name,
            confidence=res.confidence,
            source="llm",
            amount=extraction.amount if extraction.amount is not None else res.amount,
            io=res.io or extraction.io,
            note=res.note or extraction.note,
            transactions=transactions,
        )

    def _from_extractor(self, extraction: ExtractionResult) -> CachedPrediction:
        return CachedPrediction(
            amount=extraction.amount,
            category_id=None,
            category_name=None,
            io=extraction.io,
            confidence=0.0,
            note=extraction.note,
            date=extraction.date.isoformat(),
            message=f"Đã ghi nhận {format_vnd(extraction.amount)}. Bạn muốn xếp vào danh mục nào?",
            overall_confidence=round(extraction.confidence / 2, 4),
            source="extractor",
        )

    def _placeholder(self, extraction: ExtractionResult) -> CachedPrediction:
        return CachedPrediction(
            io=extraction.io,
            note=extraction.note,
            date=extraction.date.isoformat(),
            message=PLACEHOLDER_MESSAGE,
            source="extractor",
        )

    def _build(
        self,
        extraction: ExtractionResult,
        category_id: str,
        category_name: str,
        confidence: float,
        source: str,
        amount: Optional[float] = None,
        io: Optional[str] = None,
        note: Optional[str] = None,
        transactions: Optional[List[SubTransaction]] = None,
    ) -> CachedPrediction:
        amount = extraction.amount if amount is None else amount
        amount_confidence = extraction.confidence if amount is not None else 0.0
        transactions = transactions or []
        return CachedPrediction(
            amount=amount,
            category_id=category_id,
            category_name=category_name,
            io=io or extraction.io,
            confidence=confidence,
            note=note or extraction.note,
            date=extraction.date.isoformat(),
            is_multiple=len(transactions) > 1,
            transactions=transactions,
            message=suggestion_message(category_name, confidence, amount),
            overall_confidence=round((confidence + amount_confidence) / 2, 4),
            source=source,
        )

    async def _category_choices(self) -> List[Dict[str, Any]]:
        categories = await asyncio.to_thread(self.category_repository.list_categories)
        return [{"id": str(c["_id"]), "name": c.get("name") or str(c["_id"])} for c in categories]

    async def _log_prediction(self, user_id: str, text: str, result: CachedPrediction) -> Optional[str]:
        sample = {
            "user_id": user_id,
            "text": text,
            "amount": result.amount,
            "io": result.io,
            "predicted_category_id": result.category_id,
            "confidence": result.confidence if result.category_id else None,
        }
        try:
            return await asyncio.to_thread(self.training_log.log_prediction, sample)
        except Exception as e:
            logger.error("Training log write failed: %s", e)
            return None

    # -------------------------------------------------------------------------
    # Corrections
    # -------------------------------------------------------------------------

    async def accept_correction(self, sample_id: str, category_id: str, user_id: str) -> bool:
        """
        Record the user's chosen category for a logged prediction.

        Returns False (and learns nothing) when the sample was already
        corrected. Raises NotFoundException for an unknown sample and
        UnknownCategoryError for a category that does not exist.
        """
        sample = await asyncio.to_thread(self.training_log.get_sample, sample_id)
        if sample is None or sample.get("user_id") != user_id:
            raise NotFoundException("Training sample not found", [sample_id])

        if self.classifier.category_index.index_of(category_id) is None:
            category = await asyncio.to_thread(self.category_repository.get_category, category_id)
            if category is None:
                raise UnknownCategoryError(category_id)

        updated = await asyncio.to_thread(self.training_log.log_correction, sample_id, category_id)
        if not updated:
            logger.info("Sample %s was already corrected, ignoring", sample_id)
            return False

        predicted = sample.get("predicted_category_id")
        await self.monitoring.log_accuracy(sample_id, predicted, category_id)

        if predicted != category_id:
            try:
                await self.cache.invalidate(user_id, sample["text"])
            except Exception as e:
                logger.error("Prediction cache invalidation failed: %s", e)

        self.learner.enqueue(Correction(text=sample["text"], category_id=category_id, sample_id=sample_id))
        return True
