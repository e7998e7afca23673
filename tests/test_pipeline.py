import tempfile
import unittest

import mongomock

from txnlens.core.exceptions import NotFoundException, UnknownCategoryError
from txnlens.core.scheduler import Debouncer
from txnlens.core.storage import LocalStore
from txnlens.ml.amount_extractor import AmountExtractor
from txnlens.ml.sequence_classifier import SequenceClassifier, TrainingSample
from txnlens.ml.tokenizer import Vocabulary
from txnlens.repositories.mongo_category_repository import MongoCategoryRepository
from txnlens.repositories.mongo_training_log_repository import MongoTrainingLogRepository
from txnlens.services.adaptive_learner import AdaptiveLearner
from txnlens.services.classification_pipeline import (
    PLACEHOLDER_MESSAGE,
    ClassificationPipeline,
    format_vnd,
)
from txnlens.services.llm_fallback import LLMClassification, RemoteFallbackClient
from txnlens.services.model_manager import ModelStore
from txnlens.services.monitoring import MonitoringService
from txnlens.services.prediction_cache import PredictionCache

CATEGORIES = [
    {"_id": "cat_food", "name": "Ăn uống", "type": "OUT"},
    {"_id": "cat_fun", "name": "Giải trí", "type": "OUT"},
    {"_id": "cat_salary", "name": "Lương", "type": "IN"},
]


class FakeLLM:
    enabled = True

    def __init__(self, answer=None):
        self.answer = answer
        self.seen_categories = None
        self.calls = 0

    async def classify(self, text, categories):
        self.calls += 1
        self.seen_categories = categories
        return self.answer


class TestFormatting(unittest.TestCase):
    def test_format_vnd(self):
        self.assertEqual(format_vnd(1500000), "1.500.000đ")
        self.assertEqual(format_vnd(None), "")


class TestClassificationPipeline(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

        db = mongomock.MongoClient()["txnlens_test"]
        db["categories"].insert_many([dict(c) for c in CATEGORIES])
        self.training_log = MongoTrainingLogRepository(db)
        self.categories = MongoCategoryRepository(db)

        self.classifier = SequenceClassifier(ModelStore(f"{self.tmp.name}/model"),
                                             learning_rate=0.01, seed=0)
        local_store = LocalStore(f"{self.tmp.name}/store")
        self.cache = PredictionCache(local_store)
        self.monitoring = MonitoringService(local_store)
        self.debouncer = Debouncer()
        self.learner = AdaptiveLearner(self.classifier, self.debouncer, debounce_seconds=60)

    async def asyncTearDown(self):
        self.debouncer.cancel_all()

    def make_pipeline(self, llm=None, min_confidence=0.0) -> ClassificationPipeline:
        return ClassificationPipeline(
            cache=self.cache,
            classifier=self.classifier,
            llm=llm or RemoteFallbackClient(),
            extractor=AmountExtractor(),
            training_log=self.training_log,
            category_repository=self.categories,
            learner=self.learner,
            monitoring=self.monitoring,
            min_confidence=min_confidence,
        )

    async def train(self):
        index = self.classifier.category_index
        food = index.register("cat_food", "Ăn uống")
        salary = index.register("cat_salary", "Lương")
        texts = [("ăn trưa 50k", food), ("phở bò 40k", food), ("nhận lương 15tr", salary),
                 ("lương tháng 12tr", salary)]
        samples = [TrainingSample(t, label) for t, label in texts] * 3
        await self.classifier.train_from_samples(
            samples, vocabulary=Vocabulary.build(t for t, _ in texts), epochs=80
        )

    def logged(self):
        return list(self.training_log.collection.find())

    async def test_model_tier_then_cache(self):
        await self.train()
        pipeline = self.make_pipeline()

        first = await pipeline.classify("ăn trưa 50k", "u1")
        self.assertEqual(first.source, "model")
        self.assertEqual(first.category_id, "cat_food")
        self.assertEqual(first.amount, 50000)
        self.assertEqual(first.io, "OUT")
        self.assertTrue(first.message.startswith("Đề xuất danh mục: Ăn uống"))
        self.assertIsNotNone(first.sample_id)

        predict_calls = []
        original_predict = self.classifier.predict

        async def counting_predict(text):
            predict_calls.append(text)
            return await original_predict(text)

        self.classifier.predict = counting_predict
        llm = FakeLLM(LLMClassification(category_id="cat_fun", category_name="Giải trí",
                                        confidence=0.9))
        pipeline.llm = llm

        second = await pipeline.classify("Ăn trưa 50K", "u1")
        self.assertEqual(predict_calls, [])
        self.assertEqual(llm.calls, 0)
        self.assertEqual(second.source, "cache")
        self.assertEqual(second.category_id, "cat_food")
        self.assertNotEqual(second.sample_id, first.sample_id)
        self.assertEqual(len(self.logged()), 2)

        latency = await self.monitoring.latency_summary()
        self.assertEqual(latency["classify"]["count"], 2)

    async def test_low_confidence_skips_model(self):
        await self.train()
        pipeline = self.make_pipeline(min_confidence=1.01)
        res = await pipeline.classify("ăn trưa 50k", "u1")
        self.assertEqual(res.source, "extractor")

    async def test_extractor_only_when_model_not_ready(self):
        pipeline = self.make_pipeline()
        res = await pipeline.classify("cafe 30k", "u1")
        self.assertEqual(res.source, "extractor")
        self.assertIsNone(res.category_id)
        self.assertEqual(res.confidence, 0.0)
        self.assertEqual(res.amount, 30000)
        self.assertEqual(len(self.logged()), 1)

        res = await pipeline.classify("ăn trưa 50k", "u1")
        self.assertEqual(res.source, "extractor")
        self.assertIsNone(res.category_id)
        self.assertEqual(res.amount, 50000)
        self.assertEqual(res.io, "OUT")
        self.assertEqual(len(self.logged()), 2)

    async def test_placeholder_is_not_logged_or_cached(self):
        pipeline = self.make_pipeline()
        res = await pipeline.classify("ăn trưa", "u1")
        self.assertEqual(res.message, PLACEHOLDER_MESSAGE)
        self.assertIsNone(res.sample_id)
        self.assertEqual(self.logged(), [])
        self.assertIsNone(await self.cache.lookup("u1", "ăn trưa"))

    async def test_llm_tier(self):
        llm = FakeLLM(LLMClassification(category_id="cat_fun", category_name="Giải trí",
                                        confidence=0.8, amount=120000, io="OUT"))
        pipeline = self.make_pipeline(llm=llm)

        res = await pipeline.classify("xem phim", "u1")

        self.assertEqual(res.source, "llm")
        self.assertEqual(res.category_id, "cat_fun")
        self.assertEqual(res.amount, 120000)
        self.assertIn({"id": "cat_food", "name": "Ăn uống"}, llm.seen_categories)
        self.assertEqual(self.logged()[0]["predicted_category_id"], "cat_fun")

    async def test_llm_without_answer_falls_to_extractor(self):
        pipeline = self.make_pipeline(llm=FakeLLM(None))
        res = await pipeline.classify("xem phim 120k", "u1")
        self.assertEqual(res.source, "extractor")

    async def test_accept_correction(self):
        await self.train()
        pipeline = self.make_pipeline()
        res = await pipeline.classify("ăn trưa 50k", "u1")

        self.assertTrue(await pipeline.accept_correction(res.sample_id, "cat_fun", "u1"))
        self.assertFalse(await pipeline.accept_correction(res.sample_id, "cat_food", "u1"))

        self.assertIsNone(await self.cache.lookup("u1", "ăn trưa 50k"))
        self.assertEqual(self.learner.pending, 1)
        accuracy = await self.monitoring.accuracy_rate()
        self.assertEqual(accuracy["total"], 1)
        self.assertEqual(accuracy["correct"], 0)
        self.assertEqual(self.training_log.confusion_pairs("u1")[0]["chosen_category_id"], "cat_fun")

    async def test_confirming_prediction_keeps_cache(self):
        await self.train()
        pipeline = self.make_pipeline()
        res = await pipeline.classify("ăn trưa 50k", "u1")
        self.assertTrue(await pipeline.accept_correction(res.sample_id, "cat_food", "u1"))
        self.assertIsNotNone(await self.cache.lookup("u1", "ăn trưa 50k"))

    async def test_correction_errors(self):
        pipeline = self.make_pipeline()
        res = await pipeline.classify("cafe 30k", "u1")

        with self.assertRaises(NotFoundException):
            await pipeline.accept_correction("ml_missing", "cat_food", "u1")
        with self.assertRaises(NotFoundException):
            await pipeline.accept_correction(res.sample_id, "cat_food", "u2")
        with self.assertRaises(UnknownCategoryError):
            await pipeline.accept_correction(res.sample_id, "cat_nope", "u1")
        self.assertEqual(self.learner.pending, 0)


if __name__ == '__main__':
    unittest.main()
