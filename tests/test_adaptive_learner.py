import asyncio
import unittest

from txnlens.core.exceptions import UnknownCategoryError
from txnlens.core.scheduler import Debouncer
from txnlens.services.adaptive_learner import DEBOUNCE_KEY, AdaptiveLearner, Correction


class RecordingClassifier:
    def __init__(self, fail_on=()):
        self.learned = []
        self.fail_on = set(fail_on)

    async def learn_from_correction(self, text, category_id):
        if category_id in self.fail_on:
            raise UnknownCategoryError(category_id)
        self.learned.append((text, category_id))
        return True


class TestAdaptiveLearner(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.debouncer = Debouncer()
        self.classifier = RecordingClassifier(fail_on={"cat_gone"})
        self.learner = AdaptiveLearner(self.classifier, self.debouncer,
                                       debounce_seconds=0.05, batch_size=5)

    async def asyncTearDown(self):
        self.debouncer.cancel_all()

    async def settle(self):
        await asyncio.sleep(0.12)
        await self.debouncer.wait_idle(timeout=1)

    async def test_flushes_one_batch_without_rearming(self):
        for i in range(7):
            self.learner.enqueue(Correction(f"note {i}", "cat_food"))

        await self.settle()

        self.assertEqual([t for t, _ in self.classifier.learned],
                         [f"note {i}" for i in range(5)])
        self.assertEqual(self.learner.pending, 2)
        self.assertFalse(self.debouncer.is_pending(DEBOUNCE_KEY))

        self.learner.enqueue(Correction("note 7", "cat_food"))
        await self.settle()
        self.assertEqual(len(self.classifier.learned), 8)
        self.assertEqual(self.learner.pending, 0)

    async def test_pending_timer_is_not_postponed(self):
        self.learner.enqueue(Correction("a", "cat_food"))
        handle = self.debouncer._handles[DEBOUNCE_KEY]
        self.learner.enqueue(Correction("b", "cat_food"))
        self.assertIs(self.debouncer._handles[DEBOUNCE_KEY], handle)

    async def test_failed_item_does_not_abort_batch(self):
        self.learner.queue.extend([
            Correction("a", "cat_food"),
            Correction("b", "cat_gone", sample_id="ml_1"),
            Correction("c", "cat_food"),
        ])
        applied = await self.learner.flush()
        self.assertEqual([c.text for c in applied], ["a", "c"])
        self.assertEqual(self.learner.pending, 0)


if __name__ == '__main__':
    unittest.main()
