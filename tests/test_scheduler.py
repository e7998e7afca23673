import asyncio
import unittest

from txnlens.core.scheduler import Debouncer


class TestDebouncer(unittest.IsolatedAsyncioTestCase):
    async def test_rapid_triggers_coalesce(self):
        debouncer = Debouncer()
        calls = []
        for i in range(5):
            debouncer.debounce("k", 0.02, lambda i=i: calls.append(i))
        self.assertTrue(debouncer.is_pending("k"))

        await asyncio.sleep(0.08)
        self.assertEqual(calls, [4])
        self.assertFalse(debouncer.is_pending("k"))

    async def test_cancel(self):
        debouncer = Debouncer()
        calls = []
        debouncer.debounce("a", 0.02, lambda: calls.append("a"))
        debouncer.debounce("b", 0.02, lambda: calls.append("b"))
        self.assertTrue(debouncer.cancel("a"))
        self.assertFalse(debouncer.cancel("a"))

        await asyncio.sleep(0.06)
        self.assertEqual(calls, ["b"])

    async def test_cancel_all(self):
        debouncer = Debouncer()
        calls = []
        debouncer.debounce("a", 0.02, lambda: calls.append("a"))
        debouncer.debounce("b", 0.02, lambda: calls.append("b"))
        debouncer.cancel_all()
        await asyncio.sleep(0.06)
        self.assertEqual(calls, [])

    async def test_coroutine_and_failures(self):
        debouncer = Debouncer()
        done = []

        async def work():
            await asyncio.sleep(0.01)
            done.append(True)

        def broken():
            raise RuntimeError("boom")

        debouncer.debounce("ok", 0.01, work)
        debouncer.debounce("bad", 0.01, broken)
        await asyncio.sleep(0.03)
        await debouncer.wait_idle(timeout=1)
        self.assertEqual(done, [True])


if __name__ == '__main__':
    unittest.main()
