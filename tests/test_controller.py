"""Tests for the ConcurrencyController class."""

import asyncio
import unittest

from doc_crawler.controller import ConcurrencyController


class TestConcurrencyController(unittest.IsolatedAsyncioTestCase):
    """Verify slot counting on the event loop."""

    async def test_returns_coroutine_result(self):
        """run() hands back whatever the coroutine returns."""
        controller = ConcurrencyController(limit=2)

        async def work():
            return 42

        self.assertEqual(await controller.run(work), 42)
        self.assertEqual(controller.active, 0)

    async def test_limit_is_respected(self):
        """At most ``limit`` coroutines run at the same time."""
        controller = ConcurrencyController(limit=2)
        running = 0
        peak = 0

        async def work():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await asyncio.gather(*(controller.run(work) for _ in range(8)))
        self.assertEqual(peak, 2)
        self.assertEqual(controller.peak_active, 2)
        self.assertEqual(controller.active, 0)

    async def test_slot_released_on_error(self):
        """A failing coroutine gives its slot back."""
        controller = ConcurrencyController(limit=1)

        async def fail():
            raise RuntimeError("boom")

        with self.assertRaises(RuntimeError):
            await controller.run(fail)
        self.assertEqual(controller.active, 0)

    async def test_limit_floor(self):
        """A zero or negative limit is raised to one."""
        self.assertEqual(ConcurrencyController(limit=0).limit, 1)


if __name__ == "__main__":
    unittest.main()
