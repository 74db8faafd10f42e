"""
Unit tests for QuizTimer and timer lifecycle logging.
"""
import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from trivia_bot.quiz_engine import QuizTimer, TimerLifecycleLogger
from tests.test_fixtures import AsyncTestHelpers


class TestQuizTimer(unittest.IsolatedAsyncioTestCase):
    """Test cases for the tick loop."""

    async def test_ticks_until_callback_returns_false(self):
        ticks = []

        async def on_tick():
            ticks.append(len(ticks) + 1)
            return len(ticks) < 3

        timer = QuizTimer("channel", interval=0.01)
        task = timer.start(on_tick)
        await AsyncTestHelpers.run_with_timeout(task, timeout=1.0)

        self.assertEqual(ticks, [1, 2, 3])
        self.assertEqual(timer.tick_count, 3)
        self.assertFalse(timer.is_running)

    async def test_cancel_stops_ticking(self):
        callback = AsyncMock(return_value=True)
        timer = QuizTimer("channel", interval=0.01)
        task = timer.start(callback)
        await AsyncTestHelpers.wait_until(lambda: callback.await_count >= 2)

        self.assertTrue(timer.cancel())
        with self.assertRaises(asyncio.CancelledError):
            await task

        count = callback.await_count
        await asyncio.sleep(0.05)
        self.assertEqual(callback.await_count, count)
        self.assertFalse(timer.is_running)

    async def test_slow_callback_does_not_stretch_interval(self):
        loop = asyncio.get_running_loop()
        tick_times = []

        async def on_tick():
            tick_times.append(loop.time())
            await asyncio.sleep(0.06)
            return len(tick_times) < 5

        timer = QuizTimer("channel", interval=0.1)
        started = loop.time()
        await AsyncTestHelpers.run_with_timeout(timer.start(on_tick), timeout=2.0)

        # Sleeping after each callback would put the fifth tick near 0.74s
        self.assertEqual(len(tick_times), 5)
        self.assertLess(tick_times[-1] - started, 0.65)
        self.assertGreaterEqual(tick_times[-1] - started, 0.45)

    async def test_cancel_when_not_running(self):
        self.assertFalse(QuizTimer("channel").cancel())

    async def test_start_twice_raises(self):
        timer = QuizTimer("channel", interval=10)
        timer.start(AsyncMock(return_value=True))
        try:
            with self.assertRaises(RuntimeError):
                timer.start(AsyncMock(return_value=True))
        finally:
            timer.cancel()

    async def test_cancel_from_inside_own_tick(self):
        timer = QuizTimer("channel", interval=0.01)
        results = []

        async def on_tick():
            results.append(timer.cancel())
            return False

        await AsyncTestHelpers.run_with_timeout(timer.start(on_tick), timeout=1.0)

        self.assertEqual(results, [False])

    async def test_callback_error_is_logged_and_raised(self):
        timer = QuizTimer("channel", interval=0.01)
        callback = AsyncMock(side_effect=RuntimeError("tick failed"))

        with patch.object(TimerLifecycleLogger, 'log_timer_error') as log_error:
            with self.assertRaises(RuntimeError):
                await AsyncTestHelpers.run_with_timeout(timer.start(callback), timeout=1.0)

        log_error.assert_called_once()
        self.assertEqual(log_error.call_args[0][1], "tick_callback_error")


class TestTimerLifecycleLogger(unittest.TestCase):
    """Test cases for structured timer logging."""

    def test_start_record_carries_event_type(self):
        with self.assertLogs('trivia_bot.quiz_engine', level='INFO') as logs:
            TimerLifecycleLogger.log_timer_start(42, 1.0)
        self.assertEqual(logs.records[0].event_type, 'timer_countdown_start')
        self.assertEqual(logs.records[0].channel_id, 42)

    def test_tick_logging_is_throttled(self):
        with patch('trivia_bot.quiz_engine.logger') as mock_logger:
            for tick in range(1, 21):
                TimerLifecycleLogger.log_timer_tick(42, tick)
        self.assertEqual(mock_logger.debug.call_count, 2)


if __name__ == '__main__':
    unittest.main()
