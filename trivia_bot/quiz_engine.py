"""
Countdown timing for the Discord Trivia Quiz Bot.
Runs the one-second ticks that drive each question's countdown.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional

# Set up logger for timer operations
logger = logging.getLogger(__name__)

TickCallback = Callable[[], Awaitable[bool]]


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_start(channel_id: Any, interval: float) -> None:
        """Log timer countdown start."""
        logger.info(
            f"Timer lifecycle: COUNTDOWN_START - Channel {channel_id}",
            extra={
                'event_type': 'timer_countdown_start',
                'channel_id': channel_id,
                'interval': interval,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_tick(channel_id: Any, tick_count: int) -> None:
        """Log tick events (throttled to avoid spam)."""
        if tick_count % 10 == 0:
            logger.debug(
                f"Timer lifecycle: TICK - Channel {channel_id}, tick {tick_count}",
                extra={
                    'event_type': 'timer_tick',
                    'channel_id': channel_id,
                    'tick_count': tick_count,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(channel_id: Any, completion_type: str, tick_count: int) -> None:
        """Log timer completion (callback stop or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Channel {channel_id}, Type {completion_type}, Ticks {tick_count}",
            extra={
                'event_type': 'timer_completed',
                'channel_id': channel_id,
                'completion_type': completion_type,
                'tick_count': tick_count,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(channel_id: Any, error_type: str, error_message: str, operation: str) -> None:
        """Log timer-related errors with context."""
        logger.error(
            f"Timer lifecycle: ERROR - Channel {channel_id}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'channel_id': channel_id,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_race_condition_detected(channel_id: Any, details: str) -> None:
        """Log race condition detection."""
        logger.warning(
            f"Timer lifecycle: RACE_CONDITION - Channel {channel_id}: {details}",
            extra={
                'event_type': 'timer_race_condition',
                'channel_id': channel_id,
                'details': details,
                'timestamp': time.time()
            }
        )


class QuizTimer:
    """
    Ticks a callback once per interval until told to stop.

    The timer holds no countdown state of its own: the tick callback decides
    whether another tick is wanted by returning True, or False to stop.
    """

    def __init__(self, channel_id: Any = None, interval: float = 1.0):
        """Initialize the timer."""
        self._task: Optional[asyncio.Task] = None
        self._channel_id = channel_id
        self._interval = interval
        self._tick_count = 0

    def start(self, tick_callback: TickCallback) -> asyncio.Task:
        """
        Start ticking in a background task.

        Args:
            tick_callback: Awaited after each interval; return False to stop

        Returns:
            The background task

        Raises:
            RuntimeError: If the timer is already running
        """
        if self.is_running:
            TimerLifecycleLogger.log_race_condition_detected(
                self._channel_id, "start requested while timer already running"
            )
            raise RuntimeError(f"Timer already running for channel {self._channel_id}")

        self._tick_count = 0
        TimerLifecycleLogger.log_timer_start(self._channel_id, self._interval)
        self._task = asyncio.create_task(self._run(tick_callback))
        return self._task

    async def _run(self, tick_callback: TickCallback) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time()
        try:
            while True:
                # Ticks are due at fixed offsets from start; callback time is not added
                deadline += self._interval
                await asyncio.sleep(max(0.0, deadline - loop.time()))
                self._tick_count += 1
                TimerLifecycleLogger.log_timer_tick(self._channel_id, self._tick_count)
                if not await tick_callback():
                    break
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "stopped_by_callback", self._tick_count)
        except asyncio.CancelledError:
            TimerLifecycleLogger.log_timer_completion(self._channel_id, "cancelled", self._tick_count)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._channel_id,
                "tick_callback_error",
                str(e),
                "run"
            )
            raise

    def cancel(self) -> bool:
        """
        Cancel the background task if it is still running.

        Returns:
            True if a running task was cancelled, False otherwise
        """
        if self._task and not self._task.done():
            # A tick may cancel its own timer (expiry, lock from a callback)
            if self._task is asyncio.current_task():
                logger.debug(f"Timer for channel {self._channel_id} stopping from inside its own tick")
                return False
            logger.debug(f"Cancelling timer task for channel {self._channel_id}")
            self._task.cancel()
            return True
        return False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_count(self) -> int:
        return self._tick_count
