"""
Quiz session controller for the Discord Trivia Quiz Bot.
Manages quiz sessions per Discord channel: loading, timing, transitions and completion.
"""
import asyncio
import logging
import time
from typing import Any, Dict, Optional

from .config_manager import ConfigManager
from .high_scores import HighScoreStore
from .models import CompletionPayload, QuizSettings
from .question_source import QuestionLoader, QuestionLoadError
from .quiz_engine import QuizTimer
from .quiz_session import (
    InvalidSessionStateError,
    QuestionPhase,
    QuizSession,
    SessionSnapshot,
    SessionState,
)

# Pause between locking a question and moving on, so the reveal is visible
DEFAULT_TRANSITION_DELAY = 0.35


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizPresenter:
    """
    Receives session events for display.

    The default implementation ignores everything; the Discord bot overrides
    each hook.
    """

    async def show_question(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        pass

    async def update_timer(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        pass

    async def show_locked(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        pass

    async def show_results(self, channel_id: int, payload: CompletionPayload) -> None:
        pass

    async def show_load_failed(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        pass


class QuizController:
    """
    Orchestrates quiz sessions and manages state across Discord channels.

    Each channel hosts at most one session. The controller feeds the session
    state machine with load results, timer ticks and user actions, and runs
    the delayed advance after every lock.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        question_loader: Optional[QuestionLoader] = None,
        high_score_store: Optional[HighScoreStore] = None,
        presenter: Optional[QuizPresenter] = None,
        transition_delay: float = DEFAULT_TRANSITION_DELAY,
        tick_interval: float = 1.0
    ):
        """
        Initialize the quiz controller.

        Args:
            config_manager: Source of the current quiz settings
            question_loader: Loader applying the remote/local fallback policy
            high_score_store: Store receiving one entry per completed session
            presenter: Display hooks for session events
            transition_delay: Seconds between a lock and the advance
            tick_interval: Seconds per countdown tick
        """
        self.logger = logging.getLogger(__name__)
        self.config_manager = config_manager
        self.question_loader = question_loader or QuestionLoader()
        self.high_score_store = high_score_store or HighScoreStore()
        self.presenter = presenter or QuizPresenter()
        self.transition_delay = transition_delay
        self.tick_interval = tick_interval

        # Sessions mapped by channel ID
        self._active_sessions: Dict[int, QuizSession] = {}
        self._timers: Dict[int, QuizTimer] = {}
        self._transitions: Dict[int, asyncio.Task] = {}
        self._last_settings: Dict[int, QuizSettings] = {}

        self.logger.info("QuizController initialized")

    # -- session registry -----------------------------------------------

    def get_session(self, channel_id: int) -> Optional[QuizSession]:
        return self._active_sessions.get(channel_id)

    def has_active_session(self, channel_id: int) -> bool:
        """
        Check if a channel has a session that is loading or being played.

        Returns:
            True if channel has an active session, False otherwise
        """
        session = self._active_sessions.get(channel_id)
        return session is not None and session.state in (
            SessionState.LOADING, SessionState.READY, SessionState.IN_PROGRESS
        )

    def _is_current(self, channel_id: int, session: QuizSession) -> bool:
        return self._active_sessions.get(channel_id) is session

    def _require_session(self, channel_id: int) -> QuizSession:
        session = self._active_sessions.get(channel_id)
        if session is None:
            raise SessionNotFoundError(f"No quiz session in channel {channel_id}")
        return session

    # -- loading -------------------------------------------------------

    async def start_quiz(self, channel_id: int, settings: Optional[QuizSettings] = None) -> Dict[str, Any]:
        """
        Create a session for the channel and load its questions.

        Args:
            channel_id: Discord channel identifier
            settings: Optional quiz settings, uses the persisted settings if None

        Returns:
            Dictionary with operation results and session info
        """
        try:
            if self.has_active_session(channel_id):
                raise SessionConflictError(f"Quiz already running in channel {channel_id}")

            # A failed or finished session left in the channel is discarded
            await self._discard(channel_id)

            if settings is None:
                settings = self.config_manager.get_quiz_settings()

            session = QuizSession(settings=settings, channel_id=channel_id)
            self._active_sessions[channel_id] = session
            self.logger.info(
                f"Created quiz session for channel {channel_id}: source={settings.source.value}, "
                f"questions={settings.question_count}, difficulty={settings.difficulty.value}",
                extra={
                    'event_type': 'session_created',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )

            loaded = await self._load(channel_id, session)
            return {
                'success': loaded,
                'message': "Quiz started" if loaded else (session.failure_reason or "Quiz could not be loaded"),
                'session_info': self.get_session_progress(channel_id)
            }

        except Exception as e:
            return self._handle_session_error(channel_id, e, "start_quiz")

    async def retry_load(self, channel_id: int) -> Dict[str, Any]:
        """
        Reload questions for a session whose load failed.

        Returns:
            Dictionary with operation results and session info
        """
        try:
            session = self._require_session(channel_id)
            session.reload()
            loaded = await self._load(channel_id, session)
            return {
                'success': loaded,
                'message': "Quiz started" if loaded else (session.failure_reason or "Quiz could not be loaded"),
                'session_info': self.get_session_progress(channel_id)
            }
        except Exception as e:
            return self._handle_session_error(channel_id, e, "retry_load")

    async def retake(self, channel_id: int) -> Dict[str, Any]:
        """Start a new session with the settings of the channel's last finished quiz."""
        return await self.start_quiz(channel_id, self._last_settings.get(channel_id))

    async def _load(self, channel_id: int, session: QuizSession) -> bool:
        """
        Load questions into a LOADING session and start it.

        Results that arrive after the session was discarded are ignored.

        Returns:
            True if the session reached IN_PROGRESS
        """
        load_start_time = time.time()
        try:
            result = await self.question_loader.load(session.settings)
        except QuestionLoadError as e:
            if not self._is_current(channel_id, session):
                self.logger.info(f"Ignoring load failure for discarded session in channel {channel_id}")
                return False
            session.load_failed(e.reason)
            self.logger.warning(
                f"Question load failed for channel {channel_id}: {e.reason}",
                extra={
                    'event_type': 'session_load_failed',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            await self._notify('show_load_failed', channel_id, session.snapshot())
            return False

        if not self._is_current(channel_id, session):
            self.logger.info(
                f"Ignoring late question load for discarded session in channel {channel_id}",
                extra={
                    'event_type': 'session_load_ignored',
                    'channel_id': channel_id,
                    'timestamp': time.time()
                }
            )
            return False

        session.questions_loaded(result.questions, result.source, result.used_fallback)
        session.start()
        self.logger.info(
            f"Loaded {len(result.questions)} questions for channel {channel_id} "
            f"from {result.source.value} in {time.time() - load_start_time:.3f}s"
            + (" (fallback)" if result.used_fallback else ""),
            extra={
                'event_type': 'session_started',
                'channel_id': channel_id,
                'used_fallback': result.used_fallback,
                'timestamp': time.time()
            }
        )

        await self._notify('show_question', channel_id, session.snapshot())
        self._start_timer(channel_id, session)
        return True

    # -- user actions --------------------------------------------------

    def select_option(self, channel_id: int, index: int) -> Dict[str, Any]:
        """Change the pending selection of the current question."""
        try:
            session = self._require_session(channel_id)
            applied = session.select(index)
            return {
                'success': applied,
                'message': "Selection updated" if applied else "Question is already locked",
                'snapshot': session.snapshot()
            }
        except Exception as e:
            return self._handle_session_error(channel_id, e, "select_option")

    async def submit_answer(self, channel_id: int) -> Dict[str, Any]:
        """Lock the current question with the pending selection."""
        try:
            session = self._require_session(channel_id)
            if not session.submit():
                message = "Question is already locked" if session.is_locked else "Select an answer first"
                return {'success': False, 'message': message, 'user_message': f"ℹ️ {message}"}
            await self._on_locked(channel_id, session)
            return {'success': True, 'message': "Answer locked", 'snapshot': session.snapshot()}
        except Exception as e:
            return self._handle_session_error(channel_id, e, "submit_answer")

    async def skip_question(self, channel_id: int) -> Dict[str, Any]:
        """Lock the current question with no answer."""
        try:
            session = self._require_session(channel_id)
            if not session.skip():
                return {
                    'success': False,
                    'message': "Question is already locked",
                    'user_message': "ℹ️ Question is already locked"
                }
            await self._on_locked(channel_id, session)
            return {'success': True, 'message': "Question skipped", 'snapshot': session.snapshot()}
        except Exception as e:
            return self._handle_session_error(channel_id, e, "skip_question")

    async def previous_question(self, channel_id: int) -> Dict[str, Any]:
        """Go back one question, restoring its recorded answer as the pending selection."""
        try:
            session = self._require_session(channel_id)
            if not session.previous():
                return {
                    'success': False,
                    'message': "Cannot go back from here",
                    'user_message': "ℹ️ There is no previous question to return to"
                }
            self._cancel_timer(channel_id)
            await self._notify('show_question', channel_id, session.snapshot())
            self._start_timer(channel_id, session)
            return {'success': True, 'message': "Moved to previous question", 'snapshot': session.snapshot()}
        except Exception as e:
            return self._handle_session_error(channel_id, e, "previous_question")

    async def stop_quiz(self, channel_id: int) -> Dict[str, Any]:
        """
        Stop and discard the channel's session.

        Returns:
            Dictionary with operation result and final session info
        """
        session_info = self.get_session_progress(channel_id)
        if channel_id not in self._active_sessions:
            return {
                'success': False,
                'message': "No active quiz to stop in this channel",
                'user_message': "ℹ️ No active quiz found in this channel"
            }

        await self._discard(channel_id)
        self.logger.info(
            f"Stopped and cleaned up session for channel {channel_id}",
            extra={
                'event_type': 'session_stopped',
                'channel_id': channel_id,
                'timestamp': time.time()
            }
        )
        return {
            'success': True,
            'message': "Quiz stopped successfully",
            'session_info': session_info
        }

    async def shutdown(self) -> None:
        """Discard every session, cancelling timers and pending transitions."""
        for channel_id in list(self._active_sessions):
            await self._discard(channel_id)
        self.logger.info("QuizController shut down")

    # -- timing and transitions ----------------------------------------

    def _start_timer(self, channel_id: int, session: QuizSession) -> None:
        self._cancel_timer(channel_id)
        timer = QuizTimer(channel_id, interval=self.tick_interval)
        self._timers[channel_id] = timer

        async def on_tick() -> bool:
            if not self._is_current(channel_id, session) or self._timers.get(channel_id) is not timer:
                return False
            if session.tick():
                self.logger.info(f"Time expired on question {session.current_index + 1} in channel {channel_id}")
                await self._on_locked(channel_id, session)
                return False
            await self._notify('update_timer', channel_id, session.snapshot())
            return session.phase is QuestionPhase.UNANSWERED

        timer.start(on_tick)

    def _cancel_timer(self, channel_id: int) -> None:
        timer = self._timers.pop(channel_id, None)
        if timer is not None:
            timer.cancel()

    async def _on_locked(self, channel_id: int, session: QuizSession) -> None:
        self._cancel_timer(channel_id)
        record = session.answers[session.current_index]
        self.logger.debug(
            f"Locked question {session.current_index + 1} in channel {channel_id}: "
            f"selected={record.selected_index}, correct={record.is_correct}"
        )
        self._transitions[channel_id] = asyncio.create_task(self._advance_after_delay(channel_id, session))
        await self._notify('show_locked', channel_id, session.snapshot())

    async def _advance_after_delay(self, channel_id: int, session: QuizSession) -> None:
        try:
            await asyncio.sleep(self.transition_delay)
            if not self._is_current(channel_id, session):
                return

            if session.advance():
                await self._notify('show_question', channel_id, session.snapshot())
                self._start_timer(channel_id, session)
            else:
                await self._complete(channel_id, session)
        finally:
            if self._transitions.get(channel_id) is asyncio.current_task():
                del self._transitions[channel_id]

    async def _complete(self, channel_id: int, session: QuizSession) -> None:
        payload = session.completion_payload()
        try:
            payload.high_scores = self.high_score_store.append(payload.entry)
        except OSError as e:
            self.logger.error(f"Failed to persist high score for channel {channel_id}: {e}", exc_info=True)
            payload.high_scores = self.high_score_store.load_all()

        self._last_settings[channel_id] = session.settings
        del self._active_sessions[channel_id]
        self.logger.info(
            f"Quiz completed for channel {channel_id}: {payload.correct}/{payload.total} "
            f"({payload.percent_correct:.1f}%)",
            extra={
                'event_type': 'session_completed',
                'channel_id': channel_id,
                'percent_correct': payload.percent_correct,
                'timestamp': time.time()
            }
        )
        await self._notify('show_results', channel_id, payload)

    async def _discard(self, channel_id: int) -> None:
        session = self._active_sessions.pop(channel_id, None)
        self._cancel_timer(channel_id)

        transition = self._transitions.pop(channel_id, None)
        if transition is not None and not transition.done() and transition is not asyncio.current_task():
            transition.cancel()
            try:
                await transition
            except asyncio.CancelledError:
                pass

        if session is not None:
            self.logger.debug(f"Discarded {session.state.value} session for channel {channel_id}")

    async def _notify(self, hook: str, channel_id: int, *args: Any) -> None:
        """Call a presenter hook; display failures never break the quiz flow."""
        try:
            await getattr(self.presenter, hook)(channel_id, *args)
        except Exception as e:
            self.logger.error(f"Presenter hook {hook} failed for channel {channel_id}: {e}", exc_info=True)

    # -- reporting -----------------------------------------------------

    def get_session_progress(self, channel_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a session.

        Returns:
            Dictionary with progress info, None if no session
        """
        session = self._active_sessions.get(channel_id)
        if session is None:
            return None

        return {
            'state': session.state.value,
            'current_question': session.current_index + 1 if session.state is SessionState.IN_PROGRESS else 0,
            'total_questions': len(session.questions),
            'answered': sum(1 for a in session.answers if a is not None),
            'time_remaining': session.time_remaining,
            'source': session.source.value if session.source else session.settings.source.value,
            'used_fallback': session.used_fallback,
            'start_time': session.start_time,
            'settings': session.settings.to_dict()
        }

    def get_session_status_summary(self, channel_id: int) -> str:
        progress = self.get_session_progress(channel_id)
        if progress is None:
            return "No quiz in this channel"

        state = progress['state']
        if state == SessionState.IN_PROGRESS.value:
            return (
                f"Question {progress['current_question']} of {progress['total_questions']} | "
                f"{progress['time_remaining']}s left | Source: {progress['source']}"
                + (" (fallback)" if progress['used_fallback'] else "")
            )
        if state == SessionState.LOAD_FAILED.value:
            return f"Loading failed: {self._active_sessions[channel_id].failure_reason}"
        return f"Status: {state.replace('_', ' ')}"

    # -- error handling ------------------------------------------------

    def _handle_session_error(self, channel_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Log a session error and build the result dictionary for it.

        Returns:
            Dictionary with error information and a user-friendly message
        """
        if isinstance(error, (QuizControllerError, InvalidSessionStateError, ValueError)):
            self.logger.warning(f"{operation} rejected for channel {channel_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for channel {channel_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A quiz is already running in this channel. Please stop it first with `/stop`."
        if isinstance(error, SessionNotFoundError):
            return "❌ No active quiz found in this channel. Start a quiz with `/start`."
        if isinstance(error, InvalidSessionStateError):
            return "❌ That action isn't available right now."
        if isinstance(error, ValueError):
            return "❌ That option doesn't exist for this question."
        return f"❌ An unexpected error occurred during {operation}. Please try again."
