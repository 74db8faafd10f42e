"""
Quiz session state machine.

A QuizSession drives one playthrough: loading, question progression, answer
selection and locking, the countdown and final scoring. It is synchronous
and does no I/O; the controller feeds it events (user input, timer ticks,
load results) and acts on what it reports.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from .models import (
    AnswerRecord,
    CompletionPayload,
    DifficultyFilter,
    HighScoreEntry,
    Question,
    QuestionSource,
    QuizSettings,
)


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    LOADING = "loading"
    READY = "ready"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    LOAD_FAILED = "load_failed"


class QuestionPhase(Enum):
    """Sub-state of the current question while IN_PROGRESS."""
    UNANSWERED = "unanswered"
    LOCKED = "locked"


class InvalidSessionStateError(Exception):
    """Raised when an operation is not valid in the session's current state."""
    pass


@dataclass
class SessionSnapshot:
    """Displayable state of a session at one instant."""
    state: SessionState
    phase: Optional[QuestionPhase]
    question: Optional[Question]
    question_number: int
    total_questions: int
    time_remaining: int
    selected_index: Optional[int]
    record: Optional[AnswerRecord]
    failure_reason: Optional[str] = None
    used_fallback: bool = False

    @property
    def is_last_question(self) -> bool:
        return self.total_questions > 0 and self.question_number == self.total_questions


@dataclass
class QuizSession:
    """State machine for a single quiz playthrough."""
    settings: QuizSettings
    channel_id: Optional[int] = None
    state: SessionState = SessionState.LOADING
    questions: List[Question] = field(default_factory=list)
    current_index: int = 0
    answers: List[Optional[AnswerRecord]] = field(default_factory=list)
    time_remaining: int = 0
    selected_index: Optional[int] = None
    phase: Optional[QuestionPhase] = None
    source: Optional[QuestionSource] = None
    used_fallback: bool = False
    failure_reason: Optional[str] = None
    start_time: Optional[datetime] = None
    completion: Optional[CompletionPayload] = None

    def __post_init__(self):
        self.logger = logging.getLogger(__name__)
        self.time_remaining = self.settings.timer_duration

    # -- loading ---------------------------------------------------------

    def questions_loaded(
        self,
        questions: List[Question],
        source: Optional[QuestionSource] = None,
        used_fallback: bool = False
    ) -> None:
        """LOADING -> READY with a fixed, non-empty question list."""
        self._require(SessionState.LOADING, "questions_loaded")
        if not questions:
            raise ValueError("Cannot start a session without questions")

        self.questions = list(questions)
        self.answers = [None] * len(self.questions)
        self.current_index = 0
        self.source = source or self.settings.source
        self.used_fallback = used_fallback
        self.failure_reason = None
        self.state = SessionState.READY
        self.logger.debug(
            f"Session ready with {len(self.questions)} questions "
            f"(source={self.source.value}, fallback={used_fallback})"
        )

    def load_failed(self, reason: str) -> None:
        """LOADING -> LOAD_FAILED, keeping a human-readable reason."""
        self._require(SessionState.LOADING, "load_failed")
        self.failure_reason = reason or "An unexpected error occurred."
        self.state = SessionState.LOAD_FAILED

    def reload(self) -> None:
        """LOAD_FAILED -> LOADING for another load attempt."""
        self._require(SessionState.LOAD_FAILED, "reload")
        self.failure_reason = None
        self.state = SessionState.LOADING

    # -- question flow ---------------------------------------------------

    def start(self) -> None:
        """READY -> IN_PROGRESS at the first question."""
        self._require(SessionState.READY, "start")
        self.state = SessionState.IN_PROGRESS
        self.start_time = datetime.now(timezone.utc)
        self._enter_question(0, selected_index=None)

    def _enter_question(self, index: int, selected_index: Optional[int]) -> None:
        self.current_index = index
        self.time_remaining = self.settings.timer_duration
        self.selected_index = selected_index
        self.phase = QuestionPhase.UNANSWERED

    def select(self, index: int) -> bool:
        """
        Change the pending selection of the current question.

        Returns:
            True if the selection was applied, False if the question is locked

        Raises:
            ValueError: If the index is not a valid option
        """
        self._require(SessionState.IN_PROGRESS, "select")
        if self.phase is not QuestionPhase.UNANSWERED:
            return False
        question = self.current_question
        if not isinstance(index, int) or not 0 <= index < len(question.options):
            raise ValueError(f"Option index {index} out of range for {len(question.options)} options")
        self.selected_index = index
        return True

    def submit(self) -> bool:
        """
        Lock the current question with the pending selection.

        Returns:
            True if the answer was locked, False if already locked or nothing is selected
        """
        self._require(SessionState.IN_PROGRESS, "submit")
        if self.selected_index is None:
            return False
        return self._lock(self.selected_index)

    def skip(self) -> bool:
        """Lock the current question with no selection."""
        self._require(SessionState.IN_PROGRESS, "skip")
        return self._lock(None)

    def tick(self) -> bool:
        """
        Count down one second.

        Returns:
            True if this tick ran the clock out and locked the question
        """
        if self.state is not SessionState.IN_PROGRESS or self.phase is not QuestionPhase.UNANSWERED:
            return False
        self.time_remaining = max(0, self.time_remaining - 1)
        if self.time_remaining == 0:
            return self._lock(None, timed_out=True)
        return False

    def _lock(self, selected_index: Optional[int], timed_out: bool = False) -> bool:
        # LOCKED is the in-flight transition: everything but advance() is ignored
        if self.phase is not QuestionPhase.UNANSWERED:
            return False

        record = AnswerRecord.for_question(self.current_question, selected_index, timed_out=timed_out)
        self.answers[self.current_index] = record
        self.selected_index = selected_index
        self.phase = QuestionPhase.LOCKED

        if self.is_last_question:
            # Score is the value of every slot at the instant the last question locks
            self.completion = self._build_completion()
        return True

    def advance(self) -> bool:
        """
        Leave a locked question.

        Returns:
            True if a next question was entered, False if the session completed
        """
        self._require(SessionState.IN_PROGRESS, "advance")
        if self.phase is not QuestionPhase.LOCKED:
            raise InvalidSessionStateError("Cannot advance before the current question is locked")

        if self.current_index + 1 < len(self.questions):
            self._enter_question(self.current_index + 1, selected_index=None)
            return True

        if self.completion is None:
            self.completion = self._build_completion()
        self.state = SessionState.COMPLETED
        self.phase = None
        return False

    def previous(self) -> bool:
        """
        Step back one question, restoring its recorded selection unlocked.

        Returns:
            True if moved back, False at the first question or while locked
        """
        self._require(SessionState.IN_PROGRESS, "previous")
        if self.current_index == 0 or self.phase is not QuestionPhase.UNANSWERED:
            return False
        prior = self.answers[self.current_index - 1]
        self._enter_question(
            self.current_index - 1,
            selected_index=prior.selected_index if prior else None
        )
        return True

    # -- scoring ---------------------------------------------------------

    def _build_completion(self) -> CompletionPayload:
        total = len(self.questions)
        answers = [a for a in self.answers if a is not None]
        correct = sum(1 for a in answers if a.is_correct)
        percent = 100 * correct / total

        difficulty = self.settings.difficulty
        entry = HighScoreEntry(
            percent_correct=percent,
            question_count=total,
            difficulty=difficulty.value if isinstance(difficulty, DifficultyFilter) else str(difficulty),
            mode=self.settings.source.value
        )
        return CompletionPayload(
            answers=list(self.answers),
            total=total,
            correct=correct,
            percent_correct=percent,
            entry=entry
        )

    def completion_payload(self) -> CompletionPayload:
        self._require(SessionState.COMPLETED, "completion_payload")
        return self.completion

    # -- views -----------------------------------------------------------

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions or not 0 <= self.current_index < len(self.questions):
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    @property
    def is_locked(self) -> bool:
        return self.phase is QuestionPhase.LOCKED

    def snapshot(self) -> SessionSnapshot:
        in_progress = self.state is SessionState.IN_PROGRESS
        return SessionSnapshot(
            state=self.state,
            phase=self.phase if in_progress else None,
            question=self.current_question if in_progress else None,
            question_number=self.current_index + 1 if in_progress else 0,
            total_questions=len(self.questions),
            time_remaining=self.time_remaining,
            selected_index=self.selected_index if in_progress else None,
            record=self.answers[self.current_index] if in_progress and self.is_locked else None,
            failure_reason=self.failure_reason,
            used_fallback=self.used_fallback
        )

    def _require(self, state: SessionState, operation: str) -> None:
        if self.state is not state:
            raise InvalidSessionStateError(
                f"Cannot {operation} while session is {self.state.value} (expected {state.value})"
            )
