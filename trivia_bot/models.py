"""
Core data models for the Discord Trivia Quiz Bot.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class QuestionSource(Enum):
    """Where quiz questions come from."""
    REMOTE = "remote"
    LOCAL = "local"


class Difficulty(Enum):
    """Difficulty label carried by a single question."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "Difficulty":
        try:
            return cls(str(label).lower())
        except ValueError:
            return cls.UNKNOWN


class DifficultyFilter(Enum):
    """Difficulty requested for a quiz; ANY disables filtering."""
    ANY = "any"
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    def matches(self, difficulty: Difficulty) -> bool:
        return self is DifficultyFilter.ANY or self.value == difficulty.value


@dataclass(frozen=True)
class Question:
    """A multiple-choice question with its options already in display order."""
    text: str
    options: Tuple[str, ...]
    correct_index: int
    category: str = ""
    difficulty: Difficulty = Difficulty.UNKNOWN

    def __post_init__(self):
        if len(self.options) < 2:
            raise ValueError("A question needs at least two options")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"correct_index {self.correct_index} out of range for {len(self.options)} options"
            )

    @property
    def correct_answer(self) -> str:
        return self.options[self.correct_index]


@dataclass
class QuizSettings:
    """Configuration settings for a quiz session."""
    source: QuestionSource = QuestionSource.REMOTE
    question_count: int = 10
    difficulty: DifficultyFilter = DifficultyFilter.ANY
    timer_duration: int = 30

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source.value,
            'question_count': self.question_count,
            'difficulty': self.difficulty.value,
            'timer_duration': self.timer_duration
        }


@dataclass(frozen=True)
class AnswerRecord:
    """
    The committed answer for one question slot.

    Question data is copied by value so the record outlives the session.
    """
    question: str
    options: Tuple[str, ...]
    correct_index: int
    selected_index: Optional[int]
    is_correct: bool
    category: str = ""
    difficulty: Difficulty = Difficulty.UNKNOWN
    timed_out: bool = False

    @classmethod
    def for_question(
        cls,
        question: Question,
        selected_index: Optional[int],
        timed_out: bool = False
    ) -> "AnswerRecord":
        return cls(
            question=question.text,
            options=question.options,
            correct_index=question.correct_index,
            selected_index=selected_index,
            is_correct=selected_index is not None and selected_index == question.correct_index,
            category=question.category,
            difficulty=question.difficulty,
            timed_out=timed_out
        )


@dataclass(frozen=True)
class HighScoreEntry:
    """One finished quiz in the high-score table."""
    percent_correct: float
    question_count: int
    difficulty: str
    mode: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'percent_correct': self.percent_correct,
            'question_count': self.question_count,
            'difficulty': self.difficulty,
            'mode': self.mode,
            'timestamp': self.timestamp
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HighScoreEntry":
        return cls(
            percent_correct=float(data['percent_correct']),
            question_count=int(data['question_count']),
            difficulty=str(data['difficulty']),
            mode=str(data['mode']),
            timestamp=str(data['timestamp'])
        )


@dataclass
class CompletionPayload:
    """Everything the results view needs once a session completes."""
    answers: List[AnswerRecord]
    total: int
    correct: int
    percent_correct: float
    entry: HighScoreEntry
    high_scores: List[HighScoreEntry] = field(default_factory=list)
