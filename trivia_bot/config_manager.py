"""
Configuration manager for persisted quiz settings.
"""
import logging
from typing import Any, Dict, Optional

from .models import DifficultyFilter, QuestionSource, QuizSettings
from .storage import KeyValueStorage, MemoryStorage, StorageCorruptionError

SETTINGS_KEY = "quiz_settings_v1"


class ConfigManager:
    """Manages the user's quiz settings and keeps them persisted."""

    # Default configuration values
    DEFAULT_SOURCE = QuestionSource.REMOTE
    DEFAULT_QUESTION_COUNT = 10
    DEFAULT_DIFFICULTY = DifficultyFilter.ANY
    DEFAULT_TIMER_DURATION = 30

    # Entry limits
    MIN_QUESTION_COUNT = 5
    MAX_QUESTION_COUNT = 10
    MIN_TIMER_DURATION = 10
    MAX_TIMER_DURATION = 120

    def __init__(self, storage: Optional[KeyValueStorage] = None):
        """
        Initialize ConfigManager and load persisted settings.

        Args:
            storage: Key-value storage backend, in-memory if None
        """
        self.logger = logging.getLogger(__name__)
        self.storage = storage if storage is not None else MemoryStorage()
        self._settings = self.load()

    @classmethod
    def default_settings(cls) -> QuizSettings:
        return QuizSettings(
            source=cls.DEFAULT_SOURCE,
            question_count=cls.DEFAULT_QUESTION_COUNT,
            difficulty=cls.DEFAULT_DIFFICULTY,
            timer_duration=cls.DEFAULT_TIMER_DURATION
        )

    def load(self) -> QuizSettings:
        """
        Load persisted settings.

        Returns:
            Persisted settings, or defaults if none are stored or the stored
            value is corrupt
        """
        try:
            data = self.storage.read_json(SETTINGS_KEY)
        except StorageCorruptionError as e:
            self.logger.warning(f"Ignoring corrupt stored settings: {e}")
            return self.default_settings()

        if data is None:
            return self.default_settings()

        if not isinstance(data, dict):
            self.logger.warning(f"Ignoring stored settings of type {type(data).__name__}")
            return self.default_settings()

        return self._settings_from_dict(data)

    def _settings_from_dict(self, data: Dict[str, Any]) -> QuizSettings:
        """Parse stored settings, falling back to the default for each unusable field."""
        settings = self.default_settings()

        source = data.get('source')
        if isinstance(source, str):
            try:
                settings.source = QuestionSource(source.lower())
            except ValueError:
                self.logger.warning(f"Unknown stored question source '{source}', using default")

        count = data.get('question_count')
        if isinstance(count, int) and not isinstance(count, bool):
            settings.question_count = max(self.MIN_QUESTION_COUNT, min(self.MAX_QUESTION_COUNT, count))

        difficulty = data.get('difficulty')
        if isinstance(difficulty, str):
            try:
                settings.difficulty = DifficultyFilter(difficulty.lower())
            except ValueError:
                self.logger.warning(f"Unknown stored difficulty '{difficulty}', using default")

        duration = data.get('timer_duration')
        if isinstance(duration, int) and not isinstance(duration, bool):
            settings.timer_duration = max(self.MIN_TIMER_DURATION, min(self.MAX_TIMER_DURATION, duration))

        return settings

    def save(self, settings: Optional[QuizSettings] = None) -> None:
        """
        Persist settings synchronously.

        Args:
            settings: Settings to store, the current settings if None
        """
        if settings is not None:
            self._settings = QuizSettings(**vars(settings))
        self.storage.write_json(SETTINGS_KEY, self._settings.to_dict())
        self.logger.debug(f"Saved quiz settings: {self._settings.to_dict()}")

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            Copy of the current settings
        """
        return QuizSettings(**vars(self._settings))

    def set_source(self, source: Any) -> Dict[str, Any]:
        """
        Set the question source.

        Args:
            source: QuestionSource or its string value ("remote"/"local")

        Returns:
            Dictionary with success status, message and user-friendly message
        """
        if isinstance(source, str):
            source = source.lower()
            try:
                source = QuestionSource(source)
            except ValueError:
                pass

        if not isinstance(source, QuestionSource):
            error_msg = f"Unknown question source: {source!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Question source must be `remote` or `local`"
            }

        self._settings.source = source
        self.save()
        label = "Open Trivia DB" if source is QuestionSource.REMOTE else "local questions"
        self.logger.info(f"Question source set to {source.value}")
        return {
            'success': True,
            'message': f"Question source set to {source.value}",
            'user_message': f"✅ Questions will come from {label}"
        }

    def set_question_count(self, count: Any) -> Dict[str, Any]:
        """
        Set the number of questions, clamped to the allowed range.

        Args:
            count: Requested number of questions

        Returns:
            Dictionary with success status, message and user-friendly message
        """
        if not isinstance(count, int) or isinstance(count, bool):
            error_msg = f"Question count must be an integer, got {type(count).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(count).__name__}"
            }

        clamped = max(self.MIN_QUESTION_COUNT, min(self.MAX_QUESTION_COUNT, count))
        self._settings.question_count = clamped
        self.save()
        self.logger.info(f"Question count set to {clamped} (requested {count})")

        user_message = f"✅ Question count set to {clamped}"
        if clamped != count:
            user_message += (
                f" (allowed range is {self.MIN_QUESTION_COUNT}-{self.MAX_QUESTION_COUNT})"
            )
        return {
            'success': True,
            'message': f"Question count set to {clamped}",
            'clamped': clamped != count,
            'user_message': user_message
        }

    def set_difficulty(self, difficulty: Any) -> Dict[str, Any]:
        """
        Set the difficulty filter.

        Args:
            difficulty: DifficultyFilter or its string value

        Returns:
            Dictionary with success status, message and user-friendly message
        """
        if isinstance(difficulty, str):
            try:
                difficulty = DifficultyFilter(difficulty.lower())
            except ValueError:
                pass

        if not isinstance(difficulty, DifficultyFilter):
            error_msg = f"Unknown difficulty: {difficulty!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Difficulty must be one of: any, easy, medium, hard"
            }

        self._settings.difficulty = difficulty
        self.save()
        self.logger.info(f"Difficulty set to {difficulty.value}")
        return {
            'success': True,
            'message': f"Difficulty set to {difficulty.value}",
            'user_message': f"✅ Difficulty set to {difficulty.value}"
        }

    def set_timer_duration(self, duration: Any) -> Dict[str, Any]:
        """
        Set the per-question timer, clamped to the allowed range.

        Args:
            duration: Timer duration in seconds

        Returns:
            Dictionary with success status, message and user-friendly message
        """
        if not isinstance(duration, int) or isinstance(duration, bool):
            error_msg = f"Timer duration must be an integer, got {type(duration).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(duration).__name__}"
            }

        clamped = max(self.MIN_TIMER_DURATION, min(self.MAX_TIMER_DURATION, duration))
        self._settings.timer_duration = clamped
        self.save()
        self.logger.info(f"Timer duration set to {clamped} seconds (requested {duration})")

        user_message = f"✅ Timer set to {clamped} seconds"
        if clamped != duration:
            user_message += (
                f" (allowed range is {self.MIN_TIMER_DURATION}-{self.MAX_TIMER_DURATION})"
            )
        return {
            'success': True,
            'message': f"Timer duration set to {clamped} seconds",
            'clamped': clamped != duration,
            'user_message': user_message
        }

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._settings = self.default_settings()
        self.save()
        self.logger.info("All settings reset to default values")

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        source = "Open Trivia DB" if self._settings.source is QuestionSource.REMOTE else "Local questions"
        return (
            f"Quiz Settings:\n"
            f"• Source: {source}\n"
            f"• Questions: {self._settings.question_count}\n"
            f"• Difficulty: {self._settings.difficulty.value}\n"
            f"• Timer: {self._settings.timer_duration} seconds"
        )
