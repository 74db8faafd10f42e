"""
Persisted high-score table.
"""
import logging
from datetime import datetime
from typing import List, Optional

from .models import HighScoreEntry
from .storage import KeyValueStorage, MemoryStorage, StorageCorruptionError

HIGH_SCORES_KEY = "quiz_highscores_v1"
MAX_HIGH_SCORES = 20


def sort_key(entry: HighScoreEntry):
    """Best score first; equal scores keep the earlier timestamp first."""
    return (-entry.percent_correct, entry.timestamp)


class HighScoreStore:
    """Sorted, capped leaderboard kept in key-value storage."""

    def __init__(self, storage: Optional[KeyValueStorage] = None, limit: int = MAX_HIGH_SCORES):
        self.logger = logging.getLogger(__name__)
        self.storage = storage if storage is not None else MemoryStorage()
        self.limit = limit

    def load_all(self) -> List[HighScoreEntry]:
        """
        Load the persisted high scores.

        Returns:
            Stored entries, or an empty list if none are stored or the stored
            value is corrupt
        """
        try:
            data = self.storage.read_json(HIGH_SCORES_KEY)
        except StorageCorruptionError as e:
            self.logger.warning(f"Ignoring corrupt high-score data: {e}")
            return []

        if data is None:
            return []

        if not isinstance(data, list):
            self.logger.warning(f"Ignoring high-score data of type {type(data).__name__}")
            return []

        entries = []
        for i, item in enumerate(data):
            try:
                entries.append(HighScoreEntry.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                self.logger.warning(f"Dropping unreadable high-score entry {i}: {e}")
        return entries

    def append(self, entry: HighScoreEntry) -> List[HighScoreEntry]:
        """
        Add an entry, re-sort, truncate to the cap and persist.

        Returns:
            The persisted, truncated list
        """
        entries = self.load_all()
        entries.append(entry)
        entries.sort(key=sort_key)
        top = entries[:self.limit]

        self.storage.write_json(HIGH_SCORES_KEY, [e.to_dict() for e in top])
        self.logger.info(
            f"Recorded high score {entry.percent_correct:.1f}% "
            f"({entry.mode}, {entry.question_count}Q, {entry.difficulty})",
            extra={
                'event_type': 'high_score_recorded',
                'percent_correct': entry.percent_correct,
                'rank': top.index(entry) + 1 if entry in top else None
            }
        )
        return top

    def clear(self) -> None:
        self.storage.delete(HIGH_SCORES_KEY)
        self.logger.info("High scores cleared")


def format_entry(entry: HighScoreEntry) -> str:
    """Render an entry as ``mode • NQ • difficulty • date: NN%``."""
    try:
        when = datetime.fromisoformat(entry.timestamp).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        when = entry.timestamp
    mode = "API" if entry.mode == "remote" else entry.mode.capitalize()
    return (
        f"{mode} • {entry.question_count}Q • {entry.difficulty} • {when}: "
        f"{round(entry.percent_correct)}%"
    )
