"""
Discord Trivia Quiz Bot.

Timed multiple-choice trivia sessions backed by Open Trivia DB, with a local
question fallback, persisted settings and a high-score table.
"""

__version__ = "1.0.0"
