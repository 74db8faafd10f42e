"""
Unit tests for Discord bot integration with mocked Discord API objects.
"""
import unittest
from unittest.mock import AsyncMock, Mock, patch

import discord

from trivia_bot.bot import (
    DiscordQuizPresenter,
    QuestionView,
    QuizBot,
    build_high_scores_embed,
    build_question_embed,
    build_results_embed,
    progress_bar,
)
from trivia_bot.config_manager import ConfigManager
from trivia_bot.high_scores import HighScoreStore
from trivia_bot.models import AnswerRecord, CompletionPayload, HighScoreEntry
from trivia_bot.quiz_session import QuestionPhase, SessionSnapshot, SessionState
from trivia_bot.storage import MemoryStorage
from tests.test_fixtures import MockDiscordObjects, TestFixtures

CHANNEL_ID = 12345


def make_snapshot(question_number=1, total=3, selected=None, locked=False, time_remaining=10,
                  used_fallback=False) -> SessionSnapshot:
    question = TestFixtures.create_sample_questions(total)[question_number - 1]
    record = AnswerRecord.for_question(question, selected) if locked else None
    return SessionSnapshot(
        state=SessionState.IN_PROGRESS,
        phase=QuestionPhase.LOCKED if locked else QuestionPhase.UNANSWERED,
        question=question,
        question_number=question_number,
        total_questions=total,
        time_remaining=time_remaining,
        selected_index=selected,
        record=record,
        used_fallback=used_fallback
    )


def make_payload() -> CompletionPayload:
    questions = TestFixtures.create_sample_questions(3)
    answers = [
        AnswerRecord.for_question(questions[0], 1),
        AnswerRecord.for_question(questions[1], 0),
        AnswerRecord.for_question(questions[2], None, timed_out=True),
    ]
    entry = HighScoreEntry(100 / 3, 3, "any", "local", "2026-10-17T12:00:00+00:00")
    return CompletionPayload(answers=answers, total=3, correct=1, percent_correct=100 / 3,
                             entry=entry, high_scores=[entry])


class TestEmbedBuilders(unittest.TestCase):
    """Test cases for embed rendering."""

    def test_progress_bar(self):
        self.assertEqual(progress_bar(3, 10), "▰▰▰▱▱▱▱▱▱▱")
        self.assertEqual(progress_bar(0, 0), "▱" * 10)

    def test_question_embed(self):
        embed = build_question_embed(make_snapshot(question_number=2, total=3, time_remaining=7))

        self.assertIn("Question 2 of 3", embed.title)
        self.assertEqual(embed.description, "What is the capital of France?")
        fields = {field.name: field.value for field in embed.fields}
        self.assertEqual(fields["⏱️ Time Remaining"], "7 seconds")
        self.assertIn("**B.** Paris", fields["Options"])
        self.assertIsNone(embed.footer.text)

    def test_locked_question_embed_reveals_answer(self):
        embed = build_question_embed(make_snapshot(selected=0, locked=True))

        self.assertEqual(embed.color.value, 0xff0000)
        reveal = embed.fields[-1]
        self.assertEqual(reveal.name, "❌ Incorrect")
        self.assertIn("4", reveal.value)

    def test_fallback_footer(self):
        embed = build_question_embed(make_snapshot(used_fallback=True))
        self.assertIn("local questions", embed.footer.text)

    def test_results_embed(self):
        embed = build_results_embed(make_payload())

        self.assertIn("1/3", embed.description)
        self.assertIn("33%", embed.description)
        review = embed.fields[0].value
        self.assertIn("✅ 4", review)
        self.assertIn("✖️ London", review)
        self.assertIn("timed out", review)
        self.assertEqual(embed.fields[-1].name, "🏆 Top Scores")

    def test_high_scores_embed_empty(self):
        embed = build_high_scores_embed([])
        self.assertIn("No high scores yet", embed.description)


class TestQuestionView(unittest.IsolatedAsyncioTestCase):
    """Test cases for the question button layout."""

    def buttons(self, view):
        return [item for item in view.children if isinstance(item, discord.ui.Button)]

    async def test_unanswered_layout(self):
        view = QuestionView(Mock(), CHANNEL_ID, make_snapshot())

        self.assertEqual(len(self.buttons(view)), 7)
        self.assertTrue(view.previous_button.disabled)
        self.assertTrue(view.next_button.disabled)
        self.assertFalse(view.skip_button.disabled)
        self.assertEqual(view.next_button.label, "Next")

    async def test_selection_enables_next_and_highlights(self):
        view = QuestionView(Mock(), CHANNEL_ID, make_snapshot(question_number=2, selected=3))

        self.assertFalse(view.next_button.disabled)
        self.assertFalse(view.previous_button.disabled)
        option_d = [b for b in self.buttons(view) if b.label.startswith("D.")][0]
        self.assertEqual(option_d.style, discord.ButtonStyle.primary)

    async def test_last_question_shows_submit(self):
        view = QuestionView(Mock(), CHANNEL_ID, make_snapshot(question_number=3, total=3, selected=1))
        self.assertEqual(view.next_button.label, "Submit")

    async def test_locked_layout(self):
        view = QuestionView(Mock(), CHANNEL_ID, make_snapshot(selected=0, locked=True))

        self.assertTrue(all(b.disabled for b in self.buttons(view)))
        styles = {b.label[0]: b.style for b in self.buttons(view) if b.label[1:2] == "."}
        self.assertEqual(styles["A"], discord.ButtonStyle.danger)
        self.assertEqual(styles["B"], discord.ButtonStyle.success)


class TestDiscordQuizPresenter(unittest.IsolatedAsyncioTestCase):
    """Test cases for rendering session events into channel messages."""

    async def asyncSetUp(self):
        self.bot = Mock()
        self.bot.quiz_controller = Mock()
        self.bot.high_score_store = Mock()
        self.channel = MockDiscordObjects.create_mock_channel(CHANNEL_ID)
        self.bot.get_channel.return_value = self.channel
        self.presenter = DiscordQuizPresenter(self.bot)

    async def test_first_question_sends_then_edits(self):
        await self.presenter.show_question(CHANNEL_ID, make_snapshot(1))
        await self.presenter.show_question(CHANNEL_ID, make_snapshot(2))

        self.channel.send.assert_awaited_once()
        message = self.channel.send.return_value
        message.edit.assert_awaited_once()
        self.assertIn("Question 2 of 3", message.edit.await_args.kwargs['embed'].title)

    async def test_timer_updates_are_throttled(self):
        await self.presenter.show_question(CHANNEL_ID, make_snapshot())
        message = self.channel.send.return_value

        for remaining in (14, 13, 12, 11, 10, 9, 8, 7, 6, 5, 4):
            await self.presenter.update_timer(CHANNEL_ID, make_snapshot(time_remaining=remaining))

        # 10 and every second from 5 down
        self.assertEqual(message.edit.await_count, 3)

    async def test_results_clear_question_buttons(self):
        await self.presenter.show_question(CHANNEL_ID, make_snapshot())
        message = self.channel.send.return_value

        await self.presenter.show_results(CHANNEL_ID, make_payload())

        message.edit.assert_awaited_once_with(view=None)
        self.assertEqual(self.channel.send.await_count, 2)
        self.assertIn("Quiz Complete", self.channel.send.await_args.kwargs['embed'].title)

    async def test_load_failed_message(self):
        snapshot = SessionSnapshot(
            state=SessionState.LOAD_FAILED, phase=None, question=None, question_number=0,
            total_questions=0, time_remaining=10, selected_index=None, record=None,
            failure_reason="Failed to load questions. Please try again."
        )

        await self.presenter.show_load_failed(CHANNEL_ID, snapshot)

        embed = self.channel.send.await_args.kwargs['embed']
        self.assertEqual(embed.description, "Failed to load questions. Please try again.")

    async def test_fetches_uncached_channel(self):
        self.bot.get_channel.return_value = None
        self.bot.fetch_channel = AsyncMock(return_value=self.channel)

        await self.presenter.show_question(CHANNEL_ID, make_snapshot())

        self.bot.fetch_channel.assert_awaited_once_with(CHANNEL_ID)
        self.channel.send.assert_awaited_once()


class TestBotCommandHandlers(unittest.IsolatedAsyncioTestCase):
    """Test slash command handlers with mocked controller and interactions."""

    async def asyncSetUp(self):
        self.bot = QuizBot()
        storage = MemoryStorage()
        self.bot.config_manager = ConfigManager(storage)
        self.bot.high_score_store = HighScoreStore(storage)
        self.bot.presenter = Mock()
        self.bot.quiz_controller = Mock()
        self.bot.quiz_controller.has_active_session.return_value = False
        self.bot.quiz_controller.start_quiz = AsyncMock(return_value={'success': True, 'message': "Quiz started"})
        self.bot.quiz_controller.stop_quiz = AsyncMock(return_value={
            'success': True,
            'message': "Quiz stopped successfully",
            'session_info': {'answered': 2, 'total_questions': 5}
        })
        self.interaction = MockDiscordObjects.create_mock_interaction(CHANNEL_ID)

    def sent_embed(self):
        return self.interaction.response.send_message.await_args.kwargs['embed']

    async def test_help_lists_commands(self):
        await self.bot.handle_help(self.interaction)

        embed = self.sent_embed()
        self.assertIn("Trivia Quiz Bot", embed.title)
        self.assertIn("/set_difficulty", embed.fields[0].value)
        self.assertIn("Source: Open Trivia DB", embed.fields[2].value)

    async def test_setting_change_reports_clamp(self):
        await self.bot.handle_setting_result(self.interaction, self.bot.config_manager.set_question_count(50))

        embed = self.sent_embed()
        self.assertIn("set to 10", embed.description)
        self.assertIn("5-10", embed.description)

    async def test_setting_change_failure_is_ephemeral(self):
        await self.bot.handle_setting_result(self.interaction, self.bot.config_manager.set_difficulty("impossible"))

        args, kwargs = self.interaction.response.send_message.await_args
        self.assertIn("Difficulty must be one of", args[0])
        self.assertTrue(kwargs['ephemeral'])

    async def test_start_with_active_session(self):
        self.bot.quiz_controller.has_active_session.return_value = True

        await self.bot.handle_start(self.interaction)

        self.bot.quiz_controller.start_quiz.assert_not_awaited()
        self.assertIn("Already Running", self.sent_embed().title)

    async def test_start_quiz(self):
        await self.bot.handle_start(self.interaction)

        self.assertIn("Loading questions", self.sent_embed().title)
        self.bot.quiz_controller.start_quiz.assert_awaited_once_with(
            CHANNEL_ID, self.bot.config_manager.get_quiz_settings()
        )
        self.interaction.followup.send.assert_not_awaited()

    async def test_start_failure_reported_in_followup(self):
        self.bot.quiz_controller.start_quiz.return_value = {
            'success': False,
            'error': "boom",
            'user_message': "❌ An unexpected error occurred during start_quiz. Please try again."
        }

        await self.bot.handle_start(self.interaction)

        self.interaction.followup.send.assert_awaited_once()

    async def test_stop_forgets_question_message(self):
        await self.bot.handle_stop(self.interaction)

        self.bot.presenter.forget.assert_called_once_with(CHANNEL_ID)
        embed = self.sent_embed()
        self.assertIn("Quiz Stopped", embed.title)
        self.assertIn("2/5", embed.fields[0].value)

    async def test_stop_without_session(self):
        self.bot.quiz_controller.stop_quiz.return_value = {
            'success': False,
            'message': "No active quiz to stop in this channel"
        }

        await self.bot.handle_stop(self.interaction)

        self.bot.presenter.forget.assert_not_called()
        self.assertTrue(self.interaction.response.send_message.await_args.kwargs['ephemeral'])

    async def test_status_without_session(self):
        self.bot.quiz_controller.get_session_progress.return_value = None

        await self.bot.handle_status(self.interaction)

        self.assertIn("No Active Quiz", self.sent_embed().title)

    async def test_highscores(self):
        self.bot.high_score_store.append(HighScoreEntry(80.0, 10, "easy", "remote", "2026-10-17T12:00:00+00:00"))

        await self.bot.handle_highscores(self.interaction)

        self.assertIn("API • 10Q • easy", self.sent_embed().description)

    async def test_error_response_uses_followup_when_responded(self):
        self.interaction.response.is_done.return_value = True

        await self.bot.send_error_response(self.interaction, "Something failed")

        self.interaction.followup.send.assert_awaited_once()
        self.interaction.response.send_message.assert_not_awaited()


class TestBotSetup(unittest.IsolatedAsyncioTestCase):
    """Test component wiring from configuration."""

    async def test_setup_hook_applies_config(self):
        config = {
            'quiz': {'transition_delay': 0.5},
            'trivia_api': {'base_url': "https://trivia.test/api.php", 'timeout': 3.0},
            'storage': {'data_directory': "./test-data/"}
        }
        bot = QuizBot(config)
        with patch.object(bot, "setup_commands", AsyncMock()):
            await bot.setup_hook()

        controller = bot.quiz_controller
        self.assertEqual(controller.transition_delay, 0.5)
        self.assertEqual(controller.question_loader.api_client.base_url, "https://trivia.test/api.php")
        self.assertEqual(controller.question_loader.api_client.timeout, 3.0)
        self.assertIs(controller.presenter, bot.presenter)
        self.assertEqual(str(bot.config_manager.storage.directory), "test-data")


if __name__ == '__main__':
    unittest.main()
