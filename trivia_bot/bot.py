import discord
from discord import app_commands
from discord.ext import commands
import logging
import os
from typing import Dict, List, Optional

from .config_manager import ConfigManager
from .high_scores import HighScoreStore, format_entry
from .models import AnswerRecord, CompletionPayload, QuestionSource
from .question_source import DEFAULT_API_URL, DEFAULT_HTTP_TIMEOUT, QuestionLoader, TriviaApiClient
from .quiz_controller import DEFAULT_TRANSITION_DELAY, QuizController, QuizPresenter
from .quiz_session import QuestionPhase, SessionSnapshot
from .storage import JsonFileStorage

logger = logging.getLogger(__name__)

OPTION_LETTERS = "ABCDEFGH"

# Discord caps button labels at 80 characters
MAX_BUTTON_LABEL = 80

# Timer edits are throttled to stay well under Discord's message edit rate limit
TIMER_UPDATE_EVERY = 5
TIMER_FINAL_SECONDS = 5

COLOR_OK = 0x00ff00
COLOR_ERROR = 0xff0000
COLOR_WARNING = 0xffaa00
COLOR_INFO = 0x6699ff


def progress_bar(current: int, total: int, width: int = 10) -> str:
    """Render progress as a bar of filled and empty blocks."""
    if total <= 0:
        return "▱" * width
    filled = round(width * current / total)
    return "▰" * filled + "▱" * (width - filled)


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 1] + "…"


def _describe_record(record: AnswerRecord) -> str:
    if record.is_correct:
        return "✅ Correct!"
    if record.timed_out:
        return "⏰ Time's up!"
    if record.selected_index is None:
        return "⏭️ Skipped"
    return "❌ Incorrect"


def build_question_embed(snapshot: SessionSnapshot) -> discord.Embed:
    """Build the embed for the current question, revealing the answer once locked."""
    question = snapshot.question
    record = snapshot.record

    if record is None:
        color = COLOR_OK
    else:
        color = COLOR_OK if record.is_correct else COLOR_ERROR

    embed = discord.Embed(
        title=f"🎯 Question {snapshot.question_number} of {snapshot.total_questions}",
        description=question.text,
        color=color
    )

    options = "\n".join(
        f"**{OPTION_LETTERS[i]}.** {option}" for i, option in enumerate(question.options)
    )
    embed.add_field(name="Options", value=options, inline=False)

    embed.add_field(
        name="📊 Progress",
        value=progress_bar(snapshot.question_number, snapshot.total_questions),
        inline=False
    )
    embed.add_field(name="⏱️ Time Remaining", value=f"{snapshot.time_remaining} seconds", inline=True)
    if question.category:
        embed.add_field(name="📚 Category", value=question.category, inline=True)
    embed.add_field(name="🎚️ Difficulty", value=question.difficulty.value, inline=True)

    if record is not None:
        embed.add_field(
            name=_describe_record(record),
            value=f"Correct answer: **{question.correct_answer}**",
            inline=False
        )

    if snapshot.used_fallback:
        embed.set_footer(text="Trivia service unavailable: playing local questions")
    return embed


def build_results_embed(payload: CompletionPayload) -> discord.Embed:
    """Build the final score embed with a per-question review."""
    embed = discord.Embed(
        title="🏁 Quiz Complete!",
        description=f"You scored **{payload.correct}/{payload.total}** ({round(payload.percent_correct)}%)",
        color=COLOR_OK if payload.percent_correct >= 50 else COLOR_WARNING
    )

    lines = []
    for i, record in enumerate(payload.answers, start=1):
        if record is None:
            lines.append(f"**{i}.** Not answered")
            continue
        line = f"**{i}.** {_truncate(record.question, 60)}\n✅ {record.options[record.correct_index]}"
        if not record.is_correct:
            if record.selected_index is None:
                line += " | ✖️ " + ("timed out" if record.timed_out else "skipped")
            else:
                line += f" | ✖️ {record.options[record.selected_index]}"
        lines.append(line)

    # Embed field values are limited to 1024 characters
    chunk: List[str] = []
    part = 1
    for line in lines:
        if chunk and len("\n".join(chunk + [line])) > 1000:
            embed.add_field(name="📝 Review" if part == 1 else "📝 Review (cont.)", value="\n".join(chunk), inline=False)
            chunk = []
            part += 1
        chunk.append(line)
    if chunk:
        embed.add_field(name="📝 Review" if part == 1 else "📝 Review (cont.)", value="\n".join(chunk), inline=False)

    if payload.high_scores:
        top = "\n".join(f"{i}. {format_entry(e)}" for i, e in enumerate(payload.high_scores[:5], start=1))
        embed.add_field(name="🏆 Top Scores", value=top, inline=False)

    embed.set_footer(text="Retake with the same settings, or use /settings to change them")
    return embed


def build_high_scores_embed(entries) -> discord.Embed:
    embed = discord.Embed(title="🏆 High Scores", color=COLOR_INFO)
    if not entries:
        embed.description = "No high scores yet. Finish a quiz with `/start` to set one!"
    else:
        embed.description = "\n".join(f"**{i}.** {format_entry(e)}" for i, e in enumerate(entries, start=1))
    return embed


class OptionButton(discord.ui.Button):
    """Answer option button; selecting only marks it as pending."""

    def __init__(self, index: int, text: str, style: discord.ButtonStyle, disabled: bool):
        super().__init__(
            label=_truncate(f"{OPTION_LETTERS[index]}. {text}", MAX_BUTTON_LABEL),
            style=style,
            disabled=disabled,
            row=index // 2
        )
        self.index = index

    async def callback(self, interaction: discord.Interaction):
        view: QuestionView = self.view
        result = view.controller.select_option(view.channel_id, self.index)
        if not result['success']:
            await interaction.response.send_message(
                result.get('user_message', result['message']), ephemeral=True
            )
            return
        snapshot = result['snapshot']
        await interaction.response.edit_message(
            embed=build_question_embed(snapshot),
            view=QuestionView(view.controller, view.channel_id, snapshot)
        )


class QuestionView(discord.ui.View):
    """Option buttons plus Previous / Skip / Next navigation for one question."""

    def __init__(self, controller: QuizController, channel_id: int, snapshot: SessionSnapshot):
        super().__init__(timeout=None)
        self.controller = controller
        self.channel_id = channel_id

        locked = snapshot.phase is QuestionPhase.LOCKED
        question = snapshot.question
        for i, option in enumerate(question.options):
            if locked and i == question.correct_index:
                style = discord.ButtonStyle.success
            elif locked and i == snapshot.selected_index:
                style = discord.ButtonStyle.danger
            elif i == snapshot.selected_index:
                style = discord.ButtonStyle.primary
            else:
                style = discord.ButtonStyle.secondary
            self.add_item(OptionButton(i, option, style, disabled=locked))

        self.previous_button.disabled = locked or snapshot.question_number <= 1
        self.skip_button.disabled = locked
        self.next_button.disabled = locked or snapshot.selected_index is None
        if snapshot.is_last_question:
            self.next_button.label = "Submit"

    async def _respond(self, interaction: discord.Interaction, result: dict) -> None:
        if not result['success']:
            await interaction.followup.send(result.get('user_message', result['message']), ephemeral=True)

    @discord.ui.button(label="Previous", emoji="⬅️", style=discord.ButtonStyle.secondary, row=4)
    async def previous_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        await self._respond(interaction, await self.controller.previous_question(self.channel_id))

    @discord.ui.button(label="Skip", emoji="⏭️", style=discord.ButtonStyle.secondary, row=4)
    async def skip_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        await self._respond(interaction, await self.controller.skip_question(self.channel_id))

    @discord.ui.button(label="Next", emoji="➡️", style=discord.ButtonStyle.primary, row=4)
    async def next_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        await self._respond(interaction, await self.controller.submit_answer(self.channel_id))


class ResultsView(discord.ui.View):
    """Retake and High Scores buttons under the results embed."""

    def __init__(self, bot: "QuizBot", channel_id: int):
        super().__init__(timeout=600)
        self.bot = bot
        self.channel_id = channel_id

    @discord.ui.button(label="Retake (same settings)", emoji="🔁", style=discord.ButtonStyle.primary)
    async def retake_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.defer()
        result = await self.bot.quiz_controller.retake(self.channel_id)
        if not result['success'] and 'user_message' in result:
            await interaction.followup.send(result['user_message'], ephemeral=True)

    @discord.ui.button(label="High Scores", emoji="🏆", style=discord.ButtonStyle.secondary)
    async def high_scores_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.send_message(
            embed=build_high_scores_embed(self.bot.high_score_store.load_all()), ephemeral=True
        )


class LoadFailedView(discord.ui.View):
    """Retry and Back buttons under a load failure message."""

    def __init__(self, bot: "QuizBot", channel_id: int):
        super().__init__(timeout=600)
        self.bot = bot
        self.channel_id = channel_id

    @discord.ui.button(label="Retry", emoji="🔄", style=discord.ButtonStyle.primary)
    async def retry_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await interaction.response.edit_message(
            embed=discord.Embed(title="⏳ Loading questions...", color=COLOR_INFO), view=None
        )
        result = await self.bot.quiz_controller.retry_load(self.channel_id)
        if not result['success'] and 'user_message' in result:
            await interaction.followup.send(result['user_message'], ephemeral=True)

    @discord.ui.button(label="Back", emoji="⚙️", style=discord.ButtonStyle.secondary)
    async def back_button(self, interaction: discord.Interaction, button: discord.ui.Button):
        await self.bot.quiz_controller.stop_quiz(self.channel_id)
        embed = discord.Embed(
            title="⚙️ Quiz Settings",
            description=f"```\n{self.bot.config_manager.get_settings_summary()}\n```",
            color=COLOR_INFO
        )
        embed.set_footer(text="Change settings with the /set_* commands, then /start")
        await interaction.response.edit_message(embed=embed, view=None)


class DiscordQuizPresenter(QuizPresenter):
    """Renders quiz sessions as one live question message per channel."""

    def __init__(self, bot: "QuizBot"):
        self.bot = bot
        self._messages: Dict[int, discord.Message] = {}

    async def _get_channel(self, channel_id: int):
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def show_question(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        embed = build_question_embed(snapshot)
        view = QuestionView(self.bot.quiz_controller, channel_id, snapshot)
        message = self._messages.get(channel_id)
        if message is not None:
            try:
                await message.edit(embed=embed, view=view)
                return
            except discord.NotFound:
                logger.warning(f"Question message for channel {channel_id} was deleted, sending a new one")

        channel = await self._get_channel(channel_id)
        self._messages[channel_id] = await channel.send(embed=embed, view=view)

    async def update_timer(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        remaining = snapshot.time_remaining
        if remaining % TIMER_UPDATE_EVERY and remaining > TIMER_FINAL_SECONDS:
            return
        message = self._messages.get(channel_id)
        if message is not None:
            await message.edit(embed=build_question_embed(snapshot))

    async def show_locked(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        message = self._messages.get(channel_id)
        if message is not None:
            await message.edit(
                embed=build_question_embed(snapshot),
                view=QuestionView(self.bot.quiz_controller, channel_id, snapshot)
            )

    async def show_results(self, channel_id: int, payload: CompletionPayload) -> None:
        message = self._messages.pop(channel_id, None)
        if message is not None:
            try:
                await message.edit(view=None)
            except discord.HTTPException as e:
                logger.warning(f"Could not clear question buttons in channel {channel_id}: {e}")

        channel = await self._get_channel(channel_id)
        await channel.send(embed=build_results_embed(payload), view=ResultsView(self.bot, channel_id))

    async def show_load_failed(self, channel_id: int, snapshot: SessionSnapshot) -> None:
        self._messages.pop(channel_id, None)
        embed = discord.Embed(
            title="❌ Could Not Load Questions",
            description=snapshot.failure_reason,
            color=COLOR_ERROR
        )
        embed.set_footer(text="Retry, or go back to the settings")
        channel = await self._get_channel(channel_id)
        await channel.send(embed=embed, view=LoadFailedView(self.bot, channel_id))

    def forget(self, channel_id: int) -> None:
        """Drop the live question message of a stopped session."""
        self._messages.pop(channel_id, None)


SOURCE_CHOICES = [
    app_commands.Choice(name="Open Trivia DB", value=QuestionSource.REMOTE.value),
    app_commands.Choice(name="Local questions", value=QuestionSource.LOCAL.value),
]

DIFFICULTY_CHOICES = [
    app_commands.Choice(name=name.capitalize(), value=name) for name in ("any", "easy", "medium", "hard")
]


class QuizBot(commands.Bot):
    """Discord bot for running timed multiple-choice trivia quizzes"""

    def __init__(self, config=None):
        # Slash commands and buttons only need the guilds intent
        intents = discord.Intents.none()
        intents.guilds = True

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.config_manager: Optional[ConfigManager] = None
        self.high_score_store: Optional[HighScoreStore] = None
        self.quiz_controller: Optional[QuizController] = None
        self.presenter: Optional[DiscordQuizPresenter] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        try:
            logger.info("Setting up bot components...")

            storage_config = self.app_config.get('storage', {})
            api_config = self.app_config.get('trivia_api', {})
            quiz_config = self.app_config.get('quiz', {})

            storage = JsonFileStorage(storage_config.get('data_directory', './data/'))
            self.config_manager = ConfigManager(storage)
            self.high_score_store = HighScoreStore(storage)

            api_client = TriviaApiClient(
                base_url=api_config.get('base_url', DEFAULT_API_URL),
                timeout=api_config.get('timeout', DEFAULT_HTTP_TIMEOUT)
            )
            self.presenter = DiscordQuizPresenter(self)
            self.quiz_controller = QuizController(
                self.config_manager,
                question_loader=QuestionLoader(api_client=api_client),
                high_score_store=self.high_score_store,
                presenter=self.presenter,
                transition_delay=quiz_config.get('transition_delay', DEFAULT_TRANSITION_DELAY)
            )

            await self.setup_commands()

            logger.info("Bot setup completed successfully")

        except Exception as e:
            logger.error(f"Error during bot setup: {e}")
            raise

    async def setup_commands(self):
        """Register all slash commands"""
        @self.tree.command(name="help", description="Display available commands and their descriptions")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        @self.tree.command(name="settings", description="Show the current quiz settings")
        async def settings_command(interaction: discord.Interaction):
            await self.handle_settings(interaction)

        @self.tree.command(name="set_source", description="Choose where questions come from")
        @app_commands.choices(source=SOURCE_CHOICES)
        async def set_source_command(interaction: discord.Interaction, source: app_commands.Choice[str]):
            await self.handle_setting_result(interaction, self.config_manager.set_source(source.value))

        @self.tree.command(name="set_questions", description="Set the number of questions (5-10)")
        async def set_questions_command(interaction: discord.Interaction, number: int):
            await self.handle_setting_result(interaction, self.config_manager.set_question_count(number))

        @self.tree.command(name="set_difficulty", description="Set the question difficulty")
        @app_commands.choices(difficulty=DIFFICULTY_CHOICES)
        async def set_difficulty_command(interaction: discord.Interaction, difficulty: app_commands.Choice[str]):
            await self.handle_setting_result(interaction, self.config_manager.set_difficulty(difficulty.value))

        @self.tree.command(name="set_timer", description="Set the time per question (10-120 seconds)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.handle_setting_result(interaction, self.config_manager.set_timer_duration(seconds))

        @self.tree.command(name="start", description="Start a quiz with the current settings")
        async def start_command(interaction: discord.Interaction):
            await self.handle_start(interaction)

        @self.tree.command(name="stop", description="Stop the quiz in this channel")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show the quiz status in this channel")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="highscores", description="Show the high-score table")
        async def highscores_command(interaction: discord.Interaction):
            await self.handle_highscores(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")

        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.quiz_controller is not None:
            await self.quiz_controller.shutdown()
        await super().close()

    async def handle_discord_api_error(self, error: Exception, operation: str, interaction: discord.Interaction = None):
        """Log a Discord API error and tell the user where possible."""
        if isinstance(error, discord.Forbidden):
            logger.error(f"Permission denied during {operation}: {error}")
            message = "Bot doesn't have permission to perform this action. Please check bot permissions."
        elif isinstance(error, discord.NotFound):
            logger.error(f"Resource not found during {operation}: {error}")
            message = "Channel or message not found. Please try again."
        else:
            logger.error(f"Discord API error during {operation}: {error}")
            message = "Discord API error occurred. Please try again in a moment."

        if interaction:
            await self.send_error_response(interaction, message, "❌ Discord Error")

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        try:
            help_embed = discord.Embed(
                title="🎯 Trivia Quiz Bot Commands",
                description="Timed multiple-choice trivia, one quiz per channel",
                color=COLOR_OK
            )

            help_embed.add_field(
                name="📋 Settings",
                value=(
                    "`/settings` - Show the current settings\n"
                    "`/set_source <source>` - Open Trivia DB or local questions\n"
                    "`/set_questions <number>` - Questions per quiz (5-10)\n"
                    "`/set_difficulty <difficulty>` - any, easy, medium or hard\n"
                    "`/set_timer <seconds>` - Time per question (10-120)"
                ),
                inline=False
            )

            help_embed.add_field(
                name="🎮 Quiz",
                value=(
                    "`/start` - Start a quiz with the current settings\n"
                    "`/stop` - Stop the quiz in this channel\n"
                    "`/status` - Show quiz progress\n"
                    "`/highscores` - Show the high-score table"
                ),
                inline=False
            )

            help_embed.add_field(
                name="⚙️ Current Settings",
                value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                inline=False
            )

            help_embed.set_footer(text="Pick an answer, then press Next. Skip moves on without answering.")

            await interaction.response.send_message(embed=help_embed)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "help")
        except Exception as e:
            logger.error(f"Error in help command: {e}")
            await self.send_error_response(interaction, "Failed to display help information", "❌ Help Error")

    async def handle_settings(self, interaction: discord.Interaction):
        """Handle /settings command"""
        try:
            embed = discord.Embed(
                title="⚙️ Quiz Settings",
                description=f"```\n{self.config_manager.get_settings_summary()}\n```",
                color=COLOR_INFO
            )
            await interaction.response.send_message(embed=embed, ephemeral=True)
        except Exception as e:
            logger.error(f"Error in settings command: {e}")
            await self.send_error_response(interaction, "Failed to show settings", "❌ Configuration Error")

    async def handle_setting_result(self, interaction: discord.Interaction, result: dict):
        """Report the outcome of a settings change"""
        try:
            if result['success']:
                embed = discord.Embed(
                    title="✅ Settings Updated",
                    description=result['user_message'],
                    color=COLOR_OK
                )
                embed.add_field(
                    name="⚙️ Current Settings",
                    value=f"```\n{self.config_manager.get_settings_summary()}\n```",
                    inline=False
                )
                await interaction.response.send_message(embed=embed)
            else:
                await interaction.response.send_message(
                    result.get('user_message', f"❌ {result.get('error', 'Unknown error')}"),
                    ephemeral=True
                )
        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "update_settings", interaction)

    async def handle_start(self, interaction: discord.Interaction):
        """Handle /start command"""
        channel_id = interaction.channel_id
        try:
            if self.quiz_controller.has_active_session(channel_id):
                await self.send_error_response(
                    interaction,
                    "A quiz is already running in this channel. Stop it first with `/stop`.",
                    "❌ Quiz Already Running"
                )
                return

            settings = self.config_manager.get_quiz_settings()
            embed = discord.Embed(
                title="⏳ Loading questions...",
                description=f"```\n{self.config_manager.get_settings_summary()}\n```",
                color=COLOR_INFO
            )
            await interaction.response.send_message(embed=embed)

            result = await self.quiz_controller.start_quiz(channel_id, settings)
            if not result['success'] and 'user_message' in result:
                await interaction.followup.send(result['user_message'], ephemeral=True)

        except discord.HTTPException as e:
            await self.handle_discord_api_error(e, "start_quiz", interaction)
        except Exception as e:
            logger.error(f"Error in start command: {e}", exc_info=True)
            await self.send_error_response(interaction, "Failed to start quiz", "❌ Quiz Start Error")

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        try:
            channel_id = interaction.channel_id
            result = await self.quiz_controller.stop_quiz(channel_id)

            if result['success']:
                self.presenter.forget(channel_id)
                session_info = result['session_info']
                embed = discord.Embed(
                    title="🛑 Quiz Stopped",
                    description="The quiz in this channel has been ended. No score was recorded.",
                    color=0xff6600
                )
                if session_info and session_info['total_questions']:
                    embed.add_field(
                        name="📊 Progress",
                        value=f"Answered {session_info['answered']}/{session_info['total_questions']} questions",
                        inline=False
                    )
                embed.set_footer(text="Use /start to begin a new quiz")
                await interaction.response.send_message(embed=embed)
            else:
                embed = discord.Embed(
                    title="ℹ️ No Active Quiz",
                    description=result['message'],
                    color=COLOR_INFO
                )
                embed.add_field(name="Start a Quiz", value="Use `/start` to begin a new quiz", inline=False)
                await interaction.response.send_message(embed=embed, ephemeral=True)

        except Exception as e:
            logger.error(f"Error in stop command: {e}")
            await self.send_error_response(interaction, "Failed to stop quiz", "❌ Quiz Control Error")

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        try:
            channel_id = interaction.channel_id
            session_info = self.quiz_controller.get_session_progress(channel_id)

            if session_info is None:
                embed = discord.Embed(
                    title="ℹ️ No Active Quiz",
                    description="There is no quiz in this channel.",
                    color=COLOR_INFO
                )
                embed.add_field(name="🎯 Start a Quiz", value="Use `/start` to begin", inline=False)
                await interaction.response.send_message(embed=embed, ephemeral=True)
                return

            embed = discord.Embed(
                title="📊 Quiz Status",
                description=self.quiz_controller.get_session_status_summary(channel_id),
                color=COLOR_OK
            )
            if session_info['total_questions']:
                embed.add_field(
                    name="Progress",
                    value=progress_bar(session_info['current_question'], session_info['total_questions']),
                    inline=False
                )
            settings = session_info['settings']
            embed.add_field(
                name="⚙️ Settings",
                value=(
                    f"Difficulty: {settings['difficulty']}\n"
                    f"Timer: {settings['timer_duration']}s per question"
                ),
                inline=True
            )
            embed.set_footer(text="Use /stop to end the quiz")
            await interaction.response.send_message(embed=embed)

        except Exception as e:
            logger.error(f"Error in status command: {e}")
            await self.send_error_response(interaction, "Failed to get quiz status", "❌ Status Error")

    async def handle_highscores(self, interaction: discord.Interaction):
        """Handle /highscores command"""
        try:
            await interaction.response.send_message(
                embed=build_high_scores_embed(self.high_score_store.load_all())
            )
        except Exception as e:
            logger.error(f"Error in highscores command: {e}")
            await self.send_error_response(interaction, "Failed to load high scores", "❌ High Score Error")

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        try:
            embed = discord.Embed(
                title=title,
                description=message,
                color=COLOR_ERROR
            )
            embed.set_footer(text="If this error persists, try using /help for available commands")

            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException:
            logger.error("Failed to send error response to user")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = QuizBot(config)

    try:
        logger.info("Starting Discord Trivia Quiz Bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
