"""
Question sources for the Discord Trivia Quiz Bot.

Questions come from Open Trivia DB or from a small built-in list. Both paths
produce the same normalized Question objects with shuffled options and the
index of the correct option.
"""
import html
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from .models import Difficulty, DifficultyFilter, Question, QuestionSource, QuizSettings

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://opentdb.com/api.php"
DEFAULT_HTTP_TIMEOUT = 10.0

LOCAL_QUESTIONS: List[Dict[str, Any]] = [
    {
        "question": "Which HTML tag is used to define an unordered list?",
        "correct_answer": "<ul>",
        "incorrect_answers": ["<ol>", "<li>", "<list>"],
        "category": "Web",
        "difficulty": "easy"
    },
    {
        "question": "What is the output of: console.log(typeof NaN)?",
        "correct_answer": "number",
        "incorrect_answers": ["NaN", "undefined", "object"],
        "category": "JavaScript",
        "difficulty": "easy"
    },
    {
        "question": "Which data structure uses FIFO order?",
        "correct_answer": "Queue",
        "incorrect_answers": ["Stack", "Tree", "Graph"],
        "category": "CS",
        "difficulty": "easy"
    },
    {
        "question": "React hooks must be called…",
        "correct_answer": "at the top level of a functional component",
        "incorrect_answers": [
            "inside loops and conditions",
            "from class methods",
            "from any nested function"
        ],
        "category": "React",
        "difficulty": "medium"
    },
    {
        "question": "Which of these is NOT a valid HTTP method?",
        "correct_answer": "FETCH",
        "incorrect_answers": ["PUT", "PATCH", "DELETE"],
        "category": "Web",
        "difficulty": "medium"
    },
    {
        "question": "In CSS, what does the 'rem' unit scale with?",
        "correct_answer": "The root element's font-size",
        "incorrect_answers": [
            "The parent element's font-size",
            "Viewport width",
            "Device pixel ratio"
        ],
        "category": "CSS",
        "difficulty": "medium"
    },
    {
        "question": "Which algorithm has average time complexity O(n log n)?",
        "correct_answer": "Merge Sort",
        "incorrect_answers": ["Bubble Sort", "Insertion Sort", "Counting Sort"],
        "category": "Algorithms",
        "difficulty": "medium"
    },
    {
        "question": "What does SQL stand for?",
        "correct_answer": "Structured Query Language",
        "incorrect_answers": [
            "Simple Query Language",
            "Sequential Query Language",
            "Structured Question Language"
        ],
        "category": "Databases",
        "difficulty": "easy"
    },
    {
        "question": "Which Android component is responsible for background tasks "
                    "that must finish even if the app closes?",
        "correct_answer": "WorkManager",
        "incorrect_answers": ["Service", "BroadcastReceiver", "ContentProvider"],
        "category": "Android",
        "difficulty": "hard"
    },
    {
        "question": "The GCD of two numbers can be efficiently computed using…",
        "correct_answer": "Euclid's algorithm",
        "incorrect_answers": [
            "Sieve of Eratosthenes",
            "Fast Fourier Transform",
            "Karatsuba algorithm"
        ],
        "category": "Math",
        "difficulty": "easy"
    },
]


class QuestionSourceError(Exception):
    """Base exception for question source failures."""
    pass


class NetworkError(QuestionSourceError):
    """Raised when the trivia service cannot be reached or answers with a non-success status."""
    pass


class FormatError(QuestionSourceError):
    """Raised when the trivia service response does not have the expected shape."""
    pass


class EmptyResultError(QuestionSourceError):
    """Raised when a source yields zero questions."""
    pass


class QuestionLoadError(Exception):
    """Terminal load failure: no source could provide questions."""

    def __init__(self, reason: str, cause: Optional[Exception] = None):
        super().__init__(reason)
        self.reason = reason
        self.cause = cause


def build_question(raw: Dict[str, Any], rng: random.Random, decode: bool = False) -> Question:
    """
    Build a Question by placing the correct answer among the incorrect ones.

    Args:
        raw: Mapping with question, correct_answer, incorrect_answers,
             category and difficulty keys
        rng: Random source used for the option order
        decode: Decode HTML entities in the text fields

    Returns:
        Question with options in random order and the matching correct index
    """
    def text(value: Any) -> str:
        value = str(value)
        return html.unescape(value) if decode else value

    # Shuffle (option, is_correct) pairs so repeated strings cannot confuse the index
    pairs = [(text(raw["correct_answer"]), True)]
    pairs.extend((text(answer), False) for answer in raw["incorrect_answers"])
    rng.shuffle(pairs)

    return Question(
        text=text(raw["question"]),
        options=tuple(option for option, _ in pairs),
        correct_index=next(i for i, (_, is_correct) in enumerate(pairs) if is_correct),
        category=text(raw.get("category", "")),
        difficulty=Difficulty.from_label(raw.get("difficulty"))
    )


class LocalQuestionBank:
    """Serves questions from the built-in list."""

    def __init__(self, questions: Optional[List[Dict[str, Any]]] = None, rng: Optional[random.Random] = None):
        self._questions = questions if questions is not None else LOCAL_QUESTIONS
        self._rng = rng or random.Random()

    def get_questions(self, count: int, difficulty: DifficultyFilter = DifficultyFilter.ANY) -> List[Question]:
        """
        Filter, shuffle and truncate the built-in pool.

        Args:
            count: Maximum number of questions to return
            difficulty: Difficulty filter, ANY takes the whole pool

        Returns:
            min(count, matching pool) questions

        Raises:
            EmptyResultError: If no question matches the filter
        """
        pool = [
            q for q in self._questions
            if difficulty.matches(Difficulty.from_label(q.get("difficulty")))
        ]
        if not pool or count < 1:
            raise EmptyResultError(f"No local questions for difficulty '{difficulty.value}'")

        chosen = pool.copy()
        self._rng.shuffle(chosen)
        chosen = chosen[:count]

        logger.debug(f"Selected {len(chosen)} of {len(pool)} local questions ({difficulty.value})")
        return [build_question(q, self._rng) for q in chosen]


class TriviaApiClient:
    """Async client for the Open Trivia DB question endpoint."""

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the API client.

        Args:
            base_url: Trivia endpoint URL
            timeout: Transport timeout in seconds
            rng: Random source used for option order
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url
        self.timeout = timeout
        self._rng = rng or random.Random()
        self._transport = transport

    async def fetch_questions(
        self,
        count: int,
        difficulty: DifficultyFilter = DifficultyFilter.ANY
    ) -> List[Question]:
        """
        Fetch and normalize questions from the trivia service.

        Raises:
            NetworkError: On transport failure or non-success status
            FormatError: If the body lacks a results array or entries are malformed
            EmptyResultError: If the service returns no questions
        """
        params = {"amount": count, "type": "multiple"}
        if difficulty is not DifficultyFilter.ANY:
            params["difficulty"] = difficulty.value

        headers = {"Cache-Control": "no-cache", "Pragma": "no-cache"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.base_url, params=params, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise NetworkError(f"Network error {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request to trivia service failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise FormatError("Trivia service returned invalid JSON") from e

        if not isinstance(data, dict):
            raise FormatError("Bad API format: expected a JSON object")

        # 1 means not enough questions for the query; other non-zero codes are rejections
        response_code = data.get("response_code", 0)
        if response_code == 1:
            raise EmptyResultError("Trivia service has no questions for this query")
        if response_code != 0:
            raise FormatError(f"Trivia service rejected the request (response_code {response_code})")

        if not isinstance(data.get("results"), list):
            raise FormatError("Bad API format: missing 'results' array")

        results = data["results"]
        if not results:
            raise EmptyResultError("Trivia service returned no questions")

        try:
            questions = [build_question(raw, self._rng, decode=True) for raw in results]
        except (KeyError, TypeError, ValueError) as e:
            raise FormatError(f"Malformed question in API response: {e}") from e

        logger.info(f"Fetched {len(questions)} questions from trivia service")
        return questions


@dataclass
class LoadResult:
    """Questions produced by a load, with where they actually came from."""
    questions: List[Question]
    source: QuestionSource
    used_fallback: bool = False
    fallback_reason: Optional[str] = None


class QuestionLoader:
    """Applies the source selection and local fallback policy."""

    def __init__(self, api_client: Optional[TriviaApiClient] = None, local_bank: Optional[LocalQuestionBank] = None):
        self.api_client = api_client or TriviaApiClient()
        self.local_bank = local_bank or LocalQuestionBank()
        self.logger = logging.getLogger(__name__)

    async def load(self, settings: QuizSettings) -> LoadResult:
        """
        Load questions for the given settings.

        Remote failures of any kind fall back to the local bank once. Local
        failures, direct or as fallback, are terminal.

        Raises:
            QuestionLoadError: If no questions could be produced
        """
        if settings.source is QuestionSource.REMOTE:
            try:
                questions = await self.api_client.fetch_questions(
                    settings.question_count, settings.difficulty
                )
                return LoadResult(questions=questions, source=QuestionSource.REMOTE)
            except Exception as e:
                self.logger.warning(
                    f"Remote question source failed, falling back to local questions: {e}",
                    extra={
                        'event_type': 'question_source_fallback',
                        'error_type': type(e).__name__
                    }
                )
                try:
                    questions = self.local_bank.get_questions(settings.question_count, settings.difficulty)
                except QuestionSourceError as local_error:
                    self.logger.error(f"Local fallback also failed: {local_error}")
                    raise QuestionLoadError(
                        "Failed to load questions. Please try again.", local_error
                    ) from local_error
                return LoadResult(
                    questions=questions,
                    source=QuestionSource.LOCAL,
                    used_fallback=True,
                    fallback_reason=str(e)
                )

        try:
            questions = self.local_bank.get_questions(settings.question_count, settings.difficulty)
        except QuestionSourceError as e:
            self.logger.error(f"Local question source failed: {e}")
            raise QuestionLoadError("Failed to load local questions.", e) from e
        return LoadResult(questions=questions, source=QuestionSource.LOCAL)
