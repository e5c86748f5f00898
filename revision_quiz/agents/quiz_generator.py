"""
Quiz Generator Agent - builds revision quizzes from curated resources.

The model is asked for a strict JSON quiz grounded in the selected
resources. Its reply goes through ``parse_quiz``, the single boundary
where untrusted output becomes a ``Quiz``; nothing past it re-checks the
payload.
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

from langchain_core.prompts import PromptTemplate
from loguru import logger

from ..clock import Clock, SystemClock
from ..config import QuizSettings, config
from ..errors import GenerationFailed, InvalidQuestionSchema, NoContentAvailable
from ..models.question import (
    MULTIPLE_CHOICE,
    OPEN_ENDED,
    TRUE_FALSE,
    Question,
    normalize_question_type,
)
from ..models.quiz import Quiz
from ..models.resource import Resource
from ..utils.json_repair import JSONPayloadError, parse_json_payload
from ..utils.validation import QuizPayloadValidator
from .text_generation import ChatOpenAITextGenerator, TextGenerator


# Question types a quiz may contain, per difficulty level
ALLOWED_QUESTION_TYPES: Dict[int, Tuple[str, ...]] = {
    1: (MULTIPLE_CHOICE,),
    2: (MULTIPLE_CHOICE, TRUE_FALSE),
    3: (MULTIPLE_CHOICE, TRUE_FALSE, OPEN_ENDED),
    4: (MULTIPLE_CHOICE, OPEN_ENDED),
    5: (OPEN_ENDED,),
}

LANGUAGE_NAMES = {"en": "English", "fr": "French"}


def allowed_question_types(difficulty: int) -> Tuple[str, ...]:
    """
    Question types permitted at a difficulty level.

    Raises:
        ValueError: If difficulty is outside 1-5
    """
    try:
        return ALLOWED_QUESTION_TYPES[difficulty]
    except KeyError:
        raise ValueError(f"Difficulty must be an integer in [1, 5], got {difficulty!r}") from None


def quiz_language(resources: Sequence[Resource]) -> str:
    """Quiz language follows the first resource: English for "en", French otherwise."""
    return "en" if resources and resources[0].language == "en" else "fr"


SYSTEM_PROMPT = PromptTemplate(
    input_variables=[
        "subject", "difficulty", "resource_urls", "question_types",
        "language", "question_count",
    ],
    template="""You are a virtual teacher. Write a revision quiz in {subject}, difficulty level {difficulty}/5,
based on the content of these resources: {resource_urls}.
Allowed question types: {question_types}. Language: {language}.

Write exactly {question_count} questions.

IMPORTANT: reply with ONLY a valid JSON object, no text before or after, in exactly this format:

{{
  "title": "Quiz title",
  "subject": "{subject}",
  "difficulty": {difficulty},
  "basedOnResources": true,
  "questions": [
    {{
      "id": "1",
      "text": "Question text",
      "type": "one of: {question_types}",
      "choices": ["Option A", "Option B", "Option C", "Option D"],
      "answer": "A, B, C or D; true or false; or a model answer for open_ended"
    }}
  ]
}}

Rules:
- multiple_choice questions always have choices A, B, C, D and give the right answer by its letter
- true_false questions answer "true" or "false"
- open_ended questions give a model answer used for grading
- question ids are unique within the quiz
- questions must be relevant to the resources and match level {difficulty}/5
- if you cannot read the resources, still write a relevant quiz for the subject and set "basedOnResources": false""",
)

USER_PROMPT = PromptTemplate(
    input_variables=["subject", "difficulty"],
    template=(
        "Write a revision quiz in {subject}, difficulty {difficulty}/5, using the "
        "resources whose links are given. If you cannot access their content, write "
        "a relevant quiz for this subject and level."
    ),
)


_QUESTION_FIELDS = ("id", "text", "type", "choices", "answer")


def parse_quiz(
    raw: str,
    subject: str,
    difficulty: int,
    question_count: int,
    start_time,
    resource_ids: Sequence[str] = (),
    language: str = "fr",
    default_title: Optional[str] = None,
    validator: Optional[QuizPayloadValidator] = None,
) -> Quiz:
    """
    Turn raw model output into a fresh, unanswered Quiz.

    Args:
        raw: Model reply (may wrap the JSON in prose or code fences)
        subject: Subject the quiz was requested for
        difficulty: Requested difficulty; decides the allowed question types
        question_count: Number of questions required
        start_time: Session start timestamp
        resource_ids: Ids of the grounding resources
        language: Quiz language code
        default_title: Title used when the payload has none
        validator: Quiz payload schema validator

    Returns:
        Quiz with every response field unset, index 0, no score, not completed

    Raises:
        InvalidQuestionSchema: Unparseable payload, schema violation, a
            malformed question or a question type not allowed at ``difficulty``
        GenerationFailed: Fewer than ``question_count`` questions
    """
    allowed = allowed_question_types(difficulty)

    try:
        payload = parse_json_payload(raw)
    except JSONPayloadError as e:
        raise InvalidQuestionSchema(str(e)) from e

    validator = validator or QuizPayloadValidator()
    result = validator.validate(payload, auto_repair=True)
    if not result:
        raise InvalidQuestionSchema("Quiz payload failed schema validation", errors=result.errors)
    for repair in result.repairs:
        logger.debug(f"Quiz payload repair: {repair}")
    payload = result.data

    questions = []
    seen_ids = set()
    for item in payload["questions"]:
        question_type = normalize_question_type(item["type"])
        if question_type not in allowed:
            raise InvalidQuestionSchema(
                f"Question {item['id']} has type '{question_type}', "
                f"not allowed at difficulty {difficulty} (allowed: {', '.join(allowed)})"
            )
        try:
            question = Question.from_dict({k: item[k] for k in _QUESTION_FIELDS if k in item})
        except ValueError as e:
            raise InvalidQuestionSchema(str(e)) from e
        if question.question_id in seen_ids:
            raise InvalidQuestionSchema(f"Duplicate question id '{question.question_id}'")
        seen_ids.add(question.question_id)
        questions.append(question)

    if len(questions) < question_count:
        raise GenerationFailed(
            f"Expected {question_count} questions, model returned {len(questions)}"
        )

    based_on_resources = payload.get("basedOnResources", payload.get("based_on_resources", True))

    return Quiz(
        title=payload.get("title") or default_title or f"{subject} quiz",
        subject=subject,
        difficulty=difficulty,
        questions=questions[:question_count],
        start_time=start_time,
        based_on_resources=based_on_resources,
        resource_ids=list(resource_ids),
        language=language,
    )


class QuizGenerator:
    """
    Generates a quiz for a subject and difficulty from selected resources.

    One model call and at most one local repair per quiz; failures surface
    to the caller, who may retry.
    """

    def __init__(
        self,
        text_generator: Optional[TextGenerator] = None,
        clock: Optional[Clock] = None,
        settings: Optional[QuizSettings] = None,
        validator: Optional[QuizPayloadValidator] = None,
    ):
        """
        Initialize quiz generator.

        Args:
            text_generator: Text capability (defaults to ChatOpenAI at the generation temperature)
            clock: Time source for the quiz start timestamp
            settings: Quiz settings (defaults to config.quiz)
            validator: Quiz payload schema validator
        """
        self.text_generator = text_generator or ChatOpenAITextGenerator(
            temperature=config.model.generation_temperature,
        )
        self.clock = clock or SystemClock()
        self.settings = settings or config.quiz
        self.validator = validator or QuizPayloadValidator()

    def generate_quiz(
        self,
        subject: str,
        difficulty: int,
        resources: Sequence[Resource],
        question_count: Optional[int] = None,
        subject_label: Optional[str] = None,
    ) -> Quiz:
        """
        Generate a quiz.

        Args:
            subject: Subject key
            difficulty: Difficulty level 1-5
            resources: Grounding resources (non-empty)
            question_count: Questions to generate (defaults to settings.questions_per_quiz)
            subject_label: Display name used in the prompt (defaults to ``subject``)

        Returns:
            A fresh Quiz started at the clock's current time

        Raises:
            NoContentAvailable: If ``resources`` is empty
            GenerationFailed: If the model call fails or returns too few questions
            InvalidQuestionSchema: If the reply cannot be turned into valid questions
        """
        if not resources:
            raise NoContentAvailable(subject, difficulty)

        allowed = allowed_question_types(difficulty)
        count = question_count or self.settings.questions_per_quiz
        if count < 1:
            raise ValueError(f"question_count must be >= 1, got {count}")
        language = quiz_language(resources)
        label = subject_label or subject

        system_prompt = SYSTEM_PROMPT.format(
            subject=label,
            difficulty=difficulty,
            resource_urls=", ".join(r.file_url for r in resources),
            question_types=", ".join(allowed),
            language=LANGUAGE_NAMES[language],
            question_count=count,
        )
        user_prompt = USER_PROMPT.format(subject=label, difficulty=difficulty)

        logger.info(
            f"Generating {count} questions for {subject} at difficulty {difficulty} "
            f"from {len(resources)} resource(s)"
        )
        try:
            raw = self.text_generator.generate(system_prompt, user_prompt)
        except Exception as e:
            raise GenerationFailed(f"Text generation failed: {e}") from e

        try:
            quiz = parse_quiz(
                raw,
                subject=subject,
                difficulty=difficulty,
                question_count=count,
                start_time=self.clock.now(),
                resource_ids=[r.resource_id for r in resources],
                language=language,
                default_title=f"{label} quiz",
                validator=self.validator,
            )
        except GenerationFailed as e:
            logger.warning(f"Rejected generated quiz for {subject}: {e}")
            raise

        logger.info(f"Generated quiz {quiz.quiz_id} with {quiz.total_questions} questions")
        return quiz
