"""
Revision Orchestrator

Runs the revision flow for one learner:
1. Difficulty suggestion and level availability
2. Resource selection
3. Quiz generation
4. Quiz session (answers, navigation, deadline)
5. Progression update on completion

This is the entry point a UI or API layer drives.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from loguru import logger

from .agents.answer_evaluator import AnswerEvaluator
from .agents.quiz_generator import QuizGenerator
from .agents.text_generation import TextGenerator
from .clock import Clock, SystemClock
from .config import QuizSettings, config
from .errors import InvalidTransition, LevelLocked
from .models.learner_progression import LearnerProgression
from .models.question import MultipleChoiceQuestion, Question
from .models.quiz import Quiz
from .models.quiz_session import QuizSession
from .progression import ProgressionEngine, QuizOutcome
from .selection import (
    RECENT_RECORDS_WINDOW,
    ResourceSelector,
    available_levels,
    is_level_available,
    starting_difficulty,
    suggest_difficulty,
)
from .utils.persistence import ContentStore, PerformanceStore
from .utils.progress import performance_message, question_type_breakdown, time_spent


class RevisionOrchestrator:
    """
    One learner's revision flow.

    Holds at most one active session; starting a quiz discards the previous
    one. Every collaborator can be injected, and defaults come from config.
    """

    def __init__(
        self,
        learner_id: str,
        content_store: ContentStore,
        performance_store: PerformanceStore,
        education_level: Optional[str] = None,
        settings: Optional[QuizSettings] = None,
        text_generator: Optional[TextGenerator] = None,
        clock: Optional[Clock] = None,
        quiz_generator: Optional[QuizGenerator] = None,
        evaluator: Optional[AnswerEvaluator] = None,
        use_timer: bool = False,
    ):
        """
        Initialize the orchestrator.

        Args:
            learner_id: Learner identifier
            content_store: Resource catalogue
            performance_store: Performance history and progression storage
            education_level: Learner's education level (college, seconde, ...)
            settings: Quiz settings (defaults to config.quiz)
            text_generator: Text capability shared by generator and evaluator
                (defaults to separate ChatOpenAI clients)
            clock: Time source
            quiz_generator: Prebuilt quiz generator
            evaluator: Prebuilt answer evaluator
            use_timer: Expire sessions from a background timer at the deadline
        """
        self.learner_id = learner_id
        self.education_level = education_level
        self.settings = settings or config.quiz
        self.clock = clock or SystemClock()
        self.use_timer = use_timer

        self.performance_store = performance_store
        self.selector = ResourceSelector(content_store)
        self.generator = quiz_generator or QuizGenerator(
            text_generator=text_generator, clock=self.clock, settings=self.settings
        )
        self.evaluator = evaluator or AnswerEvaluator(text_generator=text_generator)
        self.engine = ProgressionEngine(performance_store, self.settings)

        self.session: Optional[QuizSession] = None
        self.last_result: Optional[QuizOutcome] = None

    # ==================== Levels ====================

    def progression(self) -> LearnerProgression:
        return self.performance_store.read_all_progression(self.learner_id)

    def suggested_difficulty(self, subject: Optional[str] = None) -> int:
        """
        Difficulty to preselect for a subject.

        With gamification this is the unlocked level; otherwise a suggestion
        from the education level and the most recent scores.
        """
        recent = self.performance_store.list_performance_records(
            self.learner_id, subject=subject, limit=RECENT_RECORDS_WINDOW
        )
        if subject is None:
            return suggest_difficulty(
                self.education_level,
                recent,
                self.settings.max_difficulty,
                self.settings.default_difficulty,
            )
        return starting_difficulty(
            self.progression(),
            subject,
            self.education_level,
            recent,
            self.settings.enable_gamification,
            self.settings.max_difficulty,
            self.settings.default_difficulty,
        )

    def available_levels(self, subject: str) -> List[int]:
        return available_levels(
            self.progression(),
            subject,
            self.settings.enable_gamification,
            self.settings.max_difficulty,
        )

    # ==================== Quiz lifecycle ====================

    def start_quiz(
        self,
        subject: str,
        difficulty: Optional[int] = None,
        subject_label: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Select resources, generate a quiz and open a session on it.

        Args:
            subject: Subject key
            difficulty: Level to attempt (defaults to the suggested one)
            subject_label: Display name for prompts

        Returns:
            Quiz overview with the first question

        Raises:
            ValueError: If difficulty is outside [1, max_difficulty]
            LevelLocked: If gamification is on and the level is not unlocked
            NoContentAvailable, GenerationFailed, InvalidQuestionSchema:
                From selection and generation; the caller may retry
        """
        if difficulty is None:
            difficulty = self.suggested_difficulty(subject)
        if not 1 <= difficulty <= self.settings.max_difficulty:
            raise ValueError(
                f"Difficulty must be in [1, {self.settings.max_difficulty}], got {difficulty}"
            )
        if not is_level_available(
            self.progression(), subject, difficulty, self.settings.enable_gamification
        ):
            raise LevelLocked(f"Level {difficulty} of {subject} is not unlocked yet")

        self._discard_session()

        resources = self.selector.select(subject, difficulty, self.settings.revision_file_limit)
        quiz = self.generator.generate_quiz(
            subject,
            difficulty,
            resources,
            question_count=self.settings.questions_per_quiz,
            subject_label=subject_label,
        )

        self.last_result = None
        self.session = QuizSession(
            quiz,
            self.evaluator,
            time_limit_minutes=self.settings.time_limit_minutes,
            clock=self.clock,
            on_complete=self._on_quiz_completed,
        )
        if self.use_timer:
            self.session.start_timer()

        logger.info(
            f"Learner {self.learner_id} started {quiz.quiz_id} "
            f"({subject}, level {difficulty}, {quiz.total_questions} questions)"
        )
        return {
            "quiz_id": quiz.quiz_id,
            "title": quiz.title,
            "subject": quiz.subject,
            "difficulty": quiz.difficulty,
            "total_questions": quiz.total_questions,
            "based_on_resources": quiz.based_on_resources,
            "deadline": self.session.deadline.isoformat(),
            "question": self._format_question(self.session.current_question),
        }

    def submit_answer(self, response: str) -> Dict[str, Any]:
        """
        Answer the current question.

        Returns:
            Grading result for the question
        """
        session = self._require_session()
        question = session.submit_answer(response)
        return {
            "question_number": session.current_index + 1,
            "total_questions": session.quiz.total_questions,
            "is_correct": question.is_correct,
            "score": question.score,
            "feedback": question.feedback,
            "is_last": session.current_index == session.quiz.total_questions - 1,
        }

    def advance(self) -> Dict[str, Any]:
        """
        Move to the next question, or finish the quiz from the last one.

        Returns:
            ``{"question": ...}`` or, once finished, ``{"completed": True, "results": ...}``
        """
        session = self._require_session()
        question = session.advance()
        if question is None:
            return {"completed": True, "results": self.get_results()}
        return {"completed": False, "question": self._format_question(question)}

    def retreat(self) -> Dict[str, Any]:
        session = self._require_session()
        return {"completed": False, "question": self._format_question(session.retreat())}

    def expire_if_due(self) -> bool:
        """
        Expire the active session if its deadline has passed.

        Returns:
            True if this call completed the quiz
        """
        if self.session is None or self.session.completed or not self.session.is_expired():
            return False
        return self.session.expire_by_timeout()

    def get_results(self) -> Dict[str, Any]:
        """
        Results view of the last completed quiz.

        Raises:
            InvalidTransition: If no quiz has been completed
        """
        if self.last_result is None:
            raise InvalidTransition("No completed quiz")
        outcome = self.last_result
        quiz = outcome.quiz
        minutes, seconds = time_spent(quiz)
        return {
            "quiz_id": quiz.quiz_id,
            "subject": quiz.subject,
            "difficulty": quiz.difficulty,
            "score": quiz.score,
            "passed": outcome.passed,
            "correct_answers": quiz.correct_count,
            "total_questions": quiz.total_questions,
            "time_spent": {"minutes": minutes, "seconds": seconds},
            "by_type": question_type_breakdown(quiz),
            "message": performance_message(quiz.score),
            "unlocked_level": outcome.progression.unlocked_level if outcome.progression else None,
            "level_unlocked": outcome.level_unlocked,
            "questions": [q.to_dict() for q in quiz.questions],
            "warnings": list(outcome.warnings),
        }

    def retry_save(self) -> Dict[str, Any]:
        """
        Save the last completed quiz again after a storage failure.

        Returns:
            The refreshed results view

        Raises:
            InvalidTransition: If no quiz has been completed
        """
        if self.last_result is None:
            raise InvalidTransition("No completed quiz")
        if self.last_result.progression is None:
            self._on_quiz_completed(self.last_result.quiz)
        return self.get_results()

    # ==================== Internals ====================

    def _on_quiz_completed(self, quiz: Quiz) -> None:
        self.last_result = self.engine.record_completion(
            quiz, self.learner_id, self.education_level
        )

    def _require_session(self) -> QuizSession:
        if self.session is None:
            raise InvalidTransition("No active quiz")
        return self.session

    def _discard_session(self) -> None:
        if self.session is not None:
            self.session.cancel_timer()
            if not self.session.completed:
                logger.info(f"Discarding unfinished quiz {self.session.quiz.quiz_id}")
            self.session = None

    def _format_question(self, question: Question) -> Dict[str, Any]:
        """Question as shown to the learner (no canonical answer)."""
        formatted = {
            "question_id": question.question_id,
            "text": question.text,
            "type": question.question_type,
            "user_response": question.user_response,
            "is_correct": question.is_correct,
            "feedback": question.feedback,
        }
        if isinstance(question, MultipleChoiceQuestion):
            formatted["choices"] = [
                {"letter": letter, "text": text}
                for letter, text in zip(question.choice_letters, question.choices)
            ]
        return formatted
