"""
Progression Engine - turns a completed quiz into durable progress.

On completion it builds the performance record, stores it, and updates
the learner's progression for the subject in one atomic step: rolling
average, last attempt and, with gamification, the unlock level.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from .config import QuizSettings, config
from .errors import InvalidTransition, PersistenceFailed
from .models.learner_progression import (
    INITIAL_UNLOCKED_LEVEL,
    PerformanceRecord,
    ProgressionState,
)
from .models.quiz import Quiz, round_half_up
from .utils.persistence import PerformanceStore


@dataclass
class QuizOutcome:
    """
    Everything the results view needs after a quiz.

    Attributes:
        quiz: The completed quiz
        record: Performance record computed from it
        progression: Updated progression (None if it could not be stored)
        previous_unlocked_level: Unlock level before this attempt
        warnings: Non-blocking problems, e.g. failed persistence
    """
    quiz: Quiz
    record: PerformanceRecord
    progression: Optional[ProgressionState] = None
    previous_unlocked_level: Optional[int] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.record.passed

    @property
    def level_unlocked(self) -> bool:
        """Whether this attempt unlocked a new level."""
        if self.progression is None or self.previous_unlocked_level is None:
            return False
        return self.progression.unlocked_level > self.previous_unlocked_level

    def to_dict(self) -> Dict:
        return {
            "quiz": self.quiz.to_dict(),
            "record": self.record.to_dict(),
            "progression": self.progression.to_dict() if self.progression else None,
            "level_unlocked": self.level_unlocked,
            "warnings": list(self.warnings),
        }


class ProgressionEngine:
    """
    Scores completed quizzes and applies the unlock rules.

    Usage:
        engine = ProgressionEngine(store)
        outcome = engine.record_completion(quiz, learner_id, "seconde")
    """

    # Completed quizzes remembered to make repeated completions no-ops
    PROCESSED_LIMIT = 256

    def __init__(self, store: PerformanceStore, settings: Optional[QuizSettings] = None):
        self.store = store
        self.settings = settings or config.quiz
        # Saved outcomes, oldest first; failed ones keep their record for a retry
        self._processed: "OrderedDict[str, QuizOutcome]" = OrderedDict()
        self._failed: Dict[str, QuizOutcome] = {}

    def is_passed(self, score: int) -> bool:
        return score >= self.settings.pass_threshold

    def build_record(
        self, quiz: Quiz, learner_id: str, education_level: Optional[str] = None
    ) -> PerformanceRecord:
        """
        Performance record for a completed quiz.

        Raises:
            InvalidTransition: If the quiz is not completed
        """
        if not quiz.completed or quiz.end_time is None:
            raise InvalidTransition(f"Quiz {quiz.quiz_id} is not completed")
        score = quiz.score if quiz.score is not None else quiz.compute_score()
        return PerformanceRecord(
            learner_id=learner_id,
            quiz_id=quiz.quiz_id,
            subject=quiz.subject,
            difficulty=quiz.difficulty,
            level=education_level or "",
            score=score,
            passed=self.is_passed(score),
            total_questions=quiz.total_questions,
            correct_answers=quiz.correct_count,
            created_at=quiz.start_time,
            finished_at=quiz.end_time,
        )

    def persist(self, record: PerformanceRecord) -> ProgressionState:
        """
        Store a record and update the subject's progression.

        Returns:
            The updated progression state

        Raises:
            PersistenceFailed: If either write fails
        """
        existing = self.store.list_performance_records(record.learner_id, record.subject)
        if record.record_id not in {r.record_id for r in existing}:
            self.store.append_performance_record(record)

        def apply(current: Optional[ProgressionState]) -> ProgressionState:
            state = current or ProgressionState.initial(record.learner_id, record.subject)
            history = self.store.list_performance_records(record.learner_id, record.subject)
            scores = [r.score for r in history]
            if record.record_id not in {r.record_id for r in history}:
                scores.append(record.score)
            return state.after_attempt(
                record,
                average_score=round_half_up(sum(scores) / len(scores)),
                gamification_enabled=self.settings.enable_gamification,
                max_difficulty=self.settings.max_difficulty,
            )

        return self.store.update_progression(record.learner_id, record.subject, apply)

    def record_completion(
        self, quiz: Quiz, learner_id: str, education_level: Optional[str] = None
    ) -> QuizOutcome:
        """
        Handle a quiz completion. Repeated calls for the same quiz return
        the saved outcome without writing again.

        A storage failure does not lose the result: the outcome is returned
        with ``progression`` None and the failure listed in ``warnings``.
        Calling again for that quiz retries the save with the same record.

        Args:
            quiz: Completed quiz
            learner_id: Learner who took it
            education_level: Learner's education level, stored on the record

        Returns:
            QuizOutcome
        """
        if quiz.quiz_id in self._processed:
            logger.debug(f"Quiz {quiz.quiz_id} already recorded")
            return self._processed[quiz.quiz_id]

        failed = self._failed.pop(quiz.quiz_id, None)
        if failed is not None:
            logger.info(f"Retrying save of quiz {quiz.quiz_id}")
            record = failed.record
        else:
            record = self.build_record(quiz, learner_id, education_level)
        outcome = QuizOutcome(quiz=quiz, record=record)

        try:
            previous = self.store.read_learner_progression(learner_id, quiz.subject)
            outcome.previous_unlocked_level = (
                previous.unlocked_level if previous else INITIAL_UNLOCKED_LEVEL
            )
            outcome.progression = self.persist(record)
        except PersistenceFailed as e:
            logger.warning(f"Could not save results of quiz {quiz.quiz_id}: {e}")
            outcome.warnings.append(f"Results could not be saved: {e}")
            self._failed[quiz.quiz_id] = outcome
            return outcome

        self._processed[quiz.quiz_id] = outcome
        while len(self._processed) > self.PROCESSED_LIMIT:
            self._processed.popitem(last=False)

        logger.info(
            f"Recorded {record.record_id}: {quiz.subject} level {quiz.difficulty}, "
            f"score {record.score} ({'passed' if record.passed else 'failed'}), "
            f"unlocked level {outcome.progression.unlocked_level}"
        )
        return outcome
