"""
Learner progression: performance history and per-subject unlock state.

This module provides:
- PerformanceRecord: immutable outcome of one completed quiz
- ProgressionState: one learner's unlock level and averages for one subject
- LearnerProgression: all subjects of one learner, with explicit defaults
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Iterable, Optional

# Unlock level every learner starts with, per subject
INITIAL_UNLOCKED_LEVEL = 1


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class PerformanceRecord:
    """
    Outcome of one completed quiz attempt. Never mutated after creation.

    Attributes:
        learner_id: Learner who took the quiz
        subject: Subject key
        difficulty: Difficulty attempted
        level: Learner's education level at the time of the attempt
        score: Aggregate score 0-100
        passed: Whether the score met the pass threshold
        total_questions: Number of questions
        correct_answers: Number of questions answered correctly
        created_at: Quiz start time
        finished_at: Quiz end time
        quiz_id: Quiz the record was computed from
        record_id: Record identifier
    """
    learner_id: str
    subject: str
    difficulty: int
    level: str
    score: int
    passed: bool
    total_questions: int
    correct_answers: int
    created_at: datetime
    finished_at: datetime
    quiz_id: Optional[str] = None
    record_id: str = field(default_factory=lambda: f"perf-{uuid.uuid4()}")

    def __post_init__(self):
        if not 0 <= self.score <= 100:
            raise ValueError(f"Score must be between 0 and 100, got {self.score}")
        if not 0 <= self.correct_answers <= self.total_questions:
            raise ValueError(
                f"Correct answers ({self.correct_answers}) must be within "
                f"[0, {self.total_questions}]"
            )

    @property
    def duration_minutes(self) -> float:
        return (self.finished_at - self.created_at).total_seconds() / 60

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "record_id": self.record_id,
            "learner_id": self.learner_id,
            "quiz_id": self.quiz_id,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "level": self.level,
            "score": self.score,
            "passed": self.passed,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "created_at": self.created_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PerformanceRecord":
        """Create from dictionary."""
        return cls(
            record_id=data["record_id"],
            learner_id=data["learner_id"],
            quiz_id=data.get("quiz_id"),
            subject=data["subject"],
            difficulty=int(data["difficulty"]),
            level=data.get("level", ""),
            score=int(data["score"]),
            passed=bool(data["passed"]),
            total_questions=int(data["total_questions"]),
            correct_answers=int(data["correct_answers"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            finished_at=datetime.fromisoformat(data["finished_at"]),
        )


@dataclass(frozen=True)
class ProgressionState:
    """
    One learner's progression in one subject.

    Attributes:
        learner_id: Learner identifier
        subject: Subject key
        unlocked_level: Highest difficulty the learner may attempt (1-5)
        average_score: Rounded mean score over all attempts (None before any)
        last_score: Score of the latest attempt
        last_attempt_at: When the latest attempt finished
        attempts: Number of recorded attempts
    """
    learner_id: str
    subject: str
    unlocked_level: int = INITIAL_UNLOCKED_LEVEL
    average_score: Optional[int] = None
    last_score: Optional[int] = None
    last_attempt_at: Optional[datetime] = None
    attempts: int = 0

    @classmethod
    def initial(cls, learner_id: str, subject: str) -> "ProgressionState":
        """State before any attempt: level 1 unlocked, no history."""
        return cls(learner_id=learner_id, subject=subject)

    def after_attempt(
        self,
        record: PerformanceRecord,
        average_score: int,
        gamification_enabled: bool,
        max_difficulty: int,
    ) -> "ProgressionState":
        """
        State after one more completed attempt.

        The unlock level advances by one only when the attempt was at the
        currently unlocked level, passed, and the level is below the
        maximum. It never decreases and never skips.

        Args:
            record: The new performance record
            average_score: Rolling average including ``record``
            gamification_enabled: Whether unlocking is active
            max_difficulty: Highest difficulty level

        Returns:
            New ProgressionState (self is unchanged)
        """
        unlocked = self.unlocked_level
        if (
            gamification_enabled
            and record.passed
            and record.difficulty == unlocked
            and unlocked < max_difficulty
        ):
            unlocked += 1

        return replace(
            self,
            unlocked_level=unlocked,
            average_score=average_score,
            last_score=record.score,
            last_attempt_at=record.finished_at,
            attempts=self.attempts + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "learner_id": self.learner_id,
            "subject": self.subject,
            "unlocked_level": self.unlocked_level,
            "average_score": self.average_score,
            "last_score": self.last_score,
            "last_attempt_at": self.last_attempt_at.isoformat() if self.last_attempt_at else None,
            "attempts": self.attempts,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProgressionState":
        """Create from dictionary."""
        return cls(
            learner_id=data["learner_id"],
            subject=data["subject"],
            unlocked_level=int(data.get("unlocked_level", INITIAL_UNLOCKED_LEVEL)),
            average_score=data.get("average_score"),
            last_score=data.get("last_score"),
            last_attempt_at=_parse_time(data.get("last_attempt_at")),
            attempts=int(data.get("attempts", 0)),
        )


class LearnerProgression:
    """
    Progression of one learner across subjects.

    Subjects never attempted report the initial state instead of being
    absent, so callers never special-case a missing entry.
    """

    def __init__(self, learner_id: str, states: Optional[Iterable[ProgressionState]] = None):
        self.learner_id = learner_id
        self._states: Dict[str, ProgressionState] = {}
        for state in states or ():
            if state.learner_id != learner_id:
                raise ValueError(
                    f"State for learner {state.learner_id} given to progression of {learner_id}"
                )
            self._states[state.subject] = state

    def state(self, subject: str) -> ProgressionState:
        return self._states.get(subject) or ProgressionState.initial(self.learner_id, subject)

    def unlocked_level(self, subject: str) -> int:
        return self.state(subject).unlocked_level

    def has_attempted(self, subject: str) -> bool:
        return subject in self._states

    @property
    def subjects(self) -> list[str]:
        return sorted(self._states)

    def stored_averages(self) -> Dict[str, int]:
        """Average score per attempted subject."""
        return {
            subject: state.average_score
            for subject, state in self._states.items()
            if state.average_score is not None
        }
