"""
Quiz aggregate: an ordered list of questions plus session bookkeeping.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from .question import Question


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (72.5 -> 73)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class Quiz:
    """
    A generated quiz and its progress.

    Attributes:
        title: Quiz title
        subject: Subject key
        difficulty: Difficulty level the quiz was generated for (1-5)
        questions: Ordered questions, ids unique
        start_time: When the session started
        current_question: Index of the question on screen
        score: Aggregate score (0-100), set at completion
        completed: Whether the session is finished
        end_time: When the session finished
        based_on_resources: Whether the quiz was grounded in resources
        resource_ids: Ids of the resources used for generation
        language: Language the quiz was written in
        quiz_id: Quiz identifier
    """
    title: str
    subject: str
    difficulty: int
    questions: List[Question]
    start_time: datetime
    current_question: int = 0
    score: Optional[int] = None
    completed: bool = False
    end_time: Optional[datetime] = None
    based_on_resources: bool = True
    resource_ids: List[str] = field(default_factory=list)
    language: str = "fr"
    quiz_id: str = field(default_factory=lambda: f"quiz-{uuid.uuid4()}")

    def __post_init__(self):
        if not self.questions:
            raise ValueError("A quiz needs at least one question")
        ids = [q.question_id for q in self.questions]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Question ids must be unique within a quiz: {ids}")

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def answered_count(self) -> int:
        return sum(1 for q in self.questions if q.answered)

    @property
    def correct_count(self) -> int:
        return sum(1 for q in self.questions if q.is_correct)

    @property
    def all_answered(self) -> bool:
        return self.answered_count == self.total_questions

    def compute_score(self) -> int:
        """
        Aggregate score: mean of per-question contributions, rounded half up.

        Open-ended questions contribute their graded score, closed questions
        contribute 100 or 0.
        """
        total = sum(q.contribution() for q in self.questions)
        return round_half_up(total / len(self.questions))

    def duration_seconds(self) -> Optional[float]:
        """Elapsed seconds between start and end (None while running)."""
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        return {
            "quiz_id": self.quiz_id,
            "title": self.title,
            "subject": self.subject,
            "difficulty": self.difficulty,
            "language": self.language,
            "questions": [q.to_dict() for q in self.questions],
            "current_question": self.current_question,
            "score": self.score,
            "completed": self.completed,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "based_on_resources": self.based_on_resources,
            "resource_ids": list(self.resource_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quiz":
        """Create from dictionary."""
        end_time = data.get("end_time")
        return cls(
            quiz_id=data["quiz_id"],
            title=data["title"],
            subject=data["subject"],
            difficulty=int(data["difficulty"]),
            language=data.get("language", "fr"),
            questions=[Question.from_dict(q) for q in data["questions"]],
            current_question=data.get("current_question", 0),
            score=data.get("score"),
            completed=data.get("completed", False),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(end_time) if end_time else None,
            based_on_resources=data.get("based_on_resources", True),
            resource_ids=list(data.get("resource_ids", [])),
        )
