"""
Data models for revision quizzes.

This module contains core data models:
- Question variants: multiple choice, true/false, open-ended
- Quiz: ordered questions plus progress bookkeeping
- QuizSession: the answer/navigation/deadline state machine
- PerformanceRecord, ProgressionState, LearnerProgression: learner progress
"""

from .learner_progression import LearnerProgression, PerformanceRecord, ProgressionState
from .question import (
    MultipleChoiceQuestion,
    OpenEndedQuestion,
    Question,
    TrueFalseQuestion,
    Verdict,
)
from .quiz import Quiz
from .quiz_session import QuizSession
from .resource import Resource

__all__ = [
    "LearnerProgression",
    "MultipleChoiceQuestion",
    "OpenEndedQuestion",
    "PerformanceRecord",
    "ProgressionState",
    "Question",
    "Quiz",
    "QuizSession",
    "Resource",
    "TrueFalseQuestion",
    "Verdict",
]
