"""
LLM-backed agents for revision quizzes.

This module contains LangChain-based agents:
- Text generation (ChatOpenAI adapter behind the TextGenerator protocol)
- Quiz generation (resource-grounded questions with a strict JSON contract)
- Answer evaluation (local closed grading, LLM grading of open answers)

Note: QuizSession is in revision_quiz.models (pure logic, not an agent)
"""

from .answer_evaluator import AnswerEvaluator, evaluate_closed
from .quiz_generator import (
    ALLOWED_QUESTION_TYPES,
    QuizGenerator,
    allowed_question_types,
    parse_quiz,
)
from .text_generation import ChatOpenAITextGenerator, TextGenerator

__all__ = [
    # Text generation
    "TextGenerator",
    "ChatOpenAITextGenerator",
    # Quiz generation
    "ALLOWED_QUESTION_TYPES",
    "QuizGenerator",
    "allowed_question_types",
    "parse_quiz",
    # Evaluation
    "AnswerEvaluator",
    "evaluate_closed",
]
