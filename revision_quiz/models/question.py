"""
Quiz questions - a closed set of variants sharing one response state.

Question types:
- multiple_choice: choices list, canonical answer is a choice letter
- true_false: canonical answer is the literal "true" or "false"
- open_ended: free-text model answer, graded by the answer evaluator
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

from ..errors import QuestionAlreadyAnswered


MULTIPLE_CHOICE = "multiple_choice"
TRUE_FALSE = "true_false"
OPEN_ENDED = "open_ended"

QUESTION_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE, OPEN_ENDED)

# Tags the generator may still emit for the same three types
TYPE_ALIASES = {
    "mcq": MULTIPLE_CHOICE,
    "multiple-choice": MULTIPLE_CHOICE,
    "truefalse": TRUE_FALSE,
    "true-false": TRUE_FALSE,
    "open": OPEN_ENDED,
    "open-ended": OPEN_ENDED,
}


def normalize_question_type(value: str) -> str:
    """Map a type tag (including known aliases) onto one of QUESTION_TYPES."""
    tag = str(value).strip().lower()
    return TYPE_ALIASES.get(tag, tag)


@dataclass
class Verdict:
    """
    Outcome of judging one response.

    Attributes:
        is_correct: Whether the response is accepted as correct
        feedback: Feedback text shown to the learner
        score: 0-100 score, only set by open-ended grading
    """
    is_correct: bool
    feedback: str
    score: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "is_correct": self.is_correct,
            "score": self.score,
            "feedback": self.feedback,
        }


@dataclass
class Question:
    """
    Common fields of every quiz question.

    Attributes:
        question_id: Identifier, unique within its quiz
        text: Prompt shown to the learner
        answer: Canonical answer used for grading
        user_response: Learner's response (None = unanswered)
        is_correct: Correctness (None = not evaluated)
        score: 0-100 score (open-ended only)
        feedback: Feedback text
    """
    question_type: ClassVar[str] = ""

    question_id: str
    text: str
    answer: str
    user_response: Optional[str] = None
    is_correct: Optional[bool] = None
    score: Optional[int] = None
    feedback: Optional[str] = None

    def __post_init__(self):
        self.question_id = str(self.question_id).strip()
        if not self.question_id:
            raise ValueError("Question id cannot be empty")
        if not self.text or not str(self.text).strip():
            raise ValueError(f"Question {self.question_id} text cannot be empty")
        if self.answer is None or not str(self.answer).strip():
            raise ValueError(f"Question {self.question_id} answer cannot be empty")
        self.answer = str(self.answer).strip()

    @property
    def answered(self) -> bool:
        """Whether a response has been recorded."""
        return self.user_response is not None

    def record(self, response: str, verdict: Verdict) -> None:
        """
        Store a response together with its verdict.

        Response, correctness, score and feedback are written in one step
        and never re-evaluated afterwards.

        Raises:
            QuestionAlreadyAnswered: If a response is already recorded
        """
        if self.answered:
            raise QuestionAlreadyAnswered(f"Question {self.question_id} already answered")
        self.user_response = response
        self.is_correct = verdict.is_correct
        self.score = verdict.score
        self.feedback = verdict.feedback

    def contribution(self) -> int:
        """Points (0-100) this question adds to the aggregate score."""
        if self.score is not None:
            return self.score
        return 100 if self.is_correct else 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for persistence."""
        data = {
            "id": self.question_id,
            "text": self.text,
            "type": self.question_type,
            "answer": self.answer,
            "user_response": self.user_response,
            "is_correct": self.is_correct,
            "feedback": self.feedback,
        }
        if self.score is not None:
            data["score"] = self.score
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Question":
        """
        Build the right question variant from a dictionary.

        Raises:
            ValueError: If the type is unknown or the data breaks a variant invariant
        """
        question_type = normalize_question_type(data.get("type", ""))
        common = {
            "question_id": data.get("id", data.get("question_id", "")),
            "text": data.get("text", ""),
            "answer": data.get("answer"),
            "user_response": data.get("user_response"),
            "is_correct": data.get("is_correct"),
            "score": data.get("score"),
            "feedback": data.get("feedback"),
        }
        if question_type == MULTIPLE_CHOICE:
            return MultipleChoiceQuestion(choices=list(data.get("choices") or []), **common)
        if question_type == TRUE_FALSE:
            return TrueFalseQuestion(**common)
        if question_type == OPEN_ENDED:
            return OpenEndedQuestion(**common)
        raise ValueError(f"Unsupported question type: {data.get('type')!r}")


@dataclass
class MultipleChoiceQuestion(Question):
    """Multiple-choice question; the answer is the letter of the correct choice."""
    question_type: ClassVar[str] = MULTIPLE_CHOICE

    choices: List[str] = field(default_factory=list)

    def __post_init__(self):
        super().__post_init__()
        if len(self.choices) < 2:
            raise ValueError(
                f"MCQ question {self.question_id} must have at least 2 choices, "
                f"got {len(self.choices)}"
            )
        self.choices = [str(c) for c in self.choices]
        # A model answer given as the choice text is stored as its letter
        letter = self._letter_for_text(self.answer)
        if letter is not None:
            self.answer = letter
        answer = self.answer.upper()
        if answer not in self.choice_letters:
            raise ValueError(
                f"MCQ question {self.question_id} answer {self.answer!r} is not one of "
                f"its choices ({', '.join(self.choice_letters)})"
            )
        self.answer = answer

    @property
    def choice_letters(self) -> List[str]:
        """Letters labelling the choices (A, B, C, ...)."""
        return list(string.ascii_uppercase[: len(self.choices)])

    def _letter_for_text(self, text: str) -> Optional[str]:
        if len(text) == 1:
            return None
        for index, choice in enumerate(self.choices):
            if choice.strip().lower() == text.lower():
                return string.ascii_uppercase[index]
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["choices"] = list(self.choices)
        return data


@dataclass
class TrueFalseQuestion(Question):
    """True/false statement; the answer is "true" or "false"."""
    question_type: ClassVar[str] = TRUE_FALSE

    def __post_init__(self):
        super().__post_init__()
        self.answer = self.answer.lower()
        if self.answer not in {"true", "false"}:
            raise ValueError(
                f"True/False question {self.question_id} must have answer 'true' or 'false'"
            )


@dataclass
class OpenEndedQuestion(Question):
    """Free-text question; the answer is a model answer for grading."""
    question_type: ClassVar[str] = OPEN_ENDED
