"""
Error taxonomy for the revision quiz core.

Every error is recoverable by the caller: the learner-facing flow offers
a retry instead of treating any of them as fatal.
"""

from __future__ import annotations


class RevisionQuizError(Exception):
    """Base class for all revision quiz errors."""


class NoContentAvailable(RevisionQuizError):
    """No resource matches the subject and difficulty ceiling."""

    def __init__(self, subject: str, max_difficulty: int):
        self.subject = subject
        self.max_difficulty = max_difficulty
        super().__init__(
            f"No resources available for subject '{subject}' "
            f"at difficulty <= {max_difficulty}"
        )


class GenerationFailed(RevisionQuizError):
    """The text generation capability failed or produced too few questions."""


class InvalidQuestionSchema(GenerationFailed):
    """Generated quiz payload is unparseable or violates the question contract."""

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message)


class EvaluationFailed(RevisionQuizError):
    """Open answer could not be judged (capability unreachable or bad verdict)."""


class PersistenceFailed(RevisionQuizError):
    """A performance record or progression state could not be stored."""


class InvalidTransition(RevisionQuizError, ValueError):
    """A quiz session operation is not valid in the current state."""


class QuestionAlreadyAnswered(InvalidTransition):
    """The question already holds a response; answered questions are immutable."""


class SessionCompleted(InvalidTransition):
    """The quiz session is already completed."""


class SessionBusy(InvalidTransition):
    """An answer evaluation is in flight for this session."""


class LevelLocked(InvalidTransition):
    """The learner has not unlocked the requested difficulty yet."""
