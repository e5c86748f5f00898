"""
Quiz Session - the state machine a learner drives through one quiz attempt.

States are ``in_progress`` and ``completed``; ``completed`` is terminal.
All state changes happen under the session lock. An open-ended answer is
graded outside the lock while the session is marked busy, so the deadline
can still fire; whichever of "answer recorded" and "time expired" takes
the lock first wins, and completion is handed off exactly once.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from loguru import logger

from ..clock import Clock, SystemClock
from ..errors import (
    InvalidTransition,
    QuestionAlreadyAnswered,
    SessionBusy,
    SessionCompleted,
)
from .question import OPEN_ENDED, Question, Verdict
from .quiz import Quiz

IN_PROGRESS = "in_progress"
COMPLETED = "completed"

TIME_EXPIRED_FEEDBACK = "Time expired - no answer"


class QuizSession:
    """
    One learner's attempt at one quiz.

    Features:
    - Answers are immutable once recorded
    - Free navigation among reached questions with ``advance``/``retreat``
    - Deadline expiry that fills unanswered questions and completes the quiz
    - Completion callback fired exactly once
    """

    def __init__(
        self,
        quiz: Quiz,
        evaluator,
        time_limit_minutes: int = 30,
        clock: Optional[Clock] = None,
        on_complete: Optional[Callable[[Quiz], None]] = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize a session over a freshly generated quiz.

        Args:
            quiz: Quiz to run (must not be completed)
            evaluator: Object with ``evaluate_closed`` and ``evaluate_open``
            time_limit_minutes: Time budget from ``quiz.start_time``
            clock: Time source
            on_complete: Called with the completed quiz, exactly once
            session_id: Session identifier (auto-generated if None)
        """
        if quiz.completed:
            raise SessionCompleted(f"Quiz {quiz.quiz_id} is already completed")
        if time_limit_minutes <= 0:
            raise ValueError(f"Time limit must be positive, got {time_limit_minutes}")

        self.session_id = session_id or f"qs-{uuid.uuid4()}"
        self.quiz = quiz
        self.evaluator = evaluator
        self.time_limit = timedelta(minutes=time_limit_minutes)
        self.clock = clock or SystemClock()
        self.on_complete = on_complete

        self._lock = threading.Lock()
        self._state = IN_PROGRESS
        self._pending_question_id: Optional[str] = None
        self._timer: Optional[threading.Timer] = None

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def completed(self) -> bool:
        return self._state == COMPLETED

    @property
    def busy(self) -> bool:
        """Whether an open-answer evaluation is in flight."""
        return self._pending_question_id is not None

    @property
    def current_index(self) -> int:
        return self.quiz.current_question

    @property
    def current_question(self) -> Question:
        return self.quiz.questions[self.quiz.current_question]

    @property
    def answered_count(self) -> int:
        return self.quiz.answered_count

    @property
    def deadline(self) -> datetime:
        return self.quiz.start_time + self.time_limit

    def time_remaining(self) -> timedelta:
        """Time left before the deadline (zero once passed)."""
        return max(self.deadline - self.clock.now(), timedelta(0))

    def is_expired(self) -> bool:
        return self.clock.now() >= self.deadline

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit_answer(self, response: str) -> Question:
        """
        Answer the current question.

        Closed questions are graded immediately. Open-ended questions are
        graded by the evaluator outside the session lock; meanwhile every
        other operation except expiry is rejected.

        Args:
            response: Learner's response (non-empty)

        Returns:
            The answered question

        Raises:
            ValueError: If the response is empty
            QuestionAlreadyAnswered: If the current question already has a response
            SessionBusy: If another evaluation is in flight
            SessionCompleted: If the session is completed, or the deadline
                passed before the answer could be recorded
            EvaluationFailed: If the open answer could not be judged
                (the question stays unanswered)
        """
        if response is None or not str(response).strip():
            raise ValueError("Response cannot be empty")
        self._expire_if_past_deadline()

        with self._lock:
            self._check_mutable()
            question = self.current_question
            if question.answered:
                raise QuestionAlreadyAnswered(
                    f"Question {question.question_id} already answered"
                )
            if question.question_type != OPEN_ENDED:
                question.record(response, self.evaluator.evaluate_closed(question, response))
                logger.debug(
                    f"Session {self.session_id}: {question.question_id} "
                    f"{'correct' if question.is_correct else 'wrong'}"
                )
                return question
            self._pending_question_id = question.question_id

        verdict: Optional[Verdict] = None
        discarded = False
        try:
            verdict = self.evaluator.evaluate_open(question.text, question.answer, response)
        except Exception as e:
            with self._lock:
                self._pending_question_id = None
                expired = self._state == COMPLETED
            if expired:
                logger.info(
                    f"Session {self.session_id}: evaluation of {question.question_id} "
                    f"failed after expiry: {e}"
                )
                raise SessionCompleted("Time expired before the answer was evaluated") from e
            raise
        with self._lock:
            self._pending_question_id = None
            if self._state == COMPLETED:
                discarded = True
            else:
                question.record(response, verdict)

        if discarded:
            logger.info(
                f"Session {self.session_id}: verdict for {question.question_id} "
                "arrived after expiry and was discarded"
            )
            raise SessionCompleted("Time expired before the answer was evaluated")
        logger.debug(f"Session {self.session_id}: {question.question_id} scored {question.score}")
        return question

    def advance(self) -> Optional[Question]:
        """
        Move to the next question, or complete the quiz from the last one.

        Returns:
            The new current question, or None if the quiz just completed

        Raises:
            InvalidTransition: If the current question is unanswered
            SessionBusy: If an evaluation is in flight
            SessionCompleted: If the session is completed (or just expired)
        """
        self._expire_if_past_deadline()
        with self._lock:
            self._check_mutable()
            question = self.current_question
            if not question.answered:
                raise InvalidTransition(
                    f"Cannot advance past unanswered question {question.question_id}"
                )
            if self.quiz.current_question < self.quiz.total_questions - 1:
                self.quiz.current_question += 1
                return self.current_question
            completed = self._complete_locked()

        if completed:
            self._after_completion()
        return None

    def retreat(self) -> Question:
        """
        Go back one question (stays put at the first one).

        Returns:
            The new current question, with any recorded feedback intact

        Raises:
            SessionBusy: If an evaluation is in flight
            SessionCompleted: If the session is completed
        """
        with self._lock:
            self._check_mutable()
            if self.quiz.current_question > 0:
                self.quiz.current_question -= 1
            return self.current_question

    def expire_by_timeout(self) -> bool:
        """
        Complete the quiz because the time budget ran out.

        Every unanswered question gets an empty response, is marked wrong
        and receives the time-expired feedback.

        Returns:
            True if this call completed the quiz, False if it was already completed

        Raises:
            InvalidTransition: If the deadline has not passed yet
        """
        with self._lock:
            if self._state == COMPLETED:
                return False
            if not self.is_expired():
                raise InvalidTransition(
                    f"Session {self.session_id} deadline {self.deadline.isoformat()} not reached"
                )
            expired = 0
            for question in self.quiz.questions:
                if not question.answered:
                    question.record(
                        "", Verdict(is_correct=False, feedback=TIME_EXPIRED_FEEDBACK)
                    )
                    expired += 1
            completed = self._complete_locked()

        logger.info(f"Session {self.session_id} expired with {expired} unanswered question(s)")
        if completed:
            self._after_completion()
        return completed

    # ------------------------------------------------------------------
    # Deadline timer
    # ------------------------------------------------------------------

    def start_timer(self) -> None:
        """Schedule ``expire_by_timeout`` at the deadline on a daemon thread."""
        self.cancel_timer()
        if self.completed:
            return
        delay = self.time_remaining().total_seconds()
        self._timer = threading.Timer(delay, self._on_timer)
        self._timer.daemon = True
        self._timer.start()

    def cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        if self.completed:
            return
        if not self.is_expired():
            # Timer threads can wake slightly early
            self.start_timer()
            return
        try:
            self.expire_by_timeout()
        except Exception:
            logger.exception(f"Session {self.session_id}: deadline expiry failed")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_mutable(self) -> None:
        if self._state == COMPLETED:
            raise SessionCompleted(f"Session {self.session_id} is completed")
        if self._pending_question_id is not None:
            raise SessionBusy(
                f"Session {self.session_id} is evaluating {self._pending_question_id}"
            )

    def _expire_if_past_deadline(self) -> None:
        if self._state == IN_PROGRESS and self.is_expired():
            self.expire_by_timeout()

    def _complete_locked(self) -> bool:
        """Single terminal transition; caller holds the lock."""
        if self._state == COMPLETED:
            return False
        unanswered = [q.question_id for q in self.quiz.questions if not q.answered]
        if unanswered:
            raise InvalidTransition(f"Cannot complete with unanswered questions: {unanswered}")
        self._state = COMPLETED
        self.quiz.completed = True
        self.quiz.end_time = self.clock.now()
        self.quiz.score = self.quiz.compute_score()
        return True

    def _after_completion(self) -> None:
        if self._timer is not None and self._timer is not threading.current_thread():
            self._timer.cancel()
        self._timer = None
        logger.info(
            f"Session {self.session_id} completed: score {self.quiz.score} "
            f"({self.quiz.correct_count}/{self.quiz.total_questions} correct)"
        )
        if self.on_complete is not None:
            self.on_complete(self.quiz)
