"""
Tests for the quiz session state machine.
"""

import pytest

from conftest import START, ScriptedTextGenerator, verdict_payload
from revision_quiz.agents.answer_evaluator import AnswerEvaluator
from revision_quiz.errors import (
    EvaluationFailed,
    InvalidTransition,
    QuestionAlreadyAnswered,
    SessionBusy,
    SessionCompleted,
)
from revision_quiz.models.question import (
    MultipleChoiceQuestion,
    OpenEndedQuestion,
    TrueFalseQuestion,
    Verdict,
)
from revision_quiz.models.quiz import Quiz
from revision_quiz.models.quiz_session import (
    COMPLETED,
    IN_PROGRESS,
    TIME_EXPIRED_FEEDBACK,
    QuizSession,
)


def make_quiz():
    return Quiz(
        title="Mechanics",
        subject="physics",
        difficulty=3,
        questions=[
            MultipleChoiceQuestion("1", "Unit of force?", "A", choices=["Newton", "Joule"]),
            TrueFalseQuestion("2", "Mass is a vector.", "false"),
            OpenEndedQuestion("3", "State Newton's first law.", "An object keeps its motion"),
        ],
        start_time=START,
    )


@pytest.fixture
def completions():
    return []


@pytest.fixture
def make_session(clock, completions):
    def factory(*replies, evaluator=None):
        evaluator = evaluator or AnswerEvaluator(text_generator=ScriptedTextGenerator(*replies))
        return QuizSession(
            make_quiz(),
            evaluator,
            time_limit_minutes=30,
            clock=clock,
            on_complete=completions.append,
        )
    return factory


def answer_all(session):
    session.submit_answer("A")
    session.advance()
    session.submit_answer("false")
    session.advance()
    session.submit_answer("Objects keep moving")


class TestAnswering:
    def test_initial_state(self, make_session):
        session = make_session()

        assert session.state == IN_PROGRESS
        assert session.current_index == 0
        assert session.answered_count == 0
        assert session.deadline == START.replace(minute=30)

    def test_closed_answer_graded_locally(self, make_session):
        session = make_session()

        question = session.submit_answer("a")

        assert question.is_correct is True
        assert question.user_response == "a"
        assert session.answered_count == 1

    def test_empty_response_rejected(self, make_session):
        session = make_session()

        with pytest.raises(ValueError):
            session.submit_answer("   ")
        assert session.answered_count == 0

    def test_answered_question_is_immutable(self, make_session):
        session = make_session()
        session.submit_answer("B")

        with pytest.raises(QuestionAlreadyAnswered):
            session.submit_answer("A")

        question = session.current_question
        assert question.user_response == "B"
        assert question.is_correct is False

    def test_open_answer_graded_by_evaluator(self, make_session):
        session = make_session(verdict_payload(is_correct=True, score=78, feedback="Good"))
        session.submit_answer("A")
        session.advance()
        session.submit_answer("true")
        session.advance()

        question = session.submit_answer("It keeps moving unless a force acts")

        assert question.score == 78
        assert question.feedback == "Good"
        assert not session.busy

    def test_failed_evaluation_leaves_question_unanswered(self, make_session):
        session = make_session(
            ConnectionError("offline"), verdict_payload(is_correct=False, score=30)
        )
        session.submit_answer("A")
        session.advance()
        session.submit_answer("true")
        session.advance()

        with pytest.raises(EvaluationFailed):
            session.submit_answer("No idea")
        assert not session.current_question.answered
        assert not session.busy

        question = session.submit_answer("No idea")
        assert question.score == 30


class TestNavigation:
    def test_advance_requires_answer(self, make_session):
        session = make_session()

        with pytest.raises(InvalidTransition):
            session.advance()

    def test_retreat_keeps_feedback(self, make_session):
        session = make_session()
        session.submit_answer("A")
        session.advance()

        question = session.retreat()

        assert session.current_index == 0
        assert question.feedback == "Correct answer!"

    def test_retreat_at_first_question_stays(self, make_session):
        session = make_session()

        session.retreat()

        assert session.current_index == 0

    def test_completion_from_last_question(self, make_session, clock, completions):
        session = make_session(verdict_payload(is_correct=True, score=70))
        answer_all(session)
        clock.advance(minutes=12)

        assert session.advance() is None

        assert session.state == COMPLETED
        quiz = session.quiz
        assert quiz.completed
        assert quiz.end_time == START.replace(minute=12)
        # (100 + 100 + 70) / 3 = 90
        assert quiz.score == 90
        assert completions == [quiz]

    def test_no_operation_after_completion(self, make_session):
        session = make_session(verdict_payload())
        answer_all(session)
        session.advance()

        with pytest.raises(SessionCompleted):
            session.submit_answer("A")
        with pytest.raises(SessionCompleted):
            session.advance()
        with pytest.raises(SessionCompleted):
            session.retreat()


class TestExpiry:
    def test_expiry_fills_unanswered_questions(self, make_session, clock, completions):
        session = make_session()
        session.submit_answer("A")
        clock.advance(minutes=31)

        assert session.expire_by_timeout() is True

        quiz = session.quiz
        assert quiz.completed
        assert quiz.questions[0].is_correct is True
        for question in quiz.questions[1:]:
            assert question.user_response == ""
            assert question.is_correct is False
            assert question.feedback == TIME_EXPIRED_FEEDBACK
        # (100 + 0 + 0) / 3 = 33.3
        assert quiz.score == 33
        assert len(completions) == 1

    def test_expiry_after_half_the_questions(self, clock, completions):
        quiz = Quiz(
            title="Forces",
            subject="physics",
            difficulty=2,
            questions=[
                MultipleChoiceQuestion("1", "Unit of force?", "A", choices=["Newton", "Joule"]),
                TrueFalseQuestion("2", "Mass is a vector.", "false"),
                TrueFalseQuestion("3", "Weight is a force.", "true"),
                MultipleChoiceQuestion("4", "Unit of energy?", "B", choices=["Newton", "Joule"]),
            ],
            start_time=START,
        )
        session = QuizSession(
            quiz, AnswerEvaluator(text_generator=ScriptedTextGenerator()),
            clock=clock, on_complete=completions.append,
        )
        session.submit_answer("A")
        session.advance()
        session.submit_answer("false")
        clock.advance(minutes=30)

        assert session.expire_by_timeout() is True

        assert session.state == COMPLETED
        for question in quiz.questions[2:]:
            assert question.user_response == ""
            assert question.is_correct is False
            assert question.feedback == TIME_EXPIRED_FEEDBACK
        # (100 + 100 + 0 + 0) / 4
        assert quiz.score == 50
        assert len(completions) == 1

    def test_expiry_is_idempotent(self, make_session, clock, completions):
        session = make_session()
        clock.advance(minutes=30)

        assert session.expire_by_timeout() is True
        assert session.expire_by_timeout() is False
        assert len(completions) == 1

    def test_expiry_before_deadline_rejected(self, make_session, clock):
        session = make_session()
        clock.advance(minutes=29)

        with pytest.raises(InvalidTransition):
            session.expire_by_timeout()
        assert session.state == IN_PROGRESS

    def test_expiry_after_normal_completion_is_noop(self, make_session, clock, completions):
        session = make_session(verdict_payload())
        answer_all(session)
        session.advance()
        clock.advance(minutes=45)

        assert session.expire_by_timeout() is False
        assert len(completions) == 1

    def test_submit_after_deadline(self, make_session, clock, completions):
        session = make_session()
        clock.advance(minutes=31)

        with pytest.raises(SessionCompleted):
            session.submit_answer("A")

        assert session.quiz.questions[0].user_response == ""
        assert len(completions) == 1

    def test_time_remaining(self, make_session, clock):
        session = make_session()
        clock.advance(minutes=10)
        assert session.time_remaining().total_seconds() == 20 * 60

        clock.advance(minutes=25)
        assert session.time_remaining().total_seconds() == 0


class ExpiringEvaluator:
    """Evaluator whose open-answer call outlives the session deadline."""

    def __init__(self, clock):
        self.clock = clock
        self.session = None
        self.busy_error = None

    def evaluate_closed(self, question, response):
        return Verdict(is_correct=True, feedback="Correct answer!")

    def evaluate_open(self, question_text, canonical_answer, response):
        try:
            self.session.advance()
        except SessionBusy as e:
            self.busy_error = e
        self.clock.advance(minutes=40)
        self.session.expire_by_timeout()
        return Verdict(is_correct=True, feedback="Late", score=100)


class ExpiringFailingEvaluator(ExpiringEvaluator):
    """Evaluator whose call fails after the session deadline passed."""

    def evaluate_open(self, question_text, canonical_answer, response):
        self.clock.advance(minutes=40)
        self.session.expire_by_timeout()
        raise EvaluationFailed("Answer evaluation call failed: timeout")


class TestEvaluationRace:
    def test_late_verdict_is_discarded(self, clock, completions):
        evaluator = ExpiringEvaluator(clock)
        session = QuizSession(
            make_quiz(), evaluator, clock=clock, on_complete=completions.append
        )
        evaluator.session = session
        session.submit_answer("A")
        session.advance()
        session.submit_answer("false")
        session.advance()

        with pytest.raises(SessionCompleted):
            session.submit_answer("A complete answer")

        assert isinstance(evaluator.busy_error, SessionBusy)
        question = session.quiz.questions[2]
        assert question.user_response == ""
        assert question.feedback == TIME_EXPIRED_FEEDBACK
        assert question.score is None
        assert session.quiz.score == 67
        assert len(completions) == 1
        assert not session.busy

    def test_failed_evaluation_after_expiry(self, clock, completions):
        evaluator = ExpiringFailingEvaluator(clock)
        session = QuizSession(
            make_quiz(), evaluator, clock=clock, on_complete=completions.append
        )
        evaluator.session = session
        session.submit_answer("A")
        session.advance()
        session.submit_answer("false")
        session.advance()

        with pytest.raises(SessionCompleted) as exc_info:
            session.submit_answer("A complete answer")

        assert isinstance(exc_info.value.__cause__, EvaluationFailed)
        assert session.quiz.questions[2].feedback == TIME_EXPIRED_FEEDBACK
        assert session.completed
        assert len(completions) == 1
        assert not session.busy
