"""
Shared pytest fixtures and configuration for RevisionQuiz tests.

This file is automatically discovered by pytest and provides
fixtures available to all tests.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from revision_quiz.config import QuizSettings
from revision_quiz.models.resource import Resource
from revision_quiz.utils.persistence import InMemoryContentStore, InMemoryPerformanceStore


START = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start=START):
        self.current = start

    def now(self):
        return self.current

    def advance(self, **kwargs):
        self.current = self.current + timedelta(**kwargs)
        return self.current


class ScriptedTextGenerator:
    """
    TextGenerator returning canned replies in order.

    A reply that is an exception instance is raised instead of returned.
    Every call is kept in ``calls`` as (system_prompt, user_prompt).
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def generate(self, system_prompt, user_prompt):
        self.calls.append((system_prompt, user_prompt))
        if not self.replies:
            raise AssertionError("ScriptedTextGenerator ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


def quiz_payload(types, title="Revision quiz", **extra):
    """JSON text of a generated quiz with one question per entry in ``types``."""
    questions = []
    for index, question_type in enumerate(types, start=1):
        question = {"id": str(index), "text": f"Question {index}?", "type": question_type}
        if question_type in ("multiple_choice", "mcq"):
            question["choices"] = ["Option A", "Option B", "Option C", "Option D"]
            question["answer"] = "B"
        elif question_type == "true_false":
            question["answer"] = "true"
        else:
            question["answer"] = f"Model answer {index}"
        questions.append(question)
    payload = {"title": title, "questions": questions}
    payload.update(extra)
    return json.dumps(payload)


def verdict_payload(is_correct=True, score=80, feedback="Good answer"):
    return json.dumps({"is_correct": is_correct, "score": score, "feedback": feedback})


@pytest.fixture
def clock():
    """Manual clock starting at a fixed UTC instant."""
    return ManualClock()


@pytest.fixture
def settings():
    """Default quiz settings, independent of the environment."""
    return QuizSettings(
        questions_per_quiz=4,
        pass_threshold=70,
        time_limit_minutes=30,
        enable_gamification=True,
        max_difficulty=5,
        default_difficulty=1,
        revision_file_limit=3,
    )


@pytest.fixture
def sample_resources():
    return [
        Resource("res-algebra", "math", 1, "https://cdn.example.org/algebra.pdf", "en"),
        Resource("res-functions", "math", 2, "https://cdn.example.org/functions.pdf", "fr"),
        Resource("res-calculus", "math", 4, "https://cdn.example.org/calculus.pdf", "fr"),
        Resource("res-mechanics", "physics", 2, "https://cdn.example.org/mechanics.pdf", "fr"),
    ]


@pytest.fixture
def content_store(sample_resources):
    return InMemoryContentStore(sample_resources)


@pytest.fixture
def performance_store():
    return InMemoryPerformanceStore()


@pytest.fixture(autouse=True)
def reset_token_tracker():
    """
    Auto-fixture to reset token tracker before each test.

    This ensures tests don't interfere with each other.
    """
    from revision_quiz.config import token_tracker

    token_tracker.reset()
    yield
    token_tracker.reset()


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
