"""
Unit tests for configuration system.

Tests:
- Quiz settings defaults, env overrides and stored documents
- Config singleton and validation
- Token tracker functionality
"""

import json
import threading

import pytest

from revision_quiz.config import Config, QuizSettings, TokenTracker, config


class TestQuizSettings:
    """Test suite for QuizSettings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "QUIZ_QUESTIONS_PER_QUIZ", "QUIZ_PASS_THRESHOLD", "QUIZ_TIME_LIMIT_MINUTES",
            "QUIZ_ENABLE_GAMIFICATION", "QUIZ_MAX_DIFFICULTY", "QUIZ_REVISION_FILE_LIMIT",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = QuizSettings()

        assert settings.questions_per_quiz == 10
        assert settings.pass_threshold == 70
        assert settings.time_limit_minutes == 30
        assert settings.enable_gamification is True
        assert settings.max_difficulty == 5
        assert settings.default_difficulty == 1
        assert settings.revision_file_limit == 3
        assert settings.validate() == []

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("QUIZ_PASS_THRESHOLD", "80")
        monkeypatch.setenv("QUIZ_ENABLE_GAMIFICATION", "false")

        settings = QuizSettings()

        assert settings.pass_threshold == 80
        assert settings.enable_gamification is False

    def test_from_dict_accepts_camel_case(self):
        settings = QuizSettings.from_dict({
            "questionsPerQuiz": 5,
            "passThreshold": 60,
            "timeLimit": 20,
            "enableGamification": False,
            "revisionFileLimit": 2,
            "unknownKey": "ignored",
        })

        assert settings.questions_per_quiz == 5
        assert settings.pass_threshold == 60
        assert settings.time_limit_minutes == 20
        assert settings.enable_gamification is False
        assert settings.revision_file_limit == 2

    def test_from_dict_accepts_snake_case(self):
        settings = QuizSettings.from_dict({"pass_threshold": 50, "max_difficulty": 4})
        assert settings.pass_threshold == 50
        assert settings.max_difficulty == 4

    def test_validate_reports_each_problem(self):
        settings = QuizSettings(
            questions_per_quiz=0,
            pass_threshold=120,
            time_limit_minutes=0,
            max_difficulty=7,
            revision_file_limit=0,
        )

        errors = settings.validate()

        assert any("questions_per_quiz" in e for e in errors)
        assert any("pass_threshold" in e for e in errors)
        assert any("time_limit_minutes" in e for e in errors)
        assert any("max_difficulty" in e for e in errors)
        assert any("revision_file_limit" in e for e in errors)

    def test_to_dict_round_trips(self):
        settings = QuizSettings(questions_per_quiz=7)
        assert QuizSettings.from_dict(settings.to_dict()) == settings


class TestConfig:
    """Test suite for Config class."""

    def test_config_singleton(self):
        assert Config() is Config()
        assert config is Config()

    def test_schemas_ship_with_package(self):
        assert (config.paths.schemas_dir / "quiz.schema.json").exists()
        assert (config.paths.schemas_dir / "evaluation.schema.json").exists()

    def test_validate_flags_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(config.model, "api_key", "")
        errors = config.validate()
        assert any("OPENAI_API_KEY" in e for e in errors)

    def test_validate_includes_quiz_settings(self, monkeypatch):
        monkeypatch.setattr(config, "quiz", QuizSettings(pass_threshold=-1))
        errors = config.validate()
        assert any("pass_threshold" in e for e in errors)

    def test_load_quiz_settings(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "quiz", config.quiz)
        path = tmp_path / "quiz_settings.json"
        path.write_text(json.dumps({"questionsPerQuiz": 12, "passThreshold": 75}))

        settings = config.load_quiz_settings(path)

        assert settings.questions_per_quiz == 12
        assert settings.pass_threshold == 75
        assert config.quiz is settings

    def test_load_quiz_settings_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "quiz", QuizSettings(pass_threshold=99))
        monkeypatch.delenv("QUIZ_PASS_THRESHOLD", raising=False)

        settings = config.load_quiz_settings(tmp_path / "missing.json")

        assert settings.pass_threshold == 70


class TestTokenTracker:
    """Test suite for TokenTracker."""

    def test_add_tokens(self):
        tracker = TokenTracker()
        tracker.add_tokens(input_tokens=100, output_tokens=50)
        tracker.add_tokens(input_tokens=10, output_tokens=5)

        stats = tracker.get_stats()
        assert stats["calls"] == 2
        assert stats["input_tokens"] == 110
        assert stats["output_tokens"] == 55
        assert tracker.total_tokens() == 165

    def test_estimated_cost_uses_pricing(self, monkeypatch):
        monkeypatch.setattr(config.logging, "cost_per_1k_input", 1.0)
        monkeypatch.setattr(config.logging, "cost_per_1k_output", 2.0)
        tracker = TokenTracker()
        tracker.add_tokens(input_tokens=1000, output_tokens=500)

        assert tracker.estimated_cost() == pytest.approx(2.0)
        assert "Estimated Cost: $2.0000" in tracker.summary()

    def test_reset(self):
        tracker = TokenTracker()
        tracker.add_tokens(input_tokens=5, output_tokens=5)
        tracker.reset()
        assert tracker.get_stats()["calls"] == 0
        assert tracker.total_tokens() == 0

    def test_thread_safety(self):
        tracker = TokenTracker()

        def worker():
            for _ in range(100):
                tracker.add_tokens(input_tokens=1, output_tokens=1)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert tracker.get_stats()["calls"] == 800
        assert tracker.total_tokens() == 1600
