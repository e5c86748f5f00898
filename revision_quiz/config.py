"""
Configuration management for RevisionQuiz.

This module centralizes all configuration settings:
- Secrets loaded from environment variables
- Quiz settings with the same defaults the admin panel ships
- Single source of truth for data paths
- Thread-safe token tracking
"""

import json
import os
import sys
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from loguru import logger

# Load environment variables from .env file
load_dotenv()


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ModelConfig:
    """LLM model configuration with OpenAI API settings."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    model_name: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4o"))
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )

    max_tokens: int = 2000

    # Agent-specific temperatures
    generation_temperature: float = 0.7
    grading_temperature: float = 0.3
    grading_max_tokens: int = 500

    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )


@dataclass
class QuizSettings:
    """
    Quiz settings shared by generation, sessions and progression.

    Attributes:
        questions_per_quiz: Number of questions requested per quiz
        pass_threshold: Minimum aggregate score (percent) to pass
        time_limit_minutes: Time budget of a quiz session
        enable_gamification: Whether passing a level unlocks the next one
        max_difficulty: Highest difficulty level
        default_difficulty: Level suggested when nothing is known about a learner
        revision_file_limit: Maximum resources used to ground one quiz
    """

    questions_per_quiz: int = field(
        default_factory=lambda: _env_int("QUIZ_QUESTIONS_PER_QUIZ", 10)
    )
    pass_threshold: int = field(
        default_factory=lambda: _env_int("QUIZ_PASS_THRESHOLD", 70)
    )
    time_limit_minutes: int = field(
        default_factory=lambda: _env_int("QUIZ_TIME_LIMIT_MINUTES", 30)
    )
    enable_gamification: bool = field(
        default_factory=lambda: _env_bool("QUIZ_ENABLE_GAMIFICATION", True)
    )
    max_difficulty: int = field(
        default_factory=lambda: _env_int("QUIZ_MAX_DIFFICULTY", 5)
    )
    default_difficulty: int = 1
    revision_file_limit: int = field(
        default_factory=lambda: _env_int("QUIZ_REVISION_FILE_LIMIT", 3)
    )

    # camelCase keys used by the stored settings document
    _ALIASES = {
        "questionsPerQuiz": "questions_per_quiz",
        "passThreshold": "pass_threshold",
        "timeLimit": "time_limit_minutes",
        "timeLimitMinutes": "time_limit_minutes",
        "enableGamification": "enable_gamification",
        "maxDifficulty": "max_difficulty",
        "defaultDifficulty": "default_difficulty",
        "revisionFileLimit": "revision_file_limit",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "QuizSettings":
        """
        Build settings from a stored document.

        Accepts both snake_case and the camelCase keys of the settings
        document. Unknown keys are ignored; missing keys keep their defaults.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = cls._ALIASES.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def validate(self) -> list[str]:
        """Return a list of configuration errors (empty if valid)."""
        errors = []
        if self.questions_per_quiz < 1:
            errors.append(f"questions_per_quiz must be >= 1, got {self.questions_per_quiz}")
        if not (0 <= self.pass_threshold <= 100):
            errors.append(f"pass_threshold must be in [0, 100], got {self.pass_threshold}")
        if self.time_limit_minutes < 1:
            errors.append(f"time_limit_minutes must be >= 1, got {self.time_limit_minutes}")
        if not (1 <= self.max_difficulty <= 5):
            errors.append(f"max_difficulty must be in [1, 5], got {self.max_difficulty}")
        if not (1 <= self.default_difficulty <= self.max_difficulty):
            errors.append(
                f"default_difficulty must be in [1, {self.max_difficulty}], "
                f"got {self.default_difficulty}"
            )
        if self.revision_file_limit < 1:
            errors.append(f"revision_file_limit must be >= 1, got {self.revision_file_limit}")
        return errors


@dataclass
class PathConfig:
    """File system paths - single source of truth for all directories."""

    package_root: Path = field(default_factory=lambda: Path(__file__).parent)
    data_dir: Path = field(
        default_factory=lambda: Path(os.getenv("REVISION_QUIZ_DATA_DIR", "data"))
    )

    schemas_dir: Path = field(init=False)
    performance_dir: Path = field(init=False)
    resources_file: Path = field(init=False)
    settings_file: Path = field(init=False)

    def __post_init__(self):
        """Initialize computed paths."""
        self.schemas_dir = self.package_root / "schemas"
        self.performance_dir = self.data_dir / "revision_performances"
        self.resources_file = self.data_dir / "resources.json"
        self.settings_file = self.data_dir / "quiz_settings.json"

    def prepare_filesystem(self):
        """
        Create directories if they don't exist.

        Call this explicitly from your app entrypoint.
        """
        for directory in [self.data_dir, self.performance_dir]:
            directory.mkdir(parents=True, exist_ok=True)


@dataclass
class LoggingConfig:
    """Logging and metrics configuration with env-driven pricing."""

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_tokens: bool = True

    cost_per_1k_input: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_INPUT", "0.0025"))
    )
    cost_per_1k_output: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_OUTPUT", "0.0100"))
    )


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from revision_quiz.config import config

        limit = config.quiz.revision_file_limit
        config.prepare_fs()
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.paths = PathConfig()
            cls._instance.model = ModelConfig()
            cls._instance.quiz = QuizSettings()
            cls._instance.logging = LoggingConfig()
        return cls._instance

    def prepare_fs(self):
        """Prepare filesystem (create directories). Call once at startup."""
        self.paths.prepare_filesystem()

    def load_quiz_settings(self, path: Optional[Path] = None) -> QuizSettings:
        """
        Load the stored quiz settings document.

        Falls back to the default settings when the document does not exist.
        The loaded settings replace ``config.quiz``.

        Args:
            path: Settings JSON file (defaults to ``paths.settings_file``)

        Returns:
            The active QuizSettings
        """
        path = Path(path) if path else self.paths.settings_file
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                self.quiz = QuizSettings.from_dict(json.load(f))
            logger.info(f"Loaded quiz settings from {path}")
        else:
            logger.info(f"No quiz settings at {path}, using defaults")
            self.quiz = QuizSettings()
        return self.quiz

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.model.api_key:
            errors.append("OPENAI_API_KEY not set in environment")

        if not (0 <= self.model.generation_temperature <= 2):
            errors.append(
                f"generation_temperature must be in [0, 2], got {self.model.generation_temperature}"
            )

        if self.model.max_tokens <= 0:
            errors.append(f"max_tokens must be > 0, got {self.model.max_tokens}")

        errors.extend(self.quiz.validate())

        if not self.paths.schemas_dir.exists():
            errors.append(f"Schema directory not found: {self.paths.schemas_dir}")

        return errors


# Global config instance
config = Config()


def configure_logging(level: Optional[str] = None) -> None:
    """Replace loguru's default sink. Call once from the entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or config.logging.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {name} - {message}",
    )


class TokenTracker:
    """
    Thread-safe tracker for token usage and estimated costs.

    Usage:
        from revision_quiz.config import token_tracker

        token_tracker.add_tokens(input_tokens=100, output_tokens=50)
        print(token_tracker.summary())
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_calls = 0

    def add_tokens(self, input_tokens: int, output_tokens: int):
        """Add tokens from an API call (thread-safe)."""
        with self._lock:
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
            self.total_calls += 1

    def total_tokens(self) -> int:
        """Get total tokens used (thread-safe)."""
        with self._lock:
            return self.input_tokens + self.output_tokens

    def _cost(self, input_tokens: int, output_tokens: int) -> float:
        return (input_tokens / 1000) * config.logging.cost_per_1k_input + (
            output_tokens / 1000
        ) * config.logging.cost_per_1k_output

    def estimated_cost(self) -> float:
        """Calculate estimated cost in USD (thread-safe)."""
        with self._lock:
            return self._cost(self.input_tokens, self.output_tokens)

    def summary(self) -> str:
        """Get formatted summary of usage (thread-safe)."""
        stats = self.get_stats()
        return (
            "Token Usage Summary:\n"
            f"  API Calls: {stats['calls']}\n"
            f"  Input Tokens: {stats['input_tokens']:,}\n"
            f"  Output Tokens: {stats['output_tokens']:,}\n"
            f"  Total Tokens: {stats['total_tokens']:,}\n"
            f"  Estimated Cost: ${stats['estimated_cost']:.4f}"
        )

    def reset(self):
        """Reset counters (thread-safe)."""
        with self._lock:
            self.input_tokens = 0
            self.output_tokens = 0
            self.total_calls = 0

    def get_stats(self) -> dict:
        """Get current stats as dict (thread-safe)."""
        with self._lock:
            input_tokens = self.input_tokens
            output_tokens = self.output_tokens
            total_calls = self.total_calls
            est_cost = self._cost(input_tokens, output_tokens)

        return {
            "calls": total_calls,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "estimated_cost": est_cost,
        }


# Global token tracker instance
token_tracker = TokenTracker()
