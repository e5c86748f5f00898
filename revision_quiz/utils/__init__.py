"""
Utility modules for RevisionQuiz.

This module contains utility functions:
- json_repair: extraction and single-pass repair of JSON in model output
- validation: JSON Schema validation with auto-repair
- persistence: content and performance stores
- progress: revision analytics and result helpers
"""

from .json_repair import JSONPayloadError, extract_json_object, parse_json_payload, repair_json
from .validation import (
    EvaluationVerdictValidator,
    QuizPayloadValidator,
    SchemaValidator,
    ValidationResult,
)
from .persistence import (
    ContentStore,
    InMemoryContentStore,
    InMemoryPerformanceStore,
    JsonContentStore,
    JsonPerformanceStore,
    PerformanceStore,
)
from .progress import (
    average_duration_minutes,
    average_score,
    difficulty_distribution,
    filter_by_timeframe,
    is_level_passed,
    performance_message,
    question_type_breakdown,
    score_improvement,
    subject_breakdown,
    success_rate,
    time_spent,
)

__all__ = [
    # JSON extraction
    "JSONPayloadError",
    "extract_json_object",
    "parse_json_payload",
    "repair_json",
    # Validation
    "SchemaValidator",
    "ValidationResult",
    "QuizPayloadValidator",
    "EvaluationVerdictValidator",
    # Persistence
    "ContentStore",
    "InMemoryContentStore",
    "JsonContentStore",
    "PerformanceStore",
    "InMemoryPerformanceStore",
    "JsonPerformanceStore",
    # Progress analytics
    "average_score",
    "success_rate",
    "score_improvement",
    "average_duration_minutes",
    "filter_by_timeframe",
    "difficulty_distribution",
    "subject_breakdown",
    "is_level_passed",
    "question_type_breakdown",
    "performance_message",
    "time_spent",
]
