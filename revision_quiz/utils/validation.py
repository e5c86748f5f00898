"""
Schema validation for model-produced payloads.

Provides JSON Schema validation with readable error messages and a
transparent repair step for the type slips models commonly make:
- numeric question ids and boolean answers coerced to strings
- camelCase verdict keys mapped onto their snake_case names
- numeric strings coerced to numbers
"""

import json
from copy import deepcopy
from pathlib import Path
from typing import Any, Optional

from jsonschema import Draft7Validator, FormatChecker, ValidationError

from ..config import config


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data (a repaired copy if repair was applied)
        repairs: List of repairs applied
    """

    def __init__(
        self,
        valid: bool,
        errors: list[str],
        data: Any = None,
        repairs: Optional[list[str]] = None,
    ):
        self.valid = valid
        self.errors = errors
        self.data = data
        self.repairs = repairs or []

    def __bool__(self) -> bool:
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            suffix = f" ({len(self.repairs)} repair(s))" if self.repairs else ""
            return f"valid{suffix}"
        return f"invalid, {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    Draft-7 JSON Schema validator with an optional repair pass.

    Usage:
        validator = SchemaValidator("path/to/schema.json")
        result = validator.validate(data, auto_repair=True)
        if result:
            use(result.data)
        else:
            print(result.errors)
    """

    def __init__(self, schema_path: Path | str):
        self.schema_path = Path(schema_path)
        with open(self.schema_path, "r", encoding="utf-8") as f:
            self.schema = json.load(f)
        self.validator = Draft7Validator(self.schema, format_checker=FormatChecker())

    def validate(self, data: Any, auto_repair: bool = False) -> ValidationResult:
        """
        Validate data against the schema.

        Args:
            data: Data to validate (never mutated)
            auto_repair: If True, repair a copy and validate that instead

        Returns:
            ValidationResult with status, errors and the (possibly repaired) data
        """
        errors = [self._format_error(e) for e in self.validator.iter_errors(data)]

        if errors and auto_repair and isinstance(data, dict):
            repaired, repairs = self._attempt_repair(deepcopy(data))
            if repairs:
                result = self.validate(repaired, auto_repair=False)
                result.repairs = repairs
                return result

        if errors:
            return ValidationResult(valid=False, errors=errors, data=data)
        return ValidationResult(valid=True, errors=[], data=data)

    def _format_error(self, error: ValidationError) -> str:
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        schema_path = "/".join(str(p) for p in error.schema_path)
        return (
            f"At '{path}': {error.message} "
            f"[validator={error.validator}, schema_path=/{schema_path}]"
        )

    def _attempt_repair(self, data: dict) -> tuple[dict, list[str]]:
        """Hook for subclasses; the base validator repairs nothing."""
        return data, []


def _as_text(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return value


class QuizPayloadValidator(SchemaValidator):
    """Validator for generated quiz payloads (``schemas/quiz.schema.json``)."""

    def __init__(self, schema_path: Optional[Path] = None):
        super().__init__(schema_path or config.paths.schemas_dir / "quiz.schema.json")

    def _attempt_repair(self, data: dict) -> tuple[dict, list[str]]:
        repairs = []

        difficulty = data.get("difficulty")
        if isinstance(difficulty, str) and difficulty.strip().isdigit():
            data["difficulty"] = int(difficulty)
            repairs.append(f"Coerced difficulty: '{difficulty}' -> {data['difficulty']}")

        questions = data.get("questions")
        if not isinstance(questions, list):
            return data, repairs

        for i, question in enumerate(questions):
            if not isinstance(question, dict):
                continue
            for key in ("id", "answer"):
                value = question.get(key)
                coerced = _as_text(value)
                if coerced is not value:
                    question[key] = coerced
                    repairs.append(f"Coerced question {i} {key}: {value!r} -> {coerced!r}")
            question_type = question.get("type")
            if isinstance(question_type, str):
                tag = question_type.strip().lower()
                if tag != question_type:
                    question["type"] = tag
                    repairs.append(f"Normalised question {i} type: {question_type!r} -> {tag!r}")
            choices = question.get("choices")
            if isinstance(choices, list) and any(not isinstance(c, str) for c in choices):
                question["choices"] = [str(_as_text(c)) for c in choices]
                repairs.append(f"Coerced question {i} choices to strings")

        return data, repairs


class EvaluationVerdictValidator(SchemaValidator):
    """Validator for open-answer verdicts (``schemas/evaluation.schema.json``)."""

    _KEY_ALIASES = {"isCorrect": "is_correct", "correct": "is_correct"}

    def __init__(self, schema_path: Optional[Path] = None):
        super().__init__(
            schema_path or config.paths.schemas_dir / "evaluation.schema.json"
        )

    def _attempt_repair(self, data: dict) -> tuple[dict, list[str]]:
        repairs = []

        for alias, name in self._KEY_ALIASES.items():
            if alias in data and name not in data:
                data[name] = data.pop(alias)
                repairs.append(f"Renamed '{alias}' to '{name}'")

        is_correct = data.get("is_correct")
        if isinstance(is_correct, str) and is_correct.strip().lower() in {"true", "false"}:
            data["is_correct"] = is_correct.strip().lower() == "true"
            repairs.append(f"Coerced is_correct: '{is_correct}' -> {data['is_correct']}")

        score = data.get("score")
        if isinstance(score, str):
            try:
                data["score"] = float(score.strip().rstrip("%"))
                repairs.append(f"Coerced score: '{score}' -> {data['score']}")
            except ValueError:
                pass

        return data, repairs
