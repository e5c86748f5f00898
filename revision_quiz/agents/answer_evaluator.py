"""
Answer Evaluator - judges learner responses.

Closed questions (multiple choice, true/false) are graded locally by exact,
case-insensitive comparison. Open-ended answers are graded by a language
model that must return a structured verdict.
"""

from __future__ import annotations

from typing import Optional

from langchain_core.prompts import PromptTemplate
from loguru import logger

from ..config import config
from ..errors import EvaluationFailed
from ..models.question import Question, Verdict
from ..models.quiz import round_half_up
from ..utils.json_repair import JSONPayloadError, parse_json_payload
from ..utils.validation import EvaluationVerdictValidator
from .text_generation import ChatOpenAITextGenerator, TextGenerator


CORRECT_FEEDBACK = "Correct answer!"
WRONG_FEEDBACK = "Wrong answer. The correct answer is: {answer}"


def evaluate_closed(question: Question, response: str) -> Verdict:
    """
    Grade a closed question without any external call.

    Args:
        question: Multiple-choice or true/false question
        response: Learner's response

    Returns:
        Verdict with fixed feedback text and no score
    """
    is_correct = response.strip().casefold() == question.answer.strip().casefold()
    if is_correct:
        return Verdict(is_correct=True, feedback=CORRECT_FEEDBACK)
    return Verdict(is_correct=False, feedback=WRONG_FEEDBACK.format(answer=question.answer))


class AnswerEvaluator:
    """
    Grades learner responses; open-ended ones through a language model.

    A verdict that cannot be parsed or validated is an error, never a
    guessed score.
    """

    SYSTEM_PROMPT = (
        "You are an expert teacher grading a learner's answer. "
        "Reply with ONLY a JSON object: "
        '{"is_correct": true or false, "score": number from 0 to 100, '
        '"feedback": "short constructive feedback"}'
    )

    def __init__(
        self,
        text_generator: Optional[TextGenerator] = None,
        validator: Optional[EvaluationVerdictValidator] = None,
    ):
        """
        Initialize answer evaluator.

        Args:
            text_generator: Text capability (defaults to ChatOpenAI at the grading temperature)
            validator: Verdict schema validator
        """
        self.text_generator = text_generator or ChatOpenAITextGenerator(
            temperature=config.model.grading_temperature,
            max_tokens=config.model.grading_max_tokens,
        )
        self.validator = validator or EvaluationVerdictValidator()

        self.grading_prompt = PromptTemplate(
            input_variables=["question", "model_answer", "learner_answer"],
            template="""Grade the learner's answer to this question.

**Question:**
{question}

**Model answer:**
{model_answer}

**Learner's answer:**
{learner_answer}

Judge whether the learner's answer is correct, give a score from 0 to 100
and short feedback that explains what was right or missing.

**Format your response as JSON:**
{{
  "is_correct": <true or false>,
  "score": <number 0-100>,
  "feedback": "Feedback for the learner (1-2 sentences)"
}}""",
        )

    def evaluate_closed(self, question: Question, response: str) -> Verdict:
        """Grade a closed question (see module-level ``evaluate_closed``)."""
        return evaluate_closed(question, response)

    def evaluate_open(self, question_text: str, canonical_answer: str, response: str) -> Verdict:
        """
        Grade an open-ended answer with the language model.

        Args:
            question_text: Question prompt
            canonical_answer: Model answer
            response: Learner's response

        Returns:
            Verdict with a 0-100 integer score

        Raises:
            EvaluationFailed: If the model call fails or its verdict is malformed
        """
        prompt = self.grading_prompt.format(
            question=question_text,
            model_answer=canonical_answer,
            learner_answer=response,
        )

        try:
            raw = self.text_generator.generate(self.SYSTEM_PROMPT, prompt)
        except Exception as e:
            raise EvaluationFailed(f"Answer evaluation call failed: {e}") from e

        try:
            payload = parse_json_payload(raw)
        except JSONPayloadError as e:
            raise EvaluationFailed(f"Unparseable verdict: {e}") from e

        result = self.validator.validate(payload, auto_repair=True)
        if not result:
            logger.warning(f"Rejected verdict: {result.errors}")
            raise EvaluationFailed("Verdict failed validation: " + "; ".join(result.errors))

        verdict = result.data
        return Verdict(
            is_correct=verdict["is_correct"],
            score=round_half_up(verdict["score"]),
            feedback=verdict["feedback"],
        )
