"""
Unit tests for the Answer Evaluator.
"""

import json
import unittest

from conftest import ScriptedTextGenerator, verdict_payload
from revision_quiz.agents.answer_evaluator import (
    CORRECT_FEEDBACK,
    AnswerEvaluator,
    evaluate_closed,
)
from revision_quiz.errors import EvaluationFailed
from revision_quiz.models.question import MultipleChoiceQuestion, TrueFalseQuestion


class TestClosedGrading(unittest.TestCase):
    """Closed questions never reach the text generator."""

    def setUp(self):
        self.mcq = MultipleChoiceQuestion("1", "2 + 2?", "B", choices=["3", "4", "5", "6"])
        self.tf = TrueFalseQuestion("2", "Paris is in France.", "true")

    def test_correct_letter(self):
        verdict = evaluate_closed(self.mcq, "B")

        self.assertTrue(verdict.is_correct)
        self.assertEqual(verdict.feedback, CORRECT_FEEDBACK)
        self.assertIsNone(verdict.score)

    def test_comparison_ignores_case_and_spacing(self):
        self.assertTrue(evaluate_closed(self.mcq, " b ").is_correct)
        self.assertTrue(evaluate_closed(self.tf, "TRUE").is_correct)

    def test_wrong_answer_names_correct_one(self):
        verdict = evaluate_closed(self.tf, "false")

        self.assertFalse(verdict.is_correct)
        self.assertIn("true", verdict.feedback)

    def test_evaluator_method_does_not_call_generator(self):
        generator = ScriptedTextGenerator()
        evaluator = AnswerEvaluator(text_generator=generator)

        verdict = evaluator.evaluate_closed(self.mcq, "C")

        self.assertFalse(verdict.is_correct)
        self.assertEqual(generator.calls, [])


class TestOpenGrading(unittest.TestCase):
    def grade(self, *replies):
        self.generator = ScriptedTextGenerator(*replies)
        evaluator = AnswerEvaluator(text_generator=self.generator)
        return evaluator.evaluate_open(
            "Why do objects fall?", "Gravity pulls masses together", "Because of gravity"
        )

    def test_verdict(self):
        verdict = self.grade(verdict_payload(is_correct=True, score=85, feedback="Well done"))

        self.assertTrue(verdict.is_correct)
        self.assertEqual(verdict.score, 85)
        self.assertEqual(verdict.feedback, "Well done")

    def test_prompt_contains_question_and_answers(self):
        self.grade(verdict_payload())

        _, prompt = self.generator.calls[0]
        self.assertIn("Why do objects fall?", prompt)
        self.assertIn("Gravity pulls masses together", prompt)
        self.assertIn("Because of gravity", prompt)

    def test_fractional_score_rounded_half_up(self):
        verdict = self.grade(verdict_payload(score=72.5))

        self.assertEqual(verdict.score, 73)

    def test_camel_case_verdict_repaired(self):
        reply = json.dumps({"isCorrect": "false", "score": "40", "feedback": "Incomplete"})

        verdict = self.grade(reply)

        self.assertFalse(verdict.is_correct)
        self.assertEqual(verdict.score, 40)

    def test_verdict_wrapped_in_prose(self):
        verdict = self.grade("Sure! " + verdict_payload(score=60) + " Hope this helps.")

        self.assertEqual(verdict.score, 60)

    def test_malformed_verdict(self):
        with self.assertRaises(EvaluationFailed):
            self.grade("The answer looks mostly right to me.")

    def test_missing_fields(self):
        with self.assertRaises(EvaluationFailed):
            self.grade(json.dumps({"is_correct": True}))

    def test_score_out_of_range(self):
        with self.assertRaises(EvaluationFailed):
            self.grade(verdict_payload(score=140))

    def test_capability_error(self):
        with self.assertRaises(EvaluationFailed) as ctx:
            self.grade(TimeoutError("no reply"))

        self.assertIsInstance(ctx.exception.__cause__, TimeoutError)


if __name__ == "__main__":
    unittest.main()
