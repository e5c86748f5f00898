"""
RevisionQuiz - adaptive revision quizzes with gamified level unlocking.

Pipeline: resource selection -> quiz generation -> quiz session with answer
evaluation -> progression update on completion.
"""

__version__ = "1.0.0"
